"""Forefront real-time delivery: channel registry and Server-Sent Events bridge."""

__version__ = "0.1.0"
