"""FastAPI server for real-time event delivery."""

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Annotated, Any

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .. import __version__
from .config import Config
from .events import EventRegistry
from .events.models import Comment, Message, Notification, Post, PostRef, Reaction
from .middleware import RequestContextMiddleware
from .publishers import (
    publish_comment,
    publish_message,
    publish_notification,
    publish_post,
    publish_reaction,
)
from .streaming import (
    ConnectionTracker,
    EventStreamResponse,
    MissingUserError,
    StreamingBridge,
    parse_topics,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# Pydantic models for API
class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NotificationRequest(ApiModel):
    user_id: str | None = None
    type: str | None = None
    content: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class MessageRequest(ApiModel):
    sender_id: str | None = None
    receiver_id: str | None = None
    content: str | None = None


class PostRequest(ApiModel):
    user_id: str | None = None
    content: str | None = None
    topic: str | None = None


class ReactionRequest(ApiModel):
    user_id: str | None = None
    emoji: str | None = None
    post: PostRef | None = None  # None when the target is not a post


class CommentRequest(ApiModel):
    user_id: str | None = None
    content: str | None = None
    post: PostRef | None = None


# =============================================================================
# Dependencies
# =============================================================================

def get_registry(request: Request) -> EventRegistry:
    return request.app.state.registry


def get_connections(request: Request) -> ConnectionTracker:
    return request.app.state.connections


def get_config(request: Request) -> Config:
    return request.app.state.config


RegistryDep = Annotated[EventRegistry, Depends(get_registry)]
ConnectionsDep = Annotated[ConnectionTracker, Depends(get_connections)]
ConfigDep = Annotated[Config, Depends(get_config)]


def _require(*values: Any) -> None:
    if any(not value for value in values):
        raise HTTPException(status_code=400, detail="Missing required fields")


def _new_record() -> dict[str, Any]:
    """Identity fields a stored row would have."""
    return {"id": uuid.uuid4().hex, "created_at": datetime.now(timezone.utc)}


def _dump(record: BaseModel) -> dict[str, Any]:
    return record.model_dump(mode="json", by_alias=True)


# =============================================================================
# Health & Status
# =============================================================================

@router.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "timestamp": datetime.now().isoformat()}


@router.get("/status")
async def status(registry: RegistryDep, connections: ConnectionsDep):
    """Connected clients and subscription counts."""
    return {
        "connected_clients": connections.count,
        "registry": registry.stats(),
    }


# =============================================================================
# Event Stream
# =============================================================================

@router.get("/api/realtime")
async def realtime_stream(
    registry: RegistryDep,
    connections: ConnectionsDep,
    config: ConfigDep,
    user_id: Annotated[str | None, Query(alias="userId")] = None,
    channels: Annotated[str | None, Query()] = None,
):
    """Server-Sent Events stream for one user and optional topic channels."""
    try:
        bridge = StreamingBridge(
            registry,
            user_id,
            topics=parse_topics(channels),
            ping_interval=config.realtime.ping_interval,
        )
    except MissingUserError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return EventStreamResponse(bridge, tracker=connections)


# =============================================================================
# Producers
# =============================================================================

@router.post("/api/notifications", status_code=201)
async def create_notification(req: NotificationRequest, registry: RegistryDep):
    """Create a notification and push it to the user."""
    _require(req.user_id, req.type, req.content)

    notification = Notification(
        **_new_record(),
        user_id=req.user_id,
        type=req.type,
        content=req.content,
        metadata=req.metadata,
    )
    publish_notification(registry, notification)
    return _dump(notification)


@router.post("/api/messages", status_code=201)
async def create_message(req: MessageRequest, registry: RegistryDep):
    """Send a direct message to both participants."""
    _require(req.sender_id, req.content)

    message = Message(
        **_new_record(),
        sender_id=req.sender_id,
        receiver_id=req.receiver_id,
        content=req.content,
    )
    publish_message(registry, message)
    return _dump(message)


@router.post("/api/posts", status_code=201)
async def create_post(req: PostRequest, registry: RegistryDep):
    """Publish a post to its topic channel."""
    _require(req.user_id, req.content)

    post = Post(**_new_record(), user_id=req.user_id, content=req.content, topic=req.topic)
    publish_post(registry, post)
    return _dump(post)


@router.post("/api/reactions", status_code=201)
async def create_reaction(req: ReactionRequest, registry: RegistryDep):
    _require(req.user_id, req.emoji)

    reaction = Reaction(
        **_new_record(),
        user_id=req.user_id,
        post_id=req.post.id if req.post else None,
        emoji=req.emoji,
    )
    publish_reaction(registry, reaction, req.post)
    return _dump(reaction)


@router.post("/api/comments", status_code=201)
async def create_comment(req: CommentRequest, registry: RegistryDep):
    _require(req.user_id, req.content, req.post)

    comment = Comment(
        **_new_record(),
        user_id=req.user_id,
        post_id=req.post.id,
        content=req.content,
    )
    publish_comment(registry, comment, req.post)
    return _dump(comment)


# =============================================================================
# Application
# =============================================================================

def create_app(config: Config | None = None, registry: EventRegistry | None = None) -> FastAPI:
    """Build the application with its own registry and connection tracker."""
    if config is None:
        config = Config.load()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown logic."""
        logger.info(f"Real-time server started (ping every {config.realtime.ping_interval}s)")

        yield

        # Cleanup
        app.state.connections.close_all()
        logger.info("Real-time server stopped")

    app = FastAPI(
        title="Forefront Realtime",
        description="Channel fan-out and Server-Sent Events delivery",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.registry = registry if registry is not None else EventRegistry()
    app.state.connections = ConnectionTracker()

    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)
    return app


# For `uvicorn forefront_realtime.server.app:app`
app = create_app()
