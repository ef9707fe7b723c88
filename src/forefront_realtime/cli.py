"""CLI interface for the Forefront real-time server."""

import json
import urllib.error
import urllib.request
from typing import Annotated, Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

app = typer.Typer(
    name="ffrt",
    help="Forefront real-time server - channel fan-out over Server-Sent Events",
    no_args_is_help=True,
)
console = Console()


def _base_url(url: Optional[str]) -> str:
    if url:
        return url.rstrip("/")

    from .server.config import Config

    config = Config.load()
    return f"http://{config.server.host}:{config.server.port}"


def _post_json(url: str, payload: dict) -> dict:
    request = urllib.request.Request(
        url,
        data=json.dumps(payload).encode(),
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    with urllib.request.urlopen(request, timeout=5) as response:
        return json.loads(response.read().decode())


# =============================================================================
# Server Commands
# =============================================================================

@app.command()
def serve(
    host: Annotated[Optional[str], typer.Option("--host", "-h", help="Host to bind")] = None,
    port: Annotated[Optional[int], typer.Option("--port", "-p", help="Port to bind")] = None,
    reload: Annotated[bool, typer.Option("--reload", "-r", help="Auto-reload on changes")] = False,
    ping_interval: Annotated[
        Optional[float], typer.Option("--ping-interval", help="Seconds between keep-alive pings")
    ] = None,
):
    """Start the real-time server."""
    import os

    import uvicorn

    from .server.config import Config, ensure_forefront_home
    from .server.logs import configure_logging

    ensure_forefront_home()
    config = Config.load()
    configure_logging(config.logging)

    host = host or config.server.host
    port = port or config.server.port
    if ping_interval is not None:
        # Picked up by Config.load() in the server process
        os.environ["FOREFRONT_PING_INTERVAL"] = str(ping_interval)

    rprint(f"[bold]Starting Forefront real-time server...[/bold]")
    rprint(f"  URL: http://{host}:{port}")
    rprint(f"  Stream: http://{host}:{port}/api/realtime?userId=<id>&channels=<a,b>")
    rprint(f"  API docs: http://{host}:{port}/docs")
    rprint("")
    rprint("[dim]Press Ctrl+C to stop[/dim]")
    rprint("")

    uvicorn.run(
        "forefront_realtime.server.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_config=None,
        timeout_graceful_shutdown=config.server.shutdown_timeout,
    )


@app.command()
def status(
    url: Annotated[Optional[str], typer.Option("--url", "-u", help="Server base URL")] = None,
):
    """Check server status."""
    base = _base_url(url)

    try:
        with urllib.request.urlopen(f"{base}/status", timeout=2) as response:
            data = json.loads(response.read().decode())
    except urllib.error.URLError:
        rprint("[dim]○ Server is not running[/dim]")
        rprint(f"  Start with: ffrt serve")
        raise typer.Exit(1)

    registry = data.get("registry", {})
    rprint("[green]● Server is running[/green]")
    rprint(f"  URL: {base}")
    rprint(f"  Clients: {data.get('connected_clients', 0)} connected")
    rprint(f"  Channels: {registry.get('channels', 0)} ({registry.get('subscriptions', 0)} subscriptions)")

    by_channel = registry.get("by_channel", {})
    if by_channel:
        table = Table(title="Subscriptions")
        table.add_column("Channel", style="cyan")
        table.add_column("Subscribers", justify="right")
        for channel, count in sorted(by_channel.items()):
            table.add_row(channel, str(count))
        console.print(table)


# =============================================================================
# Producer Commands
# =============================================================================

@app.command()
def notify(
    user_id: Annotated[str, typer.Argument(help="User to notify")],
    content: Annotated[str, typer.Argument(help="Notification text")],
    kind: Annotated[str, typer.Option("--type", "-t", help="Notification type")] = "system",
    url: Annotated[Optional[str], typer.Option("--url", "-u", help="Server base URL")] = None,
):
    """Send a notification to a user's stream."""
    payload = {"userId": user_id, "type": kind, "content": content}
    try:
        record = _post_json(f"{_base_url(url)}/api/notifications", payload)
    except urllib.error.URLError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    rprint(f"[green]✓[/green] Notification {record['id']} sent to user:{user_id}")


@app.command()
def post(
    user_id: Annotated[str, typer.Argument(help="Author user id")],
    content: Annotated[str, typer.Argument(help="Post text")],
    topic: Annotated[Optional[str], typer.Option("--topic", "-t", help="Topic channel (default: general)")] = None,
    url: Annotated[Optional[str], typer.Option("--url", "-u", help="Server base URL")] = None,
):
    """Publish a post to a topic channel."""
    payload = {"userId": user_id, "content": content, "topic": topic}
    try:
        record = _post_json(f"{_base_url(url)}/api/posts", payload)
    except urllib.error.URLError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    rprint(f"[green]✓[/green] Post {record['id']} published to channel:{topic or 'general'}")


@app.command()
def listen(
    user_id: Annotated[str, typer.Option("--user", help="User id to stream for")],
    channels: Annotated[Optional[str], typer.Option("--channels", "-c", help="Comma-separated topics")] = None,
    url: Annotated[Optional[str], typer.Option("--url", "-u", help="Server base URL")] = None,
):
    """Print events from a user's stream, reconnecting on failure."""
    from .client import format_event, listen as listen_stream, stream_url
    from .server.streaming import parse_topics

    target = stream_url(_base_url(url), user_id, parse_topics(channels))
    rprint(f"[bold]Listening on[/bold] {target}")
    rprint("[dim]Press Ctrl+C to stop[/dim]")

    try:
        listen_stream(target, lambda event: console.print(format_event(event), markup=False))
    except urllib.error.HTTPError as e:
        rprint(f"[red]Rejected:[/red] HTTP {e.code}")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        rprint("")


# =============================================================================
# Config Commands
# =============================================================================

config_app = typer.Typer(help="Manage configuration")
app.add_typer(config_app, name="config")


@config_app.command("init")
def config_init(
    force: Annotated[bool, typer.Option("--force", "-f", help="Overwrite existing")] = False,
):
    """Write a commented default configuration file."""
    from .server.config import ensure_forefront_home, get_config_path, get_default_config_template

    ensure_forefront_home()
    config_path = get_config_path()

    if config_path.exists() and not force:
        rprint(f"[yellow]Config already exists:[/yellow] {config_path}")
        rprint("Use --force to overwrite")
        return

    config_path.write_text(get_default_config_template())
    rprint(f"[green]✓[/green] Created config at {config_path}")


@config_app.command("show")
def config_show():
    """Show current configuration."""
    from .server.config import get_config_path

    config_path = get_config_path()

    if not config_path.exists():
        rprint("[yellow]No config found. Using defaults.[/yellow]")
        rprint("Run 'ffrt config init' to create config file.")
        return

    rprint(Panel(config_path.read_text(), title=str(config_path), border_style="cyan"))


@config_app.command("path")
def config_path():
    """Show config file path."""
    from .server.config import get_config_path

    print(get_config_path())


if __name__ == "__main__":
    app()
