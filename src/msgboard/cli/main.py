"""msgboard CLI — run the server and talk to the message API.

Usage:
    msgboard serve                          # Start the API + subscription server
    msgboard messages                       # List all messages
    msgboard post alice "hello"             # Post a message
    msgboard post bob "hi!" --parent-id 1   # Reply to message 1
    msgboard update 1 alice "hello again"   # Edit a message
    msgboard delete 1                       # Delete a message
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from typing import Optional

import click
import httpx

from msgboard import __version__

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:4000"


def _api_url() -> str:
    return os.environ.get("MSGBOARD_API_URL", DEFAULT_API_URL).rstrip("/")


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the msgboard backend."""
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous click handler.

    Handles nested event loops (e.g. click's CliRunner inside an async
    test) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


def _fail(resp: httpx.Response) -> None:
    """Print the API error and exit non-zero."""
    try:
        detail = resp.json().get("detail", resp.text)
    except ValueError:
        detail = resp.text
    click.secho(f"Error ({resp.status_code}): {detail}", fg="red", err=True)
    sys.exit(1)


def _print_table(rows: list[dict], columns: list[tuple[str, str, int]]):
    """Print a simple ASCII table.

    columns: list of (header, dict_key, width)
    """
    header = "  ".join(h.ljust(w) for h, _, w in columns)
    click.secho(header, bold=True)
    click.echo("-" * len(header))
    for row in rows:
        line = "  ".join(str(row.get(k) or "-")[:w].ljust(w) for _, k, w in columns)
        click.echo(line)


async def _send(method: str, path: str, **kwargs) -> httpx.Response:
    async with _client() as c:
        return await c.request(method, path, **kwargs)


def _request(method: str, path: str, **kwargs) -> dict | list:
    """Call the API and return the JSON body, exiting on any error."""
    try:
        r = _run(_send(method, path, **kwargs))
    except httpx.ConnectError:
        click.secho(f"Backend not reachable at {_api_url()}", fg="red", err=True)
        sys.exit(1)
    if r.is_error:
        _fail(r)
    return r.json()


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="msgboard")
def main():
    """msgboard — real-time message board."""


@main.command()
@click.option("--host", default=None, help="Bind address (default: MSGBOARD_HOST)")
@click.option("--port", "-p", type=int, default=None, help="Port (default: MSGBOARD_PORT)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Start the HTTP API and the subscription WebSocket."""
    import uvicorn

    from msgboard.config import settings

    uvicorn.run(
        "msgboard.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def messages(as_json: bool):
    """List all messages, oldest first."""
    data = _request("GET", "/api/v1/messages")
    if as_json:
        click.echo(_pretty_json(data))
        return
    if not data:
        click.echo("No messages.")
        return
    _print_table(data, [
        ("ID", "id", 6),
        ("USER", "user", 16),
        ("PARENT", "parentId", 6),
        ("CONTENT", "content", 48),
    ])


@main.command()
@click.argument("user")
@click.argument("content")
@click.option("--parent-id", help="Id of the message this replies to")
def post(user: str, content: str, parent_id: Optional[str]):
    """Post a new message."""
    body: dict = {"user": user, "content": content}
    if parent_id:
        body["parentId"] = parent_id
    message = _request("POST", "/api/v1/messages", json=body)
    click.secho(f"Message #{message['id']} posted", fg="green")


@main.command()
@click.argument("message_id")
@click.argument("user")
@click.argument("content")
def update(message_id: str, user: str, content: str):
    """Edit a message's user and content."""
    message = _request(
        "PUT", f"/api/v1/messages/{message_id}", json={"user": user, "content": content},
    )
    click.secho(f"Message #{message['id']} updated", fg="green")


@main.command()
@click.argument("message_id")
def delete(message_id: str):
    """Delete a message."""
    message = _request("DELETE", f"/api/v1/messages/{message_id}")
    click.secho(f"Message #{message['id']} deleted", fg="yellow")


if __name__ == "__main__":
    main()
