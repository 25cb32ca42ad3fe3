#!/usr/bin/env python3

from __future__ import annotations
import os

import typer
from rich.console import Console

from shared.log import get_logger, set_log_level
from .engine import WebSocketEngine
from .session import run_client

app = typer.Typer(help="Interactive WebSocket console client", add_completion=False)
console = Console()
logger = get_logger(__name__)

DEFAULT_URI = "ws://echo.websocket.events"


def _default_uri() -> str:
    return os.getenv("WSCLI_URI", DEFAULT_URI)


def _default_log_level() -> str:
    return os.getenv("WSCLI_LOG_LEVEL", "WARNING")


@app.command()
def connect(
    uri: str = typer.Option(_default_uri(), "--uri", "-u", help="WebSocket URL to connect to"),
    open_timeout: float = typer.Option(10.0, help="Seconds to wait for the opening handshake"),
    log_level: str = typer.Option(_default_log_level(), help="DEBUG, INFO, WARNING or ERROR"),
):
    """Connect, print received frames and send typed lines until 'exit'."""
    set_log_level(log_level)
    logger.debug("Starting client", extra={"uri": uri})
    engine = WebSocketEngine(open_timeout=open_timeout)
    code = run_client(uri, engine=engine, console=console)
    raise typer.Exit(code=code)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
