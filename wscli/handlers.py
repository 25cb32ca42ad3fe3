from __future__ import annotations
from typing import Union

from rich.console import Console

from shared.log import get_logger
from .engine import ConnectionHandle, WebSocketEngine
from .state import ConnectionSignal

logger = get_logger(__name__)


def echo(console: Console, text: str) -> None:
    """Print one status line verbatim: no markup, no highlighting, no wrapping."""
    console.print(text, markup=False, highlight=False, emoji=False, soft_wrap=True)


def write_raw(console: Console, text: str) -> None:
    """Write one line to the console's stream untouched, control characters included."""
    console.file.write(text + "\n")
    console.file.flush()


def payload_text(payload: Union[str, bytes]) -> str:
    if isinstance(payload, bytes):
        return payload.decode("utf-8", errors="replace")
    return payload


def setup_handlers(engine: WebSocketEngine, signal: ConnectionSignal, console: Console) -> None:
    """
    Attach the open, message, close and fail callbacks to ``engine``.

    Must run before the connection is requested; the engine refuses to connect
    otherwise. Callbacks execute on the engine's run thread.
    """

    def on_open(con: ConnectionHandle) -> None:
        signal.opened()
        logger.info("Connection opened", extra={"connection_id": con.id, "uri": con.uri})
        echo(console, "Connection opened")

    def on_message(con: ConnectionHandle, payload: Union[str, bytes]) -> None:
        write_raw(console, f"Received: {payload_text(payload)}")

    def on_close(con: ConnectionHandle) -> None:
        logger.info(
            "Connection closed with code %s (%s)", con.close_code, con.close_reason or "no reason",
            extra={"connection_id": con.id},
        )
        echo(console, "Connection closed")
        signal.closed()

    def on_fail(con: ConnectionHandle) -> None:
        echo(console, "Connection failed")
        signal.failed()

    engine.set_open_handler(on_open)
    engine.set_message_handler(on_message)
    engine.set_close_handler(on_close)
    engine.set_fail_handler(on_fail)
