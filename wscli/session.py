from __future__ import annotations
import threading
from functools import partial
from typing import Callable, Optional

from rich.console import Console

from shared.log import get_logger
from .engine import ConnectionHandle, WebSocketEngine
from .errors import CloseError, ResolveError, SendError
from .handlers import echo, setup_handlers
from .state import ConnectionSignal, ConnectionState

logger = get_logger(__name__)

PROMPT = "Enter message to send (or 'exit' to quit): "
EXIT_COMMAND = "exit"

# Close frame sent when the user leaves
CLOSE_NORMAL = 1000
CLOSE_REASON = "Client exit"

EXIT_OK = 0
EXIT_RESOLVE_ERROR = -1
EXIT_CONNECT_FAILED = 1

ReadLine = Callable[[str], str]


def initiate_connection(engine: WebSocketEngine, uri: str) -> ConnectionHandle:
    """Resolve ``uri`` and, only if that worked, ask the engine to connect."""
    con = engine.get_connection(uri)
    engine.connect(con)
    return con


def start_run_thread(engine: WebSocketEngine) -> threading.Thread:
    """Run the engine loop on its own thread so the console stays free for input."""
    thread = threading.Thread(target=engine.run, name="wscli-loop", daemon=True)
    thread.start()
    return thread


def send_loop(engine: WebSocketEngine, con: ConnectionHandle, read_line: ReadLine, console: Console) -> int:
    """
    Forward console lines as text frames until the user types ``exit``.

    Every other line is sent as is, including empty ones. Send failures are
    reported and the prompt comes back. End of input and Ctrl-C also end the
    loop. Returns the number of frames sent.
    """
    sent = 0
    while True:
        try:
            line = read_line(PROMPT)
        except (EOFError, KeyboardInterrupt):
            logger.debug("Input closed, leaving send loop")
            break
        if line == EXIT_COMMAND:
            break
        try:
            engine.send(con, line)
        except SendError as e:
            echo(console, f"Send error: {e}")
            continue
        sent += 1
    return sent


def shutdown(engine: WebSocketEngine, con: ConnectionHandle, thread: threading.Thread, console: Console) -> None:
    """Close the connection, then let the loop drain, then join its thread."""
    try:
        engine.close(con, CLOSE_NORMAL, CLOSE_REASON)
    except CloseError as e:
        echo(console, f"Close error: {e}")
    engine.stop_perpetual()
    thread.join()


def run_client(
    uri: str,
    engine: Optional[WebSocketEngine] = None,
    console: Optional[Console] = None,
    read_line: Optional[ReadLine] = None,
) -> int:
    """Drive one interactive session against ``uri`` and return the exit code."""
    console = console or Console()
    engine = engine or WebSocketEngine()
    read_line = read_line or partial(console.input, markup=False, emoji=False)

    signal = ConnectionSignal()
    setup_handlers(engine, signal, console)

    try:
        con = initiate_connection(engine, uri)
    except ResolveError as e:
        echo(console, f"Connection error: {e}")
        return EXIT_RESOLVE_ERROR

    engine.start_perpetual()
    thread = start_run_thread(engine)

    try:
        signal.wait()
    except KeyboardInterrupt:
        logger.warning("Interrupted while connecting to %s", uri, extra={"connection_id": con.id})
        # The handshake is still in flight; let it settle so the loop can drain
        if signal.wait() is ConnectionState.OPEN:
            shutdown(engine, con, thread, console)
        else:
            engine.stop_perpetual()
            thread.join()
        return EXIT_CONNECT_FAILED

    if not signal.has_opened:
        logger.error("Could not connect to %s", uri, extra={"connection_id": con.id})
        engine.stop_perpetual()
        thread.join()
        return EXIT_CONNECT_FAILED

    sent = send_loop(engine, con, read_line, console)
    logger.debug("Sent %d frame(s)", sent, extra={"connection_id": con.id})
    shutdown(engine, con, thread, console)
    return EXIT_OK
