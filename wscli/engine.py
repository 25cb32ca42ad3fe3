from __future__ import annotations
import asyncio
import concurrent.futures
import itertools
import threading
from typing import Any, Callable, Dict, Optional, Union

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, InvalidURI
from websockets.uri import parse_uri

from shared.log import get_logger
from .errors import CloseError, EngineError, ResolveError, SendError
from .state import ConnectionState

logger = get_logger(__name__)

Handler = Callable[..., None]

# Event names accepted by WebSocketEngine.on()
EVENTS = ("open", "message", "close", "fail")

_connection_ids = itertools.count(1)


class ConnectionHandle:
    """Opaque reference to the engine's single WebSocket connection"""

    def __init__(self, uri: str) -> None:
        self.uri = uri
        self.id = next(_connection_ids)
        self.state = ConnectionState.CONNECTING
        self.websocket: Optional[websockets.ClientConnection] = None
        self.error: Optional[BaseException] = None
        self.close_code: Optional[int] = None
        self.close_reason: Optional[str] = None

    def __repr__(self) -> str:
        return f"<ConnectionHandle #{self.id} {self.uri} {self.state.value}>"


class WebSocketEngine:
    """
    Callback-driven client engine on top of websockets' asyncio client.

    The engine owns one asyncio event loop. ``run()`` executes that loop on the
    calling thread and every callback (open, message, close, fail) is invoked
    there, never concurrently with another callback. Other threads talk to the
    loop only through ``connect``, ``send``, ``close`` and ``stop_perpetual``.

    ``run()`` returns once perpetual mode is off and no connection is active.
    """

    def __init__(
        self,
        open_timeout: Optional[float] = 10,
        send_timeout: Optional[float] = 10,
        close_timeout: Optional[float] = 10,
        ping_interval: Optional[float] = 20,
        ping_timeout: Optional[float] = 20,
    ) -> None:
        self.open_timeout = open_timeout
        self.send_timeout = send_timeout
        self.close_timeout = close_timeout
        self.ping_interval = ping_interval
        self.ping_timeout = ping_timeout
        self.handlers: Dict[str, Handler] = {}
        self._loop = asyncio.new_event_loop()
        self._lock = threading.Lock()
        self._perpetual = False
        self._active = 0
        self._running = False
        self._wake: Optional[asyncio.Event] = None

    # ----- handler registration -----

    def on(self, event: str, handler: Handler) -> None:
        if event not in EVENTS:
            raise ValueError(f"unknown event {event!r}")
        self.handlers[event] = handler

    def set_open_handler(self, handler: Callable[[ConnectionHandle], None]) -> None:
        self.on("open", handler)

    def set_message_handler(self, handler: Callable[[ConnectionHandle, Union[str, bytes]], None]) -> None:
        self.on("message", handler)

    def set_close_handler(self, handler: Callable[[ConnectionHandle], None]) -> None:
        self.on("close", handler)

    def set_fail_handler(self, handler: Callable[[ConnectionHandle], None]) -> None:
        self.on("fail", handler)

    # ----- connection management -----

    def get_connection(self, uri: str) -> ConnectionHandle:
        """Validate ``uri`` and build a handle for it. Raises ResolveError."""
        try:
            parse_uri(uri)
        except InvalidURI as e:
            raise ResolveError(str(e)) from e
        except ValueError as e:
            # urllib rejects malformed ports with ValueError
            raise ResolveError(f"{uri} isn't a valid URI: {e}") from e
        return ConnectionHandle(uri)

    def connect(self, con: ConnectionHandle) -> None:
        """Queue the opening handshake; it starts as soon as the loop runs."""
        if "open" not in self.handlers:
            raise EngineError("handlers must be registered before connecting")
        if con.state is not ConnectionState.CONNECTING or con.websocket is not None:
            raise EngineError(f"{con!r} was already connected")
        with self._lock:
            self._active += 1
        self._loop.call_soon_threadsafe(self._start, con)
        logger.debug("Connection requested", extra={"connection_id": con.id, "uri": con.uri})

    def send(self, con: ConnectionHandle, message: str) -> None:
        """Send ``message`` as a text frame and wait until it is written. Raises SendError."""
        if con.state is not ConnectionState.OPEN or con.websocket is None:
            raise SendError(f"invalid state: connection is {con.state.value}")
        try:
            self._call(con.websocket.send(message), self.send_timeout)
        except ConnectionClosed as e:
            raise SendError(str(e)) from e
        except Exception as e:
            raise SendError(str(e) or type(e).__name__) from e

    def close(self, con: ConnectionHandle, code: int = 1000, reason: str = "") -> None:
        """Run the closing handshake for ``con``. Raises CloseError."""
        if con.state is not ConnectionState.OPEN or con.websocket is None:
            raise CloseError(f"invalid state: connection is {con.state.value}")
        timeout = None if self.close_timeout is None else self.close_timeout * 2
        try:
            self._call(con.websocket.close(code=code, reason=reason), timeout)
        except Exception as e:
            raise CloseError(str(e) or type(e).__name__) from e

    # ----- run loop -----

    def start_perpetual(self) -> None:
        with self._lock:
            self._perpetual = True

    def stop_perpetual(self) -> None:
        with self._lock:
            self._perpetual = False
        self._notify()

    def run(self) -> None:
        """Process events on the calling thread until there is nothing left to do."""
        with self._lock:
            if self._running or self._loop.is_closed():
                raise EngineError("engine loop can only be run once")
            self._running = True
        logger.debug("Event loop starting")
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._serve())
        finally:
            self._loop.run_until_complete(self._loop.shutdown_asyncgens())
            self._loop.close()
            logger.debug("Event loop stopped")

    def _keep_running(self) -> bool:
        with self._lock:
            return self._perpetual or self._active > 0

    async def _serve(self) -> None:
        self._wake = asyncio.Event()
        while self._keep_running():
            await self._wake.wait()
            self._wake.clear()

    def _notify(self) -> None:
        try:
            self._loop.call_soon_threadsafe(self._wakeup)
        except RuntimeError:
            # Loop already closed
            pass

    def _wakeup(self) -> None:
        if self._wake is not None:
            self._wake.set()

    def _call(self, coro: Any, timeout: Optional[float]) -> Any:
        """Run a coroutine on the engine loop from another thread and wait for it."""
        if not self._running or self._loop.is_closed():
            coro.close()
            raise EngineError("event loop is not running")
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        try:
            return future.result(timeout)
        except concurrent.futures.TimeoutError:
            # Stop the coroutine still running on the loop
            future.cancel()
            raise TimeoutError(f"timed out after {timeout} seconds") from None

    # ----- inside the loop -----

    def _start(self, con: ConnectionHandle) -> None:
        self._loop.create_task(self._drive(con))

    async def _drive(self, con: ConnectionHandle) -> None:
        try:
            try:
                websocket = await websockets.connect(
                    con.uri,
                    open_timeout=self.open_timeout,
                    close_timeout=self.close_timeout,
                    ping_interval=self.ping_interval,
                    ping_timeout=self.ping_timeout,
                )
            except Exception as e:
                con.error = e
                con.state = ConnectionState.FAILED
                logger.warning("Opening handshake failed: %s", e, extra={"connection_id": con.id})
                self._dispatch("fail", con)
                return

            con.websocket = websocket
            con.state = ConnectionState.OPEN
            self._dispatch("open", con)
            try:
                async for message in websocket:
                    self._dispatch("message", con, message)
            except ConnectionClosedError as e:
                con.error = e
                logger.warning("Connection lost: %s", e, extra={"connection_id": con.id})

            con.state = ConnectionState.CLOSED
            con.close_code = websocket.close_code
            con.close_reason = websocket.close_reason
            self._dispatch("close", con)
        finally:
            with self._lock:
                self._active -= 1
            self._wakeup()

    def _dispatch(self, event: str, *args: Any) -> None:
        handler = self.handlers.get(event)
        if handler is None:
            return
        try:
            handler(*args)
        except Exception:
            logger.exception("Error in %s handler", event)
