"""Interactive WebSocket console client."""

from .engine import ConnectionHandle, WebSocketEngine
from .errors import CloseError, EngineError, ResolveError, SendError, WSCliError
from .session import run_client
from .state import ConnectionSignal, ConnectionState

__all__ = [
    "CloseError",
    "ConnectionHandle",
    "ConnectionSignal",
    "ConnectionState",
    "EngineError",
    "ResolveError",
    "SendError",
    "WSCliError",
    "WebSocketEngine",
    "run_client",
]
