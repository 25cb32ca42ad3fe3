from __future__ import annotations
import enum
import threading
from dataclasses import dataclass, field
from typing import Optional


class ConnectionState(enum.Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"
    FAILED = "failed"


@dataclass
class ConnectionSignal:
    """
    Connection-state transitions shared between the run thread and the console.

    Handlers write it from the run thread; the foreground thread waits on it
    instead of polling a flag. The first transition out of CONNECTING settles
    the signal, so a failure wakes the waiter just like an open does.
    """
    state: ConnectionState = ConnectionState.CONNECTING
    has_opened: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _settled: threading.Event = field(default_factory=threading.Event, repr=False)

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.OPEN

    def opened(self) -> None:
        self._transition(ConnectionState.OPEN)

    def failed(self) -> None:
        self._transition(ConnectionState.FAILED)

    def closed(self) -> None:
        self._transition(ConnectionState.CLOSED)

    def wait(self, timeout: Optional[float] = None) -> ConnectionState:
        """Block until the connection opened, failed or closed; return the state seen."""
        self._settled.wait(timeout)
        with self._lock:
            return self.state

    def _transition(self, state: ConnectionState) -> None:
        with self._lock:
            self.state = state
            if state is ConnectionState.OPEN:
                self.has_opened = True
        self._settled.set()
