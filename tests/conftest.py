import io
import sys
from pathlib import Path

import pytest
from rich.console import Console

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from wscli.engine import ConnectionHandle
from wscli.errors import CloseError, ResolveError, SendError
from wscli.state import ConnectionState


class FakeEngine:
    """Records every call the session makes; no network, no loop."""

    def __init__(self, resolve_error=None, send_errors=None, close_error=None, events=("open",)):
        self.calls = []
        self.handlers = {}
        self.sent = []
        self.resolve_error = resolve_error
        self.send_errors = dict(send_errors or {})
        self.close_error = close_error
        # events replayed by run(), in order
        self.events = list(events)
        self.closed_with = None

    def on(self, event, handler):
        self.handlers[event] = handler

    def set_open_handler(self, handler):
        self.calls.append("set_open_handler")
        self.on("open", handler)

    def set_message_handler(self, handler):
        self.calls.append("set_message_handler")
        self.on("message", handler)

    def set_close_handler(self, handler):
        self.calls.append("set_close_handler")
        self.on("close", handler)

    def set_fail_handler(self, handler):
        self.calls.append("set_fail_handler")
        self.on("fail", handler)

    def get_connection(self, uri):
        self.calls.append("get_connection")
        if self.resolve_error:
            raise ResolveError(self.resolve_error)
        self.con = ConnectionHandle(uri)
        return self.con

    def connect(self, con):
        self.calls.append("connect")

    def start_perpetual(self):
        self.calls.append("start_perpetual")

    def stop_perpetual(self):
        self.calls.append("stop_perpetual")

    def run(self):
        self.calls.append("run")
        for event in self.events:
            if event == "open":
                self.con.state = ConnectionState.OPEN
            elif event in ("fail", "close"):
                self.con.state = ConnectionState.FAILED if event == "fail" else ConnectionState.CLOSED
            self.handlers[event](self.con)

    def send(self, con, message):
        self.calls.append("send")
        error = self.send_errors.get(message)
        if error:
            raise SendError(error)
        self.sent.append(message)

    def close(self, con, code=1000, reason=""):
        self.calls.append("close")
        self.closed_with = (code, reason)
        if self.close_error:
            raise CloseError(self.close_error)


def scripted_input(*lines):
    """read_line replacement that returns ``lines`` in order, then raises EOFError."""
    remaining = list(lines)
    prompts = []

    def read_line(prompt):
        prompts.append(prompt)
        if not remaining:
            raise EOFError
        return remaining.pop(0)

    read_line.prompts = prompts
    return read_line


@pytest.fixture
def console_buffer():
    buffer = io.StringIO()
    console = Console(file=buffer, force_terminal=False, color_system=None, width=200)
    return console, buffer


@pytest.fixture
def fake_engine():
    return FakeEngine()
