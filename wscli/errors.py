from __future__ import annotations


class WSCliError(Exception):
    """Base class for client errors."""
    pass


class ResolveError(WSCliError):
    """Raised when a URI cannot be turned into a connection."""
    pass


class SendError(WSCliError):
    """Raised when a text frame could not be written."""
    pass


class CloseError(WSCliError):
    """Raised when the close request itself fails."""
    pass


class EngineError(WSCliError):
    """Raised when the engine is driven out of order."""
    pass
