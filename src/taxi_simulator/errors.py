"""
Error Taxonomy
==============

Exceptions raised by the taxi feed simulator.

Policy:
    - DecodeError / ProtocolError are local: callers log them and drop the
      offending route or message, the process keeps running.
    - DuplicateRoleError / DuplicateSessionError abort session establishment
      before any transport side effect.
    - TransportError covers connect failures and abnormal closes.
"""

from typing import Optional


class SimulatorError(Exception):
    """Base class for all simulator errors."""


class DecodeError(SimulatorError, ValueError):
    """Malformed encoded polyline (unterminated group or invalid character)."""

    def __init__(self, message: str, position: Optional[int] = None) -> None:
        super().__init__(message)
        self.position = position


class ProtocolError(SimulatorError, ValueError):
    """Malformed wire message (missing prefix, field or numeric value)."""

    def __init__(self, message: str, raw: Optional[str] = None) -> None:
        super().__init__(message)
        self.raw = raw


class DuplicateRoleError(SimulatorError):
    """A second consumer-role session was requested while one is open."""


class DuplicateSessionError(SimulatorError):
    """A session with the same identifier is already registered."""


class TransportError(SimulatorError):
    """Connect failure or abnormal close of a session transport."""

    def __init__(self, message: str, code: Optional[int] = None) -> None:
        super().__init__(message)
        self.code = code


class RouteLookupError(SimulatorError):
    """The route lookup service failed or returned an unusable payload."""


class IdentifierError(SimulatorError):
    """The identifier service failed to provide a session id."""
