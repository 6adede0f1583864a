"""Transport-level errors raised by the connection-ID and flow-control bookkeeping."""

from __future__ import annotations

# QUIC transport error codes
INTERNAL_ERROR = 0x01
CONNECTION_ID_LIMIT_ERROR = 0x09
PROTOCOL_VIOLATION = 0x0A


class TransportError(Exception):
    """A QUIC transport error carrying its wire error code."""

    code: int = INTERNAL_ERROR

    def __init__(self, reason: str = "", *, code: int | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        if code is not None:
            self.code = code

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code=0x{self.code:02x}, reason={self.reason!r})"


class ProtocolViolation(TransportError):
    """The peer (or local state) violated the protocol."""

    code = PROTOCOL_VIOLATION


class ConnectionIdLimitExceeded(TransportError):
    """More connection IDs were supplied than the advertised limit allows."""

    code = CONNECTION_ID_LIMIT_ERROR