"""Exceptions raised by the PulseAudio native protocol client."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models.types import Command


class PulseAudioError(Exception):
    """Base class for all errors raised by aiopulsenative."""


class BadCookie(PulseAudioError):
    """The authentication cookie is missing, unreadable or has the wrong size."""


class VersionUnsupported(PulseAudioError):
    """The server speaks a native protocol version older than the supported minimum."""

    def __init__(self, server_version: int, required_version: int) -> None:
        """Store the negotiated and required protocol versions."""
        super().__init__(
            f"PulseAudio server supports protocol version {server_version} "
            f"but minimum required is {required_version}"
        )
        self.server_version = server_version
        self.required_version = required_version


class RequestTooLarge(PulseAudioError):
    """An outgoing frame would exceed the maximum frame size."""


class MalformedFrame(PulseAudioError):
    """An incoming frame violates the framing or the tagged value encoding."""


class ProtocolViolation(PulseAudioError):
    """The server sent a frame that does not fit the request/reply contract."""


class PulseError(PulseAudioError):
    """The server answered a request with an error code."""

    def __init__(self, command: Command, code: int) -> None:
        """Store the originating command and the raw error code."""
        self.command = command
        self.code = code
        super().__init__(f"PulseAudio error: {command.name} -> {self.description}")

    @property
    def description(self) -> str:
        """Return the human-readable description of the error code."""
        # Imported here to keep errors importable from the models package.
        from .models.types import ErrorCode  # noqa: PLC0415

        try:
            return ErrorCode(self.code).description
        except ValueError:
            return f"Unknown error code {self.code}"


class ConnectionClosed(PulseAudioError):
    """The connection to the server is gone; the client is no longer usable."""

    def __init__(
        self,
        message: str = "PulseAudio client was closed",
        reason: BaseException | None = None,
    ) -> None:
        """Create the error, optionally recording the fault that closed the connection."""
        super().__init__(message)
        self.reason = reason
        if reason is not None:
            self.__cause__ = reason


class TransportError(ConnectionClosed):
    """Writing a request to the socket failed."""


class RequestTimeout(PulseAudioError, TimeoutError):
    """No reply arrived for a request before its deadline."""
