"""
Exception hierarchy for the FoundryVTT bridge.

Every error raised by the core derives from FoundryError and carries the
original cause (when one exists) plus the phase it happened in, so callers
can report what failed without retrying blindly. The core never formats
user-facing text; handlers translate these into messages.

    FoundryError
    ├── ConfigurationError   InvalidConfig, MissingCredentials
    ├── HandshakeError       NoSessionCookie, UserNotFound, JoinDataTimeout,
    │                        AuthenticationRejected
    ├── TransportError       RealtimeConnectionError, MalformedResponse,
    │                        RequestFailed, ConnectTimeout, RefreshTimeout
    ├── StateError           NotConnected
    └── LookupFailure        NotFound, NoActiveScene
"""

from __future__ import annotations


class FoundryError(Exception):
    """
    Base class for all bridge errors.

    Args:
        message: Description of what went wrong
        phase: Step of the connection flow the error came from, if any
        cause: Underlying exception, if any
    """

    def __init__(
        self,
        message: str,
        phase: str | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.phase = phase
        self.cause = cause


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(FoundryError):
    """Invalid or incomplete configuration. Never retried."""


class InvalidConfig(ConfigurationError):
    """A configuration value is malformed (e.g. the base URL)."""


class MissingCredentials(ConfigurationError):
    """Neither an API key nor a user + password pair is configured."""


# ---------------------------------------------------------------------------
# Join flow
# ---------------------------------------------------------------------------


class HandshakeError(FoundryError):
    """A step of the join flow failed."""


class NoSessionCookie(HandshakeError):
    """GET /join returned no usable session cookie."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message, phase="session_cookie", cause=cause)


class UserNotFound(HandshakeError):
    """No joinable user matches the configured name."""

    def __init__(self, username: str, available: list[str]):
        super().__init__(
            f'User "{username}" not found. Available users: {", ".join(available)}',
            phase="resolve_user",
        )
        self.username = username
        self.available = available


class JoinDataTimeout(HandshakeError, TimeoutError):
    """The server did not answer the join data request in time."""

    def __init__(self, timeout: float):
        super().__init__(
            f"Timeout resolving user ID via join data ({timeout:g}s)",
            phase="resolve_user",
        )
        self.timeout = timeout


class AuthenticationRejected(HandshakeError):
    """The server refused the submitted credentials."""


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


class TransportError(FoundryError):
    """Network failure or unusable response."""


class RealtimeConnectionError(TransportError):
    """The Socket.IO connection could not be opened."""


class MalformedResponse(TransportError):
    """The server answered with data of the wrong shape."""


class RequestFailed(TransportError):
    """An HTTP request failed; ``status`` is set when a response was received."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message, phase="request", cause=cause)
        self.status = status


class ConnectTimeout(TransportError, TimeoutError):
    """The world payload was not received during connect."""


class RefreshTimeout(TransportError, TimeoutError):
    """The world payload was not received during refresh."""


# ---------------------------------------------------------------------------
# State and lookups
# ---------------------------------------------------------------------------


class StateError(FoundryError):
    """The client is in the wrong state for the requested action."""


class NotConnected(StateError):
    """An action that needs an open connection was called without one."""


class LookupFailure(FoundryError, LookupError):
    """A requested document does not exist in the snapshot."""


class NotFound(LookupFailure):
    """No document with the given id in the collection."""

    def __init__(self, collection: str, document_id: str):
        super().__init__(f"{collection} document not found: {document_id}")
        self.collection = collection
        self.document_id = document_id


class NoActiveScene(LookupFailure):
    """No scene is flagged active."""

    def __init__(self):
        super().__init__("No active scene")


class InvalidDiceFormula(ValueError):
    """The dice formula contains unsupported characters or is too long."""
