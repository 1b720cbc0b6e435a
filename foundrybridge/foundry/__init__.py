"""
FoundryVTT connection layer.

Authenticates against a FoundryVTT server, keeps the world snapshot in memory
and answers read queries from it.
"""

# Public API exports
from foundrybridge.foundry.cache import WorldCache
from foundrybridge.foundry.client import ConnectionState, FoundryClient
from foundrybridge.foundry.dice import roll_locally, validate_formula
from foundrybridge.foundry.errors import (
    AuthenticationRejected,
    ConfigurationError,
    ConnectTimeout,
    FoundryError,
    HandshakeError,
    InvalidConfig,
    InvalidDiceFormula,
    JoinDataTimeout,
    LookupFailure,
    MalformedResponse,
    MissingCredentials,
    NoActiveScene,
    NoSessionCookie,
    NotConnected,
    NotFound,
    RealtimeConnectionError,
    RefreshTimeout,
    RequestFailed,
    StateError,
    TransportError,
    UserNotFound,
)
from foundrybridge.foundry.models import (
    ActorSummary,
    ChatMessage,
    Collection,
    CombatState,
    DiceRoll,
    ItemSummary,
    SceneSummary,
    SearchPage,
    Session,
    UserRoster,
    WorldDocument,
    WorldInfo,
    WorldSearchResult,
    WorldSnapshot,
)

__all__ = [
    "ActorSummary",
    "AuthenticationRejected",
    "ChatMessage",
    "Collection",
    "CombatState",
    "ConfigurationError",
    "ConnectTimeout",
    "ConnectionState",
    "DiceRoll",
    "FoundryClient",
    "FoundryError",
    "HandshakeError",
    "InvalidConfig",
    "InvalidDiceFormula",
    "ItemSummary",
    "JoinDataTimeout",
    "LookupFailure",
    "MalformedResponse",
    "MissingCredentials",
    "NoActiveScene",
    "NoSessionCookie",
    "NotConnected",
    "NotFound",
    "RealtimeConnectionError",
    "RefreshTimeout",
    "RequestFailed",
    "SceneSummary",
    "SearchPage",
    "Session",
    "StateError",
    "TransportError",
    "UserNotFound",
    "UserRoster",
    "WorldCache",
    "WorldDocument",
    "WorldInfo",
    "WorldSearchResult",
    "WorldSnapshot",
    "roll_locally",
    "validate_formula",
]
