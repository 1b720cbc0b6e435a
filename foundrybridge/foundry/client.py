"""
FoundryVTT client: connection lifecycle plus the read interface over the cache.

Two connection modes, picked from settings:

- Socket.IO mode (username/user_id + password): runs the join flow, opens an
  authenticated Socket.IO channel, loads the full world with one ``world``
  request and serves every query from that snapshot.
- REST API mode (api_key): only checks that ``/api/status`` answers. No
  snapshot is loaded, so cache queries return empty results.

State machine: DISCONNECTED -> CONNECTING -> CONNECTED -> DISCONNECTED.
There is no reconnecting state. After a dropped connection, call
disconnect() and then connect(), which builds a new channel.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any

import httpx
from pydantic import ValidationError

from foundrybridge import __version__
from foundrybridge.config.settings import FoundrySettings, SearchSettings
from foundrybridge.foundry import queries
from foundrybridge.foundry.auth import Authenticator
from foundrybridge.foundry.cache import WorldCache
from foundrybridge.foundry.dice import roll_locally, validate_formula
from foundrybridge.foundry.errors import (
    AuthenticationRejected,
    ConnectTimeout,
    FoundryError,
    InvalidConfig,
    MalformedResponse,
    MissingCredentials,
    NotConnected,
    RefreshTimeout,
)
from foundrybridge.foundry.http import RetryPolicy, call_with_retries
from foundrybridge.foundry.models import (
    ActorSummary,
    ChatMessage,
    Collection,
    CombatState,
    DiceRoll,
    ItemSummary,
    Journal,
    SceneSummary,
    SearchPage,
    UserRoster,
    WorldDocument,
    WorldInfo,
    WorldSearchResult,
    WorldSnapshot,
)
from foundrybridge.foundry.realtime import RealtimeChannel

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def validate_base_url(url: str) -> str:
    """
    Check that ``url`` is an absolute http(s) URL with a host.

    Returns:
        The URL without surrounding whitespace or a trailing slash

    Raises:
        InvalidConfig: If the URL is empty or malformed
    """
    if not url or not url.strip():
        raise InvalidConfig("Base URL is required and cannot be empty", phase="config")
    url = url.strip()
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as e:
        raise InvalidConfig(f"Invalid base URL: {url}", phase="config", cause=e) from e
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise InvalidConfig(f"Invalid base URL: {url}", phase="config")
    return url.rstrip("/")


class FoundryClient:
    """
    Connection manager and query interface for one FoundryVTT world.

    The client is the only writer of its channel and snapshot. Lifecycle
    calls (connect/refresh/disconnect) are serialized; query methods never
    wait on them and always read one complete snapshot.

    Args:
        settings: Server URL, credentials, timeouts and retry policy
        search: Result size limits (default: SearchSettings())
        transport: Optional httpx transport for all HTTP calls (tests)

    Raises:
        InvalidConfig: If the base URL is empty or malformed. Nothing touches
            the network before this check.

    Example:
        >>> async with FoundryClient(settings.foundry) as client:
        ...     page = client.search(Collection.ACTORS, query="gandalf")
        ...     print(page.total, [a.name for a in page.results])
    """

    def __init__(
        self,
        settings: FoundrySettings,
        search: SearchSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = validate_base_url(settings.url)
        self._settings = settings
        self._search = search or SearchSettings()
        self._transport = transport
        self._retry_policy = RetryPolicy(
            retry_attempts=settings.retry_attempts,
            base_delay=settings.retry_delay,
        )

        self._cache = WorldCache()
        self._channel: RealtimeChannel | None = None
        self._http: httpx.AsyncClient | None = None
        self._user_id: str | None = None
        self._state = ConnectionState.DISCONNECTED
        self._lock = asyncio.Lock()

        logger.info(f"FoundryVTT client initialized ({self.mode} mode)")

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def mode(self) -> str:
        return "REST API" if self._settings.api_key else "Socket.IO"

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def user_id(self) -> str | None:
        """Document _id of the joined user while connected in Socket.IO mode."""
        return self._user_id

    @property
    def snapshot(self) -> WorldSnapshot | None:
        return self._cache.snapshot

    def is_connected(self) -> bool:
        if self._state is not ConnectionState.CONNECTED:
            return False
        return self._channel is None or self._channel.connected

    def has_world_data(self) -> bool:
        return self._cache.is_loaded

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """
        Connect to the server and, in Socket.IO mode, load the world.

        Calling connect() while connected does nothing.

        Raises:
            MissingCredentials: If neither api_key nor user + password is set
            HandshakeError: If any step of the join flow fails
            ConnectTimeout: If the world payload does not arrive in time
            MalformedResponse: If the world payload has the wrong shape
            TransportError: On network failures
        """
        async with self._lock:
            if self._state is ConnectionState.CONNECTED:
                logger.debug("connect() called while already connected")
                return

            self._state = ConnectionState.CONNECTING
            try:
                if self._settings.api_key:
                    await self._connect_rest()
                else:
                    await self._connect_socket()
            except BaseException:
                await self._teardown()
                raise
            self._state = ConnectionState.CONNECTED

    async def _connect_rest(self) -> None:
        try:
            await self._request("GET", "/api/status")
        except FoundryError as e:
            logger.error(f"Failed to connect via REST API module: {e}")
            raise
        logger.info("Connected to FoundryVTT via REST API module")

    async def _connect_socket(self) -> None:
        user = self._settings.user_id or self._settings.username
        if not user or not self._settings.password:
            raise MissingCredentials(
                "Socket.IO mode requires username/user_id and password. "
                "Set FOUNDRY_USERNAME + FOUNDRY_PASSWORD or FOUNDRY_USER_ID + FOUNDRY_PASSWORD.",
                phase="config",
            )

        authenticator = Authenticator(
            self.base_url,
            socket_path=self._settings.socket_path,
            join_timeout=self._settings.join_timeout,
            request_timeout=self._settings.timeout,
            user_id_pattern=self._settings.user_id_pattern,
            transport=self._transport,
        )
        session = await authenticator.authenticate(user, self._settings.password)

        timeout = self._settings.world_timeout
        self._channel = RealtimeChannel(
            self.base_url, session.token, socket_path=self._settings.socket_path
        )
        try:
            async with asyncio.timeout(timeout):
                session_data = await self._channel.open(timeout=timeout)
                if not isinstance(session_data, dict) or not session_data.get("userId"):
                    raise AuthenticationRejected(
                        "Authentication failed: session event returned no userId",
                        phase="session",
                    )
                payload = await self._channel.request("world", timeout=timeout)
        except TimeoutError as e:
            raise ConnectTimeout(
                f"Timeout waiting for world data ({timeout:g}s)", phase="world", cause=e
            ) from e

        snapshot = self._parse_world(payload)
        self._user_id = session_data["userId"]
        self._cache.replace(snapshot)
        logger.info(
            f"Connected to FoundryVTT via Socket.IO "
            f"(actors={len(snapshot.actors)}, scenes={len(snapshot.scenes)}, "
            f"items={len(snapshot.items)})"
        )

    async def refresh(self) -> None:
        """
        Fetch the world again and swap it in as a whole.

        Readers keep seeing the previous snapshot until the new one is fully
        received and parsed; on failure the previous snapshot stays.

        Raises:
            NotConnected: If there is no open Socket.IO channel
            RefreshTimeout: If the world payload does not arrive in time
            MalformedResponse: If the world payload has the wrong shape
        """
        async with self._lock:
            channel = self._channel
            if self._state is not ConnectionState.CONNECTED or channel is None or not channel.connected:
                raise NotConnected("Not connected, cannot refresh world data", phase="refresh")

            timeout = self._settings.world_timeout
            try:
                payload = await channel.request("world", timeout=timeout)
            except TimeoutError as e:
                raise RefreshTimeout(
                    f"Refresh timeout ({timeout:g}s)", phase="refresh", cause=e
                ) from e

            snapshot = self._parse_world(payload)
            self._cache.replace(snapshot)
            logger.info(
                f"World data refreshed (actors={len(snapshot.actors)}, items={len(snapshot.items)})"
            )

    async def disconnect(self) -> None:
        """Close the connection and drop the snapshot. Safe to call repeatedly."""
        async with self._lock:
            was_disconnected = (
                self._state is ConnectionState.DISCONNECTED
                and self._channel is None
                and self._http is None
            )
            await self._teardown()
            if not was_disconnected:
                logger.info("FoundryVTT client disconnected")

    async def _teardown(self) -> None:
        channel, self._channel = self._channel, None
        http, self._http = self._http, None
        self._cache.clear()
        self._user_id = None
        self._state = ConnectionState.DISCONNECTED
        if channel is not None:
            await channel.close()
        if http is not None:
            await http.aclose()

    async def __aenter__(self) -> FoundryClient:
        await self.connect()
        return self

    async def __aexit__(self, *_args) -> None:
        await self.disconnect()
        return None  # Don't suppress exceptions

    @staticmethod
    def _parse_world(payload: Any) -> WorldSnapshot:
        if not isinstance(payload, dict):
            raise MalformedResponse(
                f"World payload is {type(payload).__name__}, expected an object",
                phase="world",
            )
        try:
            return WorldSnapshot.model_validate(payload)
        except ValidationError as e:
            raise MalformedResponse(f"Invalid world payload: {e}", phase="world", cause=e) from e

    # ------------------------------------------------------------------
    # HTTP (REST API module)
    # ------------------------------------------------------------------

    def _http_client(self) -> httpx.AsyncClient:
        if self._http is None:
            headers = {"User-Agent": f"FoundryBridge/{__version__}"}
            if self._settings.api_key:
                headers["x-api-key"] = self._settings.api_key
            self._http = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self._settings.timeout,
                headers=headers,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._http

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        http = self._http_client()
        return await call_with_retries(
            lambda: http.request(method, path, **kwargs),
            policy=self._retry_policy,
        )

    # ------------------------------------------------------------------
    # Queries (synchronous, served from the cached snapshot)
    # ------------------------------------------------------------------

    def _limits(self) -> dict[str, int]:
        return {
            "default_limit": self._search.default_limit,
            "max_limit": self._search.max_limit,
        }

    def search(
        self,
        collection: Collection | str,
        query: str | None = None,
        type: str | None = None,
        limit: int | None = None,
    ) -> SearchPage[WorldDocument]:
        return queries.search(self._cache.snapshot, collection, query, type, limit, **self._limits())

    def search_actors(
        self, query: str | None = None, type: str | None = None, limit: int | None = None
    ) -> SearchPage[ActorSummary]:
        return queries.search_actors(self._cache.snapshot, query, type, limit, **self._limits())

    def search_items(
        self,
        query: str | None = None,
        type: str | None = None,
        rarity: str | None = None,
        limit: int | None = None,
    ) -> SearchPage[ItemSummary]:
        return queries.search_items(
            self._cache.snapshot, query, type, rarity, limit, **self._limits()
        )

    def search_scenes(self, query: str | None = None, limit: int | None = None) -> SearchPage[SceneSummary]:
        return queries.search_scenes(self._cache.snapshot, query, limit, **self._limits())

    def search_journals(self, query: str | None = None, limit: int | None = None) -> SearchPage[Journal]:
        return queries.search_journals(self._cache.snapshot, query, limit, **self._limits())

    def search_world(self, query: str, limit: int | None = None) -> WorldSearchResult:
        return queries.search_world(self._cache.snapshot, query, limit, **self._limits())

    def get(self, collection: Collection | str, document_id: str) -> WorldDocument:
        return queries.get(self._cache.snapshot, collection, document_id)

    def get_actor(self, actor_id: str) -> ActorSummary:
        return queries.get_actor(self._cache.snapshot, actor_id)

    def get_item(self, item_id: str) -> ItemSummary:
        return queries.get_item(self._cache.snapshot, item_id)

    def get_scene(self, scene_id: str) -> SceneSummary:
        return queries.get_scene(self._cache.snapshot, scene_id)

    def get_active_scene(self) -> SceneSummary:
        return queries.active_scene(self._cache.snapshot)

    def get_active_combat(self) -> CombatState:
        return queries.active_combat(self._cache.snapshot)

    def summary(self) -> dict[str, int]:
        return queries.summary(self._cache.snapshot)

    def world_info(self) -> WorldInfo:
        return queries.world_info(self._cache.snapshot)

    def recent_messages(self, limit: int | None = None) -> list[ChatMessage]:
        return queries.recent_messages(
            self._cache.snapshot, self._search.chat_limit if limit is None else limit
        )

    def users(self) -> UserRoster:
        return queries.user_roster(self._cache.snapshot)

    # ------------------------------------------------------------------
    # Dice
    # ------------------------------------------------------------------

    async def roll_dice(self, formula: str, reason: str | None = None) -> DiceRoll:
        """
        Roll a dice formula.

        In REST API mode the server rolls; if that fails for any transport or
        response reason, the roll falls back to a local one.

        Raises:
            InvalidDiceFormula: If the formula is invalid
        """
        validate_formula(formula)

        if self._settings.api_key:
            try:
                response = await self._request(
                    "POST", "/api/dice/roll", json={"formula": formula, "flavor": reason}
                )
                return _dice_roll_from_response(formula, reason, response.json())
            except (FoundryError, ValueError, KeyError, TypeError) as e:
                logger.warning(f"Server dice roll failed ({e}); rolling locally")

        return roll_locally(formula, reason)


def _dice_roll_from_response(formula: str, reason: str | None, data: Any) -> DiceRoll:
    if not isinstance(data, dict) or "total" not in data:
        raise ValueError("dice roll response has no total")

    parts = []
    for term in data.get("terms") or []:
        results = term.get("results") if isinstance(term, dict) else None
        if results:
            parts.append(", ".join(str(r.get("result", r)) if isinstance(r, dict) else str(r) for r in results))

    return DiceRoll(
        formula=formula,
        total=data["total"],
        breakdown=" + ".join(parts) or formula,
        reason=reason,
    )
