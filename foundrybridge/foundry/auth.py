"""
FoundryVTT join flow.

Turns a user name (or user document _id) and password into an authenticated
session:

1. GET /join                   -> ``session`` cookie
2. Socket.IO + getJoinData     -> user document _id (skipped when the caller
                                  already passed an _id)
3. POST /join (JSON)           -> the server binds the session to the user
4. return Session(token, user_id); the caller opens the long-lived Socket.IO
   connection with it

Each step fails with its own HandshakeError subclass. Nothing is cached
between calls; every authenticate() starts from a fresh cookie.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any

import httpx

from foundrybridge.foundry.errors import (
    AuthenticationRejected,
    JoinDataTimeout,
    MalformedResponse,
    NoSessionCookie,
    RequestFailed,
    UserNotFound,
)
from foundrybridge.foundry.models import Session
from foundrybridge.foundry.realtime import RealtimeChannel

logger = logging.getLogger(__name__)

JOIN_PATH = "/join"
AUTHENTICATED_REDIRECT = "/game"
DEFAULT_USER_ID_PATTERN = r"^[a-zA-Z0-9]{16}$"

_SESSION_COOKIE = re.compile(r"session=([^;]+)")


class Authenticator:
    """
    Runs the four-step FoundryVTT join flow.

    Args:
        base_url: Server base URL
        socket_path: Socket.IO endpoint path, used for the user lookup
        join_timeout: Seconds allowed for the getJoinData lookup
        request_timeout: Timeout for each HTTP request
        user_id_pattern: Regex matching values that are already a user _id
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``)
    """

    def __init__(
        self,
        base_url: str,
        socket_path: str = "/socket.io/",
        join_timeout: float = 10.0,
        request_timeout: float = 10.0,
        user_id_pattern: str = DEFAULT_USER_ID_PATTERN,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.socket_path = socket_path
        self.join_timeout = join_timeout
        self.request_timeout = request_timeout
        self.user_id_pattern = re.compile(user_id_pattern)
        self._transport = transport

    async def authenticate(self, user: str, password: str) -> Session:
        """
        Join the world as ``user``.

        Args:
            user: Display name (matched case-insensitively) or user document _id
            password: The user's password

        Returns:
            Session bound to the resolved user

        Raises:
            NoSessionCookie: If GET /join sets no session cookie
            UserNotFound: If no joinable user has that name
            JoinDataTimeout: If the user lookup gets no answer in time
            AuthenticationRejected: If POST /join does not report success
            RealtimeConnectionError: If the lookup connection is refused
            RequestFailed: If an HTTP request cannot be completed
        """
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.request_timeout,
            follow_redirects=False,
            transport=self._transport,
        ) as http:
            # Step 1: session cookie
            token = await self._get_session_cookie(http)

            # Step 2: user document _id
            user_id = await self._resolve_user_id(user, token)

            # Step 3: bind the session to the user
            await self._submit_join(http, token, user_id, password)

        # Step 4
        logger.info(f"FoundryVTT authentication successful (user {user_id})")
        return Session(token=token, user_id=user_id)

    async def _get_session_cookie(self, http: httpx.AsyncClient) -> str:
        try:
            response = await http.get(JOIN_PATH)
        except httpx.HTTPError as e:
            raise RequestFailed(f"GET {JOIN_PATH} failed: {e}", cause=e) from e

        cookies = response.headers.get_list("set-cookie")
        if not cookies:
            raise NoSessionCookie(f"No session cookie returned from {JOIN_PATH}")

        match = _SESSION_COOKIE.search(" ".join(cookies))
        if match is None:
            raise NoSessionCookie("Could not extract session cookie from response")

        logger.debug("Session cookie obtained")
        return match.group(1)

    async def _resolve_user_id(self, user: str, token: str) -> str:
        if self.user_id_pattern.fullmatch(user):
            logger.debug("User identifier is already a document _id")
            return user

        logger.debug(f"Resolving display name {user!r} to a document _id")
        channel = RealtimeChannel(self.base_url, token, socket_path=self.socket_path)
        try:
            async with asyncio.timeout(self.join_timeout):
                await channel.open(timeout=self.join_timeout)
                join_data = await channel.request("getJoinData", timeout=self.join_timeout)
        except TimeoutError as e:
            raise JoinDataTimeout(self.join_timeout) from e
        finally:
            await channel.close()

        users = join_data.get("users") if isinstance(join_data, dict) else None
        if not isinstance(users, list):
            raise MalformedResponse("getJoinData returned no users", phase="resolve_user")

        wanted = user.lower()
        for entry in users:
            if isinstance(entry, dict) and str(entry.get("name", "")).lower() == wanted:
                user_id = entry.get("_id")
                if not isinstance(user_id, str) or not user_id:
                    raise MalformedResponse(
                        f"getJoinData entry for {user!r} has no _id", phase="resolve_user"
                    )
                logger.debug(f"Resolved {user!r} to document _id {user_id}")
                return user_id

        available = [str(entry.get("name")) for entry in users if isinstance(entry, dict)]
        raise UserNotFound(user, available)

    async def _submit_join(
        self,
        http: httpx.AsyncClient,
        token: str,
        user_id: str,
        password: str,
    ) -> None:
        try:
            response = await http.post(
                JOIN_PATH,
                json={"action": "join", "userid": user_id, "password": password},
                headers={"Cookie": f"session={token}"},
            )
        except httpx.HTTPError as e:
            raise RequestFailed(f"POST {JOIN_PATH} failed: {e}", cause=e) from e

        if response.is_redirect:
            if response.headers.get("location", "").rstrip("/").endswith(AUTHENTICATED_REDIRECT):
                return
            raise AuthenticationRejected(
                f"FoundryVTT authentication failed: redirected to "
                f"{response.headers.get('location')!r}",
                phase="join",
            )

        data = _json_or_empty(response)
        if data.get("status") == "success" or data.get("redirect") == AUTHENTICATED_REDIRECT:
            return

        message = data.get("message") or data.get("error") or "Unknown error"
        raise AuthenticationRejected(
            f"FoundryVTT authentication failed: {message}", phase="join"
        )


def _json_or_empty(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
