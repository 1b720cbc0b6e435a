"""
Shared fixtures for the FoundryVTT layer tests.

- WORLD_PAYLOAD / snapshot: a small Middle-earth world
- FakeSocketServer: stands in for ``socketio.AsyncClient``; every client it
  creates answers ``call()`` from a shared responses table
- FakeFoundryHttp: ``httpx.MockTransport`` handler for /join and the REST API
"""

import asyncio
import copy
import json
from unittest.mock import patch

import httpx
import pytest
import socketio

from foundrybridge.config.settings import FoundrySettings
from foundrybridge.foundry.models import WorldSnapshot

JOIN_USERS = [
    {"_id": "userGamemaster1", "name": "Gamemaster"},
    {"_id": "userPlayer00001", "name": "Player"},
]

WORLD_PAYLOAD = {
    "world": {
        "id": "middle-earth",
        "title": "Middle-earth",
        "description": "The Third Age",
    },
    "system": {"id": "dnd5e", "version": "3.1.2"},
    "release": {"generation": 12, "version": "12.331"},
    "actors": [
        {
            "_id": "actorGandalf0001",
            "name": "Gandalf",
            "type": "npc",
            "img": "icons/gandalf.webp",
            "system": {
                "attributes": {"hp": {"value": 78, "max": 90, "temp": 5}, "ac": {"value": 15}},
                "details": {"level": 20, "biography": {"value": "<p>A wizard is never late.</p>"}},
                "abilities": {
                    "str": {"value": 11, "mod": 0},
                    "int": {"value": 20, "mod": 5, "save": 11},
                    "wis": {},
                },
            },
        },
        {
            "_id": "actorFrodo000001",
            "name": "Frodo Baggins",
            "type": "character",
            "system": {"attributes": {"hp": {"value": 12}}, "details": {"biography": "Ring-bearer"}},
        },
        {
            "_id": "actorSam0000001",
            "name": "Samwise Gamgee",
            "type": "character",
            "system": {},
        },
        {
            "_id": "actorOrc0000001",
            "name": "Orc Captain",
            "type": "NPC",
            "system": None,
        },
    ],
    "items": [
        {
            "_id": "itemSting000001",
            "name": "Sting",
            "type": "weapon",
            "system": {"rarity": "rare", "description": {"value": "Glows blue near orcs."}},
        },
        {
            "_id": "itemMithril0001",
            "name": "Mithril Shirt",
            "type": "equipment",
            "system": {"rarity": "veryRare"},
        },
        {
            "_id": "itemRope0000001",
            "name": "Elven Rope",
            "type": "loot",
            "system": {"rarity": "common"},
        },
    ],
    "scenes": [
        {
            "_id": "sceneShire00001",
            "name": "The Shire",
            "active": False,
            "navigation": True,
            "width": 4000,
            "height": 3000,
        },
        {
            "_id": "sceneMoria00001",
            "name": "Mines of Moria",
            "active": True,
            "navigation": True,
            "width": 6000,
            "height": 4000,
            "padding": 0.25,
            "globalLight": False,
            "darkness": 0.8,
            "flags": {"description": "Speak, friend, and enter."},
        },
    ],
    "journal": [
        {
            "_id": "journalLore0001",
            "name": "Lore of the Rings",
            "pages": [
                {"_id": "page1", "name": "The One Ring", "text": {"content": "Forged in Mount Doom."}},
                {"_id": "page2", "name": "Elven Rings", "text": {"content": None}},
            ],
        },
        {"_id": "journalNotes001", "name": "Session Notes", "pages": []},
    ],
    "combats": [
        {"_id": "combatOld000001", "name": "", "active": False, "round": 3, "combatants": []},
        {
            "_id": "combatBridge001",
            "name": "",
            "active": True,
            "round": 2,
            "turn": 1,
            "combatants": [
                {"_id": "cb1", "name": "Orc Captain", "initiative": 12, "actorId": "actorOrc0000001"},
                {"_id": "cb2", "name": "Gandalf", "initiative": None, "actorId": "actorGandalf0001"},
                {"_id": "cb3", "name": "Frodo Baggins", "initiative": 17.5, "actorId": "actorFrodo000001"},
                {"_id": "cb4", "name": "Balrog", "initiative": 12, "hidden": True},
            ],
        },
    ],
    "messages": [
        {"_id": f"message{n:08d}", "content": f"Message {n}", "timestamp": 1_700_000_000 + n}
        for n in range(25)
    ],
    "users": [
        {"_id": "userGamemaster1", "name": "Gamemaster", "role": 4},
        {"_id": "userPlayer00001", "name": "Player", "role": 1},
    ],
    "activeUsers": ["userGamemaster1"],
    "macros": [],
    "playlists": None,
    "tables": [],
    "folders": [{"_id": "folder000000001", "name": "Fellowship", "type": "Actor"}],
}

# Older servers send numeric message types and nulls for unset scalars
V11_WORLD_PAYLOAD = {
    "actors": [{"_id": "actorBilbo000001", "name": "Bilbo", "type": "character", "system": None}],
    "items": [],
    "scenes": [{"_id": "sceneShire000001", "name": "The Shire", "active": None, "navigation": None}],
    "journal": [{"_id": "journalRed000001", "name": "Red Book", "pages": None}],
    "combats": [
        {
            "_id": "combatParty00001",
            "name": "Birthday Party",
            "active": True,
            "round": None,
            "turn": None,
            "combatants": [
                {"_id": "cmbBilbo0000001", "name": "Bilbo", "initiative": None,
                 "defeated": None, "hidden": None, "actorId": "actorBilbo000001"},
            ],
        }
    ],
    "messages": [
        {"_id": "msgOoc0000000001", "type": 1, "content": "Happy birthday!", "speaker": None},
        {"_id": "msgRoll000000001", "type": 5, "content": "17", "timestamp": 1700000000000},
        {"_id": "msgWhisper000001", "type": 4, "content": None},
    ],
    "users": [{"_id": "userGamemaster1", "name": "Gamemaster", "role": None}],
    "activeUsers": ["userGamemaster1"],
    "world": {"id": "shire", "title": "The Shire"},
    "system": {"id": "dnd5e", "version": "2.4.1"},
}


@pytest.fixture
def world_payload():
    """A fresh copy of the test world payload, safe to mutate."""
    return copy.deepcopy(WORLD_PAYLOAD)


@pytest.fixture
def v11_world_payload():
    return copy.deepcopy(V11_WORLD_PAYLOAD)


@pytest.fixture
def snapshot(world_payload):
    return WorldSnapshot.model_validate(world_payload)


@pytest.fixture
def foundry_settings():
    """Socket.IO mode settings with fast timeouts and no retry delay."""
    return FoundrySettings(
        url="http://foundry.test:30000",
        username="Gamemaster",
        password="mellon",
        retry_attempts=2,
        retry_delay=0.0,
        join_timeout=1.0,
        world_timeout=1.0,
    )


# ---------------------------------------------------------------------------
# Socket.IO fake
# ---------------------------------------------------------------------------


class FakeSocketClient:
    """Minimal stand-in for ``socketio.AsyncClient``."""

    def __init__(self, server, **kwargs):
        self.server = server
        self.init_kwargs = kwargs
        self.handlers = {}
        self.connected = False
        self.url = None
        self.connect_kwargs = None
        self.emitted = []
        self.disconnect_calls = 0
        self._tasks = []

    def on(self, event, handler=None):
        self.handlers[event] = handler

    async def connect(self, url, **kwargs):
        self.url = url
        self.connect_kwargs = kwargs
        if self.server.connect_error is not None:
            raise self.server.connect_error
        self.connected = True
        if self.server.send_session and "session" in self.handlers:
            payload = self.server.session_payload
            self._tasks.append(asyncio.create_task(self.handlers["session"](payload)))

    async def call(self, event, data=None, namespace=None, timeout=60):
        self.emitted.append(event)
        if event not in self.server.responses:
            raise socketio.exceptions.TimeoutError()
        response = self.server.responses[event]
        if callable(response):
            response = response()
        return copy.deepcopy(response)

    async def disconnect(self):
        self.disconnect_calls += 1
        self.connected = False


class FakeSocketServer:
    """Factory patched over ``socketio.AsyncClient``; remembers every client."""

    def __init__(self):
        self.clients = []
        self.connect_error = None
        self.send_session = True
        self.session_payload = {"userId": "userGamemaster1"}
        self.responses = {
            "getJoinData": {"users": copy.deepcopy(JOIN_USERS)},
            "world": WORLD_PAYLOAD,
        }

    def __call__(self, **kwargs):
        client = FakeSocketClient(self, **kwargs)
        self.clients.append(client)
        return client


@pytest.fixture
def socket_server():
    server = FakeSocketServer()
    with patch("foundrybridge.foundry.realtime.socketio.AsyncClient", server):
        yield server


# ---------------------------------------------------------------------------
# HTTP fake
# ---------------------------------------------------------------------------


class FakeFoundryHttp:
    """Request handler for ``httpx.MockTransport`` mimicking a FoundryVTT server."""

    def __init__(self):
        self.requests = []
        self.cookie = "session=abc123token; Path=/; HttpOnly; SameSite=Strict"
        self.password = "mellon"
        self.join_response = None
        self.api_key = "rest-key"
        self.api_status = 200
        self.dice_status = 200
        self.dice_json = {"total": 9, "terms": [{"results": [{"result": 4}, {"result": 5}]}]}

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/join" and request.method == "GET":
            headers = [("set-cookie", self.cookie)] if self.cookie else []
            return httpx.Response(200, headers=headers, text="<html></html>")

        if path == "/join" and request.method == "POST":
            if self.join_response is not None:
                return self.join_response
            body = json.loads(request.content)
            if body.get("password") != self.password:
                return httpx.Response(
                    401, json={"request": "join", "status": "failed", "message": "Incorrect password"}
                )
            return httpx.Response(
                200, json={"request": "join", "status": "success", "redirect": "/game"}
            )

        if request.headers.get("x-api-key") != self.api_key:
            return httpx.Response(401, json={"error": "Invalid API key"})
        if path == "/api/status":
            return httpx.Response(self.api_status, json={"status": "ok"})
        if path == "/api/dice/roll":
            return httpx.Response(self.dice_status, json=self.dice_json)
        return httpx.Response(404)

    def posted_join_bodies(self) -> list[dict]:
        return [
            json.loads(r.content) for r in self.requests
            if r.url.path == "/join" and r.method == "POST"
        ]


@pytest.fixture
def foundry_http():
    return FakeFoundryHttp()
