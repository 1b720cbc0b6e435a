"""
Data structures for FoundryVTT world data.

This module defines:
- Session: the token + user id produced by the join flow
- WorldDocument and its subclasses (Actor, Item, Scene, Journal, Combat, ...):
  raw documents as sent by the server, with the game-system data kept as an
  open mapping under ``system``
- WorldSnapshot: the full world payload, replaced as a whole on refresh
- ActorSummary / ItemSummary / SceneSummary: the stable, normalized subset of
  a document that callers can rely on regardless of game system
- SearchPage, WorldSearchResult, CombatState, WorldInfo, UserRoster, DiceRoll:
  query results
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from foundrybridge.foundry.fields import (
    extract_number,
    extract_record,
    extract_string,
    is_record,
)


def _lax_string(value: Any) -> Any:
    """None becomes "", numbers become their string form (v11 chat types are ints)."""
    if value is None:
        return ""
    if isinstance(value, (int, float)):
        return str(value)
    return value


class Collection(str, Enum):
    """Named collections of a world snapshot."""

    ACTORS = "actors"
    ITEMS = "items"
    SCENES = "scenes"
    JOURNALS = "journals"
    COMBATS = "combats"
    MESSAGES = "messages"
    USERS = "users"
    MACROS = "macros"
    PLAYLISTS = "playlists"
    TABLES = "tables"
    FOLDERS = "folders"


class Session(BaseModel):
    """Authenticated session returned by the join flow. Never persisted."""

    token: str = Field(min_length=1, repr=False, description="Value of the session cookie")
    user_id: str = Field(min_length=1, description="Document _id of the joined user")

    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Raw documents
# ---------------------------------------------------------------------------


class WorldDocument(BaseModel):
    """
    One record of a world collection.

    Only the fields every document shares are declared. Anything else the
    server sends is kept as an extra field, and game-system data stays an
    untyped mapping under ``system``; use the helpers in
    ``foundrybridge.foundry.fields`` to read it.
    """

    id: str = Field(alias="_id", min_length=1, description="Unique id within the collection")
    name: str = Field(default="", description="Display name")
    type: str = Field(default="", description="Type discriminator, e.g. 'character', 'weapon'")
    img: str | None = Field(default=None, description="Image path")
    system: dict[str, Any] = Field(default_factory=dict, description="Game-system data")
    flags: dict[str, Any] = Field(default_factory=dict, description="Module flags")

    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    @field_validator("name", "type", mode="before")
    @classmethod
    def _coerce_strings(cls, value: Any) -> Any:
        return _lax_string(value)

    @field_validator("system", "flags", mode="before")
    @classmethod
    def _none_to_empty_dict(cls, value: Any) -> Any:
        return {} if value is None else value


class Actor(WorldDocument):
    """A character, NPC, vehicle, etc."""


class Item(WorldDocument):
    """A weapon, spell, feature, piece of loot, etc."""


class Scene(WorldDocument):
    """A map/scene."""

    active: bool = False
    navigation: bool = False
    width: int | float | None = None
    height: int | float | None = None
    padding: float | None = None
    global_light: bool | None = Field(default=None, alias="globalLight")
    darkness: float | None = None

    @field_validator("active", "navigation", mode="before")
    @classmethod
    def _none_to_false(cls, value: Any) -> Any:
        return False if value is None else value


class JournalPageText(BaseModel):
    content: str | None = None

    model_config = ConfigDict(extra="allow", frozen=True)


class JournalPage(BaseModel):
    """A page inside a journal entry."""

    id: str | None = Field(default=None, alias="_id")
    name: str = ""
    type: str = ""
    text: JournalPageText | None = None

    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    @field_validator("name", "type", mode="before")
    @classmethod
    def _coerce_strings(cls, value: Any) -> Any:
        return _lax_string(value)

    @property
    def content(self) -> str:
        """Page text content, empty when the page has none."""
        if self.text is None or self.text.content is None:
            return ""
        return self.text.content


class Journal(WorldDocument):
    """A journal entry made of pages."""

    pages: list[JournalPage] = Field(default_factory=list)

    @field_validator("pages", mode="before")
    @classmethod
    def _none_pages(cls, value: Any) -> Any:
        return [] if value is None else value


class Combatant(BaseModel):
    """
    One participant in a combat encounter.

    ``actor_id`` is only a lookup key into the actors collection; the
    combatant does not own the actor.
    """

    id: str | None = Field(default=None, alias="_id")
    name: str = ""
    initiative: int | float | None = None
    defeated: bool = False
    hidden: bool = False
    actor_id: str | None = Field(default=None, alias="actorId")
    token_id: str | None = Field(default=None, alias="tokenId")

    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    @field_validator("defeated", "hidden", mode="before")
    @classmethod
    def _none_to_false(cls, value: Any) -> Any:
        return False if value is None else value

    @field_validator("name", mode="before")
    @classmethod
    def _coerce_strings(cls, value: Any) -> Any:
        return _lax_string(value)


class Combat(WorldDocument):
    """A combat encounter."""

    active: bool = False
    round: int = 0
    turn: int | None = None
    combatants: list[Combatant] = Field(default_factory=list)

    @field_validator("active", mode="before")
    @classmethod
    def _none_to_false(cls, value: Any) -> Any:
        return False if value is None else value

    @field_validator("round", mode="before")
    @classmethod
    def _none_round(cls, value: Any) -> Any:
        # Combats that never started send null
        return 0 if value is None else value

    @field_validator("combatants", mode="before")
    @classmethod
    def _none_combatants(cls, value: Any) -> Any:
        return [] if value is None else value


class User(WorldDocument):
    """A user account of the world."""

    role: int = 0

    @field_validator("role", mode="before")
    @classmethod
    def _none_role(cls, value: Any) -> Any:
        return 0 if value is None else value


class ChatMessage(WorldDocument):
    """A chat log entry."""

    content: str = ""
    timestamp: int | float | None = None
    speaker: dict[str, Any] = Field(default_factory=dict)

    @field_validator("content", mode="before")
    @classmethod
    def _none_content(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("speaker", mode="before")
    @classmethod
    def _none_speaker(cls, value: Any) -> Any:
        return {} if value is None else value


# ---------------------------------------------------------------------------
# World snapshot
# ---------------------------------------------------------------------------


class WorldSnapshot(BaseModel):
    """
    The full world payload returned by the server's ``world`` request.

    A snapshot is never modified after it is built. Refreshing the client
    builds a new snapshot and swaps it in as a whole.

    Raises (at construction):
        ValidationError: If a collection is not a list, a document has no
            ``_id``, or two documents of one collection share an ``_id``
    """

    actors: list[Actor] = Field(default_factory=list)
    items: list[Item] = Field(default_factory=list)
    scenes: list[Scene] = Field(default_factory=list)
    journals: list[Journal] = Field(default_factory=list, alias="journal")
    combats: list[Combat] = Field(default_factory=list)
    messages: list[ChatMessage] = Field(default_factory=list)
    users: list[User] = Field(default_factory=list)
    macros: list[WorldDocument] = Field(default_factory=list)
    playlists: list[WorldDocument] = Field(default_factory=list)
    tables: list[WorldDocument] = Field(default_factory=list)
    folders: list[WorldDocument] = Field(default_factory=list)
    active_users: list[str] = Field(default_factory=list, alias="activeUsers")

    # Scalar metadata blocks
    world: dict[str, Any] = Field(default_factory=dict)
    system: dict[str, Any] = Field(default_factory=dict)
    release: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    @model_validator(mode="before")
    @classmethod
    def _drop_null_collections(cls, data: Any) -> Any:
        # The server sends null for collections a world has never used
        if not is_record(data):
            return data
        return {key: value for key, value in data.items() if value is not None}

    @model_validator(mode="after")
    def _check_unique_ids(self) -> WorldSnapshot:
        for collection in Collection:
            seen: set[str] = set()
            for document in self.collection(collection):
                if document.id in seen:
                    raise ValueError(
                        f"duplicate _id {document.id!r} in {collection.value}"
                    )
                seen.add(document.id)
        return self

    def collection(self, name: Collection | str) -> list[WorldDocument]:
        """Return the documents of a collection by name."""
        return getattr(self, Collection(name).value)

    def counts(self) -> dict[str, int]:
        """Element count of every collection, keyed by collection name."""
        return {collection.value: len(self.collection(collection)) for collection in Collection}


# ---------------------------------------------------------------------------
# Normalized views
# ---------------------------------------------------------------------------


class HitPoints(BaseModel):
    value: int | float = 0
    max: int | float = 0
    temp: int | float | None = None


class AbilityScore(BaseModel):
    value: int | float = 10
    mod: int | float = 0
    save: int | float | None = None


class ActorSummary(BaseModel):
    """
    Game-system independent view of an actor.

    Only fields found at the usual dnd5e-style paths are filled in:
    ``attributes.hp``, ``attributes.ac.value``, ``details.level``,
    ``abilities.<key>`` and ``details.biography``.
    """

    id: str
    name: str
    type: str
    img: str | None = None
    hp: HitPoints | None = None
    ac: int | float | None = None
    level: int | float | None = None
    abilities: dict[str, AbilityScore] | None = None
    biography: str | None = None

    @classmethod
    def from_document(cls, actor: WorldDocument) -> ActorSummary:
        system = actor.system

        hp = None
        hp_data = extract_record(system, "attributes", "hp")
        if hp_data is not None:
            hp = HitPoints(
                value=extract_number(hp_data, "value") or 0,
                max=extract_number(hp_data, "max") or 0,
                temp=extract_number(hp_data, "temp"),
            )

        abilities = None
        abilities_data = extract_record(system, "abilities")
        if abilities_data is not None:
            abilities = {}
            for key, entry in abilities_data.items():
                if not is_record(entry):
                    continue
                value = extract_number(entry, "value")
                mod = extract_number(entry, "mod")
                abilities[key] = AbilityScore(
                    value=10 if value is None else value,
                    mod=0 if mod is None else mod,
                    save=extract_number(entry, "save"),
                )

        biography = extract_string(system, "details", "biography", "value") or extract_string(
            system, "details", "biography"
        )

        return cls(
            id=actor.id,
            name=actor.name,
            type=actor.type,
            img=actor.img or None,
            hp=hp,
            ac=extract_number(system, "attributes", "ac", "value"),
            level=extract_number(system, "details", "level"),
            abilities=abilities,
            biography=biography or None,
        )


class ItemSummary(BaseModel):
    """Game-system independent view of an item."""

    id: str
    name: str
    type: str
    img: str | None = None
    description: str | None = None
    rarity: str | None = None

    @classmethod
    def from_document(cls, item: WorldDocument) -> ItemSummary:
        return cls(
            id=item.id,
            name=item.name,
            type=item.type,
            img=item.img or None,
            description=extract_string(item.system, "description", "value") or None,
            rarity=extract_string(item.system, "rarity") or None,
        )


class SceneSummary(BaseModel):
    """View of a scene with its state and dimensions."""

    id: str
    name: str
    active: bool
    navigation: bool
    width: int | float | None = None
    height: int | float | None = None
    padding: float | None = None
    global_light: bool | None = None
    darkness: float | None = None
    img: str | None = None
    description: str | None = None

    @classmethod
    def from_document(cls, scene: Scene) -> SceneSummary:
        return cls(
            id=scene.id,
            name=scene.name,
            active=scene.active,
            navigation=scene.navigation,
            width=scene.width,
            height=scene.height,
            padding=scene.padding,
            global_light=scene.global_light,
            darkness=scene.darkness,
            img=scene.img or None,
            description=extract_string(scene.flags, "description"),
        )


# ---------------------------------------------------------------------------
# Query results
# ---------------------------------------------------------------------------

ResultT = TypeVar("ResultT")


class SearchPage(BaseModel, Generic[ResultT]):
    """
    One page of search results.

    ``total`` counts every match, so callers can tell when ``results`` was
    truncated to ``limit``.
    """

    results: list[ResultT] = Field(default_factory=list)
    total: int = Field(default=0, ge=0, description="Number of matches before truncation")
    limit: int = Field(gt=0, description="Effective limit applied to results")
    page: int = Field(default=1, ge=1)

    @property
    def has_more(self) -> bool:
        return self.total > len(self.results)


class WorldSearchResult(BaseModel):
    """Matches of one query across the searchable collections."""

    query: str
    actors: SearchPage
    items: SearchPage
    scenes: SearchPage
    journals: SearchPage

    @property
    def total(self) -> int:
        return self.actors.total + self.items.total + self.scenes.total + self.journals.total


class CombatState(BaseModel):
    """
    The active combat encounter, or the explicit "no combat" state.

    Combatants are ordered by initiative, highest first, with combatants
    that have not rolled placed last.
    """

    active: bool = False
    combat_id: str | None = None
    round: int = 0
    turn: int | None = None
    combatants: list[Combatant] = Field(default_factory=list)

    @classmethod
    def inactive(cls) -> CombatState:
        return cls()


class WorldInfo(BaseModel):
    """World title, game system and version metadata."""

    id: str = "unknown"
    title: str = "Not connected"
    description: str = ""
    system: str = "unknown"
    system_version: str = "unknown"
    core_version: str = "unknown"


class UserRoster(BaseModel):
    """World users and which of them are currently online."""

    users: list[User] = Field(default_factory=list)
    active_user_ids: list[str] = Field(default_factory=list)

    def is_active(self, user: User) -> bool:
        return user.id in self.active_user_ids


class DiceRoll(BaseModel):
    """Result of rolling a dice formula."""

    formula: str
    total: int | float
    breakdown: str
    reason: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
