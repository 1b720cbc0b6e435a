"""
Read-only queries over a world snapshot.

Every function here is pure: it takes a snapshot (or None when the client is
not connected) and returns a new value without touching the network or the
snapshot. A missing snapshot behaves like an empty world: searches come back
empty, summaries are empty, id lookups raise NotFound.

Matching rules:
- name queries are case-insensitive substring matches ("" matches everything)
- type and rarity filters are case-insensitive equality, ANDed with the name
- results keep collection order and are truncated to the effective limit,
  with the full match count reported as ``total``
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Sequence, TypeVar

from foundrybridge.foundry.errors import NoActiveScene, NotFound
from foundrybridge.foundry.fields import extract_string
from foundrybridge.foundry.models import (
    ActorSummary,
    ChatMessage,
    Collection,
    Combatant,
    CombatState,
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

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10
MAX_LIMIT = 50

DocT = TypeVar("DocT", bound=WorldDocument)
ResultT = TypeVar("ResultT")


# ---------------------------------------------------------------------------
# Matching and paging
# ---------------------------------------------------------------------------


def effective_limit(
    limit: int | None,
    default_limit: int = DEFAULT_LIMIT,
    max_limit: int = MAX_LIMIT,
) -> int:
    """
    Resolve a caller's limit.

    None or a non-positive value falls back to ``default_limit``; anything
    above ``max_limit`` is capped.
    """
    if limit is None or limit < 1:
        limit = default_limit
    return min(limit, max_limit)


def name_matches(document: WorldDocument, query: str | None) -> bool:
    """Case-insensitive substring match on the document name."""
    if not query:
        return True
    return query.lower() in document.name.lower()


def journal_matches(journal: Journal, query: str | None) -> bool:
    """Match on the journal name, or on any page name or page content."""
    if name_matches(journal, query):
        return True
    q = query.lower()
    return any(q in page.name.lower() or q in page.content.lower() for page in journal.pages)


def _equals_ignore_case(value: str | None, wanted: str | None) -> bool:
    if not wanted:
        return True
    return value is not None and value.lower() == wanted.lower()


def _page(
    matches: Sequence[DocT],
    limit: int,
    convert: Callable[[DocT], ResultT] | None = None,
) -> SearchPage:
    selected = matches[:limit]
    results = [convert(doc) for doc in selected] if convert else list(selected)
    return SearchPage(results=results, total=len(matches), limit=limit)


def _filter(
    documents: Iterable[DocT],
    query: str | None,
    type: str | None,
    matcher: Callable[[DocT, str | None], bool] = name_matches,
) -> list[DocT]:
    return [
        doc for doc in documents
        if matcher(doc, query) and _equals_ignore_case(doc.type, type)
    ]


# ---------------------------------------------------------------------------
# Searches
# ---------------------------------------------------------------------------


def search(
    snapshot: WorldSnapshot | None,
    collection: Collection | str,
    query: str | None = None,
    type: str | None = None,
    limit: int | None = None,
    *,
    default_limit: int = DEFAULT_LIMIT,
    max_limit: int = MAX_LIMIT,
) -> SearchPage[WorldDocument]:
    """
    Search any collection by name (and type), returning raw documents.

    Journals also match on page names and page content.

    Raises:
        ValueError: If ``collection`` is not a known collection name
    """
    collection = Collection(collection)
    size = effective_limit(limit, default_limit, max_limit)
    if snapshot is None:
        return SearchPage(results=[], total=0, limit=size)

    matcher = journal_matches if collection is Collection.JOURNALS else name_matches
    matches = _filter(snapshot.collection(collection), query, type, matcher)
    return _page(matches, size)


def search_actors(
    snapshot: WorldSnapshot | None,
    query: str | None = None,
    type: str | None = None,
    limit: int | None = None,
    *,
    default_limit: int = DEFAULT_LIMIT,
    max_limit: int = MAX_LIMIT,
) -> SearchPage[ActorSummary]:
    """Search actors, returning normalized ActorSummary results."""
    size = effective_limit(limit, default_limit, max_limit)
    if snapshot is None:
        return SearchPage(results=[], total=0, limit=size)
    matches = _filter(snapshot.actors, query, type)
    return _page(matches, size, ActorSummary.from_document)


def search_items(
    snapshot: WorldSnapshot | None,
    query: str | None = None,
    type: str | None = None,
    rarity: str | None = None,
    limit: int | None = None,
    *,
    default_limit: int = DEFAULT_LIMIT,
    max_limit: int = MAX_LIMIT,
) -> SearchPage[ItemSummary]:
    """Search items by name, type and rarity, returning ItemSummary results."""
    size = effective_limit(limit, default_limit, max_limit)
    if snapshot is None:
        return SearchPage(results=[], total=0, limit=size)
    matches = [
        item for item in _filter(snapshot.items, query, type)
        if _equals_ignore_case(extract_string(item.system, "rarity"), rarity)
    ]
    return _page(matches, size, ItemSummary.from_document)


def search_scenes(
    snapshot: WorldSnapshot | None,
    query: str | None = None,
    limit: int | None = None,
    *,
    default_limit: int = DEFAULT_LIMIT,
    max_limit: int = MAX_LIMIT,
) -> SearchPage[SceneSummary]:
    """Search scenes by name, returning SceneSummary results."""
    size = effective_limit(limit, default_limit, max_limit)
    if snapshot is None:
        return SearchPage(results=[], total=0, limit=size)
    matches = _filter(snapshot.scenes, query, None)
    return _page(matches, size, SceneSummary.from_document)


def search_journals(
    snapshot: WorldSnapshot | None,
    query: str | None = None,
    limit: int | None = None,
    *,
    default_limit: int = DEFAULT_LIMIT,
    max_limit: int = MAX_LIMIT,
) -> SearchPage[Journal]:
    """Search journals by name, page name or page content."""
    return search(
        snapshot,
        Collection.JOURNALS,
        query=query,
        limit=limit,
        default_limit=default_limit,
        max_limit=max_limit,
    )


def search_world(
    snapshot: WorldSnapshot | None,
    query: str,
    limit: int | None = None,
    *,
    default_limit: int = DEFAULT_LIMIT,
    max_limit: int = MAX_LIMIT,
) -> WorldSearchResult:
    """Run one query against actors, items, scenes and journals."""
    pages = {
        collection: search(
            snapshot,
            collection,
            query=query,
            limit=limit,
            default_limit=default_limit,
            max_limit=max_limit,
        )
        for collection in (
            Collection.ACTORS,
            Collection.ITEMS,
            Collection.SCENES,
            Collection.JOURNALS,
        )
    }
    return WorldSearchResult(
        query=query,
        actors=pages[Collection.ACTORS],
        items=pages[Collection.ITEMS],
        scenes=pages[Collection.SCENES],
        journals=pages[Collection.JOURNALS],
    )


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


def get(
    snapshot: WorldSnapshot | None,
    collection: Collection | str,
    document_id: str,
) -> WorldDocument:
    """
    Return the raw document with exactly this id.

    Raises:
        NotFound: If no such document exists (or nothing is loaded)
        ValueError: If ``collection`` is not a known collection name
    """
    collection = Collection(collection)
    if snapshot is not None:
        for document in snapshot.collection(collection):
            if document.id == document_id:
                return document
    raise NotFound(collection.value, document_id)


def get_actor(snapshot: WorldSnapshot | None, actor_id: str) -> ActorSummary:
    """Normalized view of one actor. Raises NotFound."""
    return ActorSummary.from_document(get(snapshot, Collection.ACTORS, actor_id))


def get_item(snapshot: WorldSnapshot | None, item_id: str) -> ItemSummary:
    """Normalized view of one item. Raises NotFound."""
    return ItemSummary.from_document(get(snapshot, Collection.ITEMS, item_id))


def get_scene(snapshot: WorldSnapshot | None, scene_id: str) -> SceneSummary:
    """Normalized view of one scene. Raises NotFound."""
    return SceneSummary.from_document(get(snapshot, Collection.SCENES, scene_id))


def active_scene(snapshot: WorldSnapshot | None) -> SceneSummary:
    """
    The first scene flagged active, in collection order.

    The server normally keeps a single active scene; if several are flagged
    the first one wins.

    Raises:
        NoActiveScene: If no scene is active (or nothing is loaded)
    """
    if snapshot is not None:
        active = [scene for scene in snapshot.scenes if scene.active]
        if len(active) > 1:
            logger.debug(f"{len(active)} scenes flagged active; using {active[0].id}")
        if active:
            return SceneSummary.from_document(active[0])
    raise NoActiveScene()


def sort_combatants(combatants: Iterable[Combatant]) -> list[Combatant]:
    """Highest initiative first; combatants without initiative go last."""
    return sorted(
        combatants,
        key=lambda c: (c.initiative is None, -(c.initiative or 0)),
    )


def active_combat(snapshot: WorldSnapshot | None) -> CombatState:
    """
    The first combat flagged active, with combatants in initiative order.

    No active combat is a normal state and returns ``CombatState.inactive()``.
    """
    if snapshot is None:
        return CombatState.inactive()
    combat = next((c for c in snapshot.combats if c.active), None)
    if combat is None:
        return CombatState.inactive()
    return CombatState(
        active=True,
        combat_id=combat.id,
        round=combat.round,
        turn=combat.turn,
        combatants=sort_combatants(combat.combatants),
    )


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


def summary(snapshot: WorldSnapshot | None) -> dict[str, int]:
    """Element count of every collection; empty mapping when nothing is loaded."""
    return {} if snapshot is None else snapshot.counts()


def world_info(snapshot: WorldSnapshot | None) -> WorldInfo:
    """World title, system and versions; a "Not connected" placeholder without a snapshot."""
    if snapshot is None:
        return WorldInfo()
    world, system, release = snapshot.world, snapshot.system, snapshot.release
    return WorldInfo(
        id=extract_string(world, "id") or "unknown",
        title=extract_string(world, "title") or "Unknown World",
        description=extract_string(world, "description") or "",
        system=extract_string(system, "id") or "unknown",
        system_version=extract_string(system, "version") or "unknown",
        core_version=(
            extract_string(release, "version")
            or _stringify(release.get("generation"))
            or "unknown"
        ),
    )


def recent_messages(snapshot: WorldSnapshot | None, limit: int = 20) -> list[ChatMessage]:
    """The last ``limit`` chat messages, oldest first."""
    if snapshot is None or limit < 1:
        return []
    return snapshot.messages[-limit:]


def user_roster(snapshot: WorldSnapshot | None) -> UserRoster:
    """All users plus the ids of those currently online."""
    if snapshot is None:
        return UserRoster()
    return UserRoster(users=snapshot.users, active_user_ids=snapshot.active_users)


def _stringify(value: object) -> str | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (str, int, float)):
        return str(value)
    return None
