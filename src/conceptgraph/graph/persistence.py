"""Graph state <-> plain JSON-compatible dicts.

Layout, two independent collections::

    concepts:    {name: {"mentionCount": int, "lastUpdated": iso8601, "description": str}}
    connections: [{"from": str, "to": str, "strength": float, "source": str}]

Importing validates everything before the store is touched. A state that
breaks a graph invariant raises CorruptStateError; nothing is repaired.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from ..errors import CorruptStateError
from .models import Concept, Connection
from .store import GraphStore

logger = logging.getLogger(__name__)

CONCEPTS_KEY = "concepts"
CONNECTIONS_KEY = "connections"


def format_timestamp(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    s = dt.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return s.replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    s = value.strip()
    if s.endswith("Z") or s.endswith("z"):
        s = s[:-1] + "+00:00"
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def concept_to_dict(concept: Concept) -> dict[str, Any]:
    return {
        "mentionCount": concept.mention_count,
        "lastUpdated": format_timestamp(concept.last_updated),
        "description": concept.description,
    }


def connection_to_dict(conn: Connection) -> dict[str, Any]:
    return {
        "from": conn.a,
        "to": conn.b,
        "strength": conn.strength,
        "source": conn.source_document,
    }


def export_state(store: GraphStore) -> dict[str, Any]:
    snap = store.snapshot()
    return {
        CONCEPTS_KEY: {c.name: concept_to_dict(c) for c in snap.concepts},
        CONNECTIONS_KEY: [connection_to_dict(c) for c in snap.connections],
    }


def parse_concepts(raw: Any) -> list[Concept]:
    if not isinstance(raw, dict):
        raise CorruptStateError(f"expected an object, got {type(raw).__name__}", key=CONCEPTS_KEY)

    out: list[Concept] = []
    for name, data in raw.items():
        if not isinstance(name, str) or not name:
            raise CorruptStateError("concept name must be a non-empty string", key=CONCEPTS_KEY)
        if not isinstance(data, dict):
            raise CorruptStateError(f"concept {name!r} is not an object", key=CONCEPTS_KEY)

        # Older states store the count under "mentions".
        mentions = data.get("mentionCount", data.get("mentions"))
        if isinstance(mentions, bool) or not isinstance(mentions, int):
            raise CorruptStateError(f"concept {name!r} has invalid mention count {mentions!r}", key=CONCEPTS_KEY)

        updated = data.get("lastUpdated")
        if not isinstance(updated, str):
            raise CorruptStateError(f"concept {name!r} has no lastUpdated timestamp", key=CONCEPTS_KEY)
        try:
            last_updated = parse_timestamp(updated)
        except ValueError as e:
            raise CorruptStateError(f"concept {name!r}: bad timestamp {updated!r}", key=CONCEPTS_KEY) from e

        description = data.get("description", "")
        if description is None:
            description = ""
        if not isinstance(description, str):
            raise CorruptStateError(f"concept {name!r} has a non-string description", key=CONCEPTS_KEY)

        try:
            out.append(
                Concept(name=name, mention_count=mentions, last_updated=last_updated, description=description)
            )
        except ValueError as e:
            raise CorruptStateError(str(e), key=CONCEPTS_KEY) from e
    return out


def parse_connections(raw: Any) -> list[Connection]:
    if not isinstance(raw, list):
        raise CorruptStateError(f"expected an array, got {type(raw).__name__}", key=CONNECTIONS_KEY)

    out: list[Connection] = []
    for i, data in enumerate(raw):
        if not isinstance(data, dict):
            raise CorruptStateError(f"entry {i} is not an object", key=CONNECTIONS_KEY)
        a = data.get("from")
        b = data.get("to")
        if not isinstance(a, str) or not isinstance(b, str):
            raise CorruptStateError(f"entry {i} needs string 'from' and 'to'", key=CONNECTIONS_KEY)
        strength = data.get("strength")
        if isinstance(strength, bool) or not isinstance(strength, (int, float)):
            raise CorruptStateError(f"entry {i} has invalid strength {strength!r}", key=CONNECTIONS_KEY)
        source = data.get("source", "")
        try:
            out.append(Connection(a=a, b=b, strength=float(strength), source_document="" if source is None else str(source)))
        except ValueError as e:
            raise CorruptStateError(f"entry {i}: {e}", key=CONNECTIONS_KEY) from e
    return out


def load_into(store: GraphStore, concepts_raw: Any, connections_raw: Any) -> None:
    concepts = parse_concepts(concepts_raw)
    connections = parse_connections(connections_raw)
    try:
        store.reset(concepts, connections)
    except ValueError as e:
        raise CorruptStateError(str(e)) from e
    logger.debug("loaded %d concepts, %d connections", len(concepts), len(connections))


def import_state(store: GraphStore, state: Any) -> None:
    if not isinstance(state, dict):
        raise CorruptStateError(f"state must be an object, got {type(state).__name__}")
    load_into(store, state.get(CONCEPTS_KEY, {}), state.get(CONNECTIONS_KEY, []))
