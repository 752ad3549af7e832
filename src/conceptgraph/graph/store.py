"""In-memory concept registry and connection collection.

All mutations go through one re-entrant lock. `transaction()` lets a caller
hold that lock across several operations (one document update), and
`snapshot()` copies both collections under it, so readers only ever see
the graph between two complete updates.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Iterable, Iterator

from .models import Concept, Connection, pair_key, utcnow

logger = logging.getLogger(__name__)

NEW_CONNECTION_STRENGTH = 0.5
STRENGTH_INCREMENT = 0.1
MAX_STRENGTH = 1.0


@dataclass(frozen=True)
class GraphSnapshot:
    concepts: tuple[Concept, ...]
    connections: tuple[Connection, ...]


class GraphStore:
    def __init__(self, *, clock: Callable[[], datetime] = utcnow):
        self._clock = clock
        self._lock = threading.RLock()
        self._concepts: dict[str, Concept] = {}
        self._connections: dict[tuple[str, str], Connection] = {}
        # name -> keys of incident connections, in creation order
        self._adjacency: dict[str, dict[tuple[str, str], None]] = {}

    def __len__(self) -> int:
        return len(self._concepts)

    @contextmanager
    def transaction(self) -> Iterator["GraphStore"]:
        with self._lock:
            yield self

    # -- concepts -----------------------------------------------------------

    def upsert_concept(self, name: str) -> Concept:
        """Register one mention of `name`."""
        if not name:
            raise ValueError("concept name must be non-empty")
        with self._lock:
            now = self._clock()
            prev = self._concepts.get(name)
            if prev is None:
                concept = Concept(name=name, mention_count=1, last_updated=now)
                self._adjacency[name] = {}
                logger.debug("new concept %r", name)
            else:
                concept = replace(prev, mention_count=prev.mention_count + 1, last_updated=now)
            self._concepts[name] = concept
            return concept

    def get_concept(self, name: str) -> Concept | None:
        with self._lock:
            return self._concepts.get(name)

    def set_description(self, name: str, description: str) -> Concept | None:
        with self._lock:
            prev = self._concepts.get(name)
            if prev is None:
                return None
            concept = replace(prev, description=str(description))
            self._concepts[name] = concept
            return concept

    def delete_concept(self, name: str) -> bool:
        """Remove `name` and every connection touching it."""
        with self._lock:
            if name not in self._concepts:
                return False
            for key in list(self._adjacency.get(name, ())):
                self._drop_connection(key)
            self._adjacency.pop(name, None)
            del self._concepts[name]
            logger.info("deleted concept %r", name)
            return True

    # -- connections --------------------------------------------------------

    def upsert_connection(self, a: str, b: str, document_id: str) -> Connection | None:
        """Create the (a, b) connection or strengthen the existing one.

        Self-loops and pairs with an unregistered endpoint are ignored.
        """
        if a == b:
            return None
        key = pair_key(a, b)
        with self._lock:
            if a not in self._concepts or b not in self._concepts:
                logger.debug("ignoring connection %r-%r: unknown endpoint", a, b)
                return None
            prev = self._connections.get(key)
            if prev is None:
                conn = Connection(a=a, b=b, strength=NEW_CONNECTION_STRENGTH, source_document=str(document_id))
                self._connections[key] = conn
                self._adjacency[a][key] = None
                self._adjacency[b][key] = None
            else:
                conn = replace(
                    prev,
                    strength=_strengthen(prev.strength),
                    source_document=str(document_id),
                )
                self._connections[key] = conn
            return conn

    def get_connection(self, a: str, b: str) -> Connection | None:
        with self._lock:
            return self._connections.get(pair_key(a, b))

    def connections_of(self, name: str) -> list[Connection]:
        with self._lock:
            keys = self._adjacency.get(name)
            if not keys:
                return []
            return [self._connections[k] for k in keys]

    def _drop_connection(self, key: tuple[str, str]) -> None:
        conn = self._connections.pop(key, None)
        if conn is None:
            return
        for name in key:
            self._adjacency.get(name, {}).pop(key, None)

    # -- bulk ---------------------------------------------------------------

    def snapshot(self) -> GraphSnapshot:
        with self._lock:
            return GraphSnapshot(
                concepts=tuple(self._concepts.values()),
                connections=tuple(self._connections.values()),
            )

    def reset(self, concepts: Iterable[Concept], connections: Iterable[Connection]) -> None:
        """Swap in a complete graph. Raises ValueError if it breaks an invariant.

        Validation runs before anything is touched, so a rejected graph
        leaves the store as it was.
        """
        new_concepts: dict[str, Concept] = {}
        for c in concepts:
            if c.name in new_concepts:
                raise ValueError(f"duplicate concept {c.name!r}")
            new_concepts[c.name] = c

        new_connections: dict[tuple[str, str], Connection] = {}
        adjacency: dict[str, dict[tuple[str, str], None]] = {n: {} for n in new_concepts}
        for conn in connections:
            for end in (conn.a, conn.b):
                if end not in new_concepts:
                    raise ValueError(f"connection {conn.title} references unknown concept {end!r}")
            if conn.key in new_connections:
                raise ValueError(f"duplicate connection {conn.title}")
            new_connections[conn.key] = conn
            adjacency[conn.a][conn.key] = None
            adjacency[conn.b][conn.key] = None

        with self._lock:
            self._concepts = new_concepts
            self._connections = new_connections
            self._adjacency = adjacency


def _strengthen(strength: float) -> float:
    # Rounded so repeated +0.1 steps land on 0.6, 0.7, 0.8 ... exactly.
    return round(min(MAX_STRENGTH, strength + STRENGTH_INCREMENT), 6)
