"""Knowledge-graph engine: one GraphStore plus optional SQLite persistence.

`on_document_changed` is the ingestion entry point. With a database
attached, the state is loaded when the engine is opened and written back
after every mutation, inside the same critical section as the mutation.
If that write fails the mutation is undone in memory too.
"""

from __future__ import annotations

import logging
import os
import sqlite3
from datetime import datetime
from typing import Any, Callable

from .graph import analytics
from .graph import persistence
from .graph.extract import extract_concepts
from .graph.models import Concept, Connection, utcnow
from .graph.query import SearchResult, search
from .graph.store import GraphSnapshot, GraphStore
from .graph.update import UpdateStats, apply_document
from .storage import sqlite_kv

logger = logging.getLogger(__name__)


class KnowledgeGraphEngine:
    def __init__(
        self,
        *,
        store: GraphStore | None = None,
        conn: sqlite3.Connection | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store if store is not None else GraphStore(clock=clock)
        self.conn = conn

    @classmethod
    def open(cls, db_path: str | os.PathLike[str], **kwargs: Any) -> "KnowledgeGraphEngine":
        """Open (or create) the database at `db_path` and load its graph.

        Raises CorruptStateError if the stored graph is invalid.
        """
        conn = sqlite_kv.connect(db_path)
        try:
            sqlite_kv.init_db(conn)
            engine = cls(conn=conn, **kwargs)
            engine.load()
        except Exception:
            conn.close()
            raise
        return engine

    def close(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None

    def __enter__(self) -> "KnowledgeGraphEngine":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # -- persistence --------------------------------------------------------

    def load(self) -> None:
        if self.conn is None:
            return
        concepts, connections = sqlite_kv.load_collections(self.conn)
        persistence.load_into(self.store, concepts, connections)
        logger.info("loaded graph: %d concepts", len(self.store))

    def save(self) -> None:
        if self.conn is None:
            return
        with self.store.transaction():
            state = persistence.export_state(self.store)
            sqlite_kv.save_collections(
                self.conn,
                state[persistence.CONCEPTS_KEY],
                state[persistence.CONNECTIONS_KEY],
            )

    def export_state(self) -> dict[str, Any]:
        return persistence.export_state(self.store)

    def import_state(self, state: Any) -> None:
        with self.store.transaction():
            before = self.store.snapshot()
            persistence.import_state(self.store, state)
            self._save_or_rollback(before)

    def _save_or_rollback(self, before: GraphSnapshot) -> None:
        """Write the store back; if that fails, restore `before` and re-raise.

        Call with the store lock held, so memory and database never disagree.
        """
        try:
            self.save()
        except Exception as e:
            self.store.reset(before.concepts, before.connections)
            logger.warning("save failed, graph rolled back: %s", e)
            raise

    # -- mutations ----------------------------------------------------------

    def on_document_changed(self, document_id: str, content: str) -> UpdateStats:
        concepts = extract_concepts(content)
        with self.store.transaction():
            before = self.store.snapshot()
            stats = apply_document(self.store, document_id, concepts)
            if concepts:
                self._save_or_rollback(before)
        return stats

    def apply_document(self, document_id: str, concepts: list[str]) -> UpdateStats:
        with self.store.transaction():
            before = self.store.snapshot()
            stats = apply_document(self.store, document_id, concepts)
            self._save_or_rollback(before)
        return stats

    def set_description(self, name: str, description: str) -> Concept | None:
        with self.store.transaction():
            before = self.store.snapshot()
            concept = self.store.set_description(name, description)
            if concept is not None:
                self._save_or_rollback(before)
        return concept

    def delete_concept(self, name: str) -> bool:
        with self.store.transaction():
            before = self.store.snapshot()
            deleted = self.store.delete_concept(name)
            if deleted:
                self._save_or_rollback(before)
        return deleted

    # -- queries ------------------------------------------------------------

    def get_concept(self, name: str) -> Concept | None:
        return self.store.get_concept(name)

    def connections_of(self, name: str) -> list[Connection]:
        return self.store.connections_of(name)

    def connection_count(self, name: str) -> int:
        return analytics.connection_count(self.store, name)

    def group_by_strength(self) -> analytics.StrengthGroups:
        return analytics.group_by_strength(self.store)

    def density(self) -> int:
        return analytics.density(self.store)

    def most_connected(self, limit: int | None = None) -> list[tuple[str, int]]:
        return analytics.most_connected(self.store, limit)

    def clusters(self) -> list[analytics.Cluster]:
        return analytics.clusters(self.store)

    def stats(self) -> analytics.GraphStats:
        return analytics.graph_stats(self.store)

    def search(self, query: str) -> list[SearchResult]:
        return search(self.store, query)
