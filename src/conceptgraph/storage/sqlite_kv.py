"""Durable key-value storage for the serialized graph.

The graph lives under two keys, one per collection, each holding JSON text.
"""

from __future__ import annotations

import json
import logging
import os
import sqlite3
import time
from pathlib import Path
from typing import Any

from ..errors import CorruptStateError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

KNOWLEDGE_BASE_KEY = "knowledge_base"
CONNECTIONS_KEY = "connections"

_MISSING = object()


def connect(db_path: str | os.PathLike[str]) -> sqlite3.Connection:
    if str(db_path) != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    # The web server hands one connection to its worker threads; writes are
    # serialized by the graph store lock.
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    return conn


def init_db(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS meta (
          key TEXT PRIMARY KEY,
          value TEXT NOT NULL
        );
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS kv (
          key TEXT PRIMARY KEY,
          value TEXT NOT NULL,
          updated_at INTEGER NOT NULL
        );
        """
    )
    conn.execute(
        "INSERT OR REPLACE INTO meta(key, value) VALUES(?, ?)",
        ("schema_version", str(SCHEMA_VERSION)),
    )
    conn.commit()


def get_raw(conn: sqlite3.Connection, key: str) -> str | None:
    row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
    return None if row is None else str(row["value"])


def get_json(conn: sqlite3.Connection, key: str, default: Any = None) -> Any:
    """Decode the JSON value stored under `key`; `default` when absent."""
    raw = get_raw(conn, key)
    if raw is None:
        return default
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise CorruptStateError(f"stored value is not valid JSON ({e})", key=key) from e


def put_json(conn: sqlite3.Connection, key: str, value: Any) -> None:
    conn.execute(
        """
        INSERT INTO kv(key, value, updated_at) VALUES(?, ?, ?)
        ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
        """,
        (key, json.dumps(value, ensure_ascii=False), int(time.time())),
    )


def load_collections(conn: sqlite3.Connection) -> tuple[Any, Any]:
    """Return (concepts, connections) as stored; empty collections when unset."""
    concepts = get_json(conn, KNOWLEDGE_BASE_KEY, _MISSING)
    connections = get_json(conn, CONNECTIONS_KEY, _MISSING)
    if concepts is _MISSING:
        concepts = {}
    if connections is _MISSING:
        connections = []
    return concepts, connections


def save_collections(conn: sqlite3.Connection, concepts: dict[str, Any], connections: list[Any]) -> None:
    # Both keys or neither.
    try:
        put_json(conn, KNOWLEDGE_BASE_KEY, concepts)
        put_json(conn, CONNECTIONS_KEY, connections)
    except sqlite3.Error:
        conn.rollback()
        raise
    conn.commit()
    logger.debug("saved %d concepts, %d connections", len(concepts), len(connections))
