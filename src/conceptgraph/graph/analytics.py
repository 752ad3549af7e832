"""Read-only structural queries over a GraphStore.

Each query works on a single `GraphStore.snapshot()`, so its answer is
consistent with one state of the graph even while documents are applied
from other threads.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from .models import Connection
from .store import GraphSnapshot, GraphStore

STRONG_THRESHOLD = 0.8
MEDIUM_THRESHOLD = 0.5


@dataclass(frozen=True)
class StrengthGroups:
    strong: list[Connection]
    medium: list[Connection]
    weak: list[Connection]

    def items(self) -> list[tuple[str, list[Connection]]]:
        return [("strong", self.strong), ("medium", self.medium), ("weak", self.weak)]


@dataclass(frozen=True)
class Cluster:
    # Hub concept first, then its neighbours.
    members: tuple[str, ...]
    density: int

    @property
    def hub(self) -> str:
        return self.members[0]


@dataclass(frozen=True)
class GraphStats:
    concepts: int
    connections: int
    density: int


def percent(numerator: float, denominator: float) -> int:
    """100 * numerator / denominator rounded half-up to a whole percent."""
    if denominator <= 0:
        return 0
    return int(math.floor(100.0 * numerator / denominator + 0.5))


def strength_group(strength: float) -> str:
    if strength >= STRONG_THRESHOLD:
        return "strong"
    if strength >= MEDIUM_THRESHOLD:
        return "medium"
    return "weak"


def connection_count(store: GraphStore, name: str) -> int:
    return len(store.connections_of(name))


def group_by_strength(store: GraphStore) -> StrengthGroups:
    groups: dict[str, list[Connection]] = {"strong": [], "medium": [], "weak": []}
    for conn in store.snapshot().connections:
        groups[strength_group(conn.strength)].append(conn)
    return StrengthGroups(**groups)


def _density(snap: GraphSnapshot) -> int:
    n = len(snap.concepts)
    if n < 2:
        return 0
    return percent(len(snap.connections), n * (n - 1) / 2)


def density(store: GraphStore) -> int:
    return _density(store.snapshot())


def _degrees(snap: GraphSnapshot) -> dict[str, int]:
    deg = {c.name: 0 for c in snap.concepts}
    for conn in snap.connections:
        deg[conn.a] = deg.get(conn.a, 0) + 1
        deg[conn.b] = deg.get(conn.b, 0) + 1
    return deg


def most_connected(store: GraphStore, limit: int | None = None) -> list[tuple[str, int]]:
    """Concepts by connection count, highest first; ties keep insertion order."""
    deg = _degrees(store.snapshot())
    ranked = sorted(deg.items(), key=lambda kv: kv[1], reverse=True)
    if limit is not None:
        ranked = ranked[: max(0, int(limit))]
    return ranked


def clusters(store: GraphStore) -> list[Cluster]:
    """One-hop star clusters.

    Concepts are visited in insertion order. An unvisited concept with at
    least two neighbours becomes a hub: it and its neighbours form a cluster
    and are all marked visited. A concept with fewer neighbours is marked
    visited alone. Cluster density is the hub's connection count over the
    member count, so it describes the star, not the induced subgraph.
    """
    snap = store.snapshot()
    neighbours: dict[str, list[str]] = {c.name: [] for c in snap.concepts}
    for conn in snap.connections:
        neighbours[conn.a].append(conn.b)
        neighbours[conn.b].append(conn.a)

    out: list[Cluster] = []
    processed: set[str] = set()
    for concept in snap.concepts:
        hub = concept.name
        if hub in processed:
            continue
        members = [hub]
        for other in neighbours[hub]:
            if other not in members:
                members.append(other)
        if len(members) > 2:
            out.append(Cluster(members=tuple(members), density=percent(len(neighbours[hub]), len(members))))
            processed.update(members)
        else:
            processed.add(hub)
    return out


def graph_stats(store: GraphStore) -> GraphStats:
    snap = store.snapshot()
    return GraphStats(
        concepts=len(snap.concepts),
        connections=len(snap.connections),
        density=_density(snap),
    )
