from __future__ import annotations

from dataclasses import dataclass

from .store import GraphStore

EXACT_CONCEPT_RELEVANCE = 1.0
CONCEPT_RELEVANCE = 0.8
CONNECTION_RELEVANCE = 0.6


@dataclass(frozen=True)
class SearchResult:
    kind: str  # "concept" | "connection"
    title: str
    relevance: float
    # Concept names the result refers to: one for a concept, two for a connection.
    names: tuple[str, ...]

    def as_dict(self) -> dict[str, object]:
        return {
            "kind": self.kind,
            "title": self.title,
            "relevance": self.relevance,
            "names": list(self.names),
        }


def search(store: GraphStore, query: str) -> list[SearchResult]:
    """Case-insensitive substring search over concept names and connections.

    Exact concept matches rank first, then partial concept matches, then
    connections with a matching endpoint. Equal relevance keeps collection
    order.
    """
    if not query or not query.strip():
        return []
    q = query.lower()
    snap = store.snapshot()

    results: list[SearchResult] = []
    for concept in snap.concepts:
        name = concept.name.lower()
        if q in name:
            results.append(
                SearchResult(
                    kind="concept",
                    title=concept.name,
                    relevance=EXACT_CONCEPT_RELEVANCE if name == q else CONCEPT_RELEVANCE,
                    names=(concept.name,),
                )
            )

    for conn in snap.connections:
        if q in conn.a.lower() or q in conn.b.lower():
            results.append(
                SearchResult(
                    kind="connection",
                    title=conn.title,
                    relevance=CONNECTION_RELEVANCE,
                    names=(conn.a, conn.b),
                )
            )

    return sorted(results, key=lambda r: r.relevance, reverse=True)
