"""Apply one document's concept references to the graph.

Every mention bumps its concept; every pair of mentions in the document
creates or strengthens a connection. The mention sequence is used as-is,
duplicates included, so a pair mentioned several times in one document is
strengthened several times by a single save.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from itertools import combinations
from typing import Sequence

from .store import GraphStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpdateStats:
    document_id: str
    mentions: int
    concepts_created: int
    connections_created: int
    connections_strengthened: int

    def as_dict(self) -> dict[str, object]:
        return {
            "document_id": self.document_id,
            "mentions": self.mentions,
            "concepts_created": self.concepts_created,
            "connections_created": self.connections_created,
            "connections_strengthened": self.connections_strengthened,
        }


def apply_document(store: GraphStore, document_id: str, concepts: Sequence[str]) -> UpdateStats:
    names = [n for n in concepts if n]
    document_id = str(document_id)

    concepts_created = 0
    connections_created = 0
    connections_strengthened = 0

    with store.transaction():
        for name in names:
            if store.upsert_concept(name).mention_count == 1:
                concepts_created += 1

        for a, b in combinations(names, 2):
            if a == b:
                continue
            existed = store.get_connection(a, b) is not None
            if store.upsert_connection(a, b, document_id) is None:
                continue
            if existed:
                connections_strengthened += 1
            else:
                connections_created += 1

    stats = UpdateStats(
        document_id=document_id,
        mentions=len(names),
        concepts_created=concepts_created,
        connections_created=connections_created,
        connections_strengthened=connections_strengthened,
    )
    if names:
        logger.info(
            "applied %s: %d mentions, +%d concepts, +%d connections, %d strengthened",
            document_id,
            stats.mentions,
            concepts_created,
            connections_created,
            connections_strengthened,
        )
    return stats
