from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

from ..engine import KnowledgeGraphEngine


SUPPORTED_TEXT_EXTS = {".md", ".markdown", ".txt"}


@dataclass(frozen=True)
class IngestOptions:
    input_dir: Path
    extensions: frozenset[str] = frozenset(SUPPORTED_TEXT_EXTS)


def iter_files(root: Path) -> Iterable[Path]:
    for p in sorted(root.rglob("*")):
        if not p.is_file():
            continue
        if any(part.startswith(".") for part in p.relative_to(root).parts):
            continue
        yield p


def document_id_for(path: Path, root: Path) -> str:
    return path.relative_to(root).as_posix()


def ingest_notes(*, engine: KnowledgeGraphEngine, options: IngestOptions) -> dict[str, Any]:
    """Feed every note under `options.input_dir` to the engine as a changed document."""
    docs_seen = 0
    docs_with_concepts = 0
    mentions = 0
    connections_created = 0

    for path in iter_files(options.input_dir):
        if path.suffix.lower() not in options.extensions:
            continue

        docs_seen += 1
        text = path.read_text(encoding="utf-8", errors="replace")
        stats = engine.on_document_changed(document_id_for(path, options.input_dir), text)
        if stats.mentions:
            docs_with_concepts += 1
            mentions += stats.mentions
            connections_created += stats.connections_created

    return {
        "documents_seen": docs_seen,
        "documents_with_concepts": docs_with_concepts,
        "mentions": mentions,
        "connections_created": connections_created,
    }
