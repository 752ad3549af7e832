from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def pair_key(a: str, b: str) -> tuple[str, str]:
    """Canonical key of the unordered pair {a, b}."""
    return (a, b) if a <= b else (b, a)


@dataclass(frozen=True)
class Concept:
    name: str
    mention_count: int = 1
    last_updated: datetime = field(default_factory=utcnow)
    description: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name:
            raise ValueError("concept name must be a non-empty string")
        if isinstance(self.mention_count, bool) or not isinstance(self.mention_count, int):
            raise ValueError(f"mention_count must be an int, got {self.mention_count!r}")
        if self.mention_count < 1:
            raise ValueError(f"mention_count must be >= 1, got {self.mention_count}")
        if not isinstance(self.last_updated, datetime) or self.last_updated.tzinfo is None:
            raise ValueError(f"last_updated must be a timezone-aware datetime, got {self.last_updated!r}")
        if not isinstance(self.description, str):
            raise ValueError(f"description must be a string, got {type(self.description).__name__}")


@dataclass(frozen=True)
class Connection:
    a: str
    b: str
    strength: float
    source_document: str

    def __post_init__(self) -> None:
        if not isinstance(self.a, str) or not isinstance(self.b, str) or not self.a or not self.b:
            raise ValueError("connection endpoints must be non-empty strings")
        if not isinstance(self.source_document, str):
            raise ValueError(f"source_document must be a string, got {type(self.source_document).__name__}")
        if self.a == self.b:
            raise ValueError(f"self-loop on {self.a!r}")
        if not 0.0 <= float(self.strength) <= 1.0:
            raise ValueError(f"strength must be within [0, 1], got {self.strength}")

    @property
    def key(self) -> tuple[str, str]:
        return pair_key(self.a, self.b)

    @property
    def title(self) -> str:
        return f"{self.a} ↔ {self.b}"

    def other(self, name: str) -> str:
        return self.b if self.a == name else self.a
