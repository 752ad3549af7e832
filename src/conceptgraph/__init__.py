"""Concept co-occurrence knowledge graph built from `[[Concept]]` note links."""

__version__ = "0.1.0"
