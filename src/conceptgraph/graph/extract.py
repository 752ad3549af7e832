from __future__ import annotations

import re

# `[[Concept]]` note links. Only `]` ends a name, so an unterminated `[[` runs
# into the next link: `[[a [[b]]` yields "a [[b".
_CONCEPT_RE = re.compile(r"\[\[([^\]]+)\]\]")


def extract_concepts(text: str) -> list[str]:
    """Return every concept reference in `text`, left to right.

    Names are kept verbatim (no trimming or case-folding) and repeated
    references are kept, so the result can hold the same name several times.
    """
    if not text:
        return []
    return [m.group(1) for m in _CONCEPT_RE.finditer(text)]
