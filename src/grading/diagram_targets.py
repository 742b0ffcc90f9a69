"""Diagram target classes a visual grader can report, plus answer normalization helpers."""

from __future__ import annotations

import re

DIAGRAM_TARGET_CLASSES: tuple[str, ...] = (
    "vertices",
    "segments",
    "angles",
    "enclosed_regions",
    "symbolic_marks",
)

_ALIASES = {
    "vertex": "vertices",
    "point": "vertices",
    "points": "vertices",
    "segment": "segments",
    "side": "segments",
    "angle": "angles",
    "region": "enclosed_regions",
    "regions": "enclosed_regions",
    "enclosed_region": "enclosed_regions",
    "symbolic": "symbolic_marks",
    "symbol": "symbolic_marks",
    "mark": "symbolic_marks",
}

# Target class a highlight answer of each kind is expected to produce.
ANSWER_KIND_TARGET_CLASS = {
    "segment": "segments",
    "point_set": "vertices",
}


def normalize_target_class(value: str | None) -> str | None:
    """Map a reported target class (or an alias of one) to its canonical name."""
    if not value:
        return None
    normalized = re.sub(r"\s+", "_", value.strip().lower())
    normalized = _ALIASES.get(normalized, normalized)
    return normalized if normalized in DIAGRAM_TARGET_CLASSES else None


def normalize_segment(value: str | None) -> str | None:
    """
    Canonical name of a two-vertex segment.

    ``BA`` and ``ab`` both become ``AB``; anything that is not exactly
    two distinct vertex letters yields None.
    """
    if not value:
        return None
    letters = re.sub(r"[^A-Za-z]", "", value).upper()
    if len(letters) != 2 or letters[0] == letters[1]:
        return None
    return "".join(sorted(letters))


def normalize_point_set(value: str | list[str] | None) -> frozenset[str]:
    """Vertex letters in a point-set answer, order-insensitive."""
    if not value:
        return frozenset()
    if isinstance(value, str):
        return frozenset(ch for ch in value.upper() if ch.isalpha())
    return frozenset(str(item).strip().upper() for item in value if str(item).strip())
