"""Structural self-healing for HTA tree documents.

Repair is shape-only: the four collection fields are guaranteed to exist and
be lists, legacy snake_case keys are migrated, and nothing else is touched.
Task and branch content is never inferred, dropped, or reordered, and unknown
keys survive unchanged.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

__all__ = [
    "HTA_COLLECTION_FIELDS",
    "LEGACY_KEY_ALIASES",
    "HTAValidation",
    "empty_tree",
    "repair_hta_structure",
    "validate_hta_structure",
]

HTA_COLLECTION_FIELDS: Tuple[str, ...] = (
    "strategicBranches",
    "frontierNodes",
    "completedNodes",
    "collaborativeSessions",
)

LEGACY_KEY_ALIASES: Dict[str, str] = {
    "strategic_branches": "strategicBranches",
    "frontier_nodes": "frontierNodes",
    "completed_nodes": "completedNodes",
    "collaborative_sessions": "collaborativeSessions",
    "hierarchy_metadata": "hierarchyMetadata",
}

_MISSING = object()


@dataclass(frozen=True, slots=True)
class HTAValidation:
    """Repaired document plus a human-readable note for every repair made."""

    document: Dict[str, Any]
    repairs: Tuple[str, ...] = ()

    @property
    def repaired(self) -> bool:
        return bool(self.repairs)

    @property
    def repaired_fields(self) -> List[str]:
        return [note.split(":", 1)[0] for note in self.repairs]


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


def empty_tree() -> Dict[str, Any]:
    return {name: [] for name in HTA_COLLECTION_FIELDS}


def validate_hta_structure(document: Any) -> HTAValidation:
    """Return a well-formed copy of ``document``. Never raises.

    The input is not mutated: the top-level mapping and the collection lists
    are copied, element objects are shared.
    """
    repairs: List[str] = []
    if isinstance(document, Mapping):
        source: Dict[str, Any] = {str(key): value for key, value in document.items()}
    else:
        repairs.append(f"document: replaced {type(document).__name__} with an empty tree")
        source = {}

    for legacy, current in LEGACY_KEY_ALIASES.items():
        if legacy in source and current not in source:
            source[current] = source.pop(legacy)
            repairs.append(f"{current}: migrated from legacy key {legacy}")

    for name in HTA_COLLECTION_FIELDS:
        value = source.get(name, _MISSING)
        if value is _MISSING:
            source[name] = []
            repairs.append(f"{name}: missing, initialised to []")
        elif value is None:
            source[name] = []
            repairs.append(f"{name}: null, replaced with []")
        elif not _is_sequence(value):
            source[name] = []
            repairs.append(f"{name}: expected a sequence, got {type(value).__name__}; replaced with []")
        else:
            source[name] = list(value)

    return HTAValidation(document=source, repairs=tuple(repairs))


def repair_hta_structure(document: Any) -> Dict[str, Any]:
    """Shorthand for ``validate_hta_structure(document).document``."""
    return validate_hta_structure(document).document
