"""Derived hierarchy counts and read-only integrity reports for HTA trees."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Dict, List

from .schema import HierarchyMetadata
from .validation import repair_hta_structure

__all__ = ["branch_identifiers", "compute_hierarchy_metadata", "find_orphaned_tasks"]


def _task_key(node: Any, fallback: str) -> str:
    if isinstance(node, Mapping):
        identifier = node.get("id")
        if identifier not in (None, ""):
            return str(identifier)
    return fallback


def compute_hierarchy_metadata(tree: Mapping[str, Any]) -> Dict[str, Any]:
    """Recompute ``hierarchyMetadata`` from the tree collections.

    A task present in both ``frontierNodes`` and ``completedNodes`` is counted
    once; frontier tasks flagged ``completed`` count as completed.
    """
    healed = repair_hta_structure(tree)
    seen: set[str] = set()
    completed: set[str] = set()
    for index, node in enumerate(healed["frontierNodes"]):
        key = _task_key(node, f"frontier#{index}")
        seen.add(key)
        if isinstance(node, Mapping) and node.get("completed"):
            completed.add(key)
    for index, node in enumerate(healed["completedNodes"]):
        key = _task_key(node, f"completed#{index}")
        seen.add(key)
        completed.add(key)
    metadata = HierarchyMetadata(
        total_tasks=len(seen),
        total_branches=len(healed["strategicBranches"]),
        completed_tasks=len(completed),
    )
    return metadata.to_document()


def branch_identifiers(tree: Mapping[str, Any]) -> set[str]:
    """Return every id and title a task may use to reference a branch."""
    names: set[str] = set()
    for branch in repair_hta_structure(tree)["strategicBranches"]:
        if isinstance(branch, Mapping):
            for key in ("id", "title", "name"):
                value = branch.get(key)
                if isinstance(value, str) and value:
                    names.add(value)
        elif isinstance(branch, str) and branch:
            names.add(branch)
    return names


def find_orphaned_tasks(tree: Mapping[str, Any]) -> List[Dict[str, Any]]:
    """List frontier tasks whose branch reference names no existing branch."""
    known = branch_identifiers(tree)
    orphans: List[Dict[str, Any]] = []
    for index, node in enumerate(repair_hta_structure(tree)["frontierNodes"]):
        if not isinstance(node, Mapping):
            continue
        reference = node.get("branch")
        if reference in (None, "") or str(reference) not in known:
            orphans.append(
                {
                    "index": index,
                    "id": node.get("id"),
                    "title": node.get("title"),
                    "branch": reference,
                }
            )
    return orphans
