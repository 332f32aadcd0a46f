"""Turn branch/task groups into ``strategicBranches`` and ``frontierNodes``."""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..memory.schema import Branch, Task
from ..utils.slug import slugify, unique_slug

__all__ = ["DEFAULT_BRANCH", "TreeCollections", "transform_groups"]

DEFAULT_BRANCH = "general"

_TASK_FIELDS = frozenset(
    {
        "id",
        "title",
        "branch",
        "description",
        "duration",
        "difficulty",
        "prerequisites",
        "completed",
        "order",
        "generated",
    }
)


@dataclass
class TreeCollections:
    branches: List[Dict[str, Any]] = field(default_factory=list)
    tasks: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def task_count(self) -> int:
        return len(self.tasks)

    @property
    def branch_count(self) -> int:
        return len(self.branches)


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _finite_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def _coerce_difficulty(value: Any) -> Optional[int]:
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    number = _finite_number(value)
    if number is None:
        return None
    return max(1, min(5, int(number)))


def _coerce_duration(value: Any) -> Optional[str]:
    if isinstance(value, (bool, int, float)):
        number = _finite_number(value)
        return None if number is None else f"{int(number)} minutes"
    return _text(value)


def _coerce_prerequisites(value: Any) -> List[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, Sequence):
        return []
    return [str(item).strip() for item in value if str(item).strip()]


class _Builder:
    def __init__(self) -> None:
        self.result = TreeCollections()
        self._branch_ids: set[str] = set()
        self._task_ids: set[str] = set()
        self._branch_lookup: Dict[str, str] = {}
        self._task_counts: Dict[str, int] = {}

    def add_group(self, group: Any) -> None:
        if not isinstance(group, Mapping):
            return
        name = _text(group.get("branch_name")) or _text(group.get("name"))
        if name is not None:
            self._add_branch(group, name, parent_id=None)
            return
        if _text(group.get("title")) is not None:
            reference = _text(group.get("branch")) or DEFAULT_BRANCH
            self._add_task(group, self._ensure_branch(reference))

    def _register_branch(self, name: str, description: str, parent_id: Optional[str]) -> str:
        branch_id = unique_slug(slugify(name, fallback="branch"), self._branch_ids)
        self._branch_ids.add(branch_id)
        branch = Branch(
            id=branch_id,
            title=name,
            order=len(self.result.branches),
            description=description,
            parent_id=parent_id,
        )
        self.result.branches.append(branch.to_document())
        self._branch_lookup.setdefault(name, branch_id)
        self._branch_lookup.setdefault(branch_id, branch_id)
        return branch_id

    def _ensure_branch(self, reference: str) -> str:
        existing = self._branch_lookup.get(reference) or self._branch_lookup.get(slugify(reference))
        if existing is not None:
            return existing
        return self._register_branch(reference, "", None)

    def _add_branch(self, group: Mapping[str, Any], name: str, parent_id: Optional[str]) -> None:
        branch_id = self._register_branch(name, _text(group.get("description")) or "", parent_id)
        tasks = group.get("tasks")
        if isinstance(tasks, list):
            for raw in tasks:
                self._add_task(raw, branch_id)
        sub_branches = group.get("sub_branches")
        if isinstance(sub_branches, list):
            for sub in sub_branches:
                if not isinstance(sub, Mapping):
                    continue
                sub_name = _text(sub.get("branch_name")) or _text(sub.get("name"))
                if sub_name is not None:
                    self._add_branch(sub, sub_name, parent_id=branch_id)

    def _add_task(self, raw: Any, branch_id: str) -> None:
        if isinstance(raw, str):
            raw = {"title": raw}
        if not isinstance(raw, Mapping):
            return
        title = _text(raw.get("title")) or _text(raw.get("name"))
        if title is None:
            return
        position = self._task_counts.get(branch_id, 0) + 1
        self._task_counts[branch_id] = position

        proposed = _text(raw.get("id"))
        base = slugify(proposed, fallback="task") if proposed else f"{branch_id}-task-{position}"
        task_id = unique_slug(base, self._task_ids)
        self._task_ids.add(task_id)

        extras = {key: value for key, value in raw.items() if key not in _TASK_FIELDS and key != "name"}
        task = Task.model_validate(
            {
                **extras,
                "id": task_id,
                "title": title,
                "branch": branch_id,
                "description": _text(raw.get("description")) or "",
                "duration": _coerce_duration(raw.get("duration")),
                "difficulty": _coerce_difficulty(raw.get("difficulty")),
                "prerequisites": _coerce_prerequisites(raw.get("prerequisites")),
                "completed": bool(raw.get("completed", False)),
                "order": position,
                "generated": bool(raw.get("generated", True)),
            }
        )
        self.result.tasks.append(task.to_document())

    def resolve_prerequisites(self) -> None:
        """Rewrite prerequisites given as task titles to task ids."""
        by_title = {}
        for task in self.result.tasks:
            by_title.setdefault(task["title"], task["id"])
        for task in self.result.tasks:
            task["prerequisites"] = [by_title.get(item, item) for item in task["prerequisites"]]


def transform_groups(groups: Sequence[Any]) -> TreeCollections:
    """Flatten groups into branch and task documents with deterministic ids.

    Nested ``sub_branches`` become branches carrying ``parentId``. Entries that
    are not mappings, and tasks without a title, are skipped.
    """
    builder = _Builder()
    for group in groups or ():
        builder.add_group(group)
    builder.resolve_prerequisites()
    return builder.result
