"""Typed records persisted in project and HTA tree documents."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    """Return a timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


class TreeRecord(BaseModel):
    """Base for HTA tree entries: camelCase on disk, unknown keys preserved."""

    model_config = ConfigDict(extra="allow", populate_by_name=True, alias_generator=to_camel)

    def to_document(self) -> Dict[str, Any]:
        # Unset optional fields are omitted; extra keys keep explicit nulls.
        unset = {name for name in type(self).model_fields if getattr(self, name) is None}
        return self.model_dump(mode="json", by_alias=True, exclude=unset)


class ConfigRecord(BaseModel):
    """Base for project configuration documents: snake_case, unknown keys preserved."""

    model_config = ConfigDict(extra="allow")

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class Branch(TreeRecord):
    """Strategic grouping of tasks; ``order`` is its position in the tree."""

    id: str
    title: str
    order: int = 0
    description: str = ""
    parent_id: Optional[str] = None


class Task(TreeRecord):
    """Actionable frontier node owned by a branch."""

    id: str
    title: str
    branch: str
    description: str = ""
    duration: Optional[str] = None
    difficulty: Optional[int] = None
    prerequisites: List[str] = Field(default_factory=list)
    completed: bool = False
    order: int = 0
    generated: bool = True


class HierarchyMetadata(TreeRecord):
    """Derived counts; always recomputable from the tree collections."""

    total_tasks: int = 0
    total_branches: int = 0
    completed_tasks: int = 0


class LifeStructurePreferences(ConfigRecord):
    """Scheduling preferences captured at project creation."""

    wake_time: Optional[str] = None
    sleep_time: Optional[str] = None
    focus_duration: Optional[str] = None
    meal_times: List[str] = Field(default_factory=list)


class ProjectConfig(ConfigRecord):
    """Per-project configuration stored as ``<project>/config.json``."""

    project_id: str
    goal: str
    context: str = ""
    life_structure_preferences: LifeStructurePreferences = Field(default_factory=LifeStructurePreferences)
    learning_paths: List[str] = Field(default_factory=list)
    active_path: str = "main"
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
