"""Project configuration and the global project registry."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .errors import ForestError, ProjectNotFoundError, RequiredFieldsError
from .memory.schema import LifeStructurePreferences, ProjectConfig, utc_now
from .memory.store import CONFIG_FILE_NAME, DocumentStore, validate_identifier

__all__ = ["DEFAULT_PATH_NAME", "ProjectManager"]

LOGGER = logging.getLogger(__name__)

DEFAULT_PATH_NAME = "main"


def _empty_registry() -> Dict[str, Any]:
    return {"projects": [], "active_project": None}


def _normalise_registry(document: Any) -> Dict[str, Any]:
    registry = dict(document) if isinstance(document, Mapping) else {}
    projects = registry.get("projects")
    registry["projects"] = [str(item) for item in projects] if isinstance(projects, list) else []
    registry.setdefault("active_project", None)
    return registry


class ProjectManager:
    """Create, list, and switch projects stored in a :class:`DocumentStore`.

    Each project keeps ``config.json`` in its own directory; the registry at the
    storage root (``config.json`` in the global scope) tracks known projects and
    the active one.
    """

    def __init__(
        self,
        store: DocumentStore,
        *,
        lock_timeout: Optional[float] = None,
        default_path: str = DEFAULT_PATH_NAME,
    ) -> None:
        self.store = store
        self.lock_timeout = lock_timeout
        self.default_path = default_path

    # Registry -------------------------------------------------------------------------
    def registry(self) -> Dict[str, Any]:
        return _normalise_registry(self.store.load(None, CONFIG_FILE_NAME))

    def active_project(self) -> Optional[str]:
        active = self.registry().get("active_project")
        return active if isinstance(active, str) and active else None

    def _update_registry(self, project_id: str, *, activate: bool) -> Dict[str, Any]:
        def _mutate(current: Any) -> Dict[str, Any]:
            registry = _normalise_registry(current) if current is not None else _empty_registry()
            if project_id not in registry["projects"]:
                registry["projects"].append(project_id)
            if activate:
                registry["active_project"] = project_id
            return registry

        return self.store.update(None, CONFIG_FILE_NAME, _mutate, timeout=self.lock_timeout)

    # Projects -------------------------------------------------------------------------
    def create_project(
        self,
        project_id: str,
        goal: str,
        context: str = "",
        life_structure_preferences: Optional[Mapping[str, Any]] = None,
        *,
        learning_paths: Optional[Iterable[str]] = None,
        overwrite: bool = False,
        **extra: Any,
    ) -> Dict[str, Any]:
        """Persist a new project configuration and make it the active project."""
        missing = []
        if not isinstance(project_id, str) or not project_id.strip():
            missing.append("project_id")
        if not isinstance(goal, str) or not goal.strip():
            missing.append("goal")
        if missing:
            raise RequiredFieldsError(missing, "create_project")
        project_id = validate_identifier(project_id, "project_id", operation="create_project")

        paths = [validate_identifier(name, "learning_paths", operation="create_project") for name in learning_paths or ()]
        config = ProjectConfig(
            project_id=project_id,
            goal=goal.strip(),
            context=context or "",
            life_structure_preferences=LifeStructurePreferences.model_validate(
                dict(life_structure_preferences or {})
            ),
            learning_paths=list(dict.fromkeys(paths)),
            active_path=paths[0] if paths else self.default_path,
            **extra,
        )

        def _create(current: Any) -> Dict[str, Any]:
            if current is not None and not overwrite:
                raise ForestError(
                    f"Project '{project_id}' already exists",
                    context={"project_id": project_id},
                )
            return config.to_document()

        document = self.store.update(project_id, CONFIG_FILE_NAME, _create, timeout=self.lock_timeout)
        self._update_registry(project_id, activate=True)
        LOGGER.info("Created project %s", project_id)
        return document

    def get_project(self, project_id: str) -> Dict[str, Any]:
        document = self.store.load(project_id, CONFIG_FILE_NAME)
        if not isinstance(document, Mapping):
            raise ProjectNotFoundError(project_id)
        return dict(document)

    def list_projects(self) -> List[Dict[str, Any]]:
        """Summaries of every known project, registry order first."""
        registry = self.registry()
        ordered = list(dict.fromkeys(registry["projects"] + self.store.list_projects()))
        active = registry.get("active_project")
        summaries: List[Dict[str, Any]] = []
        for project_id in ordered:
            try:
                document = self.store.load(project_id, CONFIG_FILE_NAME)
            except RequiredFieldsError:
                LOGGER.warning("Skipping registry entry with invalid id %r", project_id)
                continue
            goal = document.get("goal") if isinstance(document, Mapping) else None
            summaries.append(
                {
                    "project_id": project_id,
                    "goal": goal,
                    "active": project_id == active,
                    "paths": self.store.list_paths(project_id),
                }
            )
        return summaries

    def switch_project(self, project_id: str) -> Dict[str, Any]:
        document = self.get_project(project_id)
        self._update_registry(project_id, activate=True)
        LOGGER.info("Switched active project to %s", project_id)
        return document

    def register_path(self, project_id: str, path_name: str) -> Dict[str, Any]:
        """Record ``path_name`` on the project and make it the active path."""
        path_name = validate_identifier(path_name, "path_name", operation="register_path")

        def _register(current: Any) -> Dict[str, Any]:
            if not isinstance(current, Mapping):
                raise ProjectNotFoundError(project_id)
            document = dict(current)
            paths = document.get("learning_paths")
            paths = list(paths) if isinstance(paths, list) else []
            if path_name not in paths:
                paths.append(path_name)
            document["learning_paths"] = paths
            document["active_path"] = path_name
            document["updated_at"] = utc_now().isoformat()
            return document

        return self.store.update(project_id, CONFIG_FILE_NAME, _register, timeout=self.lock_timeout)
