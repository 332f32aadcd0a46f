"""Lock-guarded, crash-consistent JSON document store for projects and paths.

Layout under the storage root::

    config.json                          global registry (project_id=None)
    projects/<project_id>/config.json    project configuration
    projects/<project_id>/paths/<path>/hta.json

Disk is the source of truth: nothing is cached between calls. Every HTA tree
passes through the structural validator on both load and save.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path, PurePosixPath
from typing import Any, Callable, Dict, List, Mapping, Optional

from ..config import load_config, lock_timeout, resolve_data_dir
from ..errors import DataPersistenceError, RequiredFieldsError
from ..telemetry import emit_event
from .atomic import atomic_write_bytes, dump_document
from .locks import LockManager, ResourceKey
from .validation import validate_hta_structure

__all__ = [
    "CONFIG_FILE_NAME",
    "DocumentStore",
    "GLOBAL_SCOPE",
    "TREE_FILE_NAME",
    "is_tree_resource",
    "tree_resource",
    "validate_identifier",
]

LOGGER = logging.getLogger(__name__)

PROJECTS_DIR = "projects"
PATHS_DIR = "paths"
CONFIG_FILE_NAME = "config.json"
TREE_FILE_NAME = "hta.json"
GLOBAL_SCOPE = ""

Mutator = Callable[[Optional[Any]], Any]


def validate_identifier(value: Any, field: str, *, operation: str = "store") -> str:
    """Reject identifiers that are empty or could escape their directory."""
    if not isinstance(value, str):
        raise RequiredFieldsError([field], operation)
    candidate = value.strip()
    if (
        not candidate
        or candidate in {".", ".."}
        or "/" in candidate
        or "\\" in candidate
        or "\x00" in candidate
    ):
        raise RequiredFieldsError([field], operation)
    return candidate


def tree_resource(path_name: str) -> str:
    """Resource name of the HTA tree document for ``path_name``."""
    name = validate_identifier(path_name, "path_name", operation="tree_resource")
    return f"{PATHS_DIR}/{name}/{TREE_FILE_NAME}"


def is_tree_resource(resource: str) -> bool:
    return PurePosixPath(resource).name == TREE_FILE_NAME


def _resource_parts(resource: Any) -> List[str]:
    if not isinstance(resource, str) or not resource.strip():
        raise RequiredFieldsError(["resource"], "store")
    pure = PurePosixPath(resource.strip())
    if pure.is_absolute():
        raise RequiredFieldsError(["resource"], "store")
    return [validate_identifier(part, "resource") for part in pure.parts]


class DocumentStore:
    """Load/save JSON documents keyed by ``(project_id, resource)``.

    ``save`` and ``update`` hold the lock manager's token for the key for the
    whole read-modify-write, so at most one write per key is in flight and the
    file always holds exactly one caller's payload. ``load`` takes no lock.
    """

    def __init__(
        self,
        root: Path | str,
        *,
        lock_manager: Optional[LockManager] = None,
        lock_timeout: Optional[float] = None,
    ) -> None:
        self.root = Path(root).expanduser().resolve()
        self._owns_locks = lock_manager is None
        self.locks = lock_manager if lock_manager is not None else LockManager(default_timeout=lock_timeout)

    @classmethod
    def from_config(
        cls,
        config: Optional[Mapping[str, Any]] = None,
        *,
        lock_manager: Optional[LockManager] = None,
    ) -> "DocumentStore":
        data = config if config is not None else load_config()
        return cls(resolve_data_dir(data), lock_manager=lock_manager, lock_timeout=lock_timeout(data))

    def close(self) -> None:
        """Shut down the lock manager when this store created it."""
        if self._owns_locks:
            self.locks.shutdown()

    def __enter__(self) -> "DocumentStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # Layout ---------------------------------------------------------------------------
    def project_dir(self, project_id: str) -> Path:
        return self.root / PROJECTS_DIR / validate_identifier(project_id, "project_id")

    def resource_path(self, project_id: Optional[str], resource: str) -> Path:
        parts = _resource_parts(resource)
        base = self.root if project_id is None else self.project_dir(project_id)
        return base.joinpath(*parts)

    @staticmethod
    def key(project_id: Optional[str], resource: str) -> ResourceKey:
        scope = GLOBAL_SCOPE if project_id is None else validate_identifier(project_id, "project_id")
        return (scope, "/".join(_resource_parts(resource)))

    def exists(self, project_id: Optional[str], resource: str) -> bool:
        return self.resource_path(project_id, resource).is_file()

    def list_projects(self) -> List[str]:
        projects_root = self.root / PROJECTS_DIR
        if not projects_root.is_dir():
            return []
        return sorted(entry.name for entry in projects_root.iterdir() if entry.is_dir())

    def list_paths(self, project_id: str) -> List[str]:
        paths_root = self.project_dir(project_id) / PATHS_DIR
        if not paths_root.is_dir():
            return []
        return sorted(
            entry.name for entry in paths_root.iterdir() if (entry / TREE_FILE_NAME).is_file()
        )

    # Documents ------------------------------------------------------------------------
    def load(self, project_id: Optional[str], resource: str) -> Optional[Any]:
        """Return the stored document, or ``None`` when it does not exist.

        HTA trees come back structurally repaired; repairs are reported but not
        written back.
        """
        path = self.resource_path(project_id, resource)
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as error:
            raise DataPersistenceError("load", path, str(error)) from error
        try:
            document = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as error:
            raise DataPersistenceError("load", path, f"invalid JSON: {error}") from error
        if is_tree_resource(resource):
            document = self._heal(project_id, resource, document, phase="load")
        return document

    def save(
        self,
        project_id: Optional[str],
        resource: str,
        document: Any,
        *,
        timeout: Optional[float] = None,
    ) -> None:
        """Validate (for trees) and atomically persist ``document`` under the key lock."""
        if document is None:
            raise RequiredFieldsError(["document"], "save")
        key = self.key(project_id, resource)
        with self.locks.acquire(key, timeout=timeout):
            self._write_locked(project_id, resource, document)

    def update(
        self,
        project_id: Optional[str],
        resource: str,
        mutator: Mutator,
        *,
        timeout: Optional[float] = None,
    ) -> Any:
        """Read-modify-write under a single lock hold.

        ``mutator`` receives the current (repaired) document or ``None`` and
        returns the document to persist. Returning ``None`` leaves the file as
        it was. Returns what was persisted.
        """
        key = self.key(project_id, resource)
        with self.locks.acquire(key, timeout=timeout):
            current = self.load(project_id, resource)
            updated = mutator(current)
            if updated is None:
                return current
            return self._write_locked(project_id, resource, updated)

    # Convenience ----------------------------------------------------------------------
    def load_tree(self, project_id: str, path_name: str) -> Optional[Dict[str, Any]]:
        return self.load(project_id, tree_resource(path_name))

    def save_tree(
        self,
        project_id: str,
        path_name: str,
        tree: Mapping[str, Any],
        *,
        timeout: Optional[float] = None,
    ) -> None:
        self.save(project_id, tree_resource(path_name), tree, timeout=timeout)

    # Internals ------------------------------------------------------------------------
    def _write_locked(self, project_id: Optional[str], resource: str, document: Any) -> Any:
        path = self.resource_path(project_id, resource)
        if is_tree_resource(resource):
            document = self._heal(project_id, resource, document, phase="save")
        payload = dump_document(document)
        atomic_write_bytes(path, payload)
        LOGGER.debug("Saved %s (%d bytes)", path, len(payload))
        emit_event(
            "store.saved",
            project_id=project_id,
            resource=resource,
            bytes=len(payload),
        )
        return document

    def _heal(self, project_id: Optional[str], resource: str, document: Any, *, phase: str) -> Dict[str, Any]:
        result = validate_hta_structure(document)
        if result.repaired:
            LOGGER.warning(
                "Repaired HTA structure for %s/%s on %s: %s",
                project_id,
                resource,
                phase,
                "; ".join(result.repairs),
            )
            emit_event(
                "store.repaired",
                project_id=project_id,
                resource=resource,
                phase=phase,
                fields=result.repaired_fields,
            )
        return result.document
