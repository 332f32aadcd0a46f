"""Exception hierarchy shared by the store, project layer, and CLI."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Hashable, Iterable, Mapping, Optional

__all__ = [
    "DataPersistenceError",
    "ForestError",
    "LockManagerClosedError",
    "LockTimeoutError",
    "ProjectNotFoundError",
    "RequiredFieldsError",
]


class ForestError(Exception):
    """Base error carrying a structured context mapping."""

    def __init__(self, message: str, *, context: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = dict(context or {})

    def to_dict(self) -> Dict[str, Any]:
        cause = self.__cause__
        return {
            "error": type(self).__name__,
            "message": self.message,
            "context": dict(self.context),
            "cause": str(cause) if cause is not None else None,
        }


class DataPersistenceError(ForestError, OSError):
    """Raised when a document cannot be read from or written to disk."""

    def __init__(self, operation: str, path: Path | str, reason: str = "") -> None:
        message = f"Data persistence operation '{operation}' failed for {Path(path).as_posix()}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, context={"operation": operation, "path": str(path)})
        self.operation = operation
        self.path = Path(path)

    def __str__(self) -> str:
        return self.message


class LockTimeoutError(ForestError, TimeoutError):
    """Raised when a resource lock is not acquired within the caller's budget."""

    def __init__(self, key: Hashable, timeout: float) -> None:
        super().__init__(
            f"Timed out after {timeout:.3f}s waiting for lock on {key!r}",
            context={"key": repr(key), "timeout": timeout},
        )
        self.key = key
        self.timeout = timeout

    def __str__(self) -> str:
        return self.message


class LockManagerClosedError(ForestError):
    """Raised when a lock is requested after the manager was shut down."""


class RequiredFieldsError(ForestError, ValueError):
    """Raised when mandatory inputs are missing or malformed."""

    def __init__(self, missing: Iterable[str], operation: str = "unknown") -> None:
        fields = [str(item) for item in missing]
        super().__init__(
            f"Missing or invalid fields for {operation}: {', '.join(fields)}",
            context={"fields": fields, "operation": operation},
        )
        self.fields = fields
        self.operation = operation

    def __str__(self) -> str:
        return self.message


class ProjectNotFoundError(ForestError, LookupError):
    """Raised when a project configuration document does not exist."""

    def __init__(self, project_id: str) -> None:
        super().__init__(f"Project '{project_id}' does not exist", context={"project_id": project_id})
        self.project_id = project_id

    def __str__(self) -> str:
        return self.message
