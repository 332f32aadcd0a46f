"""Forest: crash-consistent planning documents and generative-response ingestion."""

from importlib import import_module
from typing import Any

__all__ = ["DocumentStore", "IngestionPipeline", "LockManager"]

_EXPORTS = {
    "DocumentStore": "forest.memory.store",
    "LockManager": "forest.memory.locks",
    "IngestionPipeline": "forest.ingest.pipeline",
}


def __getattr__(name: str) -> Any:
    """Lazily resolve top-level exports to keep ``import forest`` cheap."""
    module_name = _EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    return getattr(import_module(module_name), name)
