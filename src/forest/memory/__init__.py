"""Persistence layer: locks, atomic writes, structural validation, and the document store."""

from .atomic import atomic_write_bytes, atomic_write_json
from .locks import LockManager, ResourceKey
from .store import DocumentStore, tree_resource
from .validation import HTA_COLLECTION_FIELDS, HTAValidation, repair_hta_structure, validate_hta_structure

__all__ = [
    "HTA_COLLECTION_FIELDS",
    "DocumentStore",
    "HTAValidation",
    "LockManager",
    "ResourceKey",
    "atomic_write_bytes",
    "atomic_write_json",
    "repair_hta_structure",
    "tree_resource",
    "validate_hta_structure",
]
