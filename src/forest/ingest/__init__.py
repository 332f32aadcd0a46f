"""Response ingestion: parsing, fallback synthesis, and persistence."""

from .fallback import synthesize
from .parser import ParseFailure, ParseStrategy, ParseSuccess, parse
from .pipeline import IngestionPipeline, IngestResult, IngestState
from .transform import TreeCollections, transform_groups

__all__ = [
    "IngestResult",
    "IngestState",
    "IngestionPipeline",
    "ParseFailure",
    "ParseStrategy",
    "ParseSuccess",
    "TreeCollections",
    "parse",
    "synthesize",
    "transform_groups",
]
