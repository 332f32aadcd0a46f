"""Ingestion pipeline: collaborator response -> validated, persisted HTA tree.

States advance ``REQUESTED -> PARSING -> (PARSED | FALLBACK) -> VALIDATING ->
PERSISTED``. There is no error state for collaborator problems: unusable or
missing content always routes through ``FALLBACK``. Storage and locking
failures still propagate to the caller.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Tuple

from ..memory.metrics import compute_hierarchy_metadata
from ..memory.schema import utc_now
from ..memory.store import DocumentStore, tree_resource, validate_identifier
from ..memory.validation import empty_tree, repair_hta_structure
from ..prompts import analyze_goal_complexity, build_branch_prompt
from ..telemetry import emit_event
from .fallback import synthesize
from .parser import ParseFailure, ParseOutcome, ParseStrategy, ParseSuccess, parse
from .transform import TreeCollections, transform_groups

if TYPE_CHECKING:
    from ..models.intelligence import SupportsIntelligence

__all__ = [
    "SOURCE_FALLBACK",
    "SOURCE_PARSED",
    "TASK_GENERATION_REQUEST",
    "IngestResult",
    "IngestState",
    "IngestionPipeline",
]

LOGGER = logging.getLogger(__name__)

SOURCE_PARSED = "parsed"
SOURCE_FALLBACK = "fallback"
TASK_GENERATION_REQUEST = "task_generation"


class IngestState(str, Enum):
    REQUESTED = "requested"
    PARSING = "parsing"
    PARSED = "parsed"
    FALLBACK = "fallback"
    VALIDATING = "validating"
    PERSISTED = "persisted"


@dataclass
class IngestResult:
    """Summary of one ingestion run."""

    project_id: str
    path_name: str
    source: str
    branch_count: int
    task_count: int
    strategy: ParseStrategy
    transitions: Tuple[IngestState, ...] = ()
    fallback_reason: Optional[str] = None
    tree: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def used_fallback(self) -> bool:
        return self.source == SOURCE_FALLBACK

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "branchCount": self.branch_count,
            "taskCount": self.task_count,
        }


class IngestionPipeline:
    """Compose the response parser, fallback synthesizer, and document store."""

    def __init__(
        self,
        store: DocumentStore,
        *,
        lock_timeout: Optional[float] = None,
        collaborator_timeout: Optional[float] = 60.0,
    ) -> None:
        self.store = store
        self.lock_timeout = lock_timeout
        self.collaborator_timeout = collaborator_timeout

    def ingest(
        self,
        project_id: str,
        path_name: str,
        goal: str,
        context: str,
        response: Any,
    ) -> IngestResult:
        """Parse ``response`` (or synthesize a skeleton) and persist the tree."""
        return self._run(project_id, path_name, goal, context, parse_outcome=None, response=response)

    def build_tree(
        self,
        project_id: str,
        path_name: str,
        goal: str,
        context: str = "",
        client: Optional[SupportsIntelligence] = None,
        *,
        timeout: Optional[float] = None,
        preferences: Optional[Mapping[str, Any]] = None,
    ) -> IngestResult:
        """Ask ``client`` for a tree and ingest whatever comes back.

        The collaborator call runs in a daemon thread bounded by ``timeout``
        (falling back to ``collaborator_timeout``). No lock is held while
        waiting on it.
        """
        validate_identifier(project_id, "project_id", operation="build_tree")
        tree_resource(path_name)
        complexity = analyze_goal_complexity(goal, context)
        prompt = build_branch_prompt(
            goal,
            context,
            complexity,
            preferences=dict(preferences) if preferences else None,
        )
        payload = {"prompt": prompt, "goal": goal, "context": context}
        response, failure = self._request(client, payload, timeout)
        if failure is not None:
            outcome: Optional[ParseOutcome] = ParseFailure(attempted=(), reason=failure)
            return self._run(project_id, path_name, goal, context, parse_outcome=outcome, response=None)
        return self._run(project_id, path_name, goal, context, parse_outcome=None, response=response)

    # Internals ------------------------------------------------------------------------
    def _request(
        self,
        client: Optional[SupportsIntelligence],
        payload: Dict[str, Any],
        timeout: Optional[float],
    ) -> Tuple[Any, Optional[str]]:
        if client is None:
            return None, "no collaborator configured"
        budget = timeout if timeout is not None else self.collaborator_timeout
        reply: Dict[str, Any] = {}

        def _call() -> None:
            try:
                reply["response"] = client.request_intelligence(TASK_GENERATION_REQUEST, payload)
            except Exception as error:  # noqa: BLE001 - every collaborator failure routes to fallback
                reply["error"] = error

        # Daemon thread: an abandoned call must not keep the process alive at exit.
        worker = threading.Thread(target=_call, name="forest-intelligence", daemon=True)
        worker.start()
        worker.join(budget)
        if worker.is_alive():
            LOGGER.warning("Collaborator did not answer within %.1fs", budget)
            return None, f"collaborator timed out after {budget}s"
        error = reply.get("error")
        if error is not None:
            LOGGER.warning("Collaborator request failed: %s", error, exc_info=error)
            return None, f"{type(error).__name__}: {error}"
        return reply.get("response"), None

    @staticmethod
    def _parse(response: Any) -> ParseOutcome:
        try:
            return parse(response)
        except Exception as error:  # noqa: BLE001 - unusable content routes to fallback
            LOGGER.warning("Response parsing failed: %s", error, exc_info=True)
            return ParseFailure(attempted=(), reason=f"parser error: {type(error).__name__}: {error}")

    def _run(
        self,
        project_id: str,
        path_name: str,
        goal: str,
        context: str,
        *,
        parse_outcome: Optional[ParseOutcome],
        response: Any,
    ) -> IngestResult:
        project_id = validate_identifier(project_id, "project_id", operation="ingest")
        resource = tree_resource(path_name)
        path_name = path_name.strip()

        transitions: List[IngestState] = [IngestState.REQUESTED, IngestState.PARSING]
        outcome = parse_outcome if parse_outcome is not None else self._parse(response)

        collections: Optional[TreeCollections] = None
        fallback_reason: Optional[str] = None
        if isinstance(outcome, ParseSuccess):
            try:
                collections = transform_groups(outcome.groups)
            except Exception as error:  # noqa: BLE001 - unusable content routes to fallback
                LOGGER.warning("Could not transform parsed groups: %s", error, exc_info=True)
                fallback_reason = f"{outcome.strategy.value} content unusable: {type(error).__name__}"
                collections = None
            else:
                if collections.task_count == 0:
                    fallback_reason = f"{outcome.strategy.value} yielded no tasks"
                    collections = None
        else:
            fallback_reason = outcome.reason

        if collections is not None:
            transitions.append(IngestState.PARSED)
            source = SOURCE_PARSED
        else:
            transitions.append(IngestState.FALLBACK)
            source = SOURCE_FALLBACK
            collections = transform_groups(synthesize(goal, context))
            LOGGER.warning(
                "Using synthesized tree for %s/%s: %s", project_id, path_name, fallback_reason
            )
            emit_event(
                "ingest.fallback",
                project_id=project_id,
                path_name=path_name,
                reason=fallback_reason,
            )

        transitions.append(IngestState.VALIDATING)

        def _merge(current: Any) -> Dict[str, Any]:
            document = dict(current) if isinstance(current, Mapping) else empty_tree()
            document["strategicBranches"] = collections.branches
            document["frontierNodes"] = collections.tasks
            document.setdefault("projectId", project_id)
            document.setdefault("pathName", path_name)
            if goal:
                document.setdefault("goal", goal)
            if context:
                document.setdefault("context", context)
            document["generationContext"] = {
                "source": source,
                "strategy": outcome.strategy.value,
                "generatedAt": utc_now().isoformat(),
            }
            document = repair_hta_structure(document)
            document["hierarchyMetadata"] = compute_hierarchy_metadata(document)
            return document

        persisted = self.store.update(project_id, resource, _merge, timeout=self.lock_timeout)
        transitions.append(IngestState.PERSISTED)

        result = IngestResult(
            project_id=project_id,
            path_name=path_name,
            source=source,
            branch_count=collections.branch_count,
            task_count=collections.task_count,
            strategy=outcome.strategy,
            transitions=tuple(transitions),
            fallback_reason=fallback_reason,
            tree=persisted,
        )
        LOGGER.info(
            "Ingested %s/%s from %s: %d branches, %d tasks",
            project_id,
            path_name,
            source,
            result.branch_count,
            result.task_count,
        )
        emit_event("ingest.completed", project_id=project_id, path_name=path_name, **result.to_dict())
        return result
