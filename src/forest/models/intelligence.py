"""Interface to the external generative text collaborator."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Protocol, runtime_checkable

from ..errors import ForestError
from ..ingest.fallback import synthesize

__all__ = [
    "IntelligenceClient",
    "IntelligenceError",
    "IntelligenceRequest",
    "IntelligenceTransportError",
    "IntelligenceUnavailableError",
    "OfflineIntelligenceClient",
    "SupportsIntelligence",
]

LOGGER = logging.getLogger(__name__)


class IntelligenceError(ForestError):
    """Base error for collaborator failures (as opposed to malformed responses)."""


class IntelligenceTransportError(IntelligenceError):
    """Raised when the transport fails to return a response."""


class IntelligenceUnavailableError(IntelligenceError):
    """Raised when no usable collaborator is configured."""


@runtime_checkable
class SupportsIntelligence(Protocol):
    def request_intelligence(self, request_kind: str, payload: Mapping[str, Any]) -> Any:
        ...


@dataclass(slots=True)
class IntelligenceRequest:
    """Normalised request handed to a concrete transport."""

    kind: str
    prompt: str
    system_prompt: Optional[str] = None
    max_tokens: int = 4096
    inputs: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self, model: str) -> Dict[str, Any]:
        """Render a messages-API style JSON body. ``inputs`` are never sent."""
        payload: Dict[str, Any] = {
            "model": model,
            "max_tokens": self.max_tokens,
            "messages": [{"role": "user", "content": self.prompt}],
        }
        if self.system_prompt:
            payload["system"] = self.system_prompt
        return payload


class IntelligenceClient:
    """Base collaborator client with transport retries.

    Subclasses implement :meth:`_raw_invoke`, returning the response exactly
    as received. Responses are opaque here; interpreting them is the response
    parser's job.
    """

    def __init__(
        self,
        model: str,
        *,
        max_attempts: int = 1,
        retry_delay: float = 0.5,
        max_tokens: int = 4096,
    ) -> None:
        self._model = model
        self._max_attempts = max(1, max_attempts)
        self._retry_delay = retry_delay
        self._max_tokens = max_tokens

    @property
    def model(self) -> str:
        return self._model

    def request_intelligence(self, request_kind: str, payload: Mapping[str, Any]) -> Any:
        prompt = payload.get("prompt") if isinstance(payload, Mapping) else None
        if not isinstance(prompt, str) or not prompt.strip():
            raise IntelligenceError(f"Request '{request_kind}' requires a non-empty prompt")
        request = IntelligenceRequest(
            kind=request_kind,
            prompt=prompt,
            system_prompt=payload.get("system") or None,
            max_tokens=self._max_tokens,
            inputs={key: value for key, value in payload.items() if key not in ("prompt", "system")},
        )

        last_error: Optional[Exception] = None
        for attempt in range(1, self._max_attempts + 1):
            try:
                return self._raw_invoke(request)
            except IntelligenceTransportError as error:
                last_error = error
                LOGGER.warning(
                    "Collaborator request '%s' failed (attempt %d/%d): %s",
                    request_kind,
                    attempt,
                    self._max_attempts,
                    error,
                )
                if attempt < self._max_attempts:
                    time.sleep(self._retry_delay)
        raise IntelligenceTransportError(
            f"Collaborator request '{request_kind}' failed after {self._max_attempts} attempt(s)"
        ) from last_error

    def _raw_invoke(self, request: IntelligenceRequest) -> Any:
        raise NotImplementedError("Subclasses must implement _raw_invoke().")


class OfflineIntelligenceClient(IntelligenceClient):
    """Deterministic stand-in that answers with a fenced JSON block.

    The branch skeleton comes from :func:`forest.ingest.fallback.synthesize`
    seeded with the ``goal`` and ``context`` payload keys when present,
    otherwise with the first prompt line.
    """

    def __init__(self) -> None:
        super().__init__("offline", max_attempts=1)

    def _raw_invoke(self, request: IntelligenceRequest) -> Any:
        goal = request.inputs.get("goal")
        context = request.inputs.get("context")
        if not isinstance(goal, str) or not goal.strip():
            goal = request.prompt.strip().splitlines()[0]
        groups = synthesize(goal, context if isinstance(context, str) else "")
        body = json.dumps({"branch_tasks": groups}, indent=2)
        text = f"Here is a starting structure for: {goal}\n\n```json\n{body}\n```\n"
        return {"role": "assistant", "content": [{"type": "text", "text": text}]}
