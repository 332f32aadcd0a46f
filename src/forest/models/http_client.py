"""HTTP adapter for a messages-API style generative collaborator."""

from __future__ import annotations

import json
import os
from typing import Any, Callable, Dict, Optional

from .intelligence import (
    IntelligenceClient,
    IntelligenceRequest,
    IntelligenceTransportError,
    IntelligenceUnavailableError,
)

__all__ = ["API_KEY_ENV", "HttpIntelligenceClient"]

API_KEY_ENV = "FOREST_API_KEY"
DEFAULT_BASE_URL = "https://api.anthropic.com/v1/messages"
API_VERSION = "2023-06-01"

Transport = Callable[[Dict[str, Any]], str]


class HttpIntelligenceClient(IntelligenceClient):
    """POST requests to a JSON endpoint and hand back the decoded body.

    The decoded JSON (or the raw text when the body is not JSON) is returned
    untouched for the response parser to interpret.
    """

    def __init__(
        self,
        *,
        model: str,
        api_key: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        transport: Optional[Transport] = None,
        timeout: float = 60.0,
        max_attempts: int = 2,
        retry_delay: float = 0.5,
        max_tokens: int = 4096,
    ) -> None:
        if not model or not model.strip():
            raise IntelligenceUnavailableError("A model name is required for the HTTP collaborator.")
        super().__init__(
            model.strip(),
            max_attempts=max_attempts,
            retry_delay=retry_delay,
            max_tokens=max_tokens,
        )
        self._api_key = api_key or os.getenv(API_KEY_ENV)
        self._base_url = base_url
        self._timeout = timeout
        self._transport = transport or self._http_transport

        if transport is None and not self._api_key:
            raise IntelligenceUnavailableError(
                f"An API key is required when using the default transport (set {API_KEY_ENV})."
            )

    @classmethod
    def from_config(cls, config: Dict[str, Any], *, transport: Optional[Transport] = None) -> "HttpIntelligenceClient":
        section = config.get("intelligence") or {}
        kwargs: Dict[str, Any] = {}
        timeout_value = section.get("timeout")
        if isinstance(timeout_value, (int, float)) and timeout_value > 0:
            kwargs["timeout"] = float(timeout_value)
        max_tokens_value = section.get("max_tokens")
        if isinstance(max_tokens_value, int) and max_tokens_value > 0:
            kwargs["max_tokens"] = max_tokens_value
        base_url_value = section.get("base_url")
        if isinstance(base_url_value, str) and base_url_value.strip():
            kwargs["base_url"] = base_url_value.strip()
        api_key_value = section.get("api_key")
        if isinstance(api_key_value, str) and api_key_value.strip():
            kwargs["api_key"] = api_key_value.strip()
        return cls(model=str(section.get("model") or ""), transport=transport, **kwargs)

    def _raw_invoke(self, request: IntelligenceRequest) -> Any:
        payload = request.to_payload(self.model)
        try:
            raw_response = self._transport(payload)
        except IntelligenceTransportError:
            raise
        except Exception as error:
            raise IntelligenceTransportError(f"Transport rejected the request: {error}") from error
        if not isinstance(raw_response, str):
            return raw_response
        try:
            return json.loads(raw_response)
        except json.JSONDecodeError:
            return raw_response

    def _http_transport(self, payload: Dict[str, Any]) -> str:
        import urllib.error
        import urllib.request

        data = json.dumps(payload).encode("utf-8")
        request = urllib.request.Request(
            self._base_url,
            data=data,
            headers={
                "Content-Type": "application/json",
                "x-api-key": self._api_key or "",
                "anthropic-version": API_VERSION,
            },
            method="POST",
        )
        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                raw = response.read()
                status = getattr(response, "status", 200)
        except TimeoutError as error:  # pragma: no cover - network-dependent
            raise IntelligenceTransportError("Collaborator response timed out.") from error
        except urllib.error.HTTPError as error:  # pragma: no cover - network-dependent
            message = error.read().decode("utf-8", errors="ignore")
            raise IntelligenceTransportError(f"HTTP {error.code}: {message}") from error
        except urllib.error.URLError as error:  # pragma: no cover - network-dependent
            raise IntelligenceTransportError(f"Failed to reach collaborator: {error.reason}") from error

        if status >= 400:
            raise IntelligenceTransportError(f"Unexpected HTTP status {status}")
        return raw.decode("utf-8")
