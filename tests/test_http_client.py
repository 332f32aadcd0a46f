from __future__ import annotations

import json

import pytest

from forest.ingest.parser import ParseStrategy, parse
from forest.models.http_client import HttpIntelligenceClient
from forest.models.intelligence import (
    IntelligenceError,
    IntelligenceTransportError,
    IntelligenceUnavailableError,
    OfflineIntelligenceClient,
)


def _messages_response(text: str) -> str:
    return json.dumps(
        {
            "id": "msg_mock",
            "type": "message",
            "role": "assistant",
            "content": [{"type": "text", "text": text}],
            "stop_reason": "end_turn",
        }
    )


def test_http_client_posts_messages_payload_and_returns_decoded_body() -> None:
    captured = {}

    def transport(payload):
        captured.update(payload)
        return _messages_response('```json\n[{"title": "Task A"}]\n```')

    client = HttpIntelligenceClient(model="planner-model", transport=transport, max_tokens=512)
    response = client.request_intelligence("task_generation", {"prompt": "Plan my week"})

    assert captured["model"] == "planner-model"
    assert captured["max_tokens"] == 512
    assert captured["messages"] == [{"role": "user", "content": "Plan my week"}]
    outcome = parse(response)
    assert outcome.strategy is ParseStrategy.FENCED_BLOCK
    assert outcome.groups == [{"title": "Task A"}]


def test_non_json_body_is_returned_as_text() -> None:
    client = HttpIntelligenceClient(model="m", transport=lambda payload: "plain words")
    assert client.request_intelligence("task_generation", {"prompt": "x"}) == "plain words"


def test_transport_failures_are_typed_and_retried() -> None:
    attempts = []

    def transport(payload):
        attempts.append(payload)
        raise ConnectionError("refused")

    client = HttpIntelligenceClient(model="m", transport=transport, max_attempts=3, retry_delay=0)

    with pytest.raises(IntelligenceTransportError):
        client.request_intelligence("task_generation", {"prompt": "x"})
    assert len(attempts) == 3


def test_missing_key_with_default_transport_is_unavailable() -> None:
    with pytest.raises(IntelligenceUnavailableError):
        HttpIntelligenceClient(model="m")


def test_missing_model_is_unavailable() -> None:
    with pytest.raises(IntelligenceUnavailableError):
        HttpIntelligenceClient.from_config({"intelligence": {"model": ""}}, transport=lambda payload: "")


def test_from_config_reads_key_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("FOREST_API_KEY", "secret")
    client = HttpIntelligenceClient.from_config(
        {"intelligence": {"model": "m", "timeout": 5, "max_tokens": 100}}
    )
    assert client.model == "m"


def test_empty_prompt_is_rejected() -> None:
    with pytest.raises(IntelligenceError):
        OfflineIntelligenceClient().request_intelligence("task_generation", {"prompt": "  "})


def test_offline_client_answers_with_fenced_json() -> None:
    response = OfflineIntelligenceClient().request_intelligence(
        "task_generation", {"prompt": "ignored", "goal": "Learn X"}
    )

    text = response["content"][0]["text"]
    assert "```json" in text
    outcome = parse(response)
    assert outcome.strategy is ParseStrategy.FENCED_BLOCK
    assert outcome.groups[0]["branch_name"] == "Foundation"
