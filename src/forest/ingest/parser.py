"""Extract branch/task groups from loosely formatted collaborator responses.

Strategies run in a fixed order and the first one that yields a list wins:

1. ``DIRECT_FIELD``   - a ``branch_tasks``/``tasks`` list on the response, or
   the response itself being a list of groups.
2. ``FENCED_BLOCK``   - a fenced code block inside the response text.
3. ``TOP_LEVEL_LIST`` - the first balanced ``[...]`` span inside the text.

When nothing matches, :func:`parse` returns a :class:`ParseFailure` value
rather than raising.
"""

from __future__ import annotations

import ast
import json
import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator, List, Optional, Tuple, Union

__all__ = [
    "DIRECT_FIELDS",
    "ParseFailure",
    "ParseOutcome",
    "ParseStrategy",
    "ParseSuccess",
    "iter_response_text",
    "parse",
]

LOGGER = logging.getLogger(__name__)

DIRECT_FIELDS = ("branch_tasks", "tasks")
_TEXT_FIELDS = ("text", "completion", "content")
_FENCE_PATTERN = re.compile(r"```[ \t]*(?:json|JSON|javascript|js)?[ \t]*\r?\n?(.*?)```", re.DOTALL)
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")


class ParseStrategy(str, Enum):
    DIRECT_FIELD = "direct_field"
    FENCED_BLOCK = "fenced_block"
    TOP_LEVEL_LIST = "top_level_list"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class ParseSuccess:
    strategy: ParseStrategy
    groups: List[Any]

    @property
    def succeeded(self) -> bool:
        return True


@dataclass(frozen=True)
class ParseFailure:
    """Typed outcome for a response no strategy could interpret."""

    attempted: Tuple[ParseStrategy, ...]
    reason: str

    @property
    def strategy(self) -> ParseStrategy:
        return ParseStrategy.UNRECOGNIZED

    @property
    def succeeded(self) -> bool:
        return False


ParseOutcome = Union[ParseSuccess, ParseFailure]

_STRATEGY_ORDER = (
    ParseStrategy.DIRECT_FIELD,
    ParseStrategy.FENCED_BLOCK,
    ParseStrategy.TOP_LEVEL_LIST,
)


def parse(response: Any) -> ParseOutcome:
    """Run each strategy in order and return the first list it produces."""
    if response is None:
        return ParseFailure(attempted=(), reason="empty response")

    texts = list(iter_response_text(response))
    strategies = (
        (ParseStrategy.DIRECT_FIELD, lambda: _direct_field(response)),
        (ParseStrategy.FENCED_BLOCK, lambda: _first_result(_fenced_block(text) for text in texts)),
        (ParseStrategy.TOP_LEVEL_LIST, lambda: _first_result(_top_level_list(text) for text in texts)),
    )
    attempted: List[ParseStrategy] = []
    for strategy, run in strategies:
        attempted.append(strategy)
        groups = run()
        if groups is not None:
            LOGGER.debug("Parsed %d group(s) via %s", len(groups), strategy.value)
            return ParseSuccess(strategy=strategy, groups=groups)

    reason = "no text content" if not texts else "no list structure found in response text"
    return ParseFailure(attempted=tuple(attempted), reason=reason)


# Response shapes ------------------------------------------------------------------------
def _is_text_block(item: Any) -> bool:
    return isinstance(item, Mapping) and item.get("type") == "text" and isinstance(item.get("text"), str)


def _is_block_list(value: Any) -> bool:
    return (
        isinstance(value, list)
        and bool(value)
        and all(isinstance(item, Mapping) and "type" in item for item in value)
        and any(_is_text_block(item) for item in value)
    )


def iter_response_text(response: Any) -> Iterator[str]:
    """Yield every freeform text fragment carried by ``response``."""
    if isinstance(response, str):
        yield response
        return
    if isinstance(response, (bytes, bytearray)):
        yield bytes(response).decode("utf-8", errors="replace")
        return
    if _is_block_list(response):
        for block in response:
            if _is_text_block(block):
                yield block["text"]
        return
    if not isinstance(response, Mapping):
        return

    for field in _TEXT_FIELDS:
        value = response.get(field)
        if isinstance(value, str):
            yield value
        elif isinstance(value, list):
            for block in value:
                if isinstance(block, str):
                    yield block
                elif _is_text_block(block):
                    yield block["text"]

    choices = response.get("choices")
    if isinstance(choices, list):
        for choice in choices:
            if not isinstance(choice, Mapping):
                continue
            message = choice.get("message")
            if isinstance(message, Mapping) and isinstance(message.get("content"), str):
                yield message["content"]
            elif isinstance(choice.get("text"), str):
                yield choice["text"]


# Strategies -----------------------------------------------------------------------------
def _direct_field(response: Any) -> Optional[List[Any]]:
    if isinstance(response, list) and not _is_block_list(response):
        return response
    if isinstance(response, Mapping):
        for field in DIRECT_FIELDS:
            value = response.get(field)
            if isinstance(value, list):
                return value
    return None


def _fenced_block(text: str) -> Optional[List[Any]]:
    for match in _FENCE_PATTERN.finditer(text):
        body = match.group(1).strip()
        if not body:
            continue
        value = _deserialize(body)
        groups = _groups_from_value(value)
        if groups is not None:
            return groups
        LOGGER.debug("Fenced block did not hold a usable structure: %.80s", body)
    return None


def _top_level_list(text: str) -> Optional[List[Any]]:
    position = 0
    while True:
        span = _balanced_span(text, position)
        if span is None:
            return None
        start, end = span
        value = _deserialize(text[start:end])
        if isinstance(value, list):
            return value
        position = end


def _first_result(results: Any) -> Optional[List[Any]]:
    for result in results:
        if result is not None:
            return result
    return None


def _groups_from_value(value: Any) -> Optional[List[Any]]:
    if isinstance(value, list):
        return value
    if isinstance(value, Mapping):
        for field in DIRECT_FIELDS:
            candidate = value.get(field)
            if isinstance(candidate, list):
                return candidate
    return None


# Deserialisation ------------------------------------------------------------------------
class _Undecodable:
    pass


_UNDECODABLE = _Undecodable()


def _deserialize(candidate: str) -> Any:
    """Decode JSON, tolerating smart quotes, trailing commas, and Python literals.

    Returns a private sentinel (never raises) when every attempt fails.
    """
    text = _normalise_json_string(candidate.strip())
    if not text:
        return _UNDECODABLE
    for attempt in dict.fromkeys((text, _strip_trailing_commas(text))):
        try:
            return json.loads(attempt)
        except (ValueError, RecursionError):
            literal = _coerce_python_literal(attempt)
            if literal is not _UNDECODABLE:
                return literal
    return _UNDECODABLE


def _normalise_json_string(payload: str) -> str:
    """Normalise typographic characters generative models like to emit."""
    translation = {
        0x201C: '"',
        0x201D: '"',
        0x2018: "'",
        0x2019: "'",
        0xFF07: "'",
        0x2014: "-",
        0x2013: "-",
        0x2026: "...",
        0x00A0: " ",
        0xFEFF: "",
    }
    return payload.translate(str.maketrans(translation))


def _strip_trailing_commas(payload: str) -> str:
    return _TRAILING_COMMA.sub(r"\1", payload)


def _coerce_python_literal(candidate: str) -> Any:
    try:
        literal = ast.literal_eval(candidate)
    except (SyntaxError, ValueError, TypeError, MemoryError, RecursionError):
        return _UNDECODABLE
    return _normalise_literal(literal)


def _normalise_literal(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(key): _normalise_literal(sub) for key, sub in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_normalise_literal(item) for item in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def _balanced_span(text: str, start: int) -> Optional[Tuple[int, int]]:
    """Locate the first ``[...]`` span at or after ``start``, skipping quoted text."""
    opening = text.find("[", start)
    while opening != -1:
        depth = 0
        quote: Optional[str] = None
        escaped = False
        for index in range(opening, len(text)):
            char = text[index]
            if quote is not None:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == quote:
                    quote = None
                continue
            if char == '"' and depth > 0:
                quote = char
            elif char == "[":
                depth += 1
            elif char == "]":
                depth -= 1
                if depth == 0:
                    return opening, index + 1
        opening = text.find("[", opening + 1)
    return None
