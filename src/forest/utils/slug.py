"""Deterministic identifier slugs for branches, tasks, and resource names."""

from __future__ import annotations

import hashlib
import re
from typing import Collection, Pattern

_INVALID_CHARS: Pattern[str] = re.compile(r"[^a-z0-9]+")
_HYPHEN_COLLAPSE: Pattern[str] = re.compile(r"-{2,}")

__all__ = ["slugify", "unique_slug"]


def slugify(value: object, *, fallback: str = "item", max_length: int = 48) -> str:
    """Return a lowercase hyphenated slug for ``value``.

    Over-long slugs keep a readable prefix and gain a short content hash so
    distinct inputs stay distinct after truncation.
    """
    text = str(value or "").strip().lower()
    slug = _HYPHEN_COLLAPSE.sub("-", _INVALID_CHARS.sub("-", text)).strip("-")
    if not slug:
        slug = _HYPHEN_COLLAPSE.sub("-", _INVALID_CHARS.sub("-", fallback.lower())).strip("-") or "item"
    if len(slug) <= max_length:
        return slug
    digest = hashlib.sha256(slug.encode("utf-8")).hexdigest()[:8]
    prefix = slug[: max(max_length - len(digest) - 1, 1)].rstrip("-")
    return f"{prefix}-{digest}"


def unique_slug(base: str, taken: Collection[str]) -> str:
    """Return ``base`` or the first ``base-N`` (N >= 2) not present in ``taken``."""
    if base not in taken:
        return base
    counter = 2
    while f"{base}-{counter}" in taken:
        counter += 1
    return f"{base}-{counter}"
