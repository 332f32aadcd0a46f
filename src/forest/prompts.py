"""Prompt construction and goal complexity heuristics for tree generation."""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Sequence

JSON_RESPONSE_INSTRUCTION = (
    "Return only JSON. Emit a single JSON object with a top-level \"branch_tasks\" array. "
    "Use double-quoted keys and strings. A fenced ```json block is acceptable; "
    "do not add commentary after it."
)

_COMMON_WORDS = frozenset(
    {"the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by", "a", "an"}
)
_SKILL_DOMAINS = ("technical", "creative", "business", "social", "physical", "mental", "financial")
_WORD_SPLIT = re.compile(r"[^\w]+")


@dataclass(frozen=True)
class GoalComplexity:
    """Sizing hints derived from a goal and its context."""

    score: int
    level: str
    recommended_depth: int
    main_branches: int
    tasks_per_branch: int
    estimated_tasks: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def extract_keywords(text: Optional[str]) -> List[str]:
    """Return distinct lowercase words longer than two characters, in order."""
    if not text:
        return []
    seen: Dict[str, None] = {}
    for word in _WORD_SPLIT.split(text.lower()):
        if len(word) > 2 and word not in _COMMON_WORDS:
            seen.setdefault(word, None)
    return list(seen)


def analyze_goal_complexity(goal: str, context: str = "") -> GoalComplexity:
    """Score a goal from 1 (simple) to 10 (complex) using keyword indicators."""
    text = f"{goal or ''} {context or ''}".lower()
    score = 5
    if "advanced" in text or "expert" in text:
        score += 2
    if "career" in text or "business" in text:
        score += 1
    if "from scratch" in text or "beginner" in text:
        score += 1
    if "credential" in text or "certificate" in text:
        score += 2
    if "simple" in text or "basic" in text:
        score -= 2
    if "hobby" in text or "fun" in text:
        score -= 1
    score += min(sum(1 for domain in _SKILL_DOMAINS if domain in text), 3)
    score = max(1, min(10, score))

    if score <= 3:
        level, depth = "simple", 2
    elif score <= 6:
        level, depth = "moderate", 3
    else:
        level, depth = "complex", 4
    main_branches = 3 + score // 2
    tasks_per_branch = 5 + score
    return GoalComplexity(
        score=score,
        level=level,
        recommended_depth=depth,
        main_branches=main_branches,
        tasks_per_branch=tasks_per_branch,
        estimated_tasks=main_branches * tasks_per_branch,
    )


def render_preferences(preferences: Optional[Dict[str, Any]]) -> str:
    if not preferences:
        return ""
    lines = [
        f"- {key.replace('_', ' ')}: {value}"
        for key, value in preferences.items()
        if value not in (None, "", [], {})
    ]
    if not lines:
        return ""
    return "## Constraints\n" + "\n".join(lines)


def build_branch_prompt(
    goal: str,
    context: str = "",
    complexity: Optional[GoalComplexity] = None,
    *,
    preferences: Optional[Dict[str, Any]] = None,
    focus_areas: Sequence[str] = (),
) -> str:
    """Render the tree-generation request sent to the generative collaborator."""
    analysis = complexity or analyze_goal_complexity(goal, context)
    sections = [
        "## Goal",
        goal.strip() if goal else "(unspecified)",
    ]
    if context and context.strip():
        sections.extend(["## Context", context.strip()])
    sections.extend(
        [
            "## Sizing",
            f"- Complexity: {analysis.level} ({analysis.score}/10)",
            f"- Main branches: {analysis.main_branches}",
            f"- Tasks per branch: about {analysis.tasks_per_branch}",
            f"- Focus areas: {', '.join(focus_areas) if focus_areas else 'comprehensive'}",
        ]
    )
    constraints = render_preferences(preferences)
    if constraints:
        sections.append(constraints)
    sections.extend(
        [
            "## Response Shape",
            "Each entry of \"branch_tasks\" is an object with \"branch_name\", \"description\", "
            "optional \"sub_branches\" of the same shape, and \"tasks\": a list of objects with "
            "\"title\", \"description\", \"difficulty\" (1-5), \"duration\", and \"prerequisites\" "
            "(titles of earlier tasks).",
            JSON_RESPONSE_INSTRUCTION,
        ]
    )
    return "\n".join(sections)


__all__ = [
    "GoalComplexity",
    "JSON_RESPONSE_INSTRUCTION",
    "analyze_goal_complexity",
    "build_branch_prompt",
    "extract_keywords",
    "render_preferences",
]
