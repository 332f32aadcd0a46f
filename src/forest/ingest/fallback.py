"""Deterministic branch/task skeleton used when no usable response is available."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..prompts import GoalComplexity, analyze_goal_complexity, extract_keywords

__all__ = ["MAX_FALLBACK_BRANCHES", "TASKS_PER_FALLBACK_BRANCH", "synthesize"]

MAX_FALLBACK_BRANCHES = 6
TASKS_PER_FALLBACK_BRANCH = 3

_FOUNDATION = ("Foundation", "Core knowledge and fundamental understanding")
_GENERIC_BRANCHES = (
    ("Research & Analysis", "Information gathering and strategic planning"),
    ("Capability Building", "Skills and resource development"),
    ("Planning & Design", "Strategic planning and solution design"),
    ("Implementation", "Active execution and progress tracking"),
    ("Validation & Optimization", "Testing, refinement, and performance improvement"),
)
_ACTIONS = ("Research", "Plan", "Develop")


def _duration_for(difficulty: int) -> str:
    if difficulty <= 2:
        return "30 minutes"
    if difficulty <= 3:
        return "45 minutes"
    if difficulty <= 4:
        return "60 minutes"
    return "90 minutes"


def _branch_tasks(name: str, description: str, keywords: List[str]) -> List[Dict[str, Any]]:
    focus = " and ".join(keywords[:2]) or name.lower()
    tasks: List[Dict[str, Any]] = []
    for index in range(TASKS_PER_FALLBACK_BRANCH):
        difficulty = min(5, (index * 5) // TASKS_PER_FALLBACK_BRANCH + 1)
        action = _ACTIONS[min(index, len(_ACTIONS) - 1)]
        tasks.append(
            {
                "title": f"{action} {focus} for {name.lower()}",
                "description": f"{description} - step {index + 1} of {TASKS_PER_FALLBACK_BRANCH}",
                "difficulty": difficulty,
                "duration": _duration_for(difficulty),
                "prerequisites": [],
            }
        )
    return tasks


def synthesize(
    goal: str,
    context: str = "",
    *,
    complexity: Optional[GoalComplexity] = None,
) -> List[Dict[str, Any]]:
    """Return a small, non-empty list of branch/task groups for ``goal``.

    Output depends only on the inputs and uses the same group shape the
    response parser yields, so both paths share one transformation.
    """
    analysis = complexity or analyze_goal_complexity(goal or "", context or "")
    keywords = extract_keywords(goal)
    branch_count = max(1, min(analysis.main_branches, MAX_FALLBACK_BRANCHES))
    catalogue = (_FOUNDATION,) + _GENERIC_BRANCHES
    groups: List[Dict[str, Any]] = []
    for name, description in catalogue[:branch_count]:
        groups.append(
            {
                "branch_name": name,
                "description": description,
                "tasks": _branch_tasks(name, description, keywords),
            }
        )
    return groups
