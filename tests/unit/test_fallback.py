from __future__ import annotations

from forest.ingest.fallback import MAX_FALLBACK_BRANCHES, TASKS_PER_FALLBACK_BRANCH, synthesize
from forest.prompts import analyze_goal_complexity


def test_synthesis_is_deterministic() -> None:
    assert synthesize("Learn X", "ctx") == synthesize("Learn X", "ctx")


def test_skeleton_is_small_and_well_formed() -> None:
    groups = synthesize("Become an expert business analyst", "career change with a certificate")

    assert 1 <= len(groups) <= MAX_FALLBACK_BRANCHES
    assert groups[0]["branch_name"] == "Foundation"
    for group in groups:
        assert len(group["tasks"]) == TASKS_PER_FALLBACK_BRANCH
        for task in group["tasks"]:
            assert task["title"]
            assert task["prerequisites"] == []


def test_empty_goal_still_produces_tasks() -> None:
    groups = synthesize("", "")
    assert groups
    assert all(group["tasks"] for group in groups)


def test_branch_count_tracks_goal_complexity() -> None:
    simple = synthesize("A simple fun hobby", "")
    complex_goal = synthesize("Advanced expert technical and financial career", "")

    assert len(simple) == analyze_goal_complexity("A simple fun hobby").main_branches
    assert len(complex_goal) == MAX_FALLBACK_BRANCHES
    assert len(simple) < len(complex_goal)
