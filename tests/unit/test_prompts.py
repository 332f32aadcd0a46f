from __future__ import annotations

from forest.prompts import analyze_goal_complexity, build_branch_prompt, extract_keywords


def test_complexity_score_is_bounded() -> None:
    low = analyze_goal_complexity("simple basic fun hobby")
    high = analyze_goal_complexity(
        "advanced expert career credential",
        "technical creative business social physical",
    )

    assert low.score >= 1
    assert low.level == "simple"
    assert high.score == 10
    assert high.level == "complex"
    assert high.main_branches == 8


def test_moderate_goal_defaults() -> None:
    analysis = analyze_goal_complexity("Learn to cook")
    assert analysis.score == 5
    assert analysis.level == "moderate"
    assert analysis.recommended_depth == 3
    assert analysis.to_dict()["tasks_per_branch"] == 10


def test_keywords_drop_stopwords_and_duplicates() -> None:
    assert extract_keywords("Learn the art of the Python and python") == ["learn", "art", "python"]


def test_prompt_requests_branch_tasks_json() -> None:
    prompt = build_branch_prompt(
        "Learn X",
        "weekends only",
        preferences={"focus_duration": "25 minutes", "wake_time": None},
    )

    assert "Learn X" in prompt
    assert "weekends only" in prompt
    assert '"branch_tasks"' in prompt
    assert "focus duration: 25 minutes" in prompt
    assert "wake time" not in prompt
