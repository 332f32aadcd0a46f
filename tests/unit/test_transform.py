from __future__ import annotations

from forest.ingest.transform import DEFAULT_BRANCH, transform_groups


def test_nested_groups_are_flattened_with_parent_ids() -> None:
    groups = [
        {
            "branch_name": "Foundation",
            "description": "Basics",
            "tasks": [{"title": "Install tools", "duration": 30, "difficulty": 9}],
            "sub_branches": [
                {"branch_name": "Syntax", "tasks": ["Read the tutorial"]},
            ],
        }
    ]

    collections = transform_groups(groups)

    assert [branch["id"] for branch in collections.branches] == ["foundation", "syntax"]
    assert collections.branches[1]["parentId"] == "foundation"
    assert [branch["order"] for branch in collections.branches] == [0, 1]

    install, tutorial = collections.tasks
    assert install["id"] == "foundation-task-1"
    assert install["branch"] == "foundation"
    assert install["duration"] == "30 minutes"
    assert install["difficulty"] == 5
    assert tutorial == {
        "id": "syntax-task-1",
        "title": "Read the tutorial",
        "branch": "syntax",
        "description": "",
        "prerequisites": [],
        "completed": False,
        "order": 1,
        "generated": True,
    }


def test_flat_tasks_get_their_own_branch() -> None:
    collections = transform_groups([{"title": "Task A"}, {"title": "Task B", "branch": "Practice"}])

    assert [branch["id"] for branch in collections.branches] == [DEFAULT_BRANCH, "practice"]
    assert [task["branch"] for task in collections.tasks] == [DEFAULT_BRANCH, "practice"]


def test_duplicate_names_get_unique_ids_and_prerequisites_resolve() -> None:
    groups = [
        {"branch_name": "Core", "tasks": [{"title": "Setup"}, {"title": "Build", "prerequisites": ["Setup"]}]},
        {"branch_name": "Core", "tasks": [{"title": "Ship", "prerequisites": "Build"}]},
    ]

    collections = transform_groups(groups)

    assert [branch["id"] for branch in collections.branches] == ["core", "core-2"]
    build = collections.tasks[1]
    ship = collections.tasks[2]
    assert build["prerequisites"] == ["core-task-1"]
    assert ship["prerequisites"] == ["core-task-2"]
    assert ship["branch"] == "core-2"


def test_unknown_task_fields_are_preserved() -> None:
    collections = transform_groups([{"branch_name": "Core", "tasks": [{"title": "T", "phase": 2}]}])
    assert collections.tasks[0]["phase"] == 2


def test_junk_entries_are_skipped() -> None:
    collections = transform_groups([1, "text", None, {"description": "no name"}, {"branch_name": "B", "tasks": [{}]}])

    assert collections.task_count == 0
    assert collections.branch_count == 1


def test_non_finite_numbers_are_dropped() -> None:
    groups = [
        {
            "branch_name": "Core",
            "tasks": [
                {"title": "A", "duration": float("nan"), "difficulty": float("inf")},
                {"title": "B", "duration": float("-inf"), "difficulty": "nan"},
                {"title": "C", "duration": 45.9, "difficulty": "2"},
            ],
        }
    ]

    first, second, third = transform_groups(groups).tasks

    assert "duration" not in first and "difficulty" not in first
    assert "duration" not in second and "difficulty" not in second
    assert third["duration"] == "45 minutes"
    assert third["difficulty"] == 2


def test_unknown_task_fields_with_null_values_are_preserved() -> None:
    collections = transform_groups([{"branch_name": "Core", "tasks": [{"title": "T", "notes": None}]}])

    task = collections.tasks[0]
    assert "notes" in task and task["notes"] is None
    assert "duration" not in task
