from __future__ import annotations

import json
import textwrap
from pathlib import Path

import pytest
import yaml
from typer.testing import CliRunner

from forest.cli import app
from forest.memory.store import DocumentStore

runner = CliRunner()


@pytest.fixture()
def config_path(tmp_path: Path) -> Path:
    path = tmp_path / "forest.yaml"
    path.write_text(
        textwrap.dedent(
            f"""
            storage:
              data_dir: "{(tmp_path / 'data').as_posix()}"
            logging:
              level: ERROR
            """
        ).lstrip(),
        encoding="utf-8",
    )
    return path


def _invoke(*args: str):
    return runner.invoke(app, list(args))


def test_init_config_writes_template(tmp_path: Path) -> None:
    path = tmp_path / "forest.yaml"

    result = _invoke("init-config", "--config", str(path))

    assert result.exit_code == 0, result.output
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    assert data["paths"]["default"] == "main"
    assert _invoke("init-config", "--config", str(path)).exit_code == 1


def test_create_list_and_build(config_path: Path, tmp_path: Path) -> None:
    created = _invoke(
        "create-project", "p1", "--goal", "Learn X", "--wake-time", "07:00", "--config", str(config_path)
    )
    assert created.exit_code == 0, created.output
    assert "Created project p1" in created.output

    built = _invoke("build-tree", "p1", "--config", str(config_path))
    assert built.exit_code == 0, built.output
    assert "offline stub" in built.output
    assert '"source": "parsed"' in built.output

    listed = _invoke("list-projects", "--config", str(config_path))
    assert "* p1: Learn X [main]" in listed.output

    with DocumentStore(tmp_path / "data") as store:
        tree = store.load_tree("p1", "main")
        assert tree["frontierNodes"]
        assert store.load("p1", "config.json")["learning_paths"] == ["main"]


def test_ingest_malformed_response_file_reports_fallback(config_path: Path, tmp_path: Path) -> None:
    response_file = tmp_path / "response.txt"
    response_file.write_text("The service is overloaded, try later.", encoding="utf-8")

    result = _invoke(
        "ingest", "p1", str(response_file), "--goal", "Learn X", "--context", "ctx", "--config", str(config_path)
    )

    assert result.exit_code == 0, result.output
    first_line = result.output.strip().splitlines()[0]
    summary = json.loads(first_line)
    assert summary["source"] == "fallback"
    assert summary["branchCount"] >= 1
    assert summary["taskCount"] >= 1


def test_show_tree_and_status(config_path: Path, tmp_path: Path) -> None:
    response_file = tmp_path / "response.json"
    response_file.write_text(json.dumps({"branch_tasks": [{"title": "Task A"}]}), encoding="utf-8")
    assert _invoke("ingest", "p1", str(response_file), "--config", str(config_path)).exit_code == 0

    shown = _invoke("show-tree", "p1", "--config", str(config_path))
    assert shown.exit_code == 0, shown.output
    assert '"title": "Task A"' in shown.output

    status = _invoke("status", "p1", "--config", str(config_path))
    assert status.exit_code == 0, status.output
    assert "Branches: 1 | Tasks: 1 | Completed: 0" in status.output
    assert "No orphaned tasks." in status.output


def test_status_reports_orphans(config_path: Path, tmp_path: Path) -> None:
    with DocumentStore(tmp_path / "data") as store:
        store.save_tree("p1", "main", {"frontierNodes": [{"id": "t1", "title": "Lost", "branch": "gone"}]})

    status = _invoke("status", "p1", "--config", str(config_path))

    assert "Orphaned tasks: 1" in status.output
    assert "t1: Lost" in status.output


def test_missing_tree_and_project_exit_non_zero(config_path: Path) -> None:
    assert _invoke("show-tree", "nobody", "--config", str(config_path)).exit_code == 1
    assert _invoke("build-tree", "nobody", "--config", str(config_path)).exit_code == 1


def test_remote_without_key_falls_back(config_path: Path) -> None:
    _invoke("create-project", "p1", "--goal", "Learn X", "--config", str(config_path))

    result = _invoke("build-tree", "p1", "--use-remote", "--config", str(config_path))

    assert result.exit_code == 0, result.output
    assert "Remote collaborator unavailable" in result.output
    assert '"source": "fallback"' in result.output


def test_invalid_config_exits(tmp_path: Path) -> None:
    path = tmp_path / "forest.yaml"
    path.write_text("- not a mapping\n", encoding="utf-8")
    assert _invoke("list-projects", "--config", str(path)).exit_code == 1
