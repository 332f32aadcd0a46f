from __future__ import annotations

import pytest

from forest.config import (
    ConfigError,
    DEFAULT_CONFIG_TEMPLATE,
    default_path_name,
    load_config,
    lock_timeout,
    resolve_data_dir,
    write_config,
)


def test_missing_file_yields_defaults(tmp_path) -> None:
    assert load_config(tmp_path / "absent.yaml") == DEFAULT_CONFIG_TEMPLATE


def test_partial_file_is_merged_with_defaults(tmp_path) -> None:
    path = tmp_path / "forest.yaml"
    path.write_text("storage:\n  lock_timeout: 1.5\npaths:\n  default: study\n", encoding="utf-8")

    config = load_config(path)

    assert lock_timeout(config) == 1.5
    assert default_path_name(config) == "study"
    assert config["storage"]["data_dir"] == DEFAULT_CONFIG_TEMPLATE["storage"]["data_dir"]
    assert config["intelligence"]["provider"] == "offline"


def test_non_mapping_config_is_rejected(tmp_path) -> None:
    path = tmp_path / "forest.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path)


def test_write_then_load_round_trip(tmp_path) -> None:
    path = write_config(tmp_path / "nested" / "forest.yaml")
    assert load_config(path) == DEFAULT_CONFIG_TEMPLATE


def test_data_dir_resolution_order(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    assert resolve_data_dir({}) == (tmp_path / ".forest-data").resolve()

    config = {"storage": {"data_dir": str(tmp_path / "configured")}}
    assert resolve_data_dir(config) == (tmp_path / "configured").resolve()

    monkeypatch.setenv("FOREST_DATA_DIR", str(tmp_path / "from-env"))
    assert resolve_data_dir(config) == (tmp_path / "from-env").resolve()


@pytest.mark.parametrize("value", [None, -1, "soon", True])
def test_invalid_lock_timeouts_mean_wait_forever(value) -> None:
    assert lock_timeout({"storage": {"lock_timeout": value}}) is None
