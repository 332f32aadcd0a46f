from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from forest.memory.store import DocumentStore  # noqa: E402


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch):
    """Keep developer environment variables and CLI log handlers out of tests."""
    monkeypatch.delenv("FOREST_DATA_DIR", raising=False)
    monkeypatch.delenv("FOREST_API_KEY", raising=False)
    yield
    logger = logging.getLogger("forest")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


@pytest.fixture()
def store(tmp_path: Path):
    with DocumentStore(tmp_path / "data") as document_store:
        yield document_store
