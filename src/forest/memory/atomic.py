"""Temp-file-then-rename writes so readers never observe partial documents."""

from __future__ import annotations

import json
import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import Any

from ..errors import DataPersistenceError

__all__ = ["DEFAULT_FILE_MODE", "TEMP_SUFFIX", "atomic_write_bytes", "atomic_write_json", "dump_document"]

LOGGER = logging.getLogger(__name__)

TEMP_SUFFIX = ".tmp"
DEFAULT_FILE_MODE = 0o666


def dump_document(document: Any) -> bytes:
    """Serialise a document to the on-disk JSON representation."""
    try:
        text = json.dumps(document, indent=2, ensure_ascii=False)
    except (TypeError, ValueError) as error:
        raise ValueError(f"Document is not JSON serialisable: {error}") from error
    return (text + "\n").encode("utf-8")


def _process_umask() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return umask


_DEFAULT_MODE = DEFAULT_FILE_MODE & ~_process_umask()


def _target_mode(target: Path) -> int:
    """Keep an existing file's permissions; new files get the umask default."""
    try:
        return stat.S_IMODE(target.stat().st_mode)
    except OSError:
        return _DEFAULT_MODE


def atomic_write_bytes(path: Path | str, data: bytes) -> Path:
    """Replace ``path`` with ``data`` atomically.

    The payload is written to a hidden sibling temp file, flushed and fsynced,
    given the destination's existing permissions (or the umask default), then
    renamed over it. Any failure before the rename (including
    interruption) removes the temp file and leaves the original untouched.
    """
    target = Path(path)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
    except OSError as error:
        raise DataPersistenceError("mkdir", target.parent, str(error)) from error

    try:
        fd, temp_name = tempfile.mkstemp(
            dir=str(target.parent),
            prefix=f".{target.name}.",
            suffix=TEMP_SUFFIX,
        )
    except OSError as error:
        raise DataPersistenceError("write", target, str(error)) from error

    temp_path = Path(temp_name)
    mode = _target_mode(target)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.chmod(temp_path, mode)
        os.replace(temp_path, target)
    except BaseException as error:
        try:
            temp_path.unlink()
        except FileNotFoundError:
            pass
        except OSError:
            LOGGER.warning("Failed to remove temporary file %s", temp_path, exc_info=True)
        if isinstance(error, OSError):
            raise DataPersistenceError("write", target, str(error)) from error
        raise
    return target


def atomic_write_json(path: Path | str, document: Any) -> Path:
    """Serialise ``document`` and write it with :func:`atomic_write_bytes`."""
    return atomic_write_bytes(path, dump_document(document))
