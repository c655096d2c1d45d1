"""Durable blob storage for generated games, one file per id."""
from __future__ import annotations

import hashlib
import os
import re
import tempfile
from pathlib import Path
from typing import Union

import structlog

from .errors import IOFailure, NotFound

log = structlog.get_logger(__name__)

BLOB_SUFFIX = ".html"
_SAFE_ID = re.compile(r"[A-Za-z0-9-][A-Za-z0-9._-]*")


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write ``data`` to ``path`` via a sibling temp file and ``os.replace``.

    Readers see either the old file or the complete new one, never a
    truncated write. Raises ``OSError``; the temp file is removed on failure.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


def blob_name(game_id: str) -> str:
    """Return the deterministic, filename-safe blob name for an id.

    Example: g-42 -> g-42.html, "../x y" -> _<sha256 prefix>.html
    """
    if _SAFE_ID.fullmatch(game_id):
        return f"{game_id}{BLOB_SUFFIX}"
    digest = hashlib.sha256(game_id.encode("utf-8")).hexdigest()[:16]
    return f"_{digest}{BLOB_SUFFIX}"


class ContentStore:
    """Reads and writes artifact blobs under a single directory.

    Locations handed out by :meth:`put` are bare file names; callers keep
    them (in the index) and pass them back to :meth:`get`/:meth:`delete`.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def location_for(self, game_id: str) -> str:
        return blob_name(game_id)

    def _resolve(self, location: str) -> Path:
        # Only bare names are valid; the index document is hand-editable
        name = Path(location).name
        if not name or name != location:
            raise NotFound(location)
        return self.root / name

    def put(self, game_id: str, data: bytes) -> str:
        location = self.location_for(game_id)
        path = self.root / location
        try:
            atomic_write_bytes(path, data)
        except OSError as e:
            log.error("blob_write_failed", id=game_id, path=str(path), error=str(e))
            raise IOFailure(f"Failed to write {path}: {e}", str(path)) from e
        return location

    def get(self, location: str) -> bytes:
        path = self._resolve(location)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise NotFound(location) from None
        except OSError as e:
            raise IOFailure(f"Failed to read {path}: {e}", str(path)) from e

    def delete(self, location: str) -> None:
        path = self._resolve(location)
        try:
            path.unlink()
        except FileNotFoundError:
            raise NotFound(location) from None
        except OSError as e:
            raise IOFailure(f"Failed to delete {path}: {e}", str(path)) from e


__all__ = ["ContentStore", "atomic_write_bytes", "blob_name", "BLOB_SUFFIX"]
