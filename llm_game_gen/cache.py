"""Cache index and the storage-facing operations built on it.

``CacheIndex`` is the single persisted document mapping id -> ``CacheEntry``.
``ArtifactCache`` pairs it with a ``ContentStore`` and exposes what the rest
of the application uses: save, load, list, delete and storage stats.

Index load failures are recovered (empty mapping + warning); everything else
is raised as one of the kinds in :mod:`llm_game_gen.errors`.
"""
from __future__ import annotations

import threading
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union

import orjson
import structlog
from pydantic import ValidationError

from .errors import IOFailure, MissingData, NotFound
from .schema import UNKNOWN, CacheEntry, EntrySummary, StorageStats, utcnow
from .store import ContentStore, atomic_write_bytes

log = structlog.get_logger(__name__)

INDEX_FILENAME = "games-index.json"


class CacheIndex:
    """In-memory id -> CacheEntry mapping, rewritten in full on every mutation."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = threading.RLock()
        self._entries: Dict[str, CacheEntry] = {}
        self.load()

    def load(self) -> None:
        with self._lock:
            self._entries = self._read()

    def _read(self) -> Dict[str, CacheEntry]:
        if not self.path.exists():
            return {}
        try:
            raw = orjson.loads(self.path.read_bytes())
        except (OSError, orjson.JSONDecodeError) as e:
            log.warning("index_load_failed", path=str(self.path), error=str(e))
            return {}
        if not isinstance(raw, dict):
            log.warning("index_load_failed", path=str(self.path), error="root is not an object")
            return {}
        entries: Dict[str, CacheEntry] = {}
        for key, value in raw.items():
            try:
                entries[str(key)] = CacheEntry.model_validate(value)
            except ValidationError as e:
                log.warning("index_entry_skipped", id=key, error=str(e))
        log.info("index_loaded", path=str(self.path), entries=len(entries))
        return entries

    def _persist(self) -> None:
        payload = {k: v.model_dump(mode="json") for k, v in self._entries.items()}
        data = orjson.dumps(payload, option=orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS)
        try:
            atomic_write_bytes(self.path, data + b"\n")
        except OSError as e:
            log.error("index_write_failed", path=str(self.path), error=str(e))
            raise IOFailure(f"Failed to save cache index: {e}", str(self.path)) from e

    def get(self, game_id: str) -> Optional[CacheEntry]:
        with self._lock:
            return self._entries.get(game_id)

    def upsert(self, game_id: str, entry: CacheEntry) -> None:
        with self._lock:
            self._entries[game_id] = entry
            self._persist()

    def remove(self, game_id: str) -> bool:
        with self._lock:
            if game_id not in self._entries:
                return False
            del self._entries[game_id]
            self._persist()
            return True

    def touch(self, game_id: str, when: Optional[datetime] = None) -> Optional[CacheEntry]:
        """Bump ``last_accessed_at``. Returns the updated entry, or None if unknown."""
        with self._lock:
            entry = self._entries.get(game_id)
            if entry is None:
                return None
            entry = entry.model_copy(update={"last_accessed_at": when or utcnow()})
            self._entries[game_id] = entry
            self._persist()
            return entry

    def list_all(self) -> List[Tuple[str, CacheEntry]]:
        with self._lock:
            return list(self._entries.items())

    def __contains__(self, game_id: object) -> bool:
        with self._lock:
            return game_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class ArtifactCache:
    """Write-through game cache: blobs in a ContentStore, metadata in a CacheIndex."""

    def __init__(
        self,
        storage_dir: Union[str, Path],
        index_filename: str = INDEX_FILENAME,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = ContentStore(storage_dir)
        self.index = CacheIndex(self.store.root / index_filename)
        self._clock = clock

    @property
    def directory(self) -> Path:
        return self.store.root

    def save(
        self,
        game_id: str,
        html: str,
        *,
        produced_by: Optional[str] = None,
        label: Optional[str] = None,
    ) -> CacheEntry:
        """Store ``html`` under ``game_id`` and record it in the index.

        A failed blob write raises ``IOFailure`` and leaves the index alone.
        A failed index write after the blob landed is only logged: the blob
        stays on disk untracked.
        """
        data = html.encode("utf-8")
        location = self.store.put(game_id, data)
        now = self._clock()
        entry = CacheEntry(
            storage_location=location,
            size_bytes=len(data),
            created_at=now,
            last_accessed_at=now,
            produced_by=produced_by or UNKNOWN,
            label=label or UNKNOWN,
        )
        try:
            self.index.upsert(game_id, entry)
        except IOFailure as e:
            log.error("blob_untracked", id=game_id, location=location, error=str(e))
        else:
            log.info("game_saved", id=game_id, size_kb=round(len(data) / 1024, 1), produced_by=entry.produced_by)
        return entry

    def save_external(self, game_id: str, html: str, label: Optional[str] = None) -> CacheEntry:
        """Accept a document produced elsewhere (e.g. re-uploaded by a client)."""
        if not game_id or not html:
            raise MissingData("Missing game id or HTML content")
        return self.save(game_id, html, label=label)

    def lookup(self, game_id: str) -> Optional[Tuple[str, CacheEntry]]:
        """Return ``(html, entry)`` for a cached id, or None on a miss.

        An entry whose blob has vanished is dropped from the index and
        reported as a miss.
        """
        entry = self.index.get(game_id)
        if entry is None:
            return None
        try:
            data = self.store.get(entry.storage_location)
        except NotFound:
            log.warning("blob_missing", id=game_id, location=entry.storage_location)
            self._forget(game_id)
            return None
        try:
            html = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise IOFailure(f"Stored game {game_id} is not valid UTF-8: {e}") from e
        try:
            entry = self.index.touch(game_id, self._clock()) or entry
        except IOFailure:
            # touch keeps the in-memory bump even when the rewrite fails
            entry = self.index.get(game_id) or entry
        log.debug("game_loaded", id=game_id)
        return html, entry

    def load(self, game_id: str) -> str:
        hit = self.lookup(game_id)
        if hit is None:
            raise NotFound(game_id)
        return hit[0]

    def is_cached(self, game_id: str) -> bool:
        return game_id in self.index

    def list_entries(self) -> List[EntrySummary]:
        return [EntrySummary.from_entry(k, e) for k, e in self.index.list_all()]

    def delete_one(self, game_id: str) -> None:
        entry = self.index.get(game_id)
        if entry is None:
            raise NotFound(game_id)
        try:
            self.store.delete(entry.storage_location)
        except NotFound:
            pass
        self.index.remove(game_id)
        log.info("game_deleted", id=game_id)

    def delete_all(self) -> int:
        deleted = 0
        for game_id, _ in self.index.list_all():
            try:
                self.delete_one(game_id)
            except NotFound:
                continue
            except IOFailure as e:
                log.error("game_delete_failed", id=game_id, error=str(e))
                continue
            deleted += 1
        log.info("cache_cleared", deleted=deleted)
        return deleted

    def stats(self) -> StorageStats:
        entries = self.index.list_all()
        return StorageStats(
            directory=str(self.directory),
            cached_games=len(entries),
            total_size_bytes=sum(e.size_bytes for _, e in entries),
        )

    def _forget(self, game_id: str) -> None:
        try:
            self.index.remove(game_id)
        except IOFailure:
            # already gone from memory; the next successful rewrite drops it on disk
            pass


__all__ = ["ArtifactCache", "CacheIndex", "INDEX_FILENAME"]
