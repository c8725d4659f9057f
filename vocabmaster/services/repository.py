"""
Repository Pattern - keyed word store with snapshot persistence.

The repository keeps every record in memory and writes the full snapshot to
a primary location after each change, then best-effort to an optional
mirror location (e.g. a synced cloud folder). Storage backends implement
one small interface, so local files, a mirror and an in-memory store are
interchangeable.
"""

import asyncio
import copy
import json
import logging
import os
import uuid
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional, Union

import aiofiles
import pandas as pd

from ..exceptions import PersistenceIOError, ValidationError
from ..models import WordRecord, now_ms
from ..utils.parsing import TextParser
from .scheduler import SpacedRepetitionScheduler

logger = logging.getLogger(__name__)

EXPORT_VERSION = 1
SCHEDULER_FIELDS = ("level", "review_count", "next_review_at", "added_at")


# ==================== Storage backends ====================

class SnapshotStore(ABC):
    """
    A location holding one JSON snapshot of the whole word list.

    ``load`` returns None when nothing has been stored yet and raises
    PersistenceIOError when something is stored but unreadable.
    """

    name: str = "store"

    @abstractmethod
    async def load(self) -> Optional[Any]:
        """Read the stored snapshot (parsed JSON) or None if absent."""
        pass

    @abstractmethod
    async def save(self, snapshot: Dict[str, Any]) -> None:
        """Replace the stored snapshot."""
        pass


class LocalFileStore(SnapshotStore):
    """JSON file on local disk, written atomically (temp file + rename)."""

    name = "local"

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    async def load(self) -> Optional[Any]:
        if not self.path.exists():
            return None
        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
                text = await f.read()
            return json.loads(text)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceIOError(f"Cannot read {self.name} store {self.path}: {e}") from e

    async def save(self, snapshot: Dict[str, Any]) -> None:
        temp_path = self.path.with_name(f"{self.path.name}.{uuid.uuid4().hex[:8]}.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
                await f.write(json.dumps(snapshot, ensure_ascii=False, indent=2))
            os.replace(temp_path, self.path)
        except OSError as e:
            raise PersistenceIOError(f"Cannot write {self.name} store {self.path}: {e}") from e
        finally:
            if temp_path.exists():
                try:
                    temp_path.unlink()
                except OSError:
                    pass

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.path}>"


class MirrorFileStore(LocalFileStore):
    """Copy of the snapshot in a secondary directory such as a cloud drive."""

    name = "mirror"

    DEFAULT_FILE_NAME = "vocabmaster_data.json"

    def __init__(self, directory: Union[str, Path], file_name: str = DEFAULT_FILE_NAME):
        self.directory = Path(directory)
        super().__init__(self.directory / file_name)

    async def load(self) -> Optional[Any]:
        if not self.directory.is_dir():
            return None
        return await super().load()


class InMemoryStore(SnapshotStore):
    """Process-local store; useful for tests and throwaway sessions."""

    name = "memory"

    def __init__(self, snapshot: Optional[Any] = None):
        self.snapshot = copy.deepcopy(snapshot)
        self.writes = 0

    async def load(self) -> Optional[Any]:
        return copy.deepcopy(self.snapshot)

    async def save(self, snapshot: Dict[str, Any]) -> None:
        self.snapshot = copy.deepcopy(snapshot)
        self.writes += 1


# ==================== Sync strategies ====================

class SyncStrategy(ABC):
    """How the primary and mirror locations are kept in step."""

    @abstractmethod
    async def initial_load(self, primary: SnapshotStore,
                           mirror: Optional[SnapshotStore]) -> Optional[Any]:
        """Pick the snapshot to start from."""
        pass

    @abstractmethod
    async def replicate(self, snapshot: Dict[str, Any],
                        mirror: Optional[SnapshotStore]) -> None:
        """Propagate a successful primary write. Must not raise."""
        pass


class SnapshotReplication(SyncStrategy):
    """
    Whole-snapshot overwrite in both directions.

    Startup prefers the primary; if it is empty the mirror is loaded and
    written back to the primary. Every primary write is copied to the
    mirror as a whole. Changes made independently on both sides between
    syncs are not merged: the last full write wins.
    """

    async def initial_load(self, primary: SnapshotStore,
                           mirror: Optional[SnapshotStore]) -> Optional[Any]:
        data = await primary.load()
        if data is not None or mirror is None:
            return data

        try:
            data = await mirror.load()
        except PersistenceIOError as e:
            logger.warning("Mirror unreadable, starting empty: %s", e)
            return None
        if data is not None:
            logger.info("Restored word list from %s, writing local copy", mirror.name)
            await primary.save(data)
        return data

    async def replicate(self, snapshot: Dict[str, Any],
                        mirror: Optional[SnapshotStore]) -> None:
        if mirror is None:
            return
        try:
            await mirror.save(snapshot)
        except Exception as e:
            logger.warning("Mirror sync failed: %s", e)


# ==================== Repository ====================

@dataclass
class ImportResult:
    imported: int
    skipped: int


def extract_records(payload: Any) -> List[Any]:
    """
    Pull the raw record list out of an export payload.

    Accepts the wrapped ``{"words": [...]}`` object, a bare list, or JSON
    text/bytes holding either.

    Raises:
        ValidationError: Unparsable payload or no records
    """
    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = payload.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ValidationError(f"Import file is not UTF-8: {e}") from e
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Import file is not valid JSON: {e}") from e

    if isinstance(payload, dict):
        words = payload.get("words")
    elif isinstance(payload, list):
        words = payload
    else:
        raise ValidationError(f"Unsupported import payload: {type(payload).__name__}")

    if not isinstance(words, list) or not words:
        raise ValidationError("No vocabulary records found in import payload")
    return words


class WordRepository:
    """
    Keyed repository over WordRecord.

    - Keys are normalized (trimmed, lower-cased) on every access
    - Operations on one key are serialized by a per-key asyncio.Lock
    - Every change is persisted as a full snapshot before the call returns;
      a failed write rolls the in-memory change back and raises
      PersistenceIOError

    Usage:
        async with WordRepository.open(LocalFileStore("data/words.json")) as repo:
            await repo.upsert(WordRecord(key="run"))
    """

    def __init__(
        self,
        primary: SnapshotStore,
        mirror: Optional[SnapshotStore] = None,
        sync: Optional[SyncStrategy] = None,
        scheduler: Optional[SpacedRepetitionScheduler] = None,
    ):
        """
        Args:
            primary: Authoritative location
            mirror: Optional secondary location
            sync: Mirror strategy (SnapshotReplication if None)
            scheduler: Supplies the initial review interval and level bounds
        """
        self.primary = primary
        self.mirror = mirror
        self.sync = sync or SnapshotReplication()
        self.scheduler = scheduler or SpacedRepetitionScheduler()

        self._records: Dict[str, WordRecord] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}
        self._io_lock = asyncio.Lock()
        self._loaded = False

    @classmethod
    @asynccontextmanager
    async def open(
        cls,
        primary: SnapshotStore,
        mirror: Optional[SnapshotStore] = None,
        sync: Optional[SyncStrategy] = None,
        scheduler: Optional[SpacedRepetitionScheduler] = None,
    ) -> AsyncIterator["WordRepository"]:
        """Load a repository for the duration of a block and release it after."""
        repo = cls(primary, mirror=mirror, sync=sync, scheduler=scheduler)
        await repo.load()
        try:
            yield repo
        finally:
            await repo.close()

    async def load(self) -> None:
        """
        Load the starting snapshot (primary, else mirror).

        Raises:
            PersistenceIOError: The primary holds an unreadable snapshot
        """
        data = await self.sync.initial_load(self.primary, self.mirror)
        records: Dict[str, WordRecord] = {}
        if data is not None:
            raw = data.get("words", []) if isinstance(data, dict) else data
            if not isinstance(raw, list):
                raise PersistenceIOError(f"Stored snapshot in {self.primary.name} is malformed")
            for item in raw:
                try:
                    record = self._validate(WordRecord.from_dict(item))
                except (ValueError, ValidationError) as e:
                    raise PersistenceIOError(f"Stored snapshot holds a bad record: {e}") from e
                self._fill_defaults(record, None)
                records[record.key] = record
        self._records = records
        self._loaded = True
        logger.debug("Loaded %d words from %s", len(records), self.primary.name)

    async def close(self) -> None:
        """Release the repository; every write has already been flushed."""
        async with self._io_lock:
            self._loaded = False

    @property
    def count(self) -> int:
        return len(self._records)

    # ==================== Reads ====================

    async def get(self, key: str) -> Optional[WordRecord]:
        record = self._records.get(TextParser.normalize_key(key))
        return record.copy() if record else None

    async def get_all(self) -> List[WordRecord]:
        return [r.copy() for r in self._records.values()]

    async def contains(self, key: str) -> bool:
        return TextParser.normalize_key(key) in self._records

    # ==================== Writes ====================

    async def upsert(self, record: WordRecord, now: Optional[int] = None) -> WordRecord:
        """
        Create or replace a record by key.

        On create, unset scheduler fields get their defaults (level 0, no
        reviews, first review one interval from now). On replace, unset
        scheduler fields keep the stored values.

        Returns:
            A copy of the stored record

        Raises:
            ValueError: Level or review count out of range
        """
        new = record.copy()
        async with self._key_lock(new.key):
            previous = self._records.get(new.key)
            if previous is not None:
                for name in SCHEDULER_FIELDS + ("last_reviewed_at",):
                    if getattr(new, name) is None:
                        setattr(new, name, getattr(previous, name))
            self._validate(new)
            self._fill_defaults(new, now)
            await self._commit(new.key, previous, new)
            return new.copy()

    async def update(self, key: str, data: Dict[str, Any]) -> Optional[WordRecord]:
        """
        Merge the given fields into an existing record.

        Other fields are left untouched; no-op when the key is absent.

        Args:
            key: Record key
            data: {attribute_name: value}

        Returns:
            The updated record, or None if the key is absent

        Raises:
            ValueError: Unknown or read-only field names
        """
        allowed = set(WordRecord.field_names()) - {"key"}
        unknown = set(data) - allowed
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")

        async with self.transaction(key) as record:
            if record is None:
                return None
            for name, value in data.items():
                setattr(record, name, copy.deepcopy(value))
        return record.copy()

    @asynccontextmanager
    async def transaction(self, key: str) -> AsyncIterator[Optional[WordRecord]]:
        """
        Read-modify-write scope for one key.

        Yields a working copy (None if the key is absent). Changes are
        committed when the block exits normally and discarded when it
        raises.
        """
        key = TextParser.normalize_key(key)
        async with self._key_lock(key):
            previous = self._records.get(key)
            working = previous.copy() if previous is not None else None
            yield working
            if working is not None and working != previous:
                working.key = key
                self._validate(working)
                await self._commit(key, previous, working)

    async def delete(self, key: str) -> bool:
        """Delete a record. Returns False if it did not exist."""
        key = TextParser.normalize_key(key)
        async with self._key_lock(key):
            previous = self._records.get(key)
            if previous is None:
                return False
            await self._commit(key, previous, None)
            return True

    # ==================== Import / export ====================

    async def export(self) -> Dict[str, Any]:
        """Verbatim snapshot in the backup-file shape."""
        return self._snapshot()

    async def import_payload(self, payload: Any, now: Optional[int] = None) -> ImportResult:
        """
        Import records with local precedence.

        Existing keys are skipped untouched; new keys are stored verbatim,
        keeping their scheduler fields. Nothing is committed unless the
        whole payload validates.

        Raises:
            ValidationError: Unparsable payload, no records, or a bad record
            PersistenceIOError: The snapshot could not be written
        """
        incoming: List[WordRecord] = []
        for index, item in enumerate(extract_records(payload)):
            try:
                incoming.append(self._validate(WordRecord.from_dict(item)))
            except ValueError as e:
                raise ValidationError(f"Record #{index + 1} is invalid: {e}") from e

        added: List[str] = []
        skipped = 0
        # No await until every new record is in place
        for record in incoming:
            if record.key in self._records:
                skipped += 1
                continue
            self._fill_defaults(record, now)
            self._records[record.key] = record
            added.append(record.key)

        if added:
            try:
                await self._persist()
            except PersistenceIOError:
                for key in added:
                    self._records.pop(key, None)
                raise

        logger.info("Imported %d words, skipped %d existing", len(added), skipped)
        return ImportResult(imported=len(added), skipped=skipped)

    async def export_csv(self, csv_path: Union[str, Path]) -> int:
        """
        Write the word list as a pipe-delimited CSV.

        Returns:
            Number of rows written
        """
        rows = [
            {
                "Word": r.key,
                "DisplayWord": r.display_word,
                "Phonetic": r.phonetic,
                "Translation": r.translation,
                "Definitions": "<br>".join(
                    f"({m.part_of_speech}) {d.text}" for m in r.meanings for d in m.definitions
                ),
                "Level": r.level,
                "ReviewCount": r.review_count,
                "AddedAt": _iso(r.added_at),
                "NextReviewAt": _iso(r.next_review_at),
            }
            for r in self._records.values()
        ]
        df = pd.DataFrame(rows, columns=[
            "Word", "DisplayWord", "Phonetic", "Translation", "Definitions",
            "Level", "ReviewCount", "AddedAt", "NextReviewAt",
        ])

        def _write() -> None:
            Path(csv_path).parent.mkdir(parents=True, exist_ok=True)
            df.to_csv(csv_path, sep='|', index=False, encoding='utf-8-sig')

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, _write)
        except OSError as e:
            raise PersistenceIOError(f"Cannot write CSV {csv_path}: {e}") from e
        return len(rows)

    # ==================== Internals ====================

    @asynccontextmanager
    async def _key_lock(self, key: str) -> AsyncIterator[None]:
        """Hold the key's lock; the lock is dropped once nobody holds or awaits it."""
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]

    def _fill_defaults(self, record: WordRecord, now: Optional[int]) -> None:
        now = now_ms() if now is None else now
        if record.added_at is None:
            record.added_at = now
        if record.level is None:
            record.level = 0
        if record.review_count is None:
            record.review_count = 0
        if record.next_review_at is None:
            record.next_review_at = self.scheduler.next_review_at(record.level, now)

    def _validate(self, record: WordRecord) -> WordRecord:
        if record.level is not None and not 0 <= record.level <= self.scheduler.max_level:
            raise ValueError(
                f"level of {record.key!r} must be within 0..{self.scheduler.max_level}, "
                f"got {record.level}"
            )
        if record.review_count is not None and record.review_count < 0:
            raise ValueError(f"reviewCount of {record.key!r} must be non-negative")
        return record

    async def _commit(self, key: str, previous: Optional[WordRecord],
                      new: Optional[WordRecord]) -> None:
        if new is None:
            self._records.pop(key, None)
        else:
            self._records[key] = new
        try:
            await self._persist()
        except PersistenceIOError:
            if previous is None:
                self._records.pop(key, None)
            else:
                self._records[key] = previous
            raise

    async def _persist(self) -> None:
        async with self._io_lock:
            snapshot = self._snapshot()
            try:
                await self.primary.save(snapshot)
            except PersistenceIOError as e:
                logger.error("Saving word list failed: %s", e)
                raise
            await self.sync.replicate(snapshot, self.mirror)

    def _snapshot(self) -> Dict[str, Any]:
        words = [r.to_dict() for r in self._records.values()]
        return {
            "version": EXPORT_VERSION,
            "exportedAt": datetime.now(timezone.utc).isoformat(),
            "wordCount": len(words),
            "words": words,
        }


def _iso(timestamp_ms: Optional[int]) -> str:
    if timestamp_ms is None:
        return ""
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).isoformat()
