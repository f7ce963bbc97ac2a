from __future__ import annotations

import json
import logging
import os
import re
import threading
from datetime import datetime, timedelta
from typing import Any, Callable

from ..core.config import RecordStoreConfig
from ..core.errors import RecordCorruptError, SaveVerificationError
from ..core.normalize import as_utc, format_utc_timestamp, parse_utc_timestamp, utc_now
from ..core.ports import Clock
from ..core.types import ItemStack, Record, RecordKey, SaveResult
from .files import FileSystemPort, LocalFileSystem

DefaultPolicy = Callable[[RecordKey], "Record | None"]

BACKUP_TAG = "bak"
ADMIN_BACKUP_TAG = "vbobak"

_ITEM_OBJECT_RE = re.compile(r"\{[^{}]*\}")


class RecordStore:
    """One JSON document per key, with rotating backups and recovery.

    ``load`` never raises for a missing or corrupt record: it walks the backup
    chain, then the admin chain, then salvages what it can, and finally falls
    back to an empty record. ``save`` writes to a temp file, verifies it, and
    only then replaces the primary file.

    Calls for the same key are serialized; different keys do not contend.
    """

    def __init__(
        self,
        data_dir: str,
        fs: FileSystemPort | None = None,
        config: RecordStoreConfig | None = None,
        default_policy: DefaultPolicy | None = None,
        clock: Clock | None = None,
        logger: logging.Logger | None = None,
    ):
        self._data_dir = str(data_dir)
        self._fs = fs or LocalFileSystem()
        self._config = config or RecordStoreConfig()
        self._default_policy = default_policy
        self._clock = clock or utc_now
        self._logger = logger or logging.getLogger(__name__)
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._fs.ensure_dir(self._data_dir)

    @property
    def config(self) -> RecordStoreConfig:
        return self._config

    def path_for(self, key: RecordKey | str) -> str:
        key = RecordKey.parse(key)
        return os.path.join(self._data_dir, f"{key.owner}.vb{key.slot}{self._config.file_suffix}")

    def backup_paths(self, key: RecordKey | str) -> list[str]:
        return self._chain(self.path_for(key), BACKUP_TAG, self._config.backup_generations)

    def admin_backup_paths(self, key: RecordKey | str) -> list[str]:
        return self._chain(self.path_for(key), ADMIN_BACKUP_TAG, self._config.admin_backup_generations)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def load(self, key: RecordKey | str) -> Record:
        record, _source = self.load_with_source(key)
        return record

    def load_with_source(self, key: RecordKey | str) -> tuple[Record, str]:
        """Return the record and where it came from.

        Sources: ``primary``, ``bak<N>``, ``vbobak<N>``, ``salvage``,
        ``default`` (policy supplied) or ``empty``.
        """
        key = RecordKey.parse(key)
        with self._lock_for(key):
            return self._load_locked(key)

    def save(self, key: RecordKey | str, record: Record) -> SaveResult:
        key = RecordKey.parse(key)
        with self._lock_for(key):
            return self._save_locked(key, record)

    def create_admin_backup(self, key: RecordKey | str) -> bool:
        key = RecordKey.parse(key)
        with self._lock_for(key):
            path = self.path_for(key)
            if not self._fs.exists(path):
                self._logger.info("No record file to back up for %s", key)
                return False
            chain = self.admin_backup_paths(key)
            try:
                for i in range(len(chain) - 1, 0, -1):
                    if self._fs.exists(chain[i - 1]):
                        self._fs.move(chain[i - 1], chain[i])
                self._fs.copy(path, chain[0])
            except OSError as exc:
                self._logger.warning("Could not create admin backup for %s: %s", key, exc)
                return False
            self._logger.info("Created admin backup for %s", key)
            return True

    # ------------------------------------------------------------------
    # Load path
    # ------------------------------------------------------------------

    def _load_locked(self, key: RecordKey) -> tuple[Record, str]:
        path = self.path_for(key)
        if not self._fs.exists(path):
            return self._default_for(key)

        try:
            return self._read(path), "primary"
        except (OSError, RecordCorruptError) as exc:
            self._logger.warning("Error reading record %s: %s", key, exc)

        for candidate in self.backup_paths(key) + self.admin_backup_paths(key):
            if not self._fs.exists(candidate):
                continue
            try:
                record = self._read(candidate)
            except (OSError, RecordCorruptError) as exc:
                self._logger.debug("Backup %s unusable: %s", candidate, exc)
                continue
            source = candidate.rsplit(".", 1)[-1]
            self._logger.info("Recovered record %s from %s", key, os.path.basename(candidate))
            return record, source

        record = self._salvage(path)
        self._logger.warning(
            "All backups for %s unusable; salvaged %d occupied slots",
            key,
            record.occupied_count,
        )
        return record, "salvage"

    def _default_for(self, key: RecordKey) -> tuple[Record, str]:
        if self._default_policy is not None:
            try:
                record = self._default_policy(key)
            except Exception:
                self._logger.exception("Default policy failed for %s", key)
                record = None
            if record is not None:
                self._logger.info("Creating record %s from default policy", key)
                return self._fit(record), "default"
        self._logger.info("Creating new empty record %s", key)
        return Record.empty(self._config.slot_count), "empty"

    def _read(self, path: str) -> Record:
        try:
            text = self._fs.read_text(path)
        except UnicodeDecodeError as exc:
            raise RecordCorruptError(path, f"not UTF-8 text: {exc}") from exc
        return self._decode(text, path)

    def _decode(self, text: str, path: str) -> Record:
        try:
            data = json.loads(text)
        except ValueError as exc:
            raise RecordCorruptError(path, f"invalid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise RecordCorruptError(path, "document is not an object")
        raw_items = data.get("items")
        if not isinstance(raw_items, list):
            raise RecordCorruptError(path, "missing items array")
        items: list[ItemStack] = []
        for idx, raw in enumerate(raw_items):
            if raw is not None and not isinstance(raw, dict):
                raise RecordCorruptError(path, f"item {idx} is not an object")
            try:
                item = ItemStack.from_dict(raw)
            except (TypeError, ValueError, OverflowError) as exc:
                raise RecordCorruptError(path, f"item {idx}: {exc}") from exc
            if raw is None:
                item.slot_idx = idx
            items.append(item)
        return Record(items=items, saved_at=parse_utc_timestamp(data.get("savedAt")))

    def _salvage(self, path: str) -> Record:
        """Best-effort recovery of individual item objects from a broken file."""
        record = Record.empty(self._config.slot_count)
        try:
            text = self._fs.read_text(path)
        except Exception as exc:
            self._logger.debug("Salvage read failed for %s: %s", path, exc)
            return record
        start = text.find('"items"')
        if start < 0:
            return record
        for match in _ITEM_OBJECT_RE.finditer(text, start):
            try:
                raw = json.loads(match.group(0))
                item = ItemStack.from_dict(raw)
            except (ValueError, TypeError, OverflowError):
                continue
            if 0 <= item.slot_idx < len(record.items) and not record.items[item.slot_idx].occupied:
                record.items[item.slot_idx] = item
        return record

    def _fit(self, record: Record) -> Record:
        size = self._config.slot_count
        items = list(record.items[:size])
        for idx in range(len(items), size):
            items.append(ItemStack(slot_idx=idx))
        return Record(items=items, saved_at=record.saved_at)

    # ------------------------------------------------------------------
    # Save path
    # ------------------------------------------------------------------

    def _save_locked(self, key: RecordKey, record: Record) -> SaveResult:
        path = self.path_for(key)
        tmp_path = path + ".tmp"
        now = self._clock()
        first_save = not self._fs.exists(path)
        self._rotate_backups(key, path, now)
        try:
            self._fs.write_text(tmp_path, self._encode(record, now))
            self._verify(tmp_path, record)
            self._fs.replace(tmp_path, path)
        except SaveVerificationError as exc:
            self._discard(tmp_path)
            self._logger.error("Save verification failed for %s: %s", key, exc)
            return SaveResult(status="verify_failed", reason=str(exc))
        except OSError as exc:
            self._discard(tmp_path)
            self._logger.error("Error saving record %s: %s", key, exc)
            return SaveResult(status="error", reason=str(exc))
        if first_save:
            self._seed_backup(key, path)
        self._logger.info("Saved record %s (%d occupied slots)", key, record.occupied_count)
        return SaveResult(status="ok", saved_at=now)

    def _encode(self, record: Record, saved_at: datetime) -> str:
        payload: dict[str, Any] = {
            "items": [item.to_dict() for item in record.items],
            "savedAt": format_utc_timestamp(saved_at),
        }
        return json.dumps(payload, indent=2)

    def _verify(self, tmp_path: str, record: Record) -> None:
        try:
            saved = self._read(tmp_path)
        except (OSError, RecordCorruptError) as exc:
            raise SaveVerificationError(f"written file unreadable: {exc}") from exc
        if len(saved.items) != len(record.items):
            raise SaveVerificationError(
                f"slot count mismatch: wrote {len(record.items)}, read {len(saved.items)}"
            )
        if saved.occupied_count != record.occupied_count:
            raise SaveVerificationError(
                f"occupied slot mismatch: wrote {record.occupied_count}, read {saved.occupied_count}"
            )

    def _rotate_backups(self, key: RecordKey, path: str, now: datetime) -> None:
        if not self._fs.exists(path):
            return
        chain = self.backup_paths(key)
        try:
            for i in range(len(chain) - 1, 0, -1):
                src, dst = chain[i - 1], chain[i]
                if not self._fs.exists(src):
                    continue
                if i == len(chain) - 1 and self._doomsday_protected(dst, now):
                    self._logger.info("Skipping %s promotion; doomsday backup too recent", os.path.basename(src))
                    continue
                self._fs.move(src, dst)
            self._fs.copy(path, chain[0])
        except OSError as exc:
            self._logger.warning("Could not rotate backups for %s: %s", key, exc)

    def _seed_backup(self, key: RecordKey, path: str) -> None:
        """Start a new record's chain with a copy of its first saved snapshot."""
        chain = self.backup_paths(key)
        if not chain:
            return
        try:
            self._fs.copy(path, chain[0])
        except OSError as exc:
            self._logger.warning("Could not seed first backup for %s: %s", key, exc)

    def _doomsday_protected(self, path: str, now: datetime) -> bool:
        if not self._fs.exists(path):
            return False
        try:
            saved_at = self._read(path).saved_at
        except (OSError, RecordCorruptError):
            return False
        if saved_at is None:
            return False
        age = as_utc(now) - saved_at
        if age >= timedelta(seconds=self._config.doomsday_retention_seconds):
            return False
        self._logger.info(
            "Preserving doomsday backup %s (age: %.1f hours)",
            os.path.basename(path),
            age.total_seconds() / 3600,
        )
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _discard(self, path: str) -> None:
        try:
            self._fs.delete(path)
        except OSError as exc:
            self._logger.debug("Could not remove temp file %s: %s", path, exc)

    def _lock_for(self, key: RecordKey) -> threading.Lock:
        name = str(key)
        with self._locks_guard:
            lock = self._locks.get(name)
            if lock is None:
                lock = threading.Lock()
                self._locks[name] = lock
            return lock

    @staticmethod
    def _chain(path: str, tag: str, generations: int) -> list[str]:
        return [f"{path}.{tag}{i}" for i in range(1, generations + 1)]
