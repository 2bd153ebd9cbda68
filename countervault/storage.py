from __future__ import annotations

import gzip
import json
import logging
import os
import threading
import time
import zlib
from typing import List, Optional

from countervault import config
from countervault.core.exceptions import ConfigurationError, SnapshotDecodeError, StorageError
from countervault.models import Counter

logger = logging.getLogger("countervault.storage")

SNAPSHOT_SUFFIX = ".ser.gz"
DEFAULT_OBSOLETE_STATS_DAYS = 365
_DAY_MILLIS = 24 * 60 * 60 * 1000

# Set once, never cleared
_storage_disabled = threading.Event()
if config.STORAGE_DISABLED:
    _storage_disabled.set()


def disable_storage() -> None:
    """Stop every later write and read from touching the filesystem."""
    _storage_disabled.set()


def is_storage_disabled() -> bool:
    return _storage_disabled.is_set()


def snapshot_path(application: str, storage_name: str) -> str:
    return os.path.join(config.storage_directory(application), storage_name + SNAPSHOT_SUFFIX)


class CounterStorage:
    """Writes a counter to its snapshot file and reads it back."""

    def __init__(self, counter: Counter) -> None:
        if counter is None:
            raise ValueError("counter is required")
        self.counter = counter

    def _get_path(self) -> str:
        return snapshot_path(self.counter.application, self.counter.get_storage_name())

    def write_to_file(self) -> Optional[int]:
        """
        Write the counter to its gzip snapshot file.
        Returns the uncompressed serialized size (a pessimistic estimate of the
        counter's memory footprint), or None when nothing was written.
        """
        if is_storage_disabled():
            return None
        path = self._get_path()
        if self.counter.requests_count == 0 and self.counter.errors_count == 0 and not os.path.exists(path):
            # No file for counters never exercised (e.g. no sql when there is no database)
            return None

        directory = os.path.dirname(path)
        try:
            os.makedirs(directory, exist_ok=True)
        except OSError as exc:
            if not os.path.isdir(directory):
                raise StorageError(f"Storage directory can't be created: {directory}") from exc

        payload = self.counter.model_dump_json().encode("utf-8")
        with open(path, "wb") as out:
            with gzip.GzipFile(fileobj=out, mode="wb") as compressed:
                compressed.write(payload)

        logger.debug(
            "event=snapshot_written counter=%s path=%s size_bytes=%d",
            self.counter.name, path, len(payload)
        )
        return len(payload)

    def read_from_file(self) -> Optional[Counter]:
        return read_counter(self.counter.application, self.counter.get_storage_name())


def read_counter(application: str, storage_name: str) -> Optional[Counter]:
    """Load a counter from its snapshot file; None if storage is disabled or there is no file."""
    if is_storage_disabled():
        return None
    path = snapshot_path(application, storage_name)
    if not os.path.exists(path):
        return None

    with open(path, "rb") as f:
        try:
            with gzip.GzipFile(fileobj=f, mode="rb") as compressed:
                payload = compressed.read()
        except (gzip.BadGzipFile, EOFError, zlib.error) as exc:
            raise SnapshotDecodeError(path, str(exc)) from exc

    try:
        return Counter.model_validate(json.loads(payload.decode("utf-8")))
    except ValueError as exc:
        # Covers bad utf-8, bad json and pydantic validation errors
        raise SnapshotDecodeError(path, str(exc)) from exc


def get_obsolete_stats_days() -> int:
    """
    Number of days before a snapshot file is considered obsolete and deleted
    (365 by default).
    """
    param = config.OBSOLETE_STATS_DAYS
    if param is None:
        return DEFAULT_OBSOLETE_STATS_DAYS
    try:
        result = int(param)
    except ValueError as exc:
        raise ConfigurationError(
            f"The parameter OBSOLETE_STATS_DAYS should be an integer, got {param!r}"
        ) from exc
    if result <= 0:
        raise ConfigurationError("The parameter OBSOLETE_STATS_DAYS should be > 0 (365 recommended)")
    return result


def _list_snapshot_files(application: str) -> List[str]:
    directory = config.storage_directory(application)
    try:
        names = os.listdir(directory)
    except OSError:
        return []
    paths = [os.path.join(directory, name) for name in names if name.endswith(SNAPSHOT_SUFFIX)]
    return [path for path in paths if os.path.isfile(path)]


def delete_obsolete_counter_files(application: str, now: Optional[float] = None) -> int:
    """
    Delete the snapshot files of the application older than the retention window plus a day.
    Returns the size in bytes of the snapshot files still on disk.
    """
    if now is None:
        now = time.time()
    cutoff_millis = int(now * 1000) - (get_obsolete_stats_days() + 1) * _DAY_MILLIS

    disk_usage = 0
    deleted_count = 0
    for path in _list_snapshot_files(application):
        try:
            stat = os.stat(path)
        except FileNotFoundError:
            continue  # Removed concurrently

        deleted = False
        if stat.st_mtime_ns // 1_000_000 < cutoff_millis:
            try:
                os.remove(path)
                deleted = True
                deleted_count += 1
            except OSError as exc:
                logger.warning(
                    "event=snapshot_delete_failure path=%s error=%s",
                    path, str(exc)
                )
        if not deleted:
            disk_usage += stat.st_size

    if deleted_count:
        logger.info(
            "event=snapshots_purged application=%s deleted=%d retained_bytes=%d",
            application, deleted_count, disk_usage
        )
    return disk_usage
