from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from countervault.core.metrics import MetricsStore
from countervault.models import Counter
from countervault.storage import CounterStorage, delete_obsolete_counter_files

logger = logging.getLogger("countervault.collector")


class Collector:
    """Counters of one application, persisted between agent restarts."""

    def __init__(
        self,
        application: str,
        counters: Iterable[Counter],
        metrics: Optional[MetricsStore] = None,
    ) -> None:
        self.application = application
        self.metrics = metrics
        self._counters: Dict[str, Counter] = {}
        for counter in counters:
            if counter.application != application:
                raise ValueError(
                    f"Counter {counter.name} belongs to {counter.application}, not {application}"
                )
            self._counters[counter.get_storage_name()] = counter

    @property
    def counters(self) -> List[Counter]:
        return list(self._counters.values())

    def get_counter(self, storage_name: str) -> Optional[Counter]:
        return self._counters.get(storage_name)

    def restore_counters(self) -> int:
        """Replace each counter by its stored snapshot, if any. Returns how many were restored."""
        restored = 0
        for storage_name, counter in list(self._counters.items()):
            stored = CounterStorage(counter).read_from_file()
            if stored is not None:
                self._counters[storage_name] = stored
                restored += 1
        if restored:
            logger.info(
                "event=counters_restored application=%s count=%d",
                self.application, restored
            )
        return restored

    def write_counters(self) -> int:
        """Write every counter; returns the estimated memory size of the written counters."""
        estimated_size = 0
        for counter in self._counters.values():
            size = CounterStorage(counter).write_to_file()
            if self.metrics is not None:
                self.metrics.record_write(size)
            if size is not None:
                estimated_size += size
        return estimated_size

    def purge(self) -> int:
        """Delete obsolete snapshot files; returns the bytes of snapshots still on disk."""
        disk_usage = delete_obsolete_counter_files(self.application)
        if self.metrics is not None:
            self.metrics.record_purge(disk_usage)
        return disk_usage
