import logging
from typing import Iterable, Optional

from countervault.cleaner import start_cleaner
from countervault.collector import Collector
from countervault.config import APPLICATION_NAME, ENABLE_CLEANER
from countervault.core.metrics import metrics
from countervault.models import Counter
from countervault.storage import get_obsolete_stats_days, is_storage_disabled

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("countervault")

DEFAULT_COUNTER_NAMES = ("http", "sql", "error")


def start_agent(counters: Optional[Iterable[Counter]] = None, application: str = APPLICATION_NAME):
    """
    Restore the application's counters from their snapshots and, when enabled,
    schedule their periodic persistence.
    Returns (collector, scheduler); scheduler is None when the cleaner is disabled.
    """
    # Fails fast on an invalid retention window
    retention_days = get_obsolete_stats_days()

    if counters is None:
        counters = [Counter(name=name, application=application) for name in DEFAULT_COUNTER_NAMES]
    collector = Collector(application, counters, metrics=metrics)

    if is_storage_disabled():
        logger.info("event=storage_disabled application=%s", application)
    else:
        collector.restore_counters()

    scheduler = None
    if ENABLE_CLEANER:
        scheduler = start_cleaner(collector, logger)
    logger.info(
        "event=agent_started application=%s retention_days=%d cleaner=%s",
        application, retention_days, scheduler is not None
    )
    return collector, scheduler
