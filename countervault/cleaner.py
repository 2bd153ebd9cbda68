from apscheduler.schedulers.background import BackgroundScheduler

from countervault.config import RESOLUTION_SECONDS
from countervault.storage import get_obsolete_stats_days


def start_cleaner(collector, logger):
    # Invalid retention must stop the agent here, not in a background job
    get_obsolete_stats_days()

    scheduler = BackgroundScheduler()

    def _collect_job():
        try:
            estimated_size = collector.write_counters()
            logger.debug("event=counters_written estimated_size_bytes=%s", estimated_size)
        except OSError as e:
            logger.error("Storage error in collect job: %s", str(e))
        except Exception as e:
            logger.error("Unexpected error in collect job: %s", str(e))

    def _purge_job():
        try:
            retained = collector.purge()
            logger.info("event=purge_done retained_bytes=%s", retained)
        except Exception as e:
            logger.error("Unexpected error in purge job: %s", str(e))

    scheduler.add_job(_collect_job, "interval", seconds=RESOLUTION_SECONDS)
    # Obsolete snapshots are removed at midnight
    scheduler.add_job(_purge_job, "cron", hour=0, minute=0)
    scheduler.start()
    return scheduler
