import os
import tempfile
from dotenv import load_dotenv

load_dotenv()

STORAGE_DIR = os.getenv("STORAGE_DIR", os.path.join(tempfile.gettempdir(), "countervault"))
# Raw value, validated where the retention policy is consulted
OBSOLETE_STATS_DAYS = os.getenv("OBSOLETE_STATS_DAYS")
STORAGE_DISABLED = os.getenv("STORAGE_DISABLED", "false").lower() in {"true", "1", "yes"}
ENABLE_CLEANER = os.getenv("ENABLE_CLEANER", "true").lower() in {"true", "1", "yes"}
RESOLUTION_SECONDS = max(1, int(os.getenv("RESOLUTION_SECONDS", "60")))
APPLICATION_NAME = os.getenv("APPLICATION_NAME", "countervault")


def storage_directory(application: str) -> str:
    """Directory holding the snapshot files of one application."""
    root = STORAGE_DIR
    if not os.path.isabs(root):
        root = os.path.join(tempfile.gettempdir(), root)
    return os.path.join(root, application)
