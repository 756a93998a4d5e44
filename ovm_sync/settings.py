"""Configuration for the OVM offline sync layer."""
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# Base paths
BASE_DIR = Path(__file__).resolve().parent.parent
LOGS_DIR = BASE_DIR / "logs"
LOGS_DIR.mkdir(exist_ok=True)

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
BETTERSTACK_SOURCE_TOKEN = os.getenv("BETTERSTACK_SOURCE_TOKEN")
BETTERSTACK_INGEST_HOST = os.getenv("BETTERSTACK_INGEST_HOST")

# Remote API
API_BASE_URL = os.getenv("API_BASE_URL")
API_TOKEN = os.getenv("API_TOKEN")
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "30"))  # seconds

# Local storage
QUEUE_DIR = Path(os.getenv("QUEUE_DIR", str(BASE_DIR / "data" / "queue")))
SNAPSHOT_RETENTION_DAYS = int(os.getenv("SNAPSHOT_RETENTION_DAYS", "30"))
AUTO_SAVE_DELAY = float(os.getenv("AUTO_SAVE_DELAY", "2"))  # seconds of quiet before a workflow snapshot is written

# Sync settings
STATUS_RESET_SECONDS = float(os.getenv("STATUS_RESET_SECONDS", "2"))
CONNECTIVITY_CHECK_INTERVAL = int(os.getenv("CONNECTIVITY_CHECK_INTERVAL", "5"))
CONNECTIVITY_PROBE_HOST = os.getenv("CONNECTIVITY_PROBE_HOST", "8.8.8.8")
SYNC_INTERVAL = int(os.getenv("SYNC_INTERVAL", "30"))  # seconds between periodic passes


def validate_config():
    """Validate required configuration."""
    errors = []

    if not API_BASE_URL:
        errors.append("API_BASE_URL is required")
    elif not API_BASE_URL.startswith(("http://", "https://")):
        errors.append(f"API_BASE_URL must be an http(s) URL: {API_BASE_URL}")

    if REQUEST_TIMEOUT <= 0:
        errors.append("REQUEST_TIMEOUT must be positive")

    if SYNC_INTERVAL <= 0:
        errors.append("SYNC_INTERVAL must be positive")

    try:
        QUEUE_DIR.mkdir(parents=True, exist_ok=True)
    except Exception as e:
        errors.append(f"Cannot create QUEUE_DIR: {e}")

    if errors:
        raise ValueError("Config errors:\n  " + "\n  ".join(errors))
