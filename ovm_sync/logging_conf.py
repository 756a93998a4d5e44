"""Logging configuration with Betterstack support."""
import logging
import sys
from logging.handlers import RotatingFileHandler
from logtail import LogtailHandler

from ovm_sync import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [job=%(job_id)s] %(message)s"


class JobContextFilter(logging.Filter):
    """Fills in job_id/item_id so records logged without them still format."""

    def filter(self, record):
        if not hasattr(record, "job_id") or record.job_id is None:
            record.job_id = "-"
        if not hasattr(record, "item_id"):
            record.item_id = None
        return True


def setup_logging(level=None, log_file=None):
    level_name = (level or settings.LOG_LEVEL).upper()
    level = getattr(logging, level_name, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = []

    formatter = logging.Formatter(LOG_FORMAT)
    context = JobContextFilter()

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(context)
    root_logger.addHandler(console_handler)

    # File handler
    file_handler = RotatingFileHandler(
        log_file or settings.LOGS_DIR / "sync.log", maxBytes=10 * 1024 * 1024, backupCount=5
    )
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(formatter)
    file_handler.addFilter(context)
    root_logger.addHandler(file_handler)

    # BetterStack handler, ships job_id/item_id as structured fields
    if settings.BETTERSTACK_SOURCE_TOKEN:
        try:
            handler_kwargs = {"source_token": settings.BETTERSTACK_SOURCE_TOKEN}
            if settings.BETTERSTACK_INGEST_HOST:
                handler_kwargs["host"] = settings.BETTERSTACK_INGEST_HOST
            betterstack_handler = LogtailHandler(**handler_kwargs)
            betterstack_handler.setLevel(logging.DEBUG)
            betterstack_handler.addFilter(context)
            root_logger.addHandler(betterstack_handler)
            host_info = settings.BETTERSTACK_INGEST_HOST or "default (in.logs.betterstack.com)"
            root_logger.info(f"BetterStack logging enabled (host: {host_info})")
        except Exception as e:
            root_logger.warning(f"Failed to initialize BetterStack logging: {e}")

    logging.getLogger("urllib3").setLevel(logging.WARNING)
    return root_logger


logger = setup_logging()
