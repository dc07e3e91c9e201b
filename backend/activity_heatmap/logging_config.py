import logging
import sys

from activity_heatmap.config import settings


def setup_logging(level: str = None) -> logging.Logger:
    """
    Configure logging for the application.

    Logs go to stdout with timestamps, levels and module names so they work
    unchanged under uvicorn and Docker.
    """
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # Reduce SQLAlchemy and httpx noise in logs
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return logging.getLogger("activity_heatmap")
