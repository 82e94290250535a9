"""
Logging setup for the packing backend.

Every module logs through ``logging.getLogger(__name__)``; this module only
decides where the records go and how they look.
"""
import logging
import sys

from packing.core.config import get_settings

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def setup_logging(level: str | None = None, log_file: str | None = None) -> None:
    """
    Configure the root logger once for the whole application.

    Args:
        level: Log level name; defaults to ``Settings.LOG_LEVEL``.
        log_file: Optional file path; defaults to ``Settings.LOG_FILE``.
            Console (stdout) output is always enabled.
    """
    settings = get_settings()
    level = (level or settings.LOG_LEVEL).upper()
    log_file = log_file or settings.LOG_FILE

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)

    # SQL echo is far too chatty at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
