import logging
import sys
from typing import Optional

from core.config import settings

# client libraries that log every request at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "pymongo")


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure logging for the API process; call once at startup.
    The level defaults to LOG_LEVEL.
    """
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


logger = logging.getLogger("doc_intake")
