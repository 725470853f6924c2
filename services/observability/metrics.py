import logging
import time
from contextlib import contextmanager
from typing import Iterator, Optional

logger = logging.getLogger("doc_intake.metrics")


@contextmanager
def timing_metric(name: str, warn_after_s: Optional[float] = None) -> Iterator[None]:
    """
    Log how long the block took; at WARNING level when it ran past `warn_after_s`.
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        duration = time.perf_counter() - start
        level = logging.WARNING if warn_after_s is not None and duration > warn_after_s else logging.INFO
        logger.log(level, "[METRIC] %s took %.3fs", name, duration)
