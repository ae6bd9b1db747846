from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Iterator

from .user_cf.errors import PhaseError


logger = logging.getLogger(__name__)


def setup_logging(level: int | str = "INFO") -> None:
    """Configure stdlib logging with a consistent, project-wide format."""
    root_logger = logging.getLogger()
    if root_logger.handlers:
        # Avoid duplicate handlers if called multiple times (e.g., tests + CLI).
        root_logger.setLevel(level)
        return

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


@contextmanager
def log_phase(name: str, timings: dict[str, float] | None = None) -> Iterator[None]:
    """Log start/elapsed time of a batch phase and tag failures with the phase name.

    Any exception escaping the block is re-raised as `PhaseError` so callers can
    report which phase of the run broke.
    """
    logger.info("Phase %s: start", name)
    t0 = time.perf_counter()
    try:
        yield
    except PhaseError:
        raise
    except Exception as exc:
        logger.error("Phase %s failed after %.2fs: %s", name, time.perf_counter() - t0, exc)
        raise PhaseError(name, exc) from exc

    elapsed = time.perf_counter() - t0
    if timings is not None:
        timings[name] = elapsed
    logger.info("Phase %s: done in %.2fs", name, elapsed)
