from __future__ import annotations

import logging
import threading
from typing import Sequence

from .store import UserProfiles
from .workers import run_partitioned


logger = logging.getLogger(__name__)

# itemId -> userIds who rated it
InvertedIndex = dict[int, list[int]]


def build_inverted_index(
    profiles: UserProfiles,
    *,
    num_workers: int = 16,
    cancel: threading.Event | None = None,
) -> InvertedIndex:
    """Invert user profiles into an item -> raters index.

    Users (not ratings) are partitioned across workers. Every user lands in
    exactly one block, so merging partial lists by item key never duplicates ids.
    """
    users = list(profiles)

    def _invert_block(block: Sequence[int]) -> InvertedIndex:
        local: InvertedIndex = {}
        for u in block:
            for i in profiles[u]:
                local.setdefault(i, []).append(u)
        return local

    inverted: InvertedIndex = {}
    for local in run_partitioned(_invert_block, users, num_workers=num_workers, cancel=cancel, name="inverted-index"):
        for i, raters in local.items():
            inverted.setdefault(i, []).extend(raters)

    logger.info("InvertedIndex: items=%d", len(inverted))
    return inverted
