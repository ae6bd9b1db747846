"""Fixed-size thread pools used by every batch phase.

Two shapes are supported:
- `run_partitioned`: static split of a sequence into contiguous blocks, one per
  worker; each worker returns a local result and the caller merges them in block
  order after the join.
- `run_task_queue`: a queue of keys consumed by a fixed pool; each task owns its
  key in the shared output dict, so the lock only serializes insertion.

Both calls return only after every worker has finished (phase barrier). The
first worker exception is re-raised in the caller.
"""
from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, Hashable, Iterable, Sequence, TypeVar

from .errors import PhaseCancelledError


logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")
K = TypeVar("K", bound=Hashable)

_STOP = object()


def partition_blocks(n_items: int, num_workers: int) -> list[tuple[int, int]]:
    """Contiguous [start, end) blocks; the last block absorbs the remainder."""
    n_items = int(n_items)
    num_workers = max(1, int(num_workers))
    block = n_items // num_workers
    out: list[tuple[int, int]] = []
    for w in range(num_workers):
        start = w * block
        end = n_items if w == num_workers - 1 else start + block
        out.append((start, end))
    return out


def run_partitioned(
    work: Callable[[Sequence[T]], R],
    items: Sequence[T],
    *,
    num_workers: int,
    cancel: threading.Event | None = None,
    name: str = "partition",
) -> list[R]:
    blocks = partition_blocks(len(items), num_workers)
    results: list[R | None] = [None] * len(blocks)
    errors: list[BaseException] = []
    lock = threading.Lock()

    def _run(idx: int, start: int, end: int) -> None:
        if cancel is not None and cancel.is_set():
            return
        try:
            local = work(items[start:end])
        except BaseException as exc:  # re-raised by the caller after join
            with lock:
                errors.append(exc)
            return
        results[idx] = local

    threads = [
        threading.Thread(target=_run, args=(idx, start, end), name=f"{name}-{idx}", daemon=True)
        for idx, (start, end) in enumerate(blocks)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    if errors:
        raise errors[0]
    if cancel is not None and cancel.is_set():
        done = sum(1 for r in results if r is not None)
        raise PhaseCancelledError(done, len(blocks))

    logger.debug("%s: %d items over %d blocks", name, len(items), len(blocks))
    return list(results)  # type: ignore[arg-type]


def run_task_queue(
    task: Callable[[K], R],
    keys: Iterable[K],
    *,
    num_workers: int,
    cancel: threading.Event | None = None,
    name: str = "pool",
) -> dict[K, R]:
    unique_keys = list(dict.fromkeys(keys))
    num_workers = max(1, int(num_workers))

    tasks: queue.Queue = queue.Queue(maxsize=len(unique_keys) + num_workers)
    for key in unique_keys:
        tasks.put(key)
    for _ in range(num_workers):
        tasks.put(_STOP)

    out: dict[K, R] = {}
    errors: list[BaseException] = []
    lock = threading.Lock()
    failed = threading.Event()

    def _worker() -> None:
        while True:
            key = tasks.get()
            if key is _STOP:
                return
            if failed.is_set() or (cancel is not None and cancel.is_set()):
                continue
            try:
                value = task(key)
            except BaseException as exc:  # re-raised by the caller after join
                with lock:
                    errors.append(exc)
                failed.set()
                continue
            with lock:
                out[key] = value

    threads = [threading.Thread(target=_worker, name=f"{name}-{w}", daemon=True) for w in range(num_workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    if errors:
        raise errors[0]
    if len(out) < len(unique_keys) and cancel is not None and cancel.is_set():
        raise PhaseCancelledError(len(out), len(unique_keys))

    logger.debug("%s: %d tasks on %d workers", name, len(out), num_workers)
    return out
