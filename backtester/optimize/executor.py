"""Trial executor — runs independent backtests sequentially or on a pool.

Each trial owns its strategy and portfolio, so trials need no
synchronisation beyond collecting results.  Results always come back in
submission order; the first failure propagates and pending trials are
cancelled.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Callable, Sequence, TypeVar

logger = logging.getLogger("backtester.optimize")

T = TypeVar("T")


def resolve_workers(n_items: int, max_workers: int | None) -> int:
    """Clamp the worker count to ``[1, n_items]``.

    ``None`` means one worker (sequential); ``0`` means one per CPU.
    """
    if max_workers is None:
        return 1
    if max_workers == 0:
        max_workers = os.cpu_count() or 1
    return max(1, min(max_workers, n_items))


def run_trials(
    trials: Sequence[Callable[[], T]],
    max_workers: int | None = None,
) -> list[T]:
    """Run zero-argument *trials* and return their results in order."""
    if not trials:
        return []

    workers = resolve_workers(len(trials), max_workers)
    if workers == 1:
        return [trial() for trial in trials]

    logger.info("Running %d trial(s) on %d worker(s)", len(trials), workers)
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(trial) for trial in trials]
        done, pending = wait(futures, return_when=FIRST_EXCEPTION)
        for fut in pending:
            fut.cancel()
        for fut in futures:
            exc = fut.exception() if fut in done else None
            if exc is not None:
                raise exc
        return [fut.result() for fut in futures]
