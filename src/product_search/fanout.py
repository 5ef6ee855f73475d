"""
Concurrent fan-out of independent catalog reads.

All sub-queries of one request are submitted together and joined under a
single deadline. The first failure, or the deadline expiring, cancels
whatever has not started yet and aborts the request; running queries are
bounded server-side by the connection's statement_timeout.
"""

import contextvars
import time
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Any, Callable, Dict

from core.logging import get_logger
from product_search.errors import SearchTimeoutError

logger = get_logger(__name__)


def run_parallel(
    tasks: Dict[str, Callable[[], Any]],
    timeout: float,
    max_workers: int,
) -> Dict[str, Any]:
    """
    Run named zero-argument callables concurrently and collect their results.

    Args:
        tasks: Mapping of task name -> callable.
        timeout: Seconds to wait for every task.
        max_workers: Upper bound on threads for this fan-out.

    Returns:
        Mapping of task name -> result.

    Raises:
        SearchTimeoutError: If the deadline expires first.
        Exception: The first exception raised by any task, unchanged.
    """
    if not tasks:
        return {}

    t0 = time.time()
    executor = ThreadPoolExecutor(max_workers=max(1, min(len(tasks), max_workers)))
    try:
        # Each task gets its own context copy so bound log context follows it.
        futures = {
            name: executor.submit(contextvars.copy_context().run, fn)
            for name, fn in tasks.items()
        }
        done, not_done = wait(futures.values(), timeout=timeout, return_when=FIRST_EXCEPTION)

        for name, future in futures.items():
            if future in done and future.exception() is not None:
                for pending in not_done:
                    pending.cancel()
                raise future.exception()

        if not_done:
            for pending in not_done:
                pending.cancel()
            pending_names = [name for name, f in futures.items() if f in not_done]
            logger.warning(
                "Search deadline exceeded",
                timeout_s=timeout,
                pending=pending_names,
            )
            raise SearchTimeoutError(
                f"Search exceeded {timeout:.1f}s deadline (pending: {', '.join(pending_names)})"
            )

        logger.debug(
            "Fan-out completed",
            tasks=list(tasks),
            elapsed_ms=int((time.time() - t0) * 1000),
        )
        return {name: future.result() for name, future in futures.items()}
    finally:
        executor.shutdown(wait=False, cancel_futures=True)
