# Shop Reports - Report aggregation & export for fabrication shops
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Concurrent fan-out / fan-in of store queries.

All queries of one report are independent, so they are submitted together to
a ``ThreadPoolExecutor`` and the caller waits for every one of them. The wait
is bounded by a timeout and polls a ``CancelToken`` so that a request closed
by the user stops waiting without blocking on slow queries.

The outcome keeps successes and failures apart; deciding whether a failure
fails the whole report or only zero-fills a section is the aggregation
engine's job.
"""

import logging
import threading
import time
from collections.abc import Mapping
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Optional

from .errors import FetchTimeoutError, ReportCancelledError
from .store import DataStore, Query

logger = logging.getLogger(__name__)

_POLL_SECONDS = 0.05


class CancelToken:
    """Thread-safe cancellation flag shared by a request and its fetches."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ReportCancelledError("Report request was cancelled.")


@dataclass
class FetchOutcome:
    """Rows of every successful fetch and the exception of every failed one."""

    results: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    failures: dict[str, BaseException] = field(default_factory=dict)
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.failures


def fan_out(
    store: DataStore,
    queries: Mapping[str, Query],
    *,
    timeout: Optional[float] = None,
    cancel_token: Optional[CancelToken] = None,
    max_workers: int = 4,
) -> FetchOutcome:
    """
    Run named queries concurrently and wait for all of them.

    Parameters
    ----------
    store:
        Data store used for every query.
    queries:
        Mapping fetch name -> query. Result order follows this mapping.
    timeout:
        Maximum number of seconds to wait for the whole batch
        (``None``: no limit).
    cancel_token:
        Checked before submitting and while waiting.
    max_workers:
        Upper bound of worker threads.

    Raises
    ------
    ReportCancelledError
        The token was cancelled before every query finished.
    FetchTimeoutError
        The batch did not finish within ``timeout``; names the pending fetches.
    """
    token = cancel_token or CancelToken()
    outcome = FetchOutcome()
    if not queries:
        return outcome

    token.raise_if_cancelled()
    started = time.monotonic()
    deadline = None if timeout is None else started + timeout

    executor = ThreadPoolExecutor(
        max_workers=max(1, min(max_workers, len(queries))),
        thread_name_prefix="report-fetch",
    )
    try:
        futures: dict[Future, str] = {
            executor.submit(store.fetch, query): name for name, query in queries.items()
        }
        pending = set(futures)
        while pending:
            token.raise_if_cancelled()
            wait_for = _POLL_SECONDS
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    names = [futures[f] for f in futures if f in pending]
                    raise FetchTimeoutError(
                        f"Timed out after {timeout:g}s waiting for: {', '.join(names)}",
                        fetches=names,
                        context={"timeout": timeout},
                    )
                wait_for = min(wait_for, remaining)
            _, pending = wait(pending, timeout=wait_for, return_when=FIRST_COMPLETED)

        for future, name in futures.items():
            error = future.exception()
            if error is not None:
                logger.warning("Fetch %r failed: %s", name, error)
                outcome.failures[name] = error
            else:
                outcome.results[name] = future.result()
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    # Keep results in plan order.
    outcome.results = {n: outcome.results[n] for n in queries if n in outcome.results}
    outcome.failures = {n: outcome.failures[n] for n in queries if n in outcome.failures}
    outcome.elapsed = time.monotonic() - started
    logger.debug(
        "Fetched %d quer%s in %.3fs (%d failed)",
        len(queries),
        "y" if len(queries) == 1 else "ies",
        outcome.elapsed,
        len(outcome.failures),
    )
    return outcome
