"""Background query execution with results marshaled back to the UI loop"""

import time
from concurrent.futures import Executor, Future
from typing import Any, Callable, Optional, Sequence

from loguru import logger

from db import QUERY_TIMEOUT, PolicyRejected, QueryError, QueryResult, Session, check_single_statement
from notifications import Notifier


def format_elapsed(seconds: float) -> str:
    """Elapsed wall-clock time truncated to whole milliseconds."""
    ms = int(seconds * 1000)
    if ms < 1000:
        return f"{ms}ms"
    return f"{ms / 1000:g}s"


class QueryExecutor:
    """
    Runs queries on a worker pool and reports back through `dispatch`.

    Each call gets its own deadline. On success the result is handed to the
    caller's render callback and a row-count toast is posted; on failure only
    a toast is posted, so whatever was displayed before stays on screen.
    Both happen on the UI loop.
    """

    def __init__(self, session: Session, runner: Executor,
                 dispatch: Callable[..., Any], notifier: Notifier):
        self.session = session
        self._runner = runner
        self._dispatch = dispatch
        self._notifier = notifier

    def run(
        self,
        query: str,
        on_result: Callable[[QueryResult], None],
        params: Optional[Sequence[Any]] = None,
        timeout: float = QUERY_TIMEOUT,
        error_label: str = "query error",
        announce: bool = True,
        is_current: Optional[Callable[[], bool]] = None,
    ) -> Future:
        """
        Submit one query.

        `announce` posts "<n> rows in <elapsed>" on success. `is_current` is
        checked on the UI loop before anything is applied; when it returns
        False the completion is stale and is dropped.
        """
        return self._runner.submit(
            self._execute, query, params, timeout, on_result,
            error_label, announce, is_current,
        )

    def run_adhoc(self, text: str, on_result: Callable[[QueryResult], None]) -> Optional[Future]:
        """Run operator-typed SQL after trimming and the single-statement check."""
        query = text.strip()
        if not query:
            return None
        try:
            check_single_statement(query)
        except PolicyRejected as e:
            logger.info("Rejected ad-hoc query: {}", e)
            self.notify(str(e))
            return None
        return self.run(query, on_result)

    def notify(self, message: str) -> None:
        """Post a toast. UI loop only."""
        self._notifier.post(message)

    def _execute(self, query, params, timeout, on_result, error_label, announce, is_current):
        # Worker thread
        started = time.monotonic()
        logger.debug("Executing (timeout {}s): {}", timeout, " ".join(query.split()))
        try:
            result = self.session.execute(query, params, timeout=timeout)
        except QueryError as e:
            logger.warning("{} [{}]: {}", error_label, type(e).__name__, e)
            self._dispatch(self._fail, error_label, e, is_current)
            return None

        elapsed = time.monotonic() - started
        logger.debug("{} rows in {}", result.row_count, format_elapsed(elapsed))
        self._dispatch(self._deliver, result, elapsed, on_result, announce, is_current)
        return result

    def _deliver(self, result, elapsed, on_result, announce, is_current) -> None:
        if is_current is not None and not is_current():
            logger.debug("Dropped stale result ({} rows)", result.row_count)
            return
        on_result(result)
        if announce:
            self._notifier.post(f"{result.row_count} rows in {format_elapsed(elapsed)}")

    def _fail(self, error_label, error, is_current) -> None:
        if is_current is not None and not is_current():
            return
        self._notifier.post(f"{error_label}: {error}")
