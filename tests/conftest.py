from concurrent.futures import Executor, Future

import pytest

from db import QueryResult
from executor import QueryExecutor
from navigator import CatalogNavigator
from notifications import Notifier


class InlineRunner(Executor):
    """Runs submitted work immediately on the calling thread."""

    def submit(self, fn, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


class QueuedRunner(Executor):
    """Holds submitted work until the test runs it, in any order."""

    def __init__(self):
        self.jobs = []

    def submit(self, fn, *args, **kwargs):
        future = Future()
        self.jobs.append((future, fn, args, kwargs))
        return future

    def run(self, index=0):
        future, fn, args, kwargs = self.jobs.pop(index)
        future.set_result(fn(*args, **kwargs))

    def run_all(self):
        while self.jobs:
            self.run()


class QueuedDispatch:
    """Collects UI-loop callbacks instead of running them."""

    def __init__(self):
        self.pending = []

    def __call__(self, fn, *args):
        self.pending.append((fn, args))

    def drain(self):
        while self.pending:
            fn, args = self.pending.pop(0)
            fn(*args)


def immediate_dispatch(fn, *args):
    return fn(*args)


class FakeTimer:
    instances = []

    def __init__(self, interval, function, args=()):
        self.interval = interval
        self.function = function
        self.args = args
        self.daemon = False
        self.started = False
        self.cancelled = False
        FakeTimer.instances.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        # Fires even when cancelled, like a timer thread that already woke up
        self.function(*self.args)


class FakeSession:
    """
    Answers queries from a list of (substring, response) pairs.
    A response is a QueryResult, an exception to raise, or a callable
    taking (query, params) and returning either.
    """

    def __init__(self, responses=(), preview_limit=100):
        self.responses = list(responses)
        self.preview_limit = preview_limit
        self.calls = []

    def execute(self, query, params=None, timeout=30.0):
        self.calls.append((query, params, timeout))
        for key, response in self.responses:
            if key in query:
                if callable(response) and not isinstance(response, QueryResult):
                    response = response(query, params)
                if isinstance(response, Exception):
                    raise response
                return response
        return QueryResult()

    @property
    def queries(self):
        return [query for query, _, _ in self.calls]


class RecordingView:
    def __init__(self):
        self.schemas = None
        self.tables = None
        self.columns = None
        self.result = None
        self.cleared = 0
        self.toasts = []
        self.idle = []
        self.status = ""

    def on_schemas_loaded(self, schemas):
        self.schemas = schemas

    def on_tables_loaded(self, tables):
        self.tables = tables

    def on_columns_loaded(self, columns):
        self.columns = columns

    def on_result(self, result):
        self.result = result

    def on_clear(self):
        self.cleared += 1
        self.columns = None
        self.result = None

    def show_toast(self, message):
        self.toasts.append(message)
        self.status = message

    def show_idle(self, message):
        self.idle.append(message)
        self.status = message


class Harness:
    def __init__(self, session, runner=None, dispatch=immediate_dispatch):
        self.session = session
        self.view = RecordingView()
        self.runner = runner or InlineRunner()
        self.notifier = Notifier(self.view.show_toast, self.view.show_idle,
                                 dispatch=dispatch, timer_factory=FakeTimer)
        self.executor = QueryExecutor(session, self.runner, dispatch, self.notifier)
        self.navigator = CatalogNavigator(self.executor, self.view, session.preview_limit)


def result(headers, *rows):
    return QueryResult(headers=tuple(headers), rows=tuple(tuple(r) for r in rows))


@pytest.fixture(autouse=True)
def reset_timers():
    FakeTimer.instances.clear()
    yield
    FakeTimer.instances.clear()
