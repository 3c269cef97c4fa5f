import pytest

from conftest import FakeSession

from ui import PeekApp


class CancellingSession(FakeSession):
    def __init__(self):
        super().__init__()
        self.cancelled = 0

    def cancel_all(self):
        self.cancelled += 1
        return 0


def test_quit_and_refresh_accept_either_case():
    keys = {}
    for binding in PeekApp.BINDINGS:
        for key in binding.key.split(","):
            keys[key.strip()] = binding.action
    assert keys["q"] == keys["Q"] == "quit"
    assert keys["r"] == keys["R"] == "refresh"
    assert keys["f5"] == "run_query"


def test_unmount_cancels_running_queries():
    session = CancellingSession()
    app = PeekApp(session)

    app.on_unmount()

    assert session.cancelled == 1
    with pytest.raises(RuntimeError):
        app.runner.submit(print)
