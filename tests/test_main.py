import pytest

import aibot.__main__ as entry
from aibot.core.exceptions import AcquisitionError


class StubDriver:
    outcome = 0

    def __init__(self, settings):
        self.settings = settings

    async def run(self):
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome


@pytest.fixture
def stub_entry(monkeypatch, settings):
    monkeypatch.setattr(entry, "get_settings", lambda: settings)
    monkeypatch.setattr(entry, "setup_logging", lambda settings: None)
    monkeypatch.setattr(entry, "LifecycleDriver", StubDriver)
    return StubDriver


def test_clean_shutdown_exits_zero(stub_entry, monkeypatch):
    monkeypatch.setattr(stub_entry, "outcome", 0)

    with pytest.raises(SystemExit) as exc_info:
        entry.main()

    assert exc_info.value.code == 0


def test_startup_failure_exits_non_zero(stub_entry, monkeypatch):
    monkeypatch.setattr(stub_entry, "outcome", AcquisitionError("storage", "connection refused"))

    with pytest.raises(SystemExit) as exc_info:
        entry.main()

    assert exc_info.value.code == entry.EXIT_STARTUP_FAILED


def test_interrupt_before_startup_exits_130(stub_entry, monkeypatch):
    monkeypatch.setattr(stub_entry, "outcome", KeyboardInterrupt())

    with pytest.raises(SystemExit) as exc_info:
        entry.main()

    assert exc_info.value.code == entry.EXIT_INTERRUPTED
