import asyncio

import pytest

from application.services.shared_file_service import CleanupReport
from infrastructure.tasks import celery_app
from infrastructure.tasks.tasks import cleanup


def test_cleanup_task_runs_sweep(monkeypatch):
    calls = []

    async def fake_run_cleanup():
        calls.append(True)
        return {"scanned": 3, "purged": 2, "failures": 1}

    monkeypatch.setattr(cleanup, "_run_cleanup", fake_run_cleanup)
    result = cleanup.cleanup_expired_files.apply()

    assert result.successful()
    assert result.get() == {"scanned": 3, "purged": 2, "failures": 1}
    assert calls == [True]


def test_cleanup_is_scheduled_on_low_queue():
    entry = celery_app.conf.beat_schedule["shares-cleanup-expired"]
    assert entry["task"] == cleanup.cleanup_expired_files.name == "shares.cleanup_expired"
    assert entry["options"]["queue"] == "low"
    assert celery_app.conf.task_always_eager is True


class _StubProvider:
    def __init__(self):
        self.closed = False

    async def close(self):
        self.closed = True


class _StubService:
    def __init__(self, error=None):
        self.error = error

    async def cleanup_expired(self):
        if self.error:
            raise self.error
        return CleanupReport(scanned=2, purged=2, failures=0)


@pytest.fixture
def cleanup_wiring(monkeypatch):
    import api.dependencies
    import infrastructure.database
    import infrastructure.external.storage.factory

    state = {"provider": _StubProvider(), "service": _StubService(), "disposed": 0}

    async def fake_create_provider(config):
        return state["provider"]

    async def fake_dispose_engine():
        state["disposed"] += 1

    monkeypatch.setattr(infrastructure.external.storage.factory, "create_provider", fake_create_provider)
    monkeypatch.setattr(api.dependencies, "build_shared_file_service", lambda storage: state["service"])
    monkeypatch.setattr(infrastructure.database, "dispose_engine", fake_dispose_engine)
    return state


def test_cleanup_closes_provider_after_sweep(cleanup_wiring):
    result = asyncio.run(cleanup._run_cleanup())

    assert result == {"scanned": 2, "purged": 2, "failures": 0}
    assert cleanup_wiring["provider"].closed is True
    assert cleanup_wiring["disposed"] == 1


def test_cleanup_closes_provider_when_sweep_fails(cleanup_wiring):
    cleanup_wiring["service"] = _StubService(error=RuntimeError("db down"))

    with pytest.raises(RuntimeError):
        asyncio.run(cleanup._run_cleanup())

    assert cleanup_wiring["provider"].closed is True
    assert cleanup_wiring["disposed"] == 1
