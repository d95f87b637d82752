"""Celery background sync tasks, executed eagerly."""

import asyncio

import pytest

from conftest import FakeRenderer, staged
from orderdesk.database import LocalStore
from orderdesk.models.enums import ReferenceCollection
from orderdesk.runtime import OfflineRuntime
from orderdesk.services.connectivity import ConnectivitySignal
from orderdesk.services.offline_orders import OfflineOrderRepository
from orderdesk.services.reference_sync import ReferenceDataCache
from orderdesk.tasks import sync as sync_tasks


def _stage(db_url, *codes):
    async def run():
        store = LocalStore(db_url)
        try:
            repository = OfflineOrderRepository(store)
            for code in codes:
                await repository.save(staged(code))
        finally:
            await store.close()

    asyncio.run(run())


def _read(db_url, reader):
    async def run():
        store = LocalStore(db_url)
        try:
            return await reader(store)
        finally:
            await store.close()

    return asyncio.run(run())


@pytest.fixture
def worker_runtime(monkeypatch, db_url, client):
    """Point the tasks at the temporary database and the fake server."""
    state = {"online": True}

    def build():
        return OfflineRuntime(
            store=LocalStore(db_url),
            connectivity=ConnectivitySignal(initial=state["online"]),
            client=client,
            renderer=FakeRenderer(),
        )

    monkeypatch.setattr(sync_tasks, "_build_runtime", build)
    return state


def test_sync_task_delivers_staged_orders(worker_runtime, db_url, server):
    _stage(db_url, "OFF-A", "OFF-B")

    result = sync_tasks.sync_offline_orders.apply().get()

    assert result == {"success": 2, "failed": 0}
    assert server.sync_calls == ["OFF-A", "OFF-B"]
    pending = _read(db_url, lambda store: OfflineOrderRepository(store).count_pending())
    assert pending == 0


def test_sync_task_skips_when_server_unreachable(worker_runtime, db_url, server):
    worker_runtime["online"] = False
    _stage(db_url, "OFF-A")

    result = sync_tasks.sync_offline_orders.apply().get()

    assert result == {"success": 0, "failed": 0}
    assert server.sync_calls == []


def test_reference_task_refreshes_cache(worker_runtime, db_url):
    assert sync_tasks.refresh_reference_data.apply().get() is True

    cached = _read(
        db_url, lambda store: ReferenceDataCache(store).read(ReferenceCollection.SUPPLIERS)
    )
    assert cached.data == [{"id": 1, "name": "suppliers-1"}]


def test_beat_schedule_registers_both_tasks():
    from orderdesk.celery_app import celery

    scheduled = {entry["task"] for entry in celery.conf.beat_schedule.values()}
    assert scheduled == {
        "orderdesk.tasks.sync.sync_offline_orders",
        "orderdesk.tasks.sync.refresh_reference_data",
    }


def test_sync_task_survives_unopenable_store(monkeypatch, unopenable_db_url, client, server):
    monkeypatch.setattr(
        sync_tasks,
        "_build_runtime",
        lambda: OfflineRuntime(
            store=LocalStore(unopenable_db_url),
            connectivity=ConnectivitySignal(initial=True),
            client=client,
        ),
    )

    result = sync_tasks.sync_offline_orders.apply().get()

    assert result == {"success": 0, "failed": 0}
    assert server.sync_calls == []
