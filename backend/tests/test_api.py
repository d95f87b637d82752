"""HTTP surface: envelopes, status codes and routing to the runtime."""

import httpx
import pytest
import pytest_asyncio

from conftest import make_order, staged
from orderdesk.core.deps import get_runtime
from orderdesk.main import app


@pytest_asyncio.fixture
async def api(runtime):
    app.dependency_overrides[get_runtime] = lambda: runtime
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac
    app.dependency_overrides.clear()


async def _go_offline(api):
    r = await api.post("/api/v1/connectivity", json={"online": False})
    assert r.status_code == 200
    assert r.json()["data"] == {"online": False, "changed": True}


# ==================== SUBMISSION ====================

@pytest.mark.asyncio
async def test_submit_online(api):
    r = await api.post("/api/v1/orders/submit", json=make_order())

    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["data"]["order_code"] == "CMD-0001"
    assert body["data"]["is_offline"] is False
    assert body["data"]["state"] == "submitted_online"

    cached = await api.get("/api/v1/reference-data/orders")
    assert cached.json()["data"]["data"][0]["orderCode"] == "CMD-0001"


@pytest.mark.asyncio
async def test_submit_offline_then_inspect(api):
    await _go_offline(api)

    r = await api.post("/api/v1/orders/submit", json=make_order())
    assert r.status_code == 200
    result = r.json()["data"]
    assert result["is_offline"] is True
    assert result["state"] == "submitted_offline"
    code = result["order_code"]

    listing = (await api.get("/api/v1/offline-orders")).json()
    assert listing["meta"]["total"] == 1
    record = listing["data"][0]
    assert record["id"] == code
    assert record["state"] == "pending"
    assert record["has_document_snapshot"] is True
    assert "document_snapshot" not in record

    detail = await api.get(f"/api/v1/offline-orders/{code}")
    assert detail.json()["data"]["order"]["clientName"] == "Librairie du Port"

    document = await api.get(f"/api/v1/offline-orders/{code}/document")
    assert document.status_code == 200
    assert document.headers["content-type"] == "application/pdf"
    assert document.content.startswith(b"%PDF")


@pytest.mark.asyncio
async def test_submit_with_bad_signature(api, runtime):
    r = await api.post(
        "/api/v1/orders/submit", json=make_order(signature="data:image/png;base64,xx")
    )

    assert r.status_code == 422
    assert r.json()["error"]["code"] == "SIGNATURE_ERROR"
    assert await runtime.repository.get_all() == []


@pytest.mark.asyncio
async def test_submit_without_email(api):
    r = await api.post(
        "/api/v1/orders/submit", json=make_order(clientEmail=None, responsableEmail=None)
    )

    assert r.status_code == 422
    assert r.json()["error"]["code"] == "VALIDATION_ERROR"


# ==================== OFFLINE ORDERS ====================

@pytest.mark.asyncio
async def test_unknown_offline_order(api):
    r = await api.get("/api/v1/offline-orders/OFF-404")

    assert r.status_code == 404
    assert r.json()["success"] is False
    assert r.json()["error"]["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_document_missing_when_not_rendered(api, runtime):
    await runtime.repository.save(staged("OFF-A"))

    r = await api.get("/api/v1/offline-orders/OFF-A/document")

    assert r.status_code == 404


@pytest.mark.asyncio
async def test_pending_filter(api, runtime):
    await runtime.repository.save(staged("OFF-A"))
    await runtime.repository.save(staged("OFF-B"))
    await runtime.repository.mark_email_result("OFF-B", True)

    r = await api.get("/api/v1/offline-orders", params={"pending": "true"})

    assert [o["id"] for o in r.json()["data"]] == ["OFF-A"]


@pytest.mark.asyncio
async def test_unsynced_filter(api, runtime):
    await runtime.repository.save(staged("OFF-A"))
    await runtime.repository.save(staged("OFF-B"))
    await runtime.repository.mark_synced("OFF-A")

    r = await api.get("/api/v1/offline-orders", params={"unsynced": "true"})

    assert [o["id"] for o in r.json()["data"]] == ["OFF-B"]


@pytest.mark.asyncio
async def test_delete_requires_sync(api, runtime):
    await runtime.repository.save(staged("OFF-A"))

    r = await api.delete("/api/v1/offline-orders/OFF-A")
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "NOT_SYNCED"

    await api.post("/api/v1/sync/orders")
    r = await api.delete("/api/v1/offline-orders/OFF-A")
    assert r.status_code == 200
    assert r.json()["data"]["deleted"] is True

    r = await api.delete("/api/v1/offline-orders/OFF-A")
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_clear_synced(api, runtime):
    await runtime.repository.save(staged("OFF-A"))
    await runtime.repository.save(staged("OFF-B"))
    await runtime.repository.mark_synced("OFF-A")

    r = await api.delete("/api/v1/offline-orders")

    assert r.json()["data"] == {"removed": 1}
    assert [o.id for o in await runtime.repository.get_all()] == ["OFF-B"]


@pytest.mark.asyncio
async def test_resend_email(api, runtime, server):
    await runtime.repository.save(staged("OFF-A"))
    await runtime.repository.mark_synced("OFF-A")

    r = await api.post("/api/v1/offline-orders/OFF-A/resend-email")

    data = r.json()["data"]
    assert data["emails_sent"] is True
    assert data["order"]["state"] == "complete"
    assert server.email_calls == ["OFF-A"]

    r = await api.post("/api/v1/offline-orders/OFF-404/resend-email")
    assert r.status_code == 404


# ==================== SYNC ====================

@pytest.mark.asyncio
async def test_order_sync_and_status(api, runtime):
    await runtime.repository.save(staged("OFF-A"))

    r = await api.post("/api/v1/sync/orders")
    assert r.json()["data"] == {"success": 1, "failed": 0}

    status = (await api.get("/api/v1/sync/orders/status")).json()["data"]
    assert status["syncing"] is False
    assert status["pending_count"] == 0
    assert status["last_sync_result"] == {"success": 1, "failed": 0}


@pytest.mark.asyncio
async def test_order_sync_offline_returns_zero(api, runtime, server):
    await runtime.repository.save(staged("OFF-A"))
    await _go_offline(api)

    r = await api.post("/api/v1/sync/orders")

    assert r.json()["data"] == {"success": 0, "failed": 0}
    assert server.sync_calls == []


@pytest.mark.asyncio
async def test_reference_sync_and_cached_data(api):
    r = await api.post("/api/v1/sync/reference-data")
    assert r.json()["data"]["synced"] is True

    status = (await api.get("/api/v1/sync/reference-data/status")).json()["data"]
    assert status["error"] is None
    assert status["last_sync"] is not None

    cached = (await api.get("/api/v1/reference-data/data_clients")).json()["data"]
    assert cached["data"] == [{"id": 1, "name": "data_clients-1"}]
    assert cached["from_server"] is True


@pytest.mark.asyncio
async def test_reference_data_not_cached_yet(api):
    r = await api.get("/api/v1/reference-data/themes")
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_unknown_reference_collection(api):
    r = await api.get("/api/v1/reference-data/invoices")

    assert r.status_code == 422
    assert r.json()["error"]["code"] == "VALIDATION_ERROR"


# ==================== HEALTH ====================

@pytest.mark.asyncio
async def test_health(api):
    r = await api.get("/api/health")

    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "healthy"
    assert body["local_store"]["status"] == "ok"
    assert body["online"] is True
    assert r.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_health_stays_healthy_offline(api):
    await _go_offline(api)

    body = (await api.get("/api/health")).json()

    assert body["status"] == "healthy"
    assert body["online"] is False


@pytest.mark.asyncio
async def test_health_degraded_without_store_but_orders_accepted(storeless_runtime):
    app.dependency_overrides[get_runtime] = lambda: storeless_runtime
    transport = httpx.ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
            await _go_offline(ac)
            submitted = await ac.post("/api/v1/orders/submit", json=make_order())
            health = await ac.get("/api/health")
    finally:
        app.dependency_overrides.clear()

    assert submitted.status_code == 200
    result = submitted.json()["data"]
    assert result["is_offline"] is True
    assert result["storage_warning"]

    assert health.status_code == 503
    body = health.json()
    assert body["status"] == "degraded"
    assert body["local_store"]["status"] == "error"
    assert body["held_orders"] == 1
