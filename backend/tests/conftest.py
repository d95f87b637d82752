"""Shared fixtures: a temporary SQLite store and a scripted order server."""

import base64
import json

import httpx
import pytest
import pytest_asyncio

from orderdesk.database import LocalStore
from orderdesk.models.enums import ReferenceCollection
from orderdesk.runtime import OfflineRuntime
from orderdesk.services.connectivity import ConnectivitySignal
from orderdesk.services.notifier import SyncNotifier
from orderdesk.services.offline_orders import OfflineOrderRepository
from orderdesk.services.order_client import OrderServerClient

SERVER_URL = "http://orders.test/api"

VALID_SIGNATURE = "data:image/png;base64," + base64.b64encode(
    b"\x89PNG\r\n\x1a\n" + bytes(range(256))
).decode()


def make_order(**overrides) -> dict:
    """A finalized order as the form produces it (camelCase wire keys)."""
    order = {
        "orderDate": "2026-03-14",
        "salesRepName": "Claire Martin",
        "clientName": "Librairie du Port",
        "clientEmail": "contact@librairie-du-port.fr",
        "responsableName": "Paul Henry",
        "responsableEmail": "p.henry@librairie-du-port.fr",
        "supplier": "Editions Nord",
        "themeSelections": json.dumps([{"theme": "Jeunesse", "quantity": 12}]),
        "remarks": "Livraison avant le salon",
        "signature": VALID_SIGNATURE,
        "signatureLocation": "Lille",
        "signatureDate": "2026-03-14",
        "clientSignedName": "Paul Henry",
    }
    order.update(overrides)
    return order


def staged(code: str, **overrides) -> dict:
    """An order as the submission service stages it, code already assigned."""
    return make_order(orderCode=code, **overrides)


class FakeOrderServer:
    """In-memory order server behind ``httpx.MockTransport``.

    ``reachable=False`` makes every request fail at the transport level.
    Individual behaviours are switched by the attributes below.
    """

    def __init__(self):
        self.reachable = True
        self.emails_ok = True
        self.email_error = "SMTP timeout"
        self.reject_codes: set[str] = set()
        self.failing_paths: set[str] = set()
        self.unauthorized_paths: set[str] = set()
        self.orders: dict[str, dict] = {}
        self.sync_calls: list[str] = []
        self.email_calls: list[str] = []
        self.generate_calls = 0
        self.reference_payloads: dict[str, object] = {
            c.path: [{"id": 1, "name": f"{c.value}-1"}] for c in ReferenceCollection
        }
        self.transport = httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        if not self.reachable:
            raise httpx.ConnectError("connection refused", request=request)

        path = request.url.path.removeprefix("/api")
        if request.method == "HEAD":
            return httpx.Response(200)
        if path in self.unauthorized_paths:
            return httpx.Response(401, json={"message": "Not authenticated"})
        if path in self.failing_paths:
            return httpx.Response(500, json={"message": f"{path} exploded"})

        if request.method == "POST" and path == "/orders/generate":
            return self._generate(json.loads(request.content))
        if request.method == "POST" and path == "/orders/sync-offline":
            return self._sync_offline(json.loads(request.content)["order"])
        if request.method == "POST" and path == "/orders/send-emails":
            body = json.loads(request.content)
            self.email_calls.append(body["orderCode"])
            return httpx.Response(200, json={"success": True})
        if request.method == "GET" and path in self.reference_payloads:
            payload = self.reference_payloads[path]
            if path.startswith("/data/"):
                return httpx.Response(200, json=payload)
            return httpx.Response(200, json={"data": payload, "total": len(payload)})
        return httpx.Response(404, json={"message": f"No route {path}"})

    def _generate(self, order: dict) -> httpx.Response:
        self.generate_calls += 1
        code = f"CMD-{self.generate_calls:04d}"
        self.orders[code] = {**order, "orderCode": code}
        return httpx.Response(
            200,
            json={
                "orderCode": code,
                "pdfUrl": f"/files/{code}.pdf",
                "excelUrl": f"/files/{code}.xlsx",
                "emailsSent": True,
            },
        )

    def _sync_offline(self, order: dict) -> httpx.Response:
        code = order["orderCode"]
        self.sync_calls.append(code)
        if code in self.reject_codes:
            return httpx.Response(500, json={"message": "Document generation failed"})
        # Idempotent on orderCode
        self.orders[code] = order
        if self.emails_ok:
            return httpx.Response(200, json={"success": True, "emailsSent": True})
        return httpx.Response(
            200,
            json={"success": True, "emailsSent": False, "emailError": self.email_error},
        )


class FakeRenderer:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.rendered: list[str] = []

    def render_pdf(self, order) -> bytes:
        if self.fail:
            raise RuntimeError("no fonts available")
        self.rendered.append(order.order_code)
        return b"%PDF-1.7 receipt " + order.order_code.encode()


@pytest.fixture
def server() -> FakeOrderServer:
    return FakeOrderServer()


@pytest.fixture
def client(server) -> OrderServerClient:
    return OrderServerClient(SERVER_URL, timeout=5, send_timeout=5, transport=server.transport)


@pytest.fixture
def connectivity() -> ConnectivitySignal:
    return ConnectivitySignal(initial=True)


@pytest.fixture
def db_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'orderdesk_offline.db'}"


@pytest_asyncio.fixture
async def store(db_url):
    local_store = LocalStore(db_url)
    await local_store.open()
    yield local_store
    await local_store.close()


@pytest.fixture
def repository(store) -> OfflineOrderRepository:
    return OfflineOrderRepository(store)


@pytest.fixture
def renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest_asyncio.fixture
async def runtime(store, connectivity, client, renderer):
    rt = OfflineRuntime(
        store=store,
        connectivity=connectivity,
        client=client,
        renderer=renderer,
        notifier=SyncNotifier(),
    )
    await rt.start(auto_sync=False, probe=False)
    yield rt
    await rt.stop()


@pytest.fixture
def unopenable_db_url(tmp_path) -> str:
    """A database path whose parent directory is a plain file."""
    blocker = tmp_path / "not-a-directory"
    blocker.write_text("")
    return f"sqlite+aiosqlite:///{blocker / 'orderdesk_offline.db'}"


@pytest_asyncio.fixture
async def storeless_runtime(unopenable_db_url, connectivity, client, renderer):
    rt = OfflineRuntime(
        store=LocalStore(unopenable_db_url),
        connectivity=connectivity,
        client=client,
        renderer=renderer,
        notifier=SyncNotifier(),
    )
    await rt.start(auto_sync=False, probe=False)
    yield rt
    await rt.stop()
