"""
Tests for the HTTP surface: /orders routes, health endpoints, structured
error responses, correlation headers and the application lifespan.
"""

import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import inspect
from sqlalchemy.exc import OperationalError

from assessment_orders.config import settings
from assessment_orders.core import database
from assessment_orders.main import app
from assessment_orders.services.order_processor import get_order_processor
from assessment_orders.services.order_service import get_order_service

client = TestClient(app)


class _FailingService:
    """Stand-in OrderService whose every call raises *exc*."""

    def __init__(self, exc: Exception):
        self.exc = exc

    async def list_orders(self, params):
        raise self.exc

    async def summarize_orders(self, params):
        raise self.exc

    async def get_order_by_id(self, order_id):
        raise self.exc


@pytest.fixture
def failing_service():
    def _install(exc: Exception):
        app.dependency_overrides[get_order_service] = lambda: _FailingService(exc)

    yield _install
    app.dependency_overrides.pop(get_order_service, None)


# =====================================================================
# GET /orders
# =====================================================================

class TestListOrdersEndpoint:
    def test_envelope(self, make_order):
        make_order()
        make_order()

        resp = client.get("/orders")

        assert resp.status_code == 200
        body = resp.json()
        assert set(body) == {"data", "page", "limit", "total"}
        assert body["page"] == 1
        assert body["limit"] == 20
        assert body["total"] == 2
        assert len(body["data"]) == 2

    def test_record_fields_camel_case(self, make_order):
        order = make_order(metadata={"k": "v"})

        record = client.get("/orders").json()["data"][0]

        assert record["id"] == order.id
        assert record["userId"] == order.user_id
        assert record["assessmentId"] == order.assessment_id
        assert record["assessmentTitle"] == order.assessment_title
        assert record["userEmail"] == order.user_email
        assert record["completedAt"] is None
        assert "metadata" not in record

    def test_include_metadata(self, make_order):
        make_order(metadata={"k": "v"})
        record = client.get("/orders", params={"includeMetadata": "1"}).json()["data"][0]
        assert record["metadata"] == {"k": "v"}

    def test_sorted_paged_listing(self, make_order):
        for i in range(25):
            make_order(price=float(24 - i))

        resp = client.get(
            "/orders?status=PENDING&sortBy=price&sortDir=asc&page=2&limit=10"
        )

        body = resp.json()
        assert resp.status_code == 200
        assert (body["page"], body["limit"], body["total"]) == (2, 10, 25)
        assert [o["price"] for o in body["data"]] == [float(p) for p in range(10, 20)]

    def test_malformed_params_never_422(self, make_order):
        make_order()

        resp = client.get(
            "/orders",
            params={
                "page": "abc",
                "limit": "lots",
                "fromDate": "whenever",
                "toDate": "2024-01-01T00:00:00+25:00",
                "sortBy": "nope",
                "sortDir": "sideways",
            },
        )

        assert resp.status_code == 200
        body = resp.json()
        assert (body["page"], body["limit"], body["total"]) == (1, 20, 1)

    @pytest.mark.parametrize("bad", ["2024-01-01T00:00:00+25:00", "0001-01-01T00:00:00+01:00"])
    def test_out_of_range_date_dropped(self, make_order, bad):
        make_order()

        resp = client.get("/orders", params={"fromDate": bad, "toDate": bad})

        assert resp.status_code == 200
        assert resp.json()["total"] == 1

    def test_huge_page_is_empty_page(self, make_order):
        make_order()

        resp = client.get("/orders", params={"page": "99999999999999999999"})

        assert resp.status_code == 200
        body = resp.json()
        assert body["data"] == []
        assert body["total"] == 1

    def test_malformed_user_id_is_empty_not_error(self, make_order):
        make_order()
        resp = client.get("/orders", params={"userId": "12345"})
        assert resp.status_code == 200
        assert resp.json()["total"] == 0


# =====================================================================
# GET /orders/summary
# =====================================================================

class TestSummaryEndpoint:
    def test_completed_only(self, make_order):
        make_order(price=10.0, status="COMPLETED")
        make_order(price=2.5, status="COMPLETED")
        make_order(price=99.0)

        resp = client.get("/orders/summary", params={"status": "COMPLETED"})

        assert resp.status_code == 200
        assert resp.json() == {"COMPLETED": {"count": 2, "totalRevenue": 12.5}}

    def test_empty(self, db_engine):
        resp = client.get("/orders/summary")
        assert resp.status_code == 200
        assert resp.json() == {}


# =====================================================================
# GET /orders/{order_id}
# =====================================================================

class TestGetOrderEndpoint:
    def test_found(self, make_order):
        order = make_order(metadata={"channel": "mobile"})

        resp = client.get(f"/orders/{order.id}")

        assert resp.status_code == 200
        body = resp.json()
        assert body["id"] == order.id
        assert body["metadata"] == {"channel": "mobile"}

    def test_missing_is_404(self, db_engine):
        resp = client.get(f"/orders/{uuid.uuid4()}")

        assert resp.status_code == 404
        body = resp.json()
        assert body["message"] == "Order not found"
        assert body["error"]["code"] == "ORD-API-001"

    def test_malformed_id_is_same_404(self, db_engine):
        resp = client.get("/orders/not-an-id")
        assert resp.status_code == 404
        assert resp.json()["message"] == "Order not found"


# =====================================================================
# Error mapping
# =====================================================================

class TestErrorResponses:
    def test_unknown_route(self):
        resp = client.get("/definitely/not/here")
        assert resp.status_code == 404
        body = resp.json()
        assert body["message"] == "Not found"
        assert body["error"]["code"] == "ORD-API-002"

    def test_store_unavailable_is_503(self, failing_service):
        failing_service(OperationalError("SELECT 1", {}, Exception("connection refused")))

        resp = client.get("/orders")

        assert resp.status_code == 503
        body = resp.json()
        assert body["error"]["code"] == "ORD-DB-001"
        assert body["error"]["retryable"] is True
        assert "connection refused" in body["detail"]

    def test_store_timeout_is_504(self, failing_service):
        failing_service(TimeoutError("_count timed out after 45000ms"))

        resp = client.get("/orders/summary")

        assert resp.status_code == 504
        assert resp.json()["error"]["code"] == "ORD-DB-002"

    def test_unexpected_error_is_500(self, failing_service):
        failing_service(RuntimeError("kaboom"))
        lenient = TestClient(app, raise_server_exceptions=False)

        resp = lenient.get(f"/orders/{uuid.uuid4()}")

        assert resp.status_code == 500
        body = resp.json()
        assert body["message"] == "Internal server error"
        assert body["error"]["code"] == "ORD-SYS-001"

    def test_detail_hidden_in_production(self, failing_service, monkeypatch):
        monkeypatch.setattr(settings, "environment", "production")
        failing_service(OperationalError("SELECT 1", {}, Exception("password=hunter2")))

        resp = client.get("/orders")

        assert resp.status_code == 503
        body = resp.json()
        assert "detail" not in body
        assert "hunter2" not in resp.text


# =====================================================================
# Correlation headers
# =====================================================================

class TestCorrelationHeaders:
    def test_generated_when_absent(self):
        resp = client.get("/api/health")
        assert len(resp.headers["x-request-id"]) == 32
        assert len(resp.headers["x-correlation-id"]) == 32

    def test_echoed_when_present(self):
        resp = client.get(
            "/api/health",
            headers={"x-request-id": "req-123", "x-correlation-id": "corr-456"},
        )
        assert resp.headers["x-request-id"] == "req-123"
        assert resp.headers["x-correlation-id"] == "corr-456"


# =====================================================================
# Health
# =====================================================================

class TestHealth:
    def test_cheap_health(self):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["service"] == "assessment-orders"
        assert body["uptime_s"] >= 0

    def test_deep_health_with_store(self, db_engine):
        resp = client.get("/api/health/deep")

        assert resp.status_code == 200
        body = resp.json()
        assert body["components"]["database"]["status"] == "ok"
        processor = body["components"]["order_processor"]
        assert processor["running"] is False
        assert processor["status"] == "degraded"
        assert body["status"] == "degraded"

    def test_deep_health_store_down(self, monkeypatch):
        def _boom():
            raise OperationalError("SELECT 1", {}, Exception("unreachable"))

        monkeypatch.setattr("assessment_orders.routers.health.ping_db", _boom)

        body = client.get("/api/health/deep").json()

        assert body["components"]["database"]["status"] == "down"
        assert body["status"] == "down"

    def test_root(self):
        body = client.get("/").json()
        assert body["health"] == "/api/health"


# =====================================================================
# Lifespan
# =====================================================================

class TestLifespan:
    def test_startup_migrates_and_runs_processor(self, tmp_path, monkeypatch):
        engine = database._build_engine(f"sqlite:///{tmp_path / 'fresh.db'}")
        monkeypatch.setattr(database, "_engine", engine)
        processor = get_order_processor()

        with TestClient(app) as live:
            tables = inspect(engine).get_table_names()
            assert "assessment_orders" in tables
            assert "alembic_version" in tables
            assert processor.is_running

            resp = live.get("/orders")
            assert resp.status_code == 200
            assert resp.json()["total"] == 0

        assert not processor.is_running
        assert database._engine is None

    def test_processor_disabled(self, tmp_path, monkeypatch):
        engine = database._build_engine(f"sqlite:///{tmp_path / 'fresh.db'}")
        monkeypatch.setattr(database, "_engine", engine)
        monkeypatch.setattr(settings, "order_processor_enabled", False)

        with TestClient(app):
            assert not get_order_processor().is_running
