"""
Integration tests for the domain routes: status codes, error bodies and
scoping as seen over HTTP.
"""
import asyncio
import base64
from decimal import Decimal

import pytest

from sitebooks.storage.factory import get_storage
from sitebooks.storage.provider import StorageProvider

pytestmark = pytest.mark.integration


@pytest.fixture
def material_id(client, site, supervisor, auth_headers):
    response = client.post(
        "/api/materials",
        json={"project_id": str(site.id), "name": "Cement", "unit": "bag", "quantity": "100", "cost": "5", "supplier": "Acme"},
        headers=auth_headers(supervisor),
    )
    assert response.status_code == 201
    return response.json()["id"]


class TestProjects:
    def test_supervisor_lists_only_own(self, client, site, other_site, supervisor, auth_headers):
        response = client.get("/api/projects", headers=auth_headers(supervisor))
        assert response.status_code == 200
        assert [p["name"] for p in response.json()] == ["P1"]

    def test_foreign_project_is_forbidden(self, client, other_site, supervisor, auth_headers):
        response = client.get(f"/api/projects/{other_site.id}", headers=auth_headers(supervisor))
        assert response.status_code == 403
        assert response.json()["code"] == "forbidden"

    def test_unknown_project_is_not_found(self, client, admin, auth_headers):
        response = client.get("/api/projects/00000000-0000-0000-0000-000000000000", headers=auth_headers(admin))
        assert response.status_code == 404
        assert response.json()["code"] == "not_found"

    def test_detail_embeds_tasks(self, client, site, supervisor, auth_headers):
        created = client.post(f"/api/projects/{site.id}/tasks", json={"title": "Formwork"}, headers=auth_headers(supervisor))
        assert created.status_code == 201
        detail = client.get(f"/api/projects/{site.id}", headers=auth_headers(supervisor)).json()
        assert [t["title"] for t in detail["tasks"]] == ["Formwork"]
        assert detail["images"] == []

    def test_admin_creates_project(self, client, admin, supervisor, auth_headers):
        response = client.post(
            "/api/projects",
            json={"name": "Mall", "location": "Thane", "start_date": "2024-04-01", "supervisor_id": str(supervisor.id), "status": "ongoing"},
            headers=auth_headers(admin),
        )
        assert response.status_code == 201
        assert response.json()["status"] == "ongoing"

    def test_invalid_status_is_400(self, client, site, supervisor, auth_headers):
        response = client.patch(f"/api/projects/{site.id}/status", json={"status": "paused"}, headers=auth_headers(supervisor))
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_input"


class TestMaterialFlow:
    def test_request_approve_receive_consume(self, client, material_id, admin, supervisor, auth_headers):
        approved = client.post(f"/api/materials/{material_id}/approve", json={"approved_quantity": "80"}, headers=auth_headers(admin))
        assert approved.status_code == 200
        assert approved.json()["status"] == "approved"

        received = client.post(f"/api/materials/{material_id}/receive", json={}, headers=auth_headers(supervisor))
        assert received.status_code == 200
        body = received.json()
        assert body["material"]["status"] == "received"
        assert len(body["transactions"]) == 1
        assert Decimal(body["transactions"][0]["amount"]) == Decimal("400")
        assert body["transactions"][0]["category"] == "materials"

        for _ in range(2):
            used = client.post(f"/api/materials/{material_id}/consume", json={"used_quantity": "30"}, headers=auth_headers(supervisor))
            assert used.status_code == 200
        assert Decimal(used.json()["used_quantity"]) == Decimal("60")

        short = client.post(f"/api/materials/{material_id}/consume", json={"used_quantity": "25"}, headers=auth_headers(supervisor))
        assert short.status_code == 409
        assert short.json()["detail"] == "Insufficient quantity"
        assert short.json()["available"] == 20

    def test_supervisor_cannot_approve(self, client, material_id, supervisor, auth_headers):
        response = client.post(f"/api/materials/{material_id}/approve", json={}, headers=auth_headers(supervisor))
        assert response.status_code == 403

    def test_reject_then_approve_conflicts(self, client, material_id, admin, auth_headers):
        assert client.post(f"/api/materials/{material_id}/reject", json={"notes": "no"}, headers=auth_headers(admin)).status_code == 200
        response = client.post(f"/api/materials/{material_id}/approve", json={}, headers=auth_headers(admin))
        assert response.status_code == 409
        assert response.json()["status"] == "rejected"

    def test_status_filter(self, client, material_id, supervisor, auth_headers):
        response = client.get("/api/materials", params={"status": "requested"}, headers=auth_headers(supervisor))
        assert [m["id"] for m in response.json()] == [material_id]
        bad = client.get("/api/materials", params={"status": "lost"}, headers=auth_headers(supervisor))
        assert bad.status_code == 400


class TestLedgerRoutes:
    def test_pay_worker_and_summary(self, client, make_worker, site, supervisor, auth_headers):
        worker = make_worker(site, name="Ravi")
        paid = client.post(
            f"/api/workers/{worker.id}/payments",
            json={"project_id": str(site.id), "amount": "500", "payment_type": "advance"},
            headers=auth_headers(supervisor),
        )
        assert paid.status_code == 201
        assert paid.json()["category"] == "worker-advance"
        assert paid.json()["worker_id"] == str(worker.id)
        assert "transactions" not in paid.json()

        summary = client.get(f"/api/workers/{worker.id}/payments/summary", headers=auth_headers(supervisor)).json()
        assert Decimal(summary["total_advance"]) == Decimal("500")
        assert Decimal(summary["total_salary"]) == Decimal("0")

        payments = client.get(f"/api/workers/{worker.id}/payments", headers=auth_headers(supervisor)).json()
        assert len(payments) == 1

    def test_project_summary_has_zero_rows(self, client, site, admin, auth_headers):
        rows = client.get("/api/transactions/summary", headers=auth_headers(admin)).json()
        assert len(rows) == 1
        assert rows[0]["project_name"] == "P1"
        assert Decimal(rows[0]["balance"]) == Decimal("0")

    def test_amount_edit_rejected(self, client, site, supervisor, auth_headers):
        created = client.post(
            "/api/transactions",
            json={"project_id": str(site.id), "type": "income", "category": "client", "amount": "1200"},
            headers=auth_headers(supervisor),
        )
        assert created.status_code == 201
        txn_id = created.json()["id"]
        response = client.put(f"/api/transactions/{txn_id}", json={"amount": "1"}, headers=auth_headers(supervisor))
        assert response.status_code == 400
        assert response.json()["fields"] == ["amount"]

    def test_zero_amount_rejected(self, client, site, supervisor, auth_headers):
        response = client.post(
            "/api/transactions",
            json={"project_id": str(site.id), "type": "expense", "category": "fuel", "amount": "0"},
            headers=auth_headers(supervisor),
        )
        assert response.status_code == 400


class TestAttendanceRoutes:
    def test_duplicate_day_is_409(self, client, make_worker, site, supervisor, auth_headers):
        worker = make_worker(site)
        payload = {"project_id": str(site.id), "worker_id": str(worker.id), "date": "2024-01-05", "status": "present"}
        first = client.post("/api/attendance", json=payload, headers=auth_headers(supervisor))
        assert first.status_code == 201
        assert Decimal(first.json()["daily_wage"]) == Decimal("800")

        payload["status"] = "absent"
        second = client.post("/api/attendance", json=payload, headers=auth_headers(supervisor))
        assert second.status_code == 409
        assert second.json()["date"] == "2024-01-05"

        listed = client.get("/api/attendance", params={"worker_id": str(worker.id)}, headers=auth_headers(supervisor)).json()
        assert len(listed) == 1


class RecordingStorage(StorageProvider):
    """Records whether ``put`` ran on a thread with a running event loop."""

    def __init__(self):
        self.calls = []

    def put(self, key, data, content_type=None):
        try:
            asyncio.get_running_loop()
            on_loop = True
        except RuntimeError:
            on_loop = False
        self.calls.append({"key": key, "size": len(data), "on_loop": on_loop})
        return f"memory://{key}"


class TestFiles:
    def test_base64_upload(self, client, supervisor, auth_headers):
        data = base64.b64encode(b"fake-jpeg-bytes").decode()
        response = client.post(
            "/api/files/upload-base64",
            json={"original_name": "Slab Pour.JPG", "data": data, "category": "materials"},
            headers=auth_headers(supervisor),
        )
        assert response.status_code == 201
        body = response.json()
        assert body["key"].startswith("materials/")
        assert body["key"].endswith("_slab-pour.jpg")
        assert body["size_bytes"] == len(b"fake-jpeg-bytes")
        assert body["url"].endswith(body["key"])

    def test_base64_data_url(self, client, supervisor, auth_headers):
        data = "data:image/png;base64," + base64.b64encode(b"png-bytes").decode()
        response = client.post(
            "/api/files/upload-base64",
            json={"original_name": "receipt.png", "data": data},
            headers=auth_headers(supervisor),
        )
        assert response.status_code == 201
        assert response.json()["content_type"] == "image/png"

    def test_multipart_upload(self, client, supervisor, auth_headers):
        response = client.post(
            "/api/files/upload",
            files={"file": ("receipt.png", b"\x89PNG....", "image/png")},
            data={"category": "materials"},
            headers=auth_headers(supervisor),
        )
        assert response.status_code == 201
        body = response.json()
        assert body["content_type"] == "image/png"
        assert body["key"].startswith("materials/")
        assert body["key"].endswith("_receipt.png")

    def test_multipart_without_file_is_rejected(self, client, supervisor, auth_headers):
        response = client.post("/api/files/upload", data={"category": "x"}, headers=auth_headers(supervisor))
        assert response.status_code == 422

    def test_bad_base64(self, client, supervisor, auth_headers):
        response = client.post(
            "/api/files/upload-base64",
            json={"original_name": "x.png", "data": "***"},
            headers=auth_headers(supervisor),
        )
        assert response.status_code == 400

    def test_upload_requires_login(self, client):
        response = client.post("/api/files/upload", files={"file": ("a.txt", b"abc", "text/plain")})
        assert response.status_code == 401

    def test_storage_write_runs_off_the_event_loop(self, app, client, supervisor, auth_headers):
        storage = RecordingStorage()
        app.dependency_overrides[get_storage] = lambda: storage
        multipart = client.post(
            "/api/files/upload",
            files={"file": ("a.txt", b"abc", "text/plain")},
            headers=auth_headers(supervisor),
        )
        encoded = client.post(
            "/api/files/upload-base64",
            json={"original_name": "b.txt", "data": base64.b64encode(b"abcd").decode()},
            headers=auth_headers(supervisor),
        )
        assert multipart.status_code == 201
        assert encoded.status_code == 201
        assert [c["size"] for c in storage.calls] == [3, 4]
        assert not any(c["on_loop"] for c in storage.calls)
        assert multipart.json()["url"] == "memory://" + multipart.json()["key"]


class TestHealth:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_request_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-42"})
        assert response.headers["X-Request-ID"] == "req-42"

    def test_request_id_is_generated(self, client):
        assert client.get("/health").headers["X-Request-ID"]
