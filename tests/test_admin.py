"""Admin login and the dashboard endpoints: listing, stats, export and pass retry."""

import io
from datetime import datetime

import openpyxl
import pytest
from jose import jwt

from gatepass.core.auth import AuthUtils
from gatepass.core.config import Settings
from gatepass.models.visitor import VisitorStatus
from gatepass.services.export_service import EXPORT_COLUMNS, export_file_name
from gatepass.services.pass_generator import PassGenerationError


# --- login ------------------------------------------------------------------

def test_login_returns_admin_token(client, settings):
    resp = client.post("/api/admin/login", json={"username": "admin", "password": "1234"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["username"] == "admin"
    assert body["token"]["token_type"] == "bearer"
    claims = jwt.decode(body["token"]["access_token"], settings.JWT_SECRET,
                        algorithms=[settings.JWT_ALGORITHM])
    assert claims["sub"] == "admin"
    assert claims["role"] == "admin"


@pytest.mark.parametrize("username,password", [("admin", "wrong"), ("root", "1234")])
def test_login_rejects_bad_credentials(client, username, password):
    resp = client.post("/api/admin/login", json={"username": username, "password": password})

    assert resp.status_code == 401
    assert resp.json() == {"success": False, "error": "Invalid username or password"}


def test_login_with_bcrypt_hash(client, services, settings):
    services.settings = Settings(
        ADMIN_PASSWORD_HASH=AuthUtils.hash_password("gate-keeper", rounds=settings.bcrypt_rounds)
    )

    ok = client.post("/api/admin/login", json={"username": "admin", "password": "gate-keeper"})
    plain = client.post("/api/admin/login", json={"username": "admin", "password": "1234"})

    assert ok.status_code == 200
    assert plain.status_code == 401


def test_admin_account_comes_from_injected_settings(client, services):
    services.settings = Settings(ADMIN_USERNAME="reception", ADMIN_PASSWORD="front-desk", JWT_SECRET="rotated")

    default = client.post("/api/admin/login", json={"username": "admin", "password": "1234"})
    resp = client.post("/api/admin/login", json={"username": "reception", "password": "front-desk"})
    token = resp.json()["token"]["access_token"]
    stats = client.get("/api/visitors/stats", headers={"Authorization": f"Bearer {token}"})

    assert default.status_code == 401
    assert resp.status_code == 200
    assert jwt.decode(token, "rotated", algorithms=["HS256"])["sub"] == "reception"
    assert stats.status_code == 200


def test_token_signed_with_other_secret_is_unauthorized(client, settings):
    token = AuthUtils.create_access_token(Settings(JWT_SECRET="someone-else"), {"sub": "admin", "role": "admin"})

    resp = client.get("/api/visitors/stats", headers={"Authorization": f"Bearer {token}"})

    assert resp.status_code == 401


def test_malformed_hash_fails_closed():
    assert AuthUtils.verify_password("1234", "not-a-bcrypt-hash") is False


def test_token_for_other_role_is_forbidden(client, settings):
    token = AuthUtils.create_access_token(settings, {"sub": "admin", "role": "guard"})

    resp = client.get("/api/visitors/stats", headers={"Authorization": f"Bearer {token}"})

    assert resp.status_code == 403


def test_garbage_token_is_unauthorized(client):
    resp = client.get("/api/visitors/stats", headers={"Authorization": "Bearer not.a.jwt"})

    assert resp.status_code == 401
    assert resp.json()["error"] == "Could not validate credentials"


# --- listing ----------------------------------------------------------------

def test_list_is_newest_first(client, make_visitor):
    older = make_visitor(created_at=datetime(2026, 1, 5, 8, 0))
    newer = make_visitor(created_at=datetime(2026, 1, 20, 8, 0))
    middle = make_visitor(created_at=datetime(2026, 1, 10, 8, 0))

    resp = client.get("/api/visitors/")

    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 3
    assert [v["_id"] for v in body["data"]] == [newer.id, middle.id, older.id]


def test_list_never_exposes_approval_token(client, make_visitor):
    make_visitor()

    data = client.get("/api/visitors/").json()["data"][0]

    assert "approvalToken" not in data
    assert "approval_token" not in data
    assert data["visitorCode"].startswith("NK-2026-")


@pytest.mark.parametrize("term", ["asha", "ASHA@EXAMPLE", "NK-2026-7777", "forklift", "Meera"])
def test_list_search_matches_any_text_field(client, make_visitor, term):
    target = make_visitor(name="Asha Rao", email="asha@example.com", visitor_code="NK-2026-7777",
                          purpose="Forklift repair", to_meet="Meera")
    make_visitor()

    data = client.get("/api/visitors/", params={"search": term}).json()["data"]

    assert [v["_id"] for v in data] == [target.id]


def test_list_filters_by_status(client, make_visitor):
    make_visitor()
    approved = make_visitor(status=VisitorStatus.APPROVED)
    make_visitor(status=VisitorStatus.REJECTED)

    data = client.get("/api/visitors/", params={"status": "approved"}).json()["data"]

    assert [v["_id"] for v in data] == [approved.id]


def test_list_unknown_status_is_invalid_input(client):
    resp = client.get("/api/visitors/", params={"status": "lost"})

    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid input"


def test_list_date_range_is_inclusive(client, make_visitor):
    make_visitor(created_at=datetime(2026, 2, 28, 23, 59))
    first = make_visitor(created_at=datetime(2026, 3, 1, 0, 0))
    last = make_visitor(created_at=datetime(2026, 3, 31, 23, 59))
    make_visitor(created_at=datetime(2026, 4, 1, 0, 0))

    data = client.get("/api/visitors/", params={"from_date": "2026-03-01", "to_date": "2026-03-31"}).json()["data"]

    assert [v["_id"] for v in data] == [last.id, first.id]


def test_detail_returns_full_record(client, make_visitor):
    visitor = make_visitor(vehicle_number="KA01XY9999")

    resp = client.get(f"/api/visitors/{visitor.id}")

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["_id"] == visitor.id
    assert data["vehicleNumber"] == "KA01XY9999"
    assert data["hostEmail"] == "host@example.com"
    assert data["personType"] == "Vendor"
    assert "approvalToken" not in data


def test_detail_unknown_visitor(client):
    resp = client.get("/api/visitors/999")

    assert resp.status_code == 404
    assert resp.json() == {"success": False, "error": "Visitor not found"}


# --- stats ------------------------------------------------------------------

def test_stats_requires_admin(client):
    resp = client.get("/api/visitors/stats")

    assert resp.status_code in (401, 403)
    assert resp.json()["success"] is False


def test_stats_counts_each_status(client, admin_headers, make_visitor):
    for status, count in [(VisitorStatus.PENDING, 3), (VisitorStatus.APPROVED, 2),
                          (VisitorStatus.REJECTED, 1), (VisitorStatus.EXPIRED, 1)]:
        for _ in range(count):
            make_visitor(status=status)

    resp = client.get("/api/visitors/stats", headers=admin_headers)

    assert resp.status_code == 200
    assert resp.json() == {
        "success": True,
        "total_visitors": 7,
        "pending": 3,
        "approved": 2,
        "rejected": 1,
        "expired": 1,
    }


def test_stats_on_empty_database(client, admin_headers):
    body = client.get("/api/visitors/stats", headers=admin_headers).json()

    assert body["total_visitors"] == 0
    assert body["expired"] == 0


# --- export -----------------------------------------------------------------

def test_export_requires_admin(client, make_visitor):
    make_visitor()

    assert client.get("/api/visitors/export").status_code in (401, 403)


def test_export_builds_workbook(client, admin_headers, make_visitor):
    make_visitor(name="Early Bird", created_at=datetime(2026, 3, 2, 9, 30, 15))
    make_visitor(name="Late Comer", status=VisitorStatus.APPROVED, to_meet=None, other_person="Security desk",
                 created_at=datetime(2026, 3, 5, 17, 0, 0))
    make_visitor(name="Out Of Range", created_at=datetime(2026, 4, 2, 9, 0, 0))

    resp = client.get("/api/visitors/export", headers=admin_headers,
                      params={"from_date": "2026-03-01", "to_date": "2026-03-31"})

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")
    assert 'filename="Visitors_2026-03-01_to_2026-03-31_' in resp.headers["content-disposition"]

    ws = openpyxl.load_workbook(io.BytesIO(resp.content))["Visitors"]
    rows = list(ws.iter_rows(values_only=True))
    assert list(rows[0]) == EXPORT_COLUMNS
    assert [r[1] for r in rows[1:]] == ["Late Comer", "Early Bird"]
    assert rows[1][5] == "Security desk"
    assert rows[1][6] == "approved"
    assert rows[2][7] == "02/03/2026, 09:30:15"
    assert ws.freeze_panes == "A2"


def test_export_with_no_rows_is_not_found(client, admin_headers):
    resp = client.get("/api/visitors/export", headers=admin_headers, params={"status": "rejected"})

    assert resp.status_code == 404
    assert resp.json() == {"success": False, "error": "No visitors found to export"}


def test_export_file_name_without_range():
    name = export_file_name(None, None)

    assert name.startswith("Visitors_all_to_all_")
    assert name.endswith(".xlsx")


# --- pass retry -------------------------------------------------------------

def test_regenerate_pass_for_approved_visitor(client, admin_headers, services, make_visitor):
    visitor = make_visitor(status=VisitorStatus.APPROVED)

    resp = client.post(f"/api/visitors/{visitor.id}/pass", headers=admin_headers)

    assert resp.status_code == 200
    assert resp.json()["data"]["pdfUrl"].startswith("https://bucket.test/visitor-passes/")
    assert services.pass_generator.generated == [visitor.id]
    assert services.storage.uploads[0]["content_type"] == "application/pdf"
    assert services.mailer.kinds() == ["approved"]


def test_regenerate_pass_requires_approval(client, admin_headers, services, make_visitor):
    visitor = make_visitor()

    resp = client.post(f"/api/visitors/{visitor.id}/pass", headers=admin_headers)

    assert resp.status_code == 409
    assert services.pass_generator.generated == []


def test_regenerate_pass_reports_generation_failure(client, admin_headers, services, make_visitor):
    services.pass_generator.fail_with = PassGenerationError("no renderer produced a pass")
    visitor = make_visitor(status=VisitorStatus.APPROVED)

    resp = client.post(f"/api/visitors/{visitor.id}/pass", headers=admin_headers)

    assert resp.status_code == 502
    assert resp.json() == {"success": False, "error": "pass generation failed"}


def test_regenerate_pass_requires_admin(client, make_visitor):
    visitor = make_visitor(status=VisitorStatus.APPROVED)

    assert client.post(f"/api/visitors/{visitor.id}/pass").status_code in (401, 403)
