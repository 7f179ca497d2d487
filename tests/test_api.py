"""
API tests. Data is created through the API so every request shares the
application's sessions.
"""

from urllib.parse import quote

import pytest
from fastapi.testclient import TestClient

from logiops.api.app import create_app
from logiops.core.config import EnvironmentSettings
from logiops.services.dashboard import DashboardService
from logiops.services.loading_points import LoadingPointService

DRIVER = {"name": "김기사", "phone": "010-1111-2222", "vehicle_number": "경기12가3456", "bank_name": "국민은행"}


@pytest.fixture()
def center_id(client):
    response = client.post("/api/loading-points", json={"center_name": "쿠팡 동탄", "loading_point_name": "1번 도크"})
    assert response.status_code == 201
    return response.json()["data"]["id"]


@pytest.fixture()
def driver_id(client):
    response = client.post("/api/drivers", json=DRIVER)
    assert response.status_code == 201
    return response.json()["data"]["id"]


@pytest.fixture()
def rate(client, center_id):
    response = client.post(
        "/api/center-fares",
        json={
            "loading_point_id": center_id,
            "vehicle_type": "5t",
            "base_fare": 100000,
            "extra_region_fee": 20000,
            "extra_stop_fee": 10000,
        },
    )
    assert response.status_code == 201
    return response.json()["data"]


def _charter(center_id, driver_id, day="2025-03-03", regions=("화성시", "오산시")):
    return {
        "loading_point_id": center_id,
        "vehicle_type": "5톤",
        "date": day,
        "destinations": [{"region": r, "order": i} for i, r in enumerate(regions, start=1)],
        "driver_id": driver_id,
        "driver_fare": 90000,
    }


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"ok": True, "data": {"status": "ok", "database": "ok"}}


def test_create_returns_envelope(client):
    response = client.post("/api/drivers", json=DRIVER, headers={"X-User": "manager"})
    assert response.status_code == 201
    body = response.json()
    assert body["ok"] is True
    assert body["data"]["phone"] == "01011112222"
    assert body["data"]["is_active"] is True


def test_not_found(client):
    response = client.get("/api/drivers/missing")
    assert response.status_code == 404
    assert response.json() == {"ok": False, "error": {"code": "NOT_FOUND", "message": "Driver not found: missing"}}


def test_duplicate_is_conflict(client, driver_id):
    response = client.post("/api/drivers", json=DRIVER)
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "DUPLICATE_ERROR"


def test_body_validation_error(client):
    response = client.post("/api/drivers", json={"name": "김기사"})
    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    fields = {detail["field"] for detail in error["details"]}
    assert {"phone", "vehicle_number"} <= fields


def test_query_validation_error(client):
    response = client.get("/api/drivers", params={"page": 0})
    assert response.status_code == 400
    assert response.json()["error"]["details"][0]["field"] == "page"


def test_unknown_route(client):
    response = client.get("/api/nowhere")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


def test_list_pagination(client):
    for i in range(3):
        client.post("/api/drivers", json={**DRIVER, "phone": f"010-0000-000{i}", "vehicle_number": f"12가000{i}"})
    body = client.get("/api/drivers", params={"limit": 2}).json()
    assert len(body["data"]["items"]) == 2
    assert body["data"]["pagination"] == {
        "page": 1,
        "limit": 2,
        "total_count": 3,
        "total_pages": 2,
        "has_next": True,
        "has_prev": False,
    }


def test_quote_and_charter(client, center_id, driver_id, rate):
    quote = client.post(
        "/api/charters/quote",
        json={"loading_point_id": center_id, "vehicle_type": "5톤", "regions": ["화성시", "오산시"], "stops": 2},
    ).json()["data"]
    assert quote["total_fare"] == 130000
    assert quote["is_fallback"] is False

    response = client.post("/api/charters", json=_charter(center_id, driver_id), headers={"X-User": "dispatcher"})
    assert response.status_code == 201
    charter = response.json()["data"]
    assert charter["total_fare"] == 130000
    assert charter["created_by"] == "dispatcher"
    assert [d["region"] for d in charter["destinations"]] == ["화성시", "오산시"]

    listed = client.get("/api/charters", params={"date_from": "2025-03-01", "search": "오산"}).json()["data"]
    assert [c["id"] for c in listed["items"]] == [charter["id"]]


def test_settlement_flow(client, center_id, driver_id, rate):
    charter = client.post("/api/charters", json=_charter(center_id, driver_id)).json()["data"]

    preview = client.get("/api/settlements/preview", params={"driver_id": driver_id, "year_month": "2025-03"})
    assert preview.json()["data"]["totals"]["final_amount"] == 90000

    response = client.post("/api/settlements/finalize", json={"driver_id": driver_id, "year_month": "2025-03"})
    assert response.status_code == 200
    settlement = response.json()["data"]
    assert settlement["status"] == "CONFIRMED"

    locked = client.put(f"/api/charters/{charter['id']}", json={"driver_fare": 1})
    assert locked.status_code == 409
    assert locked.json()["error"]["code"] == "SETTLEMENT_LOCKED"

    reopened = client.post(f"/api/settlements/{settlement['id']}/reopen", json={"reason": "금액 정정"})
    assert reopened.json()["data"]["status"] == "DRAFT"
    assert client.put(f"/api/charters/{charter['id']}", json={"driver_fare": 1}).status_code == 200


def test_bad_year_month(client, driver_id):
    response = client.get("/api/settlements/preview", params={"driver_id": driver_id, "year_month": "2025-3"})
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_import_upload(client):
    content = "성함,연락처,차량번호\n이기사,010-2222-3333,서울34나5678\n,010,\n".encode("utf-8")
    files = {"file": ("drivers.csv", content, "text/csv")}

    simulated = client.post("/api/drivers/import", files=files).json()["data"]
    assert simulated["valid"] == 1
    assert simulated["errors"][0]["row"] == 3

    committed = client.post("/api/drivers/import", files=files, data={"mode": "commit"}).json()["data"]
    assert committed["imported"] == 1
    assert client.get("/api/drivers/search", params={"q": "이기사"}).json()["data"][0]["name"] == "이기사"


def test_loading_point_import_upload(client):
    content = "센터명,상차지명,도로명주소\n서울물류센터,A동 1층,서울시 강남구\n서울물류센터,A동 1층,\n".encode("utf-8")
    files = {"file": ("centers.csv", content, "text/csv")}

    committed = client.post("/api/loading-points/import", files=files, data={"mode": "commit"}).json()["data"]
    assert committed["imported"] == 1
    assert committed["errors"][0]["row"] == 3
    assert client.get("/api/loading-points/centers").json()["data"] == ["서울물류센터"]

    template = client.get("/api/loading-points/template")
    assert template.status_code == 200
    assert "loading_point_template.csv" in template.headers["content-disposition"]


def test_charter_import_upload(client, driver_id, rate):
    content = "센터명,운행일자,차량톤수,지역,기사명,기사운임\n쿠팡 동탄,2025-03-03,5톤,화성시,김기사,90000\n".encode("utf-8")
    files = {"file": ("dispatch.csv", content, "text/csv")}

    simulated = client.post("/api/charters/import", files=files).json()["data"]
    assert simulated["valid"] == 1
    assert simulated["imported"] == 0

    committed = client.post("/api/charters/import", files=files, data={"mode": "commit"}, headers={"X-User": "kim"})
    assert committed.json()["data"]["imported"] == 1
    charter = client.get("/api/charters", params={"driver_id": driver_id}).json()["data"]["items"][0]
    assert charter["total_fare"] == 100000
    assert charter["created_by"] == "kim"


def test_import_rejects_file_type(client):
    response = client.post("/api/drivers/import", files={"file": ("drivers.txt", b"x", "text/plain")})
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_FILE_TYPE"


def test_export_download(client, center_id, rate):
    response = client.get("/api/center-fares/export", params={"format": "csv"})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert response.headers["content-disposition"].startswith("attachment; filename*=UTF-8''center_fares")
    assert "쿠팡 동탄,5톤" in response.content.decode("utf-8-sig")


def test_settlement_export_name_is_encoded(client):
    response = client.get("/api/settlements/export", params={"year_month": "2025-03", "format": "xlsx"})
    assert response.status_code == 200
    assert quote("settlements_2025-03.xlsx") in response.headers["content-disposition"]


def test_dashboard(client, driver_id):
    data = client.get("/api/dashboard/summary", params={"date": "2025-03-15"}).json()["data"]
    assert data["year_month"] == "2025-03"
    assert data["active_drivers"] == 1
    assert data["settlements_by_status"] == {"DRAFT": 0, "CONFIRMED": 0, "PAID": 0}


def test_unexpected_error_is_wrapped(monkeypatch, settings, session_factory, config):
    def boom(self, today=None):
        raise RuntimeError("boom")

    monkeypatch.setattr(DashboardService, "summary", boom)
    client = TestClient(
        create_app(settings=settings, session_factory=session_factory, config_manager=config),
        raise_server_exceptions=False,
    )
    response = client.get("/api/dashboard/summary")
    assert response.status_code == 500
    assert response.json()["error"] == {"code": "INTERNAL_ERROR", "message": "boom"}

    production = EnvironmentSettings(database_url="sqlite+pysqlite:///:memory:", app_env="production", log_json=False)
    client = TestClient(
        create_app(settings=production, session_factory=session_factory, config_manager=config),
        raise_server_exceptions=False,
    )
    assert client.get("/api/dashboard/summary").json()["error"]["message"] == "Internal server error"


def test_response_serialization_failure_is_internal(monkeypatch, settings, session_factory, config):
    monkeypatch.setattr(LoadingPointService, "get", lambda self, loading_point_id: {"id": loading_point_id})
    client = TestClient(
        create_app(settings=settings, session_factory=session_factory, config_manager=config),
        raise_server_exceptions=False,
    )
    response = client.get("/api/loading-points/anything")
    assert response.status_code == 500
    assert response.json()["error"]["code"] == "INTERNAL_ERROR"
