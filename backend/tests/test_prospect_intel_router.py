"""
Tests for the prospect intel HTTP endpoints and bearer-token auth.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from prospect_intel.deps import get_current_user
from prospect_intel.routers.prospect_intel import router
from prospect_intel.services.prospect_intel_service import get_prospect_intel_service
from prospect_intel.utils.errors import InvalidSourceError


@pytest.fixture
def service():
    service = MagicMock()
    service.start_scan = AsyncMock(return_value="scan-1")
    service.get_scan_status = AsyncMock(return_value={
        "scan_id": "scan-1", "status": "processing", "state": "PARSING", "context": {}, "error": None,
    })
    service.list_prospects = AsyncMock(return_value=[{"id": "e1", "display_name": "Ana Cruz"}])
    service.search_prospects = AsyncMock(return_value=[])
    service.get_prospect_intel = AsyncMock(return_value={
        "entity": {"id": "e1", "display_name": "Ana Cruz"},
        "intel": {"scout_score": 88},
        "history": [],
    })
    return service


@pytest.fixture
def app(service):
    app = FastAPI()
    app.include_router(router)
    app.dependency_overrides[get_prospect_intel_service] = lambda: service
    return app


@pytest.fixture
def client(app):
    app.dependency_overrides[get_current_user] = lambda: {"sub": "user-123", "email": "a@b.co"}
    return TestClient(app)


# ===================================================================
# Scans
# ===================================================================

class TestScanEndpoints:

    def test_start_scan(self, client, service):
        response = client.post("/prospect-intel/scans", json={
            "source_type": "paste_text",
            "raw_payload": {"text": "Ana Cruz, ana@x.com"},
        })

        assert response.status_code == 202
        assert response.json()["scan_id"] == "scan-1"
        assert response.json()["status"] == "pending"
        service.start_scan.assert_awaited_once_with("user-123", "paste_text", {"text": "Ana Cruz, ana@x.com"})

    def test_unknown_source_type_is_rejected_by_schema(self, client, service):
        response = client.post("/prospect-intel/scans", json={"source_type": "fax", "raw_payload": {}})
        assert response.status_code == 422
        service.start_scan.assert_not_awaited()

    def test_invalid_payload_is_400(self, client, service):
        service.start_scan.side_effect = InvalidSourceError("Invalid payload for source type fb_data_file")

        response = client.post("/prospect-intel/scans", json={
            "source_type": "fb_data_file",
            "raw_payload": {"friends": "x"},
        })

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "VALIDATION_ERROR"

    def test_unexpected_failure_is_500(self, client, service):
        service.start_scan.side_effect = RuntimeError("kaboom")

        response = client.post("/prospect-intel/scans", json={"source_type": "csv", "raw_payload": {}})

        assert response.status_code == 500
        assert "kaboom" not in response.text

    def test_scan_status(self, client, service):
        response = client.get("/prospect-intel/scans/scan-1")

        assert response.status_code == 200
        assert response.json()["state"] == "PARSING"
        service.get_scan_status.assert_awaited_once_with("scan-1", user_id="user-123")


# ===================================================================
# Prospects
# ===================================================================

class TestProspectEndpoints:

    def test_list(self, client, service):
        response = client.get("/prospect-intel/prospects")

        assert response.status_code == 200
        assert response.json()["total_count"] == 1
        service.list_prospects.assert_awaited_once_with("user-123", limit=100)
        service.search_prospects.assert_not_awaited()

    def test_search(self, client, service):
        response = client.get("/prospect-intel/prospects", params={"q": "ana", "limit": 5})

        assert response.status_code == 200
        assert response.json() == {"prospects": [], "total_count": 0}
        service.search_prospects.assert_awaited_once_with("user-123", "ana", limit=5)

    def test_get_prospect(self, client):
        response = client.get("/prospect-intel/prospects/e1")

        assert response.status_code == 200
        assert response.json()["intel"]["scout_score"] == 88

    def test_missing_prospect_is_404(self, client, service):
        service.get_prospect_intel.return_value = {"entity": None, "intel": None, "history": []}

        response = client.get("/prospect-intel/prospects/nope")

        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "NOT_FOUND"


# ===================================================================
# Auth
# ===================================================================

class TestAuth:

    def test_missing_token(self, app):
        response = TestClient(app).get("/prospect-intel/prospects")
        assert response.status_code in (401, 403)

    def test_valid_token_resolves_user(self, app, service):
        supabase = MagicMock()
        supabase.auth.get_user.return_value = SimpleNamespace(user=SimpleNamespace(id="user-9", email="u@x.co"))

        with patch("prospect_intel.deps.get_supabase_service", return_value=supabase):
            response = TestClient(app).get(
                "/prospect-intel/prospects", headers={"Authorization": "Bearer good-token"}
            )

        assert response.status_code == 200
        supabase.auth.get_user.assert_called_once_with("good-token")
        service.list_prospects.assert_awaited_once_with("user-9", limit=100)

    def test_rejected_token(self, app):
        supabase = MagicMock()
        supabase.auth.get_user.side_effect = RuntimeError("invalid JWT")

        with patch("prospect_intel.deps.get_supabase_service", return_value=supabase):
            response = TestClient(app).get(
                "/prospect-intel/prospects", headers={"Authorization": "Bearer bad-token"}
            )

        assert response.status_code == 401
