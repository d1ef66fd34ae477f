"""HTTP routes: auth, step responses and error mapping"""
import pytest
from fastapi.testclient import TestClient

from adlaunch.api.deps import get_orchestrator
from adlaunch.core.exceptions import TransientNetworkError
from adlaunch.main import app
from adlaunch.services import parse_platform
from adlaunch.services.google_orchestrator import GoogleAdsCampaignOrchestrator
from adlaunch.services.meta_orchestrator import MetaCampaignOrchestrator

HEADERS = {"X-Internal-API-Key": "test-internal-key"}
BASE = "/api/v1/campaigns"


@pytest.fixture
def api(client, store, campaigns, meta_account, google_account, clock):
    def override(platform: str):
        platform = parse_platform(platform)
        if platform == "GOOGLE":
            return GoogleAdsCampaignOrchestrator(platform, client, store, campaigns, google_account, clock=clock)
        return MetaCampaignOrchestrator(platform, client, store, campaigns, meta_account, clock=clock)

    app.dependency_overrides[get_orchestrator] = override
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_requires_internal_key(api):
    assert api.post(f"{BASE}/facebook/cmp-1/initialize").status_code == 401
    response = api.post(f"{BASE}/facebook/cmp-1/initialize", headers={"X-Internal-API-Key": "wrong"})
    assert response.status_code == 401


def test_meta_flow(api):
    response = api.post(f"{BASE}/facebook/cmp-1/initialize", headers=HEADERS)
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["currentStep"] == "INITIALIZED"
    assert body["nextStep"] == "CREATE_TARGETING_UNITS"
    assert body["data"]["externalCampaignId"]

    for route in ("create-targeting-units", "create-creatives", "create-ads", "launch"):
        response = api.post(f"{BASE}/facebook/cmp-1/{route}", headers=HEADERS)
        assert response.status_code == 200, response.text

    status = api.get(f"{BASE}/facebook/cmp-1/status", headers=HEADERS).json()
    assert status["processingStatus"] == "LAUNCHED"
    assert status["externalCampaignStatus"] == "ACTIVE"
    assert status["adsCreated"] == 1
    assert status["isReadyForNextStep"] is False


def test_out_of_order_is_conflict(api):
    api.post(f"{BASE}/facebook/cmp-1/initialize", headers=HEADERS)
    response = api.post(f"{BASE}/facebook/cmp-1/create-ads", headers=HEADERS)
    assert response.status_code == 409
    assert response.json()["error"] == "PreconditionFailed"
    assert response.json()["success"] is False


def test_unknown_platform(api):
    response = api.post(f"{BASE}/tiktok/cmp-1/initialize", headers=HEADERS)
    assert response.status_code == 400
    assert response.json()["error"] == "ValidationError"


def test_step_not_offered_by_platform(api):
    response = api.post(f"{BASE}/google/cmp-google/create-creatives", headers=HEADERS)
    assert response.status_code == 400
    assert response.json()["error"] == "UnknownStep"


def test_status_of_unknown_campaign(api):
    response = api.get(f"{BASE}/facebook/missing/status", headers=HEADERS)
    assert response.status_code == 404
    assert response.json()["error"] == "RecordNotFound"


def test_failure_and_retry_over_http(api, client):
    api.post(f"{BASE}/facebook/cmp-1/initialize", headers=HEADERS)
    client.fail_next("create_targeting_unit", TransientNetworkError("Connection reset"))

    response = api.post(f"{BASE}/facebook/cmp-1/create-targeting-units", headers=HEADERS)
    assert response.status_code == 503
    assert response.json()["error"] == "TransientNetworkError"

    status = api.get(f"{BASE}/facebook/cmp-1/status", headers=HEADERS).json()
    assert status["processingStatus"] == "FAILED"
    assert status["failedStep"] == "CREATING_TARGETING_UNITS"
    assert status["isReadyForNextStep"] is False

    response = api.post(f"{BASE}/facebook/cmp-1/retry-step", headers=HEADERS,
                        json={"step": "CREATING_TARGETING_UNITS"})
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["currentStep"] == "TARGETING_UNITS_CREATED"
    assert body["nextStep"] == "CREATE_CREATIVES"


def test_google_flow(api):
    for route in ("initialize", "create-targeting-units", "add-geo-targeting", "launch"):
        response = api.post(f"{BASE}/google/cmp-google/{route}", headers=HEADERS)
        assert response.status_code == 200, response.text
    assert response.json()["currentStep"] == "LAUNCHED"


def test_healthz(api):
    response = api.get("/healthz")
    assert response.status_code == 200
    assert response.json()["database_ok"] is True
