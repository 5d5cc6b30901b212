"""Integration tests for API endpoints"""

import uuid
import pytest
from fastapi.testclient import TestClient

pytestmark = pytest.mark.integration

CONSUMER = {"X-Consumer-Id": "consumer_lerato"}
REVIEWER = {"X-Reviewer-Id": "reviewer_1"}


def create_priced_draft(client: TestClient) -> dict:
    """Create a draft through the steps a web user would complete"""
    application = client.post("/v1/applications", json={"channel": "Web"}, headers=CONSUMER).json()
    for step, payload in [
        (0, {"amount": 15000}),
        (1, {"termMonths": 18}),
        (2, {"purpose": "Education"}),
        (3, {}),
        (4, {}),
        (5, {"bankName": "ABSA", "accountNumber": "4055512345", "accountHolderName": "Lerato Molefe"}),
    ]:
        response = client.post(
            f"/v1/applications/{application['id']}/steps/{step}",
            json={"payload": payload},
            headers=CONSUMER,
        )
        assert response.status_code == 200, response.text
        application = response.json()
    return application


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "loan_applications_created" in response.text


def test_request_id_is_echoed(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_consumer_header_is_required(client: TestClient):
    response = client.get("/v1/applications")
    assert response.status_code == 401


def test_create_and_fetch_application(client: TestClient):
    response = client.post(
        "/v1/applications",
        json={"channel": "Conversational", "contact_address": "27831112222"},
        headers=CONSUMER,
    )

    assert response.status_code == 201
    created = response.json()
    assert created["status"] == "Draft"
    assert created["channel_origin"] == "Conversational"

    fetched = client.get(f"/v1/applications/{created['id']}", headers=CONSUMER).json()
    assert fetched["id"] == created["id"]


def test_unknown_application_is_404(client: TestClient):
    response = client.get(f"/v1/applications/{uuid.uuid4()}", headers=CONSUMER)
    assert response.status_code == 404


def test_malformed_application_id_is_400(client: TestClient):
    response = client.get("/v1/applications/not-a-uuid", headers=CONSUMER)
    assert response.status_code == 400


def test_income_capture_refreshes_assessment(client: TestClient):
    response = client.post(
        "/v1/incomes",
        json={"category": "Employment", "description": "Salary", "amount": 5000, "frequency": "Weekly"},
        headers=CONSUMER,
    )
    assert response.status_code == 201
    assert response.json()["gross_monthly_income"] == pytest.approx(21650.0)

    response = client.post(
        "/v1/expenses",
        json={"category": "Housing", "amount": 6000, "is_essential": True},
        headers=CONSUMER,
    )
    assessment = response.json()
    assert assessment["essential_expenses"] == 6000
    assert assessment["status"] == "Affordable"

    assert client.get("/v1/affordability", headers=CONSUMER).json()["net_monthly_income"] == pytest.approx(15650.0)


def test_submit_with_missing_fields_is_422(client: TestClient):
    application = client.post("/v1/applications", json={}, headers=CONSUMER).json()

    response = client.post(f"/v1/applications/{application['id']}/submit", headers=CONSUMER)

    assert response.status_code == 422
    assert len(response.json()["errors"]) == 6


def test_stale_expected_version_is_409(client: TestClient):
    application = client.post("/v1/applications", json={}, headers=CONSUMER).json()
    url = f"/v1/applications/{application['id']}/steps/0"

    assert client.post(url, json={"payload": {"amount": 1000}, "expected_version": 1}, headers=CONSUMER).status_code == 200
    response = client.post(url, json={"payload": {"amount": 2000}, "expected_version": 1}, headers=CONSUMER)

    assert response.status_code == 409


def test_resume_without_draft(client: TestClient):
    response = client.post("/v1/applications/resume", json={"channel": "Web"}, headers=CONSUMER)

    assert response.status_code == 200
    assert response.json() == {"found": False, "application": None}


def test_compliance_configuration_update(client: TestClient):
    defaults = client.get("/v1/admin/compliance/configuration", headers=REVIEWER).json()
    assert defaults["max_interest_rate"] == 27.5
    assert defaults["cooling_off_period_days"] == 5

    response = client.put(
        "/v1/admin/compliance/configuration",
        json={"max_interest_rate": 25.0},
        headers=REVIEWER,
    )

    assert response.status_code == 200
    assert response.json()["max_interest_rate"] == 25.0
    assert response.json()["updated_by"] == "reviewer_1"


def test_validate_terms(client: TestClient):
    response = client.post(
        "/v1/compliance/validate",
        json={
            "loan_amount": 10000,
            "term_months": 12,
            "interest_rate": 29.0,
            "monthly_installment": 950,
            "initiation_fee": 1140,
            "monthly_service_fee": 60,
            "monthly_income": 20000,
            "monthly_expenses": 7000,
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["is_compliant"] is False
    assert body["error_code"] == "FULL_COMPLIANCE_FAILED"
    assert len(body["errors"]) == 1


def test_full_lifecycle_through_signing(client: TestClient, messaging):
    client.post("/v1/incomes", json={"category": "Employment", "amount": 30000}, headers=CONSUMER)
    client.post("/v1/expenses", json={"category": "Housing", "amount": 9000, "is_essential": True}, headers=CONSUMER)

    application = create_priced_draft(client)
    assert application["monthly_payment"] > 0
    assert application["affordability_included"] is True

    app_id = application["id"]
    assert client.post(f"/v1/applications/{app_id}/submit", headers=CONSUMER).json()["status"] == "Pending"
    assert client.post(f"/v1/admin/applications/{app_id}/review", headers=REVIEWER).json()["status"] == "UnderReview"
    assert client.post(f"/v1/admin/applications/{app_id}/approve", headers=REVIEWER).json()["status"] == "Approved"

    contract = client.post(f"/v1/applications/{app_id}/contract", headers=CONSUMER)
    assert contract.status_code == 201
    contract_id = contract.json()["id"]

    issued = client.post(
        f"/v1/contracts/{contract_id}/signing-pin",
        json={"destination": "27831112222"},
        headers=CONSUMER,
    ).json()
    assert issued["delivered"] is True
    assert issued["pin"] is None

    wrong = "000000" if messaging.last_pin != "000000" else "111111"
    response = client.post(f"/v1/contracts/{contract_id}/sign", json={"pin": wrong}, headers=CONSUMER)
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid PIN. 2 attempt(s) remaining."

    response = client.post(f"/v1/contracts/{contract_id}/sign", json={"pin": messaging.last_pin}, headers=CONSUMER)
    assert response.status_code == 200
    assert response.json()["status"] == "Signed"

    assert client.get(f"/v1/applications/{app_id}", headers=CONSUMER).json()["status"] == "Disbursed"
    assert client.get(f"/v1/applications/{app_id}/cooling-off", headers=CONSUMER).json()["is_within_cooling_off"] is True

    response = client.post(f"/v1/contracts/{contract_id}/sign", json={"pin": messaging.last_pin}, headers=CONSUMER)
    assert response.status_code == 409

    response = client.post(
        f"/v1/applications/{app_id}/cooling-off/cancel",
        json={"reason": "No longer needed"},
        headers=CONSUMER,
    )
    assert response.status_code == 200
    assert client.get(f"/v1/applications/{app_id}", headers=CONSUMER).json()["status"] == "Cancelled"


def test_cooling_off_status_hidden_from_other_consumers(client: TestClient):
    app_id = create_priced_draft(client)["id"]

    response = client.get(f"/v1/applications/{app_id}/cooling-off", headers={"X-Consumer-Id": "consumer_other"})
    assert response.status_code == 404

    response = client.get(f"/v1/applications/{app_id}/cooling-off", headers=CONSUMER)
    assert response.status_code == 200
    assert response.json()["is_within_cooling_off"] is False


def test_attempt_lockout_is_429(client: TestClient, messaging):
    client.post("/v1/incomes", json={"category": "Employment", "amount": 30000}, headers=CONSUMER)
    app_id = create_priced_draft(client)["id"]
    client.post(f"/v1/applications/{app_id}/submit", headers=CONSUMER)
    client.post(f"/v1/admin/applications/{app_id}/review", headers=REVIEWER)
    client.post(f"/v1/admin/applications/{app_id}/approve", headers=REVIEWER)
    contract_id = client.post(f"/v1/applications/{app_id}/contract", headers=CONSUMER).json()["id"]
    client.post(f"/v1/contracts/{contract_id}/signing-pin", json={"destination": "27831112222"}, headers=CONSUMER)

    wrong = "000000" if messaging.last_pin != "000000" else "111111"
    for _ in range(3):
        client.post(f"/v1/contracts/{contract_id}/sign", json={"pin": wrong}, headers=CONSUMER)

    response = client.post(f"/v1/contracts/{contract_id}/sign", json={"pin": messaging.last_pin}, headers=CONSUMER)
    assert response.status_code == 429


def test_contract_before_approval_is_409(client: TestClient):
    application = client.post("/v1/applications", json={}, headers=CONSUMER).json()

    response = client.post(f"/v1/applications/{application['id']}/contract", headers=CONSUMER)

    assert response.status_code == 409
