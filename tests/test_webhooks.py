"""Tests for the public lead webhook endpoints."""

import pytest

from app.core.exceptions import ContactResolutionError
from app.persistence.repositories.contact_repository import ContactRepository

SCOPE = "solar-leads"


@pytest.fixture
def source(client, admin_headers):
    response = client.post(
        "/api/v1/sources",
        json={"webhook_id": SCOPE, "name": "Solar Leads", "lead_type": "solar"},
        headers=admin_headers,
    )
    assert response.status_code == 201
    return response.json()


def lead_body(**overrides):
    body = {
        "firstName": "Dana",
        "lastName": "Reyes",
        "email": "Dana@Example.com",
        "source": "facebook",
        "phone": "(281) 788-2316",
        "productType": "Solar",
        "zipCode": "90210",
        "state": "CA",
    }
    body.update(overrides)
    return body


def test_first_lead_creates_contact(client, source):
    response = client.post(f"/webhook/{SCOPE}", json=lead_body())

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "success"
    assert data["contact_status"] == "new"
    assert data["forwarding_queued"] == 0
    assert "X-Request-ID" in response.headers


def test_repeat_phone_returns_existing_contact(client, source):
    first = client.post(f"/webhook/{SCOPE}", json=lead_body()).json()
    second = client.post(
        f"/webhook/{SCOPE}", json=lead_body(phone="281-788-2316", productType="HVAC")
    ).json()

    assert second["contact_status"] == "existing"
    assert second["contact_id"] == first["contact_id"]
    assert second["lead_id"] != first["lead_id"]


def test_snake_case_keys_are_accepted(client, source):
    body = {
        "first_name": "Dana",
        "last_name": "Reyes",
        "email": "dana@example.com",
        "source": "google",
        "phone": "2817882316",
        "product_type": "Solar",
        "zip_code": "90210",
    }

    response = client.post(f"/webhook/{SCOPE}", json=body)

    assert response.status_code == 201


def test_unknown_source_is_404(client):
    response = client.post("/webhook/does-not-exist", json=lead_body())

    assert response.status_code == 404


@pytest.mark.parametrize(
    "overrides",
    [
        {"firstName": ""},
        {"email": "not-an-email"},
        {"source": None},
    ],
)
def test_invalid_body_is_422(client, source, overrides):
    response = client.post(f"/webhook/{SCOPE}", json=lead_body(**overrides))

    assert response.status_code == 422


def test_malformed_phone_is_422(client, source):
    response = client.post(f"/webhook/{SCOPE}", json=lead_body(phone="12345"))

    assert response.status_code == 422
    assert response.json()["detail"][0]["loc"] == ["body", "phone"]


def test_matching_forwarding_rules_are_queued(client, source, admin_headers, queue):
    for target in ("alpha", "beta"):
        client.post(
            f"/api/v1/webhook/{SCOPE}/forwarding-rules",
            json={
                "target_webhook_id": target,
                "target_webhook_url": f"https://{target}.example.com/hook",
                "product_types": ["Solar"],
                "zip_codes": ["*"],
            },
            headers=admin_headers,
        )

    data = client.post(f"/webhook/{SCOPE}", json=lead_body()).json()

    assert data["forwarding_queued"] == 2
    assert len(queue.enqueued) == 2


def test_routing_assigns_workspace(client, source, admin_headers):
    workspace = client.post(
        "/api/v1/workspaces", json={"name": "West"}, headers=admin_headers
    ).json()
    client.post(
        "/api/v1/routing-rules",
        json={"workspace_id": workspace["id"], "product_types": ["Solar"], "zip_codes": ["*"]},
        headers=admin_headers,
    )

    data = client.post(f"/webhook/{SCOPE}", json=lead_body()).json()

    assert data["workspace_id"] == workspace["id"]


def test_health_reports_source(client, source):
    client.post(f"/webhook/{SCOPE}", json=lead_body())

    response = client.get(f"/webhook/{SCOPE}")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "active"
    assert data["forwarding_enabled"] is True
    assert data["total_leads"] == 1


def test_health_of_unknown_source_is_404(client):
    assert client.get("/webhook/nope").status_code == 404


@pytest.mark.parametrize("retryable, expected", [(True, 409), (False, 500)])
def test_contact_resolution_failure_is_mapped(client, source, monkeypatch, retryable, expected):
    async def fail(self, scope, phone, **attributes):
        raise ContactResolutionError("identity changed underneath", retryable=retryable)

    monkeypatch.setattr(ContactRepository, "insert_or_fetch", fail)

    response = client.post(f"/webhook/{SCOPE}", json=lead_body())

    assert response.status_code == expected
    assert response.json()["detail"] == "identity changed underneath"
    assert client.get(f"/webhook/{SCOPE}").json()["total_leads"] == 0
