"""Tests for idempotency behavior."""

import pytest

from app.api.middleware import is_lead_intake
from app.core.idempotency import generate_idempotency_key, idempotency_cache_key
from app.domain.services.rule_cache import FORWARDING, RuleCache
from app.infrastructure.redis import redis_client

SCOPE = "solar-leads"


class FakeRedis:
    """In-memory stand-in for the handful of Redis commands the app uses."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value):
        self.data[key] = value
        return True

    async def setex(self, key, ttl, value):
        self.data[key] = value
        return True

    async def delete(self, key):
        return 1 if self.data.pop(key, None) is not None else 0

    async def incr(self, key):
        self.data[key] = str(int(self.data.get(key, 0)) + 1)
        return int(self.data[key])


@pytest.fixture
def fake_redis(monkeypatch):
    fake = FakeRedis()
    monkeypatch.setattr(redis_client, "_client", fake)
    monkeypatch.setattr(redis_client, "_enabled", True)
    return fake


def lead_body(**overrides):
    body = {
        "firstName": "Dana",
        "lastName": "Reyes",
        "email": "dana@example.com",
        "source": "facebook",
        "phone": "2817882316",
    }
    body.update(overrides)
    return body


def test_idempotency_key_generation():
    key1 = generate_idempotency_key("POST", "/webhook/solar-leads", {"phone": "1", "email": "a@b.c"})
    key2 = generate_idempotency_key("post", "/webhook/solar-leads/", {"email": "a@b.c", "phone": "1"})

    # Same inputs should generate same key, regardless of key order
    assert key1 == key2

    key3 = generate_idempotency_key("POST", "/webhook/solar-leads", {"phone": "2", "email": "a@b.c"})
    assert key1 != key3
    assert idempotency_cache_key(key1).startswith("idempotency:")


async def test_redis_json_storage(fake_redis):
    await redis_client.set_json("idempotency:test_key", {"body": {"id": 1}, "status_code": 201}, ttl=60)

    retrieved = await redis_client.get_json("idempotency:test_key")
    assert retrieved == {"body": {"id": 1}, "status_code": 201}

    await redis_client.delete("idempotency:test_key")
    assert await redis_client.get_json("idempotency:test_key") is None


async def test_disabled_redis_is_a_noop(monkeypatch):
    monkeypatch.setattr(redis_client, "_client", None)

    assert redis_client.enabled is False
    assert await redis_client.get("anything") is None
    assert await redis_client.incr("anything") is None
    assert await redis_client.set("anything", "value") is True


def test_replayed_submission_returns_cached_response(client, admin_headers, fake_redis):
    client.post("/api/v1/sources", json={"webhook_id": SCOPE, "name": "Solar"}, headers=admin_headers)
    headers = {"Idempotency-Key": "provider-retry-1"}

    first = client.post(f"/webhook/{SCOPE}", json=lead_body(), headers=headers)
    second = client.post(f"/webhook/{SCOPE}", json=lead_body(), headers=headers)

    assert first.status_code == second.status_code == 201
    assert second.headers.get("Idempotent-Replay") == "true"
    assert second.json()["lead_id"] == first.json()["lead_id"]

    health = client.get(f"/webhook/{SCOPE}").json()
    assert health["total_leads"] == 1


def test_identical_body_without_key_is_deduplicated(client, admin_headers, fake_redis):
    client.post("/api/v1/sources", json={"webhook_id": SCOPE, "name": "Solar"}, headers=admin_headers)

    first = client.post(f"/webhook/{SCOPE}", json=lead_body())
    second = client.post(f"/webhook/{SCOPE}", json=lead_body())
    different = client.post(f"/webhook/{SCOPE}", json=lead_body(source="google"))

    assert second.json()["lead_id"] == first.json()["lead_id"]
    assert different.json()["lead_id"] != first.json()["lead_id"]
    assert different.json()["contact_status"] == "existing"


def test_failed_requests_are_not_cached(client, fake_redis):
    first = client.post(f"/webhook/{SCOPE}", json=lead_body())

    assert first.status_code == 404
    assert not any(key.startswith("idempotency:") for key in fake_redis.data)


async def test_rule_cache_sees_invalidation_from_another_process(fake_redis):
    loads = []

    async def loader():
        loads.append(1)
        return []

    local = RuleCache(ttl_seconds=300)
    other_process = RuleCache(ttl_seconds=300)

    await local.get(FORWARDING, SCOPE, loader)
    await local.get(FORWARDING, SCOPE, loader)
    assert len(loads) == 1

    await other_process.invalidate(FORWARDING, SCOPE)
    await local.get(FORWARDING, SCOPE, loader)

    assert len(loads) == 2


def test_lead_intake_is_recognized():
    assert is_lead_intake("POST", "/webhook/solar-leads")
    assert is_lead_intake("POST", "/webhook/solar-leads/")
    assert not is_lead_intake("GET", "/webhook/solar-leads")
    assert not is_lead_intake("PATCH", "/api/v1/webhook/solar-leads/forwarding-toggle")
    assert not is_lead_intake("POST", "/api/v1/webhook/solar-leads/forwarding-rules")


def test_repeated_toggle_writes_all_apply(client, admin_headers, fake_redis):
    client.post("/api/v1/sources", json={"webhook_id": SCOPE, "name": "Solar"}, headers=admin_headers)
    toggle_url = f"/api/v1/webhook/{SCOPE}/forwarding-toggle"

    for enabled in (False, True, False):
        response = client.patch(toggle_url, json={"forwarding_enabled": enabled}, headers=admin_headers)
        assert response.status_code == 200
        assert "Idempotent-Replay" not in response.headers

    source = client.get(f"/api/v1/sources/{SCOPE}", headers=admin_headers).json()
    assert source["forwarding_enabled"] is False
    assert client.get(f"/webhook/{SCOPE}").json()["forwarding_enabled"] is False


def test_rule_updates_flipping_back_and_forth_all_apply(client, admin_headers, fake_redis):
    client.post("/api/v1/sources", json={"webhook_id": SCOPE, "name": "Solar"}, headers=admin_headers)
    rules_url = f"/api/v1/webhook/{SCOPE}/forwarding-rules"
    rule = client.post(
        rules_url,
        json={
            "target_webhook_id": "partner",
            "target_webhook_url": "https://partner.example.com/hook",
            "product_types": ["*"],
            "zip_codes": ["*"],
        },
        headers=admin_headers,
    ).json()

    for enabled in (False, True, False):
        client.put(f"{rules_url}/{rule['id']}", json={"forward_enabled": enabled}, headers=admin_headers)

    fetched = client.get(f"{rules_url}/{rule['id']}", headers=admin_headers).json()
    assert fetched["forward_enabled"] is False


def test_admin_write_with_explicit_key_is_replayed(client, admin_headers, fake_redis):
    client.post("/api/v1/sources", json={"webhook_id": SCOPE, "name": "Solar"}, headers=admin_headers)
    headers = {**admin_headers, "Idempotency-Key": "toggle-off-1"}
    toggle_url = f"/api/v1/webhook/{SCOPE}/forwarding-toggle"

    client.patch(toggle_url, json={"forwarding_enabled": False}, headers=headers)
    replay = client.patch(toggle_url, json={"forwarding_enabled": False}, headers=headers)

    assert replay.headers.get("Idempotent-Replay") == "true"
