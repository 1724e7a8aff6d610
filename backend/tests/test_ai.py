import uuid

from google.genai import errors

from app.core.config import settings
from app.services import gemini


def _fake_predict(calls, reply="TITLE: Golden Hour\nDESCRIPTION: We watched the sun melt into the sea."):
    async def fake_call_predict(query, model):
        calls.append((query, model))
        return reply

    return fake_call_predict


def test_generate_updates_memory(client, seed, monkeypatch):
    calls = []
    monkeypatch.setattr(gemini, "call_predict", _fake_predict(calls))
    user_id, headers = seed.user()
    memory_id = seed.memory(user_id, title="Untitled Memory")

    response = client.post(
        "/api/ai/generate-video",
        headers=headers,
        json={"prompt": "sunset at the beach", "imageUrl": "https://x/y.jpg", "user_id": str(user_id), "id": str(memory_id)},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["memory"]["title"] == "Golden Hour"
    assert body["memory"]["description"] == "We watched the sun melt into the sea."
    assert "Context: sunset at the beach" in calls[0][0]
    assert seed.get_memory(memory_id).title == "Golden Hour"


def test_generate_requires_ids(client, seed, monkeypatch):
    calls = []
    monkeypatch.setattr(gemini, "call_predict", _fake_predict(calls))
    _, headers = seed.user()
    response = client.post("/api/ai/generate-video", headers=headers, json={"prompt": "x"})
    assert response.status_code == 400
    assert calls == []


def test_generate_for_mismatched_owner_changes_nothing(client, seed, monkeypatch):
    calls = []
    monkeypatch.setattr(gemini, "call_predict", _fake_predict(calls))
    owner_id, _ = seed.user()
    memory_id = seed.memory(owner_id, title="Keep me")
    caller_id, headers = seed.user()

    # Memory id of someone else paired with the caller's own id.
    response = client.post(
        "/api/ai/generate-video",
        headers=headers,
        json={"prompt": "x", "user_id": str(caller_id), "id": str(memory_id)},
    )
    assert response.status_code == 404

    # Claiming to be the owner.
    response = client.post(
        "/api/ai/generate-video",
        headers=headers,
        json={"prompt": "x", "user_id": str(owner_id), "id": str(memory_id)},
    )
    assert response.status_code == 403

    assert calls == []
    assert seed.get_memory(memory_id).title == "Keep me"


def test_admin_may_generate_for_any_user(client, seed, monkeypatch):
    calls = []
    monkeypatch.setattr(gemini, "call_predict", _fake_predict(calls, reply="nothing structured"))
    owner_id, _ = seed.user()
    memory_id = seed.memory(owner_id)
    _, admin_headers = seed.user(role="admin")

    response = client.post(
        "/api/ai/generate-video",
        headers=admin_headers,
        json={"prompt": "a quiet morning", "user_id": str(owner_id), "id": str(memory_id)},
    )

    assert response.status_code == 200
    assert response.json()["memory"]["title"] == "AI Memory"
    assert response.json()["memory"]["description"] == "a quiet morning"


def test_generate_falls_back_on_quota(client, seed, monkeypatch):
    models = []

    async def fake_call_predict(query, model):
        models.append(model)
        if model == settings.GEMINI_MODEL:
            raise errors.ClientError(429, {"error": {"code": 429, "message": "quota", "status": "RESOURCE_EXHAUSTED"}})
        return "TITLE: Plan B\nDESCRIPTION: Still lovely."

    monkeypatch.setattr(gemini, "call_predict", fake_call_predict)
    user_id, headers = seed.user()
    memory_id = seed.memory(user_id)

    response = client.post(
        "/api/ai/generate-video",
        headers=headers,
        json={"user_id": str(user_id), "id": str(memory_id)},
    )

    assert response.status_code == 200
    assert response.json()["memory"]["title"] == "Plan B"
    assert models == [settings.GEMINI_MODEL, settings.GEMINI_FALLBACK_MODEL]


def test_generate_provider_failure_is_bad_gateway(client, seed, monkeypatch):
    async def failing_call_predict(query, model):
        raise gemini.GeminiInvalidResponseException()

    monkeypatch.setattr(gemini, "call_predict", failing_call_predict)
    user_id, headers = seed.user()
    memory_id = seed.memory(user_id, title="Unchanged")

    response = client.post(
        "/api/ai/generate-video",
        headers=headers,
        json={"user_id": str(user_id), "id": str(memory_id)},
    )

    assert response.status_code == 502
    assert seed.get_memory(memory_id).title == "Unchanged"


def test_generate_unknown_memory_is_not_found(client, seed, monkeypatch):
    calls = []
    monkeypatch.setattr(gemini, "call_predict", _fake_predict(calls))
    user_id, headers = seed.user()
    response = client.post(
        "/api/ai/generate-video",
        headers=headers,
        json={"user_id": str(user_id), "id": str(uuid.uuid4())},
    )
    assert response.status_code == 404
    assert calls == []
