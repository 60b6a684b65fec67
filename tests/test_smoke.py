import pytest

from triviaquest.core import redis_manager, supabase_client


def test_health(client):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_quiz_config_lists_time_limits(client):
    resp = client.get("/api/v1/quiz/config")
    assert resp.status_code == 200
    body = resp.json()
    assert [o["value"] for o in body["timeLimits"]] == [60, 180, 300, 600, None]
    assert body["timeLimits"][0]["label"] == "1 Minute"
    assert body["timeLimits"][-1]["label"] == "No Limit"
    assert body["defaultTimeLimit"] == 300
    assert body["questionCount"] == 3


def test_supabase_client_requires_configuration(monkeypatch):
    monkeypatch.setattr(supabase_client, "_supabase", None)
    monkeypatch.setattr(supabase_client.settings, "SUPABASE_URL", None)
    with pytest.raises(RuntimeError, match="Supabase is not configured"):
        supabase_client.get_supabase()


async def test_redis_client_requires_configuration(monkeypatch):
    monkeypatch.setattr(redis_manager, "_redis", None)
    monkeypatch.setattr(redis_manager.settings, "REDIS_URL", None)
    with pytest.raises(RuntimeError, match="REDIS_URL"):
        await redis_manager.get_redis()
    # nothing to close when no client was ever made
    await redis_manager.close_redis()
