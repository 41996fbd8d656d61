import httpx
import pytest
from fastapi.testclient import TestClient

from gamepulse.errors import ErrorKind, SteamAPIError
from gamepulse.main import create_app
from gamepulse.pipeline import AnalysisPipeline

from conftest import FakeReviewProvider, make_game, make_reviews, ollama_summarizer


@pytest.fixture
def provider():
    return FakeReviewProvider(
        games={570: make_game(570, "Dota 2"), 413150: make_game(413150, "Stardew Valley")},
        reviews={570: make_reviews(20), 413150: make_reviews(8, app_id=413150)},
    )


@pytest.fixture
def client(store, provider, valid_summary_text):
    pipeline = AnalysisPipeline(store=store, review_provider=provider, summarizer=ollama_summarizer(valid_summary_text))
    with TestClient(create_app(pipeline)) as test_client:
        yield test_client


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_search(client):
    response = client.get("/games/search", params={"q": "dota"})

    assert response.status_code == 200
    assert [g["app_id"] for g in response.json()] == [570]


def test_search_requires_query(client):
    assert client.get("/games/search").status_code == 422


def test_game_details_fetched_and_cached(client, provider, store):
    response = client.get("/games/570")

    assert response.status_code == 200
    assert response.json()["name"] == "Dota 2"
    assert store.get_game(570) is not None

    client.get("/games/570")
    assert provider.detail_calls == 1


def test_unknown_game_is_404(client):
    response = client.get("/games/999")

    assert response.status_code == 404
    assert response.json()["kind"] == "not-found"


def test_analysis_flow(client):
    response = client.post("/games/570/analysis", json={"max_reviews": 15})

    assert response.status_code == 200
    body = response.json()
    assert body["review_count"] == 15
    assert body["summary"]["overall_sentiment"] == 8.2
    assert body["summary"]["app_id"] == 570

    status = client.get("/games/570/status").json()
    assert status["status"] == "completed"
    assert status["progress"] == 100

    assert len(client.get("/games/570/reviews").json()) == 15
    assert len(client.get("/games/570/reviews", params={"limit": 5}).json()) == 5
    assert client.get("/games/570/summary").json()["review_count"] == 15

    recent = client.get("/games/recent").json()
    assert [g["app_id"] for g in recent] == [570]
    assert recent[0]["overall_sentiment"] == 8.2


def test_analysis_without_body(client):
    response = client.post("/games/413150/analysis")

    assert response.status_code == 200
    assert response.json()["review_count"] == 8


def test_analysis_rejects_invalid_options(client):
    assert client.post("/games/570/analysis", json={"max_reviews": 0}).status_code == 422


def test_upstream_error_mapping(store, valid_summary_text):
    provider = FakeReviewProvider(
        games={570: make_game()},
        error=SteamAPIError("Rate limited: Too many requests to Steam API", ErrorKind.RATE_LIMITED),
    )
    pipeline = AnalysisPipeline(store=store, review_provider=provider, summarizer=ollama_summarizer(valid_summary_text))

    with TestClient(create_app(pipeline)) as client:
        response = client.post("/games/570/analysis")
        queue = client.get("/queue").json()

    assert response.status_code == 429
    assert response.json() == {"detail": "Rate limited: Too many requests to Steam API", "kind": "rate-limited"}
    assert queue[0]["status"] == "failed"
    assert queue[0]["game_name"] == "Dota 2"


def test_missing_summary_and_status(client):
    assert client.get("/games/570/summary").status_code == 404
    assert client.get("/games/570/status").status_code == 404


def test_clear_cache(client, store):
    client.post("/games/570/analysis")

    response = client.delete("/cache")

    assert response.json() == {"success": True}
    assert store.get_summary(570) is None
    assert store.get_game(570) is not None


def test_llm_providers(client):
    providers = client.get("/llm/providers").json()

    assert [p["id"] for p in providers] == ["ollama", "openai", "anthropic", "azure"]


def test_llm_test_connection_reports_failure(client):
    response = client.post("/llm/test-connection", json={"provider": "openai"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert "API key" in body["message"]
