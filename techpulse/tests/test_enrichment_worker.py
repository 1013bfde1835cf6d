# techpulse/tests/test_enrichment_worker.py
import asyncio
from datetime import datetime, timedelta, timezone

import httpx

from techpulse.shared.clients import LLMServiceClient
from techpulse.workers.enrichment_worker import EnrichmentWorker


def test_scores_unscored_articles_with_content(store, llm_client, make_article):
    a = make_article("Chip maker beats estimates")
    b = make_article("Rocket launch delayed")

    result = asyncio.run(EnrichmentWorker(store, llm_client).run())

    assert result["articles_scored"] == 2
    for article_id in (a.id, b.id):
        assert store.articles[article_id].sentiment == "positive"
        assert store.articles[article_id].sentiment_score == 0.8


def test_skips_scored_contentless_and_old_articles(store, llm_client, llm_calls, make_article):
    scored = make_article("Already scored", sentiment="negative", sentiment_score=-0.5)
    empty = make_article("No body", content=None)
    old = make_article("Last month", published_at=datetime.now(timezone.utc) - timedelta(days=3))

    result = asyncio.run(EnrichmentWorker(store, llm_client).run())

    assert result["articles_scored"] == 0
    assert llm_calls == []
    assert store.articles[scored.id].sentiment == "negative"
    assert store.articles[empty.id].sentiment is None
    assert store.articles[old.id].sentiment is None


def test_unavailable_service_leaves_articles_for_next_cycle(store, offline_llm_client, llm_client, make_article):
    article = make_article("Chip maker beats estimates")

    first = asyncio.run(EnrichmentWorker(store, offline_llm_client).run())
    assert first["articles_scored"] == 0
    assert first["articles_skipped"] == 1
    assert store.articles[article.id].sentiment is None

    second = asyncio.run(EnrichmentWorker(store, llm_client).run())
    assert second["articles_scored"] == 1
    assert store.articles[article.id].sentiment == "positive"


def test_service_error_does_not_abort_pass(store, make_article):
    make_article("First")
    make_article("Second")
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(500, json={"error": "overloaded"})
        return httpx.Response(200, json={"sentiment": "negative", "score": -3, "confidence": 2})

    client = LLMServiceClient(base_url="http://llm.test", transport=httpx.MockTransport(handler))
    result = asyncio.run(EnrichmentWorker(store, client).run())

    assert len(calls) == 2
    assert result["articles_scored"] == 1
    assert result["articles_skipped"] == 1
    scored = [a for a in store.articles.values() if a.sentiment]
    assert len(scored) == 1
    # out-of-range values from the service are clamped
    assert scored[0].sentiment_score == -1.0


def test_store_failure_is_counted_and_pass_continues(store, llm_client, make_article, monkeypatch):
    make_article("First")
    make_article("Second")
    original = store.update_article
    calls = []

    def flaky_update(article_id, updates):
        calls.append(article_id)
        if len(calls) == 1:
            raise RuntimeError("write rejected")
        return original(article_id, updates)

    monkeypatch.setattr(store, "update_article", flaky_update)

    result = asyncio.run(EnrichmentWorker(store, llm_client).run())

    assert result["errors"] == 1
    assert result["articles_scored"] == 1


def test_sentiment_text_is_truncated(store, make_article, monkeypatch):
    from techpulse.config import settings

    monkeypatch.setattr(settings, "sentiment_max_chars", 10)
    make_article("Long", content="x" * 500)
    bodies = []

    def handler(request):
        bodies.append(request.content)
        return httpx.Response(200, json={"sentiment": "neutral", "score": 0, "confidence": 0.7})

    client = LLMServiceClient(base_url="http://llm.test", transport=httpx.MockTransport(handler))
    asyncio.run(EnrichmentWorker(store, client).run())

    assert bodies
    assert b'"Long\\nxxxxx"' in bodies[0]


def test_contentless_articles_do_not_fill_the_sample(store, llm_client, make_article, monkeypatch):
    from techpulse.config import settings

    monkeypatch.setattr(settings, "enrichment_sample_size", 1)
    make_article("Newest, no body", content=None)
    older = make_article("Older with body", published_at=datetime.now(timezone.utc) - timedelta(hours=1))

    result = asyncio.run(EnrichmentWorker(store, llm_client).run())

    assert result["articles_scored"] == 1
    assert store.articles[older.id].sentiment == "positive"
