# techpulse/tests/conftest.py
import uuid
from datetime import datetime, timezone
from typing import Dict, List

import httpx
import pytest

from techpulse.schemas.models import (
    Article,
    ArticleFilter,
    RelatedArticle,
    Source,
    TrendingRecord,
)
from techpulse.shared.clients import LLMServiceClient, RecordStore
from techpulse.shared.pipeline import FeedFetcher


FEED_URL = "https://feeds.example.com/tech.xml"

RSS_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Example Tech</title>
    <link>https://example.com</link>
    <description>Tech news</description>
    <item>
      <title>OpenAI releases new GPT model</title>
      <link>https://example.com/openai-gpt</link>
      <description><![CDATA[<p>The <b>new model</b> is faster &amp; cheaper.</p>]]></description>
      <pubDate>Mon, 12 Oct 2026 10:00:00 GMT</pubDate>
      <guid isPermaLink="false">item-1</guid>
    </item>
    <item>
      <title><![CDATA[Startup raises seed round]]></title>
      <link>https://example.com/startup-seed</link>
      <description>Founders close a round led by local investors.</description>
      <pubDate>Mon, 12 Oct 2026 11:00:00 GMT</pubDate>
    </item>
    <item>
      <title>Weekend weather outlook for the coast</title>
      <link>https://example.com/weather</link>
      <description>Sunny skies expected.</description>
    </item>
  </channel>
</rss>
"""


class InMemoryStore(RecordStore):
    """Record store double with the same query semantics as the database."""

    def __init__(self):
        self.sources: Dict[str, Source] = {}
        self.articles: Dict[str, Article] = {}
        self.trending: List[TrendingRecord] = []
        self.related: List[RelatedArticle] = []
        self.last_fetch_updates: List[str] = []

    def list_sources(self, active_only: bool = True) -> List[Source]:
        return [s for s in self.sources.values() if s.is_active or not active_only]

    def create_source(self, source: Source) -> Source:
        source = source.model_copy(update={"id": str(uuid.uuid4()), "created_at": datetime.now(timezone.utc)})
        self.sources[source.id] = source
        return source

    def update_source_last_fetch(self, source_id: str) -> None:
        self.sources[source_id].last_fetch_at = datetime.now(timezone.utc)
        self.last_fetch_updates.append(source_id)

    def find_articles(self, article_filter: ArticleFilter) -> List[Article]:
        now = datetime.now(timezone.utc)
        found = []
        for article in self.articles.values():
            if article_filter.category and article.category != article_filter.category:
                continue
            if article_filter.time_range:
                threshold = article_filter.time_range.threshold(now)
                if article.published_at is None or article.published_at < threshold:
                    continue
            if article_filter.title is not None and article.title != article_filter.title:
                continue
            if article_filter.search:
                term = article_filter.search.lower()
                if term not in article.title.lower() and term not in (article.content or "").lower():
                    continue
            if article_filter.unscored_only and article.sentiment is not None:
                continue
            if article_filter.with_content and not article.content:
                continue
            found.append(article.model_copy())
        found.sort(key=lambda a: a.published_at or datetime.min.replace(tzinfo=timezone.utc), reverse=True)
        return found[: article_filter.limit]

    def create_article(self, article: Article) -> Article:
        if any(a.url == article.url for a in self.articles.values()):
            raise Exception('duplicate key value violates unique constraint "articles_url_unique"')
        now = datetime.now(timezone.utc)
        article = article.model_copy(update={"id": str(uuid.uuid4()), "created_at": now, "updated_at": now})
        self.articles[article.id] = article
        return article

    def update_article(self, article_id: str, updates: dict) -> None:
        updates = dict(updates, updated_at=datetime.now(timezone.utc))
        self.articles[article_id] = self.articles[article_id].model_copy(update=updates)

    def create_trending_record(self, record: TrendingRecord) -> TrendingRecord:
        record = record.model_copy(update={"id": str(uuid.uuid4())})
        self.trending.append(record)
        return record

    def list_trending_records(self, since: datetime) -> List[TrendingRecord]:
        return [r for r in self.trending if r.date >= since]

    def create_related_article(self, article_id: str, related_article_id: str, similarity_score: float) -> RelatedArticle:
        edge = RelatedArticle(
            id=str(uuid.uuid4()),
            article_id=article_id,
            related_article_id=related_article_id,
            similarity_score=similarity_score,
        )
        self.related.append(edge)
        return edge


@pytest.fixture()
def store():
    return InMemoryStore()


@pytest.fixture()
def source(store):
    return store.create_source(Source(name="Example", url="https://example.com", feed_url=FEED_URL))


@pytest.fixture()
def feed_responses():
    # url -> (status, body); tests mutate it to change what the "network" returns
    return {FEED_URL: (200, RSS_FEED)}


@pytest.fixture()
def fetcher(feed_responses):
    def handler(request: httpx.Request) -> httpx.Response:
        status, body = feed_responses.get(str(request.url), (404, "not found"))
        return httpx.Response(status, text=body)

    return FeedFetcher(transport=httpx.MockTransport(handler))


@pytest.fixture()
def llm_calls():
    return []


@pytest.fixture()
def llm_client(llm_calls):
    def handler(request: httpx.Request) -> httpx.Response:
        llm_calls.append(request.url.path)
        if request.url.path == "/sentiment":
            return httpx.Response(200, json={"sentiment": "positive", "score": 0.8, "confidence": 0.9})
        if request.url.path == "/embeddings":
            return httpx.Response(200, json={"embedding": [0.1, 0.2, 0.3]})
        return httpx.Response(404)

    return LLMServiceClient(base_url="http://llm.test", transport=httpx.MockTransport(handler))


@pytest.fixture()
def offline_llm_client():
    return LLMServiceClient(base_url="")


@pytest.fixture()
def make_article(store):
    def _make(title: str, **fields) -> Article:
        data = {
            "url": f"https://example.com/{uuid.uuid4().hex}",
            "content": f"{title} body",
            "published_at": datetime.now(timezone.utc),
        }
        data.update(fields)
        return store.create_article(Article(title=title, **data))

    return _make


@pytest.fixture()
def rss_feed():
    return RSS_FEED
