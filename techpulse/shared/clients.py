"""Shared clients for the record store and LLM service."""
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import List, Optional
import asyncio
import logging
import httpx
from supabase import create_client, Client
from techpulse.config import settings
from techpulse.schemas.models import (
    Article,
    ArticleFilter,
    RelatedArticle,
    SentimentResult,
    Source,
    TrendingRecord,
)

logger = logging.getLogger(__name__)


class RecordStore(ABC):
    """Persistence operations the pipeline depends on."""

    @abstractmethod
    def list_sources(self, active_only: bool = True) -> List[Source]:
        pass

    @abstractmethod
    def create_source(self, source: Source) -> Source:
        pass

    @abstractmethod
    def update_source_last_fetch(self, source_id: str) -> None:
        pass

    @abstractmethod
    def find_articles(self, article_filter: ArticleFilter) -> List[Article]:
        pass

    @abstractmethod
    def create_article(self, article: Article) -> Article:
        pass

    @abstractmethod
    def update_article(self, article_id: str, updates: dict) -> None:
        pass

    @abstractmethod
    def create_trending_record(self, record: TrendingRecord) -> TrendingRecord:
        pass

    @abstractmethod
    def list_trending_records(self, since: datetime) -> List[TrendingRecord]:
        pass

    @abstractmethod
    def create_related_article(
        self,
        article_id: str,
        related_article_id: str,
        similarity_score: float,
    ) -> RelatedArticle:
        pass


def quote_filter_value(value: str) -> str:
    """Double-quote a value for a PostgREST logical filter so `,` `.` `(` `)` stay literal."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _insert_payload(model) -> dict:
    """Serialize a model for insert, letting the database assign ids and defaults."""
    return model.model_dump(mode="json", exclude_none=True, exclude={"id", "created_at"})


class SupabaseStore(RecordStore):
    """Supabase-backed record store."""

    def __init__(self):
        """Initialize Supabase client."""
        self.client: Client = create_client(
            settings.supabase_url,
            settings.supabase_service_key,
        )

    def list_sources(self, active_only: bool = True) -> List[Source]:
        """List configured sources."""
        query = self.client.table("sources").select("*")
        if active_only:
            query = query.eq("is_active", True)
        result = query.execute()
        return [Source.model_validate(row) for row in result.data or []]

    def create_source(self, source: Source) -> Source:
        """Create a source record."""
        result = self.client.table("sources").insert(_insert_payload(source)).execute()
        return Source.model_validate(result.data[0]) if result.data else source

    def update_source_last_fetch(self, source_id: str) -> None:
        """Stamp a source with the current fetch time."""
        self.client.table("sources").update(
            {"last_fetch_at": datetime.now(timezone.utc).isoformat()}
        ).eq("id", source_id).execute()

    def find_articles(self, article_filter: ArticleFilter) -> List[Article]:
        """Query articles, newest first."""
        query = self.client.table("articles").select("*")

        if article_filter.category:
            query = query.eq("category", article_filter.category.value)
        if article_filter.time_range:
            threshold = article_filter.time_range.threshold(datetime.now(timezone.utc))
            query = query.gte("published_at", threshold.isoformat())
        if article_filter.title is not None:
            query = query.eq("title", article_filter.title)
        if article_filter.search:
            pattern = quote_filter_value(f"%{article_filter.search}%")
            query = query.or_(f"title.ilike.{pattern},content.ilike.{pattern}")
        if article_filter.unscored_only:
            query = query.is_("sentiment", "null")
        if article_filter.with_content:
            query = query.not_.is_("content", "null").neq("content", "")

        result = (
            query.order("published_at", desc=True)
            .limit(article_filter.limit)
            .execute()
        )
        return [Article.model_validate(row) for row in result.data or []]

    def create_article(self, article: Article) -> Article:
        """Create an article record. Raises on unique-url violation."""
        result = self.client.table("articles").insert(_insert_payload(article)).execute()
        return Article.model_validate(result.data[0]) if result.data else article

    def update_article(self, article_id: str, updates: dict) -> None:
        """Update selected article fields."""
        data = dict(updates)
        data["updated_at"] = datetime.now(timezone.utc).isoformat()
        self.client.table("articles").update(data).eq("id", article_id).execute()

    def create_trending_record(self, record: TrendingRecord) -> TrendingRecord:
        """Append a trending record."""
        result = (
            self.client.table("trending_records")
            .insert(_insert_payload(record))
            .execute()
        )
        return TrendingRecord.model_validate(result.data[0]) if result.data else record

    def list_trending_records(self, since: datetime) -> List[TrendingRecord]:
        """List trending rows with a day bucket at or after `since`."""
        result = (
            self.client.table("trending_records")
            .select("*")
            .gte("date", since.isoformat())
            .execute()
        )
        return [TrendingRecord.model_validate(row) for row in result.data or []]

    def create_related_article(
        self,
        article_id: str,
        related_article_id: str,
        similarity_score: float,
    ) -> RelatedArticle:
        """Create a directed related-article edge."""
        edge = RelatedArticle(
            article_id=article_id,
            related_article_id=related_article_id,
            similarity_score=similarity_score,
        )
        result = (
            self.client.table("related_articles")
            .insert(_insert_payload(edge))
            .execute()
        )
        return RelatedArticle.model_validate(result.data[0]) if result.data else edge


class LLMServiceClient:
    """HTTP client for the LLM service (sentiment and embeddings)."""

    def __init__(self, base_url: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        """Initialize LLM service client."""
        self.base_url = base_url if base_url is not None else settings.llm_service_url
        self.timeout = settings.llm_service_timeout
        self.max_retries = settings.embedding_max_retries
        self.retry_delay = settings.embedding_retry_delay
        self.transport = transport

    @property
    def available(self) -> bool:
        return bool(self.base_url)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def analyze_sentiment(self, text: str) -> SentimentResult:
        """Score sentiment of a text. Falls back to neutral instead of raising."""
        if not self.available:
            return SentimentResult(is_fallback=True)

        async with self._client() as client:
            try:
                response = await client.post(
                    f"{self.base_url}/sentiment",
                    json={"text": text[: settings.sentiment_max_chars]},
                )
                response.raise_for_status()
                data = response.json()
                return SentimentResult(
                    sentiment=data.get("sentiment") or "neutral",
                    score=max(-1.0, min(1.0, float(data.get("score") or 0))),
                    confidence=max(0.0, min(1.0, float(data.get("confidence", 0.5) or 0))),
                )
            except Exception as e:
                logger.warning(f"Sentiment analysis failed: {e}")
                return SentimentResult(is_fallback=True)

    async def generate_embedding(
        self,
        text: str,
        retry_count: int = 0,
    ) -> List[float]:
        """Generate embedding for a single text. Empty list means unavailable."""
        if not self.available:
            return []

        async with self._client() as client:
            try:
                response = await client.post(
                    f"{self.base_url}/embeddings",
                    json={"text": text[: settings.embedding_max_chars]},
                )
                response.raise_for_status()
                data = response.json()
                return [float(v) for v in data.get("embedding") or []]
            except Exception as e:
                if retry_count < self.max_retries:
                    await asyncio.sleep(self.retry_delay * (2 ** retry_count))
                    return await self.generate_embedding(text, retry_count + 1)
                logger.warning(f"Failed to generate embedding after {self.max_retries} retries: {e}")
                return []
