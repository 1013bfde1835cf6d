"""Ingestion worker - RSS feed fetching and article creation."""
import logging
import time
from typing import Dict, Any, Optional
from datetime import datetime, timezone
import dateparser
from techpulse.shared.clients import RecordStore, SupabaseStore
from techpulse.shared.extractors import categorize_article, create_snippet
from techpulse.shared.pipeline import FeedFetcher, FeedFetchError
from techpulse.schemas.models import Article, ArticleFilter, RawFeedItem, Source
from techpulse.config import settings

logger = logging.getLogger(__name__)


DEFAULT_SOURCES = [
    Source(
        name="TechCrunch",
        url="https://techcrunch.com",
        feed_url="https://techcrunch.com/feed/",
        fetch_interval=300,
    ),
    Source(
        name="The Verge",
        url="https://theverge.com",
        feed_url="https://www.theverge.com/rss/index.xml",
        fetch_interval=300,
    ),
    Source(
        name="Hacker News",
        url="https://news.ycombinator.com",
        feed_url="https://news.ycombinator.com/rss",
        fetch_interval=600,
    ),
    Source(
        name="Ars Technica",
        url="https://arstechnica.com",
        feed_url="https://feeds.arstechnica.com/arstechnica/index",
        fetch_interval=300,
    ),
]


def parse_published(pub_date: Optional[str], now: datetime) -> datetime:
    """Parse a feed date string, falling back to `now`."""
    if not pub_date:
        return now
    parsed = dateparser.parse(pub_date, settings={"RETURN_AS_TIMEZONE_AWARE": True, "TO_TIMEZONE": "UTC"})
    if parsed is None:
        return now
    return parsed.astimezone(timezone.utc)


def is_unique_violation(error: Exception) -> bool:
    message = str(error).lower()
    return "duplicate" in message or "unique" in message or "23505" in message


class IngestionWorker:
    """Worker for ingesting RSS feeds and creating articles."""

    def __init__(self, store: Optional[RecordStore] = None, fetcher: Optional[FeedFetcher] = None):
        """Initialize ingestion worker."""
        self.store = store or SupabaseStore()
        self.fetcher = fetcher or FeedFetcher()
        self.snippet_max_chars = settings.snippet_max_chars

    def seed_default_sources(self) -> int:
        """Create bootstrap sources that do not exist yet (matched by name)."""
        existing = {source.name for source in self.store.list_sources(active_only=False)}
        created = 0
        for source in DEFAULT_SOURCES:
            if source.name in existing:
                continue
            self.store.create_source(source.model_copy())
            logger.info(f"Created default source: {source.name}")
            created += 1
        return created

    async def run(self, seed_defaults: bool = True) -> Dict[str, Any]:
        """
        Run ingestion worker.

        Returns:
            Dictionary with ingestion results
        """
        start_time = time.time()
        logger.info("Starting ingestion worker...")

        if seed_defaults:
            self.seed_default_sources()

        sources = [s for s in self.store.list_sources(active_only=True) if s.feed_url and s.is_active]
        logger.info(f"Found {len(sources)} active sources")

        total_articles = 0
        total_errors = 0
        sources_failed = 0

        for source in sources:
            try:
                result = await self.ingest_source(source)
            except FeedFetchError as e:
                sources_failed += 1
                logger.error(f"Skipping source {source.name}: {e}")
                continue
            except Exception as e:
                sources_failed += 1
                logger.error(f"Error ingesting source {source.name}: {e}", exc_info=True)
                continue
            total_articles += result["articles_ingested"]
            total_errors += result["articles_failed"]
            logger.info(f"Source {source.name}: {result['articles_ingested']} new articles")

        duration = time.time() - start_time
        logger.info(
            f"Ingestion complete: {total_articles} articles ingested, {total_errors} errors, "
            f"{sources_failed} sources failed, duration: {duration:.2f}s"
        )

        return {
            "status": "completed",
            "sources_processed": len(sources),
            "sources_failed": sources_failed,
            "articles_ingested": total_articles,
            "articles_failed": total_errors,
            "duration_seconds": duration,
        }

    async def ingest_source(self, source: Source) -> Dict[str, Any]:
        """Fetch one source and store its new items. Raises FeedFetchError."""
        logger.info(f"Fetching RSS from: {source.feed_url}")
        feed = await self.fetcher.fetch_feed(source.feed_url)

        articles_ingested = 0
        articles_failed = 0

        for item in feed.items:
            try:
                if self._process_item(item, source):
                    articles_ingested += 1
            except Exception as e:
                articles_failed += 1
                logger.error(f'Error saving article "{item.title}": {e}')

        self.store.update_source_last_fetch(source.id)

        return {
            "source_id": source.id,
            "source_name": source.name,
            "articles_ingested": articles_ingested,
            "articles_failed": articles_failed,
        }

    def _process_item(self, item: RawFeedItem, source: Source) -> bool:
        """Store a single feed item. Returns False when it is a duplicate."""
        existing = self.store.find_articles(ArticleFilter(title=item.title, limit=1))
        if existing:
            logger.debug(f"Article already exists: {item.title}")
            return False

        now = datetime.now(timezone.utc)
        article = Article(
            title=item.title,
            url=item.link,
            content=item.description,
            snippet=create_snippet(item.description, self.snippet_max_chars),
            source_id=source.id,
            published_at=parse_published(item.pub_date, now),
            fetched_at=now,
            category=categorize_article(item.title, item.description),
        )

        try:
            self.store.create_article(article)
        except Exception as e:
            # Handle duplicate key error (race condition)
            if is_unique_violation(e):
                logger.debug(f"Article already exists (race condition): {item.link}")
                return False
            raise

        return True
