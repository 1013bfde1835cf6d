"""Enrichment worker - sentiment scoring for recent articles."""
import logging
import time
from typing import Dict, Any, Optional
from techpulse.shared.clients import LLMServiceClient, RecordStore, SupabaseStore
from techpulse.schemas.models import Article, ArticleFilter, TimeRange
from techpulse.config import settings

logger = logging.getLogger(__name__)


class EnrichmentWorker:
    """Worker for scoring sentiment of articles ingested today."""

    def __init__(self, store: Optional[RecordStore] = None, llm_client: Optional[LLMServiceClient] = None):
        """Initialize enrichment worker."""
        self.store = store or SupabaseStore()
        self.llm_client = llm_client or LLMServiceClient()
        self.sample_size = settings.enrichment_sample_size

    async def run(self) -> Dict[str, Any]:
        """
        Run enrichment worker.

        Returns:
            Dictionary with enrichment results
        """
        start_time = time.time()
        logger.info("Starting enrichment worker...")

        articles = self.store.find_articles(
            ArticleFilter(
                time_range=TimeRange.TODAY,
                unscored_only=True,
                with_content=True,
                limit=self.sample_size,
            )
        )
        pending = [a for a in articles if not a.sentiment and a.content]
        logger.info(f"Found {len(pending)} articles pending sentiment analysis")

        articles_scored = 0
        articles_skipped = 0
        errors = 0

        for article in pending:
            try:
                if await self._score_article(article):
                    articles_scored += 1
                else:
                    articles_skipped += 1
            except Exception as e:
                errors += 1
                logger.error(f"Error processing sentiment for article {article.id}: {e}", exc_info=True)

        duration = time.time() - start_time
        logger.info(
            f"Enrichment complete: {articles_scored} scored, {articles_skipped} skipped, "
            f"{errors} errors, duration: {duration:.2f}s"
        )

        return {
            "status": "completed",
            "articles_scored": articles_scored,
            "articles_skipped": articles_skipped,
            "errors": errors,
            "duration_seconds": duration,
        }

    async def _score_article(self, article: Article) -> bool:
        """Score one article. Returns False when the service gave no real answer."""
        result = await self.llm_client.analyze_sentiment(
            f"{article.title}\n{article.content or article.snippet or ''}"
        )
        if result.is_fallback:
            # left unscored so the next cycle picks it up again
            logger.debug(f"Sentiment service unavailable, leaving article {article.id} unscored")
            return False

        self.store.update_article(
            article.id,
            {"sentiment": result.sentiment, "sentiment_score": result.score},
        )
        logger.debug(f"Processed sentiment for: {article.title}")
        return True
