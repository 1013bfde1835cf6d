"""Related articles worker - embeddings and similarity edges."""
import json
import logging
import time
from typing import Dict, Any, List, Optional, Tuple
from techpulse.shared.clients import LLMServiceClient, RecordStore, SupabaseStore
from techpulse.shared.extractors import cosine_similarity, title_similarity
from techpulse.schemas.models import Article, ArticleFilter, TimeRange
from techpulse.config import settings

logger = logging.getLogger(__name__)


def load_embedding(article: Article) -> List[float]:
    if not article.embedding:
        return []
    try:
        return [float(v) for v in json.loads(article.embedding)]
    except (ValueError, TypeError):
        return []


class RelatedArticlesWorker:
    """
    Worker for linking related articles.

    Embeddings are requested and stored for every article with content, but
    similarity is scored on title word overlap unless `related_use_embeddings`
    is enabled, in which case cosine similarity is used whenever both
    articles carry a stored vector.
    """

    def __init__(self, store: Optional[RecordStore] = None, llm_client: Optional[LLMServiceClient] = None):
        """Initialize related articles worker."""
        self.store = store or SupabaseStore()
        self.llm_client = llm_client or LLMServiceClient()
        self.sample_size = settings.related_sample_size
        self.max_candidates = settings.related_max_candidates
        self.min_similarity = settings.related_min_similarity
        self.use_embeddings = settings.related_use_embeddings

    async def run(self) -> Dict[str, Any]:
        """
        Run related articles worker.

        Returns:
            Dictionary with linking results
        """
        start_time = time.time()
        logger.info("Starting related articles worker...")

        articles = self.store.find_articles(
            ArticleFilter(time_range=TimeRange.WEEK, limit=self.sample_size)
        )
        logger.info(f"Found {len(articles)} articles from the past week")

        articles_embedded = 0
        articles_skipped = 0
        edges_created = 0
        errors = 0

        for article in articles:
            if not article.content:
                continue
            try:
                embedding = await self.llm_client.generate_embedding(
                    f"{article.title}\n{article.content or article.snippet or ''}"
                )
                if not embedding:
                    articles_skipped += 1
                    continue

                article.embedding = json.dumps(embedding)
                self.store.update_article(article.id, {"embedding": article.embedding})
                articles_embedded += 1

                created, failed = self._link_article(article, articles)
                edges_created += created
                errors += failed
            except Exception as e:
                errors += 1
                logger.error(f"Error linking article {article.id}: {e}", exc_info=True)

        duration = time.time() - start_time
        logger.info(
            f"Related articles complete: {articles_embedded} embedded, {articles_skipped} skipped, "
            f"{edges_created} edges, {errors} errors, duration: {duration:.2f}s"
        )

        return {
            "status": "completed",
            "articles_embedded": articles_embedded,
            "articles_skipped": articles_skipped,
            "edges_created": edges_created,
            "errors": errors,
            "duration_seconds": duration,
        }

    def _link_article(self, article: Article, sample: List[Article]) -> Tuple[int, int]:
        """Persist edges from `article` to its most similar same-category peers.

        Returns (edges created, edges the store rejected).
        """
        candidates = [
            other for other in sample
            if other.id != article.id and other.category == article.category
        ][: self.max_candidates]

        created = 0
        failed = 0
        for other in candidates:
            score = self.similarity(article, other)
            if score <= self.min_similarity:
                continue
            try:
                self.store.create_related_article(article.id, other.id, score)
                created += 1
            except Exception as e:
                failed += 1
                logger.warning(f"Error storing related edge {article.id} -> {other.id}: {e}")
        return created, failed

    def similarity(self, article: Article, other: Article) -> float:
        if self.use_embeddings:
            vec_a, vec_b = load_embedding(article), load_embedding(other)
            if vec_a and vec_b:
                return cosine_similarity(vec_a, vec_b)
        return title_similarity(article.title, other.title)
