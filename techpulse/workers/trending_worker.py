"""Trending worker - keyword frequency aggregation into daily topic records."""
import logging
import time
from typing import Dict, Any, List, Optional, Tuple
from datetime import datetime, timezone
from techpulse.shared.clients import RecordStore, SupabaseStore
from techpulse.shared.extractors import KeywordExtractor, calculate_growth_rate, count_keywords
from techpulse.schemas.models import ArticleFilter, Category, TimeRange, TrendingRecord
from techpulse.config import settings

logger = logging.getLogger(__name__)


def day_bucket(now: datetime) -> datetime:
    """UTC midnight of the day containing `now`. Naive values are taken as UTC."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)


def rank_counts(counts: Dict[str, int], top: int) -> List[Tuple[str, int]]:
    # sorted() is stable, so ties keep first-seen order
    return sorted(counts.items(), key=lambda kv: kv[1], reverse=True)[:top]


def reduce_trending_records(records: List[TrendingRecord]) -> List[TrendingRecord]:
    """
    Collapse append-only rows to one per (day, topic, category).

    Every run re-counts the same window, so the largest count for a key is
    the most complete observation; counts are not summed.
    """
    reduced: Dict[Tuple[datetime, str, Optional[Category]], TrendingRecord] = {}
    for record in records:
        key = (day_bucket(record.date), record.topic, record.category)
        current = reduced.get(key)
        if current is None or record.count > current.count:
            reduced[key] = record
    return list(reduced.values())


def get_trending_topics(
    store: RecordStore,
    time_range: TimeRange = TimeRange.TODAY,
    limit: int = 10,
) -> List[TrendingRecord]:
    """Read-side view of trending topics: reduced, then ranked by growth and count."""
    since = day_bucket(time_range.threshold(datetime.now(timezone.utc)))
    records = reduce_trending_records(store.list_trending_records(since))
    records.sort(key=lambda r: (r.growth_rate or 0, r.count), reverse=True)
    return records[:limit]


class TrendingWorker:
    """Worker for deriving trending topics from today's articles."""

    def __init__(self, store: Optional[RecordStore] = None, extractor: Optional[KeywordExtractor] = None):
        """Initialize trending worker."""
        self.store = store or SupabaseStore()
        self.extractor = extractor or KeywordExtractor()
        self.sample_size = settings.trending_sample_size

    async def run(self) -> Dict[str, Any]:
        """
        Run trending worker.

        Returns:
            Dictionary with trending results
        """
        start_time = time.time()
        logger.info("Starting trending worker...")

        articles = self.store.find_articles(
            ArticleFilter(time_range=TimeRange.TODAY, limit=self.sample_size)
        )
        logger.info(f"Aggregating keywords over {len(articles)} articles")

        keyword_sets = []
        for article in articles:
            text = f"{article.title} {article.snippet or ''}"
            category = article.category or Category.OTHERS
            keyword_sets.append((category, self.extractor.extract(text)))

        keyword_counts, category_counts = count_keywords(keyword_sets)
        today = day_bucket(datetime.now(timezone.utc))

        records_created = 0
        errors = 0

        candidates: List[TrendingRecord] = []
        for topic, count in rank_counts(keyword_counts, settings.trending_global_top):
            if count >= settings.trending_global_min_count:
                candidates.append(
                    TrendingRecord(
                        date=today,
                        topic=topic,
                        count=count,
                        growth_rate=calculate_growth_rate(count),
                    )
                )

        for category, counts in category_counts.items():
            for topic, count in rank_counts(counts, settings.trending_category_top):
                if count >= settings.trending_category_min_count:
                    candidates.append(
                        TrendingRecord(
                            date=today,
                            topic=topic,
                            count=count,
                            category=category,
                            growth_rate=calculate_growth_rate(count),
                        )
                    )

        for record in candidates:
            try:
                self.store.create_trending_record(record)
                records_created += 1
            except Exception as e:
                errors += 1
                logger.error(f"Error storing trending record {record.topic}: {e}")

        duration = time.time() - start_time
        logger.info(
            f"Trending complete: {len(keyword_counts)} keywords, {records_created} records, "
            f"{errors} errors, duration: {duration:.2f}s"
        )

        return {
            "status": "completed",
            "articles_sampled": len(articles),
            "keywords_found": len(keyword_counts),
            "records_created": records_created,
            "errors": errors,
            "duration_seconds": duration,
        }
