"""One-off script to verify pipeline output and identify issues."""
import asyncio
import logging
import os
from collections import Counter
from datetime import datetime, timedelta, timezone
from pathlib import Path
from supabase import create_client, Client
from dotenv import load_dotenv

# Load environment variables
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(env_path)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


class DataQualityVerifier:
    """Verify data quality and identify issues."""

    def __init__(self):
        """Initialize Supabase client."""
        supabase_url = os.getenv("SUPABASE_URL")
        supabase_key = os.getenv("SUPABASE_SERVICE_KEY") or os.getenv(
            "SUPABASE_SERVICE_ROLE_KEY"
        )

        if not supabase_url or not supabase_key:
            raise ValueError(
                "Missing SUPABASE_URL or SUPABASE_SERVICE_KEY in environment"
            )

        self.client: Client = create_client(supabase_url, supabase_key)

    async def verify_article_fields(self):
        """Verify ingested articles carry a category and snippet."""
        logger.info("Verifying article fields...")

        result = (
            self.client.table("articles")
            .select("id, category, snippet")
            .execute()
        )
        articles = result.data if result.data else []
        logger.info(f"Found {len(articles)} articles")

        missing_category = sum(1 for a in articles if not a.get("category"))
        missing_snippet = sum(1 for a in articles if not a.get("snippet"))
        categories = Counter(a.get("category") or "none" for a in articles)

        logger.info(
            f"Articles without category: {missing_category}, without snippet: {missing_snippet}"
        )
        logger.info(f"Category distribution: {dict(categories)}")

        return {
            "total_articles": len(articles),
            "missing_category": missing_category,
            "missing_snippet": missing_snippet,
            "categories": dict(categories),
        }

    async def verify_sentiment_backlog(self):
        """Count today's articles still waiting for sentiment."""
        logger.info("Verifying sentiment backlog...")

        since = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
        result = (
            self.client.table("articles")
            .select("id, content")
            .gte("published_at", since)
            .is_("sentiment", "null")
            .execute()
        )
        pending = result.data if result.data else []
        without_content = sum(1 for a in pending if not a.get("content"))

        logger.info(
            f"Unscored articles today: {len(pending)} ({without_content} have no content and are never scored)"
        )

        return {
            "unscored_today": len(pending),
            "unscored_without_content": without_content,
        }

    async def verify_trending_rows(self):
        """Report how many rows each topic accumulated today."""
        logger.info("Verifying trending rows...")

        today = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
        result = (
            self.client.table("trending_records")
            .select("topic, category")
            .gte("date", today.isoformat())
            .execute()
        )
        rows = result.data if result.data else []
        per_key = Counter((r.get("topic"), r.get("category")) for r in rows)
        max_rows = max(per_key.values()) if per_key else 0

        logger.info(
            f"Trending rows today: {len(rows)} across {len(per_key)} topic keys (max {max_rows} rows per key)"
        )

        return {
            "rows_today": len(rows),
            "topic_keys": len(per_key),
            "max_rows_per_key": max_rows,
        }

    async def run_all_checks(self):
        """Run all data quality checks."""
        logger.info("Starting data quality verification...")

        results = {
            "articles": await self.verify_article_fields(),
            "sentiment": await self.verify_sentiment_backlog(),
            "trending": await self.verify_trending_rows(),
        }

        logger.info("\n=== DATA QUALITY SUMMARY ===")
        logger.info(f"Articles: {results['articles']}")
        logger.info(f"Sentiment: {results['sentiment']}")
        logger.info(f"Trending: {results['trending']}")

        return results


async def main():
    """Main entry point."""
    verifier = DataQualityVerifier()
    await verifier.run_all_checks()


if __name__ == "__main__":
    asyncio.run(main())
