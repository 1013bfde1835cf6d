"""Background scheduler driving the ingestion cycle and the related-articles linker."""
import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional
from apscheduler.schedulers.background import BackgroundScheduler
from techpulse.shared.clients import LLMServiceClient, RecordStore, SupabaseStore
from techpulse.shared.pipeline import FeedFetcher
from techpulse.workers.ingestion_worker import IngestionWorker
from techpulse.workers.enrichment_worker import EnrichmentWorker
from techpulse.workers.trending_worker import TrendingWorker
from techpulse.workers.related_worker import RelatedArticlesWorker
from techpulse.config import settings

logger = logging.getLogger(__name__)

CYCLE_JOB_ID = "news_cycle"
RELATED_JOB_ID = "related_articles"


class PipelineScheduler:
    """Owns the workers and the interval jobs that run them."""

    def __init__(
        self,
        store: Optional[RecordStore] = None,
        llm_client: Optional[LLMServiceClient] = None,
        fetcher: Optional[FeedFetcher] = None,
        scheduler: Optional[BackgroundScheduler] = None,
    ):
        store = store or SupabaseStore()
        llm_client = llm_client or LLMServiceClient()

        self.ingestion = IngestionWorker(store, fetcher)
        self.enrichment = EnrichmentWorker(store, llm_client)
        self.trending = TrendingWorker(store)
        self.related = RelatedArticlesWorker(store, llm_client)

        # max_instances=1 skips a tick while the previous run is still going
        self.scheduler = scheduler or BackgroundScheduler(
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": settings.scheduler_misfire_grace_seconds,
            }
        )

    async def run_cycle(self) -> Dict[str, Any]:
        """
        Ingestion, then enrichment, then trending.

        Ingestion only raises when sources cannot be seeded or listed, and that
        propagates. Enrichment and trending failures are logged and recorded in
        the result so the remaining stages still run.
        """
        logger.info("Starting news processing...")
        ingestion = await self.ingestion.run(seed_defaults=True)
        enrichment = await self._run_stage("enrichment", self.enrichment.run)
        trending = await self._run_stage("trending", self.trending.run)
        logger.info("News processing completed")
        return {"ingestion": ingestion, "enrichment": enrichment, "trending": trending}

    async def _run_stage(self, name: str, stage: Callable[[], Awaitable[Dict[str, Any]]]) -> Dict[str, Any]:
        try:
            return await stage()
        except Exception as e:
            logger.error(f"Error in {name} stage: {e}", exc_info=True)
            return {"status": "failed", "error": str(e)}

    async def run_related(self) -> Dict[str, Any]:
        return await self.related.run()

    def _cycle_job(self) -> None:
        try:
            asyncio.run(self.run_cycle())
        except Exception as e:
            logger.error(f"Error in periodic update: {e}", exc_info=True)

    def _related_job(self) -> None:
        try:
            asyncio.run(self.run_related())
        except Exception as e:
            logger.error(f"Error generating related articles: {e}", exc_info=True)

    def start(self, run_cycle_now: bool = True, run_related_now: bool = True) -> None:
        """Schedule both jobs and start the background thread."""
        # next_run_time=None would add the job paused, so only pass it to fire at once
        now = {"next_run_time": datetime.now()}
        self.scheduler.add_job(
            self._cycle_job,
            "interval",
            minutes=settings.cycle_interval_minutes,
            id=CYCLE_JOB_ID,
            replace_existing=True,
            **(now if run_cycle_now else {}),
        )
        self.scheduler.add_job(
            self._related_job,
            "interval",
            minutes=settings.related_interval_minutes,
            id=RELATED_JOB_ID,
            replace_existing=True,
            **(now if run_related_now else {}),
        )
        self.scheduler.start()
        logger.info(
            f"Scheduler started: cycle every {settings.cycle_interval_minutes}m, "
            f"related articles every {settings.related_interval_minutes}m"
        )

    def stop(self, wait: bool = False) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
        logger.info("Scheduler stopped")
