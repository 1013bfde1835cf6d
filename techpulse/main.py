"""Main entrypoint for ingestion service."""
import asyncio
import argparse
import logging
import os
import sys
import time
from techpulse.config import settings
from techpulse.scheduler import PipelineScheduler

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}',
    datefmt="%Y-%m-%dT%H:%M:%S",
)

logger = logging.getLogger(__name__)

MODES = ["scheduler", "cycle", "ingestion", "enrichment", "trending", "related"]


async def run_once(pipeline: PipelineScheduler, mode: str) -> dict:
    """Run a single stage or a full cycle."""
    if mode == "cycle":
        return await pipeline.run_cycle()
    if mode == "ingestion":
        return await pipeline.ingestion.run()
    if mode == "enrichment":
        return await pipeline.enrichment.run()
    if mode == "trending":
        return await pipeline.trending.run()
    if mode == "related":
        return await pipeline.run_related()
    raise ValueError(f"Unknown worker mode: {mode}")


def run_scheduler(pipeline: PipelineScheduler) -> None:
    """First cycle in the foreground, then interval jobs until interrupted."""
    # A failure here (sources cannot be seeded or read) is fatal
    asyncio.run(pipeline.run_cycle())

    # the linker first runs one interval after startup
    pipeline.start(run_cycle_now=False, run_related_now=False)
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Scheduler interrupted by user")
    finally:
        pipeline.stop()


def main():
    """Main entrypoint."""
    parser = argparse.ArgumentParser(description="TechPulse Ingestion Service")
    parser.add_argument(
        "--mode",
        type=str,
        choices=MODES,
        default=None,  # Will use env var or settings default
        help="Worker mode to run",
    )

    args = parser.parse_args()

    # Determine mode: CLI arg > env var > settings default
    mode = args.mode or os.getenv("WORKER_MODE") or settings.worker_mode

    if mode not in MODES:
        logger.error(f"Invalid worker mode: {mode}. Must be one of: {', '.join(MODES)}")
        sys.exit(1)

    # Validate configuration
    if not settings.supabase_url or not settings.supabase_service_key:
        logger.error("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set")
        sys.exit(1)

    if not settings.llm_service_url:
        logger.warning("LLM_SERVICE_URL not set; sentiment and embeddings are disabled")

    logger.info(f"Starting worker in {mode} mode")

    try:
        pipeline = PipelineScheduler()
        if mode == "scheduler":
            run_scheduler(pipeline)
        else:
            result = asyncio.run(run_once(pipeline, mode))
            logger.info(f"Worker completed successfully: {result}")
    except KeyboardInterrupt:
        logger.info("Worker interrupted by user")
    except Exception as e:
        logger.error(f"Worker failed: {e}", exc_info=True)
        sys.exit(1)

    sys.exit(0)


if __name__ == "__main__":
    main()
