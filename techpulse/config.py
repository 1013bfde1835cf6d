"""Configuration settings for ingestion service."""
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings."""

    # Supabase (validated in main)
    supabase_url: str = ""
    supabase_service_key: str = ""

    # LLM Service
    llm_service_url: Optional[str] = None
    llm_service_timeout: int = 60
    sentiment_max_chars: int = 2000
    embedding_max_chars: int = 8000
    embedding_max_retries: int = 3
    embedding_retry_delay: float = 1.0

    # Worker Configuration
    worker_mode: str = "scheduler"  # scheduler, cycle, ingestion, enrichment, trending, related
    log_level: str = "info"

    # RSS Ingestion Settings
    rss_request_timeout: int = 30
    rss_user_agent: str = "Mozilla/5.0 (compatible; TechPulseBot/1.0)"
    snippet_max_chars: int = 200

    # Schedule
    cycle_interval_minutes: int = 5
    related_interval_minutes: int = 60
    scheduler_misfire_grace_seconds: int = 30

    # Sample sizes per run
    enrichment_sample_size: int = 50
    trending_sample_size: int = 100
    related_sample_size: int = 100

    # Trending thresholds
    trending_global_top: int = 20
    trending_global_min_count: int = 3
    trending_category_top: int = 10
    trending_category_min_count: int = 2

    # Related articles
    related_max_candidates: int = 5
    related_min_similarity: float = 0.3
    related_use_embeddings: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
