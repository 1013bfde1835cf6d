"""Pydantic models for ingestion service."""
from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime, timedelta


class Category(str, Enum):
    """Article categories, in classifier match order."""
    AI_ML = "ai_ml"
    STARTUPS = "startups"
    CYBERSECURITY = "cybersecurity"
    MOBILE = "mobile"
    WEB3 = "web3"
    OTHERS = "others"


class TimeRange(str, Enum):
    """Rolling windows used when sampling recent articles."""
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"

    def threshold(self, now: datetime) -> datetime:
        days = {"today": 1, "week": 7, "month": 30}[self.value]
        return now - timedelta(days=days)


class Source(BaseModel):
    """Configured syndication source."""
    id: Optional[str] = None
    name: str
    url: str
    feed_url: Optional[str] = None
    is_active: bool = True
    fetch_interval: int = 300  # seconds
    last_fetch_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class Article(BaseModel):
    """Ingested article with derived metadata."""
    id: Optional[str] = None
    title: str
    url: str
    content: Optional[str] = None
    snippet: Optional[str] = None
    source_id: Optional[str] = None
    published_at: Optional[datetime] = None
    fetched_at: Optional[datetime] = None
    category: Category = Category.OTHERS
    sentiment: Optional[str] = None
    sentiment_score: Optional[float] = None
    embedding: Optional[str] = None  # JSON-encoded vector
    view_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TrendingRecord(BaseModel):
    """One topic count for a day bucket. Rows are appended, never upserted."""
    id: Optional[str] = None
    date: datetime
    topic: str
    count: int
    category: Optional[Category] = None
    growth_rate: Optional[float] = None
    created_at: Optional[datetime] = None


class RelatedArticle(BaseModel):
    """Directed similarity edge between two articles."""
    id: Optional[str] = None
    article_id: str
    related_article_id: str
    similarity_score: float


class RawFeedItem(BaseModel):
    """Item extracted from a feed document, before persistence."""
    title: str
    link: str
    description: str = ""
    pub_date: Optional[str] = None
    guid: Optional[str] = None


class ParsedFeed(BaseModel):
    """Feed document after extraction."""
    title: str
    items: List[RawFeedItem] = Field(default_factory=list)


class ArticleFilter(BaseModel):
    """Query parameters for article lookups."""
    category: Optional[Category] = None
    time_range: Optional[TimeRange] = None
    search: Optional[str] = None
    title: Optional[str] = None  # exact match
    unscored_only: bool = False
    with_content: bool = False
    limit: int = 20


class SentimentResult(BaseModel):
    """Sentiment returned by the text service."""
    sentiment: str = "neutral"
    score: float = Field(default=0.0, ge=-1.0, le=1.0)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    is_fallback: bool = False
