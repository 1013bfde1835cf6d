"""Shared pipeline utilities: feed transport and feed extraction."""
import io
import logging
import re
import feedparser
import httpx
from bs4 import BeautifulSoup
from html import unescape
from typing import List, Optional
from techpulse.config import settings
from techpulse.schemas.models import ParsedFeed, RawFeedItem

logger = logging.getLogger(__name__)

UNKNOWN_FEED_TITLE = "Unknown Feed"

_WHITESPACE = re.compile(r"\s+")
_LEFTOVER_TAG = re.compile(r"<[^>]*>")


class FeedFetchError(Exception):
    """Feed unreachable or answered with a non-success status."""


def clean_html(text: Optional[str]) -> str:
    """Strip tags, decode entities and collapse whitespace."""
    if not text:
        return ""
    if "<" in text:
        text = BeautifulSoup(text, "html.parser").get_text()
    text = _LEFTOVER_TAG.sub("", unescape(text))
    return _WHITESPACE.sub(" ", text).strip()


class RSSParser:
    """Parser for RSS and Atom feed documents."""

    def parse_feed(self, document: str) -> ParsedFeed:
        """Extract the feed title and its items. Never raises."""
        try:
            feed = feedparser.parse(io.BytesIO((document or "").encode("utf-8")))
        except Exception as e:
            logger.warning(f"Feed document could not be parsed: {e}")
            return ParsedFeed(title=UNKNOWN_FEED_TITLE)

        if feed.bozo:
            logger.debug(f"Malformed feed document: {feed.get('bozo_exception')}")

        title = clean_html(feed.feed.get("title")) or UNKNOWN_FEED_TITLE
        return ParsedFeed(title=title, items=self._parse_entries(feed.entries))

    def _parse_entries(self, entries: List) -> List[RawFeedItem]:
        """Parse feed entries, dropping those without a title or link."""
        parsed_entries = []

        for entry in entries:
            try:
                item = self._parse_entry(entry)
            except Exception as e:
                logger.debug(f"Skipping unparseable feed entry: {e}")
                continue
            if item is not None:
                parsed_entries.append(item)

        return parsed_entries

    def _parse_entry(self, entry) -> Optional[RawFeedItem]:
        title = clean_html(entry.get("title"))
        link = (entry.get("link") or "").strip()
        guid = entry.get("id") or None

        # a permalink guid is promoted to `link` by feedparser; it is not a link element
        if entry.get("guidislink") and link == guid:
            link = ""

        if not title or not link:
            return None

        return RawFeedItem(
            title=title,
            link=link,
            description=clean_html(entry.get("description") or entry.get("summary")),
            pub_date=entry.get("published") or entry.get("updated") or None,
            guid=guid,
        )


class FeedFetcher:
    """Retrieves feed documents over HTTP and hands them to the parser."""

    def __init__(self, parser: Optional[RSSParser] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        """Initialize feed fetcher."""
        self.parser = parser or RSSParser()
        self.timeout = settings.rss_request_timeout
        self.user_agent = settings.rss_user_agent
        self.transport = transport

    async def fetch(self, url: str) -> str:
        """Download a feed document. Raises FeedFetchError on any transport failure."""
        async with httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            transport=self.transport,
        ) as client:
            try:
                response = await client.get(url, headers={"User-Agent": self.user_agent})
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise FeedFetchError(
                    f"Failed to fetch feed {url}: HTTP {e.response.status_code}"
                ) from e
            except httpx.HTTPError as e:
                raise FeedFetchError(f"Failed to fetch feed {url}: {e}") from e
            return response.text

    async def fetch_feed(self, url: str) -> ParsedFeed:
        """Fetch and extract a feed."""
        document = await self.fetch(url)
        return self.parser.parse_feed(document)
