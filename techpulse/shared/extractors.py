"""Text heuristics: categorization, snippets, keywords and similarity."""
import math
import re
from typing import Dict, List, Sequence, Tuple
from techpulse.schemas.models import Category
from techpulse.shared.pipeline import clean_html


# Match order matters: the first category with a hit wins.
CATEGORY_KEYWORDS: List[Tuple[Category, Tuple[str, ...]]] = [
    (Category.AI_ML, (
        "ai", "artificial intelligence", "machine learning", "ml", "gpt", "chatgpt", "neural", "openai",
    )),
    (Category.STARTUPS, (
        "startup", "funding", "venture", "investment", "y combinator",
    )),
    (Category.CYBERSECURITY, (
        "security", "cyber", "hack", "vulnerability", "breach", "malware",
    )),
    (Category.MOBILE, (
        "mobile", "iphone", "android", "app", "smartphone",
    )),
    (Category.WEB3, (
        "web3", "blockchain", "crypto", "bitcoin", "ethereum", "nft",
    )),
]

TECH_KEYWORDS = [
    "ai", "artificial intelligence", "machine learning", "ml", "deep learning",
    "openai", "gpt", "chatgpt", "claude", "llm", "neural network",
    "blockchain", "crypto", "bitcoin", "ethereum", "web3", "nft",
    "startup", "funding", "venture capital", "ipo", "acquisition",
    "cybersecurity", "security", "hack", "breach", "vulnerability",
    "mobile", "iphone", "android", "app", "ios",
    "cloud", "aws", "azure", "google cloud", "saas",
    "apple", "google", "microsoft", "meta", "tesla", "nvidia",
    "quantum", "robotics", "automation", "iot", "ar", "vr",
    "privacy", "data", "algorithm", "software", "hardware",
    "api", "opensource", "developer", "programming",
]

SNIPPET_MAX_CHARS = 200


def _keyword_pattern(keywords: Sequence[str]) -> re.Pattern:
    # Keywords match at a word start; short ones ("ai", "app") must be whole words
    parts = []
    for keyword in keywords:
        escaped = re.escape(keyword)
        parts.append(rf"\b{escaped}s?\b" if len(keyword) <= 3 else rf"\b{escaped}")
    return re.compile("|".join(parts), re.IGNORECASE)


CATEGORY_PATTERNS = [(category, _keyword_pattern(keywords)) for category, keywords in CATEGORY_KEYWORDS]


def categorize_article(title: str, body: str) -> Category:
    """Map title and body text to a category. Always returns one."""
    text = f"{title or ''} {body or ''}"
    for category, pattern in CATEGORY_PATTERNS:
        if pattern.search(text):
            return category
    return Category.OTHERS


def create_snippet(body: str, max_chars: int = SNIPPET_MAX_CHARS) -> str:
    """Cleansed body text, truncated with an ellipsis when too long."""
    text = clean_html(body)
    if len(text) > max_chars:
        return text[:max_chars].strip() + "..."
    return text


class KeywordExtractor:
    """Extract trending keyword candidates from article text."""

    def __init__(self, vocabulary: Sequence[str] = TECH_KEYWORDS):
        """Initialize keyword extractor."""
        self.vocabulary = list(vocabulary)
        # Two or more capitalized words in a row: "Google Cloud", "Sam Altman"
        self.phrase_pattern = re.compile(r"\b[A-Z][a-z]+(?:\s+[A-Z][a-z]+)+\b")
        self.leading_stopwords = {
            "a", "an", "the", "and", "or", "but", "in", "on", "at", "for", "with",
            "how", "why", "what", "when", "where", "who", "this", "that", "new",
        }

    def extract(self, text: str) -> List[str]:
        """Vocabulary hits plus proper-noun phrases, lowercased and deduplicated."""
        keywords = []
        text_lower = text.lower()

        for keyword in self.vocabulary:
            if keyword in text_lower:
                keywords.append(keyword)

        keywords.extend(self._extract_phrases(text))

        return list(dict.fromkeys(keywords))

    def _extract_phrases(self, text: str) -> List[str]:
        phrases = []
        for match in self.phrase_pattern.findall(text):
            words = match.split()
            while words and words[0].lower() in self.leading_stopwords:
                words = words[1:]
            # Long runs are usually headline title-case, not names
            if len(words) < 2 or len(words) > 4:
                continue
            phrases.append(" ".join(words).lower())
        return phrases


def extract_keywords(text: str) -> List[str]:
    return KeywordExtractor().extract(text)


def calculate_growth_rate(count: int) -> float:
    """Growth estimate from the current count alone, within [0, 100]."""
    return float(max(0, min(100, (count - 1) * 10)))


def title_similarity(title_a: str, title_b: str) -> float:
    """Jaccard overlap of the distinct lowercase words of two titles."""
    words_a = set((title_a or "").lower().split())
    words_b = set((title_b or "").lower().split())
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    if not vec_a or not vec_b or len(vec_a) != len(vec_b):
        return 0.0
    dot = sum(a * b for a, b in zip(vec_a, vec_b))
    norm = math.sqrt(sum(a * a for a in vec_a)) * math.sqrt(sum(b * b for b in vec_b))
    if norm == 0:
        return 0.0
    return dot / norm


def count_keywords(keyword_sets: Sequence[Tuple[str, List[str]]]) -> Tuple[Dict[str, int], Dict[str, Dict[str, int]]]:
    """Global and per-group mention counts from (group, keywords) pairs."""
    global_counts: Dict[str, int] = {}
    group_counts: Dict[str, Dict[str, int]] = {}
    for group, keywords in keyword_sets:
        bucket = group_counts.setdefault(group, {})
        for keyword in keywords:
            global_counts[keyword] = global_counts.get(keyword, 0) + 1
            bucket[keyword] = bucket.get(keyword, 0) + 1
    return global_counts, group_counts
