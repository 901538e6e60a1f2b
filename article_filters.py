#!/usr/bin/env python3
"""Article filters - recency window and near-duplicate title removal."""

import re
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence, TypeVar


RECENCY_WINDOW_HOURS = 24
SIMILARITY_THRESHOLD = 0.7

# Tried in order after ISO-8601
DATE_FORMATS = (
    "%B %d, %Y",   # January 2, 2025
    "%b %d, %Y",   # Jan 2, 2025
    "%d %B %Y",    # 2 January 2025
    "%d %b %Y",    # 2 Jan 2025
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%Y.%m.%d",
)

T = TypeVar("T")


# =============================================================================
# Recency
# =============================================================================

def parse_date(text: str) -> Optional[datetime]:
    """Parse a date shown on a listing page.

    Returns None when no known format matches.
    """
    text = " ".join((text or "").split())
    if not text:
        return None

    iso_text = text[:-1] + "+00:00" if text[-1] in "Zz" else text
    try:
        return datetime.fromisoformat(iso_text)
    except ValueError:
        pass

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def is_recent(
    date_text: str,
    reference_time: datetime,
    window_hours: int = RECENCY_WINDOW_HOURS
) -> bool:
    """Check whether date_text falls inside the window ending at reference_time.

    Unparsable dates count as recent so that nothing is dropped on a guess.
    Naive dates are read in the reference time's timezone (UTC if it has none).
    """
    published = parse_date(date_text)
    if published is None:
        return True

    if reference_time.tzinfo is None:
        reference_time = reference_time.replace(tzinfo=timezone.utc)
    if published.tzinfo is None:
        published = published.replace(tzinfo=reference_time.tzinfo)

    return published > reference_time - timedelta(hours=window_hours)


def filter_recent(
    articles: Sequence[T],
    reference_time: datetime,
    window_hours: int = RECENCY_WINDOW_HOURS
) -> List[T]:
    """Keep articles whose date is inside the recency window."""
    return [a for a in articles if is_recent(a.date, reference_time, window_hours)]


# =============================================================================
# Deduplication
# =============================================================================

def normalize_title(title: str) -> str:
    """Lowercase, drop punctuation, trim."""
    return re.sub(r"[^\w\s]", "", title.lower()).strip()


def _word_overlap(words1: set, words2: set) -> float:
    longest = max(len(words1), len(words2))
    if longest == 0:
        return 0.0
    return len(words1 & words2) / longest


def title_similarity(title1: str, title2: str) -> float:
    """Share of words two titles have in common, relative to the longer one."""
    return _word_overlap(
        set(normalize_title(title1).split()),
        set(normalize_title(title2).split()),
    )


def dedupe_articles(
    articles: Sequence[T],
    threshold: float = SIMILARITY_THRESHOLD
) -> List[T]:
    """Drop articles whose title is too close to an earlier accepted title.

    First seen wins and input order is preserved. Every candidate is compared
    against every accepted title, so cost grows quadratically with the list;
    fine for the few hundred items of a daily run.
    """
    seen_titles = set()
    seen_words: List[set] = []
    unique = []

    for article in articles:
        normalized = normalize_title(article.title)
        words = set(normalized.split())

        if normalized in seen_titles:
            continue
        if any(_word_overlap(words, prior) > threshold for prior in seen_words):
            continue

        seen_titles.add(normalized)
        seen_words.append(words)
        unique.append(article)

    return unique
