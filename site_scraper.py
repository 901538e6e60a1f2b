#!/usr/bin/env python3
"""Site Scraper - Fetch article listings from 18 curated AI blogs and news pages.

Each source is fetched once per run, parsed with a CSS-selector strategy
chosen by its type tag (blog / medium / hn), and degraded to an empty list
on any failure so that one broken site never aborts the digest.
"""

import asyncio
import contextlib
import functools
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urljoin, urlparse

import aiohttp
from bs4 import BeautifulSoup

from article_filters import RECENCY_WINDOW_HOURS, filter_recent


# --- Data model ---

@dataclass(frozen=True)
class Source:
    """One site to poll."""
    name: str
    url: str
    type: str
    use_curl: bool = False


@dataclass(frozen=True)
class Article:
    source: str
    title: str
    link: str
    date: str
    summary: str


# --- Site definitions ---

SOURCES: Tuple[Source, ...] = (
    Source("OpenAI News", "https://openai.com/news/", "blog", use_curl=True),
    Source("Andrej Karpathy", "https://karpathy.ai", "blog"),
    Source("Sam Altman", "https://blog.samaltman.com/", "blog"),
    Source("Greg Brockman", "https://blog.gregbrockman.com/", "blog"),
    Source("François Chollet", "https://fchollet.com/", "blog"),
    Source("Lilian Weng", "https://lilianweng.github.io/", "blog"),
    Source("Christopher Olah", "https://colah.github.io/", "blog"),
    Source("Wojciech Zaremba", "https://medium.com/@woj.zaremba", "medium", use_curl=True),
    Source("Mustafa Suleyman", "https://mustafa-suleyman.ai/", "blog"),
    Source("Google DeepMind", "https://deepmind.google/blog/", "blog"),
    Source("Dario Amodei", "https://www.darioamodei.com/", "blog"),
    Source("Karina Nguyen", "https://karinanguyen.com/", "blog"),
    Source("Peter Steinberger", "https://steipete.me/", "blog"),
    Source("Simon Willison", "https://simonwillison.net/", "blog"),
    Source("AI Hub Today", "https://ai.hubtoday.app/", "blog"),
    Source("Anthropic Research", "https://www.anthropic.com/research", "blog"),
    Source("Tencent Hunyuan", "https://hy.tencent.com/research", "blog"),
    Source("Hacker News (中文)", "https://hn.buzzing.cc/", "hn"),
)

MEDIUM_ORIGIN = "https://medium.com"

# Aggregator pages are already sorted newest first
RECENCY_FILTERED_TYPES = frozenset({"blog", "medium"})

BLOG_MAX_ARTICLES = 10
MEDIUM_MAX_ARTICLES = 10
HN_MAX_ARTICLES = 20
SUMMARY_MAX_CHARS = 200

BATCH_SIZE = 5
REQUEST_TIMEOUT = 20

USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"

# Headers to mimic a browser request
HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "zh-CN,zh;q=0.9,en;q=0.8",
    "Accept-Encoding": "gzip, deflate",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Cache-Control": "max-age=0",
}


@dataclass(frozen=True)
class DelayPolicy:
    """Uniformly random pause, in seconds."""
    min_seconds: float
    max_seconds: float

    def pick(self) -> float:
        return random.uniform(self.min_seconds, self.max_seconds)


SITE_DELAY = DelayPolicy(0.5, 1.5)
BATCH_DELAY = DelayPolicy(2.0, 4.0)
NO_DELAY = DelayPolicy(0.0, 0.0)

Fetcher = Callable[[Source], Awaitable[str]]


class FetchError(Exception):
    """Raised when a page could not be retrieved (DNS, timeout, non-2xx, curl)."""


# =============================================================================
# Transports
# =============================================================================

async def fetch_with_curl(url: str, timeout: int = REQUEST_TIMEOUT) -> str:
    """Fetch a page through the curl binary (for sites that block plain clients).

    HTTP error statuses make curl exit non-zero (--fail), so block pages
    raise FetchError like any other transport failure.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            "curl", "-s", "-S", "-L", "--fail",
            "--max-time", str(timeout),
            "-A", USER_AGENT,
            url,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise FetchError(f"curl could not be started: {e}") from e

    try:
        stdout, stderr = await proc.communicate()
    except asyncio.CancelledError:
        proc.kill()
        await proc.wait()
        raise

    if proc.returncode != 0:
        detail = stderr.decode("utf-8", errors="replace").strip()
        raise FetchError(f"curl exited with {proc.returncode} for {url} {detail}".rstrip())
    return stdout.decode("utf-8", errors="replace")


async def fetch_html(
    session: aiohttp.ClientSession,
    source: Source,
    timeout: int = REQUEST_TIMEOUT
) -> str:
    """Return raw HTML for a source, using curl when the source asks for it."""
    if source.use_curl:
        return await fetch_with_curl(source.url, timeout)

    try:
        async with session.get(
            source.url,
            headers=HEADERS,
            timeout=aiohttp.ClientTimeout(total=timeout),
        ) as resp:
            resp.raise_for_status()
            return await resp.text(errors="replace")
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise FetchError(f"{source.url}: {type(e).__name__}: {e}") from e


# =============================================================================
# Extraction strategies
# =============================================================================

def _clean_text(text: str) -> str:
    """Collapse runs of whitespace and trim."""
    return " ".join(text.split())


def _first_text(elem, selector: str) -> str:
    match = elem.select_one(selector)
    if match is None:
        return ""
    return _clean_text(match.get_text())


def _resolve_link(href: Optional[str], base_url: str) -> str:
    """Resolve href against base_url. Returns '' for non-web links."""
    href = (href or "").strip()
    if not href:
        return ""
    link = urljoin(base_url, href)
    if urlparse(link).scheme not in ("http", "https"):
        return ""
    return link


def _truncate(text: str, limit: int = SUMMARY_MAX_CHARS) -> str:
    return text[:limit].rstrip()


def _blog_date(elem) -> str:
    match = elem.select_one('time, .date, [class*="date"]')
    if match is None:
        return ""
    return _clean_text(match.get_text()) or (match.get("datetime") or "").strip()


def extract_blog(soup: BeautifulSoup, source: Source) -> List[Article]:
    """Generic blog listing: article/post/card blocks."""
    articles = []
    containers = soup.select(
        'article, .post, .entry, .blog-post, [class*="post"], [class*="card"]'
    )
    for elem in containers[:BLOG_MAX_ARTICLES]:
        title = _first_text(elem, 'h1, h2, h3, .title, [class*="title"]')
        anchor = elem.select_one("a")
        link = _resolve_link(anchor.get("href") if anchor else None, source.url)
        if not title or not link:
            continue

        summary = _truncate(_first_text(elem, 'p, .excerpt, .summary, [class*="description"]'))
        articles.append(Article(
            source=source.name,
            title=title,
            link=link,
            date=_blog_date(elem) or "Recent",
            summary=summary or title,
        ))

    return articles


def extract_medium(soup: BeautifulSoup, source: Source) -> List[Article]:
    """Medium profile pages. Links are relative to the platform origin."""
    articles = []
    containers = soup.select('article, div[class*="streamItem"]')
    for elem in containers[:MEDIUM_MAX_ARTICLES]:
        title = _first_text(elem, 'h2, h3, [data-testid*="title"]')
        anchor = elem.select_one('a[href*="/"]')
        link = _resolve_link(anchor.get("href") if anchor else None, MEDIUM_ORIGIN)
        if not title or not link:
            continue

        summary = _truncate(_first_text(elem, 'p, [class*="subtitle"]'))
        articles.append(Article(
            source=source.name,
            title=title,
            link=link,
            date="Recent",
            summary=summary or title,
        ))

    return articles


def extract_hn(soup: BeautifulSoup, source: Source) -> List[Article]:
    """Hacker News style aggregator: one title link per item row."""
    articles = []
    for elem in soup.select(".item, .athing")[:HN_MAX_ARTICLES]:
        anchor = elem.select_one(".titleline a, .storylink")
        if anchor is None:
            continue

        title = _clean_text(anchor.get_text())
        link = _resolve_link(anchor.get("href"), source.url)
        if not title or not link:
            continue

        articles.append(Article(
            source=source.name,
            title=title,
            link=link,
            date="Today",
            summary=title,
        ))

    return articles


# =============================================================================
# Extraction strategy registry
# =============================================================================

EXTRACTORS: Dict[str, Callable[[BeautifulSoup, Source], List[Article]]] = {
    "blog": extract_blog,
    "medium": extract_medium,
    "hn": extract_hn,
}


def extract_articles(html: str, source: Source) -> List[Article]:
    """Parse html and run the strategy registered for source.type."""
    extractor = EXTRACTORS.get(source.type)
    if extractor is None:
        print(f"  [WARN] No extractor for source type '{source.type}' ({source.name})")
        return []
    return extractor(BeautifulSoup(html, "html.parser"), source)


# =============================================================================
# Orchestration
# =============================================================================

async def scrape_site(
    source: Source,
    fetch: Fetcher,
    reference_time: datetime,
    site_delay: DelayPolicy = SITE_DELAY,
    recency_window_hours: Optional[int] = RECENCY_WINDOW_HOURS,
) -> List[Article]:
    """Fetch and extract one source. Any failure yields an empty list."""
    try:
        print(f"  Fetching {source.name}...")
        await asyncio.sleep(site_delay.pick())

        html = await fetch(source)
        articles = extract_articles(html, source)

        if recency_window_hours is not None and source.type in RECENCY_FILTERED_TYPES:
            articles = filter_recent(articles, reference_time, recency_window_hours)

        print(f"  {source.name}: {len(articles)} articles")
        return articles
    except Exception as e:
        print(f"  [WARN] {source.name} failed: {e}")
        return []


def make_batches(sources: Sequence[Source], batch_size: int = BATCH_SIZE) -> List[Tuple[Source, ...]]:
    """Split sources into consecutive groups of batch_size."""
    if batch_size < 1:
        raise ValueError("batch_size must be positive")
    return [tuple(sources[i:i + batch_size]) for i in range(0, len(sources), batch_size)]


async def collect_site_articles(
    sources: Sequence[Source] = SOURCES,
    fetch: Optional[Fetcher] = None,
    reference_time: Optional[datetime] = None,
    batch_size: int = BATCH_SIZE,
    batch_delay: DelayPolicy = BATCH_DELAY,
    site_delay: DelayPolicy = SITE_DELAY,
    recency_window_hours: Optional[int] = RECENCY_WINDOW_HOURS,
    timeout: int = REQUEST_TIMEOUT,
) -> List[Article]:
    """Collect articles from every source, one batch at a time.

    Sources inside a batch are scraped concurrently; the next batch starts
    only after the whole batch has finished and a random pause has elapsed.

    Args:
        sources: Source table to poll
        fetch: Coroutine returning raw HTML for a source. Defaults to
            fetch_html over a shared aiohttp session.
        reference_time: "Now" for the recency filter (default: current UTC time)
        batch_size: Number of sources fetched together
        batch_delay: Pause between batches
        site_delay: Pause before each individual request
        recency_window_hours: Window for blog/medium sources, None to disable
        timeout: Per-request timeout in seconds for the default fetcher

    Returns:
        Articles in source-list order
    """
    if reference_time is None:
        reference_time = datetime.now(timezone.utc)

    all_articles: List[Article] = []
    batches = make_batches(sources, batch_size)

    async with contextlib.AsyncExitStack() as stack:
        if fetch is None:
            session = await stack.enter_async_context(aiohttp.ClientSession())
            fetch = functools.partial(fetch_html, session, timeout=timeout)

        for index, batch in enumerate(batches):
            print(f"Batch {index + 1}/{len(batches)}: {', '.join(s.name for s in batch)}")
            results = await asyncio.gather(*(
                scrape_site(source, fetch, reference_time, site_delay, recency_window_hours)
                for source in batch
            ))
            for site_articles in results:
                all_articles.extend(site_articles)

            if index < len(batches) - 1:
                await asyncio.sleep(batch_delay.pick())

    print(f"Total articles collected: {len(all_articles)}")
    return all_articles


# =============================================================================
# CLI test
# =============================================================================

if __name__ == "__main__":
    print("=" * 60)
    print("Site Scraper Test")
    print("=" * 60)

    articles = asyncio.run(collect_site_articles())

    print(f"\n{'=' * 60}")
    print(f"Results: {len(articles)} articles")
    print(f"{'=' * 60}")

    for i, a in enumerate(articles, 1):
        print(f"\n{i}. [{a.source}] {a.title}")
        print(f"   Date: {a.date}")
        print(f"   URL: {a.link[:80]}")
