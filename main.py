#!/usr/bin/env python3
"""AI Daily - 18 AI blogs and news pages scraped into one static HTML digest.

Entry points:
  python main.py              write output/ai-daily-YYYY-MM-DD.html
  daily(request)              Cloud Functions HTTP handler serving the page
"""

import argparse
import asyncio
import os
import sys
import traceback
from datetime import datetime, timezone, timedelta
from typing import List, Optional, Sequence, Tuple

import functions_framework

from article_filters import dedupe_articles
from report_renderer import generate_html
from site_scraper import SOURCES, Article, Fetcher, Source, collect_site_articles
from translator import GeminiTranslator


# タイムゾーン設定 (China Standard Time)
CST = timezone(timedelta(hours=8))

TOP_PICKS = 10
OUTPUT_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "output")

CACHE_CONTROL = "s-maxage=3600, stale-while-revalidate"


def get_now() -> datetime:
    """現在のCST時刻を取得"""
    return datetime.now(CST)


def log(message: str):
    """タイムスタンプ付きログ出力"""
    now = get_now()
    print(f"[{now.strftime('%Y-%m-%d %H:%M:%S CST')}] {message}")


async def gather_articles(
    sources: Sequence[Source] = SOURCES,
    fetch: Optional[Fetcher] = None,
    now: Optional[datetime] = None,
    **scrape_options
) -> List[Article]:
    """Scrape every source, then drop near-duplicate titles."""
    articles = await collect_site_articles(
        sources, fetch, reference_time=now or get_now(), **scrape_options
    )
    unique = dedupe_articles(articles)
    log(f"Collected {len(articles)} articles, {len(unique)} after deduplication")
    return unique


def build_report(
    articles: Sequence[Article],
    now: Optional[datetime] = None,
    top: int = TOP_PICKS,
    translate: bool = False,
    source_count: int = len(SOURCES)
) -> str:
    """Slice the top picks, optionally translate them, and render the page.

    Only the top picks are sent for translation; they replace their
    untranslated copies at the head of the full list.
    """
    now = now or get_now()
    articles = list(articles)
    top_picks = articles[:top]

    if translate and top_picks:
        try:
            translator = GeminiTranslator()
        except ValueError as e:
            log(f"Translation skipped: {e}")
        else:
            log(f"Translating {len(top_picks)} top picks...")
            top_picks = translator.translate_articles(top_picks)
            articles = top_picks + articles[len(top_picks):]

    return generate_html(articles, top_picks, generated_at=now, source_count=source_count)


def run_daily_report(
    output_dir: str = OUTPUT_DIR,
    top: int = TOP_PICKS,
    translate: bool = False,
    sources: Sequence[Source] = SOURCES,
    fetch: Optional[Fetcher] = None,
    **scrape_options
) -> Tuple[bool, str]:
    """Scrape, filter and write today's report file."""
    log("=== AI Daily Crawler ===")

    try:
        os.makedirs(output_dir, exist_ok=True)

        now = get_now()
        articles = asyncio.run(gather_articles(sources, fetch, now, **scrape_options))

        if not articles:
            log("No articles found. Nothing written.")
            return True, "No articles found"

        html = build_report(articles, now=now, top=top, translate=translate,
                            source_count=len(sources))

        output_path = os.path.join(output_dir, f"ai-daily-{now.strftime('%Y-%m-%d')}.html")
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(html)

        log(f"Report generated: {output_path}")
        log(f"Total: {len(articles)} articles, top picks: {min(top, len(articles))}")
        return True, f"Report generated: {output_path}"

    except Exception as e:
        error_msg = f"Error: {type(e).__name__}: {e}"
        log(f"CRITICAL ERROR: {error_msg}")
        traceback.print_exc()
        return False, error_msg


# Cloud Functions エントリーポイント (HTTP トリガー)
@functions_framework.http
def daily(request):
    """Cloud Functions HTTP entry point

    Query Parameters:
        translate: '1' to translate titles and summaries (needs GEMINI_API_KEY)
    """
    log("Function triggered via HTTP")
    translate = request.args.get("translate") == "1"

    try:
        now = get_now()
        articles = asyncio.run(gather_articles(now=now))
        html = build_report(articles, now=now, translate=translate)
    except Exception as e:
        log(f"CRITICAL ERROR: {type(e).__name__}: {e}")
        traceback.print_exc()
        return {"error": str(e)}, 500

    return html, 200, {
        "Content-Type": "text/html; charset=utf-8",
        "Cache-Control": CACHE_CONTROL,
    }


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate the AI Daily HTML digest.")
    parser.add_argument("-o", "--output-dir", dest="output_dir", default=OUTPUT_DIR,
                        help="directory for ai-daily-YYYY-MM-DD.html (default: %(default)s)")
    parser.add_argument("-n", "--top", dest="top", type=int, default=TOP_PICKS,
                        help="number of top picks (default: %(default)s)")
    parser.add_argument("--translate", dest="translate", action="store_true",
                        help="translate titles and summaries with Gemini (needs GEMINI_API_KEY)")
    return parser.parse_args(argv)


# ローカル実行用
if __name__ == "__main__":
    args = parse_args()
    log("Running locally...")

    success, message = run_daily_report(args.output_dir, top=args.top, translate=args.translate)

    print(f"\nResult: {'Success' if success else 'Failed'}")
    print(f"Message: {message}")
    sys.exit(0 if success else 1)
