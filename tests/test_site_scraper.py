"""Tests for site_scraper: extraction strategies, transports and batching."""

import asyncio
import functools
import shutil
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from site_scraper import (
    BLOG_MAX_ARTICLES,
    HN_MAX_ARTICLES,
    NO_DELAY,
    SOURCES,
    SUMMARY_MAX_CHARS,
    Article,
    FetchError,
    Source,
    collect_site_articles,
    extract_articles,
    fetch_html,
    fetch_with_curl,
    make_batches,
    scrape_site,
)

BLOG = Source("Example Blog", "https://blog.example.com/", "blog")
MEDIUM = Source("Medium Writer", "https://medium.com/@writer", "medium")
HN = Source("HN Mirror", "https://hn.example.com/", "hn")

NOW = datetime(2025, 1, 2, tzinfo=timezone.utc)

BLOG_HTML = """
<html><body>
  <article>
    <h2>  First
        post </h2>
    <a href="/posts/first">Read more</a>
    <time datetime="2025-01-01T10:00:00Z">Jan 1, 2025</time>
    <p>Intro paragraph.</p>
  </article>
  <article>
    <h2>No link here</h2>
    <p>orphan</p>
  </article>
  <article>
    <h3>Absolute link</h3>
    <a href="https://other.example.org/x">x</a>
  </article>
</body></html>
"""


def _blog_page(count: int) -> str:
    items = "".join(
        f'<article><h2>Post {i}</h2><a href="/p/{i}">go</a></article>' for i in range(count)
    )
    return f"<html><body>{items}</body></html>"


class RecordingDelay:
    """Delay policy that never sleeps and counts how often it was asked."""

    def __init__(self) -> None:
        self.calls = 0

    def pick(self) -> float:
        self.calls += 1
        return 0.0


class TestExtractBlog:
    def test_extracts_title_link_date_summary(self) -> None:
        result = extract_articles(BLOG_HTML, BLOG)

        assert result[0] == Article(
            source="Example Blog",
            title="First post",
            link="https://blog.example.com/posts/first",
            date="Jan 1, 2025",
            summary="Intro paragraph.",
        )

    def test_skips_container_without_link(self) -> None:
        result = extract_articles(BLOG_HTML, BLOG)

        assert [a.title for a in result] == ["First post", "Absolute link"]

    def test_missing_date_and_summary_fall_back(self) -> None:
        article = extract_articles(BLOG_HTML, BLOG)[1]

        assert article.link == "https://other.example.org/x"
        assert article.date == "Recent"
        assert article.summary == "Absolute link"

    def test_date_falls_back_to_datetime_attribute(self) -> None:
        html = '<article><h2>T</h2><a href="/t">t</a><time datetime="2025-01-01"></time></article>'

        assert extract_articles(html, BLOG)[0].date == "2025-01-01"

    def test_caps_result_count(self) -> None:
        result = extract_articles(_blog_page(15), BLOG)

        assert len(result) == BLOG_MAX_ARTICLES
        assert result[-1].title == "Post 9"

    def test_only_first_containers_are_examined(self) -> None:
        empty = "<article><p>no heading</p></article>" * 2
        html = f"<html><body>{empty}{_blog_page(12)}</body></html>"

        assert len(extract_articles(html, BLOG)) == BLOG_MAX_ARTICLES - 2

    def test_truncates_summary_without_breaking_characters(self) -> None:
        html = f'<article><h2>Long</h2><a href="/l">l</a><p>{"é" * 500}</p></article>'

        summary = extract_articles(html, BLOG)[0].summary

        assert summary == "é" * SUMMARY_MAX_CHARS

    def test_skips_non_web_links(self) -> None:
        html = '<article><h2>Script</h2><a href="javascript:void(0)">x</a></article>'

        assert extract_articles(html, BLOG) == []

    def test_first_anchor_without_href_drops_candidate(self) -> None:
        html = '<article><h2>Anchor first</h2><a name="top"></a><a href="/later">later</a></article>'

        assert extract_articles(html, BLOG) == []

    def test_class_substring_containers(self) -> None:
        html = '<div class="blog-card"><span class="post-title">Card title</span><a href="c">c</a></div>'

        result = extract_articles(html, BLOG)

        assert result[0].title == "Card title"
        assert result[0].link == "https://blog.example.com/c"


class TestExtractMedium:
    def test_resolves_links_against_medium_origin(self) -> None:
        html = """
        <article>
          <h2>Medium post</h2>
          <a href="/@writer/medium-post-123">open</a>
          <p>Subtitle text</p>
        </article>
        """

        result = extract_articles(html, MEDIUM)

        assert result == [Article(
            source="Medium Writer",
            title="Medium post",
            link="https://medium.com/@writer/medium-post-123",
            date="Recent",
            summary="Subtitle text",
        )]

    def test_stream_item_containers(self) -> None:
        html = '<div class="js-streamItem"><h3>Stream</h3><a href="https://medium.com/p/1">1</a></div>'

        result = extract_articles(html, MEDIUM)

        assert result[0].title == "Stream"
        assert result[0].summary == "Stream"


class TestExtractHN:
    def test_title_and_link_from_same_anchor(self) -> None:
        html = """
        <div class="item"><span class="titleline"><a href="https://example.com/a">Story A</a></span></div>
        <div class="item"><span class="titleline"><a href="item?id=2">Story B</a></span></div>
        """

        result = extract_articles(html, HN)

        assert result[0] == Article("HN Mirror", "Story A", "https://example.com/a", "Today", "Story A")
        assert result[1].link == "https://hn.example.com/item?id=2"

    def test_caps_at_twenty(self) -> None:
        rows = "".join(
            f'<tr class="athing"><td><a class="storylink" href="https://e.com/{i}">S{i}</a></td></tr>'
            for i in range(25)
        )

        result = extract_articles(f"<table>{rows}</table>", HN)

        assert len(result) == HN_MAX_ARTICLES


class TestExtractArticles:
    def test_unknown_type_yields_nothing(self) -> None:
        source = Source("Feed", "https://feed.example.com/", "rss")

        assert extract_articles(BLOG_HTML, source) == []

    def test_no_matches_is_not_an_error(self) -> None:
        assert extract_articles("<html><body><p>hi</p></body></html>", BLOG) == []


class TestMakeBatches:
    def test_seven_sources_make_two_batches(self) -> None:
        batches = make_batches(SOURCES[:7], 5)

        assert [len(b) for b in batches] == [5, 2]
        assert batches[0] + batches[1] == tuple(SOURCES[:7])

    def test_rejects_non_positive_size(self) -> None:
        with pytest.raises(ValueError):
            make_batches(SOURCES, 0)


class TestScrapeSite:
    def test_failure_degrades_to_empty(self) -> None:
        fetch = AsyncMock(side_effect=FetchError("timeout"))

        result = asyncio.run(scrape_site(BLOG, fetch, NOW, NO_DELAY))

        assert result == []

    def test_blog_sources_are_recency_filtered(self) -> None:
        html = """
        <article><h2>Old</h2><a href="/old">o</a><time>2020-01-01</time></article>
        <article><h2>Fresh</h2><a href="/fresh">f</a><time>2025-01-01T12:00:00Z</time></article>
        <article><h2>Undated</h2><a href="/undated">u</a></article>
        """
        fetch = AsyncMock(return_value=html)

        result = asyncio.run(scrape_site(BLOG, fetch, NOW, NO_DELAY))

        assert [a.title for a in result] == ["Fresh", "Undated"]

    def test_recency_can_be_disabled(self) -> None:
        html = '<article><h2>Old</h2><a href="/old">o</a><time>2020-01-01</time></article>'
        fetch = AsyncMock(return_value=html)

        result = asyncio.run(scrape_site(BLOG, fetch, NOW, NO_DELAY, recency_window_hours=None))

        assert len(result) == 1


class TestCollectSiteArticles:
    def _sources(self, count: int):
        return [Source(f"Site {i}", f"https://site{i}.example.com/", "blog") for i in range(count)]

    def test_sums_per_source_counts_and_degrades_failures(self) -> None:
        sources = self._sources(7)

        async def fetch(source):
            if source.name == "Site 3":
                raise asyncio.TimeoutError()
            return _blog_page(2).replace("Post", source.name)

        result = asyncio.run(collect_site_articles(
            sources, fetch, NOW, batch_delay=NO_DELAY, site_delay=NO_DELAY
        ))

        assert len(result) == 6 * 2
        assert [a.source for a in result][::2] == [s.name for s in sources if s.name != "Site 3"]

    def test_delays_between_batches_only(self) -> None:
        batch_delay = RecordingDelay()
        site_delay = RecordingDelay()
        fetch = AsyncMock(return_value="")

        asyncio.run(collect_site_articles(
            self._sources(7), fetch, NOW, batch_delay=batch_delay, site_delay=site_delay
        ))

        assert batch_delay.calls == 1
        assert site_delay.calls == 7
        assert fetch.await_count == 7

    def test_batch_finishes_before_next_starts(self) -> None:
        events = []

        async def fetch(source):
            events.append(("start", source.name))
            await asyncio.sleep(0)
            events.append(("end", source.name))
            return ""

        asyncio.run(collect_site_articles(
            self._sources(7), fetch, NOW, batch_delay=NO_DELAY, site_delay=NO_DELAY
        ))

        first_batch = {f"Site {i}" for i in range(5)}
        last_first_batch_end = max(
            i for i, (kind, name) in enumerate(events) if kind == "end" and name in first_batch
        )
        first_second_batch_start = min(
            i for i, (kind, name) in enumerate(events) if kind == "start" and name not in first_batch
        )
        assert last_first_batch_end < first_second_batch_start

        # all of batch one is in flight before any of it completes
        first_end = min(i for i, (kind, _) in enumerate(events) if kind == "end")
        assert {name for kind, name in events[:first_end] if kind == "start"} == first_batch


class TestFetchHtml:
    def _serve(self, handler, source_name="Local"):
        async def run():
            app = web.Application()
            app.router.add_get("/page", handler)
            async with TestServer(app) as server:
                source = Source(source_name, str(server.make_url("/page")), "blog")
                async with aiohttp.ClientSession() as session:
                    return await fetch_html(session, source, timeout=5)
        return asyncio.run(run())

    def test_returns_body_text(self) -> None:
        async def handler(request):
            assert "Mozilla" in request.headers["User-Agent"]
            return web.Response(text="<html>ok</html>", content_type="text/html")

        assert self._serve(handler) == "<html>ok</html>"

    def test_non_2xx_raises_fetch_error(self) -> None:
        async def handler(request):
            return web.Response(status=404, text="missing")

        with pytest.raises(FetchError):
            self._serve(handler)

    @patch("site_scraper.fetch_with_curl", new_callable=AsyncMock)
    def test_curl_sources_use_curl(self, mock_curl) -> None:
        mock_curl.return_value = "<html/>"
        source = Source("Protected", "https://protected.example.com/", "blog", use_curl=True)
        session = MagicMock()

        result = asyncio.run(fetch_html(session, source, timeout=7))

        assert result == "<html/>"
        mock_curl.assert_awaited_once_with("https://protected.example.com/", 7)
        session.get.assert_not_called()


@patch("site_scraper.asyncio.create_subprocess_exec", new_callable=AsyncMock)
class TestFetchWithCurl:
    def _proc(self, returncode, stdout=b"", stderr=b""):
        proc = MagicMock()
        proc.returncode = returncode
        proc.communicate = AsyncMock(return_value=(stdout, stderr))
        return proc

    def test_returns_stdout(self, mock_exec) -> None:
        mock_exec.return_value = self._proc(0, "<p>中文</p>".encode("utf-8"))

        result = asyncio.run(fetch_with_curl("https://x.example.com/", timeout=9))

        assert result == "<p>中文</p>"
        args = mock_exec.call_args.args
        assert args[0] == "curl"
        assert "9" in args
        assert "--fail" in args
        assert args[-1] == "https://x.example.com/"

    def test_non_zero_exit_raises(self, mock_exec) -> None:
        mock_exec.return_value = self._proc(6, stderr=b"Could not resolve host")

        with pytest.raises(FetchError, match="curl exited with 6"):
            asyncio.run(fetch_with_curl("https://nowhere.invalid/"))

    def test_missing_binary_raises(self, mock_exec) -> None:
        mock_exec.side_effect = FileNotFoundError("curl")

        with pytest.raises(FetchError):
            asyncio.run(fetch_with_curl("https://x.example.com/"))

    def test_cancellation_kills_child(self, mock_exec) -> None:
        proc = self._proc(None)

        async def hang():
            await asyncio.Event().wait()

        proc.communicate = hang
        proc.wait = AsyncMock(return_value=-9)
        mock_exec.return_value = proc

        async def run():
            task = asyncio.create_task(fetch_with_curl("https://slow.example.com/"))
            await asyncio.sleep(0.01)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(run())

        proc.kill.assert_called_once_with()
        proc.wait.assert_awaited_once()


@pytest.mark.skipif(shutil.which("curl") is None, reason="curl is not installed")
class TestFetchWithCurlServer:
    def _serve(self, status: int, body: str) -> str:
        async def handler(request):
            return web.Response(status=status, text=body, content_type="text/html")

        async def run():
            app = web.Application()
            app.router.add_get("/page", handler)
            async with TestServer(app) as server:
                return await fetch_with_curl(str(server.make_url("/page")), timeout=5)

        return asyncio.run(run())

    def test_returns_body_on_success(self) -> None:
        assert self._serve(200, "<h1>Hello</h1>") == "<h1>Hello</h1>"

    def test_block_page_raises_fetch_error(self) -> None:
        block_page = '<article><h2>Access denied</h2><a href="/help">help</a></article>'

        with pytest.raises(FetchError, match="curl exited with 22"):
            self._serve(403, block_page)

    def test_blocked_curl_source_degrades_to_empty(self) -> None:
        async def handler(request):
            return web.Response(status=403, text='<article><h2>Access denied</h2><a href="/h">h</a></article>',
                                content_type="text/html")

        async def run():
            app = web.Application()
            app.router.add_get("/page", handler)
            async with TestServer(app) as server:
                source = Source("Blocked", str(server.make_url("/page")), "blog", use_curl=True)
                async with aiohttp.ClientSession() as session:
                    fetch = functools.partial(fetch_html, session, timeout=5)
                    return await scrape_site(source, fetch, NOW, NO_DELAY)

        assert asyncio.run(run()) == []
