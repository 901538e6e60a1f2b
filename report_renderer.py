#!/usr/bin/env python3
"""Report Renderer - Build the self-contained AI Daily HTML page."""

import html
from datetime import datetime
from typing import Sequence

from site_scraper import Article


STYLE = """
    * { margin: 0; padding: 0; box-sizing: border-box; }
    body {
      font-family: -apple-system, BlinkMacSystemFont, "SF Pro Text", "Segoe UI", Roboto, sans-serif;
      background: #000;
      color: #f5f5f7;
      line-height: 1.6;
      padding: 20px;
      max-width: 800px;
      margin: 0 auto;
    }
    header {
      text-align: center;
      padding: 40px 20px;
      background: rgba(255, 255, 255, 0.05);
      border-radius: 20px;
      margin-bottom: 30px;
      border: 1px solid rgba(255, 255, 255, 0.1);
    }
    h1 {
      font-size: 2.5em;
      font-weight: 700;
      margin-bottom: 10px;
      background: linear-gradient(135deg, #667eea 0%, #764ba2 100%);
      -webkit-background-clip: text;
      -webkit-text-fill-color: transparent;
    }
    .subtitle { color: #86868b; font-size: 1.1em; }
    .stats { display: flex; justify-content: center; gap: 30px; margin-top: 20px; flex-wrap: wrap; }
    .stat { text-align: center; }
    .stat-number { font-size: 2em; font-weight: 700; color: #667eea; }
    .stat-label { color: #86868b; font-size: 0.9em; }
    section { margin-bottom: 40px; }
    h2 {
      font-size: 1.8em;
      margin-bottom: 20px;
      padding-bottom: 10px;
      border-bottom: 2px solid rgba(255, 255, 255, 0.1);
    }
    .article {
      background: rgba(255, 255, 255, 0.05);
      border-radius: 15px;
      padding: 20px;
      margin-bottom: 20px;
      border: 1px solid rgba(255, 255, 255, 0.1);
    }
    .article-header {
      display: flex;
      justify-content: space-between;
      align-items: flex-start;
      margin-bottom: 10px;
      gap: 15px;
    }
    .article-source {
      background: linear-gradient(135deg, #667eea 0%, #764ba2 100%);
      color: #fff;
      padding: 4px 12px;
      border-radius: 20px;
      font-size: 0.85em;
      font-weight: 600;
      white-space: nowrap;
    }
    .article-date { color: #86868b; font-size: 0.9em; }
    .article-title { font-size: 1.3em; font-weight: 600; margin-bottom: 10px; }
    .article-title a { color: inherit; text-decoration: none; }
    .article-title a:hover { color: #667eea; }
    .article-summary { color: #a1a1a6; font-size: 0.95em; line-height: 1.5; }
    .top-pick { border: 2px solid #667eea; }
    .badge {
      display: inline-block;
      background: #667eea;
      color: #fff;
      padding: 2px 8px;
      border-radius: 10px;
      font-size: 0.75em;
      font-weight: 700;
      margin-left: 10px;
    }
    footer { text-align: center; padding: 30px; color: #86868b; font-size: 0.9em; }
    @media (max-width: 600px) {
      body { padding: 15px; }
      h1 { font-size: 2em; }
      .article-header { flex-direction: column; gap: 8px; }
    }
"""


def _esc(text: str) -> str:
    return html.escape(str(text or ""), quote=True)


def render_article(article: Article, top_pick: bool = False) -> str:
    """One article card. Every field is escaped."""
    css_class = "article top-pick" if top_pick else "article"
    badge = '\n          <span class="badge">TOP</span>' if top_pick else ""
    return f"""
      <div class="{css_class}">
        <div class="article-header">
          <span class="article-source">{_esc(article.source)}</span>
          <span class="article-date">{_esc(article.date)}</span>
        </div>
        <h3 class="article-title">
          <a href="{_esc(article.link)}" target="_blank" rel="noopener">{_esc(article.title)}</a>{badge}
        </h3>
        <p class="article-summary">{_esc(article.summary)}</p>
      </div>"""


def generate_html(
    articles: Sequence[Article],
    top_picks: Sequence[Article],
    generated_at: datetime,
    source_count: int
) -> str:
    """Render the digest page.

    Args:
        articles: Every article kept after filtering
        top_picks: Leading slice of articles shown first
        generated_at: Run timestamp shown in the header
        source_count: Number of sources polled

    Returns:
        Complete HTML document
    """
    date_str = generated_at.strftime("%Y-%m-%d")
    time_str = generated_at.strftime("%H:%M")
    top_html = "".join(render_article(a, top_pick=True) for a in top_picks)
    all_html = "".join(render_article(a) for a in articles)

    return f"""<!DOCTYPE html>
<html lang="zh-CN">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>AI Daily - {date_str}</title>
  <style>{STYLE}  </style>
</head>
<body>
  <header>
    <h1>🤖 AI Daily</h1>
    <p class="subtitle">{date_str} {time_str} | 每日 AI 精选</p>
    <div class="stats">
      <div class="stat">
        <div class="stat-number">{len(top_picks)}</div>
        <div class="stat-label">精选内容</div>
      </div>
      <div class="stat">
        <div class="stat-number">{len(articles)}</div>
        <div class="stat-label">总文章数</div>
      </div>
      <div class="stat">
        <div class="stat-number">{source_count}</div>
        <div class="stat-label">数据源</div>
      </div>
    </div>
  </header>

  <section>
    <h2>🌟 今日精选 Top {len(top_picks)}</h2>{top_html}
  </section>

  <section>
    <h2>📰 全部文章</h2>{all_html}
  </section>

  <footer>
    <p>Generated {_esc(generated_at.isoformat(timespec="seconds"))} | {len(articles)} articles from {source_count} sources</p>
  </footer>
</body>
</html>
"""
