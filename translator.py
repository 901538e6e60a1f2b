#!/usr/bin/env python3
"""Gemini Translator - Optional Chinese translation of article titles and summaries."""

import json
import os
import re
from dataclasses import replace
from typing import List, Optional, Sequence

from google import genai
from google.genai import types

from site_scraper import Article


class GeminiTranslator:
    """Client for translating scraped articles with the Gemini API"""

    MODEL = "gemini-2.5-flash"

    def __init__(self, api_key: Optional[str] = None, target_language: str = "简体中文"):
        """Initialize the translator

        Args:
            api_key: Gemini API key. If not provided, reads from GEMINI_API_KEY env var
            target_language: Language name inserted into the prompt
        """
        self.api_key = api_key or os.environ.get("GEMINI_API_KEY")
        if not self.api_key:
            raise ValueError("GEMINI_API_KEY is not set")
        self.target_language = target_language
        self.client = genai.Client(api_key=self.api_key)

    def _build_prompt(self, articles: Sequence[Article]) -> str:
        items = [{"title": a.title, "summary": a.summary} for a in articles]
        return f"""Translate the "title" and "summary" of every item below into {self.target_language}.
Keep product names, model names and people's names as they are.
Return only a JSON array with exactly {len(items)} objects, in the same order,
each with the keys "title" and "summary".

{json.dumps(items, ensure_ascii=False, indent=2)}"""

    def translate_articles(self, articles: Sequence[Article]) -> List[Article]:
        """Translate articles in a single request.

        On any API or parsing problem the input is returned untranslated.
        """
        articles = list(articles)
        if not articles:
            return articles

        try:
            response = self.client.models.generate_content(
                model=self.MODEL,
                contents=self._build_prompt(articles),
                config=types.GenerateContentConfig(
                    temperature=0.2,
                    response_mime_type="application/json",
                ),
            )
            translated = self._parse_response(response.text or "")
        except Exception as e:
            print(f"  [WARN] Translation failed: {e}")
            return articles

        if len(translated) != len(articles):
            print(f"  [WARN] Translation returned {len(translated)} items for {len(articles)} articles")
            return articles

        results = []
        for article, item in zip(articles, translated):
            title = str(item.get("title") or "").strip() or article.title
            summary = str(item.get("summary") or "").strip() or article.summary
            results.append(replace(article, title=title, summary=summary))
        return results

    @staticmethod
    def _parse_response(text: str) -> List[dict]:
        json_match = re.search(r"\[[\s\S]*\]", text)
        if not json_match:
            raise ValueError("no JSON array in response")
        data = json.loads(json_match.group())
        return [item for item in data if isinstance(item, dict)] if isinstance(data, list) else []
