from __future__ import annotations

import re
from dataclasses import dataclass

from bs4 import BeautifulSoup

NAV_MARKERS = (
    "main menu",
    "navigation",
    "skip to",
    "cookie",
    "subscribe",
    "sign in",
)


@dataclass
class ExtractedContent:
    url: str
    title: str
    text: str
    method: str
    raw_length: int


def _normalize_text(text: str) -> str:
    text = text.replace("\xa0", " ")
    text = re.sub(r"\r\n?", "\n", text)
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def _truncate(text: str, max_chars: int) -> str:
    if max_chars <= 0 or len(text) <= max_chars:
        return text
    return text[:max_chars] + "..."


def _extract_title(raw_content: str) -> str:
    soup = BeautifulSoup(raw_content, "html.parser")
    title = soup.title.string if soup.title and soup.title.string else ""
    return _normalize_text(title)


def _looks_low_quality(text: str) -> bool:
    normalized = text.lower()
    marker_hits = sum(normalized.count(marker) for marker in NAV_MARKERS)
    if len(text) < 200:
        return True
    if marker_hits >= 4 and len(text) < 2500:
        return True
    return False


def _extract_with_trafilatura(raw_html: str) -> str:
    import trafilatura

    extracted = trafilatura.extract(raw_html, output_format="txt")
    if not isinstance(extracted, str):
        return ""
    return _normalize_text(extracted)


def _extract_with_soup(raw_html: str) -> str:
    soup = BeautifulSoup(raw_html, "html.parser")
    for tag in soup(["script", "style", "noscript", "nav", "header", "footer", "aside"]):
        tag.decompose()
    return _normalize_text(soup.get_text("\n"))


def extract_main_content(url: str, raw_content: str, *, max_chars: int) -> ExtractedContent:
    """Extract main article text from a fetched page.

    Trafilatura first; when it yields nothing useful, fall back to the page's
    visible text with boilerplate tags stripped.
    """
    title = _extract_title(raw_content)
    seems_html = "<html" in raw_content.lower() or "<body" in raw_content.lower()
    if not seems_html:
        text = _truncate(_normalize_text(raw_content), max_chars)
        return ExtractedContent(url=url, title=title, text=text, method="raw", raw_length=len(raw_content))

    primary_text = _extract_with_trafilatura(raw_content)
    if primary_text and not _looks_low_quality(primary_text):
        return ExtractedContent(
            url=url,
            title=title,
            text=_truncate(primary_text, max_chars),
            method="trafilatura",
            raw_length=len(raw_content),
        )

    soup_text = _extract_with_soup(raw_content)
    best = soup_text if len(soup_text) > len(primary_text) else primary_text
    return ExtractedContent(
        url=url,
        title=title,
        text=_truncate(best, max_chars),
        method="soup" if best is soup_text else "trafilatura",
        raw_length=len(raw_content),
    )
