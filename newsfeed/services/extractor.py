"""Best-effort extraction of news items from a listing page.

The upstream markup is not under our control, so every heuristic here
degrades to "fewer items" instead of raising: anything BeautifulSoup can
parse produces a (possibly empty) list.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urldefrag, urljoin, urlparse

from bs4 import BeautifulSoup, Tag
from dateutil import parser as dtparser

from newsfeed.schemas.feed import FeedItem
from newsfeed.utils.hashing import item_guid, sha1_text
from newsfeed.utils.text import normalize_text, truncate

MONTHS = r"(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Sept|Oct|Nov|Dec)[a-z]*\.?"
DATE_PATTERNS = (
    re.compile(rf"\b\d{{1,2}}\s+{MONTHS}\s+\d{{4}}\b", re.IGNORECASE),
    re.compile(rf"\b{MONTHS}\s+\d{{1,2}},?\s+\d{{4}}\b", re.IGNORECASE),
    re.compile(r"\b\d{4}-\d{2}-\d{2}\b"),
    re.compile(r"\b\d{1,2}/\d{1,2}/\d{4}\b"),
)

# Ancestors tried in order when scoping date/summary lookups to one item.
CONTAINER_CHAIN: tuple[Any, ...] = ("article", "li", ["div", "section"])
SKIPPED_SCHEMES = ("#", "mailto:", "javascript:", "tel:")
SUMMARY_STRIP = " -–—|:·"


def article_path_pattern(prefix: str) -> re.Pattern[str]:
    return re.compile(rf"^{re.escape(prefix.rstrip('/'))}/[^/]+/?$")


def content_region(soup: BeautifulSoup) -> Tag:
    return soup.find("main") or soup.find(attrs={"role": "main"}) or soup.body or soup


def canonical_article_link(href: str, base_url: str, pattern: re.Pattern[str]) -> str | None:
    """Resolve ``href`` and return it only if it is a single article below the prefix."""
    href = (href or "").strip()
    if not href or href.lower().startswith(SKIPPED_SCHEMES):
        return None

    try:
        link, _fragment = urldefrag(urljoin(base_url, href))
        parsed = urlparse(link)
        base_host = urlparse(base_url).netloc.lower()
    except ValueError:
        return None
    if parsed.scheme not in {"http", "https"}:
        return None
    if parsed.netloc.lower() != base_host:
        return None
    if parsed.query:
        return None
    if not pattern.match(parsed.path):
        return None
    return link


def parse_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        try:
            parsed = dtparser.parse(value, fuzzy=True, dayfirst=True)
        except (ValueError, OverflowError):
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def order_items(items: list[FeedItem]) -> list[FeedItem]:
    """Newest first among items with a parseable date.

    Items without a parseable date keep their exact position; only the slots
    holding dated items are reordered.
    """
    keyed = [(parse_date(item.published), item) for item in items]
    dated = sorted((pair for pair in keyed if pair[0] is not None), key=lambda pair: pair[0], reverse=True)
    dated_items = iter([item for _, item in dated])
    return [next(dated_items) if parsed is not None else item for parsed, item in keyed]


def _inside(tag: Tag, region: Tag) -> bool:
    return any(parent is region for parent in tag.parents)


def _holds_single_link(tag: Tag, links_by_anchor: dict[int, str]) -> bool:
    links = {links_by_anchor[id(a)] for a in tag.find_all("a", href=True) if id(a) in links_by_anchor}
    return len(links) <= 1


def find_container(anchor: Tag, region: Tag, links_by_anchor: dict[int, str]) -> Tag | None:
    for names in CONTAINER_CHAIN:
        parent = anchor.find_parent(names)
        if parent is not None and _inside(parent, region) and _holds_single_link(parent, links_by_anchor):
            return parent
    parent = anchor.parent
    if parent is not None and _inside(parent, region) and _holds_single_link(parent, links_by_anchor):
        return parent
    return None


def extract_date(container: Tag, title: str) -> tuple[str | None, str | None]:
    """Return ``(published, visible_text)`` for the item's date, if any."""
    time_el = container.find("time") or container.find(attrs={"datetime": True})
    if time_el is not None:
        visible = normalize_text(time_el.get_text(" "))
        machine = normalize_text(time_el.get("datetime"))
        if machine or visible:
            return machine or visible, visible or None

    text = normalize_text(container.get_text(" ")).replace(title, " ", 1)
    for pattern in DATE_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(0), match.group(0)
    return None, None


def extract_summary(container: Tag, title: str, date_text: str | None, max_length: int) -> str | None:
    for paragraph in container.find_all("p"):
        text = normalize_text(paragraph.get_text(" "))
        if text and text != title:
            return truncate(text, max_length)

    text = normalize_text(container.get_text(" "))
    if text.startswith(title):
        text = text[len(title):]
    if date_text:
        text = text.replace(date_text, " ", 1)
    text = normalize_text(text).strip(SUMMARY_STRIP)
    return truncate(text, max_length) if text else None


def extract(
    html: str | bytes,
    base_url: str,
    source: str,
    *,
    article_prefix: str = "/news",
    max_items: int = 15,
    summary_max_length: int = 500,
) -> list[FeedItem]:
    soup = BeautifulSoup(html, "html.parser")
    region = content_region(soup)
    pattern = article_path_pattern(article_prefix)

    candidates: list[tuple[Tag, str]] = []
    for anchor in region.find_all("a", href=True):
        link = canonical_article_link(anchor.get("href"), base_url, pattern)
        if link:
            candidates.append((anchor, link))
    links_by_anchor = {id(anchor): link for anchor, link in candidates}

    by_link: dict[str, FeedItem] = {}
    for anchor, link in candidates:
        title = normalize_text(anchor.get_text(" "))
        if not title:
            continue

        published = summary = None
        container = find_container(anchor, region, links_by_anchor)
        if container is not None:
            published, date_text = extract_date(container, title)
            summary = extract_summary(container, title, date_text, summary_max_length)

        guid = item_guid(source, link)
        # Last occurrence wins; dict keeps the first occurrence's position.
        by_link[link] = FeedItem(
            title=title,
            link=link,
            published=published,
            summary=summary,
            guid=guid,
            content_hash=sha1_text(guid),
            source=source,
        )

    return order_items(list(by_link.values()))[:max_items]
