import hashlib
from urllib.parse import urlparse

from newsfeed.schemas.feed import FeedItem
from newsfeed.services.extractor import extract, order_items, parse_date
from newsfeed.utils.text import normalize_text, truncate

BASE_URL = "https://example.org/news"


def _item(title: str, published: str | None = None) -> FeedItem:
    link = f"https://example.org/news/{title.lower()}"
    return FeedItem(
        title=title,
        link=link,
        published=published,
        guid=f"gov-source:{link}",
        content_hash="x",
        source="gov-source",
    )


def test_extracts_articles_and_skips_listing_root(listing_html):
    items = extract(listing_html, BASE_URL, "gov-source")

    assert [item.title for item in items] == ["Alpha", "Beta"]
    alpha, beta = items
    assert alpha.link == "https://example.org/news/alpha"
    assert alpha.guid == "gov-source:https://example.org/news/alpha"
    assert alpha.published == "2024-01-05"
    assert alpha.summary is None
    assert beta.summary == "Beta summary"
    assert beta.published is None
    assert all(item.link != "https://example.org/news" for item in items)


def test_content_hash_is_sha1_of_guid(listing_html):
    first = extract(listing_html, BASE_URL, "gov-source")
    second = extract(listing_html.encode("utf-8"), BASE_URL, "gov-source")

    expected = hashlib.sha1(b"gov-source:https://example.org/news/alpha").hexdigest()
    assert first[0].content_hash == expected
    assert [item.content_hash for item in first] == [item.content_hash for item in second]


def test_ignores_links_outside_main_content(listing_html):
    links = {item.link for item in extract(listing_html, BASE_URL, "gov-source")}
    assert "https://example.org/news/nav-item" not in links
    assert "https://example.org/news/footer-link" not in links


def test_rejects_paged_query_offsite_and_nested_paths():
    html = """
    <main>
      <a href="/news/">Root with slash</a>
      <a href="/news/page/2">Page 2</a>
      <a href="/news/alpha?page=2">Alpha paged</a>
      <a href="https://other.org/news/elsewhere">Elsewhere</a>
      <a href="/newsletter/signup">Newsletter</a>
      <a href="mailto:news@example.org">Mail</a>
      <a href="https://example.org/news/gamma#top">Gamma</a>
    </main>
    """
    items = extract(html, BASE_URL, "gov-source")

    assert [item.link for item in items] == ["https://example.org/news/gamma"]


def test_malformed_href_is_skipped():
    html = """
    <main><ul>
      <li><a href="http://[broken/news/x">Broken</a></li>
      <li><a href="/news/good">Good</a></li>
    </ul></main>
    """
    items = extract(html, BASE_URL, "gov-source")

    assert [item.link for item in items] == ["https://example.org/news/good"]


def test_duplicate_links_collapse_to_last_seen():
    html = """
    <main><ul>
      <li><a href="/news/alpha">Alpha teaser</a></li>
      <li><a href="/news/other">Other</a></li>
      <li><a href="https://example.org/news/alpha#more">Alpha full story</a></li>
    </ul></main>
    """
    items = extract(html, BASE_URL, "gov-source")

    assert [item.link for item in items] == [
        "https://example.org/news/alpha",
        "https://example.org/news/other",
    ]
    assert items[0].title == "Alpha full story"


def test_title_whitespace_is_collapsed():
    html = '<main><article><a href="/news/x">  Breaking\n\n   news\t today </a></article></main>'
    assert extract(html, BASE_URL, "gov-source")[0].title == "Breaking news today"


def test_date_falls_back_to_text_pattern_in_container():
    html = """
    <main>
      <article>
        <h3><a href="/news/gamma">Gamma</a></h3>
        <span class="meta">Published 12 March 2024</span>
        <p>Gamma body text</p>
      </article>
    </main>
    """
    item = extract(html, BASE_URL, "gov-source")[0]

    assert item.published == "12 March 2024"
    assert item.summary == "Gamma body text"


def test_time_text_used_when_no_datetime_attribute():
    html = '<main><li><a href="/news/d">Delta</a><time>3 Feb 2024</time></li></main>'
    assert extract(html, BASE_URL, "gov-source")[0].published == "3 Feb 2024"


def test_summary_falls_back_to_container_text_without_title():
    html = '<main><ul><li><a href="/news/e">Echo</a> - a short update on echo</li></ul></main>'
    assert extract(html, BASE_URL, "gov-source")[0].summary == "a short update on echo"


def test_shared_container_gives_no_proximity_metadata():
    html = """
    <main><div>
      <a href="/news/a">First</a>
      <a href="/news/b">Second</a>
      <p>Shared text 1 May 2024</p>
    </div></main>
    """
    items = extract(html, BASE_URL, "gov-source")

    assert [item.title for item in items] == ["First", "Second"]
    assert all(item.summary is None and item.published is None for item in items)


def test_summary_is_truncated_with_ellipsis():
    body = "word " * 300
    html = f'<main><article><a href="/news/long">Long</a><p>{body}</p></article></main>'
    summary = extract(html, BASE_URL, "gov-source")[0].summary

    assert len(summary) == 500
    assert summary.endswith("…")


def test_result_is_bounded_with_absolute_links():
    rows = "".join(
        f'<li><a href="/news/item-{i}">Item {i}</a><time datetime="2024-01-{i + 1:02d}"></time></li>'
        for i in range(25)
    )
    items = extract(f"<main><ul>{rows}</ul></main>", BASE_URL, "gov-source")

    assert len(items) == 15
    assert items[0].title == "Item 24"
    for item in items:
        parsed = urlparse(item.link)
        assert parsed.scheme == "https" and parsed.netloc == "example.org"
        assert item.title


def test_malformed_markup_yields_no_items():
    assert extract("<<<>>> </div></li> <main", BASE_URL, "gov-source") == []
    assert extract("", BASE_URL, "gov-source") == []


def test_dated_items_sorted_newest_first_undated_left_in_place():
    a = _item("A", "2023-03-01")
    u1 = _item("U1")
    b = _item("B", "5 June 2024")
    u2 = _item("U2", "TBC")
    c = _item("C", "2022-01-01")

    ordered = order_items([a, u1, b, u2, c])

    assert [item.title for item in ordered] == ["B", "U1", "A", "U2", "C"]


def test_unparseable_dates_keep_relative_order():
    items = [_item("X", "TBC"), _item("Y"), _item("Z", "TBC")]
    assert [item.title for item in order_items(items)] == ["X", "Y", "Z"]


def test_parse_date_prefers_iso_then_day_first():
    assert parse_date("2024-01-05").month == 1
    assert parse_date("05/01/2024").month == 1
    assert parse_date("TBC") is None
    assert parse_date(None) is None


def test_text_helpers():
    assert normalize_text("  a \n b\t") == "a b"
    assert normalize_text(None) == ""
    assert truncate("abcdef", 10) == "abcdef"
    assert truncate("abcdef", 4) == "abc…"
