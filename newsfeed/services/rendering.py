from datetime import datetime
from email.utils import format_datetime

from jinja2 import Environment

from newsfeed.schemas.feed import FeedItem

XML_ESCAPES = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&apos;"),
)

RSS_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>{{ title | xml }}</title>
    <link>{{ link | xml }}</link>
    <description>{{ description | xml }}</description>
{%- if built_at %}
    <lastBuildDate>{{ built_at | xml }}</lastBuildDate>
{%- endif %}
{%- for item in items %}
    <item>
      <title>{{ item.title | xml }}</title>
      <link>{{ item.link | xml }}</link>
      <guid isPermaLink="false">{{ item.guid | xml }}</guid>
{%- if item.published %}
      <pubDate>{{ item.published | xml }}</pubDate>
{%- endif %}
{%- if item.summary %}
      <description>{{ item.summary | xml }}</description>
{%- endif %}
    </item>
{%- endfor %}
  </channel>
</rss>
"""


def escape_xml(value: object) -> str:
    text = "" if value is None else str(value)
    for char, entity in XML_ESCAPES:
        text = text.replace(char, entity)
    return text


_env = Environment(autoescape=False, keep_trailing_newline=True)
_env.filters["xml"] = escape_xml
_rss_template = _env.from_string(RSS_TEMPLATE)


def items_to_json(items: list[FeedItem]) -> list[dict]:
    return [item.model_dump(mode="json", by_alias=True) for item in items]


def render_rss(title: str, link: str, items: list[FeedItem], built_at: datetime | None = None) -> str:
    return _rss_template.render(
        title=title,
        link=link,
        description=title,
        built_at=format_datetime(built_at, usegmt=True) if built_at else None,
        items=items,
    )


def render_error_rss(message: str, link: str = "") -> str:
    return _rss_template.render(title="error", link=link, description=message, built_at=None, items=[])
