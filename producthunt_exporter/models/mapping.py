"""Mapping functions that turn posts into CSV rows."""

import logging
from typing import Dict, List
from zoneinfo import ZoneInfo

from producthunt_exporter.collector.date_filter import parse_timestamp
from producthunt_exporter.models.dtos import Post

logger = logging.getLogger(__name__)

FEATURED_LAYOUT = "featured"
BASIC_LAYOUT = "basic"

LAYOUT_HEADERS: Dict[str, List[str]] = {
    FEATURED_LAYOUT: [
        "name",
        "tagline",
        "url",
        "makers",
        "description",
        "website",
        "featuredAt",
        "user",
    ],
    BASIC_LAYOUT: [
        "name",
        "tagline",
        "url",
        "makers",
        "votes",
        "comments",
        "createdAt",
    ],
}

# The timestamp each layout is filtered and sorted on
LAYOUT_TIMESTAMP_FIELD: Dict[str, str] = {
    FEATURED_LAYOUT: "featuredAt",
    BASIC_LAYOUT: "createdAt",
}

DISPLAY_FORMAT = "%Y/%m/%d %H:%M:%S"


def resolve_layout(layout: str) -> str:
    """Normalize a layout name, raising ValueError for unknown layouts."""
    normalized = (layout or FEATURED_LAYOUT).strip().lower()
    if normalized not in LAYOUT_HEADERS:
        raise ValueError(f"Unknown CSV layout: {layout!r}. Expected one of {sorted(LAYOUT_HEADERS)}")
    return normalized


def format_timestamp(value: str, tz_name: str) -> str:
    """Render an upstream timestamp in the display timezone, or '' when absent/unparsable."""
    moment = parse_timestamp(value)
    if moment is None:
        return ""
    return moment.astimezone(ZoneInfo(tz_name)).strftime(DISPLAY_FORMAT)


def maker_names(post: Post) -> str:
    return ", ".join(maker.name for maker in post.makers if maker.name)


def post_to_row(post: Post, layout: str = FEATURED_LAYOUT, tz_name: str = "UTC") -> List[str]:
    """
    Convert a post to the ordered cells of the given layout.

    Args:
        post: Post that passed the date filter
        layout: 'featured' (8 columns) or 'basic' (7 columns)
        tz_name: IANA timezone used to render timestamps

    Returns:
        List of string cells matching ``LAYOUT_HEADERS[layout]``
    """
    if layout == BASIC_LAYOUT:
        return [
            post.name,
            post.tagline,
            post.url,
            maker_names(post),
            "" if post.votes_count is None else str(post.votes_count),
            "" if post.comments_count is None else str(post.comments_count),
            format_timestamp(post.created_at, tz_name),
        ]

    return [
        post.name,
        post.tagline,
        post.url,
        maker_names(post),
        post.description or "",
        post.website or "",
        format_timestamp(post.featured_at, tz_name),
        (post.user.name or "") if post.user else "",
    ]


def posts_to_rows(posts: List[Post], layout: str = FEATURED_LAYOUT, tz_name: str = "UTC") -> List[List[str]]:
    return [post_to_row(post, layout, tz_name) for post in posts]
