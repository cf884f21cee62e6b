"""
Pydantic Data Transfer Objects (DTOs) for the Product Hunt exporter.

Upstream GraphQL payloads use camelCase; the models expose snake_case
attributes and accept either spelling on input.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# Upstream timestamp field name -> Post attribute
TIMESTAMP_FIELDS = {
    "featuredAt": "featured_at",
    "createdAt": "created_at",
}


class Maker(BaseModel):
    """A maker or submitting user attached to a post."""

    name: Optional[str] = None
    username: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="ignore")


class Post(BaseModel):
    """
    One Product Hunt post as returned in ``data.posts.edges[].node``.

    Timestamps are kept as the raw upstream strings and parsed on demand, so
    a single malformed value does not invalidate the whole page.
    """

    id: str
    name: str = ""
    tagline: str = ""
    url: str = ""
    description: Optional[str] = None
    website: Optional[str] = None
    votes_count: Optional[int] = None
    comments_count: Optional[int] = None
    created_at: Optional[str] = None
    featured_at: Optional[str] = None
    makers: List[Maker] = Field(default_factory=list)
    user: Optional[Maker] = None

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @field_validator("makers", mode="before")
    @classmethod
    def _none_makers_to_empty(cls, v):
        return [] if v is None else v

    @field_validator("name", "tagline", "url", mode="before")
    @classmethod
    def _none_to_blank(cls, v):
        return "" if v is None else v

    def raw_timestamp(self, field: str) -> Optional[str]:
        """Return the raw value of an upstream timestamp field (``featuredAt``/``createdAt``)."""
        try:
            attr = TIMESTAMP_FIELDS[field]
        except KeyError:
            raise ValueError(f"Unknown timestamp field: {field}")
        return getattr(self, attr)


class Page(BaseModel):
    """A single page of posts plus the pagination state needed to request the next one."""

    records: List[Post] = Field(default_factory=list)
    has_next: bool = False
    next_cursor: Optional[str] = None
    # Rate-limit related response headers, lower-cased
    headers: Dict[str, str] = Field(default_factory=dict)


class RateLimitSnapshot(BaseModel):
    """Point-in-time copy of the rate-limit budget, used in progress payloads."""

    limit: int
    remaining: int
    reset_seconds: int


class ExportRequest(BaseModel):
    """Inbound body for the export endpoints."""

    date: Optional[str] = Field(None, description="Day to export, as YYYY-MM-DD (UTC).")
    layout: Optional[str] = Field(None, description="CSV column layout: 'featured' or 'basic'.")


class ExportResult(BaseModel):
    """Outcome of a completed export run."""

    date: str
    filename: str
    csv_text: str
    filtered_count: int
    pages_fetched: int
    stop_reason: str
