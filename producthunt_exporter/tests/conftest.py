import json
import os
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
from dotenv import load_dotenv

from producthunt_exporter.config.settings import PROJECT_ROOT_DIR, Settings
from producthunt_exporter.core.cancellation import CancelToken
from producthunt_exporter.models.dtos import Page, Post

# Load test environment variables from .env.test in the project root
dotenv_path = os.path.join(PROJECT_ROOT_DIR, ".env.test")
if os.path.exists(dotenv_path):
    load_dotenv(dotenv_path=dotenv_path)


class RecordingCancelToken(CancelToken):
    """CancelToken whose sleeps return immediately and are recorded instead."""

    def __init__(self) -> None:
        super().__init__()
        self.sleeps: List[float] = []

    async def sleep(self, seconds: float) -> None:
        self.raise_if_cancelled()
        self.sleeps.append(seconds)
        self.raise_if_cancelled()


def post_node(
    post_id: str,
    featured_at: Optional[str] = None,
    created_at: Optional[str] = None,
    **fields: Any,
) -> Dict[str, Any]:
    """A GraphQL ``posts.edges[].node`` payload."""
    node: Dict[str, Any] = {
        "id": post_id,
        "name": f"Product {post_id}",
        "tagline": f"Tagline {post_id}",
        "url": f"https://www.producthunt.com/posts/product-{post_id}",
        "description": f"Description {post_id}",
        "website": f"https://example.com/{post_id}",
        "votesCount": 10,
        "commentsCount": 2,
        "createdAt": created_at or featured_at,
        "featuredAt": featured_at,
        "makers": [{"name": "Ada", "username": "ada"}],
        "user": {"name": "Grace", "username": "grace"},
    }
    node.update(fields)
    return node


def graphql_body(nodes: List[Dict[str, Any]], has_next: bool = False, end_cursor: Optional[str] = None) -> Dict[str, Any]:
    """A successful GraphQL response body for the posts query."""
    return {
        "data": {
            "posts": {
                "pageInfo": {"hasNextPage": has_next, "endCursor": end_cursor},
                "edges": [{"node": node} for node in nodes],
            }
        }
    }


def rate_headers(remaining: int = 6000, limit: int = 6250, reset: int = 900) -> Dict[str, str]:
    return {
        "X-Rate-Limit-Limit": str(limit),
        "X-Rate-Limit-Remaining": str(remaining),
        "X-Rate-Limit-Reset": str(reset),
    }


class ScriptedTransport:
    """
    MockTransport handler that plays back responses in order.

    Requests are recorded so tests can inspect what was sent.
    """

    def __init__(self, responses: List[httpx.Response]):
        self.responses = list(responses)
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            raise AssertionError(f"Unexpected request #{len(self.requests)}")
        return self.responses.pop(0)

    @property
    def request_bodies(self) -> List[Dict[str, Any]]:
        return [json.loads(request.content) for request in self.requests]


@pytest.fixture
def node_factory() -> Callable[..., Dict[str, Any]]:
    return post_node


@pytest.fixture
def body_factory() -> Callable[..., Dict[str, Any]]:
    return graphql_body


@pytest.fixture
def headers_factory() -> Callable[..., Dict[str, str]]:
    return rate_headers


@pytest.fixture
def post_factory() -> Callable[..., Post]:
    def _make(post_id: str = "1", featured_at: Optional[str] = None, **fields: Any) -> Post:
        return Post.model_validate(post_node(post_id, featured_at, **fields))

    return _make


@pytest.fixture
def page_factory(post_factory) -> Callable[..., Page]:
    def _make(
        featured_ats: List[Optional[str]],
        has_next: bool = True,
        next_cursor: Optional[str] = "cursor",
        headers: Optional[Dict[str, str]] = None,
    ) -> Page:
        records = [post_factory(str(i), ts) for i, ts in enumerate(featured_ats)]
        return Page(records=records, has_next=has_next, next_cursor=next_cursor, headers=headers or {})

    return _make


@pytest.fixture
def cancel_token() -> RecordingCancelToken:
    return RecordingCancelToken()


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from any local .env file."""
    return Settings(
        _env_file=None,
        PRODUCT_HUNT_ACCESS_TOKEN="test-token",
        PRODUCT_HUNT_API_URL="https://api.test/v2/api/graphql",
        CSV_TIMEZONE="UTC",
    )


@pytest.fixture
def transport_factory() -> Callable[[List[httpx.Response]], ScriptedTransport]:
    return ScriptedTransport


@pytest.fixture
def mock_http_client():
    """Build an httpx.AsyncClient backed by a ScriptedTransport."""

    def _make(transport: ScriptedTransport) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(transport))

    return _make
