"""
Async client for the Product Hunt GraphQL API.

Fetches one page of posts per call, normalizes the response into a ``Page``
and retries locally when the API answers 429.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from producthunt_exporter.collector.rate_limiter import (
    RATE_LIMIT_HEADERS,
    RESET_HEADER,
    RateLimitTracker,
    parse_int_header,
)
from producthunt_exporter.config.settings import Settings
from producthunt_exporter.core.cancellation import CancelToken
from producthunt_exporter.exceptions import ThrottledError, UpstreamError
from producthunt_exporter.models.dtos import Page, Post

logger = logging.getLogger(__name__)

UNEXPECTED_RESPONSE = "Product Hunt API returned an unexpected response"

GET_POSTS_QUERY = """
query GetPosts($first: Int!, $after: String) {
  posts(first: $first, after: $after) {
    pageInfo {
      hasNextPage
      endCursor
    }
    edges {
      node {
        id
        name
        tagline
        url
        description
        website
        votesCount
        commentsCount
        createdAt
        featuredAt
        user {
          name
          username
        }
        makers {
          name
          username
        }
      }
    }
  }
}
"""

ThrottleCallback = Callable[[float], Awaitable[None]]


class ProductHuntClient:
    """
    Page fetcher for the ``posts`` connection.

    Handles:
    - Bearer authentication
    - Cursor pagination (one request per ``fetch`` call)
    - Bounded 429 retry with Retry-After / reset-header backoff
    - Mapping HTTP and GraphQL failures to ``UpstreamError``
    """

    def __init__(
        self,
        access_token: str,
        api_url: str = "https://api.producthunt.com/v2/api/graphql",
        page_size: int = 50,
        max_retries: int = 3,
        default_wait_seconds: float = 60.0,
        max_retry_wait: Optional[float] = None,
        timeout: float = 30.0,
        cancel_token: Optional[CancelToken] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the client.

        Args:
            access_token: Product Hunt developer or OAuth token
            api_url: GraphQL endpoint
            page_size: ``first`` argument sent with every page request
            max_retries: Retry ceiling for 429 responses
            default_wait_seconds: Wait used when a 429 carries no timing hint
            max_retry_wait: Upper bound on a single 429 wait; None leaves it uncapped
            timeout: Request timeout in seconds
            cancel_token: Token that can abort in-flight requests and sleeps
            client: Pre-built httpx client (tests inject one with a mock transport)
        """
        self.api_url = api_url
        self.page_size = page_size
        self.max_retries = max_retries
        self.default_wait_seconds = default_wait_seconds
        self.max_retry_wait = max_retry_wait
        self.cancel_token = cancel_token or CancelToken()

        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self._headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {access_token}",
        }

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> "ProductHuntClient":
        """Build a client from application settings. Raises ConfigurationError without a token."""
        kwargs: Dict[str, Any] = {
            "access_token": settings.require_access_token(),
            "api_url": settings.PRODUCT_HUNT_API_URL,
            "page_size": settings.PAGE_SIZE,
            "max_retries": settings.MAX_THROTTLE_RETRIES,
            "default_wait_seconds": settings.THROTTLE_DEFAULT_WAIT_SECONDS,
            "timeout": settings.HTTP_TIMEOUT_SECONDS,
        }
        kwargs.update(overrides)
        return cls(**kwargs)

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "ProductHuntClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def fetch(
        self,
        cursor: Optional[str] = None,
        retry_count: int = 0,
        *,
        first: Optional[int] = None,
        tracker: Optional[RateLimitTracker] = None,
        on_throttled: Optional[ThrottleCallback] = None,
    ) -> Page:
        """
        Fetch one page of posts.

        Args:
            cursor: ``endCursor`` of the previous page, None for the first page
            retry_count: 429 retries already spent on this page
            first: Page size override (defaults to the configured page size)
            tracker: Rate-limit state consulted for the reset time on 429
            on_throttled: Awaited with the wait in seconds before each 429 backoff

        Returns:
            Page: Posts and pagination state

        Raises:
            UpstreamError: Non-success status, GraphQL errors, transport failure,
                or 429 after ``max_retries`` retries (as ThrottledError)
            ExportCancelled: If the cancel token fires during the request or a wait
        """
        payload = {
            "query": GET_POSTS_QUERY,
            "variables": {"first": first or self.page_size, "after": cursor},
        }
        logger.debug(f"Requesting posts page (after={cursor}, retry={retry_count})")

        try:
            response = await self.cancel_token.guard(
                self.client.post(self.api_url, json=payload, headers=self._headers)
            )
        except httpx.HTTPError as e:
            logger.error(f"Request to Product Hunt API failed: {e}")
            raise UpstreamError(f"Product Hunt API request failed: {e}")

        if response.status_code == 429:
            if retry_count < self.max_retries:
                wait_seconds = self._throttle_wait(response, tracker)
                logger.warning(
                    f"Rate limited (429). Waiting {wait_seconds:.0f}s before retry "
                    f"{retry_count + 1}/{self.max_retries}"
                )
                if on_throttled is not None:
                    await on_throttled(wait_seconds)
                await self.cancel_token.sleep(wait_seconds)
                return await self.fetch(
                    cursor,
                    retry_count + 1,
                    first=first,
                    tracker=tracker,
                    on_throttled=on_throttled,
                )
            logger.error(f"Rate limited (429) after {retry_count} retries, giving up")
            raise ThrottledError(
                f"Product Hunt API error: {response.reason_phrase}",
                status_code=429,
            )

        if not response.is_success:
            raise self._error_from_response(response)

        try:
            body = response.json()
        except ValueError:
            raise UpstreamError(
                "Product Hunt API returned a non-JSON response",
                status_code=response.status_code,
            )
        if not isinstance(body, dict):
            raise UpstreamError(UNEXPECTED_RESPONSE, status_code=response.status_code)

        errors = body.get("errors")
        if errors:
            message = "; ".join(_error_message(e) for e in errors)
            logger.error(f"GraphQL errors returned: {message}")
            raise UpstreamError(f"Product Hunt API error: {message}", status_code=response.status_code)

        try:
            return self._page_from_body(body, response.headers)
        except ValueError as e:
            logger.error(f"Malformed posts payload: {e}")
            raise UpstreamError(UNEXPECTED_RESPONSE, status_code=response.status_code)

    def _throttle_wait(self, response: httpx.Response, tracker: Optional[RateLimitTracker]) -> float:
        """Retry-After, else the reset header, else the tracker's reset time, else the default."""
        wait = parse_int_header(response.headers, "retry-after")
        if wait is None:
            wait = parse_int_header(response.headers, RESET_HEADER)
        if wait is None and tracker is not None and tracker.reset_seconds > 0:
            wait = tracker.reset_seconds
        seconds = float(wait) if wait is not None and wait >= 0 else float(self.default_wait_seconds)
        if self.max_retry_wait is not None:
            seconds = min(seconds, float(self.max_retry_wait))
        return seconds

    @staticmethod
    def _error_from_response(response: httpx.Response) -> UpstreamError:
        """Build an UpstreamError, preferring the OAuth-style error body when present."""
        message = f"Product Hunt API error: {response.reason_phrase}"
        details = None
        try:
            error_data = response.json()
        except ValueError:
            error_data = None

        if isinstance(error_data, dict) and error_data.get("errors"):
            first_error = error_data["errors"][0]
            if isinstance(first_error, dict):
                message = first_error.get("error") or first_error.get("message") or message
                details = first_error.get("error_description")
                if first_error.get("error") == "invalid_oauth_token":
                    message = "The Product Hunt API access token is invalid"
                    details = details or "The token is invalid, expired, or missing required scopes."

        logger.error(f"Product Hunt API returned HTTP {response.status_code}: {message}")
        return UpstreamError(message, status_code=response.status_code, details=details)

    @staticmethod
    def _page_from_body(body: Dict[str, Any], headers: httpx.Headers) -> Page:
        """Raises ValueError when the payload does not have the posts connection shape."""
        data = body.get("data") or {}
        if not isinstance(data, dict):
            raise ValueError("data is not an object")
        posts = data.get("posts") or {}
        if not isinstance(posts, dict):
            raise ValueError("data.posts is not an object")
        page_info = posts.get("pageInfo") or {}
        edges: List[Dict[str, Any]] = posts.get("edges") or []
        if not isinstance(page_info, dict) or not isinstance(edges, list):
            raise ValueError("posts.pageInfo or posts.edges has the wrong type")

        # pydantic's ValidationError is a ValueError
        records = [
            Post.model_validate(edge["node"]) for edge in edges if isinstance(edge, dict) and edge.get("node")
        ]
        rate_headers = {name: headers[name] for name in RATE_LIMIT_HEADERS if name in headers}

        return Page(
            records=records,
            has_next=bool(page_info.get("hasNextPage")),
            next_cursor=page_info.get("endCursor"),
            headers=rate_headers,
        )


def _error_message(error: Any) -> str:
    if isinstance(error, dict):
        return error.get("message") or "Unknown error"
    return str(error)
