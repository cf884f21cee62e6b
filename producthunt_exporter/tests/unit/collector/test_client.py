"""Tests for the Product Hunt page fetcher."""

import httpx
import pytest

from producthunt_exporter.collector.client import ProductHuntClient
from producthunt_exporter.collector.rate_limiter import RateLimitTracker
from producthunt_exporter.exceptions import (
    ConfigurationError,
    ExportCancelled,
    ThrottledError,
    UpstreamError,
)


@pytest.fixture
def make_client(cancel_token, mock_http_client):
    def _make(transport, **kwargs):
        return ProductHuntClient(
            access_token="test-token",
            api_url="https://api.test/graphql",
            cancel_token=cancel_token,
            client=mock_http_client(transport),
            **kwargs,
        )

    return _make


class TestFetch:
    @pytest.mark.asyncio
    async def test_fetch_parses_page(self, make_client, transport_factory, body_factory, node_factory, headers_factory):
        body = body_factory(
            [node_factory("1", "2024-03-15T10:00:00Z"), node_factory("2", "2024-03-15T09:00:00Z", makers=None)],
            has_next=True,
            end_cursor="abc",
        )
        transport = transport_factory([httpx.Response(200, json=body, headers=headers_factory(remaining=5000))])
        client = make_client(transport)

        page = await client.fetch()

        assert [p.id for p in page.records] == ["1", "2"]
        assert page.records[0].featured_at == "2024-03-15T10:00:00Z"
        assert page.records[1].makers == []
        assert page.has_next is True
        assert page.next_cursor == "abc"
        assert page.headers["x-rate-limit-remaining"] == "5000"

    @pytest.mark.asyncio
    async def test_fetch_sends_cursor_and_auth(self, make_client, transport_factory, body_factory):
        transport = transport_factory([httpx.Response(200, json=body_factory([]))])
        client = make_client(transport, page_size=25)

        await client.fetch("cursor-1")

        request = transport.requests[0]
        assert request.headers["Authorization"] == "Bearer test-token"
        assert transport.request_bodies[0]["variables"] == {"first": 25, "after": "cursor-1"}

    @pytest.mark.asyncio
    async def test_first_override(self, make_client, transport_factory, body_factory):
        transport = transport_factory([httpx.Response(200, json=body_factory([]))])

        await make_client(transport).fetch(first=5)

        assert transport.request_bodies[0]["variables"]["first"] == 5

    @pytest.mark.asyncio
    async def test_nodes_with_missing_fields(self, make_client, transport_factory, body_factory):
        body = body_factory([{"id": "9", "name": None, "tagline": None, "url": None, "makers": None}])
        transport = transport_factory([httpx.Response(200, json=body)])

        page = await make_client(transport).fetch()

        post = page.records[0]
        assert (post.name, post.tagline, post.url, post.makers) == ("", "", "", [])
        assert post.featured_at is None


class TestThrottling:
    @pytest.mark.asyncio
    async def test_retry_after_is_honoured(self, make_client, transport_factory, body_factory, node_factory, cancel_token):
        transport = transport_factory(
            [
                httpx.Response(429, headers={"retry-after": "2"}),
                httpx.Response(200, json=body_factory([node_factory("1", "2024-03-15T10:00:00Z")])),
            ]
        )
        waits = []

        async def on_throttled(seconds):
            waits.append(seconds)

        page = await make_client(transport).fetch(on_throttled=on_throttled)

        assert len(page.records) == 1
        assert len(transport.requests) == 2
        assert cancel_token.sleeps == [2.0]
        assert waits == [2.0]

    @pytest.mark.asyncio
    async def test_wait_falls_back_to_reset_header(self, make_client, transport_factory, body_factory, cancel_token):
        transport = transport_factory(
            [
                httpx.Response(429, headers={"x-rate-limit-reset": "7"}),
                httpx.Response(200, json=body_factory([])),
            ]
        )

        await make_client(transport).fetch()

        assert cancel_token.sleeps == [7.0]

    @pytest.mark.asyncio
    async def test_wait_falls_back_to_tracker_then_default(self, make_client, transport_factory, body_factory, cancel_token):
        transport = transport_factory(
            [
                httpx.Response(429),
                httpx.Response(200, json=body_factory([])),
                httpx.Response(429),
                httpx.Response(200, json=body_factory([])),
            ]
        )
        client = make_client(transport)

        await client.fetch(tracker=RateLimitTracker(reset_seconds=12))
        await client.fetch(tracker=RateLimitTracker())

        assert cancel_token.sleeps == [12.0, 60.0]

    @pytest.mark.asyncio
    async def test_wait_is_capped(self, make_client, transport_factory, body_factory, cancel_token):
        transport = transport_factory(
            [
                httpx.Response(429, headers={"retry-after": "900"}),
                httpx.Response(200, json=body_factory([])),
            ]
        )

        await make_client(transport, max_retry_wait=30).fetch()

        assert cancel_token.sleeps == [30.0]

    @pytest.mark.asyncio
    async def test_retries_are_bounded(self, make_client, transport_factory, cancel_token):
        transport = transport_factory([httpx.Response(429, headers={"retry-after": "1"}) for _ in range(4)])

        with pytest.raises(ThrottledError) as exc_info:
            await make_client(transport).fetch()

        assert exc_info.value.status_code == 429
        assert isinstance(exc_info.value, UpstreamError)
        assert len(transport.requests) == 4
        assert cancel_token.sleeps == [1.0, 1.0, 1.0]


class TestErrors:
    @pytest.mark.asyncio
    async def test_graphql_errors(self, make_client, transport_factory):
        body = {"errors": [{"message": "Field 'foo' doesn't exist"}, {"message": "Another"}]}
        transport = transport_factory([httpx.Response(200, json=body)])

        with pytest.raises(UpstreamError, match="Field 'foo' doesn't exist; Another"):
            await make_client(transport).fetch()

    @pytest.mark.asyncio
    async def test_invalid_token(self, make_client, transport_factory):
        body = {"errors": [{"error": "invalid_oauth_token", "error_description": "Please supply a valid access token"}]}
        transport = transport_factory([httpx.Response(401, json=body)])

        with pytest.raises(UpstreamError) as exc_info:
            await make_client(transport).fetch()

        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "The Product Hunt API access token is invalid"
        assert exc_info.value.details == "Please supply a valid access token"

    @pytest.mark.asyncio
    async def test_http_error_without_body(self, make_client, transport_factory):
        transport = transport_factory([httpx.Response(500, text="oops")])

        with pytest.raises(UpstreamError) as exc_info:
            await make_client(transport).fetch()

        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "Product Hunt API error: Internal Server Error"

    @pytest.mark.asyncio
    async def test_non_json_success(self, make_client, transport_factory):
        transport = transport_factory([httpx.Response(200, text="<html>")])

        with pytest.raises(UpstreamError, match="non-JSON"):
            await make_client(transport).fetch()

    @pytest.mark.asyncio
    async def test_invalid_utf8_success(self, make_client, transport_factory):
        response = httpx.Response(200, content=b"\xff\xfe{", headers={"content-type": "application/json"})

        with pytest.raises(UpstreamError) as exc_info:
            await make_client(transport_factory([response])).fetch()

        assert exc_info.value.status_code == 200

    @pytest.mark.asyncio
    async def test_null_body(self, make_client, transport_factory):
        response = httpx.Response(200, content=b"null", headers={"content-type": "application/json"})

        with pytest.raises(UpstreamError, match="unexpected response"):
            await make_client(transport_factory([response])).fetch()

    @pytest.mark.asyncio
    async def test_node_without_id(self, make_client, transport_factory, body_factory, node_factory):
        body = body_factory([node_factory("1", "2024-03-15T10:00:00Z", id=None)])
        transport = transport_factory([httpx.Response(200, json=body)])

        with pytest.raises(UpstreamError, match="unexpected response") as exc_info:
            await make_client(transport).fetch()

        assert exc_info.value.status_code == 200

    @pytest.mark.asyncio
    async def test_posts_with_wrong_shape(self, make_client, transport_factory):
        transport = transport_factory([httpx.Response(200, json={"data": {"posts": {"edges": "none"}}})])

        with pytest.raises(UpstreamError, match="unexpected response"):
            await make_client(transport).fetch()

    @pytest.mark.asyncio
    async def test_transport_failure(self, cancel_token):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = ProductHuntClient(
            "test-token",
            cancel_token=cancel_token,
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

        with pytest.raises(UpstreamError, match="request failed"):
            await client.fetch()

    @pytest.mark.asyncio
    async def test_cancelled_before_request(self, make_client, transport_factory, cancel_token):
        transport = transport_factory([])
        cancel_token.cancel("client disconnected")

        with pytest.raises(ExportCancelled):
            await make_client(transport).fetch()

        assert transport.requests == []


class TestFromSettings:
    def test_missing_token(self, test_settings):
        settings = test_settings.model_copy(update={"PRODUCT_HUNT_ACCESS_TOKEN": "   "})

        with pytest.raises(ConfigurationError):
            ProductHuntClient.from_settings(settings)

    @pytest.mark.asyncio
    async def test_builds_from_settings(self, test_settings):
        client = ProductHuntClient.from_settings(test_settings, max_retry_wait=30)

        assert client.api_url == "https://api.test/v2/api/graphql"
        assert client.page_size == 50
        assert client.max_retries == 3
        assert client.max_retry_wait == 30
        await client.close()
