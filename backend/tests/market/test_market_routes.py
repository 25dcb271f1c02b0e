"""Tests for the /api/coins and /api/stream routes."""

import asyncio
import json

import pytest

from cryptohub.errors import NotFoundError, UpstreamError, UpstreamTimeoutError
from cryptohub.market import PriceBoard
from cryptohub.market.stream import format_event, price_events


class TestMarketRoutes:
    """HTTP behaviour of the market router."""

    def test_market_defaults(self, client, upstream):
        """Test the market list with default parameters."""
        upstream.get_markets.return_value = [{"id": "bitcoin", "current_price": 64000.0}]
        response = client.get("/api/coins/market")
        assert response.status_code == 200
        body = response.json()
        assert body["coins"][0]["id"] == "bitcoin"
        assert body["cacheExpiry"] == 60
        params = upstream.get_markets.await_args.args[0]
        assert params["ids"] == "bitcoin,ethereum,cardano,polkadot,chainlink"

    def test_market_rejects_bad_page_size(self, client):
        """Test that out-of-range paging is a 400."""
        response = client.get("/api/coins/market", params={"per_page": 0})
        assert response.status_code == 400
        assert "error" in response.json()

    def test_trending(self, client, upstream):
        """Test the trending endpoint."""
        upstream.get_trending.return_value = {"coins": [{"item": {"id": "pepe"}}]}
        response = client.get("/api/coins/trending")
        assert response.status_code == 200
        assert response.json()["coins"][0]["id"] == "pepe"

    def test_search_requires_query(self, client):
        """Test that an empty search is a 400 with the error body."""
        response = client.get("/api/coins/search")
        assert response.status_code == 400
        assert response.json() == {"error": "Search query is required"}

    def test_coin_detail_not_found(self, client, upstream):
        """Test that an unknown coin is a 404."""
        upstream.get_coin.side_effect = NotFoundError("Coin not found")
        upstream.get_market_chart.return_value = {}
        response = client.get("/api/coins/nope/market")
        assert response.status_code == 404
        assert response.json() == {"error": "Coin not found"}

    def test_upstream_failure(self, client, upstream):
        """Test that an upstream failure is a 502 without internals."""
        upstream.get_trending.side_effect = UpstreamError("Market data provider request failed")
        response = client.get("/api/coins/trending")
        assert response.status_code == 502
        assert response.json() == {"error": "Market data provider request failed"}

    def test_upstream_timeout(self, client, upstream):
        """Test that an upstream timeout is a 504."""
        upstream.search.side_effect = UpstreamTimeoutError("Market data provider timed out")
        response = client.get("/api/coins/search", params={"query": "btc"})
        assert response.status_code == 504


class FakeRequest:
    """Minimal Request stand-in for the SSE generator."""

    client = None

    def __init__(self, disconnect_after=1):
        self._checks = 0
        self._disconnect_after = disconnect_after

    async def is_disconnected(self):
        self._checks += 1
        return self._checks > self._disconnect_after


def parse(event):
    fields = dict(line.split(": ", 1) for line in event.strip().splitlines())
    fields["data"] = json.loads(fields["data"])
    return fields


class TestFormatEvent:
    """SSE wire format."""

    def test_named_event_with_id(self):
        """Test the full event shape."""
        assert format_event({"a": 1}, event="prices", event_id=7) == 'event: prices\nid: 7\ndata: {"a":1}\n\n'

    def test_data_only(self):
        """Test an event without name or id."""
        assert format_event([1, 2]) == "data: [1,2]\n\n"


@pytest.mark.asyncio
class TestPriceStream:
    """Tests for the SSE price generator."""

    async def test_retry_then_prices(self):
        """Test that the stream opens with a retry hint and then the prices."""
        board = PriceBoard()
        board.update("bitcoin", 64000.0)
        events = [event async for event in price_events(board, FakeRequest(), interval=0)]

        assert events[0] == "retry: 1000\n\n"
        fields = parse(events[1])
        assert fields["event"] == "prices"
        assert fields["id"] == str(board.version)
        assert fields["data"]["bitcoin"]["price"] == 64000.0

    async def test_filters_requested_ids(self):
        """Test that only the requested coins are sent."""
        board = PriceBoard()
        board.update_many({"bitcoin": 64000.0, "cardano": 0.45})
        events = [
            event async for event in price_events(board, FakeRequest(), frozenset({"cardano"}), interval=0)
        ]
        assert set(parse(events[1])["data"]) == {"cardano"}

    async def test_only_sends_on_change(self):
        """Test that an unchanged board produces no repeat events."""
        board = PriceBoard()
        board.update("bitcoin", 64000.0)
        events = [event async for event in price_events(board, FakeRequest(disconnect_after=3), interval=0)]
        assert len(events) == 2

    async def test_heartbeat_when_idle(self):
        """Test that a quiet board still produces keep-alive comments."""
        events = [event async for event in price_events(PriceBoard(), FakeRequest(disconnect_after=40), interval=0)]
        assert events[0] == "retry: 1000\n\n"
        assert ": keep-alive\n\n" in events
        assert not any(event.startswith("event:") for event in events)

    async def test_empty_board_sends_nothing(self):
        """Test that no data event is sent before any price is known."""
        events = [event async for event in price_events(PriceBoard(), FakeRequest(), interval=0)]
        assert events == ["retry: 1000\n\n"]

    async def test_cancel_propagates(self):
        """Test that cancelling the consumer stops the generator."""
        board = PriceBoard()

        async def consume():
            async for _ in price_events(board, FakeRequest(disconnect_after=10**6), interval=0.01):
                pass

        task = asyncio.create_task(consume())
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    async def test_stream_route(self, app):
        """Test that the price stream route is mounted."""
        paths = {route.path for route in app.routes}
        assert "/api/stream/prices" in paths
