"""Integration tests for the CoinGecko client — caching, batching, offline mode."""
from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from coinflip.config import PrimarySourceConfig
from coinflip.errors import InvalidResponse, NetworkUnavailable, NotFound, RateLimitExceeded
from coinflip.network import NetworkMonitor
from coinflip.rate_limit import RateLimitGuard
from coinflip.sources.coingecko import CoinGeckoClient, parse_market_row
from tests.conftest import FakeClock

BASE = "https://cg.example.com/api/v3"


@pytest.fixture()
def http() -> AsyncMock:
    return AsyncMock()


@pytest.fixture()
def network() -> NetworkMonitor:
    return NetworkMonitor()


@pytest.fixture()
def client(
    primary_config: PrimarySourceConfig,
    http: AsyncMock,
    network: NetworkMonitor,
    clock: FakeClock,
) -> CoinGeckoClient:
    return CoinGeckoClient(primary_config, RateLimitGuard(clock=clock), http=http, network=network, clock=clock)


class TestParseMarketRow:
    def test_parses_row(self, sample_market_rows: list[dict]) -> None:
        asset = parse_market_row(sample_market_rows[0])
        assert asset is not None
        assert asset.id == "bitcoin"
        assert asset.symbol == "BTC"
        assert asset.current_price == 65000.0
        assert asset.sparkline_7d == (64000.0, 64500.0, 65000.0)

    def test_missing_price_dropped(self, sample_market_rows: list[dict]) -> None:
        assert parse_market_row(sample_market_rows[2]) is None


class TestFetchTrending:
    @pytest.mark.asyncio
    async def test_fetch_and_cache(
        self, client: CoinGeckoClient, http: AsyncMock, sample_market_rows: list[dict], clock: FakeClock
    ) -> None:
        http.get_json.return_value = sample_market_rows

        assets = await client.fetch_trending(limit=20)
        assert [a.id for a in assets] == ["bitcoin", "ethereum"]

        url, params = http.get_json.call_args[0]
        assert url == f"{BASE}/coins/markets"
        assert params["vs_currency"] == "usd"
        assert params["order"] == "market_cap_desc"
        assert params["per_page"] == "20"
        assert params["sparkline"] == "true"

        clock.advance(59)
        await client.fetch_trending()
        assert http.get_json.await_count == 1

        clock.advance(1)
        await client.fetch_trending()
        assert http.get_json.await_count == 2

    @pytest.mark.asyncio
    async def test_force_refresh_bypasses_cache(
        self, client: CoinGeckoClient, http: AsyncMock, sample_market_rows: list[dict]
    ) -> None:
        http.get_json.return_value = sample_market_rows
        await client.fetch_trending()
        await client.fetch_trending(force_refresh=True)
        assert http.get_json.await_count == 2

    @pytest.mark.asyncio
    async def test_seeds_price_cache(
        self, client: CoinGeckoClient, http: AsyncMock, sample_market_rows: list[dict]
    ) -> None:
        http.get_json.return_value = sample_market_rows
        await client.fetch_trending()
        assert client.cached_price("ethereum") == 3500.0
        assert await client.fetch_prices(["bitcoin"]) == {"bitcoin": 65000.0}
        assert http.get_json.await_count == 1

    @pytest.mark.asyncio
    async def test_non_list_payload(self, client: CoinGeckoClient, http: AsyncMock) -> None:
        http.get_json.return_value = {"error": "oops"}
        with pytest.raises(InvalidResponse):
            await client.fetch_trending()

    @pytest.mark.asyncio
    async def test_offline_serves_stale(
        self,
        client: CoinGeckoClient,
        http: AsyncMock,
        network: NetworkMonitor,
        sample_market_rows: list[dict],
        clock: FakeClock,
    ) -> None:
        http.get_json.return_value = sample_market_rows
        await client.fetch_trending()
        clock.advance(3600)
        network.set_connected(False)

        assets = await client.fetch_trending()
        assert len(assets) == 2
        assert http.get_json.await_count == 1

    @pytest.mark.asyncio
    async def test_offline_without_cache(self, client: CoinGeckoClient, network: NetworkMonitor) -> None:
        network.set_connected(False)
        with pytest.raises(NetworkUnavailable):
            await client.fetch_trending()

    @pytest.mark.asyncio
    async def test_rate_limit_propagates(self, client: CoinGeckoClient, http: AsyncMock) -> None:
        http.get_json.side_effect = RateLimitExceeded()
        with pytest.raises(RateLimitExceeded) as exc_info:
            await client.fetch_trending()
        assert exc_info.value.source == "CoinGecko"


class TestFetchPrices:
    @pytest.mark.asyncio
    async def test_single_batched_call(self, client: CoinGeckoClient, http: AsyncMock) -> None:
        http.get_json.return_value = {"bitcoin": {"usd": 65000}, "ethereum": {"usd": 3500}}

        prices = await client.fetch_prices(["bitcoin", "ethereum", "bitcoin"])

        assert prices == {"bitcoin": 65000.0, "ethereum": 3500.0}
        http.get_json.assert_awaited_once()
        url, params = http.get_json.call_args[0]
        assert url == f"{BASE}/simple/price"
        assert params == {"ids": "bitcoin,ethereum", "vs_currencies": "usd"}

    @pytest.mark.asyncio
    async def test_only_missing_ids_requested(
        self, client: CoinGeckoClient, http: AsyncMock
    ) -> None:
        http.get_json.return_value = {"bitcoin": {"usd": 65000}}
        await client.fetch_prices(["bitcoin"])
        http.get_json.return_value = {"ethereum": {"usd": 3500}}
        prices = await client.fetch_prices(["bitcoin", "ethereum"])

        assert prices == {"bitcoin": 65000.0, "ethereum": 3500.0}
        _, params = http.get_json.call_args[0]
        assert params["ids"] == "ethereum"

    @pytest.mark.asyncio
    async def test_absent_id_not_cached(self, client: CoinGeckoClient, http: AsyncMock) -> None:
        http.get_json.return_value = {}
        assert await client.fetch_prices(["ghost"]) == {}
        await client.fetch_prices(["ghost"])
        assert http.get_json.await_count == 2

    @pytest.mark.asyncio
    async def test_fetch_price_not_found(self, client: CoinGeckoClient, http: AsyncMock) -> None:
        http.get_json.return_value = {}
        with pytest.raises(NotFound):
            await client.fetch_price("ghost")

    @pytest.mark.asyncio
    async def test_offline_serves_stale_prices(
        self, client: CoinGeckoClient, http: AsyncMock, network: NetworkMonitor, clock: FakeClock
    ) -> None:
        http.get_json.return_value = {"bitcoin": {"usd": 65000}}
        await client.fetch_prices(["bitcoin"])
        clock.advance(301)
        network.set_connected(False)
        assert await client.fetch_prices(["bitcoin"]) == {"bitcoin": 65000.0}
        with pytest.raises(NetworkUnavailable):
            await client.fetch_prices(["ethereum"])

    @pytest.mark.asyncio
    async def test_clear_cache(self, client: CoinGeckoClient, http: AsyncMock) -> None:
        http.get_json.return_value = {"bitcoin": {"usd": 65000}}
        await client.fetch_prices(["bitcoin"])
        client.clear_cache()
        assert client.cached_price("bitcoin") is None


class TestSearchImage:
    @pytest.mark.asyncio
    async def test_matches_symbol(self, client: CoinGeckoClient, http: AsyncMock) -> None:
        http.get_json.return_value = {
            "coins": [
                {"symbol": "PEPEX", "large": "https://img/other.png"},
                {"symbol": "pepe", "large": "https://img/pepe.png", "thumb": "t"},
            ]
        }
        assert await client.search_image("PEPE") == "https://img/pepe.png"
        _, params = http.get_json.call_args[0]
        assert params == {"query": "PEPE"}

    @pytest.mark.asyncio
    async def test_no_match(self, client: CoinGeckoClient, http: AsyncMock) -> None:
        http.get_json.return_value = {"coins": []}
        assert await client.search_image("NOPE") is None

    @pytest.mark.asyncio
    async def test_null_coins(self, client: CoinGeckoClient, http: AsyncMock) -> None:
        http.get_json.return_value = {"coins": None}
        with pytest.raises(InvalidResponse):
            await client.search_image("PEPE")

    @pytest.mark.asyncio
    async def test_non_object_entry(self, client: CoinGeckoClient, http: AsyncMock) -> None:
        http.get_json.return_value = {"coins": ["pepe"]}
        with pytest.raises(InvalidResponse):
            await client.search_image("PEPE")
