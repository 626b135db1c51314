"""Shared test fixtures and sample data."""
from __future__ import annotations

import textwrap
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from coinflip.config import (
    AppConfig,
    DiscoverySourceConfig,
    PrimarySourceConfig,
    RevaluationConfig,
    TelemetryConfig,
)
from coinflip.models import Asset, Holding, Portfolio

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Monotonic clock the tests can move forward by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def primary_config() -> PrimarySourceConfig:
    return PrimarySourceConfig(base_url="https://cg.example.com/api/v3")


@pytest.fixture()
def discovery_config() -> DiscoverySourceConfig:
    return DiscoverySourceConfig(base_url="https://gt.example.com/api/v2", enrich_images=False)


@pytest.fixture()
def telemetry_config() -> TelemetryConfig:
    return TelemetryConfig(
        enabled=True,
        endpoint_url="https://telemetry.example.com/rest/v1/api_rate_limits",
        api_key="anon-key",
        app_version="1.2.3",
    )


@pytest.fixture()
def sample_app_config(
    primary_config: PrimarySourceConfig,
    discovery_config: DiscoverySourceConfig,
) -> AppConfig:
    return AppConfig(
        primary=primary_config,
        discovery=discovery_config,
        revaluation=RevaluationConfig(interval_minutes=5, batch_size=2),
    )


# ---------------------------------------------------------------------------
# Model fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def bitcoin() -> Asset:
    return Asset(id="bitcoin", symbol="BTC", name="Bitcoin", current_price=100.0)


@pytest.fixture()
def viral_token() -> Asset:
    return Asset(
        id="So1anaMint111",
        symbol="PEPE2",
        name="Pepe Two",
        current_price=0.0005,
        pool_address="PoolAddr111",
        pool_created_at=NOW - timedelta(minutes=20),
        price_change_1h=12.0,
        buys_1h=30,
        sells_1h=10,
        txns_1h=40,
        volume_1h=15000.0,
        chain_id="solana",
    )


@pytest.fixture()
def portfolio() -> Portfolio:
    return Portfolio(owner="alice", starting_balance=1000.0, id="p-alice")


@pytest.fixture()
def btc_holding() -> Holding:
    return Holding(
        portfolio_id="p-alice",
        asset_id="bitcoin",
        asset_symbol="BTC",
        asset_name="Bitcoin",
        quantity=2.0,
        average_buy_price=100.0,
        id="h-btc",
    )


@pytest.fixture()
def token_holding() -> Holding:
    return Holding(
        portfolio_id="p-alice",
        asset_id="So1anaMint111",
        asset_symbol="PEPE2",
        asset_name="Pepe Two",
        quantity=1_000_000.0,
        average_buy_price=0.0004,
        chain_id="solana",
        id="h-pepe",
    )


# ---------------------------------------------------------------------------
# Sample source payloads
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_market_rows() -> list[dict]:
    return [
        {
            "id": "bitcoin",
            "symbol": "btc",
            "name": "Bitcoin",
            "image": "https://img.example.com/btc.png",
            "current_price": 65000.0,
            "market_cap": 1.2e12,
            "price_change_24h": 1300.0,
            "price_change_percentage_24h": 2.0,
            "sparkline_in_7d": {"price": [64000.0, 64500.0, 65000.0]},
        },
        {
            "id": "ethereum",
            "symbol": "eth",
            "name": "Ethereum",
            "image": "https://img.example.com/eth.png",
            "current_price": 3500.0,
            "market_cap": 4.2e11,
            "price_change_24h": -35.0,
            "price_change_percentage_24h": -1.0,
            "sparkline_in_7d": None,
        },
        {"id": "broken", "symbol": "brk", "name": "Broken"},
    ]


def make_pool(
    symbol: str,
    price: str | None,
    *,
    chain: str = "solana",
    address: str = "PoolAddr111",
    token: str | None = "So1anaMint111",
    change_1h: str = "0",
    buys: int = 0,
    sells: int = 0,
    created: str = "2026-02-01T00:00:00Z",
    volume_1h: str = "0",
) -> dict:
    pool: dict = {
        "id": f"{chain}_{address}",
        "type": "pool",
        "attributes": {
            "name": f"{symbol} / SOL",
            "address": address,
            "base_token_price_usd": price,
            "pool_created_at": created,
            "fdv_usd": "250000",
            "price_change_percentage": {"h1": change_1h, "h24": "10"},
            "transactions": {"h1": {"buys": buys, "sells": sells}},
            "volume_usd": {"h1": volume_1h, "h24": "90000"},
        },
        "relationships": {},
    }
    if token:
        pool["relationships"]["base_token"] = {"data": {"id": f"{chain}_{token}", "type": "token"}}
    return pool


# ---------------------------------------------------------------------------
# Config YAML fixture
# ---------------------------------------------------------------------------

SAMPLE_YAML = textwrap.dedent("""\
    sources:
      primary:
        base_url: "https://cg.example.com/api/v3/"
        api_key: "demo-key"
        trending_ttl_seconds: 60
        price_ttl_seconds: 300
      discovery:
        base_url: "https://gt.example.com/api/v2"
        ohlcv_max_retries: 3
        enrich_images: false
        criteria:
          price_spike_pct: 40
        weights:
          volume_divisor: 5000
    telemetry:
      enabled: false
    revaluation:
      interval_minutes: 30
      batch_size: 25
    storage:
      portfolios_path: "/tmp/portfolios.json"
    trading:
      starting_balance: 5000
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file
