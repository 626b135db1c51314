"""Unit tests for data models."""
from __future__ import annotations

from dataclasses import replace
from datetime import timedelta

import pytest

from coinflip.models import (
    Asset,
    Holding,
    Portfolio,
    PriceStatus,
    RateLimitEvent,
    ResolvedPrice,
    RevaluationSummary,
    Transaction,
    TransactionType,
)
from tests.conftest import NOW


class TestAsset:
    def test_frozen(self, bitcoin: Asset) -> None:
        with pytest.raises(AttributeError):
            bitcoin.current_price = 1.0  # type: ignore[misc]

    def test_chain_display_name(self, viral_token: Asset) -> None:
        assert viral_token.chain_display_name == "Solana"

    def test_unknown_chain_capitalized(self, viral_token: Asset) -> None:
        assert replace(viral_token, chain_id="sui").chain_display_name == "Sui"

    def test_time_since_launch(self, viral_token: Asset) -> None:
        assert viral_token.time_since_launch(NOW) == "20m ago"
        assert viral_token.time_since_launch(NOW + timedelta(days=2)) == "2d ago"

    def test_time_since_launch_unknown(self, bitcoin: Asset) -> None:
        assert bitcoin.time_since_launch(NOW) == "Unknown"


class TestHolding:
    def test_profit_and_loss(self, btc_holding: Holding) -> None:
        assert btc_holding.cost_basis == 200.0
        assert btc_holding.current_value(150.0) == 300.0
        assert btc_holding.profit_loss(150.0) == 100.0
        assert btc_holding.profit_loss_percentage(150.0) == pytest.approx(50.0)

    def test_zero_average_price_pct(self, btc_holding: Holding) -> None:
        btc_holding.average_buy_price = 0.0
        assert btc_holding.profit_loss_percentage(10.0) == 0.0

    def test_dict_round_trip(self, token_holding: Holding) -> None:
        restored = Holding.from_dict(token_holding.to_dict())
        assert restored == token_holding


class TestPortfolio:
    def test_cash_defaults_to_starting_balance(self) -> None:
        p = Portfolio(owner="bob", starting_balance=1000.0)
        assert p.cash_balance == 1000.0

    def test_holding_for(self, portfolio: Portfolio, btc_holding: Holding) -> None:
        portfolio.holdings.append(btc_holding)
        assert portfolio.holding_for("bitcoin") is btc_holding
        assert portfolio.holding_for("ethereum") is None

    def test_dict_round_trip(self, portfolio: Portfolio, btc_holding: Holding) -> None:
        portfolio.holdings.append(btc_holding)
        portfolio.transactions.append(
            Transaction(
                portfolio_id=portfolio.id,
                asset_id="bitcoin",
                asset_symbol="BTC",
                type=TransactionType.BUY,
                quantity=2.0,
                price_per_unit=100.0,
                total_value=200.0,
                timestamp=NOW,
            )
        )
        portfolio.net_worth = 1000.0
        portfolio.last_networth_update = NOW
        restored = Portfolio.from_dict(portfolio.to_dict())
        assert restored == portfolio


class TestRateLimitEvent:
    def test_calls_per_minute(self) -> None:
        event = RateLimitEvent("CoinGecko", "coins/markets", call_count=30, session_duration_seconds=120)
        assert event.calls_per_minute == pytest.approx(15.0)

    def test_zero_duration(self) -> None:
        event = RateLimitEvent("CoinGecko", "coins/markets", call_count=1, session_duration_seconds=0)
        assert event.calls_per_minute == 0.0

    def test_payload(self) -> None:
        event = RateLimitEvent(
            "GeckoTerminal", "ohlcv", call_count=6, session_duration_seconds=60, timestamp=NOW
        )
        payload = event.to_payload(app_version="1.0")
        assert payload == {
            "api_name": "GeckoTerminal",
            "endpoint": "ohlcv",
            "call_count": 6,
            "session_duration_seconds": 60,
            "calls_per_minute": 6.0,
            "app_version": "1.0",
            "timestamp": NOW.isoformat(),
        }


class TestResolvedPrice:
    def test_unavailable_cannot_sell(self) -> None:
        assert ResolvedPrice(0.0, PriceStatus.UNAVAILABLE, "not_found").can_sell is False

    def test_cost_basis_can_sell(self) -> None:
        assert ResolvedPrice(1.0, PriceStatus.COST_BASIS, "cost_basis").can_sell is True


class TestRevaluationSummary:
    def test_success_dict(self) -> None:
        summary = RevaluationSummary(
            success=True,
            portfolios_updated=3,
            portfolios_total=4,
            unique_coins=7,
            prices_fetched=6,
            duration_ms=120,
        )
        assert summary.to_dict() == {
            "success": True,
            "portfolios_updated": 3,
            "portfolios_total": 4,
            "unique_coins": 7,
            "prices_fetched": 6,
            "duration_ms": 120,
        }

    def test_failure_dict(self) -> None:
        summary = RevaluationSummary(success=False, error="db down")
        assert summary.to_dict() == {"success": False, "error": "db down"}
