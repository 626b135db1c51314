"""Command-line interface for the CoinFlip price engine."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

from .config import load_config
from .context import AppContext
from .errors import PriceSourceError
from .logging_setup import configure_logging
from .models import Asset, PortfolioValuation
from .services.valuation import rank_portfolios

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="coinflip",
        description="CoinFlip price resolution and portfolio valuation engine",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("revalue", help="Revalue every portfolio once")

    schedule_parser = sub.add_parser("schedule", help="Revalue portfolios on a fixed interval")
    schedule_parser.add_argument(
        "interval",
        nargs="?",
        type=int,
        default=None,
        help="Interval in minutes (overrides config)",
    )

    trending_parser = sub.add_parser("trending", help="List top coins by market cap")
    trending_parser.add_argument("--limit", type=int, default=20)

    viral_parser = sub.add_parser("viral", help="List viral tokens from trending pools")
    viral_parser.add_argument("--limit", type=int, default=20)

    networth_parser = sub.add_parser("networth", help="Value one portfolio at live prices")
    networth_parser.add_argument("portfolio_id")

    leaderboard_parser = sub.add_parser("leaderboard", help="Rank portfolios by net worth")
    leaderboard_parser.add_argument("--limit", type=int, default=None)

    return parser


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _asset_row(asset: Asset) -> dict[str, Any]:
    row: dict[str, Any] = {
        "id": asset.id,
        "symbol": asset.symbol,
        "name": asset.name,
        "price": asset.current_price,
        "change_24h_pct": asset.price_change_percentage_24h,
    }
    if asset.chain_id:
        row["chain"] = asset.chain_display_name
        row["launched"] = asset.time_since_launch()
        row["change_1h_pct"] = asset.price_change_1h
        row["txns_1h"] = asset.txns_1h
    return row


def _valuation_payload(valuation: PortfolioValuation) -> dict[str, Any]:
    return {
        "portfolio_id": valuation.portfolio_id,
        "cash_balance": valuation.cash_balance,
        "holdings_value": valuation.holdings_value,
        "net_worth": valuation.net_worth,
        "gain_percentage": valuation.gain_percentage,
        "unrealized_pnl": valuation.unrealized_pnl,
        "holdings": [
            {
                "symbol": h.asset_symbol,
                "quantity": h.quantity,
                "price": h.price.price,
                "status": h.price.status.value,
                "step": h.price.step,
                "value": h.current_value,
                "profit_loss": h.profit_loss,
            }
            for h in valuation.holdings
        ],
    }


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def _networth(ctx: AppContext, portfolio_id: str) -> None:
    portfolio = await ctx.repository.get(portfolio_id)
    if portfolio is None:
        print(f"Portfolio not found: {portfolio_id}", file=sys.stderr)
        sys.exit(1)

    # Warm the central price map; the cascade still works if this fails
    try:
        await ctx.resolver.refresh_trending()
    except PriceSourceError as e:
        logger.warning("Could not refresh trending prices: %s", e)

    valuation = await ctx.portfolios.value(portfolio)
    _print_json(_valuation_payload(valuation))


async def _list_assets(ctx: AppContext, command: str, limit: int) -> None:
    fetch = ctx.resolver.refresh_trending if command == "trending" else ctx.resolver.refresh_viral
    try:
        assets = await fetch(limit=limit)
    except PriceSourceError as e:
        print(f"Could not fetch {command} coins: {e}", file=sys.stderr)
        sys.exit(1)
    _print_json([_asset_row(a) for a in assets])


async def _run(args: argparse.Namespace) -> None:
    """Execute the selected command."""
    configure_logging(args.log_level)
    config = load_config(args.config)
    ctx = AppContext(config)

    if args.command == "revalue":
        summary = await ctx.revaluation.run()
        _print_json(summary.to_dict())
        if not summary.success:
            sys.exit(1)
    elif args.command == "schedule":
        await ctx.revaluation.run_continuous(args.interval)
    elif args.command in ("trending", "viral"):
        await _list_assets(ctx, args.command, args.limit)
    elif args.command == "networth":
        await _networth(ctx, args.portfolio_id)
    elif args.command == "leaderboard":
        portfolios = await ctx.repository.list_portfolios()
        entries = rank_portfolios(portfolios, args.limit)
        _print_json([vars(e) for e in entries])
    else:
        build_parser().print_help()
        sys.exit(1)


def main() -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    asyncio.run(_run(args))
