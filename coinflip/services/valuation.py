"""Portfolio valuation — trade arithmetic, net worth and leaderboard ranking."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Iterable, Mapping

from ..errors import TradeRejected
from ..interfaces.repository import PortfolioRepository
from ..models import (
    Asset,
    Holding,
    HoldingValuation,
    LeaderboardEntry,
    Portfolio,
    PortfolioValuation,
    PriceStatus,
    ResolvedPrice,
    Transaction,
    TransactionType,
    utcnow,
)
from .resolver import PriceResolver

logger = logging.getLogger(__name__)

# Holdings smaller than this after a sell are removed
DUST_THRESHOLD = 1e-8


# ---------------------------------------------------------------------------
# Trades
# ---------------------------------------------------------------------------


def buy(
    portfolio: Portfolio,
    asset: Asset,
    cash_amount: float,
    now: datetime | None = None,
) -> Transaction:
    """Spend ``cash_amount`` on ``asset`` at its current price.

    An existing holding gets a weighted-average cost basis; otherwise a new
    holding is created. Raises TradeRejected on invalid amounts.
    """
    if cash_amount <= 0:
        raise TradeRejected("Enter an amount greater than zero.")
    if cash_amount > portfolio.cash_balance:
        raise TradeRejected("Insufficient funds for this purchase.")
    if asset.current_price <= 0:
        raise TradeRejected(f"Price unavailable for {asset.symbol}.")

    now = now or utcnow()
    price = asset.current_price
    quantity = cash_amount / price
    portfolio.cash_balance -= cash_amount

    holding = portfolio.holding_for(asset.id)
    if holding is not None:
        old_cost = holding.quantity * holding.average_buy_price
        holding.quantity += quantity
        holding.average_buy_price = (old_cost + quantity * price) / holding.quantity
    else:
        portfolio.holdings.append(
            Holding(
                portfolio_id=portfolio.id,
                asset_id=asset.id,
                asset_symbol=asset.symbol.upper(),
                asset_name=asset.name,
                quantity=quantity,
                average_buy_price=price,
                chain_id=asset.chain_id,
                image=asset.image,
                first_purchase_at=now,
            )
        )

    transaction = Transaction(
        portfolio_id=portfolio.id,
        asset_id=asset.id,
        asset_symbol=asset.symbol.upper(),
        type=TransactionType.BUY,
        quantity=quantity,
        price_per_unit=price,
        total_value=cash_amount,
        timestamp=now,
    )
    portfolio.transactions.insert(0, transaction)
    return transaction


def sell(
    portfolio: Portfolio,
    asset: Asset,
    quantity: float,
    now: datetime | None = None,
) -> Transaction:
    """Sell ``quantity`` units of ``asset`` at its current price.

    The average buy price is left untouched. A remainder below the dust
    threshold removes the holding; a request that overshoots the held amount
    by no more than the threshold sells the whole position.
    """
    holding = portfolio.holding_for(asset.id)
    if holding is None:
        raise TradeRejected(f"You don't own any {asset.symbol}.")
    if quantity <= 0:
        raise TradeRejected("Enter a quantity greater than zero.")
    if quantity > holding.quantity + DUST_THRESHOLD:
        raise TradeRejected(f"You only own {holding.quantity:.8f} {asset.symbol}.")
    if asset.current_price <= 0:
        raise TradeRejected(f"Price unavailable for {asset.symbol}; selling is disabled.")

    now = now or utcnow()
    quantity = min(quantity, holding.quantity)
    price = asset.current_price
    sale_value = quantity * price

    portfolio.cash_balance += sale_value
    holding.quantity -= quantity
    if holding.quantity < DUST_THRESHOLD:
        portfolio.holdings.remove(holding)

    transaction = Transaction(
        portfolio_id=portfolio.id,
        asset_id=asset.id,
        asset_symbol=asset.symbol.upper(),
        type=TransactionType.SELL,
        quantity=quantity,
        price_per_unit=price,
        total_value=sale_value,
        timestamp=now,
    )
    portfolio.transactions.insert(0, transaction)
    return transaction


# ---------------------------------------------------------------------------
# Valuation
# ---------------------------------------------------------------------------


def gain_percentage(net_worth: float, starting_balance: float) -> float:
    if starting_balance <= 0:
        return 0.0
    return (net_worth - starting_balance) / starting_balance * 100


def net_worth(portfolio: Portfolio, prices: Mapping[str, float]) -> float:
    """Cash plus holdings, using the average buy price for missing or zero prices."""
    total = portfolio.cash_balance
    for holding in portfolio.holdings:
        price = prices.get(holding.asset_id)
        if not price or price <= 0:
            price = holding.average_buy_price
        total += holding.quantity * price
    return total


def value_portfolio(
    portfolio: Portfolio, resolved: Mapping[str, ResolvedPrice]
) -> PortfolioValuation:
    """Fold resolved prices into a full valuation.

    Holdings missing from ``resolved`` are valued at cost basis. Holdings in
    the unavailable state count as zero.
    """
    rows: list[HoldingValuation] = []
    holdings_value = 0.0
    cost_basis = 0.0
    for holding in portfolio.holdings:
        price = resolved.get(holding.asset_id) or ResolvedPrice(
            holding.average_buy_price, PriceStatus.COST_BASIS, "cost_basis"
        )
        value = holding.current_value(price.price)
        holdings_value += value
        cost_basis += holding.cost_basis
        rows.append(
            HoldingValuation(
                holding_id=holding.id,
                asset_id=holding.asset_id,
                asset_symbol=holding.asset_symbol,
                quantity=holding.quantity,
                price=price,
                current_value=value,
                cost_basis=holding.cost_basis,
                profit_loss=holding.profit_loss(price.price),
                profit_loss_percentage=holding.profit_loss_percentage(price.price),
            )
        )

    total = portfolio.cash_balance + holdings_value
    unrealized = holdings_value - cost_basis
    return PortfolioValuation(
        portfolio_id=portfolio.id,
        cash_balance=portfolio.cash_balance,
        holdings_value=holdings_value,
        net_worth=total,
        cost_basis=cost_basis,
        unrealized_pnl=unrealized,
        unrealized_pnl_percentage=unrealized / cost_basis * 100 if cost_basis > 0 else 0.0,
        gain_percentage=gain_percentage(total, portfolio.starting_balance),
        holdings=tuple(rows),
    )


def rank_portfolios(portfolios: Iterable[Portfolio], limit: int | None = None) -> list[LeaderboardEntry]:
    """Leaderboard by persisted net worth, highest first.

    Portfolios never revalued are ranked by their cash balance.
    """
    def worth(p: Portfolio) -> float:
        return p.net_worth if p.net_worth is not None else p.cash_balance

    ordered = sorted(portfolios, key=worth, reverse=True)
    if limit is not None:
        ordered = ordered[:limit]

    entries = []
    for rank, portfolio in enumerate(ordered, start=1):
        value = worth(portfolio)
        gain = portfolio.gain_percentage
        if gain is None:
            gain = gain_percentage(value, portfolio.starting_balance)
        entries.append(
            LeaderboardEntry(
                rank=rank,
                portfolio_id=portfolio.id,
                owner=portfolio.owner,
                net_worth=value,
                gain_percentage=gain,
            )
        )
    return entries


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class PortfolioService:
    """Serializes trades per portfolio and values portfolios through the resolver."""

    def __init__(
        self,
        resolver: PriceResolver,
        repository: PortfolioRepository | None = None,
    ) -> None:
        self._resolver = resolver
        self._repository = repository
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, portfolio_id: str) -> asyncio.Lock:
        lock = self._locks.get(portfolio_id)
        if lock is None:
            lock = self._locks[portfolio_id] = asyncio.Lock()
        return lock

    async def _persist(self, portfolio: Portfolio) -> None:
        if self._repository is not None:
            await self._repository.save(portfolio)

    async def buy(self, portfolio: Portfolio, asset: Asset, cash_amount: float) -> Transaction:
        async with self._lock_for(portfolio.id):
            transaction = buy(portfolio, asset, cash_amount)
            logger.info(
                "BUY %s: %.8f @ $%.8f ($%.2f) for %s",
                transaction.asset_symbol,
                transaction.quantity,
                transaction.price_per_unit,
                transaction.total_value,
                portfolio.owner,
            )
            await self._persist(portfolio)
            return transaction

    async def sell(self, portfolio: Portfolio, asset: Asset, quantity: float) -> Transaction:
        async with self._lock_for(portfolio.id):
            transaction = sell(portfolio, asset, quantity)
            logger.info(
                "SELL %s: %.8f @ $%.8f ($%.2f) for %s",
                transaction.asset_symbol,
                transaction.quantity,
                transaction.price_per_unit,
                transaction.total_value,
                portfolio.owner,
            )
            await self._persist(portfolio)
            return transaction

    async def sell_holding(
        self,
        portfolio: Portfolio,
        holding: Holding,
        quantity: float,
        price_map: Mapping[str, float] | None = None,
    ) -> Transaction:
        """Sell from a holding at its resolved price; refused when unavailable."""
        resolved = await self._resolver.resolve(holding, price_map)
        if not resolved.can_sell:
            raise TradeRejected(f"Price unavailable for {holding.asset_symbol}; selling is disabled.")
        asset = Asset(
            id=holding.asset_id,
            symbol=holding.asset_symbol,
            name=holding.asset_name,
            current_price=resolved.price,
            image=holding.image,
            chain_id=holding.chain_id,
        )
        return await self.sell(portfolio, asset, quantity)

    async def value(
        self, portfolio: Portfolio, price_map: Mapping[str, float] | None = None
    ) -> PortfolioValuation:
        resolved = await self._resolver.resolve_all(portfolio.holdings, price_map)
        return value_portfolio(portfolio, resolved)
