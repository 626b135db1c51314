"""Data models — assets and valuation results are frozen, portfolio state is mutable."""
from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

_CHAIN_NAMES = {
    "eth": "Ethereum",
    "solana": "Solana",
    "bsc": "BSC",
    "polygon": "Polygon",
    "arbitrum": "Arbitrum",
    "base": "Base",
    "optimism": "Optimism",
    "avalanche": "Avalanche",
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def _parse_dt(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


# ---------------------------------------------------------------------------
# Market data
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Asset:
    """A tradable token as reported by one market source.

    ``id`` is only unique within its source: a CoinGecko slug for listed coins,
    the base token contract address for discovery assets.
    """

    id: str
    symbol: str
    name: str
    current_price: float
    price_change_24h: float = 0.0
    price_change_percentage_24h: float = 0.0
    market_cap: float = 0.0
    image: str | None = None
    sparkline_7d: tuple[float, ...] = ()

    # Discovery-source fields
    pool_address: str | None = None
    pool_created_at: datetime | None = None
    price_change_1h: float | None = None
    buys_1h: int | None = None
    sells_1h: int | None = None
    txns_1h: int | None = None
    volume_1h: float | None = None
    volume_24h: float | None = None
    chain_id: str | None = None
    is_viral: bool = False

    @property
    def is_up(self) -> bool:
        return self.price_change_percentage_24h >= 0

    @property
    def chain_display_name(self) -> str:
        if not self.chain_id:
            return "Unknown"
        return _CHAIN_NAMES.get(self.chain_id, self.chain_id.capitalize())

    def time_since_launch(self, now: datetime | None = None) -> str:
        if self.pool_created_at is None:
            return "Unknown"
        seconds = ((now or utcnow()) - self.pool_created_at).total_seconds()
        if seconds < 60:
            return f"{int(seconds)}s ago"
        if seconds < 3600:
            return f"{int(seconds / 60)}m ago"
        if seconds < 86400:
            return f"{int(seconds / 3600)}h ago"
        return f"{int(seconds / 86400)}d ago"


# ---------------------------------------------------------------------------
# Portfolio state
# ---------------------------------------------------------------------------


class TransactionType(str, Enum):
    BUY = "buy"
    SELL = "sell"


@dataclass
class Holding:
    """A position in one asset; ``average_buy_price`` is the weighted cost basis."""

    portfolio_id: str
    asset_id: str
    asset_symbol: str
    quantity: float
    average_buy_price: float
    asset_name: str = ""
    chain_id: str | None = None
    image: str | None = None
    first_purchase_at: datetime = field(default_factory=utcnow)
    id: str = field(default_factory=new_id)

    @property
    def cost_basis(self) -> float:
        return self.quantity * self.average_buy_price

    def current_value(self, price: float) -> float:
        return self.quantity * price

    def profit_loss(self, price: float) -> float:
        return self.current_value(price) - self.cost_basis

    def profit_loss_percentage(self, price: float) -> float:
        if self.average_buy_price <= 0:
            return 0.0
        return (price - self.average_buy_price) / self.average_buy_price * 100

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["first_purchase_at"] = self.first_purchase_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Holding:
        return cls(
            id=data["id"],
            portfolio_id=data["portfolio_id"],
            asset_id=data["asset_id"],
            asset_symbol=data["asset_symbol"],
            asset_name=data.get("asset_name", ""),
            quantity=float(data["quantity"]),
            average_buy_price=float(data["average_buy_price"]),
            chain_id=data.get("chain_id"),
            image=data.get("image"),
            first_purchase_at=_parse_dt(data.get("first_purchase_at")) or utcnow(),
        )


@dataclass(frozen=True)
class Transaction:
    portfolio_id: str
    asset_id: str
    asset_symbol: str
    type: TransactionType
    quantity: float
    price_per_unit: float
    total_value: float
    timestamp: datetime = field(default_factory=utcnow)
    id: str = field(default_factory=new_id)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        data["timestamp"] = self.timestamp.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Transaction:
        return cls(
            id=data["id"],
            portfolio_id=data["portfolio_id"],
            asset_id=data["asset_id"],
            asset_symbol=data["asset_symbol"],
            type=TransactionType(data["type"]),
            quantity=float(data["quantity"]),
            price_per_unit=float(data["price_per_unit"]),
            total_value=float(data["total_value"]),
            timestamp=_parse_dt(data.get("timestamp")) or utcnow(),
        )


@dataclass
class Portfolio:
    """A user's cash and positions. Transactions are kept newest first."""

    owner: str
    starting_balance: float
    cash_balance: float | None = None
    holdings: list[Holding] = field(default_factory=list)
    transactions: list[Transaction] = field(default_factory=list)
    net_worth: float | None = None
    gain_percentage: float | None = None
    last_networth_update: datetime | None = None
    id: str = field(default_factory=new_id)

    def __post_init__(self) -> None:
        if self.cash_balance is None:
            self.cash_balance = self.starting_balance

    def holding_for(self, asset_id: str) -> Holding | None:
        for holding in self.holdings:
            if holding.asset_id == asset_id:
                return holding
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "owner": self.owner,
            "cash_balance": self.cash_balance,
            "starting_balance": self.starting_balance,
            "net_worth": self.net_worth,
            "gain_percentage": self.gain_percentage,
            "last_networth_update": (
                self.last_networth_update.isoformat() if self.last_networth_update else None
            ),
            "holdings": [h.to_dict() for h in self.holdings],
            "transactions": [t.to_dict() for t in self.transactions],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Portfolio:
        return cls(
            id=data["id"],
            owner=data.get("owner", ""),
            cash_balance=float(data["cash_balance"]),
            starting_balance=float(data["starting_balance"]),
            net_worth=data.get("net_worth"),
            gain_percentage=data.get("gain_percentage"),
            last_networth_update=_parse_dt(data.get("last_networth_update")),
            holdings=[Holding.from_dict(h) for h in data.get("holdings", [])],
            transactions=[Transaction.from_dict(t) for t in data.get("transactions", [])],
        )


# ---------------------------------------------------------------------------
# Telemetry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RateLimitEvent:
    source: str
    endpoint: str
    call_count: int
    session_duration_seconds: int
    timestamp: datetime = field(default_factory=utcnow)

    @property
    def calls_per_minute(self) -> float:
        if self.session_duration_seconds <= 0:
            return 0.0
        return self.call_count / self.session_duration_seconds * 60

    def to_payload(self, app_version: str = "") -> dict[str, Any]:
        return {
            "api_name": self.source,
            "endpoint": self.endpoint,
            "call_count": self.call_count,
            "session_duration_seconds": self.session_duration_seconds,
            "calls_per_minute": self.calls_per_minute,
            "app_version": app_version or None,
            "timestamp": self.timestamp.isoformat(),
        }


# ---------------------------------------------------------------------------
# Valuation results
# ---------------------------------------------------------------------------


class PriceStatus(str, Enum):
    LIVE = "live"
    COST_BASIS = "cost_basis"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class ResolvedPrice:
    """Outcome of the price cascade for one holding."""

    price: float
    status: PriceStatus
    step: str
    rate_limited: bool = False

    @property
    def can_sell(self) -> bool:
        return self.status is not PriceStatus.UNAVAILABLE and self.price > 0


@dataclass(frozen=True)
class HoldingValuation:
    holding_id: str
    asset_id: str
    asset_symbol: str
    quantity: float
    price: ResolvedPrice
    current_value: float
    cost_basis: float
    profit_loss: float
    profit_loss_percentage: float


@dataclass(frozen=True)
class PortfolioValuation:
    portfolio_id: str
    cash_balance: float
    holdings_value: float
    net_worth: float
    cost_basis: float
    unrealized_pnl: float
    unrealized_pnl_percentage: float
    gain_percentage: float
    holdings: tuple[HoldingValuation, ...] = ()

    @property
    def is_profit(self) -> bool:
        return self.unrealized_pnl >= 0


@dataclass(frozen=True)
class LeaderboardEntry:
    rank: int
    portfolio_id: str
    owner: str
    net_worth: float
    gain_percentage: float


@dataclass(frozen=True)
class RevaluationSummary:
    success: bool
    portfolios_updated: int = 0
    portfolios_total: int = 0
    unique_coins: int = 0
    prices_fetched: int = 0
    duration_ms: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        if not self.success:
            return {"success": False, "error": self.error}
        return {
            "success": True,
            "portfolios_updated": self.portfolios_updated,
            "portfolios_total": self.portfolios_total,
            "unique_coins": self.unique_coins,
            "prices_fetched": self.prices_fetched,
            "duration_ms": self.duration_ms,
        }
