"""Configuration loader — reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PrimarySourceConfig:
    base_url: str = "https://api.coingecko.com/api/v3"
    api_key: str = ""
    trending_ttl_seconds: int = 60
    price_ttl_seconds: int = 300
    timeout_seconds: int = 30


@dataclass(frozen=True)
class ViralCriteriaConfig:
    price_spike_pct: float = 50.0
    high_txn_count: int = 100
    new_pool_seconds: int = 3600
    combined_price_pct: float = 25.0
    combined_txn_count: int = 50


@dataclass(frozen=True)
class ViralityWeightsConfig:
    price_change: float = 0.4
    transactions: float = 0.3
    volume: float = 0.3
    volume_divisor: float = 10000.0


@dataclass(frozen=True)
class DiscoverySourceConfig:
    base_url: str = "https://api.geckoterminal.com/api/v2"
    trending_ttl_seconds: int = 30
    ohlcv_ttl_seconds: int = 300
    symbol_price_ttl_seconds: int = 300
    timeout_seconds: int = 30
    ohlcv_max_retries: int = 2
    enrich_images: bool = True
    criteria: ViralCriteriaConfig = field(default_factory=ViralCriteriaConfig)
    weights: ViralityWeightsConfig = field(default_factory=ViralityWeightsConfig)


@dataclass(frozen=True)
class TelemetryConfig:
    enabled: bool = False
    endpoint_url: str = ""
    api_key: str = ""
    app_version: str = ""


@dataclass(frozen=True)
class RevaluationConfig:
    interval_minutes: int = 60
    batch_size: int = 50


@dataclass(frozen=True)
class StorageConfig:
    portfolios_path: str = "data/portfolios.json"
    image_cache_path: str = "data/image_cache.json"


@dataclass(frozen=True)
class TradingConfig:
    starting_balance: float = 1000.0


@dataclass(frozen=True)
class AppConfig:
    primary: PrimarySourceConfig = field(default_factory=PrimarySourceConfig)
    discovery: DiscoverySourceConfig = field(default_factory=DiscoverySourceConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    revaluation: RevaluationConfig = field(default_factory=RevaluationConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    trading: TradingConfig = field(default_factory=TradingConfig)


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


def _as_bool(value: Any, default: bool = False) -> bool:
    # Interpolated env values arrive as strings
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    if value is None:
        return default
    return bool(value)


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _build_primary(raw: dict[str, Any]) -> PrimarySourceConfig:
    return PrimarySourceConfig(
        base_url=raw.get("base_url", PrimarySourceConfig.base_url).rstrip("/"),
        api_key=raw.get("api_key", ""),
        trending_ttl_seconds=int(raw.get("trending_ttl_seconds", 60)),
        price_ttl_seconds=int(raw.get("price_ttl_seconds", 300)),
        timeout_seconds=int(raw.get("timeout_seconds", 30)),
    )


def _build_criteria(raw: dict[str, Any]) -> ViralCriteriaConfig:
    return ViralCriteriaConfig(
        price_spike_pct=float(raw.get("price_spike_pct", 50.0)),
        high_txn_count=int(raw.get("high_txn_count", 100)),
        new_pool_seconds=int(raw.get("new_pool_seconds", 3600)),
        combined_price_pct=float(raw.get("combined_price_pct", 25.0)),
        combined_txn_count=int(raw.get("combined_txn_count", 50)),
    )


def _build_weights(raw: dict[str, Any]) -> ViralityWeightsConfig:
    return ViralityWeightsConfig(
        price_change=float(raw.get("price_change", 0.4)),
        transactions=float(raw.get("transactions", 0.3)),
        volume=float(raw.get("volume", 0.3)),
        volume_divisor=float(raw.get("volume_divisor", 10000.0)),
    )


def _build_discovery(raw: dict[str, Any]) -> DiscoverySourceConfig:
    return DiscoverySourceConfig(
        base_url=raw.get("base_url", DiscoverySourceConfig.base_url).rstrip("/"),
        trending_ttl_seconds=int(raw.get("trending_ttl_seconds", 30)),
        ohlcv_ttl_seconds=int(raw.get("ohlcv_ttl_seconds", 300)),
        symbol_price_ttl_seconds=int(raw.get("symbol_price_ttl_seconds", 300)),
        timeout_seconds=int(raw.get("timeout_seconds", 30)),
        ohlcv_max_retries=int(raw.get("ohlcv_max_retries", 2)),
        enrich_images=_as_bool(raw.get("enrich_images"), default=True),
        criteria=_build_criteria(raw.get("criteria", {})),
        weights=_build_weights(raw.get("weights", {})),
    )


def _build_telemetry(raw: dict[str, Any]) -> TelemetryConfig:
    return TelemetryConfig(
        enabled=_as_bool(raw.get("enabled"), default=False),
        endpoint_url=raw.get("endpoint_url", ""),
        api_key=raw.get("api_key", ""),
        app_version=str(raw.get("app_version", "")),
    )


def _build_revaluation(raw: dict[str, Any]) -> RevaluationConfig:
    return RevaluationConfig(
        interval_minutes=int(raw.get("interval_minutes", 60)),
        batch_size=int(raw.get("batch_size", 50)),
    )


def _build_storage(raw: dict[str, Any]) -> StorageConfig:
    return StorageConfig(
        portfolios_path=raw.get("portfolios_path", StorageConfig.portfolios_path),
        image_cache_path=raw.get("image_cache_path", StorageConfig.image_cache_path),
    )


def _build_trading(raw: dict[str, Any]) -> TradingConfig:
    return TradingConfig(starting_balance=float(raw.get("starting_balance", 1000.0)))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate application configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (two levels up from this file).
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    sources = raw.get("sources", {})
    cfg = AppConfig(
        primary=_build_primary(sources.get("primary", {})),
        discovery=_build_discovery(sources.get("discovery", {})),
        telemetry=_build_telemetry(raw.get("telemetry", {})),
        revaluation=_build_revaluation(raw.get("revaluation", {})),
        storage=_build_storage(raw.get("storage", {})),
        trading=_build_trading(raw.get("trading", {})),
    )

    _validate(cfg)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def _validate(cfg: AppConfig) -> None:
    """Raise on invalid configuration."""
    for name, source in (("primary", cfg.primary), ("discovery", cfg.discovery)):
        if not source.base_url:
            raise ValueError(f"Source '{name}' has no base_url")
        if source.timeout_seconds <= 0:
            raise ValueError(f"Source '{name}' timeout_seconds must be positive")

    ttls = {
        "primary.trending_ttl_seconds": cfg.primary.trending_ttl_seconds,
        "primary.price_ttl_seconds": cfg.primary.price_ttl_seconds,
        "discovery.trending_ttl_seconds": cfg.discovery.trending_ttl_seconds,
        "discovery.ohlcv_ttl_seconds": cfg.discovery.ohlcv_ttl_seconds,
        "discovery.symbol_price_ttl_seconds": cfg.discovery.symbol_price_ttl_seconds,
    }
    for key, ttl in ttls.items():
        if ttl <= 0:
            raise ValueError(f"{key} must be positive")

    if cfg.discovery.ohlcv_max_retries < 0:
        raise ValueError("discovery.ohlcv_max_retries cannot be negative")

    if not 1 <= cfg.revaluation.batch_size <= 250:
        raise ValueError("revaluation.batch_size must be between 1 and 250")
    if cfg.revaluation.interval_minutes <= 0:
        raise ValueError("revaluation.interval_minutes must be positive")

    if cfg.telemetry.enabled and not cfg.telemetry.endpoint_url:
        raise ValueError("Telemetry is enabled but no endpoint_url is configured")

    if cfg.trading.starting_balance <= 0:
        raise ValueError("trading.starting_balance must be positive")
