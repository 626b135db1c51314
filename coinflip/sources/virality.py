"""Viral classification filter and ranking score for discovery assets."""
from __future__ import annotations

from datetime import datetime, timedelta

from ..config import ViralCriteriaConfig, ViralityWeightsConfig
from ..models import Asset, utcnow


def is_viral(
    asset: Asset,
    now: datetime | None = None,
    criteria: ViralCriteriaConfig = ViralCriteriaConfig(),
) -> bool:
    """True if any criterion holds.

    Criteria: a large 1h price spike, a high 1h transaction count, a pool
    created within the new-pool window, or a moderate spike together with a
    moderate transaction count. Missing metrics count as zero.
    """
    change = asset.price_change_1h or 0.0
    txns = asset.txns_1h or 0

    if change > criteria.price_spike_pct:
        return True
    if txns > criteria.high_txn_count:
        return True
    if asset.pool_created_at is not None:
        cutoff = (now or utcnow()) - timedelta(seconds=criteria.new_pool_seconds)
        if asset.pool_created_at > cutoff:
            return True
    return change > criteria.combined_price_pct and txns > criteria.combined_txn_count


def virality_score(asset: Asset, weights: ViralityWeightsConfig = ViralityWeightsConfig()) -> float:
    """Ranking score only; never used for pricing."""
    price_score = (asset.price_change_1h or 0.0) * weights.price_change
    txn_score = (asset.txns_1h or 0) * weights.transactions
    volume_score = (asset.volume_1h or 0.0) / weights.volume_divisor * weights.volume
    return price_score + txn_score + volume_score


def rank_viral(
    assets: list[Asset],
    now: datetime | None = None,
    criteria: ViralCriteriaConfig = ViralCriteriaConfig(),
    weights: ViralityWeightsConfig = ViralityWeightsConfig(),
) -> list[Asset]:
    """Filter to viral assets and sort them by score, highest first."""
    now = now or utcnow()
    viral = [a for a in assets if is_viral(a, now, criteria)]
    return sorted(viral, key=lambda a: virality_score(a, weights), reverse=True)
