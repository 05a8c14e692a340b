"""
Age-based event tiering.

Tiers are recomputed for every event of every agent in one UPDATE, run
synchronously before each store operation and never on read. Between writes
the stored tier may be stale.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import case, func, update

from agentmem.config import HOT_TIER_HOURS, WARM_TIER_DAYS
from agentmem.models import Event, EventTier
from agentmem.services.memory_shared import logger


def tier_thresholds(now: datetime) -> tuple[datetime, datetime]:
    """(hot_threshold, warm_threshold) for the given moment."""
    return now - timedelta(hours=HOT_TIER_HOURS), now - timedelta(days=WARM_TIER_DAYS)


def classify_tier(timestamp: datetime, now: datetime) -> EventTier:
    """Tier for one timestamp; boundaries use strict '<' so equality stays in the newer tier."""
    hot_threshold, warm_threshold = tier_thresholds(now)
    if timestamp < warm_threshold:
        return EventTier.cold
    if timestamp < hot_threshold:
        return EventTier.warm
    return EventTier.hot


def update_tiers(db, now: datetime) -> None:
    """Recompute the tier column of the whole events table."""
    hot_threshold, warm_threshold = tier_thresholds(now)
    db.execute(
        update(Event).values(
            tier=case(
                (Event.timestamp < warm_threshold, EventTier.cold.value),
                (Event.timestamp < hot_threshold, EventTier.warm.value),
                else_=EventTier.hot.value,
            )
        ).execution_options(synchronize_session=False)
    )


def tier_counts(db) -> dict:
    """Number of events per tier, across all agents."""
    counts = {tier.value: 0 for tier in EventTier}
    for tier, count in db.query(Event.tier, func.count(Event.pk)).group_by(Event.tier).all():
        counts[tier.value] = count
    return counts


def run_tiering(store) -> dict:
    """Standalone tiering pass in its own transaction."""
    with store.write_lock, store.session_scope() as db:
        update_tiers(db, store.now())
        counts = tier_counts(db)
    logger.info("tiers_updated", extra={"tier_counts": counts})
    return counts
