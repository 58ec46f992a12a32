"""Retention sweep: age-based pruning of projection records."""

from datetime import datetime, timedelta

import structlog

from app.services.uptime.projection import ProjectionStore

logger = structlog.get_logger()


def sweep(store: ProjectionStore, now: datetime, max_age: timedelta) -> int:
    """Drop every record older than ``now - max_age``. Returns the number removed.

    The record that opened the current status is pruned like any other, so a
    long-lived status can lose its anchor.
    """
    cutoff = now - max_age
    total_removed = 0
    for projection in store:
        removed = store.prune_before(projection.service_name, cutoff)
        if removed:
            logger.debug("uptime_records_pruned", service=projection.service_name, removed=removed)
        total_removed += removed

    if total_removed:
        logger.info("uptime_cleanup", removed=total_removed, cutoff=cutoff.isoformat())
    return total_removed
