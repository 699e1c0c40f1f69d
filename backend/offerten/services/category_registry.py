"""
Category registry — ordering of configured categories and reconciliation of
per-quote category entries against the current configuration.
"""
import logging
from typing import Iterable, List, Sequence

from offerten.models.pricing import CategoryConfig, CategoryEntry

logger = logging.getLogger("offerten-engine")


def sort_categories(configs: Iterable[CategoryConfig]) -> List[CategoryConfig]:
    """Order by sort_order; ties keep insertion order (sorted() is stable)."""
    return sorted(configs, key=lambda c: c.sort_order)


def reconcile_entries(
    entries: Sequence[CategoryEntry],
    configs: Sequence[CategoryConfig],
) -> List[CategoryEntry]:
    """
    Align a quote's category entries with the configured categories.

    - one entry per configured category, in config order
    - counts are preserved by category id
    - titles are refreshed from the config
    - entries for removed categories are dropped
    - new categories appear with count 0

    Idempotent: reconciling the result again returns an equal list.
    """
    counts = {}
    for entry in entries:
        # first entry wins if a stale list carries duplicates
        counts.setdefault(entry.category_id, entry.count)

    reconciled = [
        CategoryEntry(category_id=cfg.id, title=cfg.title, count=counts.get(cfg.id, 0))
        for cfg in sort_categories(configs)
    ]

    dropped = set(counts) - {cfg.id for cfg in configs}
    if dropped:
        logger.info(f"Dropped entries for removed categories: {sorted(dropped)}")
    return reconciled


def structure_key(entries: Iterable[CategoryEntry]) -> tuple:
    """Value key for structural change detection (ids and counts, not titles)."""
    return tuple((e.category_id, e.count) for e in entries)
