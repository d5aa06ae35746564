"""
Export restriction index.

Restriction rows are (SKU or "All", origin factory, destination,
month or "All"). A month of "All" expands to every month of the planning
horizon when the index is built, so queries are plain set lookups. A
route is blocked when a row matches its SKU or the "All" SKU wildcard.

Restrictions only remove eligibility (the generator sets max_qty to 0);
they never touch cost or duty.
"""

import logging
from typing import Iterable, NamedTuple

from primdist.sites import is_all, is_missing, normalize_country, parse_number, warehouse_to_factory

logger = logging.getLogger(__name__)

ALL_SKUS = "All"


class RestrictionKey(NamedTuple):
    sku: str
    factory: str
    country: str
    month: int


def _parse_month(value):
    number = parse_number(value)
    return None if number is None else int(number)


class ExportRestrictionIndex:
    """Frozen set of blocked (sku, factory, country, month) combinations."""

    def __init__(self, keys: Iterable[RestrictionKey] = ()):
        self.keys = frozenset(keys)

    @classmethod
    def build(cls, rows: Iterable[tuple], horizon_months: Iterable[int]) -> "ExportRestrictionIndex":
        """Build from (sku, origin factory, destination, month) rows."""
        horizon = tuple(horizon_months)
        keys = set()
        skipped = 0
        for sku, origin, destination, month in rows:
            if any(is_missing(v) for v in (sku, origin, destination, month)):
                skipped += 1
                continue
            sku_key = ALL_SKUS if is_all(sku) else str(sku).strip()
            factory = warehouse_to_factory(origin)
            country = normalize_country(destination)
            if is_all(month):
                months = horizon
            else:
                parsed = _parse_month(month)
                if parsed is None:
                    skipped += 1
                    logger.debug("Skipped restriction with unreadable month %r", month)
                    continue
                months = (parsed,)
            for m in months:
                keys.add(RestrictionKey(sku_key, factory, country, m))
        logger.info("Export restrictions: %d blocked combinations (%d rows skipped)",
                    len(keys), skipped)
        return cls(keys)

    def is_restricted(self, sku, origin_factory, destination_country, month) -> bool:
        factory = warehouse_to_factory(origin_factory)
        country = normalize_country(destination_country)
        m = int(month)
        return (
            RestrictionKey(str(sku).strip(), factory, country, m) in self.keys
            or RestrictionKey(ALL_SKUS, factory, country, m) in self.keys
        )

    def __len__(self):
        return len(self.keys)
