"""
Capacity filter — which factories may produce a SKU.

A factory is eligible for a SKU when its capacity for that SKU is > 0.
SKUs listed with zero capacity everywhere have no eligible factory. A SKU
missing from the capacity table altogether is ambiguous; for those the
demand table's origin hint (the factory a market normally buys from)
supplies the candidates instead.
"""

import logging
from types import MappingProxyType
from typing import Iterable, Mapping

from primdist.sites import FACTORY_WAREHOUSE, is_missing, parse_number, warehouse_to_factory

logger = logging.getLogger(__name__)


def _as_capacity(sku, factory, value) -> float:
    number = parse_number(value)
    if number is None:
        if not is_missing(value):
            logger.warning("Unreadable capacity %r for sku=%s factory=%s; using 0",
                           value, sku, factory)
        return 0.0
    return number


class CapacityFilter:
    """Capacity table (sku -> {factory: capacity}) with eligibility queries."""

    def __init__(self, capacity: Mapping[str, Mapping[str, float]],
                 origin_hints: Mapping[str, frozenset] | None = None):
        self.capacity = MappingProxyType({
            sku: MappingProxyType(dict(by_factory)) for sku, by_factory in capacity.items()
        })
        self.origin_hints = MappingProxyType(dict(origin_hints or {}))

    @classmethod
    def from_rows(cls, rows: Iterable[tuple], origin_hints=None) -> "CapacityFilter":
        """Build from (sku, factory, capacity) rows; repeated rows are summed.

        The original capacity sheet splits one plant over several lines
        (chicken and meat lines at NFC), so duplicates add up.
        """
        table: dict[str, dict[str, float]] = {}
        for sku, factory, value in rows:
            if is_missing(sku) or is_missing(factory):
                continue
            by_factory = table.setdefault(str(sku).strip(), {})
            plt = warehouse_to_factory(factory)
            by_factory[plt] = by_factory.get(plt, 0.0) + _as_capacity(sku, plt, value)
        logger.info("Capacity table covers %d SKUs", len(table))
        return cls(table, origin_hints)

    def knows(self, sku) -> bool:
        return str(sku).strip() in self.capacity

    def eligible_factories(self, sku) -> frozenset:
        """Factories with capacity > 0 for ``sku``."""
        key = str(sku).strip()
        by_factory = self.capacity.get(key)
        if by_factory is None:
            hinted = frozenset(
                f for f in self.origin_hints.get(key, frozenset()) if f in FACTORY_WAREHOUSE
            )
            if hinted:
                logger.debug("SKU %s not in capacity table; using origin hint %s", key, sorted(hinted))
            return hinted
        return frozenset(f for f, cap in by_factory.items() if cap > 0)

    def best_factory(self, sku):
        """Factory with the highest capacity for ``sku``, or None."""
        by_factory = self.capacity.get(str(sku).strip(), {})
        ranked = sorted((-cap, f) for f, cap in by_factory.items() if cap > 0)
        return ranked[0][1] if ranked else None

    def statistics(self) -> dict:
        per_factory = {f: 0 for f in FACTORY_WAREHOUSE}
        multi = 0
        for by_factory in self.capacity.values():
            count = 0
            for f, cap in by_factory.items():
                if cap > 0:
                    per_factory[f] = per_factory.get(f, 0) + 1
                    count += 1
            if count > 1:
                multi += 1
        return {
            "total_skus": len(self.capacity),
            "skus_per_factory": per_factory,
            "skus_with_multiple_factories": multi,
        }
