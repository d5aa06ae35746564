"""
Freight rate index — exact lane costs plus three fallback tiers.

Raw freight rows (SKU, origin factory, destination, truck load, truck
freight) are validated, converted to a cost per unit
(freight / load) and compiled once per batch into:

  1. exact_cost:  (country, origin warehouse, sku) -> cost
  2. origin_destination_avg:  (origin factory, country) -> mean cost
  3. destination_avg:  country -> mean cost
  4. global_ceiling:  max of all destination averages (0 with no data)

Averages are plain arithmetic means of the per-record costs, not
freight-weighted. The index is immutable after build().
"""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping, NamedTuple, Optional

import numpy as np

from primdist.sites import (
    factory_to_warehouse,
    is_missing,
    normalize_country,
    parse_number,
    warehouse_to_factory,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FreightRecord:
    """One raw row from the freight reference sheet. Values are unvalidated."""
    sku_code: object
    origin_factory: object
    destination_country: object
    truck_load_units: object
    truck_freight_amount: object


class LaneKey(NamedTuple):
    """Composite key for an exact lane cost."""
    country: str
    warehouse: str
    sku: str

    @classmethod
    def of(cls, country, warehouse, sku) -> "LaneKey":
        """Build a key with the same normalization used at load time."""
        return cls(
            normalize_country(country),
            factory_to_warehouse(warehouse),
            str(sku).strip(),
        )


class OriginDestinationKey(NamedTuple):
    factory: str
    country: str


@dataclass(frozen=True)
class FallbackAverages:
    origin_destination_avg: Mapping[OriginDestinationKey, float] = field(
        default_factory=lambda: MappingProxyType({}))
    destination_avg: Mapping[str, float] = field(
        default_factory=lambda: MappingProxyType({}))
    global_ceiling: float = 0.0


def _positive_number(value) -> Optional[float]:
    """Parse a strictly positive finite number, or None."""
    number = parse_number(value)
    if number is None or number <= 0:
        return None
    return number


def record_cost(record: FreightRecord) -> Optional[float]:
    """Cost per unit for a valid record, None when the record must be discarded."""
    for value in (record.sku_code, record.origin_factory, record.destination_country):
        if is_missing(value):
            return None
    load = _positive_number(record.truck_load_units)
    freight = _positive_number(record.truck_freight_amount)
    if load is None or freight is None:
        return None
    return freight / load


class FreightRateIndex:
    """Immutable lookup structures compiled from one batch of freight rows."""

    def __init__(self, exact_cost: Mapping[LaneKey, float], fallbacks: FallbackAverages,
                 discarded: int = 0):
        self.exact_cost = MappingProxyType(dict(exact_cost))
        self.fallbacks = fallbacks
        self.discarded = discarded

    @classmethod
    def empty(cls) -> "FreightRateIndex":
        return cls({}, FallbackAverages())

    @classmethod
    def build(cls, records: Iterable[FreightRecord]) -> "FreightRateIndex":
        exact: dict[LaneKey, float] = {}
        od_buckets: dict[OriginDestinationKey, list[float]] = {}
        dest_buckets: dict[str, list[float]] = {}
        discarded = 0

        for record in records:
            cost = record_cost(record)
            if cost is None:
                discarded += 1
                logger.debug("Discarded freight record %s", record)
                continue

            key = LaneKey.of(record.destination_country, record.origin_factory, record.sku_code)
            # Last write wins on duplicate lanes.
            exact[key] = cost

            od_key = OriginDestinationKey(warehouse_to_factory(key.warehouse), key.country)
            od_buckets.setdefault(od_key, []).append(cost)
            dest_buckets.setdefault(key.country, []).append(cost)

        od_avg = {k: float(np.mean(v)) for k, v in od_buckets.items()}
        dest_avg = {k: float(np.mean(v)) for k, v in dest_buckets.items()}
        ceiling = max(dest_avg.values()) if dest_avg else 0.0

        fallbacks = FallbackAverages(
            origin_destination_avg=MappingProxyType(od_avg),
            destination_avg=MappingProxyType(dest_avg),
            global_ceiling=ceiling,
        )
        logger.info(
            "Freight index built: %d exact lanes, %d origin-destination averages, "
            "%d destination averages, ceiling %.4f (%d records discarded)",
            len(exact), len(od_avg), len(dest_avg), ceiling, discarded,
        )
        return cls(exact, fallbacks, discarded)

    # ── Lookups (each returns None on a miss) ─────────────────────────────

    def exact(self, country, warehouse, sku) -> Optional[float]:
        return self.exact_cost.get(LaneKey.of(country, warehouse, sku))

    def origin_destination(self, factory, country) -> Optional[float]:
        key = OriginDestinationKey(warehouse_to_factory(factory), normalize_country(country))
        return self.fallbacks.origin_destination_avg.get(key)

    def destination(self, country) -> Optional[float]:
        return self.fallbacks.destination_avg.get(normalize_country(country))

    @property
    def global_ceiling(self) -> float:
        return self.fallbacks.global_ceiling

    def summary(self) -> dict:
        return {
            "exact_lanes": len(self.exact_cost),
            "origin_destination_pairs": len(self.fallbacks.origin_destination_avg),
            "destination_averages": len(self.fallbacks.destination_avg),
            "global_ceiling": self.global_ceiling,
            "discarded_records": self.discarded,
        }
