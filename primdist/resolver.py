"""
Cost resolver — one transport cost per unit for any lane.

Rules are an ordered table of (name, predicate, resolver) entries,
evaluated top to bottom; the first matching rule answers and no rules are
combined. The three overrides come before every index lookup because they
describe lanes that physically cannot incur freight:

  1. unassigned       origin or destination warehouse is "X"
  2. same_site        destination warehouse is the origin factory's own
  3. same_country     origin warehouse sits in the destination country
  4. exact            exact (country, origin warehouse, sku) rate
  5. origin_destination   average over the origin factory -> country lane
  6. destination      average over every lane into the country
  7. global_ceiling   max destination average (0 with no data)

A query names the lane origin in warehouse form ("GFCM"), matching how the
freight index keys its exact costs.
"""

import logging
from dataclasses import dataclass
from typing import Callable, NamedTuple, Optional

from primdist.freight import FreightRateIndex
from primdist.sites import (
    UNASSIGNED,
    factory_to_warehouse,
    normalize_country,
    warehouse_country,
    warehouse_to_factory,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CostQuery:
    """A normalized lane query."""
    country: str
    warehouse: str
    sku: str
    destination_warehouse: Optional[str] = None

    @classmethod
    def of(cls, country, warehouse, sku, destination_warehouse=None) -> "CostQuery":
        return cls(
            country=normalize_country(country),
            warehouse=factory_to_warehouse(warehouse),
            sku=str(sku).strip(),
            destination_warehouse=(
                None if destination_warehouse is None
                else factory_to_warehouse(destination_warehouse)
            ),
        )

    @property
    def origin_factory(self) -> str:
        return warehouse_to_factory(self.warehouse)


class Rule(NamedTuple):
    name: str
    applies: Callable[[CostQuery, FreightRateIndex], bool]
    cost: Callable[[CostQuery, FreightRateIndex], float]


def _zero(query, index):
    return 0.0


def _is_unassigned(query, index):
    return UNASSIGNED in (query.warehouse, query.destination_warehouse)


def _is_same_site(query, index):
    if query.destination_warehouse is None:
        return False
    return warehouse_to_factory(query.destination_warehouse) == query.origin_factory


def _is_same_country(query, index):
    return warehouse_country(query.warehouse) == query.country


def _has_exact(query, index):
    return index.exact(query.country, query.warehouse, query.sku) is not None


def _has_origin_destination(query, index):
    return index.origin_destination(query.origin_factory, query.country) is not None


def _has_destination(query, index):
    return index.destination(query.country) is not None


DEFAULT_RULES = (
    Rule("unassigned", _is_unassigned, _zero),
    Rule("same_site", _is_same_site, _zero),
    Rule("same_country", _is_same_country, _zero),
    Rule("exact", _has_exact,
         lambda q, idx: idx.exact(q.country, q.warehouse, q.sku)),
    Rule("origin_destination", _has_origin_destination,
         lambda q, idx: idx.origin_destination(q.origin_factory, q.country)),
    Rule("destination", _has_destination,
         lambda q, idx: idx.destination(q.country)),
    Rule("global_ceiling", lambda q, idx: True,
         lambda q, idx: idx.global_ceiling),
)


class CostResolver:
    """Applies the rule table against one immutable freight index."""

    def __init__(self, index: FreightRateIndex, rules: tuple = DEFAULT_RULES):
        self.index = index
        self.rules = tuple(rules)

    def match(self, query: CostQuery) -> tuple[str, float]:
        """Return (rule name, cost) for the first rule that applies."""
        for rule in self.rules:
            if rule.applies(query, self.index):
                return rule.name, max(0.0, float(rule.cost(query, self.index)))
        return "none", 0.0

    def resolve(self, country, warehouse, sku, destination_warehouse=None) -> float:
        """Cost per unit for shipping ``sku`` from ``warehouse`` into ``country``.

        Total: never raises. A query that cannot be normalized or evaluated
        costs 0 and is logged.
        """
        try:
            query = CostQuery.of(country, warehouse, sku, destination_warehouse)
            return self.match(query)[1]
        except Exception:
            logger.warning(
                "Unresolvable lane country=%r warehouse=%r sku=%r; cost set to 0",
                country, warehouse, sku, exc_info=True,
            )
            return 0.0

    def explain(self, country, warehouse, sku, destination_warehouse=None) -> str:
        """Name of the rule that would answer this query."""
        return self.match(CostQuery.of(country, warehouse, sku, destination_warehouse))[0]
