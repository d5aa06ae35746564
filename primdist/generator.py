"""
Distribution table generator.

Expands every demand (SKU, month) pair into routes:

  - one unassigned route (warehouse X, factory X), always
  - one route per eligible factory x destination warehouse
    (GFCM, KFCM, NFCM), where eligible = capacity > 0

Each route gets a cost per unit from the CostResolver, a customs cost per
unit from the CustomsDutyCalculator, and a max_qty from the lane policy
(10^10, or 0 for disallowed pairings), forced to 0 when an export
restriction blocks it. Quantity starts at 0; weight, duty and row cost
follow from it.

Generation is delete-then-insert per batch id: the old batch is dropped
first and the new table is stored only once every (SKU, month) unit has
finished, so a failed pass leaves no partial rows behind.

Data flow: ReferenceData.snapshot() -> build_routes() -> RouteStore
"""

import logging
import math
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from primdist.config import EngineConfig
from primdist.data_loader import ReferenceData, ReferenceSnapshot
from primdist.errors import BatchGenerationError
from primdist.resolver import CostQuery
from primdist.sites import (
    DESTINATION_WAREHOUSES,
    UNASSIGNED,
    WAREHOUSE_COUNTRY,
    factory_to_warehouse,
    max_qty_policy,
)
from primdist.store import Route, RouteStore

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    """Outcome of one generate() or recompute() pass."""
    batch_id: str
    route_count: int = 0
    restricted_routes: int = 0
    disallowed_routes: int = 0
    sku_months_without_factory: int = 0
    cost_sources: dict = field(default_factory=dict)


def clamp_quantity(quantity, max_qty) -> float:
    """Force a carried quantity into [0, max_qty]; non-finite values become 0."""
    qty = float(quantity)
    if not math.isfinite(qty):
        return 0.0
    return min(max(qty, 0.0), float(max_qty))


def price_route(snapshot: ReferenceSnapshot, warehouse, factory, sku, month,
                quantity: float = 0.0) -> Route:
    """Build one fully priced route.

    A route whose cost or duty cannot be worked out keeps cost/duty 0; the
    problem is logged and the batch carries on.
    """
    country = WAREHOUSE_COUNTRY.get(warehouse, UNASSIGNED)
    unit_weight = snapshot.unit_weights.get(sku, 0.0)
    try:
        source, cost = snapshot.resolver.match(
            CostQuery.of(country, factory_to_warehouse(factory), sku, warehouse)
        )
        duty = snapshot.customs.compute(
            sku, factory, cost, country, snapshot.customs_required.get((sku, month), False)
        )
    except Exception:
        logger.warning("Could not price route %s/%s sku=%s month=%s; cost and duty set to 0",
                       warehouse, factory, sku, month, exc_info=True)
        source, cost, duty = "error", 0.0, 0.0

    if warehouse == UNASSIGNED:
        max_qty = snapshot.config.unbounded_max_qty
    elif snapshot.restrictions.is_restricted(sku, factory, country, month):
        max_qty = 0
    else:
        max_qty = max_qty_policy(warehouse, factory, snapshot.config.unbounded_max_qty)

    route = Route(
        warehouse=warehouse,
        factory=factory,
        country=country,
        sku_code=sku,
        month=int(month),
        cost_per_unit=cost,
        custom_cost_per_unit=duty,
        max_qty=max_qty,
        unit_weight=unit_weight,
        cost_source=source,
        quantity=clamp_quantity(quantity, max_qty),
    )
    return route.derived()


def expand_unit(snapshot: ReferenceSnapshot, sku: str, month: int) -> list[Route]:
    """All routes for one (SKU, month): the unassigned route, then factory x warehouse."""
    routes = [price_route(snapshot, UNASSIGNED, UNASSIGNED, sku, month)]
    for factory in sorted(snapshot.capacity.eligible_factories(sku)):
        for warehouse in DESTINATION_WAREHOUSES:
            routes.append(price_route(snapshot, warehouse, factory, sku, month))
    return routes


class DistributionTableGenerator:
    """Generates and recomputes distribution tables for upload batches."""

    def __init__(self, reference: ReferenceData, store: RouteStore | None = None,
                 config: EngineConfig | None = None):
        self.reference = reference
        self.store = store if store is not None else RouteStore()
        self.config = config or EngineConfig()

    def build_routes(self, snapshot: ReferenceSnapshot) -> list[Route]:
        units = snapshot.sku_months
        if self.config.workers > 1:
            # map() keeps unit order, so the table is identical to a serial run.
            with ThreadPoolExecutor(max_workers=self.config.workers) as executor:
                chunks = list(executor.map(lambda u: expand_unit(snapshot, *u), units))
        else:
            chunks = [expand_unit(snapshot, sku, month) for sku, month in units]
        return [route for chunk in chunks for route in chunk]

    def generate(self, batch_id: str) -> GenerationResult:
        """Regenerate the whole table for ``batch_id`` from the current reference data."""
        logger.info("Generating distribution table for batch %s", batch_id)
        self.store.delete_batch(batch_id)
        try:
            snapshot = self.reference.snapshot(self.config)
            routes = self.build_routes(snapshot)
        except Exception as exc:
            logger.exception("Generation failed for batch %s; partial output discarded", batch_id)
            raise BatchGenerationError(batch_id, str(exc)) from exc

        self.store.replace_batch(batch_id, routes)
        result = self._result(batch_id, routes)
        result.sku_months_without_factory = sum(
            1 for sku, _ in snapshot.sku_months if not snapshot.capacity.eligible_factories(sku)
        )
        if result.sku_months_without_factory:
            logger.warning("%d SKU-months have no eligible factory; only unassigned routes emitted",
                           result.sku_months_without_factory)
        logger.info("Batch %s: %d routes (%d export-restricted, %d disallowed pairings)",
                    batch_id, result.route_count, result.restricted_routes,
                    result.disallowed_routes)
        return result

    def recompute(self, batch_id: str) -> GenerationResult:
        """Re-derive cost, duty and bounds on the stored rows without re-expanding.

        Quantities are kept, clamped into [0, max_qty].
        """
        existing = self.store.routes(batch_id)
        logger.info("Recomputing %d routes for batch %s", len(existing), batch_id)
        try:
            snapshot = self.reference.snapshot(self.config)
            routes = [
                price_route(snapshot, r.warehouse, r.factory, r.sku_code, r.month, r.quantity)
                for r in existing
            ]
        except Exception as exc:
            logger.exception("Recompute failed for batch %s; stored table left unchanged", batch_id)
            raise BatchGenerationError(batch_id, str(exc)) from exc

        self.store.replace_batch(batch_id, routes)
        return self._result(batch_id, routes)

    @staticmethod
    def _result(batch_id: str, routes: list[Route]) -> GenerationResult:
        sources = Counter(r.cost_source for r in routes)
        restricted = disallowed = 0
        for r in routes:
            if r.max_qty != 0 or r.warehouse == UNASSIGNED:
                continue
            # A disallowed pairing is zero before any restriction applies.
            if max_qty_policy(r.warehouse, r.factory) == 0:
                disallowed += 1
            else:
                restricted += 1
        return GenerationResult(
            batch_id=batch_id,
            route_count=len(routes),
            restricted_routes=restricted,
            disallowed_routes=disallowed,
            cost_sources=dict(sorted(sources.items())),
        )


def generate(reference: ReferenceData, batch_id: str, store: RouteStore | None = None,
             config: EngineConfig | None = None) -> dict:
    """Regenerate ``batch_id`` and report how many routes were written."""
    result = DistributionTableGenerator(reference, store, config).generate(batch_id)
    return {"route_count": result.route_count}


def recompute(reference: ReferenceData, batch_id: str, store: RouteStore,
              config: EngineConfig | None = None) -> dict:
    result = DistributionTableGenerator(reference, store, config).recompute(batch_id)
    return {"route_count": result.route_count}
