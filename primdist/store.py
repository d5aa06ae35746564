"""
Route store — the primary distribution table, one frame per upload batch.

A batch is only ever written whole: ``replace_batch`` swaps in a complete
frame (delete-then-insert), so readers never see a half-generated batch.
Quantity edits go through ``update_quantity``, which enforces
0 <= qty <= max_qty and re-derives weight, duty and row cost.
"""

import logging
import math
import threading
from dataclasses import asdict, dataclass, fields, replace

import pandas as pd

from primdist.errors import InvalidQuantityError, UnknownBatchError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Route:
    """One (warehouse, factory, SKU, month) lane of the distribution table."""
    warehouse: str
    factory: str
    country: str
    sku_code: str
    month: int
    cost_per_unit: float
    custom_cost_per_unit: float
    max_qty: int
    unit_weight: float
    cost_source: str
    quantity: float = 0.0
    weight: float = 0.0
    custom_duty: float = 0.0
    row_cost: float = 0.0
    positive_check: bool = True
    within_max_check: bool = True

    def derived(self) -> "Route":
        """Return a copy with weight, duty, row cost and bound checks recomputed."""
        qty = self.quantity
        return replace(
            self,
            weight=qty * self.unit_weight,
            custom_duty=qty * self.custom_cost_per_unit,
            row_cost=qty * self.cost_per_unit,
            positive_check=qty >= 0,
            within_max_check=qty <= self.max_qty,
        )


ROUTE_COLUMNS = [f.name for f in fields(Route)]


def routes_to_frame(routes) -> pd.DataFrame:
    return pd.DataFrame([asdict(r) for r in routes], columns=ROUTE_COLUMNS)


def frame_to_routes(frame: pd.DataFrame) -> list[Route]:
    routes = []
    for row in frame[ROUTE_COLUMNS].to_dict("records"):
        row["month"] = int(row["month"])
        row["max_qty"] = int(row["max_qty"])
        row["positive_check"] = bool(row["positive_check"])
        row["within_max_check"] = bool(row["within_max_check"])
        routes.append(Route(**row))
    return routes


class RouteStore:
    """In-memory distribution tables keyed by batch id."""

    def __init__(self):
        self._batches: dict[str, pd.DataFrame] = {}
        self._lock = threading.Lock()

    def batches(self) -> list[str]:
        return sorted(self._batches)

    def __contains__(self, batch_id):
        return batch_id in self._batches

    def replace_batch(self, batch_id: str, routes) -> int:
        frame = routes_to_frame(routes)
        with self._lock:
            self._batches[batch_id] = frame
        logger.info("Stored %d routes for batch %s", len(frame), batch_id)
        return len(frame)

    def delete_batch(self, batch_id: str) -> int:
        with self._lock:
            frame = self._batches.pop(batch_id, None)
        count = 0 if frame is None else len(frame)
        logger.info("Deleted %d routes for batch %s", count, batch_id)
        return count

    def load(self, batch_id: str) -> pd.DataFrame:
        """Copy of a batch's table, in generation order."""
        frame = self._batches.get(batch_id)
        if frame is None:
            raise UnknownBatchError(f"No routes generated for batch {batch_id}")
        return frame.copy()

    def routes(self, batch_id: str) -> list[Route]:
        return frame_to_routes(self.load(batch_id))

    # ── Filters ──────────────────────────────────────────────────────────

    def by_sku(self, batch_id: str, sku_code: str) -> pd.DataFrame:
        frame = self.load(batch_id)
        subset = frame[frame["sku_code"] == sku_code]
        return subset.sort_values(["month", "factory", "warehouse"]).reset_index(drop=True)

    def by_factory(self, batch_id: str, factory: str) -> pd.DataFrame:
        frame = self.load(batch_id)
        subset = frame[frame["factory"] == factory]
        return subset.sort_values(["sku_code", "month", "warehouse"]).reset_index(drop=True)

    def by_warehouse(self, batch_id: str, warehouse: str) -> pd.DataFrame:
        frame = self.load(batch_id)
        subset = frame[frame["warehouse"] == warehouse]
        return subset.sort_values(["sku_code", "month", "factory"]).reset_index(drop=True)

    # ── Edits ────────────────────────────────────────────────────────────

    def update_quantity(self, batch_id, warehouse, factory, sku_code, month, qty) -> Route:
        """Set one route's quantity and re-derive its dependent fields."""
        with self._lock:
            frame = self._batches.get(batch_id)
            if frame is None:
                raise UnknownBatchError(f"No routes generated for batch {batch_id}")
            mask = (
                (frame["warehouse"] == warehouse)
                & (frame["factory"] == factory)
                & (frame["sku_code"] == sku_code)
                & (frame["month"] == int(month))
            )
            if not mask.any():
                raise KeyError((warehouse, factory, sku_code, month))
            idx = frame.index[mask][0]
            route = frame_to_routes(frame.loc[[idx]])[0]
            if not math.isfinite(qty):
                raise InvalidQuantityError(f"Quantity must be a finite number: {qty}")
            if qty < 0:
                raise InvalidQuantityError(f"Quantity cannot be negative: {qty}")
            if qty > route.max_qty:
                raise InvalidQuantityError(
                    f"Quantity {qty} exceeds max_qty {route.max_qty} for {warehouse}/{factory}"
                )
            updated = replace(route, quantity=float(qty)).derived()
            for column, value in asdict(updated).items():
                frame.at[idx, column] = value
        return updated

    # ── Reporting ────────────────────────────────────────────────────────

    def summary(self, batch_id: str) -> dict:
        frame = self.load(batch_id)
        return {
            "total_records": len(frame),
            "unique_skus": frame["sku_code"].nunique(),
            "unique_factories": frame["factory"].nunique(),
            "unique_warehouses": frame["warehouse"].nunique(),
            "unique_months": frame["month"].nunique(),
            "total_quantity": float(frame["quantity"].sum()),
            "total_weight": float(frame["weight"].sum()),
            "total_custom_duty": float(frame["custom_duty"].sum()),
            "total_row_cost": float(frame["row_cost"].sum()),
            "avg_cost_per_unit": float(frame["cost_per_unit"].mean()) if len(frame) else 0.0,
        }
