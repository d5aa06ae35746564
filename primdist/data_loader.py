"""
Load distribution reference tables and freeze them into a batch snapshot.

Reads up to 8 CSV files from data/ into pandas DataFrames (every column
as text, so SKU codes keep their leading zeros and sheet sentinels such as
"Missing" survive until validation). ``snapshot()`` then compiles the
frames into the immutable lookups one generation pass threads through
every call: freight index, cost resolver, duty calculator, capacity
filter, restriction index and per-SKU attributes.

A missing CSV is treated as an empty table. A CSV without its required
columns raises ReferenceDataError.
"""

import logging
import os
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

import pandas as pd

from primdist.capacity import CapacityFilter
from primdist.config import EngineConfig
from primdist.customs import CustomsDutyCalculator, CustomsTables, is_customs_required
from primdist.errors import ReferenceDataError
from primdist.freight import FreightRateIndex, FreightRecord
from primdist.resolver import CostResolver
from primdist.restrictions import ExportRestrictionIndex
from primdist.sites import FACTORY_WAREHOUSE, is_missing, parse_number, warehouse_to_factory

logger = logging.getLogger(__name__)

# file name -> required columns
TABLES = {
    "freight": ("freight_rates.csv",
                ["sku_code", "origin", "destination", "truck_load", "truck_freight"]),
    "rm_prices": ("rm_prices.csv", ["factory", "sku_code", "average_rm_price"]),
    "overheads": ("factory_overheads.csv", ["factory", "sku_code", "overhead_usd"]),
    "customs_rates": ("customs_rates.csv", ["parameter", "value"]),
    "capacity": ("capacity.csv", ["sku_code", "factory", "capacity"]),
    "restrictions": ("export_restrictions.csv",
                     ["sku_code", "month", "origin_factory", "destination_country"]),
    "demand": ("demand.csv", ["country", "sku_code", "month", "origin", "customs"]),
    "item_master": ("item_master.csv", ["sku_code", "unit_weight"]),
}


def _month(value):
    number = parse_number(value)
    return None if number is None else int(number)


@dataclass(frozen=True)
class ReferenceSnapshot:
    """Everything one generation pass reads. Immutable for the whole pass."""
    config: EngineConfig
    freight_index: FreightRateIndex
    resolver: CostResolver
    customs: CustomsDutyCalculator
    capacity: CapacityFilter
    restrictions: ExportRestrictionIndex
    sku_months: tuple
    customs_required: Mapping[tuple, bool]
    unit_weights: Mapping[str, float]


class ReferenceData:
    """Loads reference CSVs from data/ and provides snapshot/query methods."""

    def __init__(self, data_dir=None):
        if data_dir is None:
            # Default: look for data/ relative to this file's parent directory
            data_dir = os.path.join(os.path.dirname(os.path.dirname(__file__)), "data")
        self._dir = data_dir
        frames = {}
        for name, (filename, _) in TABLES.items():
            path = os.path.join(data_dir, filename)
            if os.path.exists(path):
                frames[name] = pd.read_csv(path, dtype=str, keep_default_na=False)
            else:
                logger.warning("Reference table %s not found in %s; treating as empty",
                               filename, data_dir)
        self._set_frames(frames)

    @classmethod
    def from_frames(cls, **frames: pd.DataFrame) -> "ReferenceData":
        """Build directly from DataFrames keyed like TABLES (tests, in-memory callers)."""
        data = cls.__new__(cls)
        data._dir = None
        data._set_frames(frames)
        return data

    def _set_frames(self, frames):
        for name, (filename, columns) in TABLES.items():
            frame = frames.get(name)
            if frame is None:
                frame = pd.DataFrame(columns=columns)
            missing = [c for c in columns if c not in frame.columns]
            if missing:
                raise ReferenceDataError(f"{filename} is missing columns {missing}")
            setattr(self, name, frame.reset_index(drop=True))

    # ── Raw table accessors ───────────────────────────────────────────────

    def freight_records(self) -> list[FreightRecord]:
        return [
            FreightRecord(r.sku_code, r.origin, r.destination, r.truck_load, r.truck_freight)
            for r in self.freight.itertuples(index=False)
        ]

    def customs_tables(self) -> CustomsTables:
        def keyed(frame, column):
            table = {}
            for factory, sku, value in zip(frame["factory"], frame["sku_code"], frame[column]):
                number = parse_number(value)
                if is_missing(sku) or is_missing(factory) or number is None:
                    continue
                # First row wins, as the sheet lookup takes the topmost match.
                table.setdefault((str(sku).strip(), warehouse_to_factory(factory)), number)
            return MappingProxyType(table)

        params = {
            str(p).strip().lower(): parse_number(v)
            for p, v in zip(self.customs_rates["parameter"], self.customs_rates["value"])
        }
        return CustomsTables(
            rm_prices=keyed(self.rm_prices, "average_rm_price"),
            overheads=keyed(self.overheads, "overhead_usd"),
            markup_pct=params.get("markup_pct"),
            duty_pct=params.get("duty_pct"),
        )

    def origin_hints(self) -> dict[str, frozenset]:
        """SKU -> factories named as the demand origin (excluding "Other")."""
        hints: dict[str, set] = {}
        for sku, origin in zip(self.demand["sku_code"], self.demand["origin"]):
            if is_missing(sku) or is_missing(origin):
                continue
            plt = warehouse_to_factory(origin)
            if plt in FACTORY_WAREHOUSE:
                hints.setdefault(str(sku).strip(), set()).add(plt)
        return {sku: frozenset(f) for sku, f in hints.items()}

    def capacity_filter(self) -> CapacityFilter:
        rows = zip(self.capacity["sku_code"], self.capacity["factory"], self.capacity["capacity"])
        return CapacityFilter.from_rows(rows, origin_hints=self.origin_hints())

    def restriction_index(self, horizon_months) -> ExportRestrictionIndex:
        frame = self.restrictions
        rows = zip(frame["sku_code"], frame["origin_factory"],
                   frame["destination_country"], frame["month"])
        return ExportRestrictionIndex.build(rows, horizon_months)

    def sku_months(self) -> tuple:
        """Distinct (sku, month) pairs needing routes, sorted."""
        pairs = set()
        dropped = 0
        for sku, month in zip(self.demand["sku_code"], self.demand["month"]):
            m = _month(month)
            if is_missing(sku) or m is None:
                dropped += 1
                continue
            pairs.add((str(sku).strip(), m))
        if dropped:
            logger.warning("Dropped %d demand rows without a SKU or month", dropped)
        return tuple(sorted(pairs))

    def customs_flags(self) -> dict[tuple, bool]:
        """(sku, month) -> True when any demand row for it requires customs."""
        flags: dict[tuple, bool] = {}
        for sku, month, customs in zip(self.demand["sku_code"], self.demand["month"],
                                       self.demand["customs"]):
            m = _month(month)
            if is_missing(sku) or m is None:
                continue
            key = (str(sku).strip(), m)
            flags[key] = flags.get(key, False) or is_customs_required(customs)
        return flags

    def unit_weights(self) -> dict[str, float]:
        weights = {}
        for sku, weight in zip(self.item_master["sku_code"], self.item_master["unit_weight"]):
            if is_missing(sku):
                continue
            number = parse_number(weight)
            if number is None or number < 0:
                logger.warning("Unusable unit weight %r for sku=%s; ignored", weight, sku)
                continue
            weights.setdefault(str(sku).strip(), number)
        return weights

    # ── Snapshot ──────────────────────────────────────────────────────────

    def snapshot(self, config: EngineConfig | None = None) -> ReferenceSnapshot:
        """Compile every lookup for one batch pass."""
        config = config or EngineConfig()
        index = FreightRateIndex.build(self.freight_records())
        snap = ReferenceSnapshot(
            config=config,
            freight_index=index,
            resolver=CostResolver(index),
            customs=CustomsDutyCalculator(self.customs_tables(), decimals=config.duty_decimals),
            capacity=self.capacity_filter(),
            restrictions=self.restriction_index(config.horizon_months),
            sku_months=self.sku_months(),
            customs_required=MappingProxyType(self.customs_flags()),
            unit_weights=MappingProxyType(self.unit_weights()),
        )
        for sku in sorted({sku for sku, _ in snap.sku_months} - set(snap.unit_weights)):
            logger.warning("No unit weight for sku=%s; using 0", sku)
        logger.info("Reference snapshot ready: %d SKU-months, %d SKUs with unit weight",
                    len(snap.sku_months), len(snap.unit_weights))
        return snap
