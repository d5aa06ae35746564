"""
Customs duty per unit for finished goods entering the duty-levying country.

  duty = (avg RM price + freight cost + factory overhead)
         x (1 + markup %) x duty %

rounded half-up to 4 decimals. The formula is only reached when customs is
required, the origin factory is not the duty-exempt meat/poultry plant
and the destination is the single duty-levying country; otherwise the
duty is 0.

Reference values that are absent default to 0 and are logged once per
key, so missing customs data never blocks a batch.
"""

import logging
import math
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from primdist.sites import (
    DUTY_COUNTRY,
    DUTY_EXEMPT_FACTORY,
    is_missing,
    normalize_country,
    warehouse_to_factory,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CustomsInputs:
    """Every input the duty formula reads for one (SKU, factory)."""
    sku_code: str
    factory: str
    average_rm_price: float
    factory_overhead_usd: float
    markup_pct: float
    duty_pct: float


@dataclass(frozen=True)
class CustomsTables:
    """Static customs reference tables, loaded once per batch.

    ``markup_pct`` / ``duty_pct`` are None when the sheet did not supply
    them; they then count as 0.
    """
    rm_prices: Mapping[tuple, float] = field(default_factory=lambda: MappingProxyType({}))
    overheads: Mapping[tuple, float] = field(default_factory=lambda: MappingProxyType({}))
    markup_pct: float | None = None
    duty_pct: float | None = None


def is_customs_required(flag) -> bool:
    """Accept booleans and the sheet's "Yes"/"No" strings."""
    if isinstance(flag, bool):
        return flag
    if is_missing(flag):
        return False
    return str(flag).strip().lower() in ("yes", "y", "true", "1")


def round_half_up(value: float, decimals: int) -> float:
    """Scale, add one half and floor, so 0.00015 rounds to 0.0002 at 4 places."""
    scale = 10 ** decimals
    return math.floor(value * scale + 0.5) / scale


class CustomsDutyCalculator:
    """Pure duty calculation over one CustomsTables snapshot."""

    def __init__(self, tables: CustomsTables, decimals: int = 4):
        self.tables = tables
        self.decimals = decimals
        self._warned: set = set()
        self._warn_lock = threading.Lock()

    def _warn_once(self, key, message, *args):
        with self._warn_lock:
            if key in self._warned:
                return
            self._warned.add(key)
        logger.warning(message, *args)

    def _lookup(self, table: Mapping[tuple, float], name: str, sku, factory) -> float:
        key = (str(sku).strip(), warehouse_to_factory(factory))
        value = table.get(key)
        if value is None:
            self._warn_once((name, key), "No %s for sku=%s factory=%s; using 0", name, *key)
            return 0.0
        return value

    def _pct(self, value, name: str) -> float:
        if value is None:
            self._warn_once(name, "No %s configured; using 0", name)
            return 0.0
        return value

    def inputs(self, sku, factory) -> CustomsInputs:
        """Collect the formula inputs for (sku, factory), defaulting gaps to 0."""
        return CustomsInputs(
            sku_code=str(sku).strip(),
            factory=warehouse_to_factory(factory),
            average_rm_price=self._lookup(self.tables.rm_prices, "average RM price", sku, factory),
            factory_overhead_usd=self._lookup(self.tables.overheads, "factory overhead", sku, factory),
            markup_pct=self._pct(self.tables.markup_pct, "markup percentage"),
            duty_pct=self._pct(self.tables.duty_pct, "customs duty percentage"),
        )

    def compute(self, sku, factory, freight_cost, country, customs_required) -> float:
        if not is_customs_required(customs_required):
            return 0.0
        if warehouse_to_factory(factory) == DUTY_EXEMPT_FACTORY:
            return 0.0
        if normalize_country(country) != DUTY_COUNTRY:
            return 0.0

        inp = self.inputs(sku, factory)
        freight = freight_cost if freight_cost and freight_cost > 0 else 0.0
        base = inp.average_rm_price + freight + inp.factory_overhead_usd
        with_markup = base * (1 + inp.markup_pct)
        duty = with_markup * inp.duty_pct
        return max(0.0, round_half_up(duty, self.decimals))
