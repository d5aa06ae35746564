"""
Fixed site model for primary distribution.

Factories, their co-located warehouses, the country each warehouse sits
in, and the alias table used to canonicalize destination names. These
are business constants, not reference data: they never change between
upload batches.

Both the freight index and the cost resolver normalize through the
functions below, so a lane keyed at load time is always found again at
query time.
"""

import math

# Pseudo site meaning "not assigned to any factory/warehouse".
UNASSIGNED = "X"

# Factory code -> co-located warehouse code.
FACTORY_WAREHOUSE = {
    "GFC": "GFCM",
    "KFC": "KFCM",
    "NFC": "NFCM",
}

# Reverse lookup: warehouse -> home factory.
WAREHOUSE_FACTORY = {wh: plt for plt, wh in FACTORY_WAREHOUSE.items()}

# The three receiving warehouses every factory-bound route expands over.
DESTINATION_WAREHOUSES = ("GFCM", "KFCM", "NFCM")

# Physical country of each warehouse (canonical country codes).
WAREHOUSE_COUNTRY = {
    "GFCM": "UAE",
    "KFCM": "Kuwait",
    "NFCM": "KSA",
    UNASSIGNED: UNASSIGNED,
}

# Full names and "free stock" variants seen in source sheets.
COUNTRY_ALIASES = {
    "Saudi Arabia": "KSA",
    "KSA FS": "KSA",
    "United Arab Emirates": "UAE",
    "UAE FS": "UAE",
    "Kuwait FS": "Kuwait",
}

# Meat/poultry factory: never pays customs duty.
DUTY_EXEMPT_FACTORY = "NFC"

# The only destination that levies duty on inbound finished goods.
DUTY_COUNTRY = "KSA"

UNBOUNDED_MAX_QTY = 10 ** 10

# (warehouse, factory) pairings where a transfer is structurally disallowed.
DISALLOWED_TRANSFERS = frozenset({
    ("NFCM", "GFC"),
})

MISSING_SENTINELS = frozenset({"", "missing", "n/a", "na", "nan", "none"})

ALL_KEYWORD = "all"


def is_missing(value) -> bool:
    """True for None, NaN, empty strings and the sheet sentinels ("Missing", "N/A")."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return str(value).strip().lower() in MISSING_SENTINELS


def parse_number(value):
    """Finite float value of a sheet cell ("1,200" -> 1200.0), or None.

    Blanks, sentinels, text and non-finite values all give None.
    """
    if is_missing(value):
        return None
    try:
        number = float(str(value).replace(",", "").strip())
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def is_all(value) -> bool:
    return value is not None and str(value).strip().lower() == ALL_KEYWORD


def normalize_country(name) -> str:
    """Canonical country code for a destination name ("Saudi Arabia" -> "KSA")."""
    text = str(name).strip()
    return COUNTRY_ALIASES.get(text, text)


def factory_to_warehouse(code) -> str:
    """Warehouse form of a factory code ("GFC" -> "GFCM").

    Codes already in warehouse form, the unassigned site and unknown codes
    pass through unchanged.
    """
    text = str(code).strip()
    return FACTORY_WAREHOUSE.get(text, text)


def warehouse_to_factory(code) -> str:
    """Home factory of a warehouse ("GFCM" -> "GFC"); factory codes pass through."""
    text = str(code).strip()
    return WAREHOUSE_FACTORY.get(text, text)


def warehouse_country(code):
    """Physical country of a warehouse, or None for an unknown site."""
    return WAREHOUSE_COUNTRY.get(factory_to_warehouse(code))


def max_qty_policy(warehouse: str, factory: str, unbounded: int = UNBOUNDED_MAX_QTY) -> int:
    """Lane ceiling before export restrictions: 0 for disallowed pairings."""
    if (warehouse, warehouse_to_factory(factory)) in DISALLOWED_TRANSFERS:
        return 0
    return unbounded
