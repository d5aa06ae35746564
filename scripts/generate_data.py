"""
Distribution Reference Data Generator
=====================================
Generates a reproducible sample of the reference workbooks the
distribution engine reads, as CSV files in data/:

  freight_rates.csv         SKU x origin factory x destination truck rates
                            (with a sprinkling of "Missing" cells and zero
                            loads, like the real freight sheet)
  rm_prices.csv             average RM price per (SKU, factory)
  factory_overheads.csv     factory overhead USD per (SKU, factory)
  customs_rates.csv         markup % and duty %
  capacity.csv              capacity per (SKU, factory)
  export_restrictions.csv   sparse blocked lanes ("All" wildcards included)
  demand.csv                market x SKU x month demand with origin hint
  item_master.csv           unit weight per SKU

Usage: python scripts/generate_data.py
"""

import os
import numpy as np
import pandas as pd

# ── Reproducibility ──────────────────────────────────────────────────────────
SEED = 42
rng = np.random.default_rng(SEED)

OUTPUT_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "data")

# ═══════════════════════════════════════════════════════════════════════════════
# 1. REFERENCE DATA
# ═══════════════════════════════════════════════════════════════════════════════

FACTORIES = ["GFC", "KFC", "NFC"]

# Destinations as they appear in the freight sheet (full names on purpose,
# the engine canonicalizes them).
DESTINATIONS = ["United Arab Emirates", "Kuwait", "Saudi Arabia", "Bahrain", "Oman", "Qatar"]

# Demand markets, with the factory each market normally buys from.
MARKETS = {
    "UAE FS": "GFC", "Kuwait": "KFC", "KSA": "NFC",
    "Bahrain": "GFC", "Oman": "GFC", "Qatar": "Other",
}

# Base cost per case by (origin, destination), before per-SKU noise.
LANE_BASE_COST = {
    "GFC": {"United Arab Emirates": 0.8, "Kuwait": 2.6, "Saudi Arabia": 2.2,
            "Bahrain": 1.9, "Oman": 1.4, "Qatar": 1.7},
    "KFC": {"United Arab Emirates": 2.5, "Kuwait": 0.7, "Saudi Arabia": 1.8,
            "Bahrain": 1.6, "Oman": 2.9, "Qatar": 2.0},
    "NFC": {"United Arab Emirates": 2.3, "Kuwait": 1.9, "Saudi Arabia": 0.9,
            "Bahrain": 1.2, "Oman": 2.4, "Qatar": 1.5},
}

N_SKUS = 40
MONTHS = list(range(1, 13))
SKUS = [f"40013{str(i).zfill(5)}" for i in range(1, N_SKUS + 1)]

MARKUP_PCT = 0.10
DUTY_PCT = 0.055


# ═══════════════════════════════════════════════════════════════════════════════
# 2. GENERATORS
# ═══════════════════════════════════════════════════════════════════════════════

def add_noise(value, pct=0.10):
    return value * (1 + rng.uniform(-pct, pct))


def generate_freight_rates():
    """~60% lane coverage per SKU; 3% of rows get a sheet defect."""
    rows = []
    for sku in SKUS:
        for origin in FACTORIES:
            for dest in DESTINATIONS:
                if rng.random() > 0.6:
                    continue
                load = int(rng.choice([800, 1000, 1200, 1500]))
                freight = round(add_noise(LANE_BASE_COST[origin][dest]) * load, 2)
                defect = rng.random()
                if defect < 0.01:
                    load = "Missing"
                elif defect < 0.02:
                    freight = "Missing"
                elif defect < 0.03:
                    load = 0
                rows.append({"sku_code": sku, "origin": origin, "destination": dest,
                             "truck_load": load, "truck_freight": freight})
    return rows


def generate_capacity():
    """Each SKU runs in 1-3 factories; some SKUs only in NFC."""
    rows = []
    for sku in SKUS:
        n = int(rng.integers(1, 4))
        chosen = rng.choice(FACTORIES, size=n, replace=False)
        for factory in FACTORIES:
            cap = round(float(rng.uniform(200, 1200)), 1) if factory in chosen else 0
            rows.append({"sku_code": sku, "factory": factory, "capacity": cap})
    return rows


def generate_customs_tables():
    rm, overhead = [], []
    for sku in SKUS:
        for factory in ["GFC", "KFC"]:
            if rng.random() < 0.9:
                rm.append({"factory": factory, "sku_code": sku,
                           "average_rm_price": round(float(rng.uniform(8, 30)), 4)})
            if rng.random() < 0.9:
                overhead.append({"factory": factory, "sku_code": sku,
                                 "overhead_usd": round(float(rng.uniform(0.5, 4)), 4)})
    return rm, overhead


def generate_restrictions():
    return [
        {"sku_code": "All", "description": "Lane closed", "month": "All",
         "origin_factory": "KFC", "destination_country": "United Arab Emirates"},
        {"sku_code": SKUS[0], "description": "Registration pending", "month": "03",
         "origin_factory": "GFC", "destination_country": "KSA"},
        {"sku_code": SKUS[1], "description": "Seasonal ban", "month": "All",
         "origin_factory": "NFC", "destination_country": "Kuwait"},
    ]


def generate_demand():
    rows = []
    for sku in SKUS:
        markets = rng.choice(list(MARKETS), size=int(rng.integers(1, 4)), replace=False)
        for market in markets:
            customs = "Yes" if market == "KSA" and rng.random() < 0.7 else "No"
            for month in MONTHS:
                rows.append({"country": market, "sku_code": sku, "month": str(month).zfill(2),
                             "origin": MARKETS[market], "customs": customs,
                             "demand_units": int(rng.integers(50, 2000))})
    return rows


def generate_item_master():
    return [{"sku_code": sku, "unit_weight": round(float(rng.uniform(2, 12)), 3)} for sku in SKUS]


# ═══════════════════════════════════════════════════════════════════════════════
# 3. OUTPUT
# ═══════════════════════════════════════════════════════════════════════════════

def write_csv(data, filename, columns=None):
    df = pd.DataFrame(data, columns=columns)
    path = os.path.join(OUTPUT_DIR, filename)
    df.to_csv(path, index=False)
    print(f"  {filename}: {len(df):,} rows")


def main():
    os.makedirs(OUTPUT_DIR, exist_ok=True)
    print("Generating data...")
    rm, overhead = generate_customs_tables()

    write_csv(generate_freight_rates(), "freight_rates.csv",
              ["sku_code", "origin", "destination", "truck_load", "truck_freight"])
    write_csv(rm, "rm_prices.csv", ["factory", "sku_code", "average_rm_price"])
    write_csv(overhead, "factory_overheads.csv", ["factory", "sku_code", "overhead_usd"])
    write_csv([{"parameter": "markup_pct", "value": MARKUP_PCT},
               {"parameter": "duty_pct", "value": DUTY_PCT}],
              "customs_rates.csv", ["parameter", "value"])
    write_csv(generate_capacity(), "capacity.csv", ["sku_code", "factory", "capacity"])
    write_csv(generate_restrictions(), "export_restrictions.csv",
              ["sku_code", "description", "month", "origin_factory", "destination_country"])
    write_csv(generate_demand(), "demand.csv",
              ["country", "sku_code", "month", "origin", "customs", "demand_units"])
    write_csv(generate_item_master(), "item_master.csv", ["sku_code", "unit_weight"])

    print("\nDone!")


if __name__ == "__main__":
    main()
