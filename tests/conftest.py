"""
Shared in-memory reference data for the engine tests.

The freight sheet below is small enough to check by hand:

  row  sku  origin  destination           load  freight  cost/unit
  1    S1   GFC     Saudi Arabia           100     500      5.0
  2    S1   KFC     KSA FS                 200     600      3.0
  3    S2   GFC     Saudi Arabia           100     700      7.0
  4    S1   GFC     Kuwait                  50     100      2.0
  5    S1   NFC     United Arab Emirates    10     120     12.0
  6    S1   GFC     United Arab Emirates   100     900      9.0
  7-11 defective rows (Missing, zero load, blank SKU, text, negative)

  origin-destination averages: GFC/KSA 6.0, KFC/KSA 3.0, GFC/Kuwait 2.0,
                               NFC/UAE 12.0, GFC/UAE 9.0
  destination averages: KSA 5.0, Kuwait 2.0, UAE 10.5 -> ceiling 10.5
"""

import pandas as pd
import pytest

from primdist.data_loader import ReferenceData

FREIGHT_ROWS = [
    ("S1", "GFC", "Saudi Arabia", "100", "500"),
    ("S1", "KFC", "KSA FS", "200", "600"),
    ("S2", "GFC", "Saudi Arabia", "100", "700"),
    ("S1", "GFC", "Kuwait", "50", "100"),
    ("S1", "NFC", "United Arab Emirates", "10", "120"),
    ("S1", "GFC", "United Arab Emirates", "100", "900"),
    ("S3", "GFC", "KSA", "Missing", "100"),
    ("S3", "GFC", "KSA", "0", "100"),
    ("", "GFC", "KSA", "10", "100"),
    ("S3", "GFC", "KSA", "10", "abc"),
    ("S3", "GFC", "KSA", "-5", "100"),
]

FREIGHT_COLUMNS = ["sku_code", "origin", "destination", "truck_load", "truck_freight"]


def freight_frame(rows=FREIGHT_ROWS):
    return pd.DataFrame(rows, columns=FREIGHT_COLUMNS)


def reference_frames(**overrides):
    """Default frame set for ReferenceData.from_frames; any table can be overridden."""
    frames = {
        "freight": freight_frame(),
        "rm_prices": pd.DataFrame(
            [("GFC", "S1", "10"), ("KFC", "S1", "8")],
            columns=["factory", "sku_code", "average_rm_price"],
        ),
        "overheads": pd.DataFrame(
            [("GFC", "S1", "2"), ("KFC", "S1", "1")],
            columns=["factory", "sku_code", "overhead_usd"],
        ),
        "customs_rates": pd.DataFrame(
            [("markup_pct", "0.1"), ("duty_pct", "0.05")],
            columns=["parameter", "value"],
        ),
        "capacity": pd.DataFrame(
            [("S1", "GFC", "100"), ("S1", "KFC", "50"), ("S1", "NFC", "0"),
             ("S2", "GFC", "0")],
            columns=["sku_code", "factory", "capacity"],
        ),
        "restrictions": pd.DataFrame(
            [("All", "Lane closed", "All", "KFC", "United Arab Emirates")],
            columns=["sku_code", "description", "month", "origin_factory",
                     "destination_country"],
        ),
        "demand": pd.DataFrame(
            [("KSA", "S1", "01", "NFC", "Yes"),
             ("Kuwait", "S1", "01", "KFC", "No"),
             ("KSA", "S1", "02", "NFC", "No"),
             ("Kuwait", "S2", "01", "KFC", "No"),
             ("Kuwait", "S3", "01", "KFC", "No")],
            columns=["country", "sku_code", "month", "origin", "customs"],
        ),
        "item_master": pd.DataFrame(
            [("S1", "2.5")],
            columns=["sku_code", "unit_weight"],
        ),
    }
    frames.update(overrides)
    return frames


@pytest.fixture
def reference():
    return ReferenceData.from_frames(**reference_frames())
