"""
Test suite for distribution table generation.

Tests cover:
  1. Route expansion (unassigned route, factory x warehouse grid)
  2. Route pricing (cost tiers, duty, lane policy, export restrictions)
  3. Batch lifecycle (delete-then-insert, determinism, failure handling)
  4. Recompute (repricing stored rows, quantity preservation)
  5. Route store (quantity edits, filters, summary)
  6. Lane graph (open / blocked / sole-source lanes)

Fixture data lives in conftest.py. With it the batch holds 19 routes:
S1 in months 1 and 2 (GFC and KFC eligible) gives 7 routes per month,
S2 (zero capacity everywhere) gives only its unassigned route, and S3
(absent from the capacity table, demand origin KFC) gives 4.

Run: python -m pytest tests/test_generator.py -v
"""

from dataclasses import replace

import pandas as pd
import pytest

from conftest import FREIGHT_ROWS, freight_frame, reference_frames
from primdist.config import EngineConfig
from primdist.customs import CustomsDutyCalculator
from primdist.data_loader import ReferenceData
from primdist.errors import BatchGenerationError, InvalidQuantityError, UnknownBatchError
from primdist.generator import DistributionTableGenerator, clamp_quantity, generate, recompute
from primdist.network import LaneGraph
from primdist.store import RouteStore

UNBOUNDED = 10 ** 10


@pytest.fixture
def store():
    return RouteStore()


@pytest.fixture
def generated(reference, store):
    """Store holding batch "B1" generated from the default fixture data."""
    DistributionTableGenerator(reference, store).generate("B1")
    return store


def route(frame, warehouse, factory, sku, month):
    rows = frame[
        (frame["warehouse"] == warehouse) & (frame["factory"] == factory)
        & (frame["sku_code"] == sku) & (frame["month"] == month)
    ]
    assert len(rows) == 1, f"expected one route {warehouse}/{factory}/{sku}/{month}"
    return rows.iloc[0]


def reference_with_freight(rows):
    return ReferenceData.from_frames(**reference_frames(freight=freight_frame(rows)))


# ═══════════════════════════════════════════════════════════════════════════════
# 1. ROUTE EXPANSION
# ═══════════════════════════════════════════════════════════════════════════════

class TestExpansion:
    def test_route_count(self, reference, store):
        result = DistributionTableGenerator(reference, store).generate("B1")
        assert result.route_count == 19
        assert len(store.load("B1")) == 19

    def test_unassigned_route_for_every_sku_month(self, generated):
        frame = generated.load("B1")
        x_routes = frame[frame["warehouse"] == "X"]
        assert sorted(zip(x_routes["sku_code"], x_routes["month"])) == [
            ("S1", 1), ("S1", 2), ("S2", 1), ("S3", 1),
        ]
        assert (x_routes["factory"] == "X").all()
        assert (x_routes["country"] == "X").all()
        assert (x_routes["cost_per_unit"] == 0).all()
        assert (x_routes["custom_cost_per_unit"] == 0).all()
        assert (x_routes["max_qty"] == UNBOUNDED).all()

    def test_unassigned_route_comes_first(self, generated):
        first = generated.load("B1").iloc[0]
        assert (first["warehouse"], first["sku_code"], first["month"]) == ("X", "S1", 1)

    def test_only_eligible_factories_expanded(self, generated):
        frame = generated.load("B1")
        s1 = frame[(frame["sku_code"] == "S1") & (frame["month"] == 1) & (frame["factory"] != "X")]
        assert set(s1["factory"]) == {"GFC", "KFC"}  # NFC has zero capacity
        assert len(s1) == 6
        assert set(s1["warehouse"]) == {"GFCM", "KFCM", "NFCM"}

    def test_sku_without_capacity_gets_unassigned_only(self, reference, store):
        result = DistributionTableGenerator(reference, store).generate("B1")
        assert len(store.by_sku("B1", "S2")) == 1
        assert result.sku_months_without_factory == 1

    def test_origin_hint_for_sku_missing_from_capacity(self, generated):
        s3 = generated.by_sku("B1", "S3")
        assert set(s3["factory"]) == {"X", "KFC"}

    def test_warehouse_country_on_each_route(self, generated):
        frame = generated.load("B1")
        countries = dict(zip(frame["warehouse"], frame["country"]))
        assert countries == {"X": "X", "GFCM": "UAE", "KFCM": "Kuwait", "NFCM": "KSA"}


# ═══════════════════════════════════════════════════════════════════════════════
# 2. ROUTE PRICING
# ═══════════════════════════════════════════════════════════════════════════════

class TestPricing:
    def test_same_site_route_is_free(self, generated):
        frame = generated.load("B1")
        r = route(frame, "GFCM", "GFC", "S1", 1)
        assert r["cost_per_unit"] == 0
        assert r["cost_source"] == "same_site"
        assert route(frame, "KFCM", "KFC", "S3", 1)["cost_per_unit"] == 0

    def test_exact_rate(self, generated):
        frame = generated.load("B1")
        assert route(frame, "KFCM", "GFC", "S1", 1)["cost_per_unit"] == 2.0
        assert route(frame, "NFCM", "KFC", "S1", 2)["cost_per_unit"] == 3.0

    def test_fallback_tiers(self, generated):
        frame = generated.load("B1")
        r = route(frame, "NFCM", "KFC", "S3", 1)
        assert r["cost_source"] == "origin_destination"
        assert r["cost_per_unit"] == pytest.approx(3.0)
        r = route(frame, "GFCM", "KFC", "S1", 1)
        assert r["cost_source"] == "destination"
        assert r["cost_per_unit"] == pytest.approx(10.5)

    def test_duty_only_when_customs_required(self, generated):
        frame = generated.load("B1")
        # month 1 has a "Yes" demand row, month 2 does not
        assert route(frame, "NFCM", "GFC", "S1", 1)["custom_cost_per_unit"] == pytest.approx(0.935)
        assert route(frame, "NFCM", "KFC", "S1", 1)["custom_cost_per_unit"] == pytest.approx(0.66)
        assert route(frame, "NFCM", "KFC", "S1", 2)["custom_cost_per_unit"] == 0

    def test_no_duty_outside_ksa(self, generated):
        frame = generated.load("B1")
        non_ksa = frame[(frame["sku_code"] == "S1") & (frame["month"] == 1)
                        & (frame["country"] != "KSA")]
        assert (non_ksa["custom_cost_per_unit"] == 0).all()

    def test_disallowed_pairing_has_zero_max_qty(self, generated):
        frame = generated.load("B1")
        for month in (1, 2):
            r = route(frame, "NFCM", "GFC", "S1", month)
            assert r["max_qty"] == 0
            assert r["cost_per_unit"] == 5.0  # still priced

    def test_restriction_blocks_without_touching_cost(self, generated):
        frame = generated.load("B1")
        r = route(frame, "GFCM", "KFC", "S3", 1)
        assert r["max_qty"] == 0
        assert r["cost_per_unit"] == pytest.approx(10.5)
        assert route(frame, "KFCM", "KFC", "S3", 1)["max_qty"] == UNBOUNDED

    def test_all_all_restriction_every_month(self):
        frames = reference_frames(
            restrictions=pd.DataFrame(
                [("All", "All", "GFC", "Kuwait")],
                columns=["sku_code", "month", "origin_factory", "destination_country"],
            ),
            demand=pd.DataFrame(
                [("Kuwait", "S1", str(m), "GFC", "No") for m in range(1, 13)],
                columns=["country", "sku_code", "month", "origin", "customs"],
            ),
        )
        store = RouteStore()
        DistributionTableGenerator(ReferenceData.from_frames(**frames), store).generate("B")
        lane = store.by_warehouse("B", "KFCM")
        lane = lane[lane["factory"] == "GFC"]
        assert len(lane) == 12
        assert (lane["max_qty"] == 0).all()
        assert (lane["cost_per_unit"] == 2.0).all()

    def test_every_route_within_bounds(self, generated):
        frame = generated.load("B1")
        assert (frame["cost_per_unit"] >= 0).all()
        assert (frame["custom_cost_per_unit"] >= 0).all()
        assert frame["max_qty"].isin([0, UNBOUNDED]).all()
        assert (frame["quantity"] == 0).all()
        assert frame["positive_check"].all()
        assert frame["within_max_check"].all()

    def test_restricted_and_disallowed_counted_apart(self, reference, store):
        result = DistributionTableGenerator(reference, store).generate("B1")
        # GFCM/KFC for S1 months 1-2 and S3 hit the export restriction
        assert result.restricted_routes == 3
        # NFCM/GFC in months 1-2 is a structurally disallowed pairing
        assert result.disallowed_routes == 2

    def test_cost_source_mix(self, reference, store):
        result = DistributionTableGenerator(reference, store).generate("B1")
        assert result.cost_sources == {
            "destination": 3,
            "exact": 6,
            "origin_destination": 1,
            "same_site": 5,
            "unassigned": 4,
        }

    def test_empty_freight_gives_zero_costs(self, store):
        reference = reference_with_freight([])
        result = DistributionTableGenerator(reference, store).generate("B1")
        frame = store.load("B1")
        assert result.route_count == 19
        assert (frame["cost_per_unit"] == 0).all()
        assert "global_ceiling" in result.cost_sources

    def test_unit_weight_carried(self, generated):
        frame = generated.load("B1")
        assert (frame[frame["sku_code"] == "S1"]["unit_weight"] == 2.5).all()
        assert (frame[frame["sku_code"] == "S3"]["unit_weight"] == 0).all()


# ═══════════════════════════════════════════════════════════════════════════════
# 3. BATCH LIFECYCLE
# ═══════════════════════════════════════════════════════════════════════════════

class TestBatchLifecycle:
    def test_generate_is_deterministic(self, reference):
        first, second = RouteStore(), RouteStore()
        DistributionTableGenerator(reference, first).generate("B1")
        DistributionTableGenerator(reference, second).generate("B1")
        pd.testing.assert_frame_equal(first.load("B1"), second.load("B1"))

    def test_parallel_matches_serial(self, reference):
        serial, parallel = RouteStore(), RouteStore()
        DistributionTableGenerator(reference, serial, EngineConfig(workers=1)).generate("B1")
        DistributionTableGenerator(reference, parallel, EngineConfig(workers=4)).generate("B1")
        pd.testing.assert_frame_equal(serial.load("B1"), parallel.load("B1"))

    def test_regenerate_replaces_previous_rows(self, reference, generated):
        generated.update_quantity("B1", "NFCM", "KFC", "S1", 1, 100)
        DistributionTableGenerator(reference, generated).generate("B1")
        frame = generated.load("B1")
        assert len(frame) == 19
        assert (frame["quantity"] == 0).all()

    def test_batches_are_independent(self, reference, generated):
        DistributionTableGenerator(reference, generated).generate("B2")
        generated.delete_batch("B2")
        assert "B1" in generated
        assert generated.batches() == ["B1"]

    def test_failed_generation_leaves_no_rows(self, reference, generated, monkeypatch):
        def boom(config=None):
            raise RuntimeError("reference tables unreadable")

        monkeypatch.setattr(reference, "snapshot", boom)
        with pytest.raises(BatchGenerationError) as exc_info:
            DistributionTableGenerator(reference, generated).generate("B1")
        assert exc_info.value.batch_id == "B1"
        assert "B1" not in generated

    def test_route_pricing_failure_does_not_abort_batch(self, reference, store, monkeypatch):
        def broken(self, *args, **kwargs):
            raise ValueError("bad duty inputs")

        monkeypatch.setattr(CustomsDutyCalculator, "compute", broken)
        result = DistributionTableGenerator(reference, store).generate("B1")
        frame = store.load("B1")
        assert result.route_count == 19
        assert result.cost_sources == {"error": 19}
        assert (frame["cost_per_unit"] == 0).all()

    def test_module_level_generate(self, reference, store):
        assert generate(reference, "B1", store) == {"route_count": 19}
        assert "B1" in store


# ═══════════════════════════════════════════════════════════════════════════════
# 4. RECOMPUTE
# ═══════════════════════════════════════════════════════════════════════════════

class TestRecompute:
    def test_recompute_reprices_and_keeps_quantity(self, generated):
        generated.update_quantity("B1", "NFCM", "KFC", "S1", 1, 100)
        rows = list(FREIGHT_ROWS)
        rows[1] = ("S1", "KFC", "KSA FS", "200", "800")  # 3.0 -> 4.0
        result = DistributionTableGenerator(reference_with_freight(rows), generated).recompute("B1")

        frame = generated.load("B1")
        r = route(frame, "NFCM", "KFC", "S1", 1)
        assert result.route_count == 19
        assert r["cost_per_unit"] == 4.0
        assert r["quantity"] == 100
        assert r["row_cost"] == pytest.approx(400.0)
        # (8 + 4 + 1) * 1.1 * 0.05 = 0.715 per unit
        assert r["custom_duty"] == pytest.approx(71.5)

    def test_recompute_clamps_to_new_max_qty(self, generated):
        generated.update_quantity("B1", "NFCM", "KFC", "S1", 1, 100)
        frames = reference_frames(restrictions=pd.DataFrame(
            [("All", "All", "KFC", "KSA")],
            columns=["sku_code", "month", "origin_factory", "destination_country"],
        ))
        reference = ReferenceData.from_frames(**frames)
        DistributionTableGenerator(reference, generated).recompute("B1")
        r = route(generated.load("B1"), "NFCM", "KFC", "S1", 1)
        assert r["max_qty"] == 0
        assert r["quantity"] == 0
        assert r["within_max_check"]

    def test_recompute_does_not_re_expand(self, generated):
        # new demand would add routes on generate, but recompute keeps the stored rows
        frames = reference_frames(demand=pd.DataFrame(
            [("KSA", "S9", "05", "GFC", "No")],
            columns=["country", "sku_code", "month", "origin", "customs"],
        ))
        result = recompute(ReferenceData.from_frames(**frames), "B1", generated)
        assert result == {"route_count": 19}
        assert "S9" not in set(generated.load("B1")["sku_code"])

    def test_recompute_zeroes_non_finite_quantity(self, reference, generated):
        routes = [replace(r, quantity=float("nan")) for r in generated.routes("B1")]
        generated.replace_batch("B1", routes)
        DistributionTableGenerator(reference, generated).recompute("B1")
        frame = generated.load("B1")
        assert (frame["quantity"] == 0).all()
        assert frame["positive_check"].all()

    def test_clamp_quantity(self):
        assert clamp_quantity(50, 10) == 10.0
        assert clamp_quantity(-3, 10) == 0.0
        assert clamp_quantity(float("nan"), 10) == 0.0
        assert clamp_quantity(float("inf"), 10) == 0.0

    def test_recompute_unknown_batch(self, reference, store):
        with pytest.raises(UnknownBatchError):
            DistributionTableGenerator(reference, store).recompute("nope")


# ═══════════════════════════════════════════════════════════════════════════════
# 5. ROUTE STORE
# ═══════════════════════════════════════════════════════════════════════════════

class TestRouteStore:
    def test_update_quantity_derives_fields(self, generated):
        updated = generated.update_quantity("B1", "NFCM", "KFC", "S1", 1, 100)
        assert updated.weight == pytest.approx(250.0)
        assert updated.custom_duty == pytest.approx(66.0)
        assert updated.row_cost == pytest.approx(300.0)
        stored = route(generated.load("B1"), "NFCM", "KFC", "S1", 1)
        assert stored["quantity"] == 100
        assert stored["row_cost"] == pytest.approx(300.0)

    def test_negative_quantity_rejected(self, generated):
        with pytest.raises(InvalidQuantityError):
            generated.update_quantity("B1", "NFCM", "KFC", "S1", 1, -1)

    @pytest.mark.parametrize("qty", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_quantity_rejected(self, generated, qty):
        with pytest.raises(InvalidQuantityError):
            generated.update_quantity("B1", "KFCM", "GFC", "S1", 1, qty)
        r = route(generated.load("B1"), "KFCM", "GFC", "S1", 1)
        assert r["quantity"] == 0
        assert r["positive_check"]

    def test_quantity_above_max_rejected(self, generated):
        with pytest.raises(InvalidQuantityError):
            generated.update_quantity("B1", "NFCM", "GFC", "S1", 1, 1)

    def test_unknown_route(self, generated):
        with pytest.raises(KeyError):
            generated.update_quantity("B1", "NFCM", "NFC", "S1", 1, 1)

    def test_unknown_batch(self, store):
        with pytest.raises(UnknownBatchError):
            store.load("nope")
        with pytest.raises(UnknownBatchError):
            store.update_quantity("nope", "X", "X", "S1", 1, 1)

    def test_load_returns_copy(self, generated):
        frame = generated.load("B1")
        frame["quantity"] = 5.0
        assert (generated.load("B1")["quantity"] == 0).all()

    def test_filters(self, generated):
        assert len(generated.by_factory("B1", "KFC")) == 9
        assert len(generated.by_warehouse("B1", "X")) == 4
        s1 = generated.by_sku("B1", "S1")
        assert len(s1) == 14
        assert list(s1["month"]) == sorted(s1["month"])

    def test_summary(self, generated):
        generated.update_quantity("B1", "NFCM", "KFC", "S1", 1, 10)
        summary = generated.summary("B1")
        assert summary["total_records"] == 19
        assert summary["unique_skus"] == 3
        assert summary["unique_factories"] == 3
        assert summary["unique_warehouses"] == 4
        assert summary["unique_months"] == 2
        assert summary["total_quantity"] == 10
        assert summary["total_weight"] == pytest.approx(25.0)
        assert summary["total_row_cost"] == pytest.approx(30.0)

    def test_routes_round_trip_types(self, generated):
        routes = generated.routes("B1")
        assert len(routes) == 19
        assert isinstance(routes[0].month, int)
        assert isinstance(routes[0].max_qty, int)

    def test_delete_batch(self, generated):
        assert generated.delete_batch("B1") == 19
        assert generated.delete_batch("B1") == 0


# ═══════════════════════════════════════════════════════════════════════════════
# 6. LANE GRAPH
# ═══════════════════════════════════════════════════════════════════════════════

class TestLaneGraph:
    @pytest.fixture
    def lanes(self, generated):
        return LaneGraph(generated.load("B1"))

    def test_nodes(self, lanes):
        assert lanes.get_nodes_by_type("factory") == ["factory:GFC", "factory:KFC"]
        assert lanes.get_nodes_by_type("warehouse") == [
            "warehouse:GFCM", "warehouse:KFCM", "warehouse:NFCM",
        ]
        assert lanes.get_nodes_by_type("country") == [
            "country:KSA", "country:Kuwait", "country:UAE",
        ]

    def test_unassigned_route_excluded(self, lanes):
        assert "factory:X" not in lanes.graph
        assert "warehouse:X" not in lanes.graph

    def test_open_and_blocked_lanes(self, lanes):
        assert lanes.open_lanes() == [
            ("GFC", "GFCM"), ("GFC", "KFCM"), ("KFC", "KFCM"), ("KFC", "NFCM"),
        ]
        assert lanes.blocked_lanes() == [("GFC", "NFCM"), ("KFC", "GFCM")]

    def test_sources_and_sole_source(self, lanes):
        assert lanes.sources_for("KFCM") == ["GFC", "KFC"]
        assert lanes.sole_source_warehouses() == {"GFCM": "GFC", "NFCM": "KFC"}

    def test_lane_attributes(self, lanes):
        lane = lanes.lane("KFC", "NFCM")
        assert lane["mean_cost"] == pytest.approx(3.0)
        # duty 0.66 in S1 month 1 only
        assert lane["mean_duty"] == pytest.approx(0.22)
        assert lane["route_months"] == 3
        assert lane["blocked_months"] == 0
        assert lanes.lane("NFC", "NFCM") is None

    def test_empty_batch(self):
        lanes = LaneGraph(pd.DataFrame(columns=["warehouse", "factory", "max_qty",
                                                "cost_per_unit", "custom_cost_per_unit",
                                                "month"]))
        assert lanes.graph.number_of_nodes() == 0
        assert lanes.open_lanes() == []
