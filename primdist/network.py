"""
Lane graph — NetworkX DiGraph of a generated distribution table.

Represents factories, warehouses and countries as typed nodes with
edges for primary shipping lanes (SHIPS_TO, factory -> warehouse) and
warehouse locations (LOCATED_IN, warehouse -> country). Lane edges carry
the batch's mean cost and duty per unit plus how many route-months are
blocked (max_qty = 0).

Enables questions that are awkward with the flat table:
  - Which lanes are open / fully blocked?
  - Which factories can feed this warehouse?
  - Which warehouses depend on a single source factory?

Node IDs use type prefixes (factory:, warehouse:, country:) because
factory and warehouse codes overlap ("GFC" vs "GFCM" is easy to mix up).
The unassigned pseudo route is left out.
"""

import networkx as nx
import pandas as pd

from primdist.sites import UNASSIGNED, WAREHOUSE_COUNTRY


class LaneGraph:
    """NetworkX DiGraph representing one batch's primary distribution lanes."""

    def __init__(self, routes: pd.DataFrame):
        self.graph = nx.DiGraph()
        self._build(routes)

    def _build(self, routes: pd.DataFrame):
        g = self.graph
        lanes = routes[(routes["warehouse"] != UNASSIGNED) & (routes["factory"] != UNASSIGNED)]
        if lanes.empty:
            return

        # ── SHIPS_TO edges (factory → warehouse) ─────────────────────────
        agg = lanes.assign(blocked=lanes["max_qty"] == 0).groupby(
            ["factory", "warehouse"]
        ).agg(
            mean_cost=("cost_per_unit", "mean"),
            mean_duty=("custom_cost_per_unit", "mean"),
            route_months=("month", "size"),
            blocked_months=("blocked", "sum"),
        ).reset_index()

        for _, row in agg.iterrows():
            g.add_node(f"factory:{row['factory']}", node_type="factory", code=row["factory"])
            g.add_node(f"warehouse:{row['warehouse']}", node_type="warehouse",
                       code=row["warehouse"])
            g.add_edge(
                f"factory:{row['factory']}", f"warehouse:{row['warehouse']}",
                edge_type="SHIPS_TO",
                mean_cost=float(row["mean_cost"]),
                mean_duty=float(row["mean_duty"]),
                route_months=int(row["route_months"]),
                blocked_months=int(row["blocked_months"]),
            )

        # ── LOCATED_IN edges (warehouse → country) ───────────────────────
        for wh in lanes["warehouse"].unique():
            country = WAREHOUSE_COUNTRY.get(wh)
            if country is None:
                continue
            g.add_node(f"country:{country}", node_type="country", code=country)
            g.add_edge(f"warehouse:{wh}", f"country:{country}", edge_type="LOCATED_IN")

    # ═══════════════════════════════════════════════════════════════════════
    # QUERY METHODS
    # ═══════════════════════════════════════════════════════════════════════

    def get_nodes_by_type(self, node_type: str) -> list[str]:
        return sorted(n for n, d in self.graph.nodes(data=True)
                      if d.get("node_type") == node_type)

    def _lanes(self):
        for source, target, attrs in self.graph.edges(data=True):
            if attrs.get("edge_type") == "SHIPS_TO":
                yield source.split(":", 1)[1], target.split(":", 1)[1], attrs

    def open_lanes(self) -> list[tuple[str, str]]:
        """(factory, warehouse) lanes with at least one unblocked route-month."""
        return sorted((f, w) for f, w, a in self._lanes()
                      if a["blocked_months"] < a["route_months"])

    def blocked_lanes(self) -> list[tuple[str, str]]:
        """(factory, warehouse) lanes blocked in every route-month."""
        return sorted((f, w) for f, w, a in self._lanes()
                      if a["blocked_months"] == a["route_months"])

    def sources_for(self, warehouse: str) -> list[str]:
        """Factories with an open lane into this warehouse."""
        return sorted(f for f, w in self.open_lanes() if w == warehouse)

    def sole_source_warehouses(self) -> dict[str, str]:
        """Warehouses fed by exactly one open factory lane: {warehouse: factory}."""
        sources: dict[str, list[str]] = {}
        for f, w in self.open_lanes():
            sources.setdefault(w, []).append(f)
        return {w: fs[0] for w, fs in sorted(sources.items()) if len(fs) == 1}

    def lane(self, factory: str, warehouse: str) -> dict | None:
        """Edge attributes of a lane, or None."""
        return self.graph.get_edge_data(f"factory:{factory}", f"warehouse:{warehouse}")
