"""
Distribution Table page — browse the routes of the generated batch.

Layout:
  - Sidebar: SKU / factory / warehouse / month filters
  - Main area: summary metrics, route table, mean cost by lane chart

Data flow: RouteStore (shared with app.py) → filters → UI display
"""

import plotly.express as px
import streamlit as st


st.set_page_config(page_title="Distribution Table — Primary Distribution Planner", layout="wide")

store = st.session_state.get("store")
batch_id = st.session_state.get("batch_id")
if store is None or batch_id is None or batch_id not in store:
    st.warning("No batch generated yet. Use the home page to generate one.")
    st.stop()

routes = store.load(batch_id)

# ── Sidebar: Filters ─────────────────────────────────────────────────────
with st.sidebar:
    st.header("Filters")
    sku = st.selectbox("SKU", ["All"] + sorted(routes["sku_code"].unique()))
    factory = st.selectbox("Factory", ["All"] + sorted(routes["factory"].unique()))
    warehouse = st.selectbox("Warehouse", ["All"] + sorted(routes["warehouse"].unique()))
    months = st.multiselect("Months", sorted(routes["month"].unique()))
    hide_blocked = st.checkbox("Hide blocked routes (max qty = 0)")

view = routes
if sku != "All":
    view = view[view["sku_code"] == sku]
if factory != "All":
    view = view[view["factory"] == factory]
if warehouse != "All":
    view = view[view["warehouse"] == warehouse]
if months:
    view = view[view["month"].isin(months)]
if hide_blocked:
    view = view[view["max_qty"] > 0]

st.title(f"Distribution Table — batch {batch_id}")

c1, c2, c3 = st.columns(3)
c1.metric("Routes shown", f"{len(view):,}")
c2.metric("Mean cost / unit", f"{view['cost_per_unit'].mean():.4f}" if len(view) else "—")
c3.metric("Routes with duty", f"{int((view['custom_cost_per_unit'] > 0).sum()):,}")

st.dataframe(
    view,
    use_container_width=True,
    hide_index=True,
    column_config={
        "cost_per_unit": st.column_config.NumberColumn("Cost/unit", format="%.4f"),
        "custom_cost_per_unit": st.column_config.NumberColumn("Custom cost/unit", format="%.4f"),
        "max_qty": st.column_config.NumberColumn("Max qty", format="%d"),
    },
)

# ── Mean cost by lane ────────────────────────────────────────────────────
lanes = view[view["warehouse"] != "X"]
if not lanes.empty:
    st.markdown("#### Mean cost per unit by lane")
    by_lane = lanes.groupby(["factory", "warehouse"], as_index=False)["cost_per_unit"].mean()
    fig = px.bar(by_lane, x="warehouse", y="cost_per_unit", color="factory", barmode="group")
    fig.update_layout(height=350, margin=dict(l=0, r=0, t=10, b=0))
    st.plotly_chart(fig, use_container_width=True)
