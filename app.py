"""
Primary Distribution Planner — Home Page (Streamlit entry point).

Landing page. It provides:
  1. A "Generate batch" control that rebuilds the distribution table for
     a batch id from the reference CSVs in data/
  2. Key stats for the generated batch (routes, restricted and
     disallowed lanes, cost tiers)
  3. Navigation cards to the detail pages

Run: streamlit run app.py

Multipage app (sidebar order determined by numeric filename prefix):
  - pages/1_Distribution_Table.py → filterable route table + cost charts
  - pages/2_Lane_Network.py       → factory → warehouse lane graph
"""

import plotly.graph_objects as go
import streamlit as st

from primdist.config import configure_logging, load_engine_config
from primdist.data_loader import ReferenceData
from primdist.generator import DistributionTableGenerator
from primdist.store import RouteStore

st.set_page_config(page_title="Primary Distribution Planner", layout="wide")

config = load_engine_config()
configure_logging(config.log_level)
# One store per browser session, shared with the pages.
store = st.session_state.setdefault("store", RouteStore())

st.title("Primary Distribution Planner")
st.markdown(
    "Builds the factory-to-warehouse distribution table for an upload batch: "
    "every SKU-month is expanded over eligible factories and warehouses, "
    "priced with freight and customs duty, and bounded by lane policy and "
    "export restrictions."
)

st.divider()

# ── Generate ─────────────────────────────────────────────────────────────────
with st.sidebar:
    st.header("Batch")
    batch_id = st.text_input("Batch id", value=st.session_state.get("batch_id", "sample"))
    if st.button("Generate", type="primary", use_container_width=True):
        generator = DistributionTableGenerator(ReferenceData(config.data_dir), store, config)
        with st.spinner("Generating routes..."):
            result = generator.generate(batch_id)
        st.session_state["batch_id"] = batch_id
        st.session_state["last_result"] = result
        st.success(f"{result.route_count:,} routes generated")

result = st.session_state.get("last_result")
if result is None or result.batch_id not in store:
    st.info("Enter a batch id in the sidebar and click **Generate** "
            "(run `python scripts/generate_data.py` first to create sample data).")
    st.stop()

# ── Key Stats ────────────────────────────────────────────────────────────────
summary = store.summary(result.batch_id)
c1, c2, c3, c4, c5 = st.columns(5)
c1.metric("Routes", f"{summary['total_records']:,}")
c2.metric("SKUs", summary["unique_skus"])
c3.metric("Export-restricted routes", f"{result.restricted_routes:,}")
c4.metric("Disallowed pairings", f"{result.disallowed_routes:,}")
c5.metric("Avg cost / unit", f"{summary['avg_cost_per_unit']:.4f}")

# ── Cost tier mix ────────────────────────────────────────────────────────────
# Which resolver rule priced each route: overrides vs exact rates vs fallbacks.
st.markdown("#### Cost source mix")
sources = result.cost_sources
fig = go.Figure(go.Bar(x=list(sources.keys()), y=list(sources.values()),
                       marker_color="royalblue"))
fig.update_layout(height=320, margin=dict(l=0, r=0, t=10, b=0),
                  yaxis_title="Routes")
st.plotly_chart(fig, use_container_width=True)

st.divider()

col1, col2 = st.columns(2)
with col1:
    st.subheader("Distribution Table")
    st.markdown("Filter routes by SKU, factory or warehouse and inspect costs and bounds.")
    st.page_link("pages/1_Distribution_Table.py", label="Open Table", icon="📋")
with col2:
    st.subheader("Lane Network")
    st.markdown("See which factory → warehouse lanes are open, blocked or sole-source.")
    st.page_link("pages/2_Lane_Network.py", label="Explore Lanes", icon="🌐")
