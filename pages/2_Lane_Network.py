"""
Lane Network page — factory → warehouse → country graph of the batch.

Factories sit in the left column, warehouses in the middle, countries on
the right. Lane colour: green = open, red = blocked in every month, and
hover text shows mean cost, duty and blocked months.
"""

import plotly.graph_objects as go
import streamlit as st

from primdist.network import LaneGraph


st.set_page_config(page_title="Lane Network — Primary Distribution Planner", layout="wide")

store = st.session_state.get("store")
batch_id = st.session_state.get("batch_id")
if store is None or batch_id is None or batch_id not in store:
    st.warning("No batch generated yet. Use the home page to generate one.")
    st.stop()

lanes = LaneGraph(store.load(batch_id))
g = lanes.graph

st.title(f"Lane Network — batch {batch_id}")

# ── Fixed 3-column layout ────────────────────────────────────────────────
positions = {}
for col, node_type in enumerate(["factory", "warehouse", "country"]):
    nodes = lanes.get_nodes_by_type(node_type)
    for row, node in enumerate(nodes):
        positions[node] = (col, -row)

fig = go.Figure()
blocked = set(lanes.blocked_lanes())
for source, target, attrs in g.edges(data=True):
    x0, y0 = positions[source]
    x1, y1 = positions[target]
    if attrs["edge_type"] == "SHIPS_TO":
        key = (source.split(":", 1)[1], target.split(":", 1)[1])
        color = "crimson" if key in blocked else "seagreen"
        hover = (f"{key[0]} → {key[1]}<br>mean cost {attrs['mean_cost']:.4f}"
                 f"<br>mean duty {attrs['mean_duty']:.4f}"
                 f"<br>blocked {attrs['blocked_months']}/{attrs['route_months']}")
    else:
        color, hover = "lightgray", None
    fig.add_trace(go.Scatter(
        x=[x0, x1], y=[y0, y1], mode="lines",
        line=dict(color=color, width=2),
        hoverinfo="text" if hover else "skip", text=hover, showlegend=False,
    ))

fig.add_trace(go.Scatter(
    x=[positions[n][0] for n in positions],
    y=[positions[n][1] for n in positions],
    mode="markers+text",
    text=[g.nodes[n]["code"] for n in positions],
    textposition="top center",
    marker=dict(size=18, color="royalblue"),
    hoverinfo="skip",
    showlegend=False,
))
fig.update_layout(height=420, margin=dict(l=0, r=0, t=10, b=0),
                  xaxis=dict(visible=False), yaxis=dict(visible=False))
st.plotly_chart(fig, use_container_width=True)

c1, c2 = st.columns(2)
with c1:
    st.markdown("#### Blocked lanes")
    st.write(lanes.blocked_lanes() or "None")
with c2:
    st.markdown("#### Sole-source warehouses")
    st.write(lanes.sole_source_warehouses() or "None")
