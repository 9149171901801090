"""Main panel: graph tabs for graph screens, a searchable table for the in-degree screen."""

from __future__ import annotations

import pandas as pd
import streamlit as st
import streamlit.components.v1 as components

from linkscope.config import CONFIG, GRAPH_CANVAS_HEIGHT, GRAPH_CARD_HEIGHT
from linkscope.data_processing import decode_indegree_rows, filter_indegree_rows, sort_indegree_rows
from linkscope.ui.sidebar import SidebarState
from linkscope.visualizer import (
    build_network,
    cached_render_model,
    connected_component_count,
    create_category_legend,
    create_ramp_legend,
    render_model_to_rows,
)


def render_indegree_table(title: str) -> None:
    st.header(title)
    rows, errors = decode_indegree_rows(st.session_state.payload)
    for message in errors:
        st.error(message)
    if st.session_state.payload is None:
        st.info("No data loaded. Set a minimum in-degree and press Fetch.")
        return
    query = st.text_input("Search", key="indegree_search", placeholder="node id or in-degree")
    shown = sort_indegree_rows(filter_indegree_rows(rows, query))
    st.caption(f"{len(shown)} of {len(rows)} node(s)")
    st.dataframe(pd.DataFrame(shown, columns=["node_id", "indegree"]), use_container_width=True, hide_index=True)


def render_tabs(state: SidebarState) -> None:
    profile = CONFIG["SCREEN_PROFILES"][state.screen]

    for message in st.session_state.fetch_errors:
        st.error(message)

    if profile["view"] == "table":
        render_indegree_table(profile["title"])
        return

    tabs = st.tabs(["Graph View", "Data View", "About"])

    model = cached_render_model(st.session_state.payload, state.filter_config, state.options)

    with tabs[0]:
        st.header(profile["title"])
        m1, m2, m3 = st.columns(3)
        m1.metric("Nodes", model.counts["nodes"])
        m2.metric("Relationships", model.counts["edges"])
        m3.metric("Components", connected_component_count(model))
        if model.nodes:
            try:
                net = build_network(model, height=GRAPH_CANVAS_HEIGHT)
                components.html(net.generate_html(), height=GRAPH_CARD_HEIGHT, scrolling=False)
            except Exception as exc:
                st.error(f"Graph generation failed: {exc}")
            with st.expander("Legends", expanded=False):
                st.markdown(create_ramp_legend(), unsafe_allow_html=True)
                st.markdown(create_category_legend(), unsafe_allow_html=True)
        elif st.session_state.payload is None:
            st.info("No data loaded. Enter an id and press Fetch.")
        else:
            st.info("Nothing to render for the current response and filters.")

    with tabs[1]:
        if model.nodes:
            st.dataframe(pd.DataFrame(render_model_to_rows(model)), use_container_width=True)
        else:
            st.info("No nodes visible.")

    with tabs[2]:
        st.markdown(
            "Node color and size scale with degree. uid and operator nodes can take their "
            "degree from the matched records linked to them. Hover a node to see its most "
            "frequent match properties."
        )
