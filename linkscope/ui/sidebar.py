"""Sidebar logic and session state initialization."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

import streamlit as st

from linkscope.config import CONFIG, SCORE_KEYS
from linkscope.data_processing import FetchGate, build_endpoint_url
from linkscope.models import FilterConfig, RenderOptions


@dataclass
class SidebarState:
    screen: str
    filter_config: FilterConfig
    options: RenderOptions


def _degree_key(screen: str) -> str:
    return f"degree_{screen}"


def _score_select_key(score_key: str) -> str:
    return f"score_select_{score_key}"


def _score_threshold_key(score_key: str) -> str:
    return f"score_threshold_{score_key}"


def init_session_state() -> None:
    if "screen" not in st.session_state:
        st.session_state.screen = "component"
    if "entity_id" not in st.session_state:
        st.session_state.entity_id = ""
    for screen, profile in CONFIG["SCREEN_PROFILES"].items():
        if "default_degree" in profile and _degree_key(screen) not in st.session_state:
            st.session_state[_degree_key(screen)] = profile["default_degree"]
    if "payload" not in st.session_state:
        st.session_state.payload = None
    if "fetch_errors" not in st.session_state:
        st.session_state.fetch_errors = []
    if "fetch_gate" not in st.session_state:
        st.session_state.fetch_gate = FetchGate()
    if "prune_sparse" not in st.session_state:
        st.session_state.prune_sparse = False
    if "layout_seed" not in st.session_state:
        st.session_state.layout_seed = 23
    for score_key in SCORE_KEYS:
        if _score_select_key(score_key) not in st.session_state:
            st.session_state[_score_select_key(score_key)] = True
        if _score_threshold_key(score_key) not in st.session_state:
            st.session_state[_score_threshold_key(score_key)] = 0.0


def reset_filters() -> None:
    for score_key in SCORE_KEYS:
        st.session_state[_score_select_key(score_key)] = True
        st.session_state[_score_threshold_key(score_key)] = 0.0


def _on_screen_change() -> None:
    profile = CONFIG["SCREEN_PROFILES"][st.session_state.screen]
    st.session_state.prune_sparse = profile["prune_default"]
    st.session_state.payload = None
    st.session_state.fetch_errors = []
    st.session_state.fetch_gate.abort()


def _run_fetch(screen: str) -> None:
    try:
        url = build_endpoint_url(
            screen,
            entity_id=st.session_state.entity_id,
            degree=st.session_state.get(_degree_key(screen)),
        )
    except ValueError as exc:
        st.session_state.fetch_errors = [str(exc)]
        return
    gate: FetchGate = st.session_state.fetch_gate
    with st.spinner("Fetching..."):
        accepted, payload, errors = gate.fetch(url)
    if not accepted:
        return
    st.session_state.fetch_errors = errors
    st.session_state.payload = payload if not errors else None


def current_filter_config() -> FilterConfig:
    selected = [key for key in SCORE_KEYS if st.session_state.get(_score_select_key(key), True)]
    config = FilterConfig.default(SCORE_KEYS, prune_sparse=bool(st.session_state.prune_sparse))
    for key in SCORE_KEYS:
        config = config.with_threshold(key, float(st.session_state.get(_score_threshold_key(key), 0.0) or 0.0))
    for key in SCORE_KEYS:
        if key not in selected:
            config = config.toggled(key)
    return config


def render_sidebar() -> SidebarState:
    profiles = CONFIG["SCREEN_PROFILES"]
    screen = st.sidebar.selectbox(
        "Screen",
        list(profiles.keys()),
        format_func=lambda key: profiles[key]["title"],
        key="screen",
        on_change=_on_screen_change,
    )
    profile = profiles[screen]

    with st.sidebar.expander("Query", expanded=True):
        if profile["needs_id"]:
            st.text_input("Entity id", key="entity_id", placeholder="Enter component id")
        if "degree_label" in profile:
            st.number_input(profile["degree_label"], min_value=0, step=1, key=_degree_key(screen))
        if st.button("Fetch", key="fetch_button"):
            _run_fetch(screen)

    if profile["view"] == "table":
        return SidebarState(screen=screen, filter_config=current_filter_config(), options=RenderOptions())

    with st.sidebar.expander("Match properties", expanded=True):
        st.button("Reset filters", on_click=reset_filters, key="reset_filters")
        for score_key in SCORE_KEYS:
            cols = st.columns([3, 2])
            with cols[0]:
                st.checkbox(score_key, key=_score_select_key(score_key))
            with cols[1]:
                st.number_input(
                    "thr",
                    step=0.01,
                    format="%.2f",
                    key=_score_threshold_key(score_key),
                    label_visibility="collapsed",
                )
        st.caption("Non-eligible MATCHES relationships are hidden. Changes apply instantly.")

    with st.sidebar.expander("Display", expanded=False):
        st.checkbox(
            "Hide sparse uid/operator nodes",
            key="prune_sparse",
            help="Remove uid and operator nodes with exactly one visible relationship.",
        )
        layouts: List[str] = ["banded", "cluster"]
        layout = st.selectbox(
            "Layout",
            layouts,
            index=layouts.index(profile["layout"]),
            key=f"layout_{screen}",
        )
        policies = ["transitive", "direct"]
        degree_policy = st.selectbox(
            "Degree basis",
            policies,
            index=policies.index(profile["degree_policy"]),
            key=f"degree_policy_{screen}",
            help="Transitive: uid/operator size follows how many of their linked records are matched.",
        )
        seed: Optional[int] = None
        if layout == "cluster":
            seed = int(st.number_input("Layout seed", min_value=0, step=1, key="layout_seed"))

    return SidebarState(
        screen=screen,
        filter_config=current_filter_config(),
        options=RenderOptions(
            layout=layout,
            degree_policy=degree_policy,
            seed=seed,
            identity=profile["identity"],
        ),
    )
