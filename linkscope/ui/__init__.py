"""Streamlit application shell."""

from __future__ import annotations


def render_app() -> None:
    import streamlit as st

    # set_page_config() must run before any other streamlit command
    st.set_page_config(page_title="Linkscope", layout="wide")

    from linkscope.ui.sidebar import init_session_state, render_sidebar
    from linkscope.ui.tabs import render_tabs

    init_session_state()
    state = render_sidebar()
    render_tabs(state)
