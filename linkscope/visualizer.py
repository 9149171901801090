"""Layout, visual mapping, render-model assembly and PyVis generation helpers."""

from __future__ import annotations

import html as html_lib
import logging
import math
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

import networkx as nx
import numpy as np
import streamlit as st
from pyvis.network import Network

from linkscope.config import CONFIG, GRAPH_CANVAS_HEIGHT, SCORE_KEYS
from linkscope.data_processing import (
    classify_nodes,
    compute_metrics,
    filter_relationships,
    normalize_payload,
    prune_sparse_nodes,
    relationship_class,
)
from linkscope.models import (
    FilterConfig,
    GraphMetrics,
    GraphNode,
    NodeMetrics,
    Relationship,
    RenderEdge,
    RenderModel,
    RenderNode,
    RenderOptions,
)
from linkscope.utils import (
    _truncate_text,
    clamp,
    make_ramp_color,
    profile_time,
    summarize_counts,
)

Position = Tuple[float, float]

_BAND_ORDER = ("operator", "uid", "person", "ref", "other")


# ------------------------------
# Layout
# ------------------------------
def banded_layout(
    nodes: Sequence[GraphNode],
    categories: Dict[str, str],
    band_x: Optional[Dict[str, float]] = None,
    spacing_y: Optional[float] = None,
) -> Dict[str, Position]:
    """One vertical column per category, each column centered on y=0."""
    band_x = band_x or CONFIG["BAND_X"]
    spacing_y = CONFIG["BAND_SPACING_Y"] if spacing_y is None else spacing_y
    bands: Dict[str, List[str]] = {}
    for node in nodes:
        bands.setdefault(categories.get(node.id, "other"), []).append(node.id)

    positions: Dict[str, Position] = {}
    for category, members in bands.items():
        x = float(band_x.get(category, band_x.get("other", 0)))
        offset = (len(members) - 1) * spacing_y / 2
        for idx, node_id in enumerate(members):
            positions[node_id] = (x, idx * spacing_y - offset)
    return positions


def _hub_neighbors(hub_id: str, relationships: Sequence[Relationship]) -> List[str]:
    neighbors: List[str] = []
    seen: Set[str] = set()
    for rel in relationships:
        if relationship_class(rel.type) != "structural":
            continue
        if rel.end_id == hub_id:
            other = rel.start_id
        elif rel.start_id == hub_id:
            other = rel.end_id
        else:
            continue
        if other != hub_id and other not in seen:
            seen.add(other)
            neighbors.append(other)
    return neighbors


def cluster_layout(
    nodes: Sequence[GraphNode],
    categories: Dict[str, str],
    relationships: Sequence[Relationship],
    rng: Optional[np.random.Generator] = None,
    jitter: Optional[float] = None,
    hub_category: str = "operator",
) -> Dict[str, Position]:
    """Operators on a coarse grid, their structural neighbors on a circle around each.

    Neighbors claimed by an earlier hub keep their first position. Nodes with
    no hub land in an overflow grid below the last hub row.
    """
    params = CONFIG["CLUSTER"]
    pitch = params["hub_pitch"]
    columns = params["hub_columns"]
    radius = params["radius"]
    jitter = params["jitter"] if jitter is None else jitter
    rng = rng if rng is not None else np.random.default_rng()

    hubs = [node.id for node in nodes if categories.get(node.id) == hub_category]
    positions: Dict[str, Position] = {}
    for i, hub_id in enumerate(hubs):
        base_x = (i % columns) * pitch
        base_y = (i // columns) * pitch
        positions[hub_id] = (float(base_x), float(base_y))

    for i, hub_id in enumerate(hubs):
        base_x, base_y = positions[hub_id]
        neighbors = _hub_neighbors(hub_id, relationships)
        for j, neighbor in enumerate(neighbors):
            if neighbor in positions:
                continue
            angle = (j / max(len(neighbors), 1)) * math.pi * 2
            dx, dy = rng.uniform(0, jitter, size=2) if jitter > 0 else (0.0, 0.0)
            positions[neighbor] = (
                base_x + radius * math.cos(angle) + float(dx),
                base_y + radius * math.sin(angle) + float(dy),
            )

    overflow_top = 0.0
    if hubs:
        last_row = (len(hubs) - 1) // columns
        overflow_top = last_row * pitch + radius + params["overflow_gap"]
    leftovers = [node.id for node in nodes if node.id not in positions]
    for idx, node_id in enumerate(leftovers):
        positions[node_id] = (
            float((idx % params["overflow_columns"]) * params["overflow_pitch_x"]),
            overflow_top + (idx // params["overflow_columns"]) * params["overflow_pitch_y"],
        )
    logging.debug("Cluster layout placed %d hub(s) and %d leftover node(s)", len(hubs), len(leftovers))
    return positions


def compute_layout(
    nodes: Sequence[GraphNode],
    categories: Dict[str, str],
    relationships: Sequence[Relationship],
    options: RenderOptions,
    rng: Optional[np.random.Generator] = None,
) -> Dict[str, Position]:
    if options.layout == "cluster":
        if rng is None:
            rng = np.random.default_rng(options.seed)
        return cluster_layout(nodes, categories, relationships, rng=rng, jitter=options.jitter)
    if options.layout != "banded":
        logging.warning("Unknown layout %r; falling back to banded", options.layout)
    return banded_layout(nodes, categories)


# ------------------------------
# Visual mapping
# ------------------------------
def degree_ratio(degree: float, max_degree: float) -> float:
    return clamp(degree / max(max_degree, 1))


def node_size(degree: float, max_degree: float) -> float:
    t = degree_ratio(degree, max_degree)
    return CONFIG["MIN_NODE_SIZE"] + t * (CONFIG["MAX_NODE_SIZE"] - CONFIG["MIN_NODE_SIZE"])


def node_color(degree: float, max_degree: float) -> Dict[str, str]:
    return make_ramp_color(
        CONFIG["RAMP_LOW_COLOR"],
        CONFIG["RAMP_HIGH_COLOR"],
        degree_ratio(degree, max_degree),
        CONFIG["BORDER_DARKEN"],
    )


def node_tooltip(node: GraphNode, category: str, metrics: NodeMetrics) -> str:
    summary, total = summarize_counts(metrics.property_counts, CONFIG["TOOLTIP_TOP_N"])
    types = ", ".join(node.labels) or "Unknown"
    title = f"ID: {node.id} | Category: {category} | Type: {types} | Degree: {metrics.metric}"
    if summary:
        title += f"\n{summary}"
    title += f" | Total: {total}"
    return title


def _edge_tooltip(rel: Relationship) -> str:
    title = rel.type or "related"
    if relationship_class(rel.type) != "match":
        return title
    scores = [f"{key}: {rel.properties[key]}" for key in SCORE_KEYS if rel.properties.get(key) is not None]
    if scores:
        title += "\n" + _truncate_text(" | ".join(scores), 240)
    return title


# ------------------------------
# Render model
# ------------------------------
@profile_time
def build_render_model(
    payload: Any,
    filter_config: Optional[FilterConfig] = None,
    options: Optional[RenderOptions] = None,
    rng: Optional[np.random.Generator] = None,
    score_keys: Optional[Sequence[str]] = None,
) -> RenderModel:
    """Raw backend payload to positioned, colored nodes and visible edges."""
    score_keys = list(score_keys if score_keys is not None else SCORE_KEYS)
    filter_config = filter_config or FilterConfig.default(score_keys)
    options = options or RenderOptions()

    graph = normalize_payload(payload, options.identity)
    if not graph.nodes:
        return RenderModel.empty()

    categories = classify_nodes(graph.nodes)
    visible = filter_relationships(graph.relationships, filter_config)
    metrics = compute_metrics(graph.nodes, categories, visible, score_keys, options.degree_policy)
    nodes, edges, _ = prune_sparse_nodes(graph.nodes, categories, metrics, visible, filter_config.prune_sparse)
    positions = compute_layout(nodes, categories, edges, options, rng=rng)
    return assemble_render_model(nodes, edges, categories, metrics, positions)


@st.cache_data(show_spinner=False)
def cached_render_model(
    payload: Any,
    filter_config: FilterConfig,
    options: RenderOptions,
) -> RenderModel:
    """Memoized ``build_render_model`` for Streamlit reruns; seed comes from ``options``."""
    return build_render_model(payload, filter_config, options)


def assemble_render_model(
    nodes: Sequence[GraphNode],
    relationships: Sequence[Relationship],
    categories: Dict[str, str],
    metrics: GraphMetrics,
    positions: Dict[str, Position],
) -> RenderModel:
    render_nodes: List[RenderNode] = []
    for node in nodes:
        category = categories.get(node.id, "other")
        node_metrics = metrics.nodes.get(node.id, NodeMetrics())
        x, y = positions[node.id]
        render_nodes.append(
            RenderNode(
                id=node.id,
                label=node.display_label or node.id,
                title=node_tooltip(node, category, node_metrics),
                x=x,
                y=y,
                color=node_color(node_metrics.metric, metrics.max_degree),
                size=node_size(node_metrics.metric, metrics.max_degree),
                category=category,
                degree=node_metrics.metric,
                group=category,
            )
        )

    node_ids = {node.id for node in render_nodes}
    render_edges = [
        RenderEdge(
            id=rel.id,
            source=rel.start_id,
            target=rel.end_id,
            label=rel.type,
            title=_edge_tooltip(rel),
        )
        for rel in relationships
        if rel.start_id in node_ids and rel.end_id in node_ids
    ]
    return RenderModel(
        nodes=render_nodes,
        edges=render_edges,
        counts={"nodes": len(render_nodes), "edges": len(render_edges)},
    )


def connected_component_count(model: RenderModel) -> int:
    G = nx.Graph()
    G.add_nodes_from(node.id for node in model.nodes)
    G.add_edges_from((edge.source, edge.target) for edge in model.edges)
    return nx.number_connected_components(G) if G.number_of_nodes() else 0


def render_model_to_rows(model: RenderModel) -> List[Dict[str, Any]]:
    return [
        {
            "ID": node.id,
            "Label": node.label,
            "Category": node.category,
            "Degree": node.degree,
            "Size": round(node.size, 1),
            "Color": node.color["background"],
            "X": round(node.x, 1),
            "Y": round(node.y, 1),
        }
        for node in model.nodes
    ]


# ------------------------------
# PyVis
# ------------------------------
def build_network(model: RenderModel, height: int = GRAPH_CANVAS_HEIGHT) -> Network:
    net = Network(
        height=f"{height}px",
        width="100%",
        directed=True,
        notebook=False,
        bgcolor="#FFFFFF",
        font_color="#1F2A37",
    )
    for node in model.nodes:
        net.add_node(
            node.id,
            label=node.label,
            title=node.title,
            x=node.x,
            y=node.y,
            color={
                "background": node.color["background"],
                "border": node.color["border"],
                "highlight": {"background": node.color["background"], "border": "#222222"},
            },
            size=node.size,
            shape="dot",
            group=node.group,
            physics=False,
        )
    for edge in model.edges:
        net.add_edge(
            edge.source,
            edge.target,
            id=edge.id,
            label=edge.label,
            title=edge.title,
            arrows={"to": {"enabled": True, "scaleFactor": 0.8, "type": "triangle"}},
        )
    net.options = {
        "physics": {"enabled": False},
        "nodes": {"font": {"multi": True, "vadjust": -10}},
        "edges": {
            "smooth": {"type": "continuous"},
            "color": {"color": "#888888", "highlight": "#FF4500"},
        },
        "interaction": {"hover": True, "tooltipDelay": 100, "navigationButtons": True, "dragNodes": True},
    }
    logging.debug("Built network with %d node(s) and %d edge(s)", len(model.nodes), len(model.edges))
    return net


def create_category_legend(category_colors: Optional[Dict[str, Dict[str, str]]] = None) -> str:
    category_colors = category_colors or CONFIG["CATEGORY_COLORS"]
    items = "".join(
        f"<li><span style='display:inline-block;width:12px;height:12px;border-radius:50%;"
        f"background:{colors['background']};border:2px solid {colors['border']};margin-right:6px;'></span>"
        f"{html_lib.escape(category)}</li>"
        for category, colors in category_colors.items()
        if category in _BAND_ORDER
    )
    return f"<ul style='list-style:none;padding:0;margin:0;'>{items}</ul>"


def create_ramp_legend(steps: int = 5) -> str:
    low = CONFIG["RAMP_LOW_COLOR"]
    high = CONFIG["RAMP_HIGH_COLOR"]
    swatches = "".join(
        f"<span style='display:inline-block;width:24px;height:12px;background:"
        f"{make_ramp_color(low, high, i / max(steps - 1, 1), 1.0)['background']};'></span>"
        for i in range(steps)
    )
    return f"<div>low degree {swatches} high degree</div>"
