import numpy as np
import pytest

from linkscope.config import CONFIG, SCORE_KEYS
from linkscope.data_processing import classify_nodes, normalize_payload
from linkscope.models import FilterConfig, RenderModel, RenderOptions
from linkscope.utils import _hex_to_rgb, summarize_counts
from linkscope.visualizer import (
    banded_layout,
    build_network,
    build_render_model,
    cached_render_model,
    cluster_layout,
    connected_component_count,
    create_category_legend,
    create_ramp_legend,
    node_color,
    node_size,
    render_model_to_rows,
)


# ------------------------------
# Layout
# ------------------------------
def test_banded_layout_columns_centered(sample_payload):
    graph = normalize_payload(sample_payload)
    positions = banded_layout(graph.nodes, classify_nodes(graph.nodes))
    band_x = CONFIG["BAND_X"]
    assert positions["op1"] == (band_x["operator"], 0)
    assert positions["uid1"] == (band_x["uid"], 0)
    assert positions["p1"] == (band_x["person"], 0)
    assert positions["r1"] == (band_x["ref"], -80)
    assert positions["r2"] == (band_x["ref"], 0)
    assert positions["r3"] == (band_x["ref"], 80)


def test_banded_layout_is_deterministic(sample_payload):
    graph = normalize_payload(sample_payload)
    categories = classify_nodes(graph.nodes)
    assert banded_layout(graph.nodes, categories) == banded_layout(graph.nodes, categories)


def _cluster_graph():
    payload = {
        "nodes": [
            {"id": "op1", "labels": ["Operator"]},
            {"id": "op2", "labels": ["Operator"]},
            {"id": "a", "labels": ["UID"]},
            {"id": "b", "labels": ["Person"]},
            {"id": "c", "labels": ["Thing"]},
        ],
        "relationships": [
            {"id": "1", "startId": "a", "endId": "op1", "type": "OPERATED_BY"},
            {"id": "2", "startId": "b", "endId": "op1", "type": "OPERATED_BY"},
            {"id": "3", "startId": "a", "endId": "op2", "type": "OPERATED_BY"},
        ],
    }
    graph = normalize_payload(payload)
    return graph, classify_nodes(graph.nodes)


def test_cluster_layout_without_jitter():
    graph, categories = _cluster_graph()
    positions = cluster_layout(graph.nodes, categories, graph.relationships, jitter=0)
    params = CONFIG["CLUSTER"]
    assert positions["op1"] == (0.0, 0.0)
    assert positions["op2"] == (float(params["hub_pitch"]), 0.0)
    assert positions["a"] == pytest.approx((params["radius"], 0.0))
    assert positions["b"] == pytest.approx((-params["radius"], 0.0), abs=1e-9)
    assert positions["c"] == (0.0, float(params["radius"] + params["overflow_gap"]))


def test_cluster_layout_first_assignment_wins():
    graph, categories = _cluster_graph()
    positions = cluster_layout(graph.nodes, categories, graph.relationships, jitter=0)
    hub_x = CONFIG["CLUSTER"]["hub_pitch"]
    assert positions["a"][0] < hub_x / 2


def test_cluster_layout_seeded_jitter_is_reproducible():
    graph, categories = _cluster_graph()
    first = cluster_layout(graph.nodes, categories, graph.relationships, rng=np.random.default_rng(7))
    second = cluster_layout(graph.nodes, categories, graph.relationships, rng=np.random.default_rng(7))
    assert first == second
    jitter = CONFIG["CLUSTER"]["jitter"]
    ax, ay = first["a"]
    assert CONFIG["CLUSTER"]["radius"] <= ax <= CONFIG["CLUSTER"]["radius"] + jitter
    assert 0 <= ay <= jitter


def test_every_node_gets_a_distinct_point():
    graph, categories = _cluster_graph()
    positions = cluster_layout(graph.nodes, categories, graph.relationships, jitter=0)
    assert set(positions) == {n.id for n in graph.nodes}
    assert len(set(positions.values())) == len(positions)


def test_cluster_layout_without_hubs_uses_overflow_grid():
    graph = normalize_payload({"nodes": [{"id": str(i)} for i in range(7)]})
    positions = cluster_layout(graph.nodes, classify_nodes(graph.nodes), [], jitter=0)
    params = CONFIG["CLUSTER"]
    assert positions["0"] == (0.0, 0.0)
    assert positions["5"] == (0.0, float(params["overflow_pitch_y"]))
    assert len(set(positions.values())) == 7


# ------------------------------
# Visual mapping
# ------------------------------
def test_ramp_endpoints():
    low = node_color(0, 4)
    high = node_color(4, 4)
    assert low == {"background": "#7ED321", "border": "#62A51A"}
    assert high == {"background": "#FF4444", "border": "#C73535"}


def test_size_range():
    assert node_size(0, 4) == CONFIG["MIN_NODE_SIZE"]
    assert node_size(4, 4) == CONFIG["MAX_NODE_SIZE"]
    assert node_size(2, 4) == pytest.approx((CONFIG["MIN_NODE_SIZE"] + CONFIG["MAX_NODE_SIZE"]) / 2)
    assert node_size(10, 4) == CONFIG["MAX_NODE_SIZE"]


def test_color_and_size_are_monotonic():
    low_rgb = _hex_to_rgb(CONFIG["RAMP_LOW_COLOR"])
    high_rgb = _hex_to_rgb(CONFIG["RAMP_HIGH_COLOR"])
    c1 = _hex_to_rgb(node_color(1, 4)["background"])
    c2 = _hex_to_rgb(node_color(2, 4)["background"])
    assert node_size(2, 4) >= node_size(1, 4)
    for lo, hi, v1, v2 in zip(low_rgb, high_rgb, c1, c2):
        assert min(lo, hi) < v2 < max(lo, hi)
        if hi > lo:
            assert v2 >= v1
        else:
            assert v2 <= v1


def test_summarize_counts_caps_top_entries():
    counts = {f"k{i}": i for i in range(1, 9)}
    summary, total = summarize_counts(counts, top_n=6)
    assert summary.startswith("k8: 8 | k7: 7")
    assert summary.endswith("(+2 more)")
    assert total == 36


# ------------------------------
# Render model
# ------------------------------
def test_render_model_invariants(sample_payload):
    model = build_render_model(sample_payload)
    graph = normalize_payload(sample_payload)
    node_ids = {n.id for n in model.nodes}
    assert {e.id for e in model.edges} <= {r.id for r in graph.relationships}
    for edge in model.edges:
        assert edge.source in node_ids and edge.target in node_ids
    assert model.counts == {"nodes": 6, "edges": 6}


def test_render_model_node_fields(sample_payload):
    model = build_render_model(sample_payload)
    r1 = next(n for n in model.nodes if n.id == "r1")
    data = r1.to_dict()
    assert data["label"] == "REF-1"
    assert set(data) >= {"id", "label", "title", "x", "y", "color", "size"}
    assert set(data["color"]) == {"background", "border"}
    assert data["title"].startswith("ID: r1 | Category: ref | Type: Ref | Degree: 3")
    assert "face_score: 1" in data["title"]
    assert data["title"].endswith("Total: 2")
    assert r1.size == CONFIG["MAX_NODE_SIZE"]


def test_render_model_edge_fields(sample_payload):
    model = build_render_model(sample_payload)
    edge = model.edges[0].to_dict()
    assert edge == {
        "id": "m1",
        "from": "r1",
        "to": "r2",
        "label": "MATCHES",
        "title": edge["title"],
    }
    assert "face_score: 0.9" in edge["title"]


def test_match_filter_hides_edges(sample_payload):
    config = FilterConfig.default(SCORE_KEYS).with_threshold("face_score", 0.5)
    model = build_render_model(sample_payload, config)
    assert "m2" not in {e.id for e in model.edges}
    assert model.counts["edges"] == 5


def test_pruning_in_pipeline(sample_payload):
    config = FilterConfig.default(SCORE_KEYS, prune_sparse=True)
    model = build_render_model(sample_payload, config)
    assert "op1" not in {n.id for n in model.nodes}
    assert "o1" not in {e.id for e in model.edges}
    assert "p1" in {n.id for n in model.nodes}


@pytest.mark.parametrize("payload", [None, "error", {"detail": "not found"}, [], {"nodes": []}])
def test_malformed_payload_renders_nothing(payload):
    model = build_render_model(payload)
    assert model.to_dict() == {
        "visibleNodes": [],
        "visibleEdges": [],
        "counts": {"nodes": 0, "edges": 0},
        "nodeCount": 0,
        "edgeCount": 0,
    }


def test_pipeline_is_idempotent(sample_payload):
    options = RenderOptions(layout="cluster", seed=11)
    first = build_render_model(sample_payload, options=options)
    second = build_render_model(sample_payload, options=options)
    assert first.to_dict() == second.to_dict()


def test_pipeline_does_not_mutate_payload(sample_payload):
    import copy

    before = copy.deepcopy(sample_payload)
    build_render_model(sample_payload, FilterConfig.default(SCORE_KEYS, prune_sparse=True))
    assert sample_payload == before


def test_node_id_identity_keeps_relationships():
    payload = {
        "nodes": [
            {"id": 11, "node_id": "A", "labels": ["Ref"]},
            {"id": 12, "node_id": "B", "labels": ["UID"]},
        ],
        "relationships": [{"id": "r1", "start_node_id": "A", "end_node_id": "B", "type": "BELONGS_TO"}],
    }
    model = build_render_model(payload, options=RenderOptions(identity="node_id"))
    assert [n.id for n in model.nodes] == ["A", "B"]
    assert [e.id for e in model.edges] == ["r1"]


def test_cached_render_model_matches_uncached(sample_payload):
    cached_render_model.clear()
    config = FilterConfig.default(SCORE_KEYS).with_threshold("face_score", 0.5)
    options = RenderOptions(layout="cluster", seed=5)
    first = cached_render_model(sample_payload, config, options)
    second = cached_render_model(sample_payload, config, options)
    assert first.to_dict() == second.to_dict()
    assert first.to_dict() == build_render_model(sample_payload, config, options).to_dict()


def test_cluster_pipeline_with_injected_rng(sample_payload):
    options = RenderOptions(layout="cluster", jitter=0)
    model = build_render_model(sample_payload, options=options, rng=np.random.default_rng(0))
    positions = {n.id: (n.x, n.y) for n in model.nodes}
    assert positions["op1"] == (0.0, 0.0)
    assert positions["r1"] == pytest.approx((CONFIG["CLUSTER"]["radius"], 0.0))


# ------------------------------
# Rendering collaborator
# ------------------------------
def test_build_network(sample_payload):
    model = build_render_model(sample_payload)
    net = build_network(model)
    assert len(net.nodes) == model.counts["nodes"]
    assert len(net.edges) == model.counts["edges"]
    node = next(n for n in net.nodes if n["id"] == "op1")
    assert node["x"] == CONFIG["BAND_X"]["operator"]
    assert node["physics"] is False


def test_rows_and_component_count(sample_payload):
    model = build_render_model(sample_payload)
    rows = render_model_to_rows(model)
    assert [row["ID"] for row in rows] == [n.id for n in model.nodes]
    assert connected_component_count(model) == 1
    assert connected_component_count(RenderModel.empty()) == 0


def test_legends_render_html():
    assert "operator" in create_category_legend()
    assert "#7ED321" in create_ramp_legend()
