"""Static configuration for the neighborhood explorer."""

from __future__ import annotations

import os

APP_TITLE = "Linkscope"

API_BASE = (os.getenv("LINKSCOPE_API_BASE", "") or "http://localhost:8080").strip().rstrip("/")
try:
    API_TIMEOUT = float(os.getenv("LINKSCOPE_API_TIMEOUT", "30") or 30)
except ValueError:
    API_TIMEOUT = 30.0

GRAPH_CANVAS_HEIGHT = 720
GRAPH_CARD_HEIGHT = 760

# Biometric comparison scores carried on MATCHES relationships.
SCORE_KEYS = [
    "face_score",
    "left_index_score",
    "left_little_score",
    "left_middle_score",
    "left_ring_score",
    "right_index_score",
    "right_little_score",
    "right_middle_score",
    "right_ring_score",
    "left_thumb_score",
    "right_thumb_score",
    "left_iris_score",
    "right_iris_score",
]

# Ordered keyword -> category rules; first match wins.
CATEGORY_RULES = [
    ("operator", "operator"),
    ("uid", "uid"),
    ("person", "person"),
    ("ref", "ref"),
]
DEFAULT_CATEGORY = "other"
HUB_CATEGORIES = ("uid", "operator")
PRUNABLE_CATEGORIES = ("operator", "uid")

MATCH_TYPES = ("matches", "match")
STRUCTURAL_TYPE_HINTS = ("belongs", "operat")

CONFIG = {
    "SCORE_KEYS": SCORE_KEYS,
    "RAMP_LOW_COLOR": "#7ED321",
    "RAMP_HIGH_COLOR": "#FF4444",
    "BORDER_DARKEN": 0.78,
    "MIN_NODE_SIZE": 16,
    "MAX_NODE_SIZE": 56,
    "TOOLTIP_TOP_N": 6,
    "CATEGORY_COLORS": {
        "operator": {"background": "#FFD1A4", "border": "#CC0066"},
        "uid": {"background": "#CFE9FF", "border": "#0066CC"},
        "person": {"background": "#E6FFE6", "border": "#00AA00"},
        "ref": {"background": "#FFF4C2", "border": "#B8860B"},
        "other": {"background": "#EEEEEE", "border": "#777777"},
    },
    "BAND_X": {
        "operator": -360,
        "uid": -200,
        "person": 0,
        "ref": 180,
        "other": 360,
    },
    "BAND_SPACING_Y": 80,
    "CLUSTER": {
        "hub_pitch": 700,
        "hub_columns": 7,
        "radius": 250,
        "jitter": 40,
        "overflow_columns": 5,
        "overflow_pitch_x": 200,
        "overflow_pitch_y": 150,
        "overflow_gap": 350,
    },
    "ENDPOINTS": {
        "component": "/components/{id}",
        "reference": "/refsimilar?refid={id}",
        "operator_chains": "/sameop",
        "off_time": "/offtime?degree={degree}",
        "suspicious_nodes": "/compdegree?min={degree}",
    },
    "SCREEN_PROFILES": {
        "component": {
            "title": "Component Lookup",
            "layout": "banded",
            "degree_policy": "transitive",
            "needs_id": True,
            "prune_default": False,
            "identity": "id",
            "view": "graph",
        },
        "reference": {
            "title": "Reference Similarity",
            "layout": "banded",
            "degree_policy": "transitive",
            "needs_id": True,
            "prune_default": True,
            "identity": "node_id",
            "view": "graph",
        },
        "operator_chains": {
            "title": "Operator Chains",
            "layout": "banded",
            "degree_policy": "direct",
            "needs_id": False,
            "prune_default": False,
            "identity": "node_id",
            "view": "graph",
        },
        "off_time": {
            "title": "Off-time Activity",
            "layout": "cluster",
            "degree_policy": "direct",
            "needs_id": False,
            "prune_default": False,
            "identity": "node_id",
            "view": "graph",
            "degree_label": "Minimum degree",
            "default_degree": 3,
        },
        "suspicious_nodes": {
            "title": "Suspicious Nodes",
            "layout": "banded",
            "degree_policy": "direct",
            "needs_id": False,
            "prune_default": False,
            "identity": "node_id",
            "view": "table",
            "degree_label": "Minimum in-degree",
            "default_degree": 4,
        },
    },
    "DEFAULT_OFF_TIME_DEGREE": 3,
}
