"""Payload decoding, classification, match filtering, degree metrics and pruning."""

from __future__ import annotations

import itertools
import logging
import threading
from collections import Counter
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple
from urllib.parse import quote

import networkx as nx
import requests

from linkscope.config import (
    API_BASE,
    API_TIMEOUT,
    CATEGORY_RULES,
    CONFIG,
    DEFAULT_CATEGORY,
    HUB_CATEGORIES,
    MATCH_TYPES,
    PRUNABLE_CATEGORIES,
    STRUCTURAL_TYPE_HINTS,
)
from linkscope.models import (
    Component,
    FilterConfig,
    GraphMetrics,
    GraphNode,
    NodeMetrics,
    NormalizedGraph,
    Relationship,
)
from linkscope.utils import _coerce_id, _coerce_list, coerce_number, profile_time

# ------------------------------
# Response envelopes
# ------------------------------
_NODE_LIST_KEYS = ("nodes", "incoming")
_REL_LIST_KEYS = ("relationships", "edges")
_NODE_RESERVED_KEYS = {"id", "node_id", "labels", "props", "properties"}

# Identity resolution per backend dialect: (node id keys, start keys, end keys).
_IDENTITY_KEYS: Dict[str, Tuple[Tuple[str, ...], Tuple[str, ...], Tuple[str, ...]]] = {
    "id": (
        ("id", "node_id"),
        ("startId", "start_node_id", "start", "from", "source"),
        ("endId", "end_node_id", "end", "to", "target"),
    ),
    "node_id": (
        ("node_id", "id"),
        ("start_node_id", "startId", "start", "from", "source"),
        ("end_node_id", "endId", "end", "to", "target"),
    ),
}
_REL_RESERVED_KEYS = {"id", "type", "label", "props", "properties", *_IDENTITY_KEYS["id"][1], *_IDENTITY_KEYS["id"][2]}


def identity_keys(identity: str) -> Tuple[Tuple[str, ...], Tuple[str, ...], Tuple[str, ...]]:
    try:
        return _IDENTITY_KEYS[identity]
    except KeyError:
        raise ValueError(f"Unknown node identity: {identity}") from None


def _first_present(data: Dict[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _as_component(data: Dict[str, Any]) -> Component:
    nodes = _first_present(data, _NODE_LIST_KEYS)
    relationships = _first_present(data, _REL_LIST_KEYS)
    return Component(
        nodes=[n for n in nodes if isinstance(n, dict)] if isinstance(nodes, list) else [],
        relationships=(
            [r for r in relationships if isinstance(r, dict)] if isinstance(relationships, list) else []
        ),
    )


def _is_component_like(data: Any) -> bool:
    return isinstance(data, dict) and any(data.get(key) is not None for key in _NODE_LIST_KEYS + _REL_LIST_KEYS)


def _components_from_list(items: Any) -> List[Component]:
    return [_as_component(item) for item in _coerce_list(items) if isinstance(item, dict)]


# Known response shapes, checked in order. Anything else decodes to no components.
_PAYLOAD_SHAPES: List[Tuple[str, Callable[[Any], bool], Callable[[Any], List[Component]]]] = [
    ("component_list", lambda p: isinstance(p, list), _components_from_list),
    (
        "components_envelope",
        lambda p: isinstance(p, dict) and p.get("components") is not None,
        lambda p: _components_from_list(p["components"]),
    ),
    (
        "component_envelope",
        lambda p: isinstance(p, dict) and p.get("component") is not None,
        lambda p: _components_from_list(p["component"]),
    ),
    ("single_component", _is_component_like, lambda p: [_as_component(p)]),
]


def payload_shape(payload: Any) -> Optional[str]:
    for name, matches, _ in _PAYLOAD_SHAPES:
        if matches(payload):
            return name
    return None


def decode_components(payload: Any) -> List[Component]:
    """Turn any backend response envelope into an ordered list of raw components."""
    for name, matches, extract in _PAYLOAD_SHAPES:
        if matches(payload):
            components = extract(payload)
            logging.debug("Decoded payload as %s with %d component(s)", name, len(components))
            return components
    if payload is not None:
        logging.warning("Unrecognised payload shape (%s); nothing to render", type(payload).__name__)
    return []


def _node_from_raw(
    raw: Dict[str, Any], component_index: int, id_keys: Sequence[str] = _IDENTITY_KEYS["id"][0]
) -> Optional[GraphNode]:
    props = raw.get("props")
    if not isinstance(props, dict):
        props = raw.get("properties")
    node_id = _coerce_id(_first_present(raw, id_keys))
    if node_id is None and isinstance(props, dict):
        node_id = _coerce_id(props.get("id"))
    if node_id is None:
        return None
    if not isinstance(props, dict):
        props = {k: v for k, v in raw.items() if k not in _NODE_RESERVED_KEYS}
    labels = tuple(str(label) for label in _coerce_list(raw.get("labels")) if label is not None)
    display_label = _coerce_id(props.get("id")) or node_id
    return GraphNode(
        id=node_id,
        labels=labels,
        properties=dict(props),
        display_label=display_label,
        component=component_index,
    )


def _relationship_from_raw(
    raw: Dict[str, Any],
    component_index: int,
    index: int,
    start_keys: Sequence[str] = _IDENTITY_KEYS["id"][1],
    end_keys: Sequence[str] = _IDENTITY_KEYS["id"][2],
) -> Optional[Relationship]:
    start_id = _coerce_id(_first_present(raw, start_keys))
    end_id = _coerce_id(_first_present(raw, end_keys))
    if start_id is None or end_id is None:
        return None
    props = raw.get("props")
    if not isinstance(props, dict):
        props = raw.get("properties")
    if not isinstance(props, dict):
        props = {k: v for k, v in raw.items() if k not in _REL_RESERVED_KEYS}
    rel_type = raw.get("type")
    if rel_type is None:
        rel_type = raw.get("label")
    rel_id = _coerce_id(raw.get("id")) or f"e-{component_index}-{index}-{start_id}-{end_id}"
    return Relationship(
        id=rel_id,
        start_id=start_id,
        end_id=end_id,
        type="" if rel_type is None else str(rel_type),
        properties=dict(props),
    )


@profile_time
def normalize_payload(payload: Any, identity: str = "id") -> NormalizedGraph:
    """Decode, de-duplicate and link a payload.

    ``identity`` picks which key names a node first: ``"id"`` for component
    lookups, ``"node_id"`` for the screens whose relationships reference
    ``start_node_id``/``end_node_id``.
    """
    id_keys, start_keys, end_keys = identity_keys(identity)
    components = decode_components(payload)

    nodes: List[GraphNode] = []
    node_ids: Set[str] = set()
    for component_index, component in enumerate(components):
        for raw in component.nodes:
            node = _node_from_raw(raw, component_index, id_keys)
            if node is None or node.id in node_ids:
                continue
            node_ids.add(node.id)
            nodes.append(node)

    relationships: List[Relationship] = []
    rel_ids: Set[str] = set()
    dropped = 0
    for component_index, component in enumerate(components):
        for index, raw in enumerate(component.relationships):
            rel = _relationship_from_raw(raw, component_index, index, start_keys, end_keys)
            if rel is None or rel.start_id not in node_ids or rel.end_id not in node_ids:
                dropped += 1
                logging.debug("Dropping relationship %r with unknown endpoint", raw.get("id"))
                continue
            if rel.id in rel_ids:
                logging.debug("Skipping duplicate relationship %s", rel.id)
                continue
            rel_ids.add(rel.id)
            relationships.append(rel)

    return NormalizedGraph(
        components=components,
        nodes=nodes,
        relationships=relationships,
        dropped_relationships=dropped,
    )


# ------------------------------
# Classification
# ------------------------------
def classify_labels(
    labels: Iterable[str],
    rules: Sequence[Tuple[str, str]] = CATEGORY_RULES,
    default: str = DEFAULT_CATEGORY,
) -> str:
    lowered = [str(label).lower() for label in labels if label is not None]
    for keyword, category in rules:
        if any(keyword in label for label in lowered):
            return category
    return default


def classify_nodes(nodes: Iterable[GraphNode]) -> Dict[str, str]:
    return {node.id: classify_labels(node.labels) for node in nodes}


def relationship_class(rel_type: Optional[str]) -> str:
    """``match``, ``structural`` or ``other``."""
    lowered = (rel_type or "").strip().lower()
    if lowered in MATCH_TYPES:
        return "match"
    if any(hint in lowered for hint in STRUCTURAL_TYPE_HINTS):
        return "structural"
    return "other"


# ------------------------------
# Match filter
# ------------------------------
def is_relationship_eligible(rel: Relationship, filter_config: FilterConfig) -> bool:
    if relationship_class(rel.type) != "match":
        return True
    for key in sorted(filter_config.selected_score_keys):
        value = coerce_number(rel.properties.get(key))
        if value is not None and value >= filter_config.threshold_for(key):
            return True
    return False


def filter_relationships(relationships: Iterable[Relationship], filter_config: FilterConfig) -> List[Relationship]:
    visible = [rel for rel in relationships if is_relationship_eligible(rel, filter_config)]
    logging.debug("Match filter kept %d relationship(s)", len(visible))
    return visible


# ------------------------------
# Degree metrics
# ------------------------------
def _degree_graph(node_ids: Iterable[str], relationships: Iterable[Relationship]) -> nx.MultiGraph:
    G = nx.MultiGraph()
    G.add_nodes_from(node_ids)
    for rel in relationships:
        is_match = relationship_class(rel.type) == "match"
        G.add_edge(rel.start_id, rel.end_id, key=rel.id, match=1 if is_match else 0)
    return G


def _structural_members(
    relationships: Iterable[Relationship], categories: Dict[str, str]
) -> Dict[str, Set[str]]:
    members: Dict[str, Set[str]] = {}
    for rel in relationships:
        if relationship_class(rel.type) != "structural" or rel.start_id == rel.end_id:
            continue
        for hub, member in ((rel.start_id, rel.end_id), (rel.end_id, rel.start_id)):
            if categories.get(hub) in HUB_CATEGORIES:
                members.setdefault(hub, set()).add(member)
    return members


@profile_time
def compute_metrics(
    nodes: Sequence[GraphNode],
    categories: Dict[str, str],
    relationships: Sequence[Relationship],
    score_keys: Optional[Sequence[str]] = None,
    degree_policy: str = "transitive",
) -> GraphMetrics:
    """Direct, match and transitive degree per node over the visible relationships.

    Transitive degree applies to uid/operator hubs: the number of distinct
    structurally linked members that carry at least one visible match edge.
    """
    score_keys = list(score_keys if score_keys is not None else CONFIG["SCORE_KEYS"])
    G = _degree_graph((node.id for node in nodes), relationships)
    direct = dict(G.degree())
    match = dict(G.degree(weight="match"))

    tallies: Dict[str, Counter] = {node.id: Counter() for node in nodes}
    for rel in relationships:
        if relationship_class(rel.type) != "match":
            continue
        for key in score_keys:
            if coerce_number(rel.properties.get(key)) is None:
                continue
            tallies.setdefault(rel.start_id, Counter())[key] += 1
            tallies.setdefault(rel.end_id, Counter())[key] += 1

    members = _structural_members(relationships, categories)
    transitive = {
        hub: sum(1 for member in linked if match.get(member, 0) > 0) for hub, linked in members.items()
    }

    metrics: Dict[str, NodeMetrics] = {}
    for node in nodes:
        node_metrics = NodeMetrics(
            direct_degree=int(direct.get(node.id, 0)),
            match_degree=int(match.get(node.id, 0)),
            transitive_degree=transitive.get(node.id, 0),
            property_counts=dict(tallies[node.id]),
        )
        if degree_policy == "transitive" and categories.get(node.id) in HUB_CATEGORIES:
            node_metrics.metric = node_metrics.transitive_degree
        else:
            node_metrics.metric = node_metrics.direct_degree
        metrics[node.id] = node_metrics

    max_degree = max([m.metric for m in metrics.values()] + [1])
    return GraphMetrics(nodes=metrics, max_degree=max_degree)


# ------------------------------
# Sparse-node filter
# ------------------------------
def prune_sparse_nodes(
    nodes: Sequence[GraphNode],
    categories: Dict[str, str],
    metrics: GraphMetrics,
    relationships: Sequence[Relationship],
    enabled: bool = True,
) -> Tuple[List[GraphNode], List[Relationship], Set[str]]:
    """Drop operator/uid leaves (direct degree exactly 1) and their relationships."""
    if not enabled:
        return list(nodes), list(relationships), set()
    removed = {
        node.id
        for node in nodes
        if categories.get(node.id) in PRUNABLE_CATEGORIES
        and metrics.nodes.get(node.id, NodeMetrics()).direct_degree == 1
    }
    if removed:
        logging.debug("Sparse-node filter removed %d node(s): %s", len(removed), sorted(removed))
    kept_nodes = [node for node in nodes if node.id not in removed]
    kept_rels = [rel for rel in relationships if rel.start_id not in removed and rel.end_id not in removed]
    return kept_nodes, kept_rels, removed


# ------------------------------
# Backend retrieval
# ------------------------------
def build_endpoint_url(
    screen: str,
    entity_id: Optional[str] = None,
    degree: Optional[int] = None,
    base_url: Optional[str] = None,
) -> str:
    template = CONFIG["ENDPOINTS"].get(screen)
    if template is None:
        raise ValueError(f"Unknown screen: {screen}")
    if "{id}" in template and not (entity_id or "").strip():
        raise ValueError("Please provide an id.")
    if degree is None:
        degree = CONFIG["SCREEN_PROFILES"].get(screen, {}).get("default_degree", CONFIG["DEFAULT_OFF_TIME_DEGREE"])
    path = template.format(id=quote((entity_id or "").strip(), safe=""), degree=quote(str(degree), safe=""))
    base = (base_url if base_url is not None else API_BASE).rstrip("/")
    return f"{base}{path}"


def fetch_graph_payload(
    url: str,
    timeout: Optional[float] = None,
    session: Optional[requests.Session] = None,
) -> Tuple[Optional[Any], List[str]]:
    errors: List[str] = []
    http = session or requests
    try:
        resp = http.get(url, headers={"Accept": "application/json"}, timeout=timeout or API_TIMEOUT)
    except requests.RequestException as exc:
        logging.error("Request to %s failed: %s", url, exc)
        errors.append(f"Request failed: {exc}")
        return None, errors
    if resp.status_code >= 400:
        errors.append(f"Request failed: {resp.status_code} {resp.reason or ''}".strip())
        return None, errors
    try:
        payload = resp.json()
    except ValueError as exc:
        errors.append(f"Invalid JSON in response from {url}: {exc}")
        return None, errors
    return payload, errors


class FetchGate:
    """Keeps one outstanding request; a superseded response must not replace fresher state.

    Requests run synchronously, so ``abort`` cannot cancel one already in flight.
    It only marks the outstanding ticket stale, and ``finish`` then discards that
    response when it arrives.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tickets = itertools.count(1)
        self._current: Optional[int] = None

    def begin(self) -> int:
        with self._lock:
            self._current = next(self._tickets)
            return self._current

    def abort(self) -> None:
        with self._lock:
            self._current = None

    def is_current(self, ticket: int) -> bool:
        with self._lock:
            return self._current == ticket

    def finish(self, ticket: int) -> bool:
        with self._lock:
            if self._current != ticket:
                logging.info("Discarding superseded response (ticket %s)", ticket)
                return False
            self._current = None
            return True

    def fetch(
        self,
        url: str,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> Tuple[bool, Optional[Any], List[str]]:
        """Returns ``(accepted, payload, errors)``; ``accepted`` is False when superseded."""
        ticket = self.begin()
        payload, errors = fetch_graph_payload(url, timeout=timeout, session=session)
        return self.finish(ticket), payload, errors


# ------------------------------
# In-degree table
# ------------------------------
def decode_indegree_rows(payload: Any) -> Tuple[List[Dict[str, Any]], List[str]]:
    """Rows of ``{"node_id", "indegree"}`` from a ``/compdegree`` response."""
    if payload is None:
        return [], []
    if not isinstance(payload, list):
        return [], ["API did not return an array"]
    rows: List[Dict[str, Any]] = []
    for item in payload:
        if not isinstance(item, dict):
            continue
        indegree = coerce_number(item.get("indegree"))
        if indegree is not None and indegree.is_integer():
            indegree = int(indegree)
        rows.append({"node_id": _coerce_id(item.get("node_id")) or "", "indegree": indegree})
    return rows, []


def filter_indegree_rows(rows: Iterable[Dict[str, Any]], query: str = "") -> List[Dict[str, Any]]:
    # Case-insensitive substring on node_id, plain substring on indegree.
    needle = (query or "").strip().lower()
    if not needle:
        return list(rows)
    return [
        row
        for row in rows
        if needle in row["node_id"].lower() or (row["indegree"] is not None and needle in str(row["indegree"]))
    ]


def sort_indegree_rows(
    rows: Iterable[Dict[str, Any]],
    key: str = "indegree",
    descending: bool = True,
) -> List[Dict[str, Any]]:
    """Stable sort; rows missing ``key`` always go last."""
    rows = list(rows)
    present = [row for row in rows if row.get(key) is not None]
    missing = [row for row in rows if row.get(key) is None]
    return sorted(present, key=lambda row: row[key], reverse=descending) + missing
