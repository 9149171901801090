"""Data models for graph structures."""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple


@dataclass(frozen=True)
class GraphNode:
    id: str
    labels: Tuple[str, ...]
    properties: Dict[str, Any] = field(default_factory=dict, compare=False)
    display_label: str = ""
    component: int = 0


@dataclass(frozen=True)
class Relationship:
    id: str
    start_id: str
    end_id: str
    type: str
    properties: Dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass
class Component:
    nodes: List[Dict[str, Any]]
    relationships: List[Dict[str, Any]]


@dataclass
class NormalizedGraph:
    components: List[Component]
    nodes: List[GraphNode]
    relationships: List[Relationship]
    dropped_relationships: int = 0


@dataclass(frozen=True)
class FilterConfig:
    """Match filter state: which score keys count and the bar each must clear."""

    selected_score_keys: FrozenSet[str]
    thresholds: Tuple[Tuple[str, float], ...] = ()
    prune_sparse: bool = False

    @classmethod
    def default(cls, score_keys: Iterable[str], prune_sparse: bool = False) -> "FilterConfig":
        keys = list(score_keys)
        return cls(
            selected_score_keys=frozenset(keys),
            thresholds=tuple((key, 0.0) for key in keys),
            prune_sparse=prune_sparse,
        )

    def threshold_for(self, key: str) -> float:
        for name, value in self.thresholds:
            if name == key:
                return value
        return 0.0

    def toggled(self, key: str) -> "FilterConfig":
        if key in self.selected_score_keys:
            return replace(self, selected_score_keys=self.selected_score_keys - {key})
        return replace(self, selected_score_keys=self.selected_score_keys | {key})

    def with_threshold(self, key: str, value: float) -> "FilterConfig":
        thresholds = [(name, v) for name, v in self.thresholds if name != key]
        thresholds.append((key, float(value)))
        return replace(self, thresholds=tuple(sorted(thresholds)))

    def with_pruning(self, enabled: bool) -> "FilterConfig":
        return replace(self, prune_sparse=bool(enabled))

    def reset(self, score_keys: Iterable[str]) -> "FilterConfig":
        return FilterConfig.default(score_keys, prune_sparse=self.prune_sparse)


@dataclass
class NodeMetrics:
    direct_degree: int = 0
    match_degree: int = 0
    transitive_degree: int = 0
    metric: int = 0
    property_counts: Dict[str, int] = field(default_factory=dict)


@dataclass
class GraphMetrics:
    nodes: Dict[str, NodeMetrics]
    max_degree: int = 1


@dataclass(frozen=True)
class RenderOptions:
    layout: str = "banded"
    degree_policy: str = "transitive"
    seed: Optional[int] = None
    jitter: Optional[float] = None
    identity: str = "id"


@dataclass
class RenderNode:
    id: str
    label: str
    title: str
    x: float
    y: float
    color: Dict[str, str]
    size: float
    category: str = "other"
    degree: int = 0
    group: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "title": self.title,
            "x": self.x,
            "y": self.y,
            "color": dict(self.color),
            "size": self.size,
            "group": self.group or self.category,
        }


@dataclass
class RenderEdge:
    id: str
    source: str
    target: str
    label: str
    title: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "from": self.source, "to": self.target, "label": self.label, "title": self.title}


@dataclass
class RenderModel:
    nodes: List[RenderNode]
    edges: List[RenderEdge]
    counts: Dict[str, int]

    @classmethod
    def empty(cls) -> "RenderModel":
        return cls(nodes=[], edges=[], counts={"nodes": 0, "edges": 0})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "visibleNodes": [node.to_dict() for node in self.nodes],
            "visibleEdges": [edge.to_dict() for edge in self.edges],
            "counts": dict(self.counts),
            "nodeCount": self.counts.get("nodes", 0),
            "edgeCount": self.counts.get("edges", 0),
        }
