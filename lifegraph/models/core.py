"""
Core data models for the memory log and its derived knowledge graph.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..utils.timestamp_utils import to_datetime, to_iso


class NodeKind(str, Enum):
    MEMORY = 'memory'
    PERSON = 'person'
    PLACE = 'place'
    EVENT = 'event'


ENTITY_KINDS = (NodeKind.PERSON, NodeKind.PLACE, NodeKind.EVENT)

# Memory field holding the mentions of each entity kind.
MENTION_FIELDS = (('people', NodeKind.PERSON), ('places', NodeKind.PLACE), ('events', NodeKind.EVENT))


class Sentiment(str, Enum):
    POSITIVE = 'positive'
    NEUTRAL = 'neutral'
    NEGATIVE = 'negative'


SENTIMENTS = tuple(s.value for s in Sentiment)

CONTAINS = 'contains'
RELATES_TO = 'relates_to'

DEFAULT_CONFIDENCE = 0.8


def _as_list(value: Any) -> List[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


@dataclass
class MemoryDraft:
    """Sanitized extractor output that has not been persisted yet."""
    content: str
    people: List[str] = field(default_factory=list)
    places: List[str] = field(default_factory=list)
    events: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    sentiment: str = Sentiment.NEUTRAL.value
    confidence: float = DEFAULT_CONFIDENCE

    def to_dict(self) -> Dict[str, Any]:
        return {
            'content': self.content,
            'people': list(self.people),
            'places': list(self.places),
            'events': list(self.events),
            'tags': list(self.tags),
            'sentiment': self.sentiment,
            'confidence': self.confidence,
        }


@dataclass
class Memory:
    """A single user-authored, AI-annotated personal note.

    The memory log is the source of truth; every graph node and edge derived
    from a memory can be regenerated from these fields.
    """
    id: str
    content: str
    people: List[str] = field(default_factory=list)
    places: List[str] = field(default_factory=list)
    events: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    sentiment: Optional[str] = Sentiment.NEUTRAL.value
    confidence: float = DEFAULT_CONFIDENCE
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> 'Memory':
        """Build a Memory from a stored record, tolerating missing arrays and string timestamps."""
        created_at = record.get('created_at')
        updated_at = record.get('updated_at')
        return cls(id=str(record['id']),
                   content=record.get('content') or '',
                   people=_as_list(record.get('people')),
                   places=_as_list(record.get('places')),
                   events=_as_list(record.get('events')),
                   tags=_as_list(record.get('tags')),
                   sentiment=record.get('sentiment'),
                   confidence=record.get('confidence', DEFAULT_CONFIDENCE),
                   created_at=to_datetime(created_at) if created_at is not None else None,
                   updated_at=to_datetime(updated_at) if updated_at is not None else None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'content': self.content,
            'people': list(self.people or []),
            'places': list(self.places or []),
            'events': list(self.events or []),
            'tags': list(self.tags or []),
            'sentiment': self.sentiment,
            'confidence': self.confidence,
            'created_at': to_iso(self.created_at),
            'updated_at': to_iso(self.updated_at),
        }


@dataclass
class MemoryPage:
    """One page of the memory log, newest first."""
    memories: List[Memory]
    page: int
    page_size: int
    total: int

    @property
    def total_pages(self) -> int:
        return -(-self.total // self.page_size)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'memories': [memory.to_dict() for memory in self.memories],
            'page': self.page,
            'page_size': self.page_size,
            'total': self.total,
            'total_pages': self.total_pages,
        }


@dataclass(frozen=True)
class GraphNode:
    """A memory node or a deduplicated entity node."""
    id: str
    kind: NodeKind
    label: str
    payload: Any  # Memory for memory nodes, canonical entity value otherwise

    @property
    def created_at(self) -> Optional[datetime]:
        if self.kind == NodeKind.MEMORY and isinstance(self.payload, Memory):
            return self.payload.created_at
        return None

    def to_dict(self) -> Dict[str, Any]:
        payload = self.payload.to_dict() if isinstance(self.payload, Memory) else self.payload
        return {'id': self.id, 'type': self.kind.value, 'label': self.label, 'data': payload}


@dataclass(frozen=True)
class GraphEdge:
    """An implicit (memory contains entity) or explicit (asserted) relation."""
    id: str
    source: str
    target: str
    kind: str = CONTAINS
    weight: float = 1.0
    label: Optional[str] = None
    explicit: bool = False
    created_at: Optional[datetime] = None

    @property
    def endpoints(self) -> Tuple[str, str]:
        return self.source, self.target

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'source': self.source,
            'target': self.target,
            'type': self.kind,
            'weight': self.weight,
            'label': self.label,
            'explicit': self.explicit,
        }


@dataclass(frozen=True)
class GraphView:
    """A filtered, read-only projection of the canonical graph."""
    nodes: Tuple[GraphNode, ...]
    edges: Tuple[GraphEdge, ...]
    node_type: str
    time_filter: str
    evaluated_at: datetime

    @property
    def node_ids(self) -> frozenset:
        return frozenset(node.id for node in self.nodes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'nodes': [node.to_dict() for node in self.nodes],
            'links': [edge.to_dict() for edge in self.edges],
            'filters': {'node_type': self.node_type, 'time': self.time_filter},
            'evaluated_at': to_iso(self.evaluated_at),
        }


@dataclass
class GraphStats:
    total_nodes: int = 0
    total_edges: int = 0
    node_types: Dict[str, int] = field(default_factory=dict)
    density: float = 0.0
    central_nodes: List[Tuple[str, int]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_nodes': self.total_nodes,
            'total_edges': self.total_edges,
            'node_types': dict(self.node_types),
            'density': self.density,
            'central_nodes': [{'id': node_id, 'degree': degree} for node_id, degree in self.central_nodes],
        }


@dataclass
class AnalyticsSnapshot:
    """Aggregated statistics over the memory log, rebuilt wholesale on demand."""
    total: int
    this_week: int
    this_month: int
    this_year: int
    average_per_day: float
    average_per_week: float
    sentiment_breakdown: Dict[str, int]
    top_tags: Dict[str, int]
    top_people: Dict[str, int]
    top_places: Dict[str, int]
    top_events: Dict[str, int]
    computed_at: datetime
    graph_stats: Optional[GraphStats] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total': self.total,
            'this_week': self.this_week,
            'this_month': self.this_month,
            'this_year': self.this_year,
            'average_per_day': self.average_per_day,
            'average_per_week': self.average_per_week,
            'sentiment_breakdown': dict(self.sentiment_breakdown),
            'top_tags': dict(self.top_tags),
            'top_people': dict(self.top_people),
            'top_places': dict(self.top_places),
            'top_events': dict(self.top_events),
            'computed_at': to_iso(self.computed_at),
            'graph_stats': self.graph_stats.to_dict() if self.graph_stats else None,
        }


@dataclass(frozen=True)
class TrendPoint:
    date: str
    count: int


@dataclass(frozen=True)
class SentimentTrendPoint:
    week: str
    positive: float
    neutral: float
    negative: float


class InsightType(str, Enum):
    POSITIVE = 'positive'
    NEUTRAL = 'neutral'
    WARNING = 'warning'
    INFO = 'info'


@dataclass(frozen=True)
class Insight:
    id: str
    type: InsightType
    title: str
    description: str
    action: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'type': self.type.value,
            'title': self.title,
            'description': self.description,
            'action': self.action,
        }


@dataclass
class OperationResult:
    """Outcome of a mutating operation; failures are values, not exceptions."""
    success: bool
    data: Any = None
    error: Optional[str] = None
    not_found: bool = False

    @classmethod
    def ok(cls, data: Any = None) -> 'OperationResult':
        return cls(success=True, data=data)

    @classmethod
    def failed(cls, error: str) -> 'OperationResult':
        return cls(success=False, error=error)

    @classmethod
    def missing(cls, what: str) -> 'OperationResult':
        return cls(success=False, error=f'{what} not found', not_found=True)
