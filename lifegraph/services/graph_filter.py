"""
Filter Engine: projects the canonical graph into a view.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Type, TypeVar, Union

from ..models.core import GraphView, NodeKind
from ..utils.logging_config import get_logger
from ..utils.timestamp_utils import to_datetime, utc_now
from .graph_builder import Graph

logger = get_logger(__name__)


class NodeTypeFilter(str, Enum):
    ALL = 'all'
    MEMORY = 'memory'
    PERSON = 'person'
    PLACE = 'place'
    EVENT = 'event'


class TimeFilter(str, Enum):
    ALL = 'all'
    WEEK = 'week'
    MONTH = 'month'
    YEAR = 'year'


TIME_WINDOWS = {
    TimeFilter.WEEK: timedelta(days=7),
    TimeFilter.MONTH: timedelta(days=30),
    TimeFilter.YEAR: timedelta(days=365),
}

_F = TypeVar('_F', NodeTypeFilter, TimeFilter)


def coerce_filter(enum_cls: Type[_F], value: Union[str, _F, None]) -> _F:
    """Map a filter value onto its enum; unknown values mean 'all'."""
    if value is None:
        return enum_cls('all')
    try:
        return enum_cls(value)
    except ValueError:
        logger.warning(f'Unknown {enum_cls.__name__} value {value!r}, using all')
        return enum_cls('all')


def time_cutoff(time_filter: TimeFilter, now: datetime) -> Optional[datetime]:
    window = TIME_WINDOWS.get(time_filter)
    return now - window if window else None


def apply_filters(graph: Graph,
                  node_type: Union[str, NodeTypeFilter] = NodeTypeFilter.ALL,
                  time_filter: Union[str, TimeFilter] = TimeFilter.ALL,
                  now: Optional[datetime] = None) -> GraphView:
    """Project ``graph`` through a node-type filter and a time window.

    Node-type filtering runs first, then the time window. Memory nodes created
    at or before the cutoff are dropped; entity nodes are never dropped by time
    and stay in the view even when all their edges are pruned. An edge survives
    only if both endpoints survive.
    """
    node_type = coerce_filter(NodeTypeFilter, node_type)
    time_filter = coerce_filter(TimeFilter, time_filter)
    now = to_datetime(now) if now is not None else utc_now()

    nodes = list(graph.nodes.values())
    if node_type != NodeTypeFilter.ALL:
        kind = NodeKind(node_type.value)
        nodes = [node for node in nodes if node.kind == kind]

    cutoff = time_cutoff(time_filter, now)
    if cutoff is not None:
        kept = []
        for node in nodes:
            created_at = node.created_at
            if node.kind == NodeKind.MEMORY and created_at is not None and to_datetime(created_at) <= cutoff:
                continue
            kept.append(node)
        nodes = kept

    node_ids = {node.id for node in nodes}
    edges = [edge for edge in graph.edges.values() if edge.source in node_ids and edge.target in node_ids]

    return GraphView(nodes=tuple(nodes),
                     edges=tuple(edges),
                     node_type=node_type.value,
                     time_filter=time_filter.value,
                     evaluated_at=now)
