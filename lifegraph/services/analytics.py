"""
Analytics Aggregator: statistics over the memory log and the graph.

Snapshots are recomputed wholesale on every call; nothing here mutates its inputs.
"""

import math
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..models.core import (SENTIMENTS, AnalyticsSnapshot, GraphStats, Insight, Memory, SentimentTrendPoint,
                           TrendPoint)
from ..utils.logging_config import get_logger
from ..utils.timestamp_utils import day_key, to_datetime, to_iso, utc_now
from .graph_builder import Graph

logger = get_logger(__name__)

DAY = timedelta(days=1)

TREND_PERIODS = {'7d': 7, '30d': 30, '90d': 90}


def _period_days(period: str) -> int:
    if period not in TREND_PERIODS:
        logger.warning(f'Unknown trend period {period!r}, using 90d')
    return TREND_PERIODS.get(period, 90)


def _top(counter: Counter, top_k: Optional[int]) -> Dict[str, int]:
    # Counter.most_common is a stable sort, so ties keep first-seen order
    return dict(counter.most_common(top_k))


def _mentions(values: Any) -> List[str]:
    if not isinstance(values, (list, tuple)):
        return []
    return [value for value in values if isinstance(value, str) and value.strip()]


def compute_graph_stats(graph: Optional[Graph], central_limit: int = 5) -> GraphStats:
    """Node/edge totals, per-kind counts and undirected density."""
    if graph is None:
        return GraphStats()

    node_count = len(graph.nodes)
    edge_count = len(graph.edges)
    node_types: Dict[str, int] = {}
    for node in graph.nodes.values():
        node_types[node.kind.value] = node_types.get(node.kind.value, 0) + 1

    density = 0.0
    if node_count > 1:
        density = min(1.0, (2 * edge_count) / (node_count * (node_count - 1)))

    return GraphStats(total_nodes=node_count,
                      total_edges=edge_count,
                      node_types=node_types,
                      density=density,
                      central_nodes=central_nodes(graph, central_limit))


def central_nodes(graph: Graph, limit: int = 5) -> List[tuple]:
    """Highest-degree nodes as (node_id, degree), ties in graph order."""
    degrees = [(node_id, graph.degree(node_id)) for node_id in graph.nodes]
    degrees = [entry for entry in degrees if entry[1] > 0]
    degrees.sort(key=lambda entry: entry[1], reverse=True)
    return degrees[:limit]


def compute_stats(memories: Iterable[Memory],
                  graph: Optional[Graph] = None,
                  now: Optional[datetime] = None,
                  top_k: Optional[int] = None) -> AnalyticsSnapshot:
    """Compute an AnalyticsSnapshot in a single pass over the memory log.

    Args:
        memories: Memory log
        graph: Canonical graph for the graph-derived stats (optional)
        now: Evaluation time (defaults to the current time)
        top_k: Truncate the frequency tables to this many entries

    Returns:
        AnalyticsSnapshot stamped with ``now``
    """
    now = to_datetime(now) if now is not None else utc_now()
    week_ago = now - 7 * DAY
    month_ago = now - 30 * DAY
    year_ago = now - 365 * DAY

    total = this_week = this_month = this_year = 0
    oldest: Optional[datetime] = None
    sentiment_breakdown = {sentiment: 0 for sentiment in SENTIMENTS}
    tags, people, places, events = Counter(), Counter(), Counter(), Counter()

    for memory in memories:
        total += 1
        created_at = to_datetime(memory.created_at) if memory.created_at is not None else None
        if created_at is not None:
            if created_at > week_ago:
                this_week += 1
            if created_at > month_ago:
                this_month += 1
            if created_at > year_ago:
                this_year += 1
            if oldest is None or created_at < oldest:
                oldest = created_at

        if isinstance(memory.sentiment, str) and memory.sentiment in sentiment_breakdown:
            sentiment_breakdown[memory.sentiment] += 1

        tags.update(_mentions(memory.tags))
        people.update(_mentions(memory.people))
        places.update(_mentions(memory.places))
        events.update(_mentions(memory.events))

    span_days = math.ceil((now - oldest) / DAY) if oldest is not None else 0
    average_per_day = total / max(1, span_days)

    snapshot = AnalyticsSnapshot(total=total,
                                 this_week=this_week,
                                 this_month=this_month,
                                 this_year=this_year,
                                 average_per_day=average_per_day,
                                 average_per_week=average_per_day * 7,
                                 sentiment_breakdown=sentiment_breakdown,
                                 top_tags=_top(tags, top_k),
                                 top_people=_top(people, top_k),
                                 top_places=_top(places, top_k),
                                 top_events=_top(events, top_k),
                                 computed_at=now,
                                 graph_stats=compute_graph_stats(graph) if graph is not None else None)

    logger.debug(f'Computed analytics over {total} memories')
    return snapshot


def memory_trends(memories: Iterable[Memory], period: str = '30d', now: Optional[datetime] = None) -> List[TrendPoint]:
    """Memories per calendar day over the trailing period, oldest day first, zero-filled."""
    now = to_datetime(now) if now is not None else utc_now()
    days = _period_days(period)

    counts = {day_key(now - offset * DAY): 0 for offset in range(days - 1, -1, -1)}
    for memory in memories:
        if memory.created_at is None:
            continue
        key = day_key(memory.created_at)
        if key in counts:
            counts[key] += 1

    return [TrendPoint(date=key, count=count) for key, count in counts.items()]


def sentiment_trends(memories: Iterable[Memory],
                     period: str = '30d',
                     now: Optional[datetime] = None) -> List[SentimentTrendPoint]:
    """Weekly sentiment percentages over the trailing period.

    Weeks start on Sunday. Memories without a recognized sentiment are left out
    of both numerator and denominator.
    """
    now = to_datetime(now) if now is not None else utc_now()
    start = now - _period_days(period) * DAY

    weeks: Dict[str, Counter] = {}
    for memory in sorted((m for m in memories if m.created_at is not None), key=lambda m: to_datetime(m.created_at)):
        created_at = to_datetime(memory.created_at)
        if created_at < start or not isinstance(memory.sentiment, str) or memory.sentiment not in SENTIMENTS:
            continue
        week_start = created_at.date() - timedelta(days=(created_at.weekday() + 1) % 7)
        weeks.setdefault(week_start.isoformat(), Counter())[memory.sentiment] += 1

    points = []
    for week, counts in weeks.items():
        week_total = sum(counts.values())
        points.append(
            SentimentTrendPoint(week=week,
                                positive=counts['positive'] / week_total * 100,
                                neutral=counts['neutral'] / week_total * 100,
                                negative=counts['negative'] / week_total * 100))
    return points


def export_analytics(snapshot: AnalyticsSnapshot,
                     insights: Sequence[Insight] = (),
                     now: Optional[datetime] = None) -> Dict[str, Any]:
    """JSON-ready analytics export."""
    generated_at = to_datetime(now) if now is not None else utc_now()
    return {
        'generated_at': to_iso(generated_at),
        'last_updated': to_iso(snapshot.computed_at),
        'memory_stats': snapshot.to_dict(),
        'graph_stats': snapshot.graph_stats.to_dict() if snapshot.graph_stats else None,
        'insights': [insight.to_dict() for insight in insights],
    }
