"""
Memory Graph Service: owns the memory log, the canonical graph and the view state.

Single writer: callers serialize create/update/delete. Every mutation builds a
new graph value and swaps ``self._graph`` once, so readers always see a whole graph.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from ..models.core import (RELATES_TO, AnalyticsSnapshot, GraphEdge, GraphNode, GraphView, Insight, Memory, MemoryPage,
                           NodeKind, OperationResult)
from ..utils.config import AppConfig
from ..utils.config import config as default_config
from ..utils.logging_config import get_logger
from .analytics import compute_stats, export_analytics, memory_trends, sentiment_trends
from .entity_normalizer import memory_node_id, sanitize_fields, sanitize_memory_data
from .graph_builder import Graph, build_graph
from .graph_filter import NodeTypeFilter, TimeFilter, apply_filters, coerce_filter
from .graph_sync import GraphSynchronizer
from .insights import InsightThresholds, generate_insights
from .memory_extraction import MemoryExtractionError, MemoryExtractionService
from .stores import EdgeStore, InMemoryEdgeStore, InMemoryMemoryStore, MemoryFilters, MemoryStore, StoreError

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 20


class MemoryGraphService:
    """Unified service for memory CRUD, graph synchronization, views and analytics."""

    def __init__(self,
                 memory_store: Optional[MemoryStore] = None,
                 edge_store: Optional[EdgeStore] = None,
                 extractor: Optional[MemoryExtractionService] = None,
                 app_config: Optional[AppConfig] = None):
        """Initialize the service.

        Args:
            memory_store: Memory source-of-truth (in-memory store if None)
            edge_store: Explicit-edge store (in-memory store if None)
            extractor: Memory extractor; created lazily on first use if None
            app_config: AppConfig instance, uses default if None
        """
        self.config = app_config or default_config
        self.memory_store = memory_store if memory_store is not None else InMemoryMemoryStore()
        self.edge_store = edge_store if edge_store is not None else InMemoryEdgeStore()
        self._extractor = extractor
        self.synchronizer = GraphSynchronizer.from_config(self.config.graph)
        self.thresholds = InsightThresholds.from_config(self.config.analytics)

        self.node_type = NodeTypeFilter.ALL
        self.time_filter = TimeFilter.ALL
        self._graph = Graph()
        self._insights: List[Insight] = []

        logger.info('Initialized MemoryGraphService')

    @property
    def graph(self) -> Graph:
        """Current canonical graph; treat as read-only."""
        return self._graph

    @property
    def extractor(self) -> MemoryExtractionService:
        if self._extractor is None:
            self._extractor = MemoryExtractionService()
        return self._extractor

    # Graph lifecycle

    def rebuild(self) -> OperationResult:
        """Rebuild the canonical graph from the memory log and explicit edges."""
        try:
            memories = self.memory_store.list()
            edges = self.edge_store.list()
        except StoreError as e:
            logger.error(f'Store error during graph rebuild: {e}')
            return OperationResult.failed(f'Graph rebuild failed: {e}')

        graph = build_graph(memories,
                            edges,
                            case_fold=self.config.graph.case_fold_entities,
                            label_length=self.config.graph.label_length)
        self._graph = graph
        logger.info(f'Rebuilt graph: {len(graph.nodes)} nodes, {len(graph.edges)} edges')
        return OperationResult.ok(graph)

    def load(self) -> OperationResult:
        return self.rebuild()

    def verify_consistency(self) -> List[str]:
        """Check the canonical graph against itself and the memory log, rebuilding on any mismatch.

        Returns:
            The problems found before recovery (empty when consistent)
        """
        graph = self._graph
        problems = graph.find_inconsistencies()

        try:
            logged = {memory_node_id(memory.id) for memory in self.memory_store.list()}
        except StoreError as e:
            logger.error(f'Store error during consistency check: {e}')
            return problems
        in_graph = {node_id for node_id, node in graph.nodes.items() if node.kind == NodeKind.MEMORY}
        problems.extend(f'memory node {node_id} not in memory log' for node_id in sorted(in_graph - logged))
        problems.extend(f'memory node {node_id} missing from graph' for node_id in sorted(logged - in_graph))

        if problems:
            logger.warning(f'Graph inconsistent ({len(problems)} problems), rebuilding: {problems[:5]}')
            self.rebuild()
        return problems

    # Memory log

    def save_memory(self, data: Dict[str, Any], created_at: Optional[datetime] = None) -> OperationResult:
        """Sanitize and persist a memory, then add it to the graph."""
        draft = sanitize_memory_data(data)
        if not draft.content:
            return OperationResult.failed('Memory content is required')

        try:
            memory = self.memory_store.create(draft, created_at=created_at)
        except StoreError as e:
            logger.error(f'Store error while saving memory: {e}')
            return OperationResult.failed(f'Memory save failed: {e}')

        self._graph = self.synchronizer.on_memory_created(self._graph, memory)
        logger.debug(f'Saved memory {memory.id}')
        return OperationResult.ok(memory)

    def add_from_message(self, message: str) -> OperationResult:
        """Run the extractor on a user message and save the memory it finds.

        The result data is ``{'response': str, 'memory': Optional[Memory]}``.
        Extractor failures are returned, never retried here.
        """
        try:
            extraction = self.extractor.extract(message)
        except MemoryExtractionError as e:
            logger.error(f'Memory extraction error: {e}')
            return OperationResult.failed(str(e))

        if extraction.error:
            return OperationResult(success=False,
                                   data={'response': extraction.response, 'memory': None},
                                   error=extraction.error)

        if not extraction.should_save or extraction.memory_data is None:
            return OperationResult.ok({'response': extraction.response, 'memory': None})

        saved = self.save_memory(extraction.memory_data.to_dict())
        if not saved.success:
            return saved
        return OperationResult.ok({'response': extraction.response, 'memory': saved.data})

    def update_memory(self, memory_id: str, changes: Dict[str, Any]) -> OperationResult:
        """Apply a partial update; unknown ids give a not-found result."""
        old_memory = self.memory_store.get(memory_id)
        if old_memory is None:
            logger.debug(f'Update of unknown memory {memory_id}')
            return OperationResult.missing(f'Memory {memory_id}')

        try:
            new_memory = self.memory_store.update(memory_id, sanitize_fields(changes))
        except StoreError as e:
            logger.error(f'Store error while updating memory {memory_id}: {e}')
            return OperationResult.failed(f'Memory update failed: {e}')

        if new_memory is None:
            return OperationResult.missing(f'Memory {memory_id}')

        self._graph = self.synchronizer.on_memory_updated(self._graph, old_memory, new_memory)
        return OperationResult.ok(new_memory)

    def delete_memory(self, memory_id: str) -> OperationResult:
        """Delete a memory, its explicit edges and its graph footprint.

        Explicit edges go first so the log never loses a memory that still has
        persisted edges. If a store call fails part way, the graph is rebuilt
        from whatever the stores now hold.
        """
        try:
            if self.memory_store.get(memory_id) is None:
                logger.debug(f'Delete of unknown memory {memory_id}')
                return OperationResult.missing(f'Memory {memory_id}')
            self.edge_store.delete_touching(memory_node_id(memory_id))
            deleted = self.memory_store.delete(memory_id)
        except StoreError as e:
            logger.error(f'Store error while deleting memory {memory_id}: {e}')
            self.rebuild()
            return OperationResult.failed(f'Memory deletion failed: {e}')

        if not deleted:
            return OperationResult.missing(f'Memory {memory_id}')

        self._graph = self.synchronizer.on_memory_deleted(self._graph, memory_id)
        return OperationResult.ok(memory_id)

    def forget_memories(self, query: str) -> OperationResult:
        """Delete every memory whose content contains ``query``."""
        if not query or not query.strip():
            return OperationResult.failed('Query is required')

        matches = self.search_memories(query, limit=None)
        if not matches:
            return OperationResult.missing('Memories matching the query')

        deleted = 0
        for memory in matches:
            result = self.delete_memory(memory.id)
            if result.success:
                deleted += 1
            elif not result.not_found:
                return OperationResult(success=False, data={'deleted_count': deleted}, error=result.error)

        logger.info(f'Forgot {deleted} memories matching {query!r}')
        return OperationResult.ok({'deleted_count': deleted})

    def list_memories(self, filters: Optional[MemoryFilters] = None) -> List[Memory]:
        return self.memory_store.list(filters)

    def list_memories_page(self,
                           page: int = 1,
                           page_size: int = DEFAULT_PAGE_SIZE,
                           filters: Optional[MemoryFilters] = None) -> OperationResult:
        """Newest-first page of the (optionally filtered) memory log; pages start at 1."""
        if page < 1 or page_size < 1:
            return OperationResult.failed(f'Invalid page {page} of size {page_size}')
        try:
            memories = list(reversed(self.memory_store.list(filters)))
        except StoreError as e:
            logger.error(f'Store error while listing memories: {e}')
            return OperationResult.failed(f'Memory listing failed: {e}')

        offset = (page - 1) * page_size
        return OperationResult.ok(
            MemoryPage(memories=memories[offset:offset + page_size], page=page, page_size=page_size,
                       total=len(memories)))

    def search_memories(self, query: str, limit: Optional[int] = 20) -> List[Memory]:
        """Newest-first content search over the memory log."""
        if not query or not query.strip():
            return []
        matches = list(reversed(self.memory_store.list(MemoryFilters(search_query=query.strip()))))
        return matches[:limit] if limit is not None else matches

    # Explicit edges

    def add_explicit_edge(self,
                          source: str,
                          target: str,
                          kind: str = RELATES_TO,
                          weight: float = 1.0,
                          label: Optional[str] = None) -> OperationResult:
        """Persist a relation between two existing nodes and merge it into the graph."""
        graph = self._graph
        for endpoint in (source, target):
            if endpoint not in graph.nodes:
                return OperationResult.missing(f'Node {endpoint}')
        try:
            weight = float(weight)
        except (TypeError, ValueError):
            return OperationResult.failed(f'Invalid edge weight {weight!r}')
        if not weight > 0:
            return OperationResult.failed('Edge weight must be positive')

        try:
            edge = self.edge_store.create(source, target, kind=kind or RELATES_TO, weight=weight, label=label)
        except StoreError as e:
            logger.error(f'Store error while adding edge {source} -> {target}: {e}')
            return OperationResult.failed(f'Edge creation failed: {e}')

        updated = graph.copy()
        updated.add_edge(edge)
        self._graph = updated
        logger.debug(f'Added explicit edge {edge.id} ({source} -> {target})')
        return OperationResult.ok(edge)

    def remove_explicit_edge(self, edge_id: str) -> OperationResult:
        """Delete an explicit edge; entity nodes it alone kept alive are removed too."""
        edge = self._graph.edges.get(edge_id)
        if edge is None or not edge.explicit:
            return OperationResult.missing(f'Edge {edge_id}')
        try:
            self.edge_store.delete(edge_id)
        except StoreError as e:
            logger.error(f'Store error while removing edge {edge_id}: {e}')
            return OperationResult.failed(f'Edge deletion failed: {e}')

        updated = self._graph.copy()
        updated.remove_edge(edge_id)
        for endpoint in edge.endpoints:
            node = updated.nodes.get(endpoint)
            if node is not None and node.kind != NodeKind.MEMORY and updated.degree(endpoint) == 0:
                updated.remove_node(endpoint)
        self._graph = updated
        return OperationResult.ok(edge_id)

    # Views and graph queries

    def set_filters(self, node_type: Optional[str] = None, time_filter: Optional[str] = None) -> None:
        if node_type is not None:
            self.node_type = coerce_filter(NodeTypeFilter, node_type)
        if time_filter is not None:
            self.time_filter = coerce_filter(TimeFilter, time_filter)

    def get_view(self, now: Optional[datetime] = None) -> GraphView:
        return apply_filters(self._graph, self.node_type, self.time_filter, now=now)

    def get_node_neighbors(self, node_id: str) -> List[GraphNode]:
        return self._graph.neighbors(node_id)

    def get_node_connections(self, node_id: str) -> List[GraphEdge]:
        return self._graph.connections(node_id)

    def search_nodes(self, query: str) -> List[GraphNode]:
        return self._graph.search_nodes(query)

    # Analytics

    def get_analytics(self, now: Optional[datetime] = None) -> AnalyticsSnapshot:
        return compute_stats(self.memory_store.list(), graph=self._graph, now=now, top_k=self.config.analytics.top_k)

    def get_memory_trends(self, period: str = '30d', now: Optional[datetime] = None) -> list:
        return memory_trends(self.memory_store.list(), period=period, now=now)

    def get_sentiment_trends(self, period: str = '30d', now: Optional[datetime] = None) -> list:
        return sentiment_trends(self.memory_store.list(), period=period, now=now)

    def refresh_insights(self, now: Optional[datetime] = None) -> List[Insight]:
        """Regenerate insights from a fresh snapshot; previous dismissals are forgotten."""
        self._insights = generate_insights(self.get_analytics(now=now), self.thresholds)
        return list(self._insights)

    def get_insights(self) -> List[Insight]:
        return list(self._insights)

    def dismiss_insight(self, insight_id: str) -> bool:
        remaining = [insight for insight in self._insights if insight.id != insight_id]
        dismissed = len(remaining) != len(self._insights)
        self._insights = remaining
        return dismissed

    def export_analytics(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        snapshot = self.get_analytics(now=now)
        return export_analytics(snapshot, self._insights, now=now)
