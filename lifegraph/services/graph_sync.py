"""
Incremental Synchronizer: applies single-memory deltas to the canonical graph.

Each operation copies the graph, applies the delta to the copy and returns it,
so the holder can swap one reference and readers never observe a half-applied
change. Applying any sequence of deltas yields the same node and edge sets as a
full rebuild from the resulting memory log.
"""

from typing import Iterable, Optional

from ..models.core import Memory, NodeKind
from ..utils.config import GraphConfig
from ..utils.logging_config import get_logger
from .entity_normalizer import memory_node_id
from .graph_builder import DEFAULT_LABEL_LENGTH, Graph, add_memory_to_graph, make_memory_node

logger = get_logger(__name__)


class GraphSynchronizer:
    """Keep a canonical graph in step with memory create/update/delete events."""

    def __init__(self, case_fold: bool = True, label_length: int = DEFAULT_LABEL_LENGTH):
        self.case_fold = case_fold
        self.label_length = label_length

    @classmethod
    def from_config(cls, config: GraphConfig) -> 'GraphSynchronizer':
        return cls(case_fold=config.case_fold_entities, label_length=config.label_length)

    def on_memory_created(self, graph: Graph, memory: Memory) -> Graph:
        node_id = memory_node_id(memory.id)
        existing = graph.nodes.get(node_id)
        if existing is not None:
            logger.debug(f'Memory {memory.id} already in graph, applying as update')
            return self.on_memory_updated(graph, existing.payload, memory)

        updated = graph.copy()
        linked = add_memory_to_graph(updated, memory, self.case_fold, self.label_length)
        logger.debug(f'Synced new memory {memory.id} with {len(linked)} entity links')
        return updated

    def on_memory_updated(self, graph: Graph, old_memory: Optional[Memory], new_memory: Memory) -> Graph:
        """Regenerate the implicit edges of an edited memory.

        Every implicit edge sourced at the memory is dropped and re-derived from
        the new mentions, even for entities that are still mentioned. Entities
        the memory used to link to are removed once nothing references them.
        """
        node_id = memory_node_id(new_memory.id)
        if node_id not in graph.nodes:
            logger.debug(f'Update for unknown memory {new_memory.id} ignored')
            return graph
        if old_memory is not None and old_memory.id != new_memory.id:
            logger.warning(f'Update id mismatch ({old_memory.id} != {new_memory.id}), ignoring old record')

        updated = graph.copy()
        previous = self._drop_implicit_edges(updated, node_id)

        # Reassigning the key keeps the node's display position
        updated.nodes[node_id] = make_memory_node(new_memory, self.label_length)
        add_memory_to_graph(updated, new_memory, self.case_fold, self.label_length)

        removed = self._sweep_orphans(updated, previous)
        logger.debug(f'Synced updated memory {new_memory.id}, removed {removed} orphan entities')
        return updated

    def on_memory_deleted(self, graph: Graph, memory_id: str) -> Graph:
        """Remove a memory node, every edge touching it and the entities it leaves orphaned."""
        node_id = memory_node_id(memory_id)
        if node_id not in graph.nodes:
            logger.debug(f'Delete for unknown memory {memory_id} ignored')
            return graph

        updated = graph.copy()
        neighbors = [node.id for node in updated.neighbors(node_id)]
        updated.remove_node(node_id)

        removed = self._sweep_orphans(updated, neighbors)
        logger.debug(f'Synced deleted memory {memory_id}, removed {removed} orphan entities')
        return updated

    @staticmethod
    def _drop_implicit_edges(graph: Graph, node_id: str) -> list:
        targets = []
        for edge in graph.incident_edges(node_id):
            if not edge.explicit and edge.source == node_id:
                graph.remove_edge(edge.id)
                targets.append(edge.target)
        return targets

    @staticmethod
    def _sweep_orphans(graph: Graph, candidates: Iterable[str]) -> int:
        removed = 0
        for candidate in candidates:
            node = graph.nodes.get(candidate)
            if node is None or node.kind == NodeKind.MEMORY:
                continue
            if graph.degree(candidate) == 0:
                graph.remove_node(candidate)
                removed += 1
        return removed
