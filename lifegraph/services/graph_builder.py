"""
Graph Builder: derives the canonical knowledge graph from the memory log.

The graph is a materialized view: memory nodes, deduplicated entity nodes,
implicit ``contains`` edges regenerated from mentions, and explicit edges passed
through verbatim.
"""

from typing import Dict, Iterable, List, Optional

from ..models.core import CONTAINS, ENTITY_KINDS, GraphEdge, GraphNode, Memory, NodeKind
from ..utils.logging_config import get_logger
from .entity_normalizer import iter_mentions, memory_node_id, normalize_entity_id, parse_node_id

logger = get_logger(__name__)

DEFAULT_LABEL_LENGTH = 50


class Graph:
    """Ordered node and edge maps with an incidence index.

    Nodes and edges are frozen values, so :meth:`copy` only duplicates the
    containers. Insertion order is display order. The incidence index keeps each
    node's edge ids in insertion order too, so edge lookups never scan the graph.
    """

    def __init__(self):
        self.nodes: Dict[str, GraphNode] = {}
        self.edges: Dict[str, GraphEdge] = {}
        self._incidence: Dict[str, Dict[str, None]] = {}

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self.nodes

    def copy(self) -> 'Graph':
        clone = Graph()
        clone.nodes = dict(self.nodes)
        clone.edges = dict(self.edges)
        clone._incidence = {node_id: dict(edge_ids) for node_id, edge_ids in self._incidence.items()}
        return clone

    def add_node(self, node: GraphNode) -> None:
        self.nodes[node.id] = node

    def add_edge(self, edge: GraphEdge) -> None:
        if edge.id in self.edges:
            self.remove_edge(edge.id)
        self.edges[edge.id] = edge
        for endpoint in edge.endpoints:
            self._incidence.setdefault(endpoint, {})[edge.id] = None

    def remove_edge(self, edge_id: str) -> Optional[GraphEdge]:
        edge = self.edges.pop(edge_id, None)
        if edge is None:
            return None
        for endpoint in edge.endpoints:
            incident = self._incidence.get(endpoint)
            if incident is not None:
                incident.pop(edge_id, None)
                if not incident:
                    del self._incidence[endpoint]
        return edge

    def remove_node(self, node_id: str) -> Optional[GraphNode]:
        """Remove a node and every edge touching it."""
        for edge_id in list(self._incidence.get(node_id, ())):
            self.remove_edge(edge_id)
        return self.nodes.pop(node_id, None)

    def incident_edges(self, node_id: str) -> List[GraphEdge]:
        """Edges touching a node, in graph order."""
        return [self.edges[edge_id] for edge_id in self._incidence.get(node_id, ())]

    def degree(self, node_id: str) -> int:
        return len(self._incidence.get(node_id, ()))

    def neighbors(self, node_id: str) -> List[GraphNode]:
        """Nodes joined to ``node_id`` by any edge, in the order of the joining edges."""
        neighbor_ids: Dict[str, None] = {}
        for edge in self.incident_edges(node_id):
            neighbor_ids[edge.target if edge.source == node_id else edge.source] = None
        return [self.nodes[nid] for nid in neighbor_ids if nid in self.nodes]

    def connections(self, node_id: str) -> List[GraphEdge]:
        return self.incident_edges(node_id)

    def search_nodes(self, query: str) -> List[GraphNode]:
        """Case-insensitive match on node labels and memory content."""
        term = (query or '').strip().lower()
        if not term:
            return []
        matches = []
        for node in self.nodes.values():
            if term in node.label.lower():
                matches.append(node)
            elif isinstance(node.payload, Memory) and term in (node.payload.content or '').lower():
                matches.append(node)
        return matches

    def find_inconsistencies(self) -> List[str]:
        """Report orphaned entity nodes and edges with missing endpoints."""
        problems = []
        for node in self.nodes.values():
            if node.kind != NodeKind.MEMORY and self.degree(node.id) == 0:
                problems.append(f'orphan entity node {node.id}')
        for edge in self.edges.values():
            for endpoint in edge.endpoints:
                if endpoint not in self.nodes:
                    problems.append(f'edge {edge.id} references missing node {endpoint}')
        return problems


def memory_label(content: str, label_length: int = DEFAULT_LABEL_LENGTH) -> str:
    content = content or ''
    if len(content) <= label_length:
        return content
    return content[:label_length] + '...'


def implicit_edge_id(memory_node: str, entity_node: str) -> str:
    return f'{memory_node}->{entity_node}'


def make_memory_node(memory: Memory, label_length: int = DEFAULT_LABEL_LENGTH) -> GraphNode:
    return GraphNode(id=memory_node_id(memory.id),
                     kind=NodeKind.MEMORY,
                     label=memory_label(memory.content, label_length),
                     payload=memory)


def add_memory_to_graph(graph: Graph, memory: Memory, case_fold: bool = True,
                        label_length: int = DEFAULT_LABEL_LENGTH) -> List[str]:
    """Add one memory node, its entity nodes and its implicit edges.

    Existing entity nodes are reused. Returns the entity node ids the memory
    links to, in mention order.
    """
    memory_node = make_memory_node(memory, label_length)
    graph.add_node(memory_node)

    linked = []
    for kind, mention in iter_mentions(memory):
        entity_id = normalize_entity_id(kind, mention, case_fold)
        if entity_id not in graph.nodes:
            graph.add_node(GraphNode(id=entity_id, kind=kind, label=mention, payload=mention))
        edge_id = implicit_edge_id(memory_node.id, entity_id)
        if edge_id in graph.edges:
            # Repeated mention of the same entity in one memory
            continue
        graph.add_edge(GraphEdge(id=edge_id, source=memory_node.id, target=entity_id, kind=CONTAINS, weight=1.0))
        linked.append(entity_id)
    return linked


def _endpoint_node(graph: Graph, node_id: str) -> Optional[GraphNode]:
    """Existing node for an explicit-edge endpoint, or a new entity node built from its id."""
    existing = graph.nodes.get(node_id)
    if existing is not None:
        return existing
    parsed = parse_node_id(node_id)
    if parsed is None or parsed[0] not in ENTITY_KINDS:
        return None
    kind, value = parsed
    return GraphNode(id=node_id, kind=kind, label=value, payload=value)


def build_graph(memories: Iterable[Memory],
                explicit_edges: Iterable[GraphEdge] = (),
                case_fold: bool = True,
                label_length: int = DEFAULT_LABEL_LENGTH) -> Graph:
    """Build the canonical graph from scratch.

    Args:
        memories: Memory log in log order
        explicit_edges: Persisted relation edges, merged with their ids untouched.
            Edges pointing at a memory that is not in the log are skipped.
        case_fold: Fold entity keys so casing variants share a node
        label_length: Maximum memory label length before truncation

    Returns:
        A new Graph; the inputs are not modified
    """
    graph = Graph()
    memory_count = 0
    for memory in memories:
        add_memory_to_graph(graph, memory, case_fold, label_length)
        memory_count += 1

    explicit_count = 0
    for edge in explicit_edges:
        endpoints = [_endpoint_node(graph, endpoint) for endpoint in edge.endpoints]
        if any(node is None for node in endpoints):
            logger.warning(f'Skipping explicit edge {edge.id}: endpoint missing ({edge.source} -> {edge.target})')
            continue
        for node in endpoints:
            if node.id not in graph.nodes:
                graph.add_node(node)
        graph.add_edge(edge)
        explicit_count += 1

    logger.debug(f'Built graph from {memory_count} memories and {explicit_count} explicit edges: '
                 f'{len(graph.nodes)} nodes, {len(graph.edges)} edges')
    return graph
