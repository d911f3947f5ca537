"""
Boundaries to the memory source-of-truth and the explicit-edge store.

Persistence is an external concern; the in-memory implementations here are the
reference behaviour the coordinating service relies on and what tests run against.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple, Union

from ..models.core import RELATES_TO, GraphEdge, Memory, MemoryDraft
from ..utils.logging_config import get_logger
from ..utils.timestamp_utils import to_datetime, utc_now

logger = get_logger(__name__)

UPDATABLE_FIELDS = ('content', 'people', 'places', 'events', 'tags', 'sentiment', 'confidence')


class StoreError(Exception):
    """Custom exception for store collaborator failures."""
    pass


@dataclass
class MemoryFilters:
    """Criteria for listing the memory log; all given criteria must match."""
    search_query: str = ''
    tags: List[str] = field(default_factory=list)
    people: List[str] = field(default_factory=list)
    date_range: Optional[Tuple[datetime, datetime]] = None

    def matches(self, memory: Memory) -> bool:
        if self.search_query and self.search_query.lower() not in (memory.content or '').lower():
            return False
        if self.tags and not set(self.tags).issubset(memory.tags or []):
            return False
        if self.people:
            mentioned = {person.lower() for person in memory.people or []}
            if not all(person.lower() in mentioned for person in self.people):
                return False
        if self.date_range is not None:
            if memory.created_at is None:
                return False
            start, end = (to_datetime(bound) for bound in self.date_range)
            if not start <= to_datetime(memory.created_at) <= end:
                return False
        return True


class MemoryStore(Protocol):
    def create(self, draft: MemoryDraft, created_at: Optional[datetime] = None) -> Memory:
        ...

    def get(self, memory_id: str) -> Optional[Memory]:
        ...

    def update(self, memory_id: str, changes: Dict[str, Any]) -> Optional[Memory]:
        ...

    def delete(self, memory_id: str) -> bool:
        ...

    def list(self, filters: Optional[MemoryFilters] = None) -> List[Memory]:
        ...


class EdgeStore(Protocol):
    def create(self, source: str, target: str, kind: str = RELATES_TO, weight: float = 1.0,
               label: Optional[str] = None) -> GraphEdge:
        ...

    def list(self) -> List[GraphEdge]:
        ...

    def delete(self, edge_id: str) -> bool:
        ...

    def delete_touching(self, node_id: str) -> int:
        ...


class InMemoryMemoryStore:
    """Memory log kept in a dict, listed in creation order."""

    def __init__(self, memories: Optional[Iterable[Union[Memory, Dict[str, Any]]]] = None):
        """Seed the log with Memory values or raw stored records (dicts)."""
        self._memories: Dict[str, Memory] = {}
        for memory in memories or []:
            if isinstance(memory, dict):
                memory = Memory.from_record(memory)
            self._memories[memory.id] = memory

    def create(self, draft: MemoryDraft, created_at: Optional[datetime] = None) -> Memory:
        memory = Memory(id=str(uuid.uuid4()),
                        content=draft.content,
                        people=list(draft.people),
                        places=list(draft.places),
                        events=list(draft.events),
                        tags=list(draft.tags),
                        sentiment=draft.sentiment,
                        confidence=draft.confidence,
                        created_at=to_datetime(created_at) if created_at is not None else utc_now())
        self._memories[memory.id] = memory
        logger.debug(f'Stored memory {memory.id}')
        return memory

    def get(self, memory_id: str) -> Optional[Memory]:
        return self._memories.get(memory_id)

    def update(self, memory_id: str, changes: Dict[str, Any]) -> Optional[Memory]:
        current = self._memories.get(memory_id)
        if current is None:
            return None
        allowed = {name: value for name, value in changes.items() if name in UPDATABLE_FIELDS}
        updated = replace(current, updated_at=utc_now(), **allowed)
        self._memories[memory_id] = updated
        return updated

    def delete(self, memory_id: str) -> bool:
        return self._memories.pop(memory_id, None) is not None

    def list(self, filters: Optional[MemoryFilters] = None) -> List[Memory]:
        memories = sorted(self._memories.values(),
                          key=lambda memory: to_datetime(memory.created_at) if memory.created_at else to_datetime(0))
        if filters is None:
            return memories
        return [memory for memory in memories if filters.matches(memory)]


class InMemoryEdgeStore:
    """Explicit relation edges keyed by their generated id."""

    def __init__(self, edges: Optional[List[GraphEdge]] = None):
        self._edges: Dict[str, GraphEdge] = {edge.id: edge for edge in edges or []}

    def create(self, source: str, target: str, kind: str = RELATES_TO, weight: float = 1.0,
               label: Optional[str] = None) -> GraphEdge:
        edge = GraphEdge(id=str(uuid.uuid4()),
                         source=source,
                         target=target,
                         kind=kind,
                         weight=weight,
                         label=label,
                         explicit=True,
                         created_at=utc_now())
        self._edges[edge.id] = edge
        return edge

    def list(self) -> List[GraphEdge]:
        return list(self._edges.values())

    def delete(self, edge_id: str) -> bool:
        return self._edges.pop(edge_id, None) is not None

    def delete_touching(self, node_id: str) -> int:
        doomed = [edge.id for edge in self._edges.values() if node_id in edge.endpoints]
        for edge_id in doomed:
            del self._edges[edge_id]
        return len(doomed)
