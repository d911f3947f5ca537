"""
Tests for incremental graph synchronization.
"""

import random
from dataclasses import replace

import pytest

from lifegraph.models.core import GraphEdge, NodeKind
from lifegraph.services.graph_builder import Graph, build_graph
from lifegraph.services.graph_sync import GraphSynchronizer

NAMES = ['Sarah', 'sarah', 'Tom', 'Ann', 'Bob']
PLACES = ['beach', 'Rome', 'park']
EVENTS = ['picnic', 'concert']


def edge_set(graph):
    return {(edge.id, edge.source, edge.target, edge.kind) for edge in graph.edges.values()}


def orphan_entities(graph):
    return [node.id for node in graph.nodes.values() if node.kind != NodeKind.MEMORY and graph.degree(node.id) == 0]


@pytest.fixture
def sync():
    return GraphSynchronizer()


class TestOnMemoryCreated:

    def test_matches_builder_for_one_memory(self, sync, make_memory):
        memory = make_memory('Beach with Sarah', people=['Sarah'], places=['beach'])
        graph = sync.on_memory_created(Graph(), memory)
        expected = build_graph([memory])
        assert set(graph.nodes) == set(expected.nodes)
        assert edge_set(graph) == edge_set(expected)

    def test_reuses_existing_entity(self, sync, make_memory):
        first = make_memory(people=['Sarah'])
        second = make_memory(people=['SARAH'])
        graph = sync.on_memory_created(build_graph([first]), second)
        assert [n.id for n in graph.nodes.values() if n.kind == NodeKind.PERSON] == ['person:sarah']
        assert graph.degree('person:sarah') == 2

    def test_does_not_mutate_input(self, sync, make_memory):
        base = build_graph([make_memory(people=['Sarah'])])
        sync.on_memory_created(base, make_memory(people=['Tom']))
        assert 'person:tom' not in base

    def test_duplicate_create_acts_as_update(self, sync, make_memory):
        memory = make_memory(people=['Sarah'])
        graph = build_graph([memory])
        graph = sync.on_memory_created(graph, replace(memory, people=['Tom']))
        assert 'person:sarah' not in graph
        assert 'person:tom' in graph


class TestOnMemoryUpdated:

    def test_removes_stale_edges_and_orphans(self, sync, make_memory):
        old = make_memory(people=['Sarah'], places=['beach'])
        new = replace(old, people=['Tom'], places=['beach'])
        graph = sync.on_memory_updated(build_graph([old]), old, new)

        assert 'person:sarah' not in graph
        assert set(graph.nodes) == {f'memory:{old.id}', 'person:tom', 'place:beach'}
        assert edge_set(graph) == edge_set(build_graph([new]))

    def test_shared_entity_survives(self, sync, make_memory):
        old = make_memory(people=['Sarah'])
        other = make_memory(people=['Sarah'])
        graph = sync.on_memory_updated(build_graph([old, other]), old, replace(old, people=[]))
        assert 'person:sarah' in graph
        assert graph.degree('person:sarah') == 1

    def test_explicit_edge_keeps_entity_alive(self, sync, make_memory):
        old = make_memory(people=['Sarah'], places=['beach'])
        explicit = GraphEdge(id='e-1', source='person:sarah', target='place:beach', explicit=True)
        graph = build_graph([old], [explicit])
        graph = sync.on_memory_updated(graph, old, replace(old, people=[], places=[]))
        assert {'person:sarah', 'place:beach'} <= set(graph.nodes)
        assert 'e-1' in graph.edges

    def test_payload_and_label_refreshed(self, sync, make_memory):
        old = make_memory('Old text')
        new = replace(old, content='New text')
        graph = sync.on_memory_updated(build_graph([old]), old, new)
        node = graph.nodes[f'memory:{old.id}']
        assert node.label == 'New text'
        assert node.payload is new

    def test_unknown_memory_is_noop(self, sync, make_memory):
        base = build_graph([make_memory(people=['Sarah'])])
        ghost = make_memory(id='ghost', people=['Tom'])
        assert sync.on_memory_updated(base, None, ghost) is base


class TestOnMemoryDeleted:

    def test_delete_returns_to_empty_graph(self, sync, make_memory):
        memory = make_memory('Beach with Sarah', people=['Sarah'], places=['beach'])
        graph = sync.on_memory_created(Graph(), memory)
        graph = sync.on_memory_deleted(graph, memory.id)
        assert len(graph.nodes) == 0
        assert len(graph.edges) == 0

    def test_removes_explicit_edges_touching_memory(self, sync, make_memory):
        first = make_memory(people=['Sarah'])
        second = make_memory(people=['Tom'])
        explicit = GraphEdge(id='e-1', source=f'memory:{first.id}', target=f'memory:{second.id}', explicit=True)
        graph = sync.on_memory_deleted(build_graph([first, second], [explicit]), first.id)
        assert 'e-1' not in graph.edges
        assert 'person:sarah' not in graph
        assert f'memory:{second.id}' in graph

    def test_unknown_memory_is_noop(self, sync, make_memory):
        base = build_graph([make_memory(people=['Sarah'])])
        assert sync.on_memory_deleted(base, 'nope') is base

    def test_no_orphans_after_delete(self, sync, make_memory):
        memories = [make_memory(people=['Sarah', 'Tom']), make_memory(people=['Tom'], places=['park'])]
        graph = build_graph(memories)
        graph = sync.on_memory_deleted(graph, memories[1].id)
        assert orphan_entities(graph) == []
        assert 'place:park' not in graph


class TestSyncMatchesRebuild:

    @pytest.mark.parametrize('seed', range(8))
    def test_random_operation_sequence(self, sync, make_memory, seed):
        rng = random.Random(seed)
        log = {}
        graph = Graph()

        def mentions():
            return {
                'people': rng.sample(NAMES, rng.randint(0, 3)),
                'places': rng.sample(PLACES, rng.randint(0, 2)),
                'events': rng.sample(EVENTS, rng.randint(0, 1)),
            }

        for _ in range(40):
            action = rng.choice(['create', 'create', 'update', 'delete'])
            if action == 'create' or not log:
                memory = make_memory(days_ago=rng.randint(0, 400), **mentions())
                log[memory.id] = memory
                graph = sync.on_memory_created(graph, memory)
            elif action == 'update':
                old = log[rng.choice(sorted(log))]
                new = replace(old, **mentions())
                log[new.id] = new
                graph = sync.on_memory_updated(graph, old, new)
            else:
                memory_id = rng.choice(sorted(log))
                del log[memory_id]
                graph = sync.on_memory_deleted(graph, memory_id)

            rebuilt = build_graph(list(log.values()))
            assert set(graph.nodes) == set(rebuilt.nodes)
            assert edge_set(graph) == edge_set(rebuilt)
            assert orphan_entities(graph) == []
