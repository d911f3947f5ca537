"""
Pytest configuration and shared fixtures.
"""

import itertools
import json
from datetime import datetime, timedelta, timezone

import pytest

from lifegraph.models.core import Memory
from lifegraph.services.memory_graph import MemoryGraphService
from lifegraph.services.stores import InMemoryEdgeStore, InMemoryMemoryStore

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


class FakeLLM:
    """Stands in for BedrockLLM; returns queued replies and records prompts."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    def generate_response(self, messages, system_prompt, **kwargs):
        self.calls.append({'messages': messages, 'system_prompt': system_prompt})
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, dict):
            reply = json.dumps(reply)
        return reply, None


@pytest.fixture
def now():
    """Fixed evaluation time for time-window tests."""
    return NOW


@pytest.fixture
def make_memory():
    """Factory for Memory records with sequential ids."""
    counter = itertools.count(1)

    def _make(content='A memory', days_ago=1, **fields):
        memory_id = fields.pop('id', None) or f'm{next(counter)}'
        fields.setdefault('created_at', NOW - timedelta(days=days_ago))
        return Memory(id=memory_id, content=content, **fields)

    return _make


@pytest.fixture
def service():
    """Isolated service with in-memory stores."""
    return MemoryGraphService(memory_store=InMemoryMemoryStore(), edge_store=InMemoryEdgeStore())


@pytest.fixture
def fake_llm():
    return FakeLLM
