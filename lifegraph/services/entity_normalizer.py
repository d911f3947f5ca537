"""
Entity normalization and ingestion sanitization.

Every mention becomes a canonical node id of the form ``kind:value``; every
incoming record passes through :func:`sanitize_memory_data` exactly once.
"""

import re
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..models.core import DEFAULT_CONFIDENCE, MENTION_FIELDS, SENTIMENTS, MemoryDraft, NodeKind, Sentiment
from ..utils.logging_config import get_logger

logger = get_logger(__name__)

_WHITESPACE = re.compile(r'\s+')


def clean_mention(value: Any) -> str:
    """Trim a mention and collapse inner runs of whitespace."""
    if value is None:
        return ''
    return _WHITESPACE.sub(' ', str(value)).strip()


def normalize_entity_id(kind: NodeKind, value: str, case_fold: bool = True) -> str:
    """Canonical node id for an entity mention.

    Args:
        kind: Entity kind (person, place or event)
        value: Mention as extracted
        case_fold: Fold case so "Sarah" and "sarah" share one node

    Returns:
        Node id ``kind:value``
    """
    key = clean_mention(value)
    if case_fold:
        key = key.casefold()
    return f'{NodeKind(kind).value}:{key}'


def memory_node_id(memory_id: str) -> str:
    return f'{NodeKind.MEMORY.value}:{memory_id}'


def parse_node_id(node_id: str) -> Optional[Tuple[NodeKind, str]]:
    """Split a node id into (kind, value); None when the prefix is not a node kind."""
    prefix, sep, value = node_id.partition(':')
    if not sep:
        return None
    try:
        return NodeKind(prefix), value
    except ValueError:
        return None


def iter_mentions(memory: Any) -> Iterator[Tuple[NodeKind, str]]:
    """Yield (kind, mention) pairs in people, places, events order.

    Missing or non-list mention fields count as empty; blank mentions are skipped.
    """
    for attr, kind in MENTION_FIELDS:
        values = getattr(memory, attr, None)
        if not isinstance(values, (list, tuple)):
            continue
        for value in values:
            if not isinstance(value, str):
                continue
            mention = clean_mention(value)
            if mention:
                yield kind, mention


def _clean_list(value: Any, name: str) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        logger.debug(f'Coercing non-list {name} ({type(value).__name__}) to empty list')
        return []
    cleaned = []
    for item in value:
        if item is None or isinstance(item, (dict, list, tuple)):
            continue
        text = clean_mention(item)
        if text:
            cleaned.append(text)
    return cleaned


def sanitize_sentiment(value: Any) -> str:
    sentiment = str(value).strip().lower() if value is not None else ''
    return sentiment if sentiment in SENTIMENTS else Sentiment.NEUTRAL.value


def sanitize_confidence(value: Any) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return DEFAULT_CONFIDENCE
    if confidence != confidence:  # NaN
        return DEFAULT_CONFIDENCE
    return max(0.0, min(1.0, confidence))


def sanitize_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    """Sanitize whichever memory fields are present in a partial update."""
    cleaned: Dict[str, Any] = {}
    for name, value in data.items():
        if name in ('people', 'places', 'events', 'tags'):
            cleaned[name] = _clean_list(value, name)
        elif name == 'sentiment':
            cleaned[name] = sanitize_sentiment(value)
        elif name == 'confidence':
            cleaned[name] = sanitize_confidence(value)
        elif name == 'content':
            cleaned[name] = str(value or '').strip()
    return cleaned


def sanitize_memory_data(data: Optional[Dict[str, Any]]) -> MemoryDraft:
    """Admit extractor output as a MemoryDraft.

    Missing arrays become empty, sentiment is forced into the three-value enum
    and confidence is clamped to [0, 1]. Never raises on malformed input.
    """
    data = data if isinstance(data, dict) else {}
    fields = sanitize_fields(data)
    return MemoryDraft(content=fields.get('content', ''),
                       people=fields.get('people', []),
                       places=fields.get('places', []),
                       events=fields.get('events', []),
                       tags=fields.get('tags', []),
                       sentiment=fields.get('sentiment', Sentiment.NEUTRAL.value),
                       confidence=fields.get('confidence', DEFAULT_CONFIDENCE))
