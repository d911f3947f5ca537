"""
MCP Interface Layer using fastmcp for agent orchestration.

Run with ``python -m lifegraph.mcp_interface``.
"""
from typing import Any, Dict, List, Optional

from fastmcp import FastMCP

from lifegraph.services.memory_extraction import detect_command
from lifegraph.services.memory_graph import MemoryGraphService
from lifegraph.services.stores import MemoryFilters
from lifegraph.utils.config import config
from lifegraph.utils.logging_config import get_logger

logger = get_logger(__name__)

# Initialize FastMCP application
mcp = FastMCP('Memory Graph')
memory_service = MemoryGraphService()


def _result(result) -> Dict[str, Any]:
    data = result.data
    if hasattr(data, 'to_dict'):
        data = data.to_dict()
    elif isinstance(data, dict):
        data = {key: value.to_dict() if hasattr(value, 'to_dict') else value for key, value in data.items()}
    return {'success': result.success, 'data': data, 'error': result.error, 'not_found': result.not_found}


@mcp.tool()
def process_message(message: str) -> Dict[str, Any]:
    """Handle a chat message: forget, recall, or extract and save a memory.

    Args:
        message: Raw user message

    Returns:
        Dict with the outcome and the assistant's reply
    """
    if not message or not message.strip():
        raise ValueError('Message is required')

    intent = detect_command(message)
    if intent.kind == 'forget':
        result = memory_service.forget_memories(intent.query)
        logger.debug(f'MCP forget command for {intent.query!r}: {result.success}')
        return {'command': 'forget', 'query': intent.query, **_result(result)}
    if intent.kind == 'recall':
        memories = memory_service.search_memories(intent.query)
        return {'command': 'recall', 'query': intent.query, 'memories': [memory.to_dict() for memory in memories]}

    return {'command': 'save', **_result(memory_service.add_from_message(message))}


@mcp.tool()
def save_memory(content: str,
                people: Optional[List[str]] = None,
                places: Optional[List[str]] = None,
                events: Optional[List[str]] = None,
                tags: Optional[List[str]] = None,
                sentiment: str = 'neutral',
                confidence: float = 0.8) -> Dict[str, Any]:
    """Save an already-annotated memory."""
    return _result(
        memory_service.save_memory({
            'content': content,
            'people': people,
            'places': places,
            'events': events,
            'tags': tags,
            'sentiment': sentiment,
            'confidence': confidence
        }))


@mcp.tool()
def update_memory(memory_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
    """Apply a partial update to a memory."""
    return _result(memory_service.update_memory(memory_id, changes))


@mcp.tool()
def delete_memory(memory_id: str) -> Dict[str, Any]:
    """Delete a memory and its graph footprint."""
    return _result(memory_service.delete_memory(memory_id))


@mcp.tool()
def list_memories(page: int = 1, page_size: int = 20, search_query: str = '',
                  tags: Optional[List[str]] = None) -> Dict[str, Any]:
    """Page through the memory log, newest first."""
    filters = MemoryFilters(search_query=search_query, tags=tags or [])
    return _result(memory_service.list_memories_page(page=page, page_size=page_size, filters=filters))


@mcp.tool()
def get_graph_view(node_type: str = 'all', time_filter: str = 'all') -> Dict[str, Any]:
    """Return the filtered knowledge graph.

    Args:
        node_type: all, memory, person, place or event
        time_filter: all, week, month or year
    """
    memory_service.set_filters(node_type=node_type, time_filter=time_filter)
    return memory_service.get_view().to_dict()


@mcp.tool()
def get_node_neighbors(node_id: str) -> Dict[str, Any]:
    """Return a node's neighbors and the edges connecting them."""
    return {
        'neighbors': [node.to_dict() for node in memory_service.get_node_neighbors(node_id)],
        'connections': [edge.to_dict() for edge in memory_service.get_node_connections(node_id)]
    }


@mcp.tool()
def search_graph_nodes(query: str) -> List[Dict[str, Any]]:
    """Search node labels and memory content."""
    return [node.to_dict() for node in memory_service.search_nodes(query)]


@mcp.tool()
def get_analytics() -> Dict[str, Any]:
    """Return the current analytics snapshot."""
    return memory_service.get_analytics().to_dict()


@mcp.tool()
def get_insights() -> List[Dict[str, Any]]:
    """Regenerate and return insights."""
    return [insight.to_dict() for insight in memory_service.refresh_insights()]


if __name__ == '__main__':
    memory_service.load()
    mcp.run(transport=config.mcp.transport, host=config.mcp.host, port=config.mcp.port)
