"""
Health check utilities for the application.
"""

from typing import Any, Dict, Optional

from .bedrock_llm import BedrockLLM
from .config import config
from .logging_config import get_logger

logger = get_logger(__name__)


def check_health(service: Optional[Any] = None, llm: Optional[BedrockLLM] = None) -> bool:
    """Check the health of all system components.

    Returns:
        True if all components are healthy, False otherwise
    """
    health_status = get_health_status(service, llm)

    all_healthy = all(status.get('healthy', False) for status in health_status.values())

    if all_healthy:
        logger.info('All system components are healthy')
    else:
        logger.warning('Some system components are unhealthy')

    return all_healthy


def get_health_status(service: Optional[Any] = None, llm: Optional[BedrockLLM] = None) -> Dict[str, Any]:
    """Get detailed health status of each component.

    Args:
        service: MemoryGraphService whose canonical graph is checked (skipped if None)
        llm: Bedrock LLM client to probe; one is built from config if None

    Returns:
        Dictionary with health status of each component
    """
    health_status = {}

    # Check Bedrock LLM (the extractor's backend)
    try:
        llm = llm or BedrockLLM(config.bedrock_llm)
        health_status['bedrock_llm'] = {
            'healthy': llm.health_check(),
            'service': 'Amazon Bedrock LLM',
            'model': config.bedrock_llm.model_id
        }
    except Exception as e:
        health_status['bedrock_llm'] = {'healthy': False, 'service': 'Amazon Bedrock LLM', 'error': str(e)}

    # Check the canonical graph without repairing it
    if service is not None:
        problems = service.graph.find_inconsistencies()
        health_status['graph'] = {
            'healthy': not problems,
            'service': 'Knowledge graph',
            'nodes': len(service.graph.nodes),
            'edges': len(service.graph.edges),
            'problems': problems[:10]
        }

    return health_status
