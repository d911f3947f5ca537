"""
Configuration management for the extraction service, the graph core and the MCP interface.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass
class BedrockLLMConfig:
    """Configuration for Amazon Bedrock LLM service."""
    region: str
    model_id: str
    max_tokens: int
    temperature: float
    retry_attempts: int
    retry_delay: float
    connect_timeout: int
    read_timeout: int


@dataclass
class GraphConfig:
    """Configuration for the derived knowledge graph."""
    label_length: int
    case_fold_entities: bool


@dataclass
class AnalyticsConfig:
    """Configuration for analytics and insight rules."""
    top_k: int
    high_activity_ratio: float
    positive_ratio: float
    negative_ratio: float


@dataclass
class MCPConfig:
    """Configuration for MCP interface."""
    transport: str
    host: str
    port: int


@dataclass
class AppConfig:
    """Main application configuration."""
    environment: str
    log_level: str
    bedrock_llm: BedrockLLMConfig
    graph: GraphConfig
    analytics: AnalyticsConfig
    mcp: MCPConfig


def load_config() -> AppConfig:
    """Load configuration from environment variables with defaults."""
    environment = os.getenv('ENVIRONMENT', 'development')

    # Bedrock configuration
    bedrock_llm_config = BedrockLLMConfig(region=os.getenv('BEDROCK_LLM_AWS_REGION', 'us-east-1'),
                                          model_id=os.getenv('BEDROCK_LLM_MODEL_ID', 'anthropic.claude-3-haiku-20240307-v1:0'),
                                          max_tokens=int(os.getenv('BEDROCK_LLM_MAX_TOKENS', '1024')),
                                          temperature=float(os.getenv('BEDROCK_LLM_TEMPERATURE', '0.0')),
                                          retry_attempts=int(os.getenv('BEDROCK_LLM_RETRY_ATTEMPTS', '3')),
                                          retry_delay=float(os.getenv('BEDROCK_LLM_RETRY_DELAY', '1.0')),
                                          connect_timeout=int(os.getenv('BEDROCK_LLM_CONNECT_TIMEOUT', '10')),
                                          read_timeout=int(os.getenv('BEDROCK_LLM_READ_TIMEOUT', '60')))

    # Graph configuration
    graph_config = GraphConfig(label_length=int(os.getenv('GRAPH_LABEL_LENGTH', '50')),
                               case_fold_entities=_env_bool('GRAPH_CASE_FOLD_ENTITIES', 'true'))

    # Analytics configuration
    analytics_config = AnalyticsConfig(top_k=int(os.getenv('ANALYTICS_TOP_K', '10')),
                                       high_activity_ratio=float(os.getenv('INSIGHT_HIGH_ACTIVITY_RATIO', '1.5')),
                                       positive_ratio=float(os.getenv('INSIGHT_POSITIVE_RATIO', '0.7')),
                                       negative_ratio=float(os.getenv('INSIGHT_NEGATIVE_RATIO', '0.3')))

    # MCP configuration
    mcp_config = MCPConfig(transport=os.getenv('MCP_TRANSPORT', 'sse'),
                           host=os.getenv('MCP_HOST', '127.0.0.1'),
                           port=int(os.getenv('MCP_PORT', '8000')))

    return AppConfig(environment=environment,
                     log_level=os.getenv('LOG_LEVEL', 'INFO'),
                     bedrock_llm=bedrock_llm_config,
                     graph=graph_config,
                     analytics=analytics_config,
                     mcp=mcp_config)


# Global configuration instance
config = load_config()
