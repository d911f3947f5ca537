"""
Memory Extraction Service: asks a Bedrock LLM whether a message holds a memory
and what it mentions.

The model's answer is untrusted; everything it returns goes through
``sanitize_memory_data`` before the core sees it.
"""

import re
from dataclasses import dataclass
from typing import Any, Optional

from ..models.core import MemoryDraft
from ..utils.bedrock_llm import BedrockLLM, BedrockLLMError
from ..utils.config import config
from ..utils.json_utils import extract_json_object
from ..utils.logging_config import get_logger
from .entity_normalizer import sanitize_memory_data

logger = get_logger(__name__)

FALLBACK_RESPONSE = 'I received your message! Could you tell me more about what happened?'
DEFAULT_RESPONSE = 'Thanks for sharing that with me!'

EXTRACTION_PROMPT = """
You process personal messages and decide whether they contain a meaningful memory worth saving.

Ignore greetings, small talk, questions and commands. For a meaningful memory, extract:
- content: a cleaned-up version of the memory
- people: people mentioned (first names or relationships like "mom", "friend")
- places: places mentioned (cities, restaurants, specific locations)
- events: events or activities mentioned
- tags: short topical tags
- sentiment: positive, neutral or negative
- confidence: 0.0 to 1.0

Respond with a JSON object in this exact format:
```json
{
  "shouldSave": true,
  "response": "Your conversational reply to the user",
  "memoryData": {
    "content": "Went to the beach with Sarah and had a sunset picnic",
    "people": ["Sarah"],
    "places": ["beach"],
    "events": ["sunset picnic"],
    "tags": ["beach", "sunset", "friends"],
    "sentiment": "positive",
    "confidence": 0.9
  }
}
```
Use "shouldSave": false and "memoryData": null when there is nothing to save."""

_FORGET_PATTERNS = (
    re.compile(r'^\s*(?:please\s+)?forget\s+(?:about\s+)?(?P<query>.+?)[.!?]*\s*$', re.IGNORECASE),
    re.compile(r'^\s*(?:please\s+)?(?:delete|remove)\s+(?:my\s+|the\s+)?memor(?:y|ies)\s+(?:of|about)\s+(?P<query>.+?)[.!?]*\s*$',
               re.IGNORECASE),
    re.compile(r'^\s*i\s+want\s+to\s+forget\s+(?:about\s+)?(?P<query>.+?)[.!?]*\s*$', re.IGNORECASE),
)

_RECALL_PATTERNS = (
    re.compile(r'^\s*what\s+did\s+i\s+do\s+(?P<query>.+?)[.!?]*\s*$', re.IGNORECASE),
    re.compile(r'^\s*(?:do\s+you\s+)?remember\s+(?:when\s+)?(?P<query>.+?)[.!?]*\s*$', re.IGNORECASE),
    re.compile(r'^\s*tell\s+me\s+about\s+(?P<query>.+?)[.!?]*\s*$', re.IGNORECASE),
    re.compile(r'^\s*show\s+me\s+memor(?:y|ies)\s+(?:of|about)\s+(?P<query>.+?)[.!?]*\s*$', re.IGNORECASE),
)


class MemoryExtractionError(Exception):
    """Custom exception for memory extraction errors."""
    pass


@dataclass
class ExtractionResult:
    should_save: bool
    response: str
    memory_data: Optional[MemoryDraft] = None
    error: Optional[str] = None


@dataclass
class CommandIntent:
    kind: str  # 'forget', 'recall' or 'none'
    query: str = ''


def detect_command(message: str) -> CommandIntent:
    """Recognize 'forget ...' and 'recall ...' requests in a user message."""
    for kind, patterns in (('forget', _FORGET_PATTERNS), ('recall', _RECALL_PATTERNS)):
        for pattern in patterns:
            match = pattern.match(message or '')
            if match and match.group('query').strip():
                return CommandIntent(kind=kind, query=match.group('query').strip())
    return CommandIntent(kind='none')


class MemoryExtractionService:
    """Extract memory data (mentions, tags, sentiment) from user messages using a Bedrock LLM."""

    def __init__(self, llm: Optional[Any] = None):
        """Initialize the memory extraction service.

        Args:
            llm: Object exposing ``generate_response(messages, system_prompt, ...)``;
                a BedrockLLM is created from config if None
        """
        self.llm = llm or BedrockLLM(config.bedrock_llm)

        logger.info('Initialized MemoryExtractionService')

    def extract(self, message: str) -> ExtractionResult:
        """Decide whether ``message`` is a memory and extract its data.

        Args:
            message: Raw user message

        Returns:
            ExtractionResult; ``memory_data`` is set only when ``should_save`` is true

        Raises:
            MemoryExtractionError: If the LLM call fails
        """
        if not message or not message.strip():
            logger.warning('Empty message provided for memory extraction')
            return ExtractionResult(should_save=False, response=DEFAULT_RESPONSE)

        llm_messages = [{'role': 'user', 'content': [{'text': f'Process this message:\n"{message.strip()}"'}]}]

        try:
            response, _ = self.llm.generate_response(messages=llm_messages, system_prompt=EXTRACTION_PROMPT)
        except BedrockLLMError as e:
            logger.error(f'LLM error during memory extraction: {e}')
            raise MemoryExtractionError(f'Memory extraction failed: {e}')

        parsed = extract_json_object(response)
        if parsed is None:
            logger.error('Failed to parse memory extraction JSON')
            logger.debug(f'Raw extraction response: {response}')
            return ExtractionResult(should_save=False, response=FALLBACK_RESPONSE, error='Failed to parse AI response')

        should_save = parsed.get('shouldSave') is True
        reply = parsed.get('response') if isinstance(parsed.get('response'), str) and parsed.get('response') else DEFAULT_RESPONSE

        memory_data = None
        if should_save and isinstance(parsed.get('memoryData'), dict):
            memory_data = sanitize_memory_data(parsed['memoryData'])
            if not memory_data.content:
                memory_data.content = message.strip()
        elif should_save:
            logger.warning('Extractor asked to save without memoryData, not saving')
            should_save = False

        logger.debug(f'Extraction finished (should_save={should_save})')
        return ExtractionResult(should_save=should_save, response=reply, memory_data=memory_data)
