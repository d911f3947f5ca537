"""
JSON utilities for cleaning LLM responses.
"""

import json
import re
from typing import Any, Dict, Optional

_OBJECT_PATTERN = re.compile(r'\{[\s\S]*\}')


def clean_json_response(response: str) -> str:
    """Clean LLM response by removing code block markers.

    Args:
        response: Raw LLM response

    Returns:
        Cleaned JSON string
    """
    response = response.strip()

    # Remove ```json and ``` markers
    if response.startswith('```json'):
        response = response[7:]
    elif response.startswith('```'):
        response = response[3:]

    if response.endswith('```'):
        response = response[:-3]

    return response.strip()


def extract_json_object(response: str) -> Optional[Dict[str, Any]]:
    """Pull the outermost JSON object out of a model reply.

    Models sometimes wrap the object in prose; everything between the first
    ``{`` and the last ``}`` is parsed.

    Returns:
        The parsed dict, or None when no object can be decoded
    """
    if not response:
        return None

    match = _OBJECT_PATTERN.search(clean_json_response(response))
    if not match:
        return None

    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None

    return data if isinstance(data, dict) else None
