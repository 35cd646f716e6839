"""
JSON utilities for cleaning LLM responses.
"""

import json
from typing import Any, List, Optional


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


def parse_json_list(response: str) -> Optional[List[Any]]:
    """Parse the first JSON array found in an LLM response.

    Args:
        response: Raw LLM response, possibly wrapped in prose or code fences

    Returns:
        Parsed list, or None if the response holds no JSON array
    """
    cleaned = clean_json_response(response)
    start, end = cleaned.find('['), cleaned.rfind(']')
    if start == -1 or end <= start:
        return None

    try:
        parsed = json.loads(cleaned[start:end + 1])
    except json.JSONDecodeError:
        return None

    return parsed if isinstance(parsed, list) else None
