"""Base utilities for prompts module.

Contains shared helper functions used across prompt modules.
"""

import json


def strip_markdown_code_blocks(text: str) -> str:
    """Strip markdown code blocks from AI response text.

    Args:
        text: Raw text that may contain markdown code blocks

    Returns:
        Cleaned text with markdown code blocks removed
    """
    text = text.strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def parse_string_array(text: str) -> list[str]:
    """Parse a JSON string array from model output.

    Non-string and blank entries are dropped.

    Raises:
        ValueError: If the text is not JSON or not a list
    """
    data = json.loads(strip_markdown_code_blocks(text or ""))
    if not isinstance(data, list):
        raise ValueError(f"Expected a JSON array, got {type(data).__name__}")
    return [item.strip() for item in data if isinstance(item, str) and item.strip()]
