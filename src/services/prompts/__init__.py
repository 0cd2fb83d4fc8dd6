"""Prompts module - centralized prompt templates for AI services.

Re-exports all prompt constants and utilities for easy importing:
    from services.prompts import build_asset_prompt, build_variation_prompt
    from services.prompts import ISOLATION_CLAUSE, strip_markdown_code_blocks
"""

from services.prompts._base import parse_string_array, strip_markdown_code_blocks
from services.prompts.assets import (
    ASSET_TEMPLATES,
    ISOLATION_CLAUSE,
    SHORT_VARIATION_GENERATOR,
    VARIATION_GENERATOR,
    build_asset_prompt,
    build_variation_prompt,
)

__all__ = [
    "parse_string_array",
    "strip_markdown_code_blocks",
    "ASSET_TEMPLATES",
    "ISOLATION_CLAUSE",
    "SHORT_VARIATION_GENERATOR",
    "VARIATION_GENERATOR",
    "build_asset_prompt",
    "build_variation_prompt",
]
