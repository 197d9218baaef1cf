"""
LLM prompts for the Insight Action engine.
"""

from .extract_signals import (
    EXTRACTION_SYSTEM_PROMPT,
    build_extraction_prompt,
)

__all__ = [
    'EXTRACTION_SYSTEM_PROMPT',
    'build_extraction_prompt',
]
