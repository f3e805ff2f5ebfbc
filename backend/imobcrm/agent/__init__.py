"""
Agent module.

Prompt templates the WhatsApp agent runs with, one per department, plus the
token estimate shown next to the prompt preview.
"""

from .prompts import (
    PromptBuilder,
    FLORIANOPOLIS_REGIONS,
    estimate_tokens,
    token_status,
)

__all__ = [
    "PromptBuilder",
    "FLORIANOPOLIS_REGIONS",
    "estimate_tokens",
    "token_status",
]
