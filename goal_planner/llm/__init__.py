"""
LLM collaborator interfaces.
"""

from .base import (
    ChatOptions,
    ChatResult,
    TextGenerator,
    ChatAgent,
    ChatAgentGenerator,
)

__all__ = [
    "ChatOptions",
    "ChatResult",
    "TextGenerator",
    "ChatAgent",
    "ChatAgentGenerator",
]
