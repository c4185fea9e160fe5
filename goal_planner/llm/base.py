"""
Collaborator interfaces for text generation and single-turn chat.
Transport, retries and provider selection live behind these boundaries.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..errors import GenerationError

logger = logging.getLogger(__name__)


@dataclass
class ChatOptions:
    """Per-call generation options."""
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    system_prompt: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ChatResult:
    """Response of a single chat turn."""
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)


class TextGenerator(ABC):
    """Produces raw text for a prompt. Used by the Decomposer."""

    @abstractmethod
    async def generate(self, prompt: str, options: Optional[ChatOptions] = None) -> str:
        pass


class ChatAgent(ABC):
    """Answers one message. Used by the Executor, once per task."""

    @abstractmethod
    async def chat(self, message: str, options: Optional[ChatOptions] = None) -> ChatResult:
        pass


class ChatAgentGenerator(TextGenerator):
    """
    TextGenerator backed by a ChatAgent.

    Lets one chat collaborator serve both decomposition and execution.

    Example:
        generator = ChatAgentGenerator(agent)
        decomposer = Decomposer(generator=generator)
    """

    def __init__(self, agent: ChatAgent):
        self.agent = agent

    async def generate(self, prompt: str, options: Optional[ChatOptions] = None) -> str:
        try:
            result = await self.agent.chat(prompt, options)
        except GenerationError:
            raise
        except Exception as e:
            logger.warning(f"Chat agent failed during generation: {e}")
            raise GenerationError(f"chat agent failed: {e}", cause=e) from e
        return result.content
