"""
LLM service - OpenAI-compatible chat completions
"""
import logging
from typing import Optional, Any, Dict, List

from openai import AsyncOpenAI

from ..core.config import settings
from ..core.exceptions import IntegrationError

logger = logging.getLogger(__name__)

INTENT_SYSTEM_PROMPT = (
    'Você é um detector de intenção. Analise a mensagem e responda apenas "sim" ou "não" '
    'se a mensagem indica a intenção "{intent}".'
)


class LLMService:
    """Thin wrapper over AsyncOpenAI used by the assistant and the flow runtime"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None
    ):
        self.api_key = api_key or settings.OPENAI_API_KEY
        self.model = model or settings.OPENAI_MODEL
        self.base_url = base_url or settings.OPENAI_BASE_URL
        self.client = (
            AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)
            if self.api_key else None
        )

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    async def complete(
        self,
        messages: List[Dict[str, Any]],
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        tools: Optional[List[Dict[str, Any]]] = None
    ) -> Any:
        """
        Run one chat completion.

        Returns:
            The first choice's message (content and optional tool_calls)

        Raises:
            IntegrationError: when no API key is configured
        """
        if not self.client:
            raise IntegrationError("openai", "OpenAI API key not configured")

        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
        }
        if max_tokens:
            kwargs["max_tokens"] = max_tokens
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"

        response = await self.client.chat.completions.create(**kwargs)
        return response.choices[0].message

    async def detect_intent(self, message: str, intent: Optional[str]) -> bool:
        """Ask the model whether ``message`` expresses ``intent``; errors count as no"""
        if not intent or not self.client:
            return False

        try:
            reply = await self.complete(
                [
                    {"role": "system", "content": INTENT_SYSTEM_PROMPT.format(intent=intent)},
                    {"role": "user", "content": message or ""},
                ],
                max_tokens=10,
            )
        except Exception as e:
            logger.error(f"[LLM] Intent detection error: {e}")
            return False

        answer = (reply.content or "").lower()
        return "sim" in answer


llm = LLMService()
