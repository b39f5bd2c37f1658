"""
Adapter over the OpenAI async SDK for the AI chat feature.

The chat service only needs `generate(prompt) -> str`; tests replace the
client through the get_ai_client dependency.
"""
import logging
from typing import Optional

from openai import AsyncOpenAI

from xclone.config import settings
from xclone.utils.errors import APIError

logger = logging.getLogger(__name__)


class AIClientError(Exception):
    """Raised when the AI provider fails to produce a reply"""
    pass


class OpenAIChatClient:
    def __init__(self, api_key: str, model: str):
        self.client = AsyncOpenAI(api_key=api_key)
        self.model = model

    async def generate(self, prompt: str) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=0.7,
            )
        except Exception as e:
            logger.error(f"AI completion failed: {e}")
            raise AIClientError(str(e)) from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise AIClientError("Empty response from AI provider")
        return content.strip()


_client: Optional[OpenAIChatClient] = None


def get_ai_client() -> OpenAIChatClient:
    """Dependency returning the shared AI client; 503 when not configured"""
    global _client
    if _client is None:
        if not settings.OPENAI_API_KEY:
            raise APIError(503, "AI service is not configured")
        _client = OpenAIChatClient(settings.OPENAI_API_KEY, settings.OPENAI_MODEL)
    return _client
