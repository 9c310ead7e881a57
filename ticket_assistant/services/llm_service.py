"""
LLM Service - Chat completion wrapper

Provides a single interface for:
- Free-text completion (fallback answers, reply drafts)
- JSON-object completion (structured field extraction)

One call per request; callers decide how to surface failures.
"""
import json
import re
from typing import Any, Dict, Optional

from openai import AsyncOpenAI

from ticket_assistant.config import get_settings
from ticket_assistant.services.errors import CompletionError
from ticket_assistant.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class CompletionClient:
    """
    OpenAI chat completion client

    No retries: a failed call raises CompletionError immediately.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None
    ):
        self.model = model or settings.openai_model
        self.temperature = temperature if temperature is not None else settings.openai_temperature
        self.openai_client = AsyncOpenAI(
            api_key=api_key or settings.openai_api_key or "missing",
            timeout=settings.http_timeout,
            max_retries=0,
        )
        logger.info(f"CompletionClient initialized (model={self.model})")

    async def complete(
        self,
        system_prompt: str,
        user_message: str,
        max_tokens: int = 1000
    ) -> str:
        """
        Single-turn chat completion

        Args:
            system_prompt: System message
            user_message: User turn
            max_tokens: Completion token limit

        Returns:
            Completion text

        Raises:
            CompletionError: On API failure or empty output
        """
        try:
            response = await self.openai_client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_message}
                ],
                temperature=self.temperature,
                max_tokens=max_tokens
            )
        except Exception as e:
            logger.error(f"Completion request failed: {e}")
            raise CompletionError(f"Completion request failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise CompletionError("Completion returned no content")
        return content.strip()

    async def complete_json(
        self,
        system_prompt: str,
        user_message: str,
        max_tokens: int = 500
    ) -> Dict[str, Any]:
        """
        Chat completion constrained to a JSON object

        Returns:
            Parsed JSON object

        Raises:
            CompletionError: On API failure or unparseable output
        """
        try:
            response = await self.openai_client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_message}
                ],
                response_format={"type": "json_object"},
                temperature=0.3,
                max_tokens=max_tokens
            )
        except Exception as e:
            logger.error(f"JSON completion request failed: {e}")
            raise CompletionError(f"Completion request failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        text = _FENCE_RE.sub("", (content or "").strip())
        try:
            result = json.loads(text)
        except json.JSONDecodeError as e:
            raise CompletionError(f"Completion did not return valid JSON: {e}") from e

        if not isinstance(result, dict):
            raise CompletionError("Completion JSON is not an object")
        return result
