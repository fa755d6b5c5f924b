"""Generative-AI client wrapper."""
import json
import logging
import re
from typing import Any, Dict, List, Optional
from openai import AsyncOpenAI

from app.core.errors import GenerationFailure

logger = logging.getLogger(__name__)

_FENCE_PATTERN = re.compile(r"```(?:json)?", re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences the model sometimes wraps JSON in."""
    return _FENCE_PATTERN.sub("", text).strip()


class GenerationClient:
    """Thin wrapper around the chat completions API.

    One instance is created per application lifetime and handed to the
    services that issue generation requests.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = "gpt-4o-mini",
        temperature: float = 0.7,
    ):
        self.client = client
        self.model = model
        self.temperature = temperature

    async def _complete(
        self,
        messages: List[Dict[str, str]],
        response_format: Optional[Dict[str, str]] = None,
    ) -> str:
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
        }
        if response_format:
            kwargs["response_format"] = response_format

        try:
            response = await self.client.chat.completions.create(**kwargs)
        except Exception as e:
            logger.error(
                f"[GENERATION] Provider request failed - Model: {self.model}, "
                f"Error: {type(e).__name__}: {str(e)}"
            )
            raise GenerationFailure(f"Generation request failed: {str(e)}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise GenerationFailure("Generation returned an empty response")
        return content

    async def generate_json(self, system_prompt: str, user_prompt: str) -> Any:
        """
        Request a JSON document and parse it.

        Raises:
            GenerationFailure: on transport errors, empty output or invalid JSON
        """
        content = await self._complete(
            [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            response_format={"type": "json_object"},
        )
        try:
            return json.loads(strip_code_fences(content))
        except json.JSONDecodeError as e:
            logger.warning(f"[GENERATION] Invalid JSON from provider: {content[:200]}")
            raise GenerationFailure("Generation returned invalid JSON") from e

    async def generate_text(self, prompt: str) -> str:
        """Request plain text."""
        content = await self._complete([{"role": "user", "content": prompt}])
        return content.strip()

    async def close(self) -> None:
        """Release the underlying HTTP client."""
        await self.client.close()
