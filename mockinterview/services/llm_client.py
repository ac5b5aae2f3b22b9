"""Text generation client backed by OpenAI chat completions."""
import logging
from typing import Dict, List, Optional, Union

from openai import AsyncOpenAI, OpenAIError

from mockinterview.config import settings
from mockinterview.exceptions import GenerationError

logger = logging.getLogger(__name__)

PromptOrMessages = Union[str, List[Dict[str, str]]]


class TextGenerationClient:
    """Single-operation wrapper: prompt or messages in, text out."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        self.client = AsyncOpenAI(api_key=api_key or settings.openai_api_key or "missing")
        self.model = model or settings.openai_model

    async def generate(
        self,
        prompt_or_messages: PromptOrMessages,
        *,
        max_output_tokens: int,
        temperature: float,
        system: Optional[str] = None
    ) -> str:
        """Run one completion and return its text.

        Raises GenerationError on any backend failure or empty output.
        """
        if isinstance(prompt_or_messages, str):
            messages = [{"role": "user", "content": prompt_or_messages}]
        else:
            messages = [dict(m) for m in prompt_or_messages]
        if system:
            messages.insert(0, {"role": "system", "content": system})

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=max_output_tokens,
                temperature=temperature
            )
        except OpenAIError as e:
            logger.warning(f"Text generation failed: {e}")
            raise GenerationError(str(e)) from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise GenerationError("Text generation returned no content")
        return content.strip()
