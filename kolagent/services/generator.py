import asyncio
import logging
import re
import time
from typing import Awaitable, Callable, Optional

import openai
from openai import AsyncOpenAI

from kolagent.config import Settings
from kolagent.services.errors import GenerationFailed, GenerationRateLimited
from kolagent.services.retry import RetryExhausted, linear_backoff, retry_async
from kolagent.services.types import GeneratedMessage, GenerationRequest

logger = logging.getLogger(__name__)

_SENTENCE_END = re.compile(r"[.!?](?=\s|$)")
_WHITESPACE = re.compile(r"\s")
_WRAPPING_QUOTES = "\"'“”"


def truncate_message(text: str, limit: int) -> str:
    """
    Cut text to at most `limit` characters without splitting a word.

    Prefers the last sentence end that keeps at least half of the limit,
    then the last word boundary.

    Raises:
        GenerationFailed: No word boundary exists inside the limit
    """
    text = text.strip()
    if len(text) <= limit:
        return text

    head = text[: limit + 1]

    sentence_ends = [m.end() for m in _SENTENCE_END.finditer(head) if m.end() <= limit]
    if sentence_ends and sentence_ends[-1] >= limit // 2:
        return text[: sentence_ends[-1]]

    boundaries = [m.start() for m in _WHITESPACE.finditer(head)]
    if boundaries:
        cut = text[: boundaries[-1]].rstrip()
        if cut:
            return cut

    raise GenerationFailed(f"Generated text has no word boundary within {limit} characters")


def clean_generated_text(text: str) -> str:
    text = text.strip()
    if len(text) >= 2 and text[0] in _WRAPPING_QUOTES and text[-1] in _WRAPPING_QUOTES:
        text = text[1:-1].strip()
    return text


class TextGenerator:
    """Generates promotional text through the OpenAI chat-completions API."""

    def __init__(
        self,
        settings: Settings,
        client: Optional[AsyncOpenAI] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.settings = settings
        self.sleep = sleep
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            # Retries are ours; the SDK's own would multiply the budget.
            # Raises OpenAIError when no API key is configured anywhere.
            self._client = AsyncOpenAI(api_key=self.settings.openai_api_key or None, max_retries=0)
        return self._client

    def _messages(self, request: GenerationRequest) -> list:
        messages = []
        if request.system_instruction:
            messages.append({"role": "system", "content": request.system_instruction})
        messages.append({"role": "user", "content": request.prompt_text})
        return messages

    async def _attempt(self, request: GenerationRequest) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.settings.openai_model,
                messages=self._messages(request),
                max_tokens=request.max_output_tokens,
            )
        except openai.RateLimitError as e:
            raise GenerationRateLimited(str(e)) from e
        except openai.OpenAIError as e:
            raise GenerationFailed(f"Generation request failed: {e}") from e

        if not response.choices:
            raise GenerationFailed("Generation response contained no choices")

        content = response.choices[0].message.content
        if not content or not content.strip():
            raise GenerationFailed("Generation response was empty")
        return content

    async def generate(self, request: GenerationRequest, max_chars: Optional[int] = None) -> GeneratedMessage:
        """
        Submit a request, retrying on rate limits, and return validated text.

        Args:
            request: Rendered prompt
            max_chars: Hard cap on returned text; defaults to max_message_chars

        Raises:
            GenerationFailed: Non-retryable error, unusable output or retries exhausted
        """
        limit = max_chars if max_chars is not None else self.settings.max_message_chars
        started = time.monotonic()

        try:
            content, attempts = await retry_async(
                lambda: self._attempt(request),
                is_retryable=lambda e: isinstance(e, GenerationRateLimited),
                max_attempts=self.settings.generation_max_attempts,
                delay_for=linear_backoff(self.settings.generation_retry_delay),
                sleep=self.sleep,
                description="Text generation",
            )
        except RetryExhausted as e:
            raise GenerationFailed(
                f"Rate limited on all {e.attempts} generation attempts"
            ) from e.last_error

        elapsed = time.monotonic() - started
        text = truncate_message(clean_generated_text(content), limit)
        if not text:
            raise GenerationFailed("Generated text was empty after cleanup")

        logger.info(
            f"Generated message with template={request.template_name or 'n/a'} "
            f"in {attempts} attempt(s), {elapsed:.1f}s: {text}"
        )
        return GeneratedMessage(
            text=text,
            source_latency_ok=elapsed <= self.settings.generation_latency_budget,
            attempts=attempts,
        )
