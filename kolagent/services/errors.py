"""
Failure conditions raised along the generation and publication pipeline.

Filters (ExcludedAddress, UnknownToken, BelowThreshold) stop a run without
being errors. Everything else is logged with upstream detail. None of these
ever reach the webhook caller except MalformedWebhook.
"""

from typing import List, Optional


class PipelineError(Exception):
    """Base class for every per-event failure."""


class MalformedWebhook(PipelineError):
    """Inbound envelope could not be parsed into a transfer event."""


class ExcludedAddress(PipelineError):
    """Token address is on the configured exclusion list."""


class UnknownToken(PipelineError):
    """Price index returned no pairs or could not be reached."""


class BelowThreshold(PipelineError):
    """Transaction value is under the configured minimum."""


class GenerationRateLimited(PipelineError):
    """Generative-text service answered 429."""


class GenerationFailed(PipelineError):
    """Non-retryable generation error, unusable output, or retries exhausted."""


class ContentTooLong(PipelineError):
    """Formatted post would exceed the platform character limit."""

    def __init__(self, length: int, limit: int):
        self.length = length
        self.limit = limit
        super().__init__(f"Post exceeds character limit ({length}/{limit})")


class PublishRateLimited(PipelineError):
    """Social platform answered 429."""


class PublishFailed(PipelineError):
    """Post could not be published; carries service error codes when available."""

    def __init__(
        self,
        message: str,
        api_codes: Optional[List[int]] = None,
        api_messages: Optional[List[str]] = None,
    ):
        self.api_codes = api_codes or []
        self.api_messages = api_messages or []
        super().__init__(message)
