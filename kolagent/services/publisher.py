import asyncio
import logging
from typing import Awaitable, Callable, Optional

import tweepy
from tweepy.asynchronous import AsyncClient

from kolagent.config import Settings
from kolagent.services.errors import PublishFailed, PublishRateLimited
from kolagent.services.retry import RetryExhausted, linear_backoff, retry_async
from kolagent.services.types import FormattedPost, PublishResult

logger = logging.getLogger(__name__)


class Publisher:
    """Posts formatted content to X through the v2 API (OAuth 1.0a user context)."""

    def __init__(
        self,
        settings: Settings,
        client: Optional[AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.settings = settings
        self.sleep = sleep
        self._client = client

    @property
    def configured(self) -> bool:
        s = self.settings
        return all([
            s.twitter_api_key,
            s.twitter_api_secret,
            s.twitter_access_token,
            s.twitter_access_token_secret,
        ])

    @property
    def client(self) -> AsyncClient:
        if self._client is None:
            s = self.settings
            self._client = AsyncClient(
                bearer_token=s.twitter_bearer_token or None,
                consumer_key=s.twitter_api_key,
                consumer_secret=s.twitter_api_secret,
                access_token=s.twitter_access_token,
                access_token_secret=s.twitter_access_token_secret,
            )
        return self._client

    async def _attempt(self, text: str) -> str:
        try:
            response = await self.client.create_tweet(text=text, user_auth=True)
        except tweepy.errors.TooManyRequests as e:
            raise PublishRateLimited(str(e)) from e
        except tweepy.errors.HTTPException as e:
            raise PublishFailed(
                f"X API rejected post: {e}",
                api_codes=list(e.api_codes),
                api_messages=list(e.api_messages),
            ) from e
        except tweepy.errors.TweepyException as e:
            raise PublishFailed(f"X client error: {e}") from e
        except Exception as e:
            raise PublishFailed(f"Error posting to X: {e}") from e

        data = response.data or {}
        post_id = data.get("id")
        if not post_id:
            raise PublishFailed("X API response carried no post id")
        return str(post_id)

    async def publish(self, post: FormattedPost) -> PublishResult:
        """
        Publish one post, retrying rate limits with linear backoff.

        There is no idempotency key: publishing the same post twice creates
        two posts.

        Raises:
            PublishFailed: Non-retryable error, missing credentials or retries exhausted
        """
        if self.settings.dry_run:
            logger.info(f"DRY RUN, not posting:\n{post.text}")
            return PublishResult(external_id="dry-run", attempts=0, dry_run=True)

        if not self.configured and self._client is None:
            raise PublishFailed("X API credentials incomplete")

        try:
            post_id, attempts = await retry_async(
                lambda: self._attempt(post.text),
                is_retryable=lambda e: isinstance(e, PublishRateLimited),
                max_attempts=self.settings.publish_max_attempts,
                delay_for=linear_backoff(self.settings.publish_retry_delay),
                sleep=self.sleep,
                description="Post publication",
            )
        except RetryExhausted as e:
            raise PublishFailed(
                f"Failed to post after {e.attempts} attempts: {e.last_error}"
            ) from e.last_error

        logger.info(f"Post {post_id} published after {attempts} attempt(s)")
        return PublishResult(external_id=post_id, attempts=attempts)
