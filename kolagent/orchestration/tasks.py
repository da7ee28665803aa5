import asyncio
import datetime as dt
import logging
import random
from typing import Dict, Optional

from kolagent.config import Settings
from kolagent.services.errors import (
    BelowThreshold,
    ContentTooLong,
    ExcludedAddress,
    GenerationFailed,
    PublishFailed,
    UnknownToken,
)
from kolagent.services.formatter import SEPARATOR, format_post, normalize_hashtag, post_length
from kolagent.services.generator import TextGenerator
from kolagent.services.price_client import PriceLookupClient
from kolagent.services.prompts import build_generation_request
from kolagent.services.publisher import Publisher
from kolagent.services.types import PipelineOutcome, TokenIdentity, TransferEvent

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def healthcheck() -> Dict:
    """Health check with timestamp."""
    return {
        "status": "ok",
        "timestamp": dt.datetime.utcnow().isoformat(),
        "version": VERSION,
    }


class EventPipeline:
    """
    One transfer event in, at most one post out.

    Pipeline: exclusion check → price lookup → unknown-token check →
    threshold check → prompt → generation → formatting → publication.
    Every stop is reported as a PipelineOutcome; run() never raises.
    """

    def __init__(
        self,
        settings: Settings,
        price_client: PriceLookupClient,
        generator: TextGenerator,
        publisher: Publisher,
        rng: Optional[random.Random] = None,
    ):
        self.settings = settings
        self.price_client = price_client
        self.generator = generator
        self.publisher = publisher
        self.rng = rng or random.Random()

    def check_excluded(self, event: TransferEvent) -> None:
        if event.token_address.strip() in self.settings.excluded_address_set:
            raise ExcludedAddress(f"{event.token_address} is on the exclusion list")

    def check_threshold(self, identity: TokenIdentity) -> None:
        threshold = self.settings.min_transaction_value_usd
        if threshold is None:
            return
        value = identity.transaction_value_usd
        if value is None or value < threshold:
            raise BelowThreshold(f"Transaction value {value} is below ${threshold}")

    def message_budget(self, hashtag: str) -> int:
        room = self.settings.post_char_limit - len(SEPARATOR) - len(hashtag)
        return min(self.settings.max_message_chars, room)

    async def run(self, event: TransferEvent) -> PipelineOutcome:
        """Process one event within the configured deadline."""
        try:
            return await asyncio.wait_for(
                self._run(event), timeout=self.settings.pipeline_timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.error(
                f"Pipeline for {event.token_address} exceeded "
                f"{self.settings.pipeline_timeout_seconds}s deadline"
            )
            return PipelineOutcome(
                status="timed_out",
                token_address=event.token_address,
                detail=f"Exceeded {self.settings.pipeline_timeout_seconds}s deadline",
            )

    async def _run(self, event: TransferEvent) -> PipelineOutcome:
        address = event.token_address
        logger.info(f"Starting pipeline for token {address} (amount={event.amount_transferred})")

        identity = None
        try:
            self.check_excluded(event)

            identity = await self.price_client.lookup(address, event.amount_transferred)
            if not identity.is_resolved:
                raise UnknownToken(f"No ticker found for {address}")

            self.check_threshold(identity)

            hashtag = normalize_hashtag(identity.ticker_symbol or self.settings.fallback_hashtag)
            request = build_generation_request(
                identity, self.rng, max_output_tokens=self.settings.max_output_tokens
            )
            budget = self.message_budget(hashtag)
            if budget < 1:
                raise ContentTooLong(post_length("", hashtag), self.settings.post_char_limit)
            message = await self.generator.generate(request, max_chars=budget)
            if not message.source_latency_ok:
                logger.warning(f"Generation for {address} exceeded the latency budget")

            post = format_post(message.text, hashtag, limit=self.settings.post_char_limit)
            result = await self.publisher.publish(post)

        except ExcludedAddress as e:
            logger.info(f"Skipping excluded token: {e}")
            return self._outcome("excluded", event, identity, detail=str(e))
        except UnknownToken as e:
            logger.info(f"Skipping unknown token: {e}")
            return self._outcome("unknown_token", event, identity, detail=str(e))
        except BelowThreshold as e:
            logger.info(f"Skipping {address}: {e}")
            return self._outcome("below_threshold", event, identity, detail=str(e))
        except GenerationFailed as e:
            logger.error(f"Error generating shill message for {address}: {e}", exc_info=True)
            return self._outcome("generation_failed", event, identity, detail=str(e))
        except ContentTooLong as e:
            # Budgeting should make this unreachable; seeing it means a config defect
            logger.error(f"Formatted post for {address} rejected: {e}")
            return self._outcome("content_too_long", event, identity, detail=str(e))
        except PublishFailed as e:
            logger.error(
                f"Error posting for {address}: {e} "
                f"(codes={e.api_codes}, messages={e.api_messages})",
                exc_info=True,
            )
            return self._outcome("publish_failed", event, identity, detail=str(e))
        except Exception as e:
            logger.error(f"Unexpected pipeline error for {address}: {e}", exc_info=True)
            return self._outcome("error", event, identity, detail=str(e))

        logger.info(f"Published post {result.external_id} for ${identity.ticker_symbol} ({address})")
        return self._outcome("published", event, identity, external_id=result.external_id)

    def _outcome(
        self,
        status: str,
        event: TransferEvent,
        identity: Optional[TokenIdentity],
        external_id: Optional[str] = None,
        detail: Optional[str] = None,
    ) -> PipelineOutcome:
        return PipelineOutcome(
            status=status,
            token_address=event.token_address,
            ticker_symbol=identity.ticker_symbol if identity else None,
            external_id=external_id,
            detail=detail,
        )


def build_pipeline(settings: Settings) -> EventPipeline:
    """Wire the production collaborators from one settings object."""
    return EventPipeline(
        settings=settings,
        price_client=PriceLookupClient(settings),
        generator=TextGenerator(settings),
        publisher=Publisher(settings),
    )
