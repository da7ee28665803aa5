"""Tests for the event pipeline: filters, wiring and end-to-end scenarios."""
import asyncio
import random
from decimal import Decimal
import httpx
import pytest
import tweepy
from unittest.mock import AsyncMock, MagicMock
from kolagent.config import Settings
from kolagent.orchestration.tasks import EventPipeline
from kolagent.services.errors import GenerationFailed, PublishFailed
from kolagent.services.generator import TextGenerator
from kolagent.services.price_client import PriceLookupClient
from kolagent.services.publisher import Publisher
from kolagent.services.types import (
    GeneratedMessage,
    PublishResult,
    TokenIdentity,
    TransferEvent,
)

ADDRESS = "ABC123"

CREDENTIALS = dict(
    twitter_api_key="key",
    twitter_api_secret="secret",
    twitter_access_token="token",
    twitter_access_token_secret="token-secret",
)

def _identity(ticker="FOO", value=Decimal("50")):
    return TokenIdentity(
        address=ADDRESS,
        ticker_symbol=ticker,
        usd_price=Decimal("0.05") if ticker else None,
        transaction_value_usd=value,
    )

def _mock_pipeline(identity, settings=None, generated="$FOO is heating up"):
    settings = settings or Settings(min_transaction_value_usd=Decimal("25"))
    price_client = MagicMock()
    price_client.lookup = AsyncMock(return_value=identity)
    generator = MagicMock()
    generator.generate = AsyncMock(return_value=GeneratedMessage(text=generated))
    publisher = MagicMock()
    publisher.publish = AsyncMock(return_value=PublishResult(external_id="99"))
    pipeline = EventPipeline(settings, price_client, generator, publisher, rng=random.Random(7))
    return pipeline, price_client, generator, publisher

def _event(address=ADDRESS, amount="1000"):
    return TransferEvent(token_address=address, amount_transferred=Decimal(amount))

# --- filters ----------------------------------------------------------------

def test_excluded_address_stops_before_any_call():
    """Test an excluded address triggers no lookup, generation or publish."""
    settings = Settings(excluded_addresses=f"OTHER, {ADDRESS} ,MORE")
    pipeline, price_client, generator, publisher = _mock_pipeline(_identity(), settings)

    outcome = asyncio.run(pipeline.run(_event()))

    assert outcome.status == "excluded"
    price_client.lookup.assert_not_awaited()
    generator.generate.assert_not_awaited()
    publisher.publish.assert_not_awaited()

def test_unknown_token_stops_before_generation():
    """Test an unresolved identity aborts with unknown_token."""
    pipeline, _, generator, publisher = _mock_pipeline(TokenIdentity(address=ADDRESS))

    outcome = asyncio.run(pipeline.run(_event()))

    assert outcome.status == "unknown_token"
    generator.generate.assert_not_awaited()
    publisher.publish.assert_not_awaited()

def test_below_threshold_stops():
    """Test a value strictly under the minimum generates nothing."""
    pipeline, _, generator, publisher = _mock_pipeline(_identity(value=Decimal("24.99")))

    outcome = asyncio.run(pipeline.run(_event()))

    assert outcome.status == "below_threshold"
    generator.generate.assert_not_awaited()
    publisher.publish.assert_not_awaited()

def test_threshold_is_inclusive():
    """Test a value exactly at the minimum proceeds."""
    pipeline, _, generator, publisher = _mock_pipeline(_identity(value=Decimal("25")))

    outcome = asyncio.run(pipeline.run(_event()))

    assert outcome.status == "published"
    generator.generate.assert_awaited_once()
    publisher.publish.assert_awaited_once()

def test_missing_value_counts_as_below_threshold():
    """Test a token without a price cannot pass a configured threshold."""
    pipeline, _, generator, _ = _mock_pipeline(_identity(value=None))

    outcome = asyncio.run(pipeline.run(_event()))

    assert outcome.status == "below_threshold"
    generator.generate.assert_not_awaited()

def test_no_threshold_configured():
    """Test the value filter is skipped when no minimum is set."""
    pipeline, _, _, publisher = _mock_pipeline(_identity(value=Decimal("0.01")), Settings())

    outcome = asyncio.run(pipeline.run(_event()))

    assert outcome.status == "published"
    publisher.publish.assert_awaited_once()

def test_threshold_filter_sweep():
    """Test values around the threshold split exactly at the minimum."""
    for value, expected in [("0", "below_threshold"), ("24.999", "below_threshold"),
                            ("25", "published"), ("25.001", "published"), ("1000", "published")]:
        pipeline, _, generator, _ = _mock_pipeline(_identity(value=Decimal(value)))
        outcome = asyncio.run(pipeline.run(_event()))
        assert outcome.status == expected
        assert generator.generate.await_count == (1 if expected == "published" else 0)

# --- generation / formatting / publishing -----------------------------------

def test_published_post_has_single_ticker_hashtag():
    """Test the formatted post ends with the ticker hashtag."""
    pipeline, _, generator, publisher = _mock_pipeline(_identity())

    outcome = asyncio.run(pipeline.run(_event()))

    assert outcome.status == "published"
    assert outcome.external_id == "99"
    assert outcome.ticker_symbol == "FOO"
    post = publisher.publish.await_args.args[0]
    assert post.text == "$FOO is heating up\n\n#FOO"
    assert post.hashtag == "#FOO"

def test_generation_budget_leaves_room_for_hashtag():
    """Test the generator is asked for at most limit - 2 - len(hashtag) characters."""
    settings = Settings(max_message_chars=400)
    pipeline, _, generator, _ = _mock_pipeline(_identity(), settings)

    asyncio.run(pipeline.run(_event()))

    assert generator.generate.await_args.kwargs["max_chars"] == 280 - 2 - len("#FOO")

def test_generation_request_embeds_address_and_ticker():
    """Test the rendered prompt carries the address and ticker."""
    pipeline, _, generator, _ = _mock_pipeline(_identity())

    asyncio.run(pipeline.run(_event()))

    request = generator.generate.await_args.args[0]
    assert ADDRESS in request.prompt_text
    assert "$FOO" in request.prompt_text

def test_generation_failure_aborts_without_publish():
    """Test a generation failure ends the run before publication."""
    pipeline, _, generator, publisher = _mock_pipeline(_identity())
    generator.generate.side_effect = GenerationFailed("rate limited")

    outcome = asyncio.run(pipeline.run(_event()))

    assert outcome.status == "generation_failed"
    publisher.publish.assert_not_awaited()

def test_content_too_long_aborts_without_publish():
    """Test an over-limit post is rejected before publication."""
    pipeline, _, _, publisher = _mock_pipeline(_identity(), generated="x " * 200)

    outcome = asyncio.run(pipeline.run(_event()))

    assert outcome.status == "content_too_long"
    publisher.publish.assert_not_awaited()

def test_publish_failure_is_reported():
    """Test a publish failure is converted into an outcome, not raised."""
    pipeline, _, _, publisher = _mock_pipeline(_identity())
    publisher.publish.side_effect = PublishFailed("403 Forbidden", api_codes=[187])

    outcome = asyncio.run(pipeline.run(_event()))

    assert outcome.status == "publish_failed"
    assert "403" in outcome.detail

def test_unexpected_error_is_contained():
    """Test an unexpected collaborator exception never escapes run()."""
    pipeline, price_client, _, _ = _mock_pipeline(_identity())
    price_client.lookup.side_effect = RuntimeError("boom")

    outcome = asyncio.run(pipeline.run(_event()))

    assert outcome.status == "error"

def test_deadline_exceeded():
    """Test a run past the deadline is reported as timed out."""
    settings = Settings(pipeline_timeout_seconds=0.05)
    pipeline, _, _, publisher = _mock_pipeline(_identity(), settings)

    async def slow(*args, **kwargs):
        await asyncio.sleep(1)

    pipeline.generator.generate.side_effect = slow

    outcome = asyncio.run(pipeline.run(_event()))

    assert outcome.status == "timed_out"
    publisher.publish.assert_not_awaited()

# --- end to end -------------------------------------------------------------

def _price_transport(price_payload):
    def handler(request):
        return httpx.Response(200, json=price_payload)
    return httpx.MockTransport(handler)

def _run_end_to_end(price_payload, generated_text="Early on $FOO, do not fade this one"):
    settings = Settings(min_transaction_value_usd=Decimal("25"), **CREDENTIALS)

    openai_client = MagicMock()
    completion = MagicMock()
    completion.choices = [MagicMock(message=MagicMock(content=generated_text))]
    openai_client.chat.completions.create = AsyncMock(return_value=completion)

    x_client = MagicMock()
    x_client.create_tweet = AsyncMock(return_value=tweepy.Response(
        data={"id": "1800000000000000000", "text": ""}, includes={}, errors=[], meta={},
    ))

    async def go():
        async with httpx.AsyncClient(transport=_price_transport(price_payload)) as http:
            pipeline = EventPipeline(
                settings,
                PriceLookupClient(settings, http_client=http),
                TextGenerator(settings, client=openai_client, sleep=AsyncMock()),
                Publisher(settings, client=x_client, sleep=AsyncMock()),
                rng=random.Random(3),
            )
            return await pipeline.run(_event(amount="1000"))

    outcome = asyncio.run(go())
    return outcome, openai_client.chat.completions.create, x_client.create_tweet

def test_end_to_end_above_threshold_publishes_once():
    """Test FOO at $0.05 x 1000 = $50 generates and posts exactly once."""
    outcome, generate, create_tweet = _run_end_to_end(
        {"pairs": [{"baseToken": {"symbol": "FOO"}, "priceUsd": "0.05"}]}
    )

    assert outcome.status == "published"
    assert outcome.external_id == "1800000000000000000"
    assert generate.await_count == 1
    assert create_tweet.await_count == 1
    text = create_tweet.await_args.kwargs["text"]
    assert text.endswith("\n\n#FOO")
    assert text.count("#FOO") == 1
    assert len(text) <= 280

def test_end_to_end_below_threshold_publishes_nothing():
    """Test FOO at $0.001 x 1000 = $1 makes no generation or publish call."""
    outcome, generate, create_tweet = _run_end_to_end(
        {"pairs": [{"baseToken": {"symbol": "FOO"}, "priceUsd": "0.001"}]}
    )

    assert outcome.status == "below_threshold"
    generate.assert_not_awaited()
    create_tweet.assert_not_awaited()

def test_end_to_end_empty_pairs_is_unknown_token():
    """Test an empty pairs array aborts before any generation attempt."""
    outcome, generate, create_tweet = _run_end_to_end({"pairs": []})

    assert outcome.status == "unknown_token"
    generate.assert_not_awaited()
    create_tweet.assert_not_awaited()

def test_oversized_ticker_aborts_before_generation():
    """Test a hashtag that leaves no room for text fails without calling the generator."""
    identity = TokenIdentity(address=ADDRESS, ticker_symbol="T" * 300, transaction_value_usd=Decimal("50"))
    pipeline, _, generator, publisher = _mock_pipeline(identity)

    outcome = asyncio.run(pipeline.run(_event()))

    assert outcome.status == "content_too_long"
    generator.generate.assert_not_awaited()
    publisher.publish.assert_not_awaited()

def test_ticker_without_characters_is_unknown_token():
    """Test a ticker of only '#' or whitespace stops as unknown_token, not an error."""
    for ticker in ["#", "  ", " ## "]:
        identity = TokenIdentity(address=ADDRESS, ticker_symbol=ticker, transaction_value_usd=Decimal("50"))
        pipeline, _, generator, publisher = _mock_pipeline(identity)

        outcome = asyncio.run(pipeline.run(_event()))

        assert outcome.status == "unknown_token"
        generator.generate.assert_not_awaited()
        publisher.publish.assert_not_awaited()
