from decimal import Decimal, InvalidOperation
import json
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from kolagent.config import Settings, get_settings
from kolagent.orchestration.dispatch import PipelineDispatcher
from kolagent.services.errors import MalformedWebhook
from kolagent.services.types import TransferEvent

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhook"])


def parse_webhook(payload: Any, require_amount: bool = False) -> Optional[TransferEvent]:
    """
    Extract the transfer to act on from a transaction webhook envelope.

    Only the first transaction record is inspected. When it carries several
    token transfers, the last one wins.

    Args:
        payload: Decoded JSON body, expected to be an array of transaction records
        require_amount: Treat a missing tokenAmount as malformed

    Returns:
        TransferEvent, or None when the envelope has no token transfers

    Raises:
        MalformedWebhook: Envelope shape or transfer fields are invalid
    """
    if not isinstance(payload, list):
        raise MalformedWebhook(f"Expected a JSON array, got {type(payload).__name__}")
    if not payload:
        return None

    record = payload[0]
    if not isinstance(record, dict):
        raise MalformedWebhook("Transaction record is not an object")

    transfers = record.get("tokenTransfers")
    if transfers is None:
        return None
    if not isinstance(transfers, list):
        raise MalformedWebhook("tokenTransfers is not an array")
    if not transfers:
        return None

    last = transfers[-1]
    if not isinstance(last, dict):
        raise MalformedWebhook("Token transfer is not an object")

    mint = last.get("mint")
    if not isinstance(mint, str) or not mint.strip():
        raise MalformedWebhook("Token transfer has no mint address")

    raw_amount = last.get("tokenAmount")
    if raw_amount is None:
        if require_amount:
            raise MalformedWebhook("Token transfer has no tokenAmount")
        amount = Decimal("0")
    else:
        amount = _parse_amount(raw_amount)

    return TransferEvent(token_address=mint.strip(), amount_transferred=amount)


def _parse_amount(raw: Any) -> Decimal:
    if isinstance(raw, bool) or not isinstance(raw, (str, int, float)):
        raise MalformedWebhook(f"Unsupported tokenAmount: {raw!r}")
    try:
        amount = Decimal(str(raw))
    except InvalidOperation:
        raise MalformedWebhook(f"Unparseable tokenAmount: {raw!r}")
    if not amount.is_finite():
        raise MalformedWebhook(f"Non-finite tokenAmount: {raw!r}")
    return amount


def get_dispatcher(request: Request) -> PipelineDispatcher:
    return request.app.state.dispatcher


@router.post("/webhook")
async def receive_webhook(
    request: Request,
    dispatcher: PipelineDispatcher = Depends(get_dispatcher),
    settings: Settings = Depends(get_settings),
):
    """
    Receive a transaction webhook and start a pipeline run for its last token transfer.

    Acknowledges before the run completes; pipeline failures are logged only.
    """
    try:
        payload = await request.json()
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Incoming webhook data: {json.dumps(payload, indent=2)}")

        event = parse_webhook(
            payload, require_amount=settings.min_transaction_value_usd is not None
        )
        if event is None:
            logger.info("No token transfers found in this transaction.")
            return {"status": "ignored"}

        logger.info(f"Token Transfer Detected for token: {event.token_address}")
        dispatcher.spawn(event)
        return {"status": "accepted", "token_address": event.token_address}

    except MalformedWebhook as e:
        logger.warning(f"Malformed webhook: {e}")
        return JSONResponse(status_code=500, content={"status": "error", "detail": str(e)})
    except Exception as e:
        logger.error(f"Error handling webhook: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"status": "error", "detail": "Failed to handle webhook"})
