from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict


class TransferEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    token_address: str
    amount_transferred: Decimal = Decimal("0")


class TokenIdentity(BaseModel):
    address: str
    ticker_symbol: Optional[str] = None
    display_name: Optional[str] = None
    usd_price: Optional[Decimal] = None
    transaction_value_usd: Optional[Decimal] = None

    @property
    def is_resolved(self) -> bool:
        """A ticker counts only if something is left once "#" and whitespace are stripped."""
        if not self.ticker_symbol:
            return False
        return bool(self.ticker_symbol.strip().lstrip("#").strip())


class GenerationRequest(BaseModel):
    prompt_text: str
    system_instruction: Optional[str] = None
    max_output_tokens: int = 100
    template_name: str = ""


class GeneratedMessage(BaseModel):
    text: str
    source_latency_ok: bool = True
    attempts: int = 1


class FormattedPost(BaseModel):
    text: str
    hashtag: str


class PublishResult(BaseModel):
    external_id: str
    attempts: int = 1
    dry_run: bool = False


OutcomeStatus = Literal[
    "published",
    "excluded",
    "unknown_token",
    "below_threshold",
    "generation_failed",
    "content_too_long",
    "publish_failed",
    "timed_out",
    "error",
]


class PipelineOutcome(BaseModel):
    status: OutcomeStatus
    token_address: str
    ticker_symbol: Optional[str] = None
    external_id: Optional[str] = None
    detail: Optional[str] = None

    @property
    def published(self) -> bool:
        return self.status == "published"
