from decimal import Decimal
from functools import lru_cache
from typing import Optional, Set

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Generation (OpenAI)
    openai_api_key: str = ""
    openai_model: str = "gpt-4"
    max_output_tokens: int = 100
    max_message_chars: int = 240
    generation_max_attempts: int = 3
    generation_retry_delay: float = 2.0
    generation_latency_budget: float = 10.0

    # Publication (X / Twitter)
    twitter_api_key: str = ""
    twitter_api_secret: str = ""
    twitter_access_token: str = ""
    twitter_access_token_secret: str = ""
    twitter_bearer_token: str = ""
    publish_max_attempts: int = 3
    publish_retry_delay: float = 1.0
    post_char_limit: int = 280
    fallback_hashtag: str = "Crypto"

    # Eligibility filters
    min_transaction_value_usd: Optional[Decimal] = None
    excluded_addresses: str = ""  # Comma-separated mint addresses

    # Price index (DexScreener)
    price_api_base_url: str = "https://api.dexscreener.com"
    http_timeout: float = 10.0

    # Runtime
    pipeline_timeout_seconds: float = 30.0
    dry_run: bool = False
    port: int = 3000
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def excluded_address_set(self) -> Set[str]:
        return {a.strip() for a in self.excluded_addresses.split(",") if a.strip()}

    @property
    def twitter_credentials_loaded(self) -> dict:
        """Which posting credentials are present, without their values."""
        return {
            "api_key": bool(self.twitter_api_key),
            "api_secret": bool(self.twitter_api_secret),
            "access_token": bool(self.twitter_access_token),
            "access_token_secret": bool(self.twitter_access_token_secret),
            "bearer_token": bool(self.twitter_bearer_token),
        }


@lru_cache()
def get_settings():
    return Settings()
