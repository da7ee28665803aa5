from decimal import Decimal, InvalidOperation
from typing import Optional
import httpx
import logging
from pydantic import ValidationError
from kolagent.config import Settings
from kolagent.services.types import TokenIdentity

logger = logging.getLogger(__name__)


class PriceLookupClient:
    """Resolves a mint address to its ticker and USD price via DexScreener."""

    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self.http_client = http_client

    def _url(self, address: str) -> str:
        base = self.settings.price_api_base_url.rstrip("/")
        return f"{base}/latest/dex/tokens/{address}"

    async def lookup(self, address: str, amount: Optional[Decimal] = None) -> TokenIdentity:
        """
        Look up a token by contract address.

        The first listed pair is authoritative. Any failure (no pairs, network
        error, non-2xx, bad body) degrades to an unknown identity.

        Args:
            address: Token mint / contract address
            amount: Transferred amount; when given, transaction_value_usd is computed

        Returns:
            TokenIdentity, with all optional fields absent when unknown
        """
        unknown = TokenIdentity(address=address)

        try:
            if self.http_client is not None:
                response = await self.http_client.get(
                    self._url(address), timeout=self.settings.http_timeout
                )
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.get(
                        self._url(address),
                        timeout=self.settings.http_timeout,
                        headers={"User-Agent": "kol-agent/1.0"},
                    )

            response.raise_for_status()
            data = response.json()

        except httpx.HTTPStatusError as e:
            logger.error(f"Price index error for {address}: {e.response.status_code}")
            return unknown
        except httpx.HTTPError as e:
            logger.error(f"Error fetching token data for {address}: {e}")
            return unknown
        except ValueError as e:
            logger.error(f"Undecodable price index response for {address}: {e}")
            return unknown

        pairs = data.get("pairs") if isinstance(data, dict) else None
        if not isinstance(pairs, list) or not pairs:
            logger.info(f"No data found for contract: {address}")
            return unknown

        pair = pairs[0] if isinstance(pairs[0], dict) else {}
        base_token = pair.get("baseToken")
        if not isinstance(base_token, dict):
            base_token = {}
        ticker = _to_text(base_token.get("symbol"))
        name = _to_text(base_token.get("name"))
        if ticker is not None and not ticker.lstrip("#").strip():
            ticker = None

        usd_price = _to_decimal(pair.get("priceUsd"))
        if pair.get("priceUsd") is not None and usd_price is None:
            logger.warning(f"Unparseable priceUsd for {address}: {pair.get('priceUsd')!r}")

        transaction_value = None
        if amount is not None and usd_price is not None:
            transaction_value = usd_price * amount

        logger.info(f"Fetched ticker {ticker} for {address} (price={usd_price}, value={transaction_value})")

        try:
            return TokenIdentity(
                address=address,
                ticker_symbol=ticker,
                display_name=name,
                usd_price=usd_price,
                transaction_value_usd=transaction_value,
            )
        except ValidationError as e:
            logger.error(f"Unusable price index data for {address}: {e}")
            return unknown


def _to_text(value) -> Optional[str]:
    if not isinstance(value, str) or not value.strip():
        return None
    return value.strip()


def _to_decimal(value) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not result.is_finite():
        return None
    return result
