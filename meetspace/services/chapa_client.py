"""
HTTP client for the Chapa payment gateway.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from ..core.config import config
from ..core.exceptions import ConfigurationError, ProviderError

logger = logging.getLogger(__name__)

INITIALIZE_TIMEOUT_SECONDS = 15.0
VERIFY_TIMEOUT_SECONDS = 10.0


class ChapaClient:
    """
    Thin async wrapper over Chapa's transaction initialize/verify endpoints.
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._transport = transport
        self.secret_key: Optional[str] = None
        self.base_url: Optional[str] = None
        self._initialized = False

    async def initialize_config(self):
        payment_config = await config.get_payment_config()
        self.secret_key = payment_config["chapa_secret_key"]
        self.base_url = payment_config["chapa_base_url"]
        self._initialized = True

    async def ensure_configured(self):
        if not self._initialized:
            await self.initialize_config()
        if not self.secret_key:
            raise ConfigurationError(
                "Payment provider is not configured",
                code="PAYMENT_CONFIG_MISSING"
            )

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    def _error_message(self, response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        message = body.get("message") if isinstance(body, dict) else None
        if isinstance(message, dict):
            return "; ".join(f"{key}: {value}" for key, value in message.items())
        return str(message or body)

    async def _request(self, method: str, path: str, timeout: float, **kwargs) -> Dict[str, Any]:
        await self.ensure_configured()
        url = f"{self.base_url}{path}"

        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                response = await client.request(method, url, headers=self._headers(), **kwargs)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            message = self._error_message(e.response)
            logger.error(f"Chapa {method} {path} returned {e.response.status_code}: {message}")
            raise ProviderError(message, upstream_status=e.response.status_code)
        except httpx.RequestError as e:
            logger.error(f"Chapa {method} {path} request failed: {e}")
            raise ProviderError(f"Payment provider unreachable: {e}")
        except ValueError as e:
            raise ProviderError(f"Invalid response from payment provider: {e}")

    async def initialize_transaction(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create a hosted checkout for ``payload`` (amount, currency, tx_ref, ...).

        Returns:
            Provider response body; ``data.checkout_url`` holds the redirect
        """
        return await self._request(
            "POST", "/transaction/initialize", INITIALIZE_TIMEOUT_SECONDS, json=payload
        )

    async def verify_transaction(self, tx_ref: str) -> Dict[str, Any]:
        """Ask the provider for the authoritative status of ``tx_ref``."""
        return await self._request(
            "GET", f"/transaction/verify/{tx_ref}", VERIFY_TIMEOUT_SECONDS
        )


# Global Chapa client
chapa_client = ChapaClient()
