"""
PayPal Payment Service Implementation

Production implementation against the PayPal REST API (Orders v2), using
an httpx async client. Used when ENV_MODE=production or ENV_MODE=staging.

Requirements:
    - PAYPAL_CLIENT_ID and PAYPAL_CLIENT_SECRET must be set
    - PAYPAL_API_BASE selects sandbox or live

API Documentation:
    https://developer.paypal.com/docs/api/orders/v2/

Security Notes:
    - The client secret never leaves the server
    - Access tokens are cached until shortly before they expire

Author: Your Name
Version: 1.0.0
"""

import logging
import time
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

import httpx

from bistro.schemas import quantize_money
from bistro.services.payment.base import BasePaymentService, PaymentResult

logger = logging.getLogger(__name__)

# Refresh the token this many seconds before PayPal says it expires
TOKEN_EXPIRY_MARGIN = 60


class PayPalPaymentService(BasePaymentService):
    """
    PayPal checkout via the REST API.

    Args:
        client_id: REST app client id
        client_secret: REST app secret
        api_base: https://api-m.sandbox.paypal.com or https://api-m.paypal.com
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (tests use httpx.MockTransport)

    Example:
        >>> service = PayPalPaymentService(client_id, secret, api_base)
        >>> result = await service.create_order(Decimal("25.64"))
        >>> print(result.approve_url)
    """

    def __init__(
        self,
        client_id: Optional[str],
        client_secret: Optional[str],
        api_base: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not client_id or not client_secret:
            raise ValueError(
                "PAYPAL_CLIENT_ID and PAYPAL_CLIENT_SECRET are required outside development. "
                "Set them in your .env file or environment variables."
            )

        self._client_id = client_id
        self._client_secret = client_secret
        self._http = httpx.AsyncClient(
            base_url=api_base.rstrip("/"),
            timeout=timeout,
            transport=transport,
        )
        self._access_token: Optional[str] = None
        self._token_expires_at = 0.0

        logger.info(f"PayPalPaymentService initialized ({api_base})")

    @property
    def provider_name(self) -> str:
        return "paypal"

    @property
    def client_id(self) -> Optional[str]:
        return self._client_id

    async def close(self) -> None:
        await self._http.aclose()

    # =========================================================================
    # HTTP HELPERS
    # =========================================================================

    async def _get_access_token(self) -> str:
        if self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token

        response = await self._http.post(
            "/v1/oauth2/token",
            data={"grant_type": "client_credentials"},
            auth=(self._client_id, self._client_secret),
        )
        response.raise_for_status()
        payload = response.json()

        self._access_token = payload["access_token"]
        expires_in = int(payload.get("expires_in", 0))
        self._token_expires_at = time.monotonic() + max(0, expires_in - TOKEN_EXPIRY_MARGIN)
        logger.debug("PayPal: Access token refreshed")
        return self._access_token

    async def _request(self, method: str, path: str, json: Optional[dict] = None) -> dict[str, Any]:
        token = await self._get_access_token()
        response = await self._http.request(
            method,
            path,
            json=json,
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            },
        )
        response.raise_for_status()
        return response.json()

    @staticmethod
    def _failure(error: Exception, started: datetime, provider_order_id: Optional[str] = None) -> PaymentResult:
        elapsed_ms = (datetime.now() - started).total_seconds() * 1000

        if isinstance(error, httpx.HTTPStatusError):
            try:
                body = error.response.json()
            except ValueError:
                body = {}
            code = body.get("name") or body.get("error") or str(error.response.status_code)
            message = (
                body.get("message")
                or body.get("error_description")
                or f"PayPal returned HTTP {error.response.status_code}"
            )
            logger.warning(f"PayPal: {code} - {message}")
        else:
            code = "CONNECTION_ERROR"
            message = f"Could not reach PayPal: {error}"
            logger.error(f"PayPal: {message}")

        return PaymentResult(
            success=False,
            provider_order_id=provider_order_id,
            error_code=code,
            error_message=message,
            response_time_ms=elapsed_ms,
        )

    # =========================================================================
    # CHECKOUT
    # =========================================================================

    async def create_order(
        self,
        amount: Decimal,
        currency: str = "USD",
        reference: Optional[str] = None,
    ) -> PaymentResult:
        started = datetime.now()
        amount = quantize_money(amount)

        purchase_unit: dict[str, Any] = {
            "amount": {"currency_code": currency, "value": f"{amount:.2f}"},
        }
        if reference:
            purchase_unit["reference_id"] = reference

        try:
            payload = await self._request(
                "POST",
                "/v2/checkout/orders",
                json={"intent": "CAPTURE", "purchase_units": [purchase_unit]},
            )
        except httpx.HTTPError as e:
            return self._failure(e, started)

        approve_url = next(
            (
                link.get("href")
                for link in payload.get("links", [])
                if link.get("rel") in ("approve", "payer-action")
            ),
            None,
        )
        logger.info(f"PayPal: Created order {payload.get('id')} for {amount} {currency}")

        return PaymentResult(
            success=True,
            provider_order_id=payload.get("id"),
            status=payload.get("status"),
            approve_url=approve_url,
            amount=amount,
            currency=currency,
            response_time_ms=(datetime.now() - started).total_seconds() * 1000,
        )

    async def capture_order(self, provider_order_id: str) -> PaymentResult:
        started = datetime.now()
        try:
            payload = await self._request(
                "POST", f"/v2/checkout/orders/{provider_order_id}/capture", json={}
            )
        except httpx.HTTPError as e:
            return self._failure(e, started, provider_order_id)

        capture: dict[str, Any] = {}
        for unit in payload.get("purchase_units", []):
            captures = unit.get("payments", {}).get("captures", [])
            if captures:
                capture = captures[0]
                break

        amount = capture.get("amount", {})
        logger.info(f"PayPal: Captured order {provider_order_id} - {capture.get('id')}")

        return PaymentResult(
            success=True,
            provider_order_id=payload.get("id", provider_order_id),
            status=payload.get("status"),
            capture_id=capture.get("id"),
            amount=Decimal(amount["value"]) if "value" in amount else None,
            currency=amount.get("currency_code", "USD"),
            response_time_ms=(datetime.now() - started).total_seconds() * 1000,
        )

    async def create_client_token(self) -> Optional[str]:
        try:
            payload = await self._request("POST", "/v1/identity/generate-token", json={})
        except httpx.HTTPError as e:
            logger.warning(f"PayPal: Could not generate client token: {e}")
            return None
        return payload.get("client_token")

    async def health_check(self) -> bool:
        try:
            await self._get_access_token()
            return True
        except httpx.HTTPError as e:
            logger.warning(f"PayPal health check failed: {e}")
            return False
