"""
Mock Payment Service Implementation

Simulates the PayPal checkout flow without making real API calls.
Used in development mode (ENV_MODE=development) to:
    - Test the complete checkout flow locally
    - Run load tests without a sandbox account
    - Develop without internet connectivity

Behavior:
    - Simulates response latency
    - Declines a configurable share of order creations
    - Generates PayPal-like ids
    - Only orders it created can be captured, and only once

Author: Your Name
Version: 1.0.0
"""

import asyncio
import logging
import random
import uuid
from decimal import Decimal
from typing import Optional

from bistro.schemas import quantize_money
from bistro.services.payment.base import BasePaymentService, PaymentResult

logger = logging.getLogger(__name__)


class MockPaymentService(BasePaymentService):
    """
    Mock implementation of the payment service.

    Attributes:
        failure_rate: Probability of a simulated decline (0.0-1.0)
        min_latency: Minimum simulated response time in seconds
        max_latency: Maximum simulated response time in seconds

    Example:
        >>> service = MockPaymentService(failure_rate=0.0)
        >>> result = await service.create_order(Decimal("29.99"))
        >>> print(result.status)
        'CREATED'
    """

    # Simulated failure reasons (PayPal-style issue codes)
    DECLINE_REASONS = [
        ("INSTRUMENT_DECLINED", "The instrument presented was declined."),
        ("PAYER_ACTION_REQUIRED", "The payer must take additional action."),
        ("TRANSACTION_REFUSED", "The transaction was refused."),
    ]

    def __init__(
        self,
        failure_rate: float = 0.0,
        min_latency: float = 0.0,
        max_latency: float = 0.0,
    ):
        self.failure_rate = failure_rate
        self.min_latency = min_latency
        self.max_latency = max_latency
        # provider order id -> (amount, currency, captured)
        self._orders: dict[str, tuple[Decimal, str, bool]] = {}

        logger.info(
            f"MockPaymentService initialized "
            f"(failure_rate={failure_rate:.0%}, "
            f"latency={min_latency}-{max_latency}s)"
        )

    @property
    def provider_name(self) -> str:
        return "mock"

    @property
    def client_id(self) -> Optional[str]:
        return "mock-client-id"

    async def _simulate_latency(self) -> float:
        """Sleep like a network call would; returns milliseconds."""
        latency = random.uniform(self.min_latency, self.max_latency)
        if latency > 0:
            await asyncio.sleep(latency)
        return latency * 1000

    def _should_fail(self) -> bool:
        return random.random() < self.failure_rate

    async def create_order(
        self,
        amount: Decimal,
        currency: str = "USD",
        reference: Optional[str] = None,
    ) -> PaymentResult:
        latency_ms = await self._simulate_latency()

        if amount <= 0:
            return PaymentResult(
                success=False,
                error_message="Amount must be greater than 0",
                error_code="INVALID_AMOUNT",
                response_time_ms=latency_ms,
            )

        if self._should_fail():
            error_code, error_message = random.choice(self.DECLINE_REASONS)
            logger.debug(f"Mock: Order declined - {error_code}")
            return PaymentResult(
                success=False,
                amount=amount,
                currency=currency,
                error_message=error_message,
                error_code=error_code,
                response_time_ms=latency_ms,
            )

        order_id = f"MOCK-{uuid.uuid4().hex[:17].upper()}"
        self._orders[order_id] = (quantize_money(amount), currency, False)
        logger.info(f"Mock: Created checkout {order_id} for {amount} {currency} ({reference or '-'})")

        return PaymentResult(
            success=True,
            provider_order_id=order_id,
            status="CREATED",
            approve_url=f"https://www.sandbox.paypal.com/checkoutnow?token={order_id}",
            amount=quantize_money(amount),
            currency=currency,
            response_time_ms=latency_ms,
        )

    async def capture_order(self, provider_order_id: str) -> PaymentResult:
        latency_ms = await self._simulate_latency()

        entry = self._orders.get(provider_order_id)
        if entry is None:
            return PaymentResult(
                success=False,
                provider_order_id=provider_order_id,
                error_message="The specified resource does not exist.",
                error_code="RESOURCE_NOT_FOUND",
                response_time_ms=latency_ms,
            )

        amount, currency, captured = entry
        if captured:
            return PaymentResult(
                success=False,
                provider_order_id=provider_order_id,
                error_message="Order already captured.",
                error_code="ORDER_ALREADY_CAPTURED",
                response_time_ms=latency_ms,
            )

        self._orders[provider_order_id] = (amount, currency, True)
        capture_id = f"CAP-{uuid.uuid4().hex[:17].upper()}"
        logger.info(f"Mock: Captured {provider_order_id} - {capture_id}")

        return PaymentResult(
            success=True,
            provider_order_id=provider_order_id,
            status="COMPLETED",
            capture_id=capture_id,
            amount=amount,
            currency=currency,
            response_time_ms=latency_ms,
        )

    async def create_client_token(self) -> Optional[str]:
        return f"mock-client-token-{uuid.uuid4().hex[:12]}"

    async def health_check(self) -> bool:
        """Mock health check always returns True."""
        return True
