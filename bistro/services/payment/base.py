"""
Payment Service Abstract Base Class

Defines the interface contract for all payment service implementations.
Both MockPaymentService and PayPalPaymentService implement these methods,
so the HTTP pass-through routes behave identically whichever is active.

Flow (PayPal checkout):
    1. create_order(amount)       -> provider order id + approval link
    2. buyer approves in the PayPal UI
    3. capture_order(provider id) -> capture id, money moves
    4. the client records the payment on the restaurant order

Design Pattern: Strategy Pattern
    - Allows runtime switching between payment providers
    - Facilitates testing with mock implementations

Author: Your Name
Version: 1.0.0
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


@dataclass
class PaymentResult:
    """
    Standardized result from a payment provider call.

    Attributes:
        success: Whether the provider accepted the request
        provider_order_id: The provider's checkout order id
        status: Provider status string (CREATED, COMPLETED, ...)
        approve_url: Where the buyer approves the payment
        capture_id: Identifier of the captured payment
        amount: Amount in major units (e.g. dollars)
        currency: ISO currency code
        error_message: Error description if the call failed
        error_code: Machine-readable error code
        response_time_ms: Time taken by the provider
    """
    success: bool
    provider_order_id: Optional[str] = None
    status: Optional[str] = None
    approve_url: Optional[str] = None
    capture_id: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: str = "USD"
    error_message: Optional[str] = None
    error_code: Optional[str] = None
    response_time_ms: float = 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": self.success,
            "provider_order_id": self.provider_order_id,
            "status": self.status,
            "approve_url": self.approve_url,
            "capture_id": self.capture_id,
            "amount": float(self.amount) if self.amount is not None else None,
            "currency": self.currency,
            "error_message": self.error_message,
            "error_code": self.error_code,
            "response_time_ms": self.response_time_ms,
        }


class BasePaymentService(ABC):
    """
    Abstract base class for payment services.

    Example:
        >>> service = get_payment_service()  # Mock or PayPal
        >>> result = await service.create_order(Decimal("25.64"), reference="order-7")
        >>> if result.success:
        ...     print(result.approve_url)
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider name (e.g. "mock", "paypal")."""
        pass

    @property
    def client_id(self) -> Optional[str]:
        """Public client id the browser SDK needs, if any."""
        return None

    @abstractmethod
    async def create_order(
        self,
        amount: Decimal,
        currency: str = "USD",
        reference: Optional[str] = None,
    ) -> PaymentResult:
        """
        Open a checkout order for ``amount``.

        Args:
            amount: Amount to charge in major units
            currency: Three-letter currency code
            reference: Our own reference (e.g. "order-42")
        """
        pass

    @abstractmethod
    async def capture_order(self, provider_order_id: str) -> PaymentResult:
        """Capture an approved checkout order."""
        pass

    @abstractmethod
    async def create_client_token(self) -> Optional[str]:
        """Token for the browser SDK's hosted fields; None when unavailable."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Verify connectivity to the payment service.

        Returns:
            bool: True if service is reachable and operational
        """
        pass

    async def close(self) -> None:
        """Release network resources."""
        pass
