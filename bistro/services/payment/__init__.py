"""
Payment Service Factory

Provides a single entry point for obtaining a payment service instance.
The factory pattern allows the rest of the application to remain agnostic
about which implementation is being used.

Usage:
    from bistro.services.payment import get_payment_service

    # Returns MockPaymentService or PayPalPaymentService based on ENV_MODE
    payment_service = get_payment_service()

    result = await payment_service.create_order(Decimal("29.99"))

Environment Switching:
    - ENV_MODE=development → MockPaymentService (no API calls)
    - ENV_MODE=staging → PayPalPaymentService (sandbox keys)
    - ENV_MODE=production → PayPalPaymentService (live keys)

Author: Your Name
Version: 1.0.0
"""

import logging
from functools import lru_cache

from bistro.core.config import get_settings
from bistro.services.payment.base import BasePaymentService, PaymentResult
from bistro.services.payment.mock import MockPaymentService
from bistro.services.payment.paypal import PayPalPaymentService

logger = logging.getLogger(__name__)


@lru_cache()
def get_payment_service() -> BasePaymentService:
    """
    Get the configured payment service instance.

    The instance is cached so the mock keeps its checkout state and the
    PayPal client keeps its connection pool and access token.

    Raises:
        ValueError: If not in development and PayPal keys are missing
    """
    settings = get_settings()

    if settings.is_development:
        logger.info("Payment Service: Using MockPaymentService (development mode)")
        return MockPaymentService(failure_rate=settings.mock_payment_failure_rate)

    logger.info(
        f"Payment Service: Using PayPalPaymentService "
        f"({settings.env_mode.value} mode)"
    )
    return PayPalPaymentService(
        client_id=settings.paypal_client_id,
        client_secret=settings.paypal_client_secret,
        api_base=settings.paypal_api_base,
        timeout=settings.paypal_timeout_seconds,
    )


def reset_payment_service() -> None:
    """
    Clear the cached payment service instance.

    The next call to get_payment_service() will create a new instance.
    """
    get_payment_service.cache_clear()
    logger.debug("Payment service cache cleared")


__all__ = [
    "get_payment_service",
    "reset_payment_service",
    "BasePaymentService",
    "PaymentResult",
    "MockPaymentService",
    "PayPalPaymentService",
]
