import json
from decimal import Decimal

import httpx
import pytest

from bistro.core.config import get_settings
from bistro.services.payment import (
    MockPaymentService,
    PayPalPaymentService,
    get_payment_service,
)

API_BASE = "https://api-m.sandbox.paypal.com"


class FakePaypal:
    """Minimal PayPal Orders v2 responder for httpx.MockTransport."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.token_calls = 0
        self.capture_status = 200

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/v1/oauth2/token":
            self.token_calls += 1
            return httpx.Response(200, json={"access_token": "A21AA", "expires_in": 32400})
        if path == "/v1/identity/generate-token":
            return httpx.Response(200, json={"client_token": "client-token-xyz"})
        if path == "/v2/checkout/orders":
            return httpx.Response(
                201,
                json={
                    "id": "5O190127TN364715T",
                    "status": "CREATED",
                    "links": [
                        {"rel": "self", "href": f"{API_BASE}/v2/checkout/orders/5O190127TN364715T"},
                        {"rel": "approve", "href": "https://www.sandbox.paypal.com/checkoutnow?token=5O19"},
                    ],
                },
            )
        if path.endswith("/capture"):
            if self.capture_status != 200:
                return httpx.Response(
                    self.capture_status,
                    json={"name": "UNPROCESSABLE_ENTITY", "message": "The requested action could not be performed."},
                )
            return httpx.Response(
                201,
                json={
                    "id": "5O190127TN364715T",
                    "status": "COMPLETED",
                    "purchase_units": [
                        {
                            "payments": {
                                "captures": [
                                    {"id": "3C679366HH908993F", "amount": {"currency_code": "USD", "value": "25.64"}}
                                ]
                            }
                        }
                    ],
                },
            )
        return httpx.Response(404, json={"name": "RESOURCE_NOT_FOUND"})


@pytest.fixture
def paypal_api():
    return FakePaypal()


@pytest.fixture
async def paypal(paypal_api):
    service = PayPalPaymentService(
        "client-id", "secret", API_BASE, transport=httpx.MockTransport(paypal_api)
    )
    yield service
    await service.close()


class TestMockPaymentService:
    async def test_create_then_capture_once(self):
        service = MockPaymentService()

        created = await service.create_order(Decimal("25.644"), reference="order-1")
        assert created.success
        assert created.status == "CREATED"
        assert created.amount == Decimal("25.64")
        assert created.provider_order_id in created.approve_url

        captured = await service.capture_order(created.provider_order_id)
        assert captured.status == "COMPLETED"
        assert captured.capture_id.startswith("CAP-")

        again = await service.capture_order(created.provider_order_id)
        assert not again.success
        assert again.error_code == "ORDER_ALREADY_CAPTURED"

    async def test_unknown_order(self):
        result = await MockPaymentService().capture_order("MOCK-NOPE")
        assert result.error_code == "RESOURCE_NOT_FOUND"

    async def test_declines(self):
        result = await MockPaymentService(failure_rate=1.0).create_order(Decimal("10"))
        assert not result.success
        assert result.error_code in {code for code, _ in MockPaymentService.DECLINE_REASONS}

    async def test_zero_amount(self):
        result = await MockPaymentService().create_order(Decimal("0"))
        assert result.error_code == "INVALID_AMOUNT"

    def test_result_to_dict(self):
        from bistro.services.payment import PaymentResult

        result = PaymentResult(success=True, amount=Decimal("9.99"))
        assert result.to_dict()["amount"] == 9.99


class TestPayPalPaymentService:
    def test_requires_credentials(self):
        with pytest.raises(ValueError):
            PayPalPaymentService(None, None, API_BASE)

    async def test_create_order(self, paypal, paypal_api):
        result = await paypal.create_order(Decimal("25.64"), currency="USD", reference="order-7")

        assert result.success
        assert result.provider_order_id == "5O190127TN364715T"
        assert result.approve_url.startswith("https://www.sandbox.paypal.com/checkoutnow")

        sent = json.loads(paypal_api.requests[-1].content)
        assert sent["intent"] == "CAPTURE"
        assert sent["purchase_units"][0] == {
            "amount": {"currency_code": "USD", "value": "25.64"},
            "reference_id": "order-7",
        }
        assert paypal_api.requests[-1].headers["Authorization"] == "Bearer A21AA"

    async def test_token_is_reused(self, paypal, paypal_api):
        await paypal.create_order(Decimal("5"))
        await paypal.create_order(Decimal("6"))
        assert paypal_api.token_calls == 1

    async def test_capture(self, paypal):
        result = await paypal.capture_order("5O190127TN364715T")

        assert result.status == "COMPLETED"
        assert result.capture_id == "3C679366HH908993F"
        assert result.amount == Decimal("25.64")

    async def test_capture_error_is_reported(self, paypal, paypal_api):
        paypal_api.capture_status = 422
        result = await paypal.capture_order("5O190127TN364715T")

        assert not result.success
        assert result.error_code == "UNPROCESSABLE_ENTITY"
        assert result.provider_order_id == "5O190127TN364715T"

    async def test_connection_error(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        service = PayPalPaymentService("id", "secret", API_BASE, transport=httpx.MockTransport(refuse))
        result = await service.create_order(Decimal("10"))
        await service.close()

        assert result.error_code == "CONNECTION_ERROR"
        assert "connection refused" in result.error_message

    async def test_client_token_and_health(self, paypal):
        assert await paypal.create_client_token() == "client-token-xyz"
        assert await paypal.health_check() is True


class TestFactory:
    def test_development_uses_mock(self):
        service = get_payment_service()
        assert service.provider_name == "mock"
        assert get_payment_service() is service

    async def test_staging_uses_paypal(self, monkeypatch):
        monkeypatch.setenv("ENV_MODE", "staging")
        monkeypatch.setenv("PAYPAL_CLIENT_ID", "client-id")
        monkeypatch.setenv("PAYPAL_CLIENT_SECRET", "secret")
        get_settings.cache_clear()

        service = get_payment_service()
        assert service.provider_name == "paypal"
        assert service.client_id == "client-id"
        await service.close()

    def test_staging_without_keys_fails(self, monkeypatch):
        monkeypatch.setenv("ENV_MODE", "staging")
        monkeypatch.delenv("PAYPAL_CLIENT_ID", raising=False)
        monkeypatch.delenv("PAYPAL_CLIENT_SECRET", raising=False)
        get_settings.cache_clear()

        with pytest.raises(ValueError):
            get_payment_service()
