"""
Payment gateway client tests.

The processor is replaced by an httpx.MockTransport so retry, rejection and
circuit-breaker behaviour can be driven response by response.
"""

import httpx
import pytest

from backend.app.core.exceptions import ExternalServiceError, PaymentRejectedError
from backend.app.core.reliability import CircuitBreaker, TransientError
from backend.app.services.payment_gateway import PaymentGatewayClient


def _client(handler, breaker=None, max_retries=2):
    return PaymentGatewayClient(
        base_url="https://processor.test/v1",
        secret_key="sk_test_123",
        timeout=1.0,
        max_retries=max_retries,
        backoff_seconds=0,
        circuit_breaker=breaker or CircuitBreaker(
            failure_threshold=10, reset_timeout=60, failure_exceptions=(TransientError,)
        ),
        transport=httpx.MockTransport(handler)
    )


def _intent_response(request):
    return httpx.Response(200, json={"id": "pi_abc", "client_secret": "pi_abc_secret_xyz"})


@pytest.mark.asyncio
async def test_create_payment_intent_success():
    seen = []

    def handler(request):
        seen.append(request)
        return _intent_response(request)

    result = await _client(handler).create_payment_intent(12000, "USD", parcel_id="P1")

    assert result == {"client_secret": "pi_abc_secret_xyz", "payment_intent_id": "pi_abc"}
    request = seen[0]
    assert request.url.path == "/v1/payment_intents"
    body = request.content.decode()
    assert "amount=12000" in body
    assert "currency=usd" in body
    assert "metadata%5Bparcel_id%5D=P1" in body
    assert request.headers["Authorization"].startswith("Basic ")


@pytest.mark.asyncio
async def test_retries_server_errors_then_succeeds():
    calls = []

    def handler(request):
        calls.append(1)
        if len(calls) < 2:
            return httpx.Response(503, json={"error": {"message": "overloaded"}})
        return _intent_response(request)

    result = await _client(handler).create_payment_intent(500, "usd")

    assert result["payment_intent_id"] == "pi_abc"
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_retries_connection_errors():
    calls = []

    def handler(request):
        calls.append(1)
        if len(calls) == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return _intent_response(request)

    result = await _client(handler).create_payment_intent(500, "usd")

    assert result["client_secret"] == "pi_abc_secret_xyz"
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_business_rejection_is_not_retried():
    calls = []

    def handler(request):
        calls.append(1)
        return httpx.Response(402, json={"error": {"message": "Your card was declined.", "code": "card_declined"}})

    with pytest.raises(PaymentRejectedError) as exc_info:
        await _client(handler).create_payment_intent(500, "usd")

    assert len(calls) == 1
    assert exc_info.value.message == "Your card was declined."
    assert exc_info.value.details["processor_error"]["code"] == "card_declined"


@pytest.mark.asyncio
async def test_exhausted_retries_become_external_failure():
    calls = []

    def handler(request):
        calls.append(1)
        return httpx.Response(500)

    with pytest.raises(ExternalServiceError) as exc_info:
        await _client(handler, max_retries=2).create_payment_intent(500, "usd")

    assert len(calls) == 3
    assert exc_info.value.details["service"] == "payment_processor"


@pytest.mark.asyncio
async def test_open_circuit_short_circuits_requests():
    calls = []
    breaker = CircuitBreaker(failure_threshold=1, reset_timeout=60, failure_exceptions=(TransientError,))

    def handler(request):
        calls.append(1)
        return httpx.Response(503)

    client = _client(handler, breaker=breaker, max_retries=0)

    with pytest.raises(ExternalServiceError):
        await client.create_payment_intent(500, "usd")
    assert breaker.state == "OPEN"

    with pytest.raises(ExternalServiceError) as exc_info:
        await client.create_payment_intent(500, "usd")

    assert len(calls) == 1
    assert "temporarily unavailable" in exc_info.value.message


@pytest.mark.asyncio
async def test_missing_secret_key_is_reported():
    client = PaymentGatewayClient(
        base_url="https://processor.test/v1",
        secret_key="",
        transport=httpx.MockTransport(_intent_response)
    )

    with pytest.raises(ExternalServiceError):
        await client.create_payment_intent(500, "usd")
