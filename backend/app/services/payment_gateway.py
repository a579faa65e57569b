"""
Payment Gateway Client.

Creates payment intents through the processor's REST API (Stripe-compatible
form-encoded `POST /payment_intents`). Transient failures are retried with
backoff behind a circuit breaker; business rejections are surfaced as-is
without retrying.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from backend.app.core.config import settings
from backend.app.core.exceptions import ExternalServiceError, PaymentRejectedError
from backend.app.core.reliability import (
    CircuitBreaker,
    CircuitOpenError,
    TransientError,
    payment_circuit_breaker,
    retry_async,
)

logger = logging.getLogger(__name__)

SERVICE_NAME = "payment_processor"


def _error_payload(response: httpx.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {"message": response.text, "status_code": response.status_code}
    error = body.get("error", body) if isinstance(body, dict) else {"message": str(body)}
    return {**error, "status_code": response.status_code}


class PaymentGatewayClient:
    """Thin async client for the payment processor."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        secret_key: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = (base_url or settings.payment_api_base_url).rstrip("/")
        self.secret_key = settings.payment_secret_key if secret_key is None else secret_key
        self.timeout = timeout if timeout is not None else settings.payment_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.payment_max_retries
        self.backoff_seconds = (
            backoff_seconds if backoff_seconds is not None else settings.payment_retry_backoff_seconds
        )
        self.circuit_breaker = circuit_breaker or payment_circuit_breaker
        self.transport = transport

    async def _post_payment_intent(self, data: Dict[str, Any]) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.post(
                    "/payment_intents",
                    data=data,
                    auth=(self.secret_key, "")
                )
        except httpx.TransportError as e:
            raise TransientError(f"{type(e).__name__}: {e}") from e

        if response.status_code == 429 or response.status_code >= 500:
            raise TransientError(f"processor returned HTTP {response.status_code}")

        if response.status_code >= 400:
            error = _error_payload(response)
            logger.warning("Payment intent rejected: %s", error.get("message"))
            raise PaymentRejectedError(
                error.get("message") or "Payment processor rejected the request",
                processor_error=error
            )

        return response.json()

    async def create_payment_intent(
        self,
        amount_in_cents: int,
        currency: str,
        parcel_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Create a card payment intent.

        Returns:
            {"client_secret": ..., "payment_intent_id": ...}

        Raises:
            PaymentRejectedError: processor refused the request (not retried)
            ExternalServiceError: processor unreachable, retries exhausted, or circuit open
        """
        if not self.secret_key:
            raise ExternalServiceError(SERVICE_NAME, "Payment processor is not configured")

        data = {
            "amount": amount_in_cents,
            "currency": currency.lower(),
            "payment_method_types[]": "card",
        }
        if parcel_id:
            data["metadata[parcel_id]"] = parcel_id

        try:
            payload = await self.circuit_breaker.call(
                retry_async,
                self._post_payment_intent,
                data,
                retries=self.max_retries,
                backoff_seconds=self.backoff_seconds
            )
        except CircuitOpenError:
            logger.error("Payment processor circuit open, rejecting intent request")
            raise ExternalServiceError(SERVICE_NAME, "Payment processor temporarily unavailable")
        except TransientError as e:
            logger.error("Payment processor unreachable after %d retries: %s", self.max_retries, e)
            raise ExternalServiceError(SERVICE_NAME, f"Payment processor unreachable: {e}")

        return {
            "client_secret": payload["client_secret"],
            "payment_intent_id": payload["id"],
        }


payment_gateway = PaymentGatewayClient()


def get_payment_gateway() -> PaymentGatewayClient:
    """FastAPI dependency returning the shared gateway client."""
    return payment_gateway
