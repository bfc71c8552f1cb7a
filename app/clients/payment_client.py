"""
Async HTTP client for the payment API, used by checkout frontends and
integration scripts.

Network failures and 5xx responses are retried with exponential backoff
(1s, 2s, 4s by default). 4xx responses are never retried.
"""
import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)


class PaymentClientError(Exception):
    def __init__(self, status_code: int, code: str, message: str):
        super().__init__(f"{status_code} {code}: {message}")
        self.status_code = status_code
        self.code = code
        self.message = message


class PaymentGatewayClient:
    def __init__(
        self,
        base_url: str,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        initial_retry_delay: float = 1.0,
    ):
        self.max_retries = max_retries
        self.initial_retry_delay = initial_retry_delay
        self._client = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)

    async def __aenter__(self) -> "PaymentGatewayClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def retry_delay(self, attempt: int) -> float:
        return self.initial_retry_delay * (2 ** (attempt - 1))

    async def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        attempt = 0
        while True:
            try:
                response = await self._client.request(method, path, json=json)
            except httpx.TransportError as e:
                if attempt >= self.max_retries:
                    logger.error(f"{method} {path} failed after {attempt + 1} attempts: {e}")
                    raise PaymentClientError(0, "NETWORK_ERROR", "Unable to connect to the payment server")
                attempt += 1
                delay = self.retry_delay(attempt)
                logger.warning(f"Retrying {method} {path} (attempt {attempt}/{self.max_retries}) after {delay}s: {e}")
                await asyncio.sleep(delay)
                continue

            if response.status_code >= 500 and attempt < self.max_retries:
                attempt += 1
                delay = self.retry_delay(attempt)
                logger.warning(
                    f"Retrying {method} {path} (attempt {attempt}/{self.max_retries}) after {delay}s: HTTP {response.status_code}"
                )
                await asyncio.sleep(delay)
                continue

            return self._handle_response(response)

    @staticmethod
    def _handle_response(response: httpx.Response) -> Dict[str, Any]:
        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.is_success:
            return payload if isinstance(payload, dict) else {}

        error = payload.get("error") if isinstance(payload, dict) else None
        if isinstance(error, dict):
            raise PaymentClientError(response.status_code, error.get("code", "UNKNOWN_ERROR"), error.get("message", ""))
        raise PaymentClientError(response.status_code, "UNKNOWN_ERROR", "An unexpected error occurred")

    async def initiate_payment(self, plan_id: str, amount: float, billing_cycle: str) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/api/payment/initiate",
            json={"planId": plan_id, "amount": amount, "billingCycle": billing_cycle},
        )

    async def verify_payment(
        self,
        order_id: str,
        payment_id: str,
        signature: str,
        provider: str,
        plan_id: str,
        amount: int,
    ) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/api/payment/verify",
            json={
                "orderId": order_id,
                "paymentId": payment_id,
                "signature": signature,
                "provider": provider,
                "planId": plan_id,
                "amount": amount,
            },
        )

    async def health(self) -> Dict[str, Any]:
        return await self._request("GET", "/api/health")
