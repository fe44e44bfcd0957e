"""
Razorpay payment gateway.

Payment completion is one-shot and callback driven: ``initiate`` registers a
pending payment and returns its handle; the browser completes the payment
with the gateway and posts the result back, which ends up in ``resolve`` or
``reject``. Each handle carries a future so the checkout flow can await the
outcome without blocking.
"""
import asyncio
import hashlib
import hmac
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

import httpx

from storefront.core.config import settings
from storefront.core.errors import PaymentGatewayFailure

logger = logging.getLogger(__name__)


@dataclass
class PaymentHandle:
    handle_id: str
    amount: int
    currency: str
    future: asyncio.Future
    gateway_order_id: Optional[str] = None
    on_success: Optional[Callable[[str], None]] = None
    on_failure: Optional[Callable[[], None]] = None
    notes: Dict[str, str] = field(default_factory=dict)
    created_at: float = field(default_factory=time.monotonic)


class RazorpayGateway:
    def __init__(
        self,
        key_id: str = None,
        key_secret: str = None,
        base_url: str = None,
        transport: httpx.AsyncBaseTransport = None,
        handle_ttl: float = None
    ):
        self.key_id = settings.RAZORPAY_KEY_ID if key_id is None else key_id
        self.key_secret = settings.RAZORPAY_KEY_SECRET if key_secret is None else key_secret
        self.base_url = base_url or settings.RAZORPAY_API_BASE_URL
        self.transport = transport
        self.handle_ttl = handle_ttl or settings.PAYMENT_HANDLE_TTL_SECONDS
        self.client = None
        self.handles: Dict[str, PaymentHandle] = {}

    async def _get_client(self) -> httpx.AsyncClient:
        if self.client is None:
            self.client = httpx.AsyncClient(timeout=30.0, transport=self.transport)
        return self.client

    async def load(self) -> None:
        """Make sure the gateway can take payments; raises PaymentGatewayFailure otherwise."""
        if not self.key_id:
            logger.error("Razorpay key id is not configured")
            raise PaymentGatewayFailure("Razorpay SDK failed to load.")

    async def initiate(
        self,
        amount: int,
        currency: str,
        on_success: Callable[[str], None] = None,
        on_failure: Callable[[], None] = None,
        notes: Dict[str, str] = None
    ) -> PaymentHandle:
        """
        Register a pending payment of ``amount`` minor units.

        When a key secret is configured the payment is backed by a gateway order:

        POST /orders
        {"amount": 50000, "currency": "INR", "receipt": "<handle id>", "notes": {...}}

        Returns: {"id": "order_...", "status": "created", ...}
        """
        await self.load()
        self.sweep()
        handle_id = uuid.uuid4().hex
        gateway_order_id = None

        if self.key_secret:
            try:
                client = await self._get_client()
                response = await client.post(
                    f"{self.base_url}/orders",
                    json={
                        "amount": amount,
                        "currency": currency,
                        "receipt": handle_id,
                        "notes": notes or {}
                    },
                    auth=(self.key_id, self.key_secret)
                )
                response.raise_for_status()
                gateway_order_id = response.json().get("id")
            except httpx.HTTPStatusError as e:
                logger.error(f"Razorpay order creation failed with status {e.response.status_code}: {e.response.text}")
                raise PaymentGatewayFailure("Razorpay SDK failed to load.")
            except (httpx.HTTPError, ValueError) as e:
                logger.error(f"Razorpay order creation failed: {str(e)}")
                raise PaymentGatewayFailure("Razorpay SDK failed to load.")

        handle = PaymentHandle(
            handle_id=handle_id,
            amount=amount,
            currency=currency,
            future=asyncio.get_running_loop().create_future(),
            gateway_order_id=gateway_order_id,
            on_success=on_success,
            on_failure=on_failure,
            notes=notes or {}
        )
        self.handles[handle_id] = handle
        logger.info(f"Payment initiated: handle={handle_id}, amount={amount} {currency}, order={gateway_order_id}")
        return handle

    def _pending(self, handle_id: str) -> PaymentHandle:
        handle = self.handles.get(handle_id)
        if handle is None:
            raise PaymentGatewayFailure("Unknown or expired payment.")
        if handle.future.done():
            raise PaymentGatewayFailure("Payment has already been completed.")
        return handle

    def verify_signature(self, gateway_order_id: str, payment_id: str, signature: Optional[str]) -> bool:
        expected = hmac.new(
            self.key_secret.encode(),
            f"{gateway_order_id}|{payment_id}".encode(),
            hashlib.sha256
        ).hexdigest()
        return hmac.compare_digest(expected, signature or "")

    def verify_payment(self, gateway_order_id: Optional[str], payment_id: str, signature: Optional[str]) -> bool:
        """Without a key secret there is no gateway order and nothing to check."""
        if not self.key_secret:
            return True
        if not gateway_order_id:
            return False
        return self.verify_signature(gateway_order_id, payment_id, signature)

    def resolve(self, handle_id: str, payment_id: str, signature: str = None) -> None:
        """Success callback: the gateway reports ``payment_id`` for this handle."""
        handle = self._pending(handle_id)
        if not payment_id:
            self.reject(handle_id, "Payment was not completed.")
            return
        if not self.verify_payment(handle.gateway_order_id, payment_id, signature):
            logger.error(f"Payment signature mismatch: handle={handle_id}, payment={payment_id}")
            self.reject(handle_id, "Payment verification failed.")
            return

        logger.info(f"Payment completed: handle={handle_id}, payment={payment_id}")
        if handle.on_success:
            handle.on_success(payment_id)
        handle.future.set_result(payment_id)

    def reject(self, handle_id: str, reason: str = "Payment was not completed.") -> None:
        handle = self._pending(handle_id)
        logger.warning(f"Payment failed: handle={handle_id}, reason={reason}")
        if handle.on_failure:
            handle.on_failure()
        handle.future.set_exception(PaymentGatewayFailure(reason))

    async def wait(self, handle_id: str, timeout: Optional[float] = None) -> str:
        """Suspend until the payment resolves; returns the payment id."""
        handle = self.handles.get(handle_id)
        if handle is None:
            raise PaymentGatewayFailure("Unknown or expired payment.")
        try:
            return await asyncio.wait_for(asyncio.shield(handle.future), timeout)
        except asyncio.TimeoutError:
            raise PaymentGatewayFailure("Payment was not completed in time.")
        except asyncio.CancelledError:
            if handle.future.cancelled():
                raise PaymentGatewayFailure("Payment was cancelled.")
            raise
        finally:
            self.handles.pop(handle_id, None)

    def cancel(self, handle_id: str) -> None:
        handle = self.handles.pop(handle_id, None)
        if handle and not handle.future.done():
            handle.future.cancel()
            logger.info(f"Payment cancelled: handle={handle_id}")

    def sweep(self) -> int:
        """Drop handles older than ``handle_ttl``; returns how many were dropped."""
        cutoff = time.monotonic() - self.handle_ttl
        expired = [h.handle_id for h in self.handles.values() if h.created_at < cutoff]
        for handle_id in expired:
            self.cancel(handle_id)
        if expired:
            logger.info(f"Expired {len(expired)} abandoned payment handle(s)")
        return len(expired)

    async def close(self):
        if self.client:
            await self.client.aclose()
            self.client = None


# Global instance
payment_gateway = RazorpayGateway()
