"""
Payment service — awaitable wrapper around a callback-style gateway.

Payment gateways report outcomes through callbacks (Razorpay's checkout
calls `handler` on success and `modal.ondismiss` when the customer gives
up). complete_payment() turns that shape into one awaitable so the order
flow reads top to bottom:

    result = await complete_payment(gateway, options)   # raises on failure
    order = ...                                          # only runs once paid

Gateways:
    SimulatedGateway — SIMULATION_MODE; succeeds (or fails) immediately
    RazorpayGateway  — creates a Razorpay order, then waits for the signed
                       checkout callback or a dismissal

Security:
    verify_payment_signature() FAILS CLOSED when the key secret is missing.
"""
from __future__ import annotations

import asyncio
import hashlib
import hmac
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Tuple

import httpx

from domain.errors import ConflictError, PaymentFailedError, PaymentGatewayError, PaymentTimeoutError
from models import PaymentOptions, PaymentResult

logger = logging.getLogger(__name__)

SuccessCallback = Callable[[dict], None]
FailureCallback = Callable[[str], None]


# ════════════════════════════════════════════════════════════════════
# Signatures
# ════════════════════════════════════════════════════════════════════


def sign_payment(order_id: str, payment_id: str, secret: str) -> str:
    """HMAC-SHA256 of "<order_id>|<payment_id>" keyed with the gateway secret."""
    return hmac.new(
        secret.encode("utf-8"),
        f"{order_id}|{payment_id}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def verify_payment_signature(order_id: str, payment_id: str, signature: str, secret: str) -> bool:
    """
    Verify a Razorpay checkout signature.

    Returns False (never raises) when the secret or signature is missing.
    """
    if not secret:
        logger.error("RAZORPAY_KEY_SECRET not configured — rejecting payment callback")
        return False
    if not signature or not order_id or not payment_id:
        logger.warning("Payment callback missing order id, payment id or signature")
        return False
    expected = sign_payment(order_id, payment_id, secret)
    return hmac.compare_digest(expected, signature)


def checkout_receipt(user_id: int, checkout_ref: Optional[str] = None) -> str:
    """
    Receipt for a user's checkout: "rcpt_<user_id>_<ref>".

    Without a client ref a random one is used.
    """
    return f"rcpt_{user_id}_{checkout_ref or uuid.uuid4().hex[:12]}"


# ════════════════════════════════════════════════════════════════════
# Gateways
# ════════════════════════════════════════════════════════════════════


class PaymentGateway(ABC):
    @abstractmethod
    async def open_checkout(
        self,
        options: PaymentOptions,
        on_success: SuccessCallback,
        on_failure: FailureCallback,
    ) -> None:
        """
        Start a checkout. Exactly one callback fires later:
        on_success({"razorpay_payment_id", "razorpay_order_id", "razorpay_signature"})
        or on_failure(reason).
        """
        raise NotImplementedError()

    def abandon(self, options: PaymentOptions) -> None:
        """Forget a checkout nobody is waiting for any more."""


class SimulatedGateway(PaymentGateway):
    """Gateway for demos and tests: settles every checkout immediately."""

    SECRET = "simulation"

    def __init__(self, fail_with: Optional[str] = None):
        self.fail_with = fail_with
        self.checkouts: list[PaymentOptions] = []

    async def open_checkout(self, options, on_success, on_failure) -> None:
        self.checkouts.append(options)
        if self.fail_with:
            on_failure(self.fail_with)
            return
        digest = hashlib.sha1(options.receipt.encode("utf-8")).hexdigest()[:14]
        order_id = f"order_sim_{digest}"
        payment_id = f"pay_sim_{digest}"
        on_success({
            "razorpay_order_id": order_id,
            "razorpay_payment_id": payment_id,
            "razorpay_signature": sign_payment(order_id, payment_id, self.SECRET),
        })


class RazorpayGateway(PaymentGateway):
    """
    Razorpay Orders API + checkout callbacks.

    open_checkout() creates the gateway order and parks the callbacks until
    the frontend reports the checkout outcome through handle_callback() or
    dismiss(). A receipt can have only one pending checkout at a time.
    """

    def __init__(self, key_id: str, key_secret: str, api_url: str = "https://api.razorpay.com/v1"):
        self.key_id = key_id
        self.key_secret = key_secret
        self.api_url = api_url.rstrip("/")
        # {razorpay_order_id: (options, on_success, on_failure)}
        self._pending: Dict[str, Tuple[PaymentOptions, SuccessCallback, FailureCallback]] = {}
        # receipts with a checkout being created or pending
        self._receipts: set[str] = set()

    async def _create_order(self, options: PaymentOptions) -> dict:
        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.post(
                    f"{self.api_url}/orders",
                    auth=(self.key_id, self.key_secret),
                    json={
                        "amount": options.amount_paise,
                        "currency": options.currency,
                        "receipt": options.receipt,
                        "notes": {"description": options.description},
                    },
                )
        except httpx.HTTPError as e:
            logger.error(f"Razorpay order creation failed: {e}")
            raise PaymentGatewayError("Payment gateway unreachable")

        if response.status_code >= 400:
            logger.error(f"Razorpay rejected order {options.receipt}: {response.status_code} {response.text}")
            raise PaymentGatewayError(
                "Payment gateway rejected the order",
                details={"status": response.status_code},
            )
        return response.json()

    async def open_checkout(self, options, on_success, on_failure) -> None:
        if options.receipt in self._receipts:
            raise ConflictError(
                "A checkout is already pending for this receipt",
                details={"receipt": options.receipt},
            )
        self._receipts.add(options.receipt)
        try:
            order = await self._create_order(options)
        except BaseException:
            self._receipts.discard(options.receipt)
            raise
        self._pending[order["id"]] = (options, on_success, on_failure)
        logger.info(f"💳 Razorpay order {order['id']} created for receipt {options.receipt} (₹{options.amount})")

    def find_checkout(self, receipt: str) -> Optional[dict]:
        """Checkout details the frontend needs to open the Razorpay widget."""
        for order_id, (options, _, _) in self._pending.items():
            if options.receipt == receipt:
                return {
                    "razorpayOrderId": order_id,
                    "keyId": self.key_id,
                    "amount": options.amount_paise,
                    "currency": options.currency,
                    "description": options.description,
                    "prefill": {
                        "name": options.customer_name,
                        "email": options.customer_email,
                        "contact": options.customer_phone,
                    },
                }
        return None

    def handle_callback(self, order_id: str, payment_id: str, signature: str) -> bool:
        """
        Settle a pending checkout from the widget's success handler.

        Returns False when no checkout is pending for `order_id`.
        """
        pending = self._take(order_id)
        if pending is None:
            logger.warning(f"Payment callback for unknown Razorpay order {order_id}")
            return False
        _, on_success, on_failure = pending
        if verify_payment_signature(order_id, payment_id, signature, self.key_secret):
            on_success({
                "razorpay_order_id": order_id,
                "razorpay_payment_id": payment_id,
                "razorpay_signature": signature,
            })
        else:
            logger.warning(f"Invalid payment signature for Razorpay order {order_id}")
            on_failure("Payment signature verification failed")
        return True

    def dismiss(self, order_id: str, reason: str = "Payment cancelled by user") -> bool:
        pending = self._take(order_id)
        if pending is None:
            return False
        pending[2](reason)
        return True

    def abandon(self, options: PaymentOptions) -> None:
        for order_id, (pending_options, _, _) in list(self._pending.items()):
            if pending_options is options:
                self._take(order_id)
                logger.info(f"Abandoned Razorpay order {order_id} for receipt {options.receipt}")

    def _take(self, order_id: str):
        pending = self._pending.pop(order_id, None)
        if pending is not None:
            self._receipts.discard(pending[0].receipt)
        return pending


def build_payment_gateway(settings) -> PaymentGateway:
    """Simulated gateway in SIMULATION_MODE, Razorpay otherwise."""
    if settings.simulation_mode:
        logger.info("Using simulated payment gateway")
        return SimulatedGateway()
    return RazorpayGateway(
        key_id=settings.razorpay_key_id,
        key_secret=settings.razorpay_key_secret,
        api_url=settings.razorpay_api_url,
    )


# ════════════════════════════════════════════════════════════════════
# Awaitable adapter
# ════════════════════════════════════════════════════════════════════


async def complete_payment(
    gateway: PaymentGateway,
    options: PaymentOptions,
    timeout: Optional[float] = None,
) -> PaymentResult:
    """
    Run a checkout to completion.

    Callbacks may fire from any thread; only the first one counts.

    Raises:
        PaymentFailedError   — declined, dismissed or bad signature
        PaymentGatewayError  — gateway could not start the checkout
        PaymentTimeoutError  — no outcome within `timeout` seconds
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future = loop.create_future()

    def _settle(outcome: str, payload) -> None:
        if future.done():
            logger.warning(f"Ignoring late payment {outcome} for receipt {options.receipt}")
            return
        if outcome == "success":
            future.set_result(payload)
        else:
            future.set_exception(PaymentFailedError(str(payload), details={"receipt": options.receipt}))

    def on_success(response: dict) -> None:
        loop.call_soon_threadsafe(_settle, "success", response)

    def on_failure(reason: str) -> None:
        loop.call_soon_threadsafe(_settle, "failure", reason)

    await gateway.open_checkout(options, on_success, on_failure)

    try:
        response = await asyncio.wait_for(future, timeout)
    except asyncio.TimeoutError:
        gateway.abandon(options)
        logger.warning(f"Payment for receipt {options.receipt} timed out after {timeout}s")
        raise PaymentTimeoutError(details={"receipt": options.receipt})
    except BaseException:
        # cancelled or failed: the gateway must not settle this checkout later
        gateway.abandon(options)
        raise

    logger.info(f"✅ Payment {response.get('razorpay_payment_id')} captured for receipt {options.receipt}")
    return PaymentResult(
        payment_id=response["razorpay_payment_id"],
        order_id=response.get("razorpay_order_id"),
        signature=response.get("razorpay_signature"),
        amount=options.amount,
        currency=options.currency,
    )
