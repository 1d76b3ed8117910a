"""
Payment provider client.

Wraps the provider's REST API (order creation, refunds) and the HMAC-SHA256
signature scheme the provider uses to prove a payment response is genuine:
``hex(hmac_sha256(secret, "{order_id}|{payment_id}"))``.
"""
from __future__ import annotations

import hashlib
import hmac
import logging

import httpx

from ..errors import PaymentProviderError, PaymentSignatureInvalid

log = logging.getLogger(__name__)

ALREADY_REFUNDED_MARKERS = (
    "already been fully refunded",
    "fully refunded already",
)


def compute_signature(secret: str, provider_order_id: str, provider_payment_id: str) -> str:
    payload = f"{provider_order_id}|{provider_payment_id}".encode()
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


def _error_description(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or ""
    err = body.get("error") if isinstance(body, dict) else None
    if isinstance(err, dict):
        return err.get("description") or err.get("code") or ""
    return str(body)


class PaymentGateway:
    """
    Client for the payment provider.

    Args:
        key_id (str): Public key id, used as the basic-auth user.
        key_secret (str): Shared secret; basic-auth password and HMAC key.
        base_url (str): Provider API root.
        timeout (float): Read timeout in seconds.
        transport (httpx.BaseTransport, optional): Injected transport, e.g. a
            ``httpx.MockTransport`` in tests.
    """

    def __init__(self, key_id: str, key_secret: str, base_url: str, timeout: float = 8.0, transport=None):
        self.key_id = key_id
        self.key_secret = key_secret
        timeout_config = httpx.Timeout(5.0, read=timeout)
        self.client = httpx.Client(
            base_url=base_url,
            auth=(key_id, key_secret),
            timeout=timeout_config,
            transport=transport,
        )

    @classmethod
    def from_config(cls, config, transport=None) -> "PaymentGateway":
        return cls(
            key_id=config.get("PAYMENT_KEY_ID", ""),
            key_secret=config.get("PAYMENT_KEY_SECRET", ""),
            base_url=config.get("PAYMENT_API_BASE", ""),
            timeout=float(config.get("PAYMENT_TIMEOUT", 8)),
            transport=transport,
        )

    def close(self):
        self.client.close()

    # ---- signature ------------------------------------------------------

    def verify_signature(self, provider_order_id: str, provider_payment_id: str, provider_signature: str) -> bool:
        if not (provider_order_id and provider_payment_id and provider_signature):
            return False
        if not self.key_secret:
            log.error("payment secret not configured; refusing to verify signatures")
            return False
        expected = compute_signature(self.key_secret, provider_order_id, provider_payment_id)
        return hmac.compare_digest(expected, str(provider_signature))

    def require_valid_signature(self, provider_order_id, provider_payment_id, provider_signature):
        if not self.verify_signature(provider_order_id, provider_payment_id, provider_signature):
            log.warning("[Payment: %s] signature mismatch for provider order %s",
                        provider_payment_id, provider_order_id)
            raise PaymentSignatureInvalid()

    # ---- provider calls -------------------------------------------------

    def create_order(self, amount_minor: int, currency: str, idempotency_key: str) -> dict:
        """
        Creates a provider-side order the client then pays out-of-band.

        The idempotency key doubles as the provider receipt, so a retried
        request maps to the same provider order.
        """
        payload = {
            "amount": int(amount_minor),
            "currency": currency,
            "receipt": idempotency_key,
        }
        headers = {"Idempotency-Key": idempotency_key}
        try:
            response = self.client.post("/orders", json=payload, headers=headers)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            log.error("[Receipt: %s] provider order creation failed (HTTP %s): %s",
                      idempotency_key, e.response.status_code, _error_description(e.response))
            raise PaymentProviderError("Failed to create payment order.") from e
        except httpx.HTTPError as e:
            log.error("[Receipt: %s] payment provider unreachable: %s", idempotency_key, e)
            raise PaymentProviderError("Failed to create payment order.") from e

    def fetch_order(self, provider_order_id: str) -> dict:
        """Returns the provider order, including the ``amount`` it was created for (minor units)."""
        try:
            response = self.client.get(f"/orders/{provider_order_id}")
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            log.error("[Order: %s] provider order lookup failed (HTTP %s): %s",
                      provider_order_id, e.response.status_code, _error_description(e.response))
            raise PaymentProviderError("Failed to look up payment order.") from e
        except httpx.HTTPError as e:
            log.error("[Order: %s] payment provider unreachable: %s", provider_order_id, e)
            raise PaymentProviderError("Failed to look up payment order.") from e

    def refund(self, payment_id: str, amount_minor: int, reason: str | None = None) -> dict:
        """
        Refunds a captured payment. A provider answer saying the payment is
        already fully refunded is treated as success, which makes cancel
        retries safe.
        """
        payload = {
            "amount": int(amount_minor),
            "speed": "normal",
            "notes": {"reason": reason or "Order cancelled by customer or admin."},
        }
        try:
            response = self.client.post(f"/payments/{payment_id}/refund", json=payload)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            description = _error_description(e.response)
            if any(marker in description.lower() for marker in ALREADY_REFUNDED_MARKERS):
                log.info("[Payment: %s] already fully refunded; treating as success", payment_id)
                return {"id": "already_refunded", "status": "processed", "amount": int(amount_minor)}
            log.error("[Payment: %s] refund failed (HTTP %s): %s", payment_id, e.response.status_code, description)
            raise PaymentProviderError(f"Refund failed: {description}") from e
        except httpx.HTTPError as e:
            log.error("[Payment: %s] payment provider unreachable during refund: %s", payment_id, e)
            raise PaymentProviderError("Refund failed: payment provider unreachable.") from e
