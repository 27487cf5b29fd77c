from typing import Optional, Union

import stripe

from app.core.logger import logger_manager


logger = logger_manager.get_logger(__name__)


def verify_webhook_signature(
    payload: Union[bytes, str],
    signature_header: Optional[str],
    secret: Optional[str],
    tolerance: Optional[int] = None,
) -> bool:
    """
    Check a webhook body against its ``Stripe-Signature`` header.

    ``payload`` must be the raw request bytes; a re-serialized JSON body will
    not match. Returns False for a missing or malformed header, a stale
    timestamp (when ``tolerance`` is given) or a digest mismatch.
    """
    if payload is None or not signature_header or not secret:
        return False

    try:
        if isinstance(payload, bytes):
            payload = payload.decode("utf-8")
        stripe.WebhookSignature.verify_header(payload, signature_header, secret, tolerance)
    except UnicodeDecodeError:
        logger.warning("⚠️ Webhook body is not valid UTF-8")
        return False
    except stripe.SignatureVerificationError as e:
        logger.warning(f"⚠️ Webhook signature rejected: {e.user_message or e}")
        return False
    return True
