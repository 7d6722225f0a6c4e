import hashlib
import hmac
from typing import Optional

from loguru import logger

from fiscalai.core.errors import InvalidSignatureError, ValidationError

SIGNATURE_HEADERS = ("x-hub-signature", "x-pagarme-signature", "signature")
SIGNATURE_PREFIX = "sha256="


def compute_signature(raw_body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def verify_signature(raw_body: bytes, signature: Optional[str], secret: str) -> None:
    """HMAC-SHA256 do corpo bruto comparado em tempo constante com o digest recebido.

    Aceita o digest puro ou com prefixo ``sha256=``.
    """
    if not signature:
        logger.warning("Webhook received without signature header.")
        raise ValidationError("Webhook signature not provided", code="MISSING_SIGNATURE")
    received = signature.strip()
    if received.startswith(SIGNATURE_PREFIX):
        received = received[len(SIGNATURE_PREFIX):]
    expected = compute_signature(raw_body, secret)
    if not hmac.compare_digest(received.encode("utf-8"), expected.encode("utf-8")):
        logger.error("Webhook signature validation failed!")
        raise InvalidSignatureError()
    logger.debug("Webhook signature verified.")
