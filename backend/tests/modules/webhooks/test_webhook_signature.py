# tests/modules/webhooks/test_webhook_signature.py
import hashlib
import hmac

import pytest

from fiscalai.core.errors import InvalidSignatureError, ValidationError
from fiscalai.modules.webhooks.events import WebhookEventKind, parse_event
from fiscalai.modules.webhooks.handlers import EVENT_HANDLERS, format_brl
from fiscalai.modules.webhooks.signature import verify_signature

BODY = b"X"
SECRET = "S"
DIGEST = hmac.new(SECRET.encode(), BODY, hashlib.sha256).hexdigest()


def test_exact_digest_passes():
    verify_signature(BODY, DIGEST, SECRET)


def test_prefixed_digest_passes():
    verify_signature(BODY, f"sha256={DIGEST}", SECRET)


@pytest.mark.parametrize("position", range(len(DIGEST)))
def test_any_single_character_mutation_fails(position):
    replacement = "0" if DIGEST[position] != "0" else "1"
    mutated = DIGEST[:position] + replacement + DIGEST[position + 1:]
    with pytest.raises(InvalidSignatureError):
        verify_signature(BODY, mutated, SECRET)


def test_truncated_digest_fails():
    with pytest.raises(InvalidSignatureError):
        verify_signature(BODY, DIGEST[:-1], SECRET)


def test_missing_signature():
    with pytest.raises(ValidationError) as exc_info:
        verify_signature(BODY, None, SECRET)
    assert exc_info.value.code == "MISSING_SIGNATURE"


@pytest.mark.parametrize(
    "body, kind",
    [
        ({"type": "payment.approved", "data": {"amount": 100}}, WebhookEventKind.PAYMENT_APPROVED),
        ({"event": "payment.paid", "amount": 100}, WebhookEventKind.PAYMENT_APPROVED),
        ({"type": "payment.refused"}, WebhookEventKind.PAYMENT_FAILED),
        ({"type": "subscription.updated"}, WebhookEventKind.SUBSCRIPTION_UPDATED),
        ({"type": "charge.created"}, WebhookEventKind.UNKNOWN),
        ({}, WebhookEventKind.UNKNOWN),
    ],
)
def test_parse_event(body, kind):
    assert parse_event(body).kind is kind


def test_event_data_falls_back_to_body():
    event = parse_event({"event": "payment.paid", "amount": 2500, "customer": {"id": "cus_1"}})
    assert event.data["amount"] == 2500
    assert event.customer_id == "cus_1"


def test_every_known_kind_has_a_handler():
    assert set(EVENT_HANDLERS) == set(WebhookEventKind) - {WebhookEventKind.UNKNOWN}


@pytest.mark.parametrize(
    "cents, expected",
    [
        (123456, "R$ 1.234,56"),
        (100, "R$ 1,00"),
        (5, "R$ 0,05"),
        (100000000, "R$ 1.000.000,00"),
        (None, "R$ 0,00"),
        (float("nan"), "R$ 0,00"),
        ("Infinity", "R$ 0,00"),
    ],
)
def test_format_brl(cents, expected):
    assert format_brl(cents) == expected
