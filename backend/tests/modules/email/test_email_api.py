# tests/modules/email/test_email_api.py
import httpx
import pytest

pytestmark = pytest.mark.asyncio

URL = "/api/v1/notifications/email"


async def test_sends_plain_text_email(test_client, auth_headers, email_stub):
    email_stub.add("POST", "/send", httpx.Response(202, json={"id": "msg_1"}))

    response = await test_client.post(
        URL,
        json={"to": "cliente@exemplo.com.br", "subject": "Nota emitida", "message": "Sua nota foi emitida.", "type": "success"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["emailSent"] is True
    assert body["messageId"] == "msg_1"
    sent = email_stub.json_body()
    assert sent == {
        "from_name": "FiscalAI",
        "to": "cliente@exemplo.com.br",
        "subject": "Nota emitida",
        "body": "Sua nota foi emitida.",
    }
    assert email_stub.calls[0].headers["Authorization"] == "Bearer mail-key"


@pytest.mark.parametrize(
    "payload",
    [
        {"subject": "Oi", "message": "Olá"},
        {"to": "a@b.com", "message": "Olá"},
        {"to": "a@b.com", "subject": "Oi", "message": ""},
    ],
)
async def test_missing_fields(test_client, auth_headers, email_stub, payload):
    response = await test_client.post(URL, json=payload, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["error_code"] == "MISSING_FIELDS"
    assert email_stub.calls == []


async def test_invalid_email(test_client, auth_headers, email_stub):
    response = await test_client.post(
        URL, json={"to": "not-an-email", "subject": "Oi", "message": "Olá"}, headers=auth_headers
    )
    assert response.status_code == 400
    assert response.json()["error_code"] == "INVALID_EMAIL"
    assert email_stub.calls == []


async def test_invalid_type(test_client, auth_headers, email_stub):
    response = await test_client.post(
        URL, json={"to": "a@exemplo.com", "subject": "Oi", "message": "Olá", "type": "urgent"}, headers=auth_headers
    )
    assert response.status_code == 400
    assert response.json()["error_code"] == "INVALID_TYPE"


async def test_integration_failure(test_client, auth_headers, email_stub):
    email_stub.add("POST", "/send", httpx.Response(500))
    response = await test_client.post(
        URL, json={"to": "a@exemplo.com", "subject": "Oi", "message": "Olá"}, headers=auth_headers
    )
    assert response.status_code == 502
    assert response.json()["error_code"] == "EMAIL_SEND_FAILED"
