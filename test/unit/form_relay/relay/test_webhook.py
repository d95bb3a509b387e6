"""Tests for the outbound webhook call."""

import httpx
import pytest

from form_relay.models.core import ParsedForm, RelayConfig
from form_relay.relay.envelope import build_envelope
from form_relay.relay.form import parse_form
from form_relay.relay.webhook import WebhookClient, WebhookTimeoutError


@pytest.fixture
def envelope():
    return build_envelope(ParsedForm())


async def test_posts_multipart_to_configured_url(relay_config, make_transport, envelope) -> None:
    """Verify the envelope is sent as multipart to the webhook URL."""
    transport = make_transport()
    client = WebhookClient(relay_config, transport=transport)

    reply = await client.forward(envelope)

    assert reply.status_code == 200
    (request,) = transport.requests
    assert request.method == "POST"
    assert str(request.url) == client.url
    assert request.headers["content-type"].startswith("multipart/form-data; boundary=")
    with parse_form(request.content, request.headers["content-type"]) as form:
        assert form.fields == {"formData": ["{}"]}
    assert transport.closed


@pytest.mark.parametrize("authorization", ["Bearer abc.def", "Basic dXNlcjpwYXNz", "Token  with  spaces"])
async def test_authorization_forwarded_verbatim(relay_config, make_transport, envelope, authorization) -> None:
    transport = make_transport()

    await WebhookClient(relay_config, transport=transport).forward(envelope, authorization=authorization)

    assert transport.requests[0].headers["authorization"] == authorization


@pytest.mark.parametrize("authorization", [None, ""])
async def test_authorization_omitted_when_absent(relay_config, make_transport, envelope, authorization) -> None:
    transport = make_transport()

    await WebhookClient(relay_config, transport=transport).forward(envelope, authorization=authorization)

    assert "authorization" not in transport.requests[0].headers


async def test_timeout_cancels_call_and_closes_client(make_transport, envelope, tmp_path) -> None:
    """Verify the ceiling aborts a slow webhook and releases the client."""
    config = RelayConfig(webhook_url="http://n8n.test/hook", timeout_seconds=0.05, upload_dir=tmp_path)
    transport = make_transport(delay=5.0)

    with pytest.raises(WebhookTimeoutError, match="0.05 seconds"):
        await WebhookClient(config, transport=transport).forward(envelope)

    assert len(transport.requests) == 1
    assert transport.closed


async def test_httpx_timeout_is_reported_as_timeout(relay_config, make_transport, envelope) -> None:
    transport = make_transport(error=httpx.ReadTimeout("read timed out"))

    with pytest.raises(WebhookTimeoutError):
        await WebhookClient(relay_config, transport=transport).forward(envelope)


async def test_transport_errors_propagate(relay_config, make_transport, envelope) -> None:
    transport = make_transport(error=httpx.ConnectError("connection refused"))

    with pytest.raises(httpx.ConnectError, match="connection refused"):
        await WebhookClient(relay_config, transport=transport).forward(envelope)

    assert transport.closed
