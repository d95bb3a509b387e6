"""Tests for application wiring, driven through Robyn's in-process test client."""

import httpx
import orjson
import pytest
from robyn import testing

from form_relay import main as main_module
from form_relay.main import create_app
from form_relay.relay.form import parse_form
from form_relay.relay.webhook import WebhookClient

ORIGIN = "https://forms.example.com"


@pytest.fixture
def transport(make_transport):
    return make_transport(reply=httpx.Response(200, json={"status": "received"}))


@pytest.fixture
def client(relay_config, transport):
    app = create_app(relay_config, ORIGIN, WebhookClient(relay_config, transport=transport))
    with testing.TestClient(app) as test_client:
        yield test_client


def outbound_form(transport):
    (outbound,) = transport.requests
    return parse_form(outbound.content, outbound.headers["content-type"])


# -----------------------------------------------------------------------------
# Liveness and CORS
# -----------------------------------------------------------------------------


class TestWiring:
    """Tests for routes and middlewares registered by create_app."""

    def test_liveness(self, client) -> None:
        response = client.get("/")

        assert response.status_code == 200
        assert response.text == "Server is running"
        assert response.headers.get("access-control-allow-origin") == ORIGIN

    @pytest.mark.parametrize("path", ["/request", "/any/other/path"])
    def test_preflight_on_any_path(self, client, path) -> None:
        response = client.options(path)

        assert response.status_code == 200
        assert response.headers.get("access-control-allow-origin") == ORIGIN
        assert response.headers.get("access-control-allow-credentials") == "true"
        assert "POST" in response.headers.get("access-control-allow-methods")
        assert "Authorization" in response.headers.get("access-control-allow-headers")


# -----------------------------------------------------------------------------
# POST /request
# -----------------------------------------------------------------------------


class TestRelayRoute:
    """Tests for the relay endpoint bound by create_app."""

    def test_raw_multipart_body_is_relayed(self, client, transport, encode_form) -> None:
        payload = b"\x89PNG" + b"\x01" * 1020
        body, content_type = encode_form(
            [
                ("name", (None, "Alice")),
                ("photo", ("photo.png", payload, "image/png")),
            ]
        )

        response = client.post(
            "/request",
            body=body,
            headers={"content-type": content_type, "authorization": "Bearer abc"},
        )

        assert response.status_code == 200
        assert response.json() == {"status": "received"}
        assert response.headers.get("access-control-allow-origin") == ORIGIN
        assert transport.requests[0].headers["authorization"] == "Bearer abc"
        with outbound_form(transport) as envelope:
            assert orjson.loads(envelope.fields["formData"][0]) == {"name": "Alice"}
            assert orjson.loads(envelope.fields["fileMetadata"][0]) == {
                "originalName": "photo.png",
                "mimeType": "image/png",
                "size": 1024,
                "fieldName": "photo",
                "index": 0,
            }
            assert envelope.files["binaryFile"][0].open().read() == payload

    def test_server_split_multipart_is_relayed(self, client, transport) -> None:
        """Verify the form_data/files shape the Robyn server produces is relayed."""
        payload = b"\x89PNG" + b"\x01" * 60

        response = client.post(
            "/request",
            body=b"Alice" + payload,
            headers={"content-type": "multipart/form-data; boundary=robyn"},
            form_data={"name": "Alice"},
            files={"photo.png": payload},
        )

        assert response.status_code == 200
        with outbound_form(transport) as envelope:
            assert orjson.loads(envelope.fields["formData"][0]) == {"name": "Alice"}
            metadata = orjson.loads(envelope.fields["fileMetadata"][0])
            assert metadata["originalName"] == "photo.png"
            assert metadata["mimeType"] == "image/png"
            assert metadata["size"] == len(payload)
            assert envelope.files["binaryFile"][0].open().read() == payload

    def test_invalid_form_is_rejected(self, client, transport) -> None:
        response = client.post("/request", body=b'{"name": "Alice"}', headers={"content-type": "application/json"})

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid form data"}
        assert transport.requests == []


# -----------------------------------------------------------------------------
# main()
# -----------------------------------------------------------------------------


def test_main_starts_server_with_payload_limit(monkeypatch, relay_config) -> None:
    started = {}

    def fake_start(self, host, port):
        started.update(host=host, port=port)

    monkeypatch.setenv("ROBYN_MAX_PAYLOAD_SIZE", "0")
    monkeypatch.delenv("ROBYN_MAX_PAYLOAD_SIZE")
    monkeypatch.setattr(main_module.st, "N8N_WEBHOOK_URL", str(relay_config.webhook_url))
    monkeypatch.setattr(main_module.Robyn, "start", fake_start)

    main_module.main()

    assert started == {"host": main_module.st.API_HOST, "port": main_module.st.PORT}
    assert main_module.os.environ["ROBYN_MAX_PAYLOAD_SIZE"] == str(main_module.st.relay_config().max_body_bytes)


def test_main_requires_webhook_url(monkeypatch) -> None:
    monkeypatch.setattr(main_module.st, "N8N_WEBHOOK_URL", None)

    with pytest.raises(ValueError, match="N8N_WEBHOOK_URL"):
        main_module.main()
