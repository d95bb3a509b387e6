"""Outbound call to the downstream n8n webhook."""

import asyncio

import httpx

from form_relay.core.logger import LogIcon, logger
from form_relay.models.core import RelayConfig
from form_relay.relay.envelope import OutboundEnvelope


class WebhookTimeoutError(Exception):
    """Raised when the webhook does not answer within the configured ceiling."""


class WebhookClient:
    """Posts envelopes to the configured webhook, one short-lived HTTP client per call."""

    def __init__(self, config: RelayConfig, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._config = config
        self._transport = transport

    @property
    def url(self) -> str:
        return str(self._config.webhook_url)

    async def forward(self, envelope: OutboundEnvelope, *, authorization: str | None = None) -> httpx.Response:
        """POST the envelope and return the fully read response.

        ``authorization`` is the only value copied from the inbound request; it
        is sent verbatim when non-empty. The whole call, connection included,
        is cancelled once ``timeout_seconds`` have elapsed and the client is
        closed on the way out.
        """
        headers = {"Authorization": authorization} if authorization else {}
        timeout = self._config.timeout_seconds

        logger.info(
            "Forwarding envelope to webhook",
            icon=LogIcon.NETWORK,
            files=envelope.file_count,
            authorization=bool(authorization),
        )
        try:
            async with asyncio.timeout(timeout):
                async with httpx.AsyncClient(
                    transport=self._transport,
                    timeout=httpx.Timeout(timeout),
                    follow_redirects=True,
                ) as client:
                    return await client.post(self.url, files=envelope.parts, headers=headers)
        except (TimeoutError, httpx.TimeoutException) as ex:
            raise WebhookTimeoutError(f"webhook did not respond within {timeout:g} seconds") from ex
