"""Relay handler: inbound form in, webhook response (or a synthesized error) out."""

import asyncio
from uuid import uuid4

import orjson
from asgi_correlation_id import correlation_id
from robyn import Request, Response, status_codes

from form_relay.core.logger import LogIcon, logger
from form_relay.core.router import json_response
from form_relay.models.core import RelayConfig
from form_relay.relay.envelope import OutboundEnvelope, build_envelope
from form_relay.relay.form import FormDataError, decode_form
from form_relay.relay.webhook import WebhookClient, WebhookTimeoutError

TIMEOUT_MESSAGE = "The request took too long to process. Your data may still be processing."


def describe_error(ex: BaseException) -> str:
    return str(ex) or ex.__class__.__name__


def read_body(request: Request) -> bytes:
    body = request.body
    if body is None:
        return b""
    if isinstance(body, str):
        return body.encode("utf-8")
    return bytes(body)


class RelayHandler:
    """Handles ``POST /request`` for one configured webhook."""

    def __init__(self, config: RelayConfig, webhook: WebhookClient | None = None) -> None:
        self.config = config
        self.webhook = webhook or WebhookClient(config)

    async def handle(self, request: Request) -> Response:
        token = correlation_id.set(request.headers.get("x-request-id") or uuid4().hex)
        try:
            return await self._handle(request)
        finally:
            correlation_id.reset(token)

    async def _handle(self, request: Request) -> Response:
        authorization = request.headers.get("authorization")

        try:
            # only plain data crosses into the worker thread
            form = await asyncio.to_thread(
                decode_form,
                read_body(request),
                request.headers.get("content-type"),
                dict(getattr(request, "form_data", None) or {}),
                dict(getattr(request, "files", None) or {}),
                max_body_bytes=self.config.max_body_bytes,
                upload_dir=self.config.upload_dir,
            )
        except FormDataError as ex:
            logger.error("Form parsing error", icon=LogIcon.ERROR, error=describe_error(ex))
            return json_response({"error": "Invalid form data"}, status_codes.HTTP_400_BAD_REQUEST)

        with form:
            try:
                envelope = build_envelope(form)
                logger.info(
                    "Form repackaged",
                    icon=LogIcon.UPLOAD,
                    fields=len(form.fields),
                    files=envelope.file_count,
                )
                return await self._relay(envelope, authorization)
            except Exception as ex:
                logger.error("Error processing form data", icon=LogIcon.ERROR, error=describe_error(ex))
                return json_response(
                    {"error": "Failed to process form data", "message": describe_error(ex)},
                    status_codes.HTTP_500_INTERNAL_SERVER_ERROR,
                )

    async def _relay(self, envelope: OutboundEnvelope, authorization: str | None) -> Response:
        try:
            reply = await self.webhook.forward(envelope, authorization=authorization)

            if not reply.is_success:
                logger.error(
                    "N8N webhook error",
                    icon=LogIcon.ERROR,
                    status=reply.status_code,
                    details=reply.text,
                )
                return json_response(
                    {"error": f"N8N webhook error: {reply.status_code}", "details": reply.text},
                    reply.status_code,
                )

            payload = orjson.loads(reply.content)
            logger.info("Webhook responded", icon=LogIcon.SUCCESS, status=reply.status_code)
            return json_response(payload)
        except WebhookTimeoutError as ex:
            logger.error("Request timed out", icon=LogIcon.TIMEOUT, error=describe_error(ex))
            return json_response(
                {"error": "Gateway Timeout", "message": TIMEOUT_MESSAGE},
                status_codes.HTTP_504_GATEWAY_TIMEOUT,
            )
        except Exception as ex:
            logger.error("Error forwarding request to webhook", icon=LogIcon.ERROR, error=describe_error(ex))
            return json_response(
                {"error": "Failed to process request", "message": describe_error(ex)},
                status_codes.HTTP_500_INTERNAL_SERVER_ERROR,
            )
