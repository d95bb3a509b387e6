"""form-relay - multipart form relay to an n8n webhook, powered by Robyn."""

import os

from robyn import Robyn

from form_relay.api.liveness import router as liveness_router
from form_relay.api.relay import create_router as create_relay_router
from form_relay.core.logger import LogIcon, logger
from form_relay.core.settings import settings as st
from form_relay.middlewares.base import MiddlewareHandler
from form_relay.middlewares.cors import CorsMiddleware
from form_relay.models.core import RelayConfig
from form_relay.relay.handler import RelayHandler
from form_relay.relay.webhook import WebhookClient


def create_app(config: RelayConfig, allowed_origin: str, webhook: WebhookClient | None = None) -> Robyn:
    """Wire middlewares and routers around one relay configuration."""
    app = Robyn(__file__)

    # Middlewares
    middlewares = MiddlewareHandler(app)
    middlewares.register(CorsMiddleware(allowed_origin))

    # Routers
    app.include_router(liveness_router)
    app.include_router(create_relay_router(RelayHandler(config, webhook)))

    return app


def main() -> None:
    config = st.relay_config()
    # Robyn rejects larger payloads on its own, before any handler runs
    os.environ.setdefault("ROBYN_MAX_PAYLOAD_SIZE", str(config.max_body_bytes))

    app = create_app(config, allowed_origin=st.ALLOWED_ORIGIN)
    logger.info(
        f"Starting {st.API_NAME} {st.API_VERSION}",
        icon=LogIcon.START,
        url=st.api_url,
        origin=st.ALLOWED_ORIGIN,
        webhook_host=config.webhook_url.host,
    )
    app.start(host=st.API_HOST, port=st.PORT)


if __name__ == "__main__":
    main()
