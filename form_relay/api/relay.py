"""Form relay endpoint."""

from robyn import Request, Response

from form_relay.core.router import Router
from form_relay.relay.handler import RelayHandler


def create_router(handler: RelayHandler) -> Router:
    """Bind ``POST /request`` to a configured relay handler."""
    router = Router(__file__)

    @router.post("/request")
    async def relay_form(request: Request) -> Response:
        return await handler.handle(request)

    return router
