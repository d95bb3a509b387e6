"""Liveness endpoint."""

from form_relay.core.logger import LogIcon, logger
from form_relay.core.router import Router

LIVENESS_MESSAGE = "Server is running"

router = Router(__file__)


@router.get("/")
async def liveness() -> str:
    logger.debug("Liveness probe", icon=LogIcon.HEALTHCHECK)
    return LIVENESS_MESSAGE
