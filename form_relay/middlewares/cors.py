"""Cross-origin policy for the configured frontend origin."""

from robyn import Request, Response, status_codes

from form_relay.middlewares.base import BaseMiddleware

ALLOWED_METHODS = ("GET", "POST", "PUT", "DELETE", "OPTIONS")
ALLOWED_HEADERS = ("Content-Type", "Authorization", "Origin", "Accept")


class CorsMiddleware(BaseMiddleware):
    """Answers preflight requests on any path and tags every response for one origin."""

    def __init__(self, origin: str) -> None:
        self.origin = origin

    @property
    def response_headers(self) -> dict[str, str]:
        return {
            "access-control-allow-origin": self.origin,
            "access-control-allow-credentials": "true",
            "vary": "Origin",
        }

    @property
    def preflight_headers(self) -> dict[str, str]:
        return {
            **self.response_headers,
            "access-control-allow-methods": ",".join(ALLOWED_METHODS),
            "access-control-allow-headers": ",".join(ALLOWED_HEADERS),
        }

    def before(self, request: Request) -> Request | Response:
        if request.method.upper() != "OPTIONS":
            return request
        return Response(status_code=status_codes.HTTP_200_OK, headers=self.preflight_headers, description="")

    def after(self, response: Response) -> Response:
        for name, value in self.response_headers.items():
            response.headers.set(name, value)
        return response
