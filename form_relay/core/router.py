"""Router converting handler results into Robyn responses."""

import inspect
from collections.abc import Callable
from functools import wraps
from typing import Any

import orjson
from pydantic import BaseModel
from robyn import Request, Response, SubRouter, status_codes
from robyn.robyn import HttpMethod

JSON_HEADERS = {"content-type": "application/json"}
TEXT_HEADERS = {"content-type": "text/plain; charset=utf-8"}


def json_response(payload: Any, status_code: int = status_codes.HTTP_200_OK) -> Response:
    """Serialize any JSON value into a Response."""
    return Response(
        status_code=status_code,
        headers=dict(JSON_HEADERS),
        description=orjson.dumps(payload).decode(),
    )


def parse_response(result: Any) -> Response:
    """Convert handler result to Response."""
    match result:
        case Response():
            return result
        case BaseModel():
            return Response(
                status_code=status_codes.HTTP_200_OK,
                headers=dict(JSON_HEADERS),
                description=result.model_dump_json(by_alias=True),
            )
        case dict() | list():
            return json_response(result)
        case _:
            return Response(
                status_code=status_codes.HTTP_200_OK,
                headers=dict(TEXT_HEADERS),
                description=str(result),
            )


HTTP_METHODS = (
    HttpMethod.GET,
    HttpMethod.POST,
    HttpMethod.PUT,
    HttpMethod.DELETE,
    HttpMethod.PATCH,
    HttpMethod.HEAD,
    HttpMethod.OPTIONS,
)


def _create_method_wrapper(original_method: Callable) -> Callable:
    @wraps(original_method)
    def method_wrapper(*args, **kwargs) -> Callable:
        decorator = original_method(*args, **kwargs)

        def handler_decorator(handler: Callable) -> Callable:
            has_request_param = "request" in inspect.signature(handler).parameters

            @wraps(handler)
            async def wrapped_handler(request: Request):
                # Pass request to handler only if it declared it
                result = await handler(request) if has_request_param else await handler()
                return parse_response(result)

            # Robyn injects by signature: expose only the request
            wrapped_handler.__signature__ = inspect.Signature(  # type: ignore[attr-defined]
                [inspect.Parameter("request", inspect.Parameter.POSITIONAL_OR_KEYWORD, annotation=Request)]
            )
            return decorator(wrapped_handler)

        return handler_decorator

    return method_wrapper


class Router(SubRouter):
    """SubRouter whose handlers may return models, dicts or plain text."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._wrap_methods()

    def _wrap_methods(self) -> None:
        """Wrap HTTP methods with response conversion."""
        for method in HTTP_METHODS:
            method_name = str(method).split(".")[-1].lower()
            if hasattr(self, method_name):
                original_method = getattr(self, method_name)
                setattr(self, method_name, _create_method_wrapper(original_method))
