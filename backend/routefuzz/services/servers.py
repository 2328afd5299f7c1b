"""
Server adapters.

A server exposes its route table and accepts simulated requests. Two adapters
are provided: in-process FastAPI applications and live servers described by
an OpenAPI document.
"""
import base64
import json
import logging
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

import httpx
from fastapi import FastAPI
from fastapi.routing import APIRoute

from routefuzz.core.config import settings
from routefuzz.models import InjectRequest, InjectResponse, RouteSpec
from routefuzz.services.openapi_parser import OpenAPIParser
from routefuzz.services.params import param_names, stringify

logger = logging.getLogger(__name__)


@runtime_checkable
class Server(Protocol):
    """Route table plus request injection."""

    def list_routes(self) -> List[RouteSpec]:
        ...

    async def inject(self, request: InjectRequest) -> InjectResponse:
        ...


class ApplicationError(Exception):
    """An exception raised by the application under test while handling a request."""

    def __init__(self, error: Exception):
        self.error = error
        super().__init__(f"{type(error).__name__}: {error}")


def contains_bytes(value: Any) -> bool:
    if isinstance(value, (bytes, bytearray)):
        return True
    if isinstance(value, dict):
        return any(contains_bytes(item) for item in value.values())
    if isinstance(value, list):
        return any(contains_bytes(item) for item in value)
    return False


def _json_default(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _file_part(name: str, value: bytes):
    return name, (name, bytes(value), "application/octet-stream")


def request_arguments(request: InjectRequest) -> Dict[str, Any]:
    """
    httpx keyword arguments for an injected request.

    A dictionary payload holding bytes anywhere is sent as multipart: bytes
    fields and lists of bytes become file parts (repeated for lists), other
    fields become form values with nested bytes base64 encoded. Any other
    payload is sent as JSON with bytes base64 encoded.
    """
    arguments: Dict[str, Any] = {"headers": request.headers}
    payload = request.payload
    if payload is None:
        return arguments

    if isinstance(payload, (bytes, bytearray)):
        arguments["content"] = bytes(payload)
    elif isinstance(payload, dict) and contains_bytes(payload):
        files, data = [], {}
        for name, value in payload.items():
            if isinstance(value, (bytes, bytearray)):
                files.append(_file_part(name, value))
            elif isinstance(value, list) and value and all(isinstance(item, (bytes, bytearray)) for item in value):
                files.extend(_file_part(name, item) for item in value)
            elif isinstance(value, (dict, list)):
                data[name] = json.dumps(value, default=_json_default)
            elif value is not None:
                data[name] = stringify(value)
        arguments["files"] = files
        arguments["data"] = data
    elif contains_bytes(payload):
        arguments["content"] = json.dumps(payload, default=_json_default).encode("utf-8")
        arguments["headers"] = {**request.headers, "content-type": b"application/json"}
    else:
        arguments["json"] = payload
    return arguments


def to_inject_response(response: httpx.Response) -> InjectResponse:
    try:
        result = response.json()
    except ValueError:
        result = None
    return InjectResponse(
        status_code=response.status_code,
        headers=dict(response.headers),
        payload=response.text,
        result=result,
    )


class FastAPIServer:
    """In-process FastAPI application."""

    def __init__(self, app: FastAPI, base_url: str = "http://testserver"):
        self.app = app
        self.base_url = base_url

    def list_routes(self) -> List[RouteSpec]:
        """
        Join the application's routes with its OpenAPI operations.

        Template paths keep Starlette convertors (`{name:path}`) so wildcard
        parameters stay recognizable.
        """
        document = OpenAPIParser(spec_dict=self.app.openapi(), validate_document=False)
        document.parse()
        operations = {(route.method, route.path): route for route in document.get_routes()}

        routes = []
        for route in self.app.routes:
            if not isinstance(route, APIRoute):
                continue
            for method in sorted(route.methods):
                method = method.lower()
                operation = operations.get((method, route.path_format))
                routes.append(RouteSpec(
                    method=method,
                    path=route.path,
                    validate=operation.validate if operation else {},
                    params=param_names(route.path),
                    id=operation.id if operation else route.name,
                    description=operation.description if operation else "",
                ))
        return routes

    async def _asgi(self, scope, receive, send):
        try:
            await self.app(scope, receive, send)
        except Exception as e:
            raise ApplicationError(e) from e

    async def inject(self, request: InjectRequest) -> InjectResponse:
        arguments = request_arguments(request)
        transport = httpx.ASGITransport(app=self._asgi, raise_app_exceptions=True)
        async with httpx.AsyncClient(transport=transport, base_url=self.base_url) as client:
            try:
                response = await client.request(request.method, request.url, **arguments)
            except ApplicationError as e:
                logger.debug(f"{request.method} {request.url} raised {e}")
                return InjectResponse(status_code=500, error=str(e))
        return to_inject_response(response)


class OpenAPIServer:
    """Live server described by an OpenAPI document."""

    def __init__(
        self,
        base_url: str,
        spec_path: Optional[str] = None,
        spec_dict: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
        validate_document: bool = True,
    ):
        """
        Initialize server.

        Args:
            base_url: Base URL requests are sent to
            spec_path: Path or URL of the OpenAPI document
            spec_dict: OpenAPI document as dictionary
            timeout: Request timeout in seconds
            validate_document: Validate the document before reading routes
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT
        self.parser = OpenAPIParser(spec_path=spec_path, spec_dict=spec_dict, validate_document=validate_document)
        self.parser.parse()
        self._routes = self.parser.get_routes()

    def list_routes(self) -> List[RouteSpec]:
        return list(self._routes)

    async def inject(self, request: InjectRequest) -> InjectResponse:
        async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout) as client:
            response = await client.request(request.method, request.url, **request_arguments(request))
        return to_inject_response(response)
