"""
Shared fixtures.
"""
import asyncio
from typing import Callable, List, Optional

import pytest
from fastapi import FastAPI, Path
from fastapi.responses import PlainTextResponse

from routefuzz.models import InjectRequest, InjectResponse, RouteSpec
from routefuzz.services.corpus import CorpusStore


class FakeServer:
    """In-memory server with hapi-style templates that records injected requests."""

    def __init__(self, routes: List[RouteSpec], handler: Optional[Callable[[InjectRequest], InjectResponse]] = None):
        self.routes = routes
        self.handler = handler
        self.requests: List[InjectRequest] = []

    def list_routes(self) -> List[RouteSpec]:
        return list(self.routes)

    async def inject(self, request: InjectRequest) -> InjectResponse:
        self.requests.append(request)
        if self.handler:
            return self.handler(request)
        return InjectResponse(status_code=200, payload="ok", result="ok")


def _run_cases(cases):
    async def run():
        for _group, _title, case in cases:
            await case()
    asyncio.run(run())


def _guess_app(secret: str, winning: str = "!007") -> FastAPI:
    app = FastAPI()

    @app.get("/guess/{code}")
    def guess(code: str = Path(..., pattern=r"\d{3}")):
        if code == winning:
            return PlainTextResponse(secret)
        return PlainTextResponse("try again")

    return app


@pytest.fixture
def store():
    return CorpusStore()


@pytest.fixture
def fake_server():
    return FakeServer


@pytest.fixture
def run_cases():
    """Run collected (group, title, fn) cases in order."""
    return _run_cases


@pytest.fixture
def guess_app():
    """Guessing game returning the secret only for the winning code."""
    return _guess_app
