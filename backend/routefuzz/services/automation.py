"""
Fuzzing entry points.

`fuzz` generates records for every route of a server and, when automation is
on, registers one test group per route and one test case per record through
the `describe` / `it` callbacks.
"""
import json
import logging
from pprint import pformat
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError

from routefuzz.core.errors import ConfigurationError, RouteNotFoundError
from routefuzz.models import FuzzOptions, FuzzRecord, RouteSpec
from routefuzz.services.corpus import load_corpus
from routefuzz.services.injector import run_case
from routefuzz.services.record_generator import RecordGenerator
from routefuzz.services.servers import Server
from routefuzz.services.synthesizer import JsonSchemaAdapter

logger = logging.getLogger(__name__)


def parse_options(options: Dict[str, Any]) -> FuzzOptions:
    """Validate run options, raising ConfigurationError on bad input."""
    try:
        return FuzzOptions(**options)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid fuzzing options: {e}",
            details={"errors": json.loads(e.json(include_url=False))},
        ) from e


def build_generator(options: FuzzOptions) -> RecordGenerator:
    corpus = load_corpus(options.use_payloads) if options.use_payloads else None
    return RecordGenerator(options, corpus)


def fuzz(server: Server, **options) -> List[FuzzRecord]:
    """
    Generate records for every route of a server.

    Args:
        server: Server exposing list_routes() and inject()
        **options: FuzzOptions fields

    Returns:
        All generated records
    """
    opts = parse_options(options)
    generator = build_generator(opts)

    routes = server.list_routes()
    logger.info(f"Fuzzing {len(routes)} routes with {opts.permutations} permutations each")

    records = []
    for route in routes:
        route_records = generator.generate_route(route)
        records.extend(route_records)
        if opts.automate:
            register_route(server, route, route_records, opts, generator.schema)
    return records


def register_route(
    server: Server,
    route: RouteSpec,
    records: List[FuzzRecord],
    options: FuzzOptions,
    schema: Optional[JsonSchemaAdapter] = None,
):
    """Register one test group for a route and one case per record."""
    def group():
        for record in records:
            options.it(
                f"should pass with data: {pformat(record.to_dict(), depth=2)}",
                make_case(server, record, options, schema),
            )

    options.describe(f"Fuzzing {route.method.upper()} {route.path}", group)


def make_case(
    server: Server,
    record: FuzzRecord,
    options: FuzzOptions,
    schema: Optional[JsonSchemaAdapter] = None,
) -> Callable:
    async def case():
        await run_case(server, record, options.valid_response, options.inject_replace, schema)
    return case


def generate_route(route: RouteSpec, **options) -> List[FuzzRecord]:
    """Generate records for a single route without registering test cases."""
    options.setdefault("automate", False)
    return build_generator(parse_options(options)).generate_route(route)


def find_route(server: Server, method: str, path: str) -> RouteSpec:
    """
    Look up a route in the server's table.

    Raises:
        RouteNotFoundError: when no route matches method and path
    """
    method = method.lower()
    for route in server.list_routes():
        if route.path == path and route.method.lower() in (method, "*"):
            return route
    raise RouteNotFoundError(
        f"Route not found: {method.upper()} {path}",
        details={"method": method, "path": path},
    )


class CaseCollector:
    """
    `describe` / `it` callbacks that collect cases instead of registering them
    with a test framework.
    """

    def __init__(self):
        self.cases: List[Tuple[str, str, Callable]] = []
        self._group: Optional[str] = None

    def describe(self, title: str, fn: Callable):
        self._group = title
        try:
            fn()
        finally:
            self._group = None

    def it(self, title: str, fn: Callable):
        self.cases.append((self._group or "", title, fn))

    @property
    def callbacks(self) -> Dict[str, Callable]:
        return {"describe": self.describe, "it": self.it}
