"""
Record injection and response contract checks.
"""
import json
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import urlencode

from routefuzz.core.errors import ResponseContractViolation
from routefuzz.core.monitoring import record_violation
from routefuzz.models import FuzzRecord, InjectRequest, InjectResponse
from routefuzz.services.params import fill_path, stringify
from routefuzz.services.servers import Server
from routefuzz.services.synthesizer import JsonSchemaAdapter

logger = logging.getLogger(__name__)

InjectReplaceHook = Callable[[FuzzRecord, InjectRequest], Optional[InjectRequest]]


def _query_items(query: Dict[str, Any]) -> List[Tuple[str, Any]]:
    items = []
    for name, value in query.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            items.append((name, [_query_value(item) for item in value if item is not None]))
        else:
            items.append((name, _query_value(value)))
    return items


def _query_value(value: Any) -> str:
    if isinstance(value, dict):
        return json.dumps(value)
    return stringify(value)


def _header_value(value: Any):
    if isinstance(value, (dict, list)):
        value = json.dumps(value)
    # non-ascii header values are sent as raw utf-8
    return stringify(value).encode("utf-8")


def build_request(record: FuzzRecord) -> InjectRequest:
    """
    Turn a record into a request.

    Args:
        record: Generated record

    Returns:
        InjectRequest with params substituted, query encoded and cookies joined
    """
    url = fill_path(record.path, record.params)
    items = _query_items(record.query or {})
    if items:
        url = f"{url}?{urlencode(items, doseq=True)}"

    headers = {
        name: _header_value(value)
        for name, value in (record.headers or {}).items()
        if value is not None
    }
    if record.state:
        headers["cookie"] = "; ".join(f"{name}={value}" for name, value in record.state.items()).encode("utf-8")

    return InjectRequest(
        url=url,
        method=record.method.upper(),
        payload=record.payload,
        headers=headers,
    )


async def inject(
    server: Server,
    record: FuzzRecord,
    inject_replace: Optional[InjectReplaceHook] = None,
) -> InjectResponse:
    """Send a record to the server, letting `inject_replace` rewrite the request first."""
    request = build_request(record)
    if inject_replace:
        request = inject_replace(record, request) or request
    logger.debug(f"Injecting {request.method} {request.url}")
    return await server.inject(request)


def check_response(
    record: FuzzRecord,
    response: InjectResponse,
    valid_response: Dict[str, Any],
    schema: Optional[JsonSchemaAdapter] = None,
):
    """
    Validate a response against the expected contract.

    Raises:
        ResponseContractViolation: with the record, the server result and error
    """
    schema = schema or JsonSchemaAdapter()
    error = schema.validate(response.to_dict(), valid_response)
    if error is None:
        return

    message = "Failed calling route with data:\n" + json.dumps(record.to_jsonable(), indent=4)
    if response.result is not None:
        message += "\n" + json.dumps(response.result, indent=4, default=repr)
    if response.error:
        message += "\n" + response.error
    message += "\n" + error

    logger.warning(f"Contract violation on {record.method.upper()} {record.path}: {error}")
    record_violation(record.method)
    raise ResponseContractViolation(
        message,
        details={
            "path": record.path,
            "method": record.method,
            "status_code": response.status_code,
            "error": response.error,
        },
    )


async def run_case(
    server: Server,
    record: FuzzRecord,
    valid_response: Dict[str, Any],
    inject_replace: Optional[InjectReplaceHook] = None,
    schema: Optional[JsonSchemaAdapter] = None,
) -> InjectResponse:
    """Inject one record and check the response."""
    response = await inject(server, record, inject_replace)
    check_response(record, response, valid_response, schema)
    return response
