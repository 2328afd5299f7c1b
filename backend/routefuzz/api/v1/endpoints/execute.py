"""
Fuzz execution endpoints.
"""
import logging
from typing import Optional, Dict, Any

import httpx
from fastapi import APIRouter, HTTPException, Body

from routefuzz.core.errors import ResponseContractViolation
from routefuzz.models import DEFAULT_VALID_RESPONSE
from routefuzz.services.automation import CaseCollector, build_generator, parse_options, register_route
from routefuzz.services.servers import OpenAPIServer
from routefuzz.api.v1.endpoints.generate import GenerateRequest, load_document, select_routes

logger = logging.getLogger(__name__)

router = APIRouter()


class ExecuteRequest(GenerateRequest):
    """Request model for fuzzing a live server."""
    base_url: str
    valid_response: Optional[Dict[str, Any]] = None


@router.post("")
async def execute_fuzzing(request: ExecuteRequest = Body(...)):
    """
    Generate records and inject them against a live server.

    Every case runs; violations are collected rather than stopping the run.

    Returns:
        Totals and the failure messages
    """
    document = await load_document(request)
    try:
        server = OpenAPIServer(request.base_url, spec_dict=document)
    except Exception as e:
        raise HTTPException(status_code=400, detail=f"Invalid OpenAPI specification: {str(e)}")

    collector = CaseCollector()
    options = parse_options({
        **request.fuzz_options(),
        **collector.callbacks,
        "automate": True,
        "valid_response": request.valid_response or dict(DEFAULT_VALID_RESPONSE),
    })
    generator = build_generator(options)

    for route in select_routes(server.list_routes(), request.selected_routes):
        register_route(server, route, generator.generate_route(route), options, generator.schema)

    failures = []
    for group, title, case in collector.cases:
        try:
            await case()
        except ResponseContractViolation as e:
            failures.append({"group": group, "title": title, "message": e.message, "details": e.details})
        except httpx.HTTPError as e:
            logger.warning(f"{group}: request failed: {str(e)}")
            failures.append({"group": group, "title": title, "message": f"Request failed: {str(e)}", "details": {}})
        except Exception as e:
            logger.error(f"{group}: case raised {type(e).__name__}: {str(e)}")
            failures.append({
                "group": group,
                "title": title,
                "message": f"Case raised {type(e).__name__}: {str(e)}",
                "details": {},
            })

    total = len(collector.cases)
    logger.info(f"Executed {total} cases against {request.base_url}: {len(failures)} failed")
    return {
        "total": total,
        "passed": total - len(failures),
        "failed": len(failures),
        "failures": failures,
    }
