"""
Fuzz record generation endpoints.
"""
import json
import logging
from typing import Optional, List, Dict, Any

import httpx
import yaml
from fastapi import APIRouter, HTTPException, Body
from pydantic import BaseModel, Field, field_validator, model_validator

from routefuzz.core.config import settings
from routefuzz.models import RouteSpec
from routefuzz.services.automation import build_generator, parse_options
from routefuzz.services.openapi_parser import OpenAPIParser

logger = logging.getLogger(__name__)

router = APIRouter()


class RouteFilter(BaseModel):
    """Route filter model."""
    path: str
    method: str


class GenerateRequest(BaseModel):
    """Request model for record generation."""
    spec: Optional[Dict[str, Any]] = None
    spec_url: Optional[str] = None
    permutations: int = Field(default_factory=lambda: settings.DEFAULT_PERMUTATIONS, ge=1)
    use_payloads: Optional[List[str]] = None
    validate_data: bool = False
    seed: Optional[int] = None
    selected_routes: Optional[List[RouteFilter]] = None

    @field_validator("permutations")
    @classmethod
    def _permutation_cap(cls, value: int) -> int:
        if value > settings.MAX_PERMUTATIONS:
            raise ValueError(f"permutations must not exceed {settings.MAX_PERMUTATIONS}")
        return value

    @model_validator(mode="after")
    def _document_source(self):
        if self.spec is None and not self.spec_url:
            raise ValueError("Either spec or spec_url is required")
        return self

    def fuzz_options(self) -> Dict[str, Any]:
        return {
            "automate": False,
            "permutations": self.permutations,
            "use_payloads": self.use_payloads,
            "validate_data": self.validate_data,
            "synth_options": {"seed": self.seed} if self.seed is not None else {},
        }


async def fetch_spec_from_url(url: str) -> dict:
    """Fetch and parse OpenAPI spec from URL."""
    url = url.strip()
    if not url.startswith(('http://', 'https://')):
        raise HTTPException(status_code=400, detail="URL must start with http:// or https://")

    try:
        async with httpx.AsyncClient(timeout=settings.REQUEST_TIMEOUT, follow_redirects=True) as client:
            response = await client.get(url)
            response.raise_for_status()
    except httpx.TimeoutException:
        raise HTTPException(status_code=400, detail="Request timeout: URL did not respond in time")
    except httpx.HTTPStatusError as e:
        raise HTTPException(
            status_code=400,
            detail=f"HTTP error {e.response.status_code}: Failed to fetch from URL"
        )
    except httpx.RequestError as e:
        raise HTTPException(status_code=400, detail=f"Failed to fetch from URL: {str(e)}")

    content = response.text
    if not content:
        raise HTTPException(status_code=400, detail="Empty response from URL")

    try:
        return json.loads(content)
    except json.JSONDecodeError:
        try:
            document = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise HTTPException(status_code=400, detail=f"Invalid YAML: {str(e)}")
    if not isinstance(document, dict):
        raise HTTPException(status_code=400, detail="Specification must be a mapping")
    return document


async def load_document(request: GenerateRequest) -> Dict[str, Any]:
    if request.spec is not None:
        return request.spec
    logger.info(f"Fetching OpenAPI spec from URL: {request.spec_url}")
    return await fetch_spec_from_url(request.spec_url)


def select_routes(routes: List[RouteSpec], selected: Optional[List[RouteFilter]]) -> List[RouteSpec]:
    """Keep the routes matching any filter; all routes when no filter is given."""
    if not selected:
        return routes
    wanted = {(item.method.lower(), item.path) for item in selected}
    return [route for route in routes if (route.method.lower(), route.path) in wanted]


def parse_routes(document: Dict[str, Any]) -> List[RouteSpec]:
    parser = OpenAPIParser(spec_dict=document)
    try:
        parser.parse()
    except Exception as e:
        raise HTTPException(status_code=400, detail=f"Invalid OpenAPI specification: {str(e)}")
    return parser.get_routes()


@router.post("")
async def generate_records(request: GenerateRequest = Body(...)):
    """
    Generate fuzz records for the routes of an OpenAPI document.

    Args:
        request: Document (inline or URL) and generation options

    Returns:
        JSON-safe records (bytes as {"$binary": <base64>})
    """
    document = await load_document(request)
    routes = select_routes(parse_routes(document), request.selected_routes)

    generator = build_generator(parse_options(request.fuzz_options()))
    records = generator.generate(routes)

    logger.info(f"Generated {len(records)} records for {len(routes)} routes")
    return {
        "routes": len(routes),
        "total": len(records),
        "records": [record.to_jsonable() for record in records],
    }
