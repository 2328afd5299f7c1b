"""
OpenAPI/Swagger document parser producing route tables.
"""
import copy
import logging
from typing import Dict, Any, List, Optional

import prance
from openapi_spec_validator import validate

from routefuzz.models import RouteSpec
from routefuzz.services.params import param_names

logger = logging.getLogger(__name__)

HTTP_METHODS = ("get", "post", "put", "patch", "delete", "head", "options")

# parameter location -> record field
LOCATIONS = {
    "path": "params",
    "query": "query",
    "header": "headers",
    "cookie": "state",
}

BODY_MEDIA_TYPES = (
    "application/json",
    "multipart/form-data",
    "application/x-www-form-urlencoded",
)

# Swagger 2.0 keeps schema keywords on the parameter itself
SWAGGER2_SCHEMA_KEYS = (
    "type", "format", "items", "enum", "default", "pattern",
    "minimum", "maximum", "exclusiveMinimum", "exclusiveMaximum",
    "minLength", "maxLength", "minItems", "maxItems", "multipleOf",
)


def _unconstrained(limit, parsed_url, recursions=()):
    return {}


class OpenAPIParser:
    """Parser for OpenAPI specifications with $ref resolution."""

    def __init__(self, spec_path: Optional[str] = None, spec_dict: Optional[Dict] = None,
                 validate_document: bool = True):
        """
        Initialize parser.

        Args:
            spec_path: Path or URL of an OpenAPI file (resolved with prance)
            spec_dict: OpenAPI document as dictionary
            validate_document: Validate the document with openapi-spec-validator
        """
        self.spec_path = spec_path
        self.spec_dict = spec_dict
        self.validate_document = validate_document
        self.resolved_spec: Optional[Dict] = None

    def parse(self) -> Dict[str, Any]:
        """
        Parse and resolve OpenAPI specification.

        Returns:
            Resolved OpenAPI specification
        """
        try:
            if self.spec_path:
                parser = prance.ResolvingParser(
                    self.spec_path,
                    strict=False,
                    recursion_limit_handler=_unconstrained,
                )
                document = parser.specification
            elif self.spec_dict:
                document = self.spec_dict
            else:
                raise ValueError("Either spec_path or spec_dict must be provided")

            if self.validate_document:
                validate(document)

            self.resolved_spec = document
            self.resolved_spec = self._resolve(document, frozenset())

            logger.info(f"Parsed OpenAPI document with {len(self.resolved_spec.get('paths', {}))} paths")
            return self.resolved_spec

        except Exception as e:
            logger.error(f"Error parsing OpenAPI spec: {str(e)}")
            raise

    def resolve_ref(self, ref: str) -> Dict[str, Any]:
        """
        Resolve a local $ref reference.

        Args:
            ref: Reference string (e.g., '#/components/schemas/User')

        Returns:
            Referenced node
        """
        if not ref.startswith('#'):
            raise ValueError(f"External references not supported: {ref}")

        current = self.resolved_spec
        for part in ref.split('/')[1:]:
            part = part.replace('~1', '/').replace('~0', '~')
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                raise ValueError(f"Reference not found: {ref}")
        return current

    def _resolve(self, node: Any, seen: frozenset) -> Any:
        """Inline local $refs; a reference cycle resolves to an unconstrained schema."""
        if isinstance(node, list):
            return [self._resolve(item, seen) for item in node]
        if not isinstance(node, dict):
            return node

        ref = node.get('$ref')
        if isinstance(ref, str):
            if ref in seen:
                return {}
            target = self._resolve(copy.deepcopy(self.resolve_ref(ref)), seen | {ref})
            siblings = {key: value for key, value in node.items() if key != '$ref'}
            if siblings and isinstance(target, dict):
                return {**target, **self._resolve(siblings, seen)}
            return target

        return {key: self._resolve(value, seen) for key, value in node.items()}

    def get_routes(self) -> List[RouteSpec]:
        """
        Build the route table.

        Returns:
            One RouteSpec per path and method
        """
        if not self.resolved_spec:
            raise ValueError("Spec not parsed. Call parse() first.")

        routes = []
        for path, path_item in self.resolved_spec.get('paths', {}).items():
            shared = path_item.get('parameters', [])
            for method, operation in path_item.items():
                if method not in HTTP_METHODS:
                    continue
                parameters = self._merge_parameters(shared, operation.get('parameters', []))
                routes.append(RouteSpec(
                    method=method,
                    path=path,
                    validate=self._validation(parameters, operation.get('requestBody')),
                    params=param_names(path),
                    id=operation.get('operationId', f"{method.upper()}_{path}"),
                    description=operation.get('summary', ''),
                ))

        return routes

    @staticmethod
    def _merge_parameters(shared: List[Dict], own: List[Dict]) -> List[Dict]:
        merged = {(param.get('name'), param.get('in')): param for param in shared}
        merged.update({(param.get('name'), param.get('in')): param for param in own})
        return list(merged.values())

    def _validation(self, parameters: List[Dict], request_body: Optional[Dict]) -> Dict[str, Dict[str, Any]]:
        groups: Dict[str, Dict[str, Any]] = {}
        form: Dict[str, Any] = {}
        validate = {}

        for param in parameters:
            location = param.get('in')
            if location == 'body':
                validate['payload'] = normalize_schema(param.get('schema', {}))
                continue

            if location == 'formData':
                target = form
            elif location in LOCATIONS:
                target = groups.setdefault(LOCATIONS[location], {})
            else:
                continue

            target.setdefault('properties', {})[param['name']] = normalize_schema(self._parameter_schema(param))
            if param.get('required') or location == 'path':
                target.setdefault('required', []).append(param['name'])

        for field, group in groups.items():
            validate[field] = {"type": "object", **group}
        if form:
            validate['payload'] = {"type": "object", **form}

        if request_body:
            schema = self._body_schema(request_body)
            if schema is not None:
                validate['payload'] = normalize_schema(schema)

        return validate

    @staticmethod
    def _parameter_schema(param: Dict[str, Any]) -> Dict[str, Any]:
        if 'schema' in param:
            return param['schema']
        if 'content' in param:
            for media in param['content'].values():
                return media.get('schema', {})
        schema = {key: param[key] for key in SWAGGER2_SCHEMA_KEYS if key in param}
        if schema.get('type') == 'file':
            schema = {"type": "string", "format": "binary"}
        return schema

    @staticmethod
    def _body_schema(request_body: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        content = request_body.get('content', {})
        for media_type in BODY_MEDIA_TYPES:
            for content_type, media in content.items():
                if media_type in content_type:
                    return media.get('schema', {})
        for media in content.values():
            return media.get('schema', {})
        return None


def normalize_schema(schema: Any) -> Any:
    """Rewrite OpenAPI 3.0 schema dialect into JSON Schema 2020-12."""
    if isinstance(schema, list):
        return [normalize_schema(item) for item in schema]
    if not isinstance(schema, dict):
        return schema

    schema = {key: normalize_schema(value) for key, value in schema.items()}

    if schema.get('nullable') is True:
        del schema['nullable']
        if isinstance(schema.get('type'), str):
            schema['type'] = [schema['type'], 'null']

    for exclusive, bound in (('exclusiveMinimum', 'minimum'), ('exclusiveMaximum', 'maximum')):
        if isinstance(schema.get(exclusive), bool):
            if schema.pop(exclusive) and bound in schema:
                schema[exclusive] = schema.pop(bound)

    return schema
