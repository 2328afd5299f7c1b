"""
Fuzz record generation from route validation rules.
"""
import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from routefuzz.core.errors import SchemaMismatchError
from routefuzz.core.monitoring import record_generated
from routefuzz.models import FIELDS, FuzzOptions, FuzzRecord, ParamSpec, RouteSpec
from routefuzz.services.corpus import Corpus
from routefuzz.services.params import (
    classify_params,
    decode_component,
    default_param_schema,
    encode_param,
    params_schema,
    sanitize_cookie,
    stringify,
)
from routefuzz.services.substitution import CorpusResolver
from routefuzz.services.synthesizer import JsonSchemaAdapter, ValueSynthesizer

logger = logging.getLogger(__name__)

WILDCARD_METHODS = ("get", "post", "put", "patch", "delete", "options")
BODYLESS_METHODS = ("get", "head")

PERMISSIVE_QUERY = {"type": "object"}
PERMISSIVE_PAYLOAD = {"type": "object", "additionalProperties": {"type": "string"}}


class RecordGenerator:
    """Generate fuzz records for routes."""

    def __init__(
        self,
        options: Optional[FuzzOptions] = None,
        corpus: Optional[Corpus] = None,
        schema: Optional[JsonSchemaAdapter] = None,
    ):
        """
        Initialize record generator.

        Args:
            options: Run options (permutations, seed, hooks, ...)
            corpus: Loaded corpus used for substitution, if any
            schema: Schema collaborator (built from the options when omitted)
        """
        self.options = options or FuzzOptions(automate=False)
        self.schema = schema or JsonSchemaAdapter(
            ValueSynthesizer(seed=self.options.seed, regex_attempts=self.options.regex_attempts)
        )
        self.rng = self.schema.synthesizer.random
        self.resolver = CorpusResolver(
            corpus,
            rng=self.rng,
            regex_attempts=self.options.regex_attempts,
            replace=self.options.replace,
        )

    def generate(self, routes: Iterable[RouteSpec]) -> List[FuzzRecord]:
        records = []
        for route in routes:
            records.extend(self.generate_route(route))
        return records

    def generate_route(self, route: RouteSpec) -> List[FuzzRecord]:
        """
        Generate `permutations` records for every method of a route.

        Args:
            route: Route to fuzz

        Returns:
            Generated records
        """
        methods = WILDCARD_METHODS if route.method == "*" else (route.method.lower(),)
        specs = classify_params(route.path, route.params, route.validation("params")) if route.params else {}

        logger.debug(f"Generating {self.options.permutations} records for {route.method.upper()} {route.path}")
        logger.debug(f"Validation: {json.dumps(route.validate, default=repr)}")
        for spec in specs.values():
            logger.debug(f"Param {spec.name}: wildcard={spec.wildcard} count={spec.fixed_count} "
                         f"optional={spec.optional}")

        records = []
        for method in methods:
            for _ in range(self.options.permutations):
                record = self._record(route, method, specs)
                logger.debug(f"Record: {record.to_jsonable()}")
                records.append(record)
            record_generated(method, self.options.permutations)

        return records

    def _record(self, route: RouteSpec, method: str, specs: Dict[str, ParamSpec]) -> FuzzRecord:
        values: Dict[str, Any] = {
            "query": self._synthesize(route.validation("query") or PERMISSIVE_QUERY),
        }
        if method not in BODYLESS_METHODS:
            values["payload"] = self._synthesize(route.validation("payload") or PERMISSIVE_PAYLOAD)
        if specs:
            values["params"] = self._synthesize(route.validation("params") or params_schema(specs))
        for field in ("headers", "state"):
            if route.validation(field):
                values[field] = self._synthesize(route.validation(field))

        if self.options.validate_data:
            self._validate(route, method, values)

        return FuzzRecord(
            path=route.path,
            method=method,
            query=values["query"] or {},
            payload=values.get("payload"),
            params=self._encode_params(values.get("params"), specs) if specs else None,
            headers=values.get("headers"),
            state=self._cookies(values["state"], route.validation("state")) if "state" in values else None,
        )

    def _synthesize(self, schema: Dict[str, Any]) -> Any:
        return self.schema.synthesize(schema, replace=self.resolver)

    def _encode_params(self, values: Any, specs: Dict[str, ParamSpec]) -> Dict[str, str]:
        values = values if isinstance(values, dict) else {}
        encoded = {}
        for name, spec in specs.items():
            value = values.get(name)
            if value is None or value == "":
                if spec.allows_empty:
                    encoded[name] = ""
                    continue
                value = self._synthesize(default_param_schema(spec))
            elif spec.fixed_count and len(decode_component(stringify(value))) < spec.fixed_count:
                # too short to fill every segment of the template
                value = self._synthesize(default_param_schema(spec))
            encoded[name] = encode_param(value, spec, self.rng)
        return encoded

    @staticmethod
    def _cookies(values: Any, schema: Optional[Dict[str, Any]]) -> Dict[str, str]:
        properties = (schema or {}).get("properties", {})
        cookies = {}
        for name, value in (values if isinstance(values, dict) else {}).items():
            if value is None:
                continue
            strict = (properties.get(name) or {}).get("x-strict-header", True) is not False
            name, value = sanitize_cookie(name, value, strict=strict)
            if name:
                cookies[name] = value
        return cookies

    def _validate(self, route: RouteSpec, method: str, values: Dict[str, Any]):
        """Check generated values against the validation the route declared."""
        for field in FIELDS:
            schema = route.validation(field)
            if not schema or field not in values:
                continue
            error = self.schema.validate(values[field], schema)
            if error is None:
                continue
            raise SchemaMismatchError(
                f"{route.path}[{method}]:\n{error}\n"
                f"{field}: {json.dumps(values[field], indent=4, default=repr)}\n"
                f"Schema: {json.dumps(self.schema.describe(schema), indent=4, default=repr)}",
                details={"path": route.path, "method": method, "field": field},
            )
