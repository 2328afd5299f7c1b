"""
JSON Schema value synthesis and validation.

Random values are produced with Faker, honoring the constraints of each schema
node so that generated data passes validation. `pattern` constraints are
satisfied with rstr, drawing from the same seeded random source. Every
generated node is handed to an optional replace hook, which is where corpus
substitution plugs in.
"""
import base64
import copy
import logging
import re
import string
from typing import Any, Callable, Dict, List, Optional

import rstr
from faker import Faker
from jsonschema import Draft202012Validator, validators
from jsonschema.exceptions import best_match

from routefuzz.services.constraints import Constraints, parse_constraints

logger = logging.getLogger(__name__)

ReplaceHook = Callable[[Any, Dict[str, Any], Constraints], Any]

PLAIN_CHARS = string.ascii_letters + string.digits
TOKEN_CHARS = string.ascii_letters + string.digits + "_"
MAX_DEPTH = 6


def _is_string(checker, instance):
    return isinstance(instance, (str, bytes))


# binary payloads are carried as bytes but declared as strings
FuzzValidator = validators.extend(
    Draft202012Validator,
    type_checker=Draft202012Validator.TYPE_CHECKER.redefine("string", _is_string),
)


class ValueSynthesizer:
    """Generate random values satisfying a JSON Schema."""

    def __init__(
        self,
        faker: Optional[Faker] = None,
        seed: Optional[int] = None,
        max_items: int = 3,
        regex_attempts: int = 20,
    ):
        """
        Initialize synthesizer.

        Args:
            faker: Faker instance (a fresh one is created when omitted)
            seed: Seed for reproducible generation
            max_items: Upper bound on generated array items / extra object keys
            regex_attempts: Draws allowed to satisfy a pattern together with length bounds
        """
        self.faker = faker or Faker()
        if seed is not None:
            self.faker.seed_instance(seed)
        self.max_items = max_items
        self.regex_attempts = regex_attempts
        self._xeger = rstr.Rstr(self.random)

    @property
    def random(self):
        return self.faker.random

    def synthesize(self, schema: Optional[Dict[str, Any]], replace: Optional[ReplaceHook] = None) -> Any:
        """
        Generate a value for a schema.

        Args:
            schema: JSON Schema node
            replace: Hook called as replace(value, schema_node, constraints) for every node

        Returns:
            Generated value
        """
        return self._generate(schema if schema is not None else {}, replace, 0)

    def _generate(self, schema: Any, replace: Optional[ReplaceHook], depth: int) -> Any:
        if schema is True:
            schema = {}
        if schema is False:
            return None

        schema = self._flatten(schema)
        constraints = parse_constraints(schema)

        if constraints.valids:
            value = copy.deepcopy(self.random.choice(constraints.valids))
        elif constraints.type == "object":
            value = self._object(schema, replace, depth)
        elif constraints.type == "array":
            value = self._array(schema, replace, depth)
        elif constraints.type == "string":
            value = self._string(schema, constraints)
        elif constraints.type == "binary":
            value = self._binary(schema)
        elif constraints.type == "integer":
            value = self._integer(schema)
        elif constraints.type == "number":
            value = self._number(schema)
        elif constraints.type == "boolean":
            value = self.faker.pybool()
        elif constraints.type == "null":
            value = None
        else:
            value = self._any()

        if replace:
            value = replace(value, schema, constraints)
        return value

    def _flatten(self, schema: Dict[str, Any]) -> Dict[str, Any]:
        """Merge allOf members and pick one anyOf/oneOf branch."""
        if "allOf" in schema:
            merged = {key: value for key, value in schema.items() if key != "allOf"}
            for member in schema["allOf"]:
                member = self._flatten(member) if isinstance(member, dict) else {}
                for key, value in member.items():
                    if key == "properties":
                        merged.setdefault("properties", {}).update(value)
                    elif key == "required":
                        merged["required"] = list(dict.fromkeys(merged.get("required", []) + list(value)))
                    else:
                        merged.setdefault(key, value)
            schema = merged

        for key in ("anyOf", "oneOf"):
            branches = schema.get(key)
            if not branches:
                continue
            branches = [branch for branch in branches if isinstance(branch, dict)]
            candidates = [branch for branch in branches if branch.get("type") != "null"] or branches
            if not candidates:
                continue
            branch = self.random.choice(candidates)
            rest = {k: v for k, v in schema.items() if k != key}
            schema = {**rest, **self._flatten(branch)}

        return schema

    def _object(self, schema: Dict[str, Any], replace, depth: int) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if depth >= MAX_DEPTH:
            return result

        properties = schema.get("properties", {})
        required = set(schema.get("required", []))

        for name, prop_schema in properties.items():
            if name in required or self.faker.pybool():
                result[name] = self._generate(prop_schema, replace, depth + 1)

        for pattern, value_schema in schema.get("patternProperties", {}).items():
            for _ in range(self.random.randint(0, self.max_items)):
                key = self._from_regex(pattern, 0, None)
                if key is not None and key not in result:
                    result[key] = self._generate(value_schema, replace, depth + 1)

        extra = schema.get("additionalProperties")
        if not properties and extra not in (None, False):
            for _ in range(self.random.randint(0, self.max_items)):
                key = self.faker.pystr(min_chars=1, max_chars=10)
                result.setdefault(key, self._generate(extra, replace, depth + 1))

        return result

    def _array(self, schema: Dict[str, Any], replace, depth: int) -> List[Any]:
        low = int(schema.get("minItems", 0))
        high = int(schema.get("maxItems", low + self.max_items))
        if depth >= MAX_DEPTH:
            high = low
        items = schema.get("items", {})
        return [self._generate(items, replace, depth + 1) for _ in range(self.random.randint(low, max(low, high)))]

    def _string(self, schema: Dict[str, Any], constraints: Constraints) -> str:
        low = int(schema.get("minLength", 0))
        high = schema.get("maxLength")
        high = int(high) if high is not None else None

        if constraints.regex and not constraints.regex.invert:
            value = self._from_regex(constraints.regex.pattern, low, high)
            if value is not None:
                return value

        if constraints.formats:
            value = self._formatted(schema.get("format", "").lower(), low, high)
            if value is not None and len(value) >= low and (high is None or len(value) <= high):
                return value

        value = self._plain(low, high)
        if constraints.regex and constraints.regex.invert:
            for _ in range(self.regex_attempts):
                if not self._search(constraints.regex.pattern, value):
                    break
                value = self._plain(low, high)
        return value

    def _plain(self, low: int, high: Optional[int], chars: str = PLAIN_CHARS) -> str:
        if high is None:
            high = low + 20
        length = self.random.randint(low, max(low, high))
        return "".join(self.random.choices(chars, k=length))

    def _formatted(self, fmt: str, low: int, high: Optional[int]) -> Optional[str]:
        faker = self.faker
        if fmt in ("email", "idn-email"):
            return faker.email()
        if fmt in ("uuid", "guid"):
            return str(faker.uuid4())
        if fmt == "date":
            return faker.date()
        if fmt in ("date-time", "iso-date"):
            return faker.iso8601()
        if fmt == "time":
            return faker.time()
        if fmt in ("uri", "url", "uri-reference", "iri"):
            return faker.url()
        if fmt in ("hostname", "idn-hostname"):
            return faker.domain_name()
        if fmt in ("ipv4", "ip"):
            return faker.ipv4()
        if fmt == "ipv6":
            return faker.ipv6()
        if fmt in ("byte", "base64"):
            return base64.b64encode(self._bytes(0, 32)).decode("ascii")
        if fmt in ("data-uri", "datauri"):
            return "data:text/plain;base64," + base64.b64encode(self._bytes(1, 32)).decode("ascii")
        if fmt == "token":
            return self._plain(max(low, 1), high, TOKEN_CHARS)
        if fmt == "hex":
            return self._plain(max(low, 1), high, string.hexdigits.lower())
        return None

    def _binary(self, schema: Dict[str, Any]) -> bytes:
        low = int(schema.get("minLength", 0))
        high = schema.get("maxLength")
        return self._bytes(low, int(high) if high is not None else low + 64)

    def _bytes(self, low: int, high: int) -> bytes:
        return self.faker.binary(length=self.random.randint(low, max(low, high)))

    def _integer(self, schema: Dict[str, Any]) -> int:
        low, high = self._bounds(schema, 1)
        value = self.random.randint(int(low), int(high))
        step = schema.get("multipleOf")
        if isinstance(step, int) and step > 0:
            value -= value % step
            if value < low:
                value += step
        return value

    def _number(self, schema: Dict[str, Any]) -> float:
        low, high = self._bounds(schema, 1e-6)
        return self.random.uniform(low, high)

    def _bounds(self, schema: Dict[str, Any], epsilon):
        low = schema.get("minimum")
        high = schema.get("maximum")

        exclusive_low = schema.get("exclusiveMinimum")
        if isinstance(exclusive_low, bool):
            if exclusive_low and low is not None:
                low += epsilon
        elif exclusive_low is not None:
            low = exclusive_low + epsilon if low is None else max(low, exclusive_low + epsilon)

        exclusive_high = schema.get("exclusiveMaximum")
        if isinstance(exclusive_high, bool):
            if exclusive_high and high is not None:
                high -= epsilon
        elif exclusive_high is not None:
            high = exclusive_high - epsilon if high is None else min(high, exclusive_high - epsilon)

        if low is None and high is None:
            low, high = -1000, 1000
        elif low is None:
            low = high - 1000
        elif high is None:
            high = low + 1000
        if epsilon == 1:
            low, high = int(-(-low // 1)), int(high // 1)
        return low, max(low, high)

    def _any(self) -> Any:
        choice = self.random.randint(0, 2)
        if choice == 0:
            return self._plain(0, 10)
        if choice == 1:
            return self.random.randint(-1000, 1000)
        return self.faker.pybool()

    def _from_regex(self, pattern: str, low: int, high: Optional[int]) -> Optional[str]:
        value = None
        for _ in range(self.regex_attempts):
            try:
                value = self._xeger.xeger(pattern)
            except (re.error, KeyError, ValueError) as e:
                # lookarounds and similar constructs have no generator
                logger.warning(f"Ignoring unsupported pattern {pattern!r}: {e}")
                return None
            if len(value) >= low and (high is None or len(value) <= high):
                return value
        return value

    @staticmethod
    def _search(pattern: str, value: str) -> bool:
        try:
            return re.search(pattern, value) is not None
        except re.error:
            return False


class JsonSchemaAdapter:
    """Schema collaborator: describe, validate and synthesize JSON Schema values."""

    def __init__(self, synthesizer: Optional[ValueSynthesizer] = None):
        self.synthesizer = synthesizer or ValueSynthesizer()

    def describe(self, schema: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Human-readable shape of a schema."""
        return copy.deepcopy(schema) if schema is not None else {}

    def validate(self, value: Any, schema: Optional[Dict[str, Any]]) -> Optional[str]:
        """
        Validate a value.

        Returns:
            None when valid, otherwise the most relevant error message
        """
        if not schema:
            return None
        error = best_match(FuzzValidator(schema).iter_errors(value))
        if error is None:
            return None
        location = ".".join(str(part) for part in error.absolute_path)
        return f'"{location}" {error.message}' if location else error.message

    def synthesize(self, schema: Optional[Dict[str, Any]], replace: Optional[ReplaceHook] = None) -> Any:
        return self.synthesizer.synthesize(schema, replace=replace)
