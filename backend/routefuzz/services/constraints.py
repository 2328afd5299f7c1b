"""
Constraint descriptors read from JSON Schema nodes.
"""
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Optional, Tuple


# JSON Schema / OpenAPI format -> format flag
FORMAT_FLAGS = {
    "ip": "ip",
    "ipv4": "ip",
    "ipv6": "ip",
    "data-uri": "dataUri",
    "datauri": "dataUri",
    "byte": "base64",
    "base64": "base64",
    "date": "isoDate",
    "date-time": "isoDate",
    "time": "isoDate",
    "iso-date": "isoDate",
    "uuid": "guid",
    "guid": "guid",
    "hostname": "hostname",
    "idn-hostname": "hostname",
    "uri": "uri",
    "url": "uri",
    "uri-reference": "uri",
    "iri": "uri",
    "email": "email",
    "idn-email": "email",
    "token": "token",
    "hex": "hex",
}

SUBSTITUTION_BLOCKING_FORMATS = frozenset(
    ["ip", "dataUri", "base64", "isoDate", "guid", "hostname", "uri", "email", "token", "hex"]
)


@dataclass(frozen=True)
class Regex:
    pattern: str
    invert: bool = False


@dataclass(frozen=True)
class Constraints:
    """The declared fields of a schema node the generator reads."""
    type: str = "any"
    length: Optional[int] = None
    min: Optional[float] = None
    max: Optional[float] = None
    formats: FrozenSet[str] = frozenset()
    regex: Optional[Regex] = None
    valids: Optional[Tuple[Any, ...]] = None

    def has_format(self, flag: str) -> bool:
        return flag in self.formats

    @property
    def blocks_substitution(self) -> bool:
        """True when a format flag forbids replacing the value with a corpus entry."""
        return bool(self.formats & SUBSTITUTION_BLOCKING_FORMATS)


def schema_type(schema: Dict[str, Any]) -> str:
    """Resolve the effective type of a schema node."""
    declared = schema.get("type")
    if isinstance(declared, list):
        non_null = [item for item in declared if item != "null"]
        declared = non_null[0] if non_null else "null"

    if declared is None:
        if "properties" in schema or "additionalProperties" in schema or "patternProperties" in schema:
            declared = "object"
        elif "items" in schema:
            declared = "array"
        elif any(key in schema for key in ("minLength", "maxLength", "pattern")):
            declared = "string"
        else:
            return "any"

    if declared == "string" and str(schema.get("format", "")).lower() == "binary":
        return "binary"
    return declared


def parse_constraints(schema: Optional[Dict[str, Any]]) -> Constraints:
    """
    Read constraints from a JSON Schema node.

    Args:
        schema: JSON Schema node (already $ref-resolved)

    Returns:
        Constraints descriptor
    """
    if not isinstance(schema, dict):
        return Constraints()

    kind = schema_type(schema)

    if kind in ("string", "binary"):
        low, high = schema.get("minLength"), schema.get("maxLength")
    elif kind in ("integer", "number"):
        low, high = schema.get("minimum"), schema.get("maximum")
    elif kind == "array":
        low, high = schema.get("minItems"), schema.get("maxItems")
    else:
        low = high = None

    length = None
    if kind in ("string", "binary") and low is not None and low == high:
        length = int(low)

    formats = set()
    declared_format = schema.get("format")
    if isinstance(declared_format, str):
        flag = FORMAT_FLAGS.get(declared_format.lower())
        if flag:
            formats.add(flag)

    regex = None
    if isinstance(schema.get("pattern"), str):
        regex = Regex(schema["pattern"])
    elif isinstance(schema.get("not"), dict) and isinstance(schema["not"].get("pattern"), str):
        regex = Regex(schema["not"]["pattern"], invert=True)

    valids = None
    if isinstance(schema.get("enum"), list):
        valids = tuple(schema["enum"])
    elif "const" in schema:
        valids = (schema["const"],)

    return Constraints(
        type=kind,
        length=length,
        min=low,
        max=high,
        formats=frozenset(formats),
        regex=regex,
        valids=valids,
    )
