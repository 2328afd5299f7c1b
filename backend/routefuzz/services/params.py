"""
Path parameter classification and encoding.

Templates use `{name}`, `{name?}`, `{name*}` and `{name*N}` tokens; Starlette
`{name:path}` convertors count as wildcards. Wildcard values are split into
URL segments whose decoded concatenation is the original value.
"""
import math
import random
import re
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import quote, unquote

from routefuzz.models import ParamSpec

# characters encodeURIComponent leaves alone besides alphanumerics
URI_COMPONENT_SAFE = "-_.!~*'()"

TOKEN_PATTERN = r"\{%s(?P<suffix>\?|\*(?P<count>\d+)?|:(?P<convertor>\w+))?\}"
NAME_PATTERN = re.compile(r"\{(\w+)[^}]*\}")
MALFORMED_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")

TOKEN_CHARS = frozenset("!#$%&'*+-.^_`|~0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ")
COOKIE_OCTETS = frozenset(
    [chr(0x21)]
    + [chr(code) for code in range(0x23, 0x2C)]
    + [chr(code) for code in range(0x2D, 0x3B)]
    + [chr(code) for code in range(0x3C, 0x5C)]
    + [chr(code) for code in range(0x5D, 0x7F)]
)
LENIENT_COOKIE_FORBIDDEN = re.compile(r'[\x00-\x1f\x7f";,]')


def param_names(path: str) -> List[str]:
    """Declared parameter names of a path template, in order, without duplicates."""
    return list(dict.fromkeys(NAME_PATTERN.findall(path)))


def token_regex(name: str) -> re.Pattern:
    return re.compile(TOKEN_PATTERN % re.escape(name))


def default_param_schema(spec: ParamSpec) -> Dict[str, Any]:
    """Validation used when the route declares none for a parameter."""
    if spec.wildcard and spec.fixed_count:
        # enough characters to split into `count` non-empty segments
        return {"type": "string", "minLength": spec.fixed_count * 3}
    if spec.wildcard or spec.optional:
        return {"type": "string"}
    return {"type": "string", "minLength": 1}


def classify_param(path: str, name: str, validation: Optional[Dict[str, Any]] = None) -> ParamSpec:
    """
    Classify one parameter of a path template.

    Args:
        path: Route path template
        name: Parameter name
        validation: Parameter schema declared by the route, if any

    Returns:
        ParamSpec with a default validation when none was declared
    """
    match = token_regex(name).search(path)
    if not match:
        raise ValueError(f"Parameter {name} not found in path {path}")

    suffix = match.group("suffix") or ""
    convertor = match.group("convertor")
    count = int(match.group("count")) if match.group("count") else None

    spec = ParamSpec(
        name=name,
        wildcard=suffix.startswith("*") or convertor == "path",
        fixed_count=count or None,
        optional=suffix == "?",
    )
    return replace(spec, validation=validation if validation is not None else default_param_schema(spec))


def classify_params(
    path: str,
    names: Iterable[str],
    validation: Optional[Dict[str, Any]] = None,
) -> Dict[str, ParamSpec]:
    """Classify every declared parameter; `validation` is the route's params object schema."""
    properties = (validation or {}).get("properties", {})
    return {
        name: classify_param(path, name, properties.get(name))
        for name in dict.fromkeys(names)
    }


def params_schema(specs: Dict[str, ParamSpec]) -> Dict[str, Any]:
    """Object schema synthesizing all parameters of a route."""
    return {
        "type": "object",
        "properties": {name: spec.validation for name, spec in specs.items()},
        "required": [name for name, spec in specs.items() if not spec.allows_empty],
    }


def encode_component(value: str) -> str:
    """Percent-encode like encodeURIComponent."""
    return quote(value, safe=URI_COMPONENT_SAFE)


def decode_component(value: str) -> str:
    """Percent-decode, returning the raw value when the encoding is malformed."""
    if MALFORMED_ESCAPE.search(value):
        return value
    try:
        return unquote(value, errors="strict")
    except UnicodeDecodeError:
        return value


def stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def split_segments(value: str, count: Optional[int] = None, rng: Optional[random.Random] = None) -> str:
    """
    Split a decoded value into `count` non-empty encoded segments joined by "/".

    Args:
        value: Raw (decoded) value
        count: Number of segments; random when omitted
        rng: Random source

    Returns:
        Encoded segments joined by "/"
    """
    rng = rng or random
    length = len(value)
    if length == 0:
        return ""

    if count is None:
        count = math.ceil(rng.random() * length / 3)
    count = max(1, min(count, length))

    parts = []
    remaining = length
    for left in range(count, 0, -1):
        if left == 1:
            size = remaining
        else:
            # one character stays reserved for each later segment
            available = remaining - (left - 1)
            size = math.ceil(rng.random() * available) or 1
            if (remaining - size) // (left - 1) < 2:
                size = max(1, remaining - 2 * (left - 1))
        parts.append(value[:size])
        value = value[size:]
        remaining -= size

    return "/".join(encode_component(part) for part in parts)


def encode_param(value: Any, spec: ParamSpec, rng: Optional[random.Random] = None) -> str:
    """Decode a generated value, then encode it as one segment or split it for wildcards."""
    value = decode_component(stringify(value))

    if not spec.wildcard:
        return encode_component(value)

    if spec.fixed_count:
        parts = value.split("/")
        if len(parts) == spec.fixed_count and all(parts):
            return "/".join(encode_component(part) for part in parts)

    return split_segments(value, spec.fixed_count, rng)


def fill_path(path: str, params: Optional[Dict[str, str]]) -> str:
    """Substitute encoded parameter values into a path template."""
    for name, value in (params or {}).items():
        path = token_regex(name).sub(lambda _match, value=value: value, path, count=1)
    return path


def sanitize_cookie(name: str, value: Any, strict: bool = True) -> Tuple[str, str]:
    """
    Strip header-injection characters from a cookie.

    Strict mode keeps only RFC 6265 cookie-octets in the value; lenient mode
    removes control characters, double quotes, semicolons and commas.
    """
    name = "".join(char for char in name if char in TOKEN_CHARS)
    value = stringify(value)
    if strict:
        value = "".join(char for char in value if char in COOKIE_OCTETS)
    else:
        value = LENIENT_COOKIE_FORBIDDEN.sub("", value)
    return name, value
