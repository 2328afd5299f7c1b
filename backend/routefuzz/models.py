"""
Data model shared by the generator, the injector and the server adapters.
"""
import base64
import inspect
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, field_validator, model_validator

from routefuzz.core.config import settings


FIELDS = ("query", "payload", "params", "headers", "state")

DEFAULT_VALID_RESPONSE: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "status_code": {"type": "integer", "exclusiveMaximum": 500},
    },
    "required": ["status_code"],
}


@dataclass
class RouteSpec:
    """One route of a server route table."""
    method: str
    path: str
    validate: Dict[str, Optional[Dict[str, Any]]] = field(default_factory=dict)
    params: List[str] = field(default_factory=list)
    id: Optional[str] = None
    description: str = ""

    def validation(self, prop: str) -> Optional[Dict[str, Any]]:
        return self.validate.get(prop)


@dataclass(frozen=True)
class ParamSpec:
    """Classification of a single path parameter."""
    name: str
    wildcard: bool = False
    fixed_count: Optional[int] = None
    optional: bool = False
    validation: Optional[Dict[str, Any]] = None

    @property
    def required(self) -> bool:
        return not self.wildcard and not self.optional

    @property
    def allows_empty(self) -> bool:
        return self.optional or (self.wildcard and self.fixed_count is None)


@dataclass(frozen=True)
class FuzzRecord:
    """One fully generated test input."""
    path: str
    method: str
    query: Dict[str, Any] = field(default_factory=dict)
    payload: Any = None
    params: Optional[Dict[str, str]] = None
    headers: Optional[Dict[str, Any]] = None
    state: Optional[Dict[str, str]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Record as a dictionary, absent fields dropped."""
        data = {"path": self.path, "method": self.method, "query": self.query}
        for prop in ("payload", "params", "headers", "state"):
            value = getattr(self, prop)
            if value is not None:
                data[prop] = value
        return data

    def to_jsonable(self) -> Dict[str, Any]:
        """Like to_dict, with bytes replaced by {"$binary": <base64>}."""
        return _jsonable(self.to_dict())


def _jsonable(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return {"$binary": base64.b64encode(bytes(value)).decode("ascii")}
    if isinstance(value, dict):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


@dataclass
class InjectRequest:
    """Request handed to Server.inject."""
    url: str
    method: str
    payload: Any = None
    headers: Dict[str, Any] = field(default_factory=dict)


@dataclass
class InjectResponse:
    """Response returned by Server.inject."""
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    payload: str = ""
    result: Any = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status_code": self.status_code,
            "headers": dict(self.headers),
            "payload": self.payload,
            "result": self.result,
        }


class FuzzOptions(BaseModel):
    """Options for a fuzzing run."""

    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    automate: bool = True
    validate_data: bool = False
    permutations: PositiveInt = Field(default_factory=lambda: settings.DEFAULT_PERMUTATIONS)
    valid_response: Dict[str, Any] = Field(default_factory=lambda: dict(DEFAULT_VALID_RESPONSE))
    synth_options: Dict[str, Any] = Field(default_factory=dict)
    use_payloads: Optional[List[str]] = None
    regex_attempts: PositiveInt = Field(default_factory=lambda: settings.REGEX_ATTEMPTS)
    replace: Optional[Callable[..., Any]] = None
    inject_replace: Optional[Callable[..., Any]] = None
    it: Optional[Callable[..., Any]] = None
    describe: Optional[Callable[..., Any]] = None

    @field_validator("use_payloads", mode="before")
    @classmethod
    def _single_payload(cls, value):
        if isinstance(value, str):
            return [value]
        return value

    @model_validator(mode="after")
    def _automation_callbacks(self):
        if not self.automate:
            return self
        missing = [name for name in ("it", "describe") if getattr(self, name) is None]
        if missing:
            raise ValueError(f"automate requires {' and '.join(missing)} callbacks")
        for name in ("it", "describe"):
            if not accepts_positional(getattr(self, name), 2):
                raise ValueError(f"{name} must accept 2 positional arguments (title, fn)")
        return self

    @property
    def seed(self) -> Optional[int]:
        return self.synth_options.get("seed")


def accepts_positional(func: Callable[..., Any], count: int) -> bool:
    """True when func can be called with `count` positional arguments."""
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return True
    try:
        signature.bind(*([None] * count))
    except TypeError:
        return False
    return True
