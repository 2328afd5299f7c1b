"""
Error taxonomy for route fuzzing.

Every error carries a short searchable code and a details dictionary so the
HTTP surface can serialize it and test failures stay readable.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Error codes."""
    ASSET_UNRECOGNIZED = "ASSET_001"
    CONFIG_INVALID = "CONFIG_001"
    SCHEMA_MISMATCH = "SCHEMA_001"
    ROUTE_NOT_FOUND = "ROUTE_001"
    RESPONSE_CONTRACT = "RESPONSE_001"


class RouteFuzzError(Exception):
    """
    Base exception with structured error information.

    Attributes:
        code: ErrorCode value
        message: Human-readable error message
        details: Additional context (route, field, value...)
    """

    code: ErrorCode = ErrorCode.CONFIG_INVALID
    http_status: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for JSON responses."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


class UnrecognizedAssetError(RouteFuzzError):
    """Unknown corpus key, category or name."""
    code = ErrorCode.ASSET_UNRECOGNIZED
    http_status = 400


class ConfigurationError(RouteFuzzError):
    """Malformed generation options."""
    code = ErrorCode.CONFIG_INVALID
    http_status = 422


class SchemaMismatchError(RouteFuzzError):
    """Generated value failed validation against the schema it was generated from."""
    code = ErrorCode.SCHEMA_MISMATCH
    http_status = 500


class RouteNotFoundError(RouteFuzzError):
    """Explicit route lookup failed against the server route table."""
    code = ErrorCode.ROUTE_NOT_FOUND
    http_status = 404


class ResponseContractViolation(RouteFuzzError, AssertionError):
    """Injected record produced a response outside the expected contract."""
    code = ErrorCode.RESPONSE_CONTRACT


__all__ = [
    "ErrorCode",
    "RouteFuzzError",
    "UnrecognizedAssetError",
    "ConfigurationError",
    "SchemaMismatchError",
    "RouteNotFoundError",
    "ResponseContractViolation",
]
