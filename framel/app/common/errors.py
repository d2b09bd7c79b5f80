from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class FramelError(Exception):
    """Raise to return a consistent JSON error response."""

    status_code: int
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:
        return self.message

    def to_dict(self, request_id: str | None = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details or {},
                "request_id": request_id,
            }
        }
        return payload


class Unauthenticated(FramelError):
    def __init__(self, message: str = "Authentication required", details: Optional[Dict[str, Any]] = None):
        super().__init__(401, "unauthenticated", message, details)


class InsufficientPrivilege(FramelError):
    def __init__(self, message: str = "Admin access required", details: Optional[Dict[str, Any]] = None):
        super().__init__(403, "forbidden", message, details)


class InsufficientStock(FramelError):
    def __init__(self, available: int, requested: int):
        super().__init__(
            409,
            "insufficient_stock",
            f"Insufficient stock: requested {requested}, available {available}",
            {"available": available, "requested": requested},
        )


class InvalidStatus(FramelError):
    def __init__(self, value: Any, allowed: Any):
        super().__init__(
            400,
            "invalid_status",
            f"Invalid status: {value!r}",
            {"value": value, "allowed": sorted(allowed)},
        )


class NetworkFailure(FramelError):
    """Opaque failure surfaced from the remote API.

    `upstream_status` is None when no response was received at all
    (connection refused, timeout).
    """

    def __init__(self, message: str = "Remote API request failed", upstream_status: int | None = None):
        super().__init__(upstream_status or 502, "network_failure", message, {"upstream_status": upstream_status})
        self.upstream_status = upstream_status


class RefreshFailure(FramelError):
    def __init__(self, message: str = "Could not refresh privileges"):
        super().__init__(502, "refresh_failed", message)


class ValidationFailed(FramelError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(400, "validation_error", message, details)
