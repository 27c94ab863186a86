"""
Domain errors.

Every failure the storefront reports to a caller is one of these. They are
business outcomes, not system faults: the API layer translates each one into a
stable response shape. Storage failures that are not business outcomes stay
`RuntimeError`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True, slots=True)
class FieldError:
    """A single field-level validation problem."""

    field: str
    message: str


class DomainError(Exception):
    """Base class for storefront business errors."""

    default_code = "DOMAIN_ERROR"

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code


class ValidationError(DomainError):
    """Malformed input. Carries field-level details."""

    default_code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        errors: Optional[List[FieldError]] = None,
        code: Optional[str] = None,
    ) -> None:
        super().__init__(message, code)
        self.errors: List[FieldError] = list(errors or [])

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, errors=[FieldError(field=field, message=message)])


class NotFoundError(DomainError):
    """A referenced record does not exist."""

    default_code = "NOT_FOUND"


class ConflictError(DomainError):
    """Uniqueness or state-precondition violation."""

    default_code = "CONFLICT"


class OutOfStockError(DomainError):
    """No available license of the requested type."""

    default_code = "OUT_OF_STOCK"

    def __init__(self, license_type: str, message: Optional[str] = None) -> None:
        super().__init__(message or "License type not available")
        self.license_type = license_type


__all__ = [
    "ConflictError",
    "DomainError",
    "FieldError",
    "NotFoundError",
    "OutOfStockError",
    "ValidationError",
]
