"""
Domain: Customer (buyer) records.

A customer is identified by email; there is exactly one record per email.
Customers are created lazily at their first purchase (or explicit
registration) and are never mutated afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from .errors import FieldError, ValidationError
from .time import require_utc_timestamp


def normalize_email(email: str) -> str:
    """Emails are compared trimmed and case-insensitively."""

    return (email or "").strip().lower()


def validate_customer_fields(email: str, name: str) -> tuple[str, str]:
    """
    Validate and normalize customer input.

    Returns:
        (normalized_email, trimmed_name)
    """

    errors = []
    clean_email = normalize_email(email)
    local, _, domain = clean_email.partition("@")
    if not local or "." not in domain or " " in clean_email:
        errors.append(FieldError("customerEmail", "Please enter a valid email address"))

    clean_name = (name or "").strip()
    if not clean_name:
        errors.append(FieldError("customerName", "Please enter your name"))

    if errors:
        raise ValidationError("Invalid customer data", errors=errors)
    return clean_email, clean_name


@dataclass(frozen=True, slots=True)
class Customer:
    customer_id: int
    email: str
    name: str
    created_at: datetime

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
