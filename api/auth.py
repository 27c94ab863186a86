"""
Request context and the authorization gate.

Every route declares the role it needs (none, customer or admin) through
`require_role`. The gate resolves a RequestContext from the request headers and
rejects the call before the handler runs.

Identity resolution is minimal; a real deployment replaces
`get_request_context` with its authentication middleware:
- `Authorization: Bearer <ADMIN_API_TOKEN>` grants the admin role
- `X-Customer-Email: <email>` identifies a customer
"""

from __future__ import annotations

import os
import secrets
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from fastapi import Depends, Header, HTTPException

from domain.customer import normalize_email


class Role(str, Enum):
    NONE = "none"
    CUSTOMER = "customer"
    ADMIN = "admin"


_RANK = {Role.NONE: 0, Role.CUSTOMER: 1, Role.ADMIN: 2}


@dataclass(frozen=True, slots=True)
class RequestContext:
    role: Role
    customer_email: Optional[str] = None

    def satisfies(self, required: Role) -> bool:
        return _RANK[self.role] >= _RANK[required]


def get_request_context(
    authorization: Optional[str] = Header(None),
    x_customer_email: Optional[str] = Header(None),
) -> RequestContext:
    email = normalize_email(x_customer_email) if x_customer_email else None

    if authorization:
        scheme, _, token = authorization.partition(" ")
        admin_token = os.getenv("ADMIN_API_TOKEN")
        if scheme.lower() == "bearer" and admin_token and secrets.compare_digest(token.strip(), admin_token):
            return RequestContext(role=Role.ADMIN, customer_email=email)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    if email:
        return RequestContext(role=Role.CUSTOMER, customer_email=email)
    return RequestContext(role=Role.NONE)


def require_role(required: Role) -> Callable[..., RequestContext]:
    """Build a dependency that admits only callers with at least `required`."""

    def gate(context: RequestContext = Depends(get_request_context)) -> RequestContext:
        if context.satisfies(required):
            return context
        if context.role == Role.NONE:
            raise HTTPException(status_code=401, detail="Authentication required")
        raise HTTPException(status_code=403, detail=f"{required.value} role required")

    return gate


__all__ = ["RequestContext", "Role", "get_request_context", "require_role"]
