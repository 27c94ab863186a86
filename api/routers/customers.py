"""
Customer API Endpoints.
"""

from typing import List

from fastapi import APIRouter, Depends

from api.auth import Role, require_role
from api.models import CustomerRequest, CustomerResponse
from repositories.customer_repository import find_or_create_customer, list_customers

router = APIRouter()


@router.get(
    "/customers",
    response_model=List[CustomerResponse],
    summary="List Customers",
    dependencies=[Depends(require_role(Role.ADMIN))],
)
def get_customers():
    return [CustomerResponse.from_domain(customer) for customer in list_customers()]


@router.post(
    "/customers",
    response_model=CustomerResponse,
    summary="Register Customer",
    description="Return the customer with this email, creating it if needed.",
)
def register_customer(request: CustomerRequest):
    return CustomerResponse.from_domain(find_or_create_customer(request.email, request.name))
