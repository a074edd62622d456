"""
Pydantic models for API requests.

Field names follow the JSON the counter frontend sends (camelCase), exposed
as snake_case attributes through aliases.  Required values are declared
optional here and checked by the ledger, so a missing field yields the same
400 ``{"error": ...}`` response as a blank one instead of a 422.
"""

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CreateOperatorRequest(_CamelModel):
    """
    Admin request to add a counter operator.

    Attributes:
        name: Display name, also used to log in
        pin: Numeric or text PIN (stored as a bcrypt hash)
    """

    name: str | None = None
    pin: str | int | None = None


class OperatorLoginRequest(_CamelModel):
    """
    Operator login. Either ``operatorId`` or ``name`` identifies the operator.
    """

    operator_id: str | None = Field(default=None, alias="operatorId")
    name: str | None = None
    pin: str | int | None = None


class CreateCustomerRequest(_CamelModel):
    name: str | None = None
    phone: str | None = None
    email: str | None = None


class StampRequest(_CamelModel):
    """Customer reference for a new stamp: ``customerId`` wins over ``phone``."""

    customer_id: str | None = Field(default=None, alias="customerId")
    phone: str | None = None


class RedeemRequest(_CamelModel):
    customer_id: str | None = Field(default=None, alias="customerId")
    phone: str | None = None
    note: str | None = None
