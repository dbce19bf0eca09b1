from decimal import Decimal
from typing import Annotated, List, Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import AfterValidator, BaseModel, ConfigDict, Field


def _reject_nul(value: str) -> str:
    # Neither bcrypt nor PostgreSQL text columns accept NUL.
    if "\x00" in value:
        raise ValueError("must not contain NUL characters")
    return value


def _check_email(value: str) -> str:
    """Validate the address but keep it exactly as submitted."""
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValueError(str(exc)) from None
    return value


Text = Annotated[str, AfterValidator(_reject_nul)]
Email = Annotated[Text, AfterValidator(_check_email)]


class APIMessage(BaseModel):
    message: Text = Field(..., description="Human readable message")


class RegisterRequest(BaseModel):
    email: Email = Field(..., description="User email address, used as the login key")
    fname: Text = Field(..., description="First name")
    lname: Text = Field(..., description="Last name")
    password: Text = Field(..., min_length=1, description="Plain-text password")


class AuthRequest(BaseModel):
    email: Email = Field(..., description="User email address")
    password: Text = Field(..., description="Password")


class WriteResult(BaseModel):
    """Outcome of an INSERT/UPDATE/DELETE."""

    insert_id: Optional[int] = Field(None, description="Id of the inserted row, if any")
    affected_rows: int = Field(..., description="Number of rows written")


class ProductDescription(BaseModel):
    description: Optional[Text] = None


class ProductCreate(BaseModel):
    brand: Text = Field(..., min_length=1)
    name: Text = Field(..., min_length=1, description="Stored as the product description")
    price: Decimal = Field(..., description="Product price")


class ProductCreateRequest(BaseModel):
    product: ProductCreate


class ProductUpdateRequest(BaseModel):
    model: Text = Field(..., min_length=1, description="New product description")


class ShippingAddressCreate(BaseModel):
    name: Text = Field(..., min_length=1)
    address: Text = Field(..., min_length=1)


class ShippingRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    customer_data: ShippingAddressCreate = Field(..., alias="customerData")


class SaleAlert(BaseModel):
    subject: Text = Field(..., min_length=1)
    message: Text = Field(..., min_length=1)


class NotifyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sale_alert: List[SaleAlert] = Field(..., alias="saleAlert")


class NotifyResponse(APIMessage):
    data: List[WriteResult]
