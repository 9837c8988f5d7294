"""
Pydantic models for checkout input validation.

Everything the shopper types is validated here, at the boundary, so that
malformed input never reaches the commerce backend.
"""
from __future__ import annotations

import re
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from storefront.core.exceptions import ValidationException

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

REQUIRED_ADDRESS_FIELDS = ("address_1", "city", "postal_code", "country_code")

FIELD_MESSAGES = {
    "email": "Invalid email",
    "first_name": "First name is required",
    "last_name": "Last name is required",
    "address_1": "Address is required",
    "city": "City is required",
    "postal_code": "Postal code is required",
    "country_code": "Country is required",
    "shipping_option_id": "Select a shipping option",
    "payment_provider_id": "Select a payment method",
}


class AddressInput(BaseModel):
    """Shipping address as captured by the checkout form."""

    model_config = ConfigDict(str_strip_whitespace=True)

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    address_1: str = Field(..., min_length=1, max_length=255)
    address_2: Optional[str] = Field(None, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    postal_code: str = Field(..., min_length=1, max_length=20)
    country_code: str = Field(..., min_length=2, max_length=2)
    province: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=40)

    @field_validator("country_code")
    @classmethod
    def lower_country(cls, v: str) -> str:
        if not v.isalpha():
            raise ValueError("Country must be a two-letter code")
        return v.lower()

    @field_validator("address_2", "province", "phone", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump()


class ContactInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(..., max_length=254)

    @field_validator("email")
    @classmethod
    def email_format(cls, v: str) -> str:
        if not EMAIL_PATTERN.match(v):
            raise ValueError("Invalid email")
        return v.lower()


class CheckoutForm(BaseModel):
    """Full checkout submission: contact, address and optional selections."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str
    address: AddressInput
    shipping_option_id: Optional[str] = None
    payment_provider_id: Optional[str] = None

    @field_validator("email")
    @classmethod
    def email_format(cls, v: str) -> str:
        if not EMAIL_PATTERN.match(v):
            raise ValueError("Invalid email")
        return v.lower()


def _collect_errors(exc: ValidationError) -> dict[str, str]:
    errors: dict[str, str] = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part != "address"]
        name = loc[-1] if loc else "__root__"
        errors.setdefault(name, FIELD_MESSAGES.get(name, error.get("msg", "Invalid value")))
    return errors


def validate_address(data: Mapping[str, Any], email: str | None) -> tuple[AddressInput, str]:
    """Validate address fields and contact email, raising ValidationException."""
    errors: dict[str, str] = {}
    address: AddressInput | None = None
    contact: ContactInput | None = None

    try:
        address = AddressInput.model_validate(dict(data))
    except ValidationError as exc:
        errors.update(_collect_errors(exc))

    try:
        contact = ContactInput(email=email or "")
    except ValidationError:
        errors["email"] = FIELD_MESSAGES["email"]

    if errors or address is None or contact is None:
        first = next(iter(errors.values()), "Invalid address")
        raise ValidationException(first, errors)
    return address, contact.email


def validate_checkout_form(data: Mapping[str, Any]) -> CheckoutForm:
    """Validate a flat form submission (address fields at top level)."""
    payload = dict(data)
    address_fields = {name: payload.pop(name) for name in list(payload) if name in AddressInput.model_fields}
    payload["address"] = address_fields
    try:
        return CheckoutForm.model_validate(payload)
    except ValidationError as exc:
        errors = _collect_errors(exc)
        raise ValidationException(next(iter(errors.values()), "Invalid form"), errors) from exc


def is_address_complete(draft: Mapping[str, Any]) -> bool:
    """True once every field needed to quote shipping has a value."""
    return all(str(draft.get(name) or "").strip() for name in REQUIRED_ADDRESS_FIELDS)
