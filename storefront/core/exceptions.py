"""Custom exceptions for the storefront client."""
from __future__ import annotations

from typing import Any

from storefront.core.constants import CART_REVIEW_PATH

_ALREADY_COMPLETED_CODES = frozenset({"cart_completed", "cart_already_completed", "already_completed"})


def is_already_completed_message(text: str | None) -> bool:
    """Backend wording for a cart that has already been turned into an order."""
    lowered = (text or "").lower()
    return "already" in lowered and "complet" in lowered


class StorefrontException(Exception):
    """Base exception for all storefront errors."""

    def __init__(self, message: str, *args: object) -> None:
        super().__init__(message, *args)
        self.message = message


class NetworkError(StorefrontException):
    """Commerce backend unreachable or the request timed out."""

    def __init__(self, message: str, *, is_timeout: bool = False) -> None:
        super().__init__(message)
        self.is_timeout = is_timeout


class BackendError(StorefrontException):
    """Commerce backend answered with a structured failure."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        code: str | None = None,
        error_type: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.error_type = error_type
        self.payload = payload or {}

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404 or self.error_type == "not_found"

    @property
    def is_already_completed(self) -> bool:
        if self.code in _ALREADY_COMPLETED_CODES or self.error_type in _ALREADY_COMPLETED_CODES:
            return True
        return is_already_completed_message(self.message)


class ValidationException(StorefrontException):
    """Input rejected locally before any network call."""

    def __init__(self, message: str, errors: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or {}


class NoRegionAvailable(StorefrontException):
    """Backend reports no region to bind a new cart to."""

    def __init__(self) -> None:
        super().__init__("No region is configured on the commerce backend")


class EmptyCartError(StorefrontException):
    """Checkout refused because there is no cart or it has no line items."""

    def __init__(self, cart_id: str | None = None) -> None:
        super().__init__("Your cart is empty")
        self.cart_id = cart_id
        self.redirect_to = CART_REVIEW_PATH


class InvalidTransitionError(StorefrontException):
    """Checkout step attempted out of order."""

    def __init__(self, current: str | None, target: str, reason: str | None = None) -> None:
        super().__init__(reason or f"Checkout transition '{current} -> {target}' is not allowed")
        self.current = current
        self.target = target


class ConfigurationException(StorefrontException):
    """Configuration errors."""

    pass


def describe_error(error: BaseException | None) -> str:
    """Turn any failure into actionable text for the shopper."""
    if error is None:
        return "An unexpected error occurred"

    if isinstance(error, NetworkError):
        if error.is_timeout:
            return "The request took too long. Please try again."
        return "Could not reach the store server. Please check your connection and try again."

    if isinstance(error, (ValidationException, EmptyCartError, InvalidTransitionError, NoRegionAvailable)):
        return error.message

    if isinstance(error, BackendError):
        if error.status_code in (401, 403):
            return "You are not allowed to perform this action"
        if error.is_not_found:
            return "The requested resource does not exist"
        if error.message:
            return error.message
        if error.status_code == 400:
            return "The submitted data is not valid"
        return "The store server could not process the request. Please try again."

    message = getattr(error, "message", None) or str(error)
    return message or "Something failed. Please try again."
