"""Errors raised by the platform client and storefront services."""

from typing import Optional

# Postgres unique_violation, reported by the data API as the error code.
UNIQUE_VIOLATION = "23505"

INVALID_CREDENTIALS = "invalid_credentials"
EMAIL_NOT_CONFIRMED = "email_not_confirmed"

INVALID_CREDENTIALS_MESSAGE = (
    "Invalid email or password. Please check your credentials and try again."
)
EMAIL_NOT_CONFIRMED_MESSAGE = (
    "Please check your email and click the confirmation link before signing in."
)
DUPLICATE_SLUG_MESSAGE = (
    "A category with this slug already exists. Please choose a different name."
)


class StorefrontError(Exception):
    """Base class for storefront errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class PlatformError(StorefrontError):
    """Error returned by the hosted data API, or a transport failure."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[str] = None,
        hint: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.details = details
        self.hint = hint
        self.status_code = status_code

    @property
    def is_unique_violation(self) -> bool:
        return self.code == UNIQUE_VIOLATION


class AuthError(PlatformError):
    """Error returned by the hosted auth API.

    ``kind`` carries the structured error code when the platform sends one
    (``invalid_credentials``, ``email_not_confirmed``, ...).
    """

    def __init__(
        self,
        message: str,
        kind: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message, code=kind, status_code=status_code)
        self.kind = kind


class DuplicateSlugError(StorefrontError):
    """A category with the same slug already exists."""

    def __init__(self, slug: str) -> None:
        super().__init__(DUPLICATE_SLUG_MESSAGE)
        self.slug = slug


class NotAuthenticatedError(StorefrontError):
    """The operation requires a signed-in session."""

    def __init__(self, message: str = "Not authenticated. Please login first.") -> None:
        super().__init__(message)


class PermissionDeniedError(StorefrontError):
    """The signed-in profile lacks the required role."""

    def __init__(self, message: str = "You don't have permission to access this page.") -> None:
        super().__init__(message)


class NotFoundError(StorefrontError):
    """A requested row does not exist or is not visible."""


class EmptyCartError(StorefrontError):
    """Checkout was attempted with an empty cart."""

    def __init__(self, message: str = "Your cart is empty") -> None:
        super().__init__(message)


class OutOfStockError(StorefrontError):
    """The requested quantity exceeds the product's inventory."""

    def __init__(self, product_name: str, available: int) -> None:
        if available <= 0:
            message = f"{product_name} is currently out of stock"
        else:
            message = f"Only {available} of {product_name} available"
        super().__init__(message)
        self.available = available


def _auth_kind(error: Exception) -> Optional[str]:
    kind = getattr(error, "kind", None)
    if kind in (INVALID_CREDENTIALS, EMAIL_NOT_CONFIRMED):
        return kind

    # Unknown or missing kind: fall back to the message text.
    message = str(error)
    if "Invalid login credentials" in message:
        return INVALID_CREDENTIALS
    if "Email not confirmed" in message:
        return EMAIL_NOT_CONFIRMED
    return None


def describe_auth_error(error: Exception, fallback: str = "Failed to sign in") -> str:
    """Turn a sign-in failure into the message shown to the user."""
    kind = _auth_kind(error)
    if kind == INVALID_CREDENTIALS:
        return INVALID_CREDENTIALS_MESSAGE
    if kind == EMAIL_NOT_CONFIRMED:
        return EMAIL_NOT_CONFIRMED_MESSAGE
    return str(error) or fallback


def describe_save_error(error: Exception, fallback: str) -> str:
    """Turn a failed save into the message shown to the user."""
    if isinstance(error, DuplicateSlugError):
        return error.message
    if isinstance(error, PlatformError) and error.is_unique_violation:
        return DUPLICATE_SLUG_MESSAGE
    return str(error) or fallback
