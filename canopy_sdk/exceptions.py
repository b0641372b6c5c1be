"""
Exceptions for the Canopy SDK.
"""
from typing import Dict, List, Optional


class CanopyError(Exception):
    """Base exception for all Canopy errors."""
    pass


class ValidationError(CanopyError):
    """
    Raised when a call intent or request field is malformed.

    Attributes:
        errors: One entry per violated field, each ``{"field": ..., "message": ...}``
    """

    def __init__(self, message: str, errors: Optional[List[Dict[str, str]]] = None):
        self.errors = list(errors or [])
        super().__init__(message)


class MissingFieldsError(ValidationError):
    """Raised when a verification request lacks required fields."""

    def __init__(self, fields: List[str]):
        self.fields = list(fields)
        super().__init__(
            f"missing fields ({', '.join(self.fields)})",
            [{"field": name, "message": "Field required"} for name in self.fields]
        )


class ConfigurationError(CanopyError):
    """Raised when an operation needs configuration that is not present."""
    pass


class StaleCapabilityError(CanopyError):
    """Raised when a capability's expiry lies in the past."""

    def __init__(self, expiry: int, now: int):
        self.expiry = expiry
        self.now = now
        super().__init__(f"stale (expiry {expiry} < now {now})")


class SignatureRecoveryError(CanopyError):
    """Raised when a signer cannot be recovered from a signature."""
    pass


class PolicyBackendError(CanopyError):
    """Raised when a policy backend fails to load or evaluate."""
    pass


class IssuanceError(CanopyError):
    """Raised when a capability cannot be signed."""
    pass


class PolicyDeniedError(IssuanceError):
    """Raised in strict mode when the policy decision is Deny."""

    def __init__(self, reasons: Optional[List[str]] = None):
        self.reasons = list(reasons or [])
        detail = f": {'; '.join(self.reasons)}" if self.reasons else ""
        super().__init__(f"policy denied issuance{detail}")


class TransportError(CanopyError):
    """Raised when the Canopy service cannot be reached."""
    pass


class ResponseError(CanopyError):
    """Raised when the Canopy service returns an error response."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[dict] = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message)
