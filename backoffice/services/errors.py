"""Service-layer error taxonomy.

Every error is an ``HTTPException`` whose detail is the structured
``{code, message, details}`` payload rendered by ``backoffice.errors``.
"""

from __future__ import annotations

from fastapi import HTTPException


class ServiceError(HTTPException):
    status_code = 400
    code = "error"

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details
        super().__init__(
            status_code=self.status_code,
            detail={"code": self.code, "message": message, "details": details},
        )


class ValidationFailed(ServiceError):
    """Malformed or missing input."""

    status_code = 400
    code = "validation_error"


class NotFound(ServiceError):
    status_code = 404
    code = "not_found"


class Conflict(ServiceError):
    """The request is well formed but the current state forbids it."""

    status_code = 400
    code = "conflict"


class RequiresForce(Conflict):
    """An overridable eligibility rule blocked the request.

    Callers re-submit with ``force=true`` instead of treating it as terminal.
    """

    code = "requires_force"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, {**(details or {}), "requires_force": True})


class Forbidden(ServiceError):
    status_code = 403
    code = "forbidden"


class Unauthorized(ServiceError):
    status_code = 401
    code = "unauthorized"


class BillingProviderError(ServiceError):
    """The billing provider rejected or failed a call."""

    status_code = 502
    code = "billing_provider_error"

    def __init__(self, message: str, provider_message: str | None = None, details: dict | None = None):
        self.provider_message = provider_message
        payload = dict(details or {})
        payload["provider_message"] = provider_message
        super().__init__(message, payload)
