from typing import Any, Optional


class PayrollError(ValueError):
    """Expected, user-correctable rejection of a request.

    ``result`` feeds the audit trail: ``denied`` marks a policy decision,
    ``failure`` anything else.
    """

    code = "BAD_REQUEST"
    status_code = 400
    result = "failure"

    def __init__(self, message: str, *, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationFailed(PayrollError):
    code = "VALIDATION_ERROR"

    def __init__(self, errors: list[dict[str, str]], message: str = "Validation error"):
        summary = ", ".join(f"{e['field']}: {e['message']}" for e in errors)
        super().__init__(f"{message}: {summary}" if summary else message, details={"errors": errors})
        self.errors = errors


class Unauthenticated(PayrollError):
    code = "UNAUTHORIZED"
    status_code = 401


class PermissionDenied(PayrollError):
    code = "PERMISSION_DENIED"
    status_code = 403
    result = "denied"

    def __init__(self, message: str, *, reason: str = "insufficient_permissions", details=None):
        super().__init__(message, details={"reason": reason, **(details or {})})
        self.reason = reason


class NotFound(PayrollError):
    code = "NOT_FOUND"
    status_code = 404


class InvalidStatusTransition(PayrollError):
    code = "INVALID_STATUS_TRANSITION"

    def __init__(self, current_status: str, requested_status: str):
        super().__init__(
            f"Invalid status transition from {current_status} to {requested_status}",
            details={"current_status": current_status, "requested_status": requested_status},
        )
        self.current_status = current_status
        self.requested_status = requested_status


class InvalidStatus(PayrollError):
    code = "INVALID_STATUS"


class ProcessedPayrunProtection(PayrollError):
    code = "PROCESSED_PAYRUN_PROTECTION"
    result = "denied"


class DuplicatePayItem(PayrollError):
    code = "DUPLICATE_PAY_ITEM"


class MissingTenantContext(PayrollError):
    code = "MISSING_TENANT_CONTEXT"


class MissingPayGroup(PayrollError):
    code = "MISSING_PAY_GROUP"


class SelfDeleteForbidden(PayrollError):
    code = "SELF_DELETE_FORBIDDEN"


class IntegrationError(PayrollError):
    code = "INTEGRATION_ERROR"
    status_code = 502
