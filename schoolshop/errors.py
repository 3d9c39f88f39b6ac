from __future__ import annotations

from typing import Any


class ServiceError(RuntimeError):
    status_code: int = 500
    code: str = "error"

    def __init__(
        self,
        *,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"detail": self.message, "code": self.code}
        payload.update(self.details)
        return payload


class NotFoundError(ServiceError):
    status_code = 404
    code = "not_found"


class ForbiddenError(ServiceError):
    status_code = 403
    code = "forbidden"


class InvalidInputError(ServiceError):
    status_code = 400
    code = "invalid_input"

    def __init__(self, *, message: str, field: str | None = None, **kwargs: Any) -> None:
        details = dict(kwargs.pop("details", None) or {})
        if field is not None:
            details["field"] = field
        super().__init__(message=message, details=details, **kwargs)
        self.field = field


# Cost values that cannot be parsed surface under this name.
ValidationError = InvalidInputError


class InvalidStateError(ServiceError):
    status_code = 409
    code = "invalid_state"


class AlreadyExistsError(ServiceError):
    status_code = 409
    code = "already_exists"


class AlreadyProvisionedError(AlreadyExistsError):
    code = "already_provisioned"


class UpstreamFailureError(ServiceError):
    status_code = 502
    code = "upstream_failure"
    retryable = False

    def __init__(
        self,
        *,
        message: str,
        upstream_status: int | None = None,
        field_errors: list[dict[str, Any]] | None = None,
        status_code: int | None = None,
        product_gid: str | None = None,
    ) -> None:
        details: dict[str, Any] = {}
        if upstream_status is not None:
            details["upstreamStatus"] = upstream_status
        if field_errors:
            details["userErrors"] = field_errors
        if product_gid:
            # Remote object that exists even though the call as a whole failed.
            details["productGid"] = product_gid
        details["retryable"] = self.retryable
        super().__init__(message=message, status_code=status_code, details=details)
        self.upstream_status = upstream_status
        self.field_errors = list(field_errors or [])
        self.product_gid = product_gid


class UpstreamTimeoutError(UpstreamFailureError):
    status_code = 504
    code = "timeout"
    retryable = True
