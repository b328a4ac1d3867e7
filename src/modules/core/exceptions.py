"""Domain error base class and the project-wide DRF exception handler.

Services raise subclasses of :class:`DomainError`; they never import DRF.
The handler converts them (and pydantic validation errors coming from DTO
construction) into DRF exceptions and renders everything through
``drf-standardized-errors``::

    {"type": "client_error",
     "errors": [{"code": "order_not_found", "detail": "...", "attr": null}]}
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog
from drf_standardized_errors.handler import exception_handler as standardized_handler
from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError
from rest_framework.response import Response

logger = structlog.get_logger(__name__)


class DomainError(Exception):
    """Business rule violation raised by the service layer."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "domain_error"
    default_detail: str = "The request violates a business rule."

    def __init__(self, detail: Optional[str] = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_detail = "Resource not found."


class ConflictError(DomainError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"
    default_detail = "Resource already exists."


class ForbiddenError(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    default_detail = "You do not have permission to perform this action."


class DomainAPIException(APIException):
    """Carries a ``DomainError`` through DRF's exception machinery."""

    def __init__(self, error: DomainError) -> None:
        self.status_code = error.status_code
        super().__init__(detail=error.detail, code=error.code)


def pydantic_errors_to_drf(exc: PydanticValidationError) -> ValidationError:
    errors: Dict[str, List[str]] = {}
    for error in exc.errors():
        attr = ".".join(str(part) for part in error.get("loc", ())) or "non_field_errors"
        message = str(error.get("msg", "Invalid value."))
        errors.setdefault(attr, []).append(message.removeprefix("Value error, "))
    return ValidationError(errors)


def api_exception_handler(exc: Exception, context: Dict[str, Any]) -> Optional[Response]:
    if isinstance(exc, DomainError):
        view = context.get("view")
        logger.info(
            "api.domain_error",
            code=exc.code,
            status_code=exc.status_code,
            view=view.__class__.__name__ if view else None,
        )
        exc = DomainAPIException(exc)
    elif isinstance(exc, PydanticValidationError):
        exc = pydantic_errors_to_drf(exc)
    return standardized_handler(exc, context)
