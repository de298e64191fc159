"""Domain errors raised by the engine services.

Services raise these; the HTTP layer renders them through a single
exception handler registered in app/main.py.  Each class carries the
status code and a stable ``error_code`` so callers can branch on the
category (an "already enrolled" conflict is not the same thing as a
missing enrollment).
"""

from __future__ import annotations

from typing import Any


class EngineError(Exception):
    status_code = 500
    error_code = "ENGINE_ERROR"

    def __init__(self, detail: str, **extra: Any) -> None:
        super().__init__(detail)
        self.detail = detail
        self.extra = extra


class ValidationError(EngineError):
    """Rejected input; nothing was persisted."""

    status_code = 422
    error_code = "VALIDATION_FAILED"


class NotFoundError(EngineError):
    status_code = 404
    error_code = "NOT_FOUND"


class ConflictError(EngineError):
    status_code = 409
    error_code = "CONFLICT"


class CertificateNumberTakenError(ConflictError):
    """Another issuance claimed the same number first; safe to retry."""

    error_code = "CERTIFICATE_NUMBER_TAKEN"


class EligibilityDeniedError(EngineError):
    """The learner has not met the exam gate.  An expected outcome."""

    status_code = 403
    error_code = "EXAM_NOT_ELIGIBLE"
