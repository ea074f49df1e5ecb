"""Error taxonomy for the extraction service and its API rendering."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse


def build_error_payload(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    payload = {"error": {"code": code, "message": message}}
    if details is not None:
        payload["error"]["details"] = details
    return payload


class ExtractorError(Exception):
    """Job-level error returned synchronously to the caller."""

    status_code = 400
    code = "error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    @property
    def payload(self) -> Dict[str, Any]:
        return build_error_payload(self.code, self.message, self.details)


class QuotaExceeded(ExtractorError):
    status_code = 429
    code = "quota_exceeded"

    def __init__(self, reason: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, {"reason": reason, **(details or {})})
        self.reason = reason


class ParseError(ExtractorError):
    status_code = 400
    code = "parse_error"


class InvalidRequest(ExtractorError):
    status_code = 400
    code = "invalid_request"


class NotFound(ExtractorError):
    status_code = 404
    code = "not_found"


class NotReady(ExtractorError):
    status_code = 409
    code = "not_ready"


class Forbidden(ExtractorError):
    status_code = 403
    code = "forbidden"


class UpgradeRequired(ExtractorError):
    status_code = 403
    code = "upgrade_required"


class Unauthorized(ExtractorError):
    status_code = 401
    code = "unauthorized"


class StageError(Exception):
    """A single stage failed. Recorded on its progress entry, never raised past the orchestrator."""

    UNREACHABLE = "unreachable"
    TIMEOUT = "timeout"
    PARSE_FAILURE = "parse_failure"
    UNAVAILABLE = "unavailable"
    CANCELLED = "cancelled"

    def __init__(self, kind: str, detail: str = "", retryable: bool = False):
        super().__init__(f"{kind}: {detail}" if detail else kind)
        self.kind = kind
        self.detail = detail
        self.retryable = retryable


async def extractor_error_handler(_: Request, exc: ExtractorError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.payload)
