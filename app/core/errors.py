"""Engagement error taxonomy and the FastAPI handlers that render it."""

import logging
from typing import Any, Optional

from fastapi.responses import JSONResponse
from starlette.requests import Request

log = logging.getLogger("engagement-errors")


class EngagementError(Exception):
    code = "engagement_error"
    status_code = 500

    def __init__(self, message: str, *, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(EngagementError, ValueError):
    """Malformed quiz/answer input, rejected before any scoring."""
    code = "validation_error"
    status_code = 400


class NotFoundError(EngagementError):
    code = "not_found"
    status_code = 404


class QuotaExceeded(EngagementError):
    """Daily message or monthly voice/photo allowance used up. Expected and user-facing."""
    code = "quota_exceeded"
    status_code = 429


class RateLimited(QuotaExceeded):
    """Too many requests inside a short window."""
    code = "rate_limited"


class FeatureLocked(EngagementError):
    """Feature not included in the user's subscription tier."""
    code = "feature_locked"
    status_code = 403


class TransientStoreError(EngagementError):
    """A store operation kept failing after all retries."""
    code = "store_unavailable"
    status_code = 503


def _payload(exc: EngagementError) -> dict:
    return {
        "ok": False,
        "error": exc.message,
        "code": exc.code,
        "details": exc.details or None,
    }


async def engagement_error_handler(request: Request, exc: EngagementError):
    # Quota and feature denials are normal traffic
    if exc.status_code >= 500:
        log.error("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    else:
        log.info("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)

    headers = None
    if isinstance(exc, QuotaExceeded) and exc.details.get("retry_after"):
        headers = {"Retry-After": str(exc.details["retry_after"])}

    return JSONResponse(status_code=exc.status_code, content=_payload(exc), headers=headers)
