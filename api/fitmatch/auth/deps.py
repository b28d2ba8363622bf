"""
Authentication dependencies for FastAPI.

Routes receive an already-authenticated user id from a Bearer access token.
Everything past this point treats that id as trusted input.
"""

import logging
import uuid
from typing import Any

from fastapi import Header, HTTPException

from fitmatch import config
from fitmatch.auth.security import decode_access_token

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Raised when the Authorization header cannot be used."""

    def __init__(self, reason: str, detail: str = "unauthorized"):
        self.reason = reason
        self.detail = detail
        self.trace_id = str(uuid.uuid4())
        super().__init__(detail)


def _unauthorized(message: str, reason: str, trace_id: str) -> HTTPException:
    detail: dict[str, Any] = {"message": message, "trace_id": trace_id}
    if config.DEV_MODE:
        detail["reason"] = reason
    return HTTPException(status_code=401, detail=detail)


def _extract_bearer(authorization: str | None) -> str:
    if not authorization:
        raise AuthError(reason="missing_token", detail="Authentication required")
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise AuthError(reason="malformed_token", detail="Invalid Authorization header")
    return parts[1].strip()


def get_current_user_id(authorization: str | None = Header(default=None, alias="Authorization")) -> str:
    try:
        token = _extract_bearer(authorization)
    except AuthError as e:
        logger.warning("[auth] rejected reason=%s trace_id=%s", e.reason, e.trace_id)
        raise _unauthorized(e.detail, e.reason, e.trace_id)

    trace_id = str(uuid.uuid4())
    try:
        payload = decode_access_token(token)
    except HTTPException as e:
        if e.status_code != 401:
            raise
        reason = "token_expired" if "expired" in str(e.detail).lower() else "signature_invalid"
        logger.warning("[auth] rejected reason=%s trace_id=%s", reason, trace_id)
        raise _unauthorized("unauthorized", reason, trace_id)

    user_id = str(payload.get("sub") or "").strip()
    if not user_id:
        logger.warning("[auth] rejected reason=token_missing_subject trace_id=%s", trace_id)
        raise _unauthorized("unauthorized", "token_missing_subject", trace_id)

    logger.debug("[auth] token valid sub=%s", user_id)
    return user_id
