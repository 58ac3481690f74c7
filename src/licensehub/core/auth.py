"""Shared-secret authentication middleware for /api routes."""
from __future__ import annotations

import hmac
import logging

from starlette.requests import Request

from licensehub.core.app import error_response
from licensehub.core.errors import AuthError, ConfigError
from licensehub.core.responses import Response

logger = logging.getLogger(__name__)

API_KEY_HEADER = "x-api-key"
BEARER_PREFIX = "Bearer "

SECURITY_SCHEME = {"type": "apiKey", "in": "header", "name": API_KEY_HEADER}


def extract_token(request: Request) -> str | None:
    """Token from ``x-api-key`` or ``Authorization: Bearer``; the bearer header wins when both are sent."""
    token = request.headers.get(API_KEY_HEADER)
    authorization = request.headers.get("authorization", "")
    if authorization.startswith(BEARER_PREFIX):
        token = authorization[len(BEARER_PREFIX):]
    if token is None:
        return None
    return token.strip() or None


class ApiKeyAuth:
    """Request middleware: None to continue, an error response to stop before any store access."""

    def __init__(self, api_key: str) -> None:
        self._api_key = api_key

    def __call__(self, request: Request) -> Response | None:
        if not self._api_key:
            logger.error("Rejecting %s %s: no API key configured", request.method, request.url.path)
            return error_response(ConfigError("Server API key is not configured"))
        token = extract_token(request)
        if token is None or not hmac.compare_digest(token.encode(), self._api_key.encode()):
            return error_response(AuthError("Unauthorized"))
        return None
