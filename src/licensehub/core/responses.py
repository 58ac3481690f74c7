"""JSON responses for endpoints. Decimals are rendered as strings so money never round-trips through float."""
from __future__ import annotations

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from starlette.responses import JSONResponse as _StarletteJSONResponse
from starlette.responses import PlainTextResponse, Response

__all__ = ["JSONResponse", "PlainTextResponse", "Response", "ok", "dumps"]


def _default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def dumps(content: Any) -> bytes:
    return json.dumps(content, ensure_ascii=False, default=_default, separators=(",", ":")).encode("utf-8")


class JSONResponse(_StarletteJSONResponse):
    """Starlette JSONResponse that understands Decimal, date and datetime."""

    def render(self, content: Any) -> bytes:
        return dumps(content)


def ok(result: Any = None, status_code: int = 200) -> JSONResponse:
    """Success envelope: dict results are merged next to ``ok``, anything else goes under ``result``."""
    if result is None:
        body: dict[str, Any] = {"ok": True}
    elif isinstance(result, dict):
        body = {"ok": True, **result}
    else:
        body = {"ok": True, "result": result}
    return JSONResponse(body, status_code=status_code)
