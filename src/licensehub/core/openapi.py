"""Minimal OpenAPI 3.0 and Swagger UI: /openapi.json and /docs."""
from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

if TYPE_CHECKING:
    from licensehub.core.app import RouteSpec

_PATH_PARAM = re.compile(r"{([a-zA-Z_][a-zA-Z0-9_]*)(?::[a-z]+)?}")


def _path_to_openapi(path: str) -> str:
    """Starlette converters are not OpenAPI: {id:int} -> {id}."""
    return _PATH_PARAM.sub(r"{\1}", path)


def path_params(path: str) -> list[str]:
    return _PATH_PARAM.findall(path)


def schema_from_model(cls: type) -> dict[str, Any]:
    """JSON schema of a request model (camelCase names) so Swagger shows required fields and types."""
    if not (isinstance(cls, type) and issubclass(cls, BaseModel)):
        return {"type": "object"}
    schema = cls.model_json_schema(by_alias=True)
    schema.pop("title", None)
    return schema


def parameters_from_model(cls: type, *, exclude: tuple[str, ...] = ()) -> list[dict[str, Any]]:
    """Query parameters from a request model (for GET queries)."""
    if not (isinstance(cls, type) and issubclass(cls, BaseModel)):
        return []
    schema = cls.model_json_schema(by_alias=True)
    required = set(schema.get("required", ()))
    params: list[dict[str, Any]] = []
    for name, prop in schema.get("properties", {}).items():
        if name in exclude:
            continue
        prop = {k: v for k, v in prop.items() if k != "title"}
        params.append({"name": name, "in": "query", "required": name in required, "schema": prop})
    return params


def build_openapi_spec(
    routes: list[RouteSpec],
    *,
    title: str = "API",
    version: str = "0.1.0",
    security_scheme: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build the OpenAPI document from registered routes."""
    paths: dict[str, Any] = {}
    for route in routes:
        path = _path_to_openapi(route.path)
        item = paths.setdefault(path, {})
        for method in route.methods:
            method_lower = method.lower()
            op: dict[str, Any] = {
                "summary": route.summary or f"{method} {path}",
                "tags": list(route.tags) or ["default"],
                "responses": {
                    "200": {"description": "OK", "content": {"application/json": {"schema": {"type": "object"}}}},
                },
            }
            parameters = [
                {"name": p, "in": "path", "required": True, "schema": {"type": "string"}}
                for p in path_params(route.path)
            ]
            if method_lower == "get":
                parameters.extend(route.parameters)
            elif route.body_schema is not None:
                op["requestBody"] = {
                    "required": True,
                    "content": {"application/json": {"schema": route.body_schema}},
                }
            if parameters:
                op["parameters"] = parameters
            if not route.public and security_scheme is not None:
                op["security"] = [{"ApiKey": []}]
            item[method_lower] = op
    spec: dict[str, Any] = {
        "openapi": "3.0.0",
        "info": {"title": title, "version": version},
        "paths": paths,
    }
    if security_scheme is not None:
        spec["components"] = {"securitySchemes": {"ApiKey": security_scheme}}
    return spec


SWAGGER_UI_HTML = """<!DOCTYPE html>
<html>
<head>
  <title>{title}</title>
  <link rel="stylesheet" type="text/css" href="https://unpkg.com/swagger-ui-dist@5/swagger-ui.css">
</head>
<body>
  <div id="swagger-ui"></div>
  <script src="https://unpkg.com/swagger-ui-dist@5/swagger-ui-bundle.js"></script>
  <script>
    SwaggerUIBundle({{
      url: "{openapi_path}",
      dom_id: "#swagger-ui",
    }});
  </script>
</body>
</html>
"""
