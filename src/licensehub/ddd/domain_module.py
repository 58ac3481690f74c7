"""
DomainModule: one object per bounded context.
Describes DI bindings, commands, queries and event subscriptions.
"""
from __future__ import annotations

import json
import re
from typing import Any, Callable, Type

import pydantic
from starlette.requests import Request

from licensehub.core.app import Application
from licensehub.core.errors import InvalidJSON, ValidationError
from licensehub.core.module import Module
from licensehub.core.openapi import parameters_from_model, path_params, schema_from_model
from licensehub.core.responses import Response, ok
from licensehub.ddd.commands import Command, Query
from licensehub.domain.events import EventBus, InProcessEventDispatcher

Handler = Type[Any] | Callable[..., Any]


def _snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def _field_errors(exc: pydantic.ValidationError) -> list[dict[str, str]]:
    return [
        {"field": ".".join(str(part) for part in err["loc"]) or "body", "message": err["msg"]}
        for err in exc.errors()
    ]


def validate_message(msg_type: type[pydantic.BaseModel], payload: dict[str, Any]) -> Any:
    """Build a command/query from a raw payload; schema violations become ValidationError (400)."""
    try:
        return msg_type.model_validate(payload)
    except pydantic.ValidationError as exc:
        details = _field_errors(exc)
        first = details[0]
        raise ValidationError(f"{first['field']}: {first['message']}", details=details) from None


async def read_payload(request: Request, *, from_body: bool) -> dict[str, Any]:
    """JSON body (or query string) merged with path parameters; path parameters win."""
    if from_body:
        raw = await request.body()
        if raw.strip():
            try:
                payload = json.loads(raw)
            except ValueError:
                raise InvalidJSON("Request body is not valid JSON") from None
            if not isinstance(payload, dict):
                raise InvalidJSON("Request body must be a JSON object")
        else:
            payload = {}
    else:
        payload = dict(request.query_params)
    payload.update(request.path_params)
    return payload


class DomainModule(Module):
    """
    One object = full bounded context.
    .bind() .command() .query() .on_event()
    Register via app.register(module).

    Commands default to POST {prefix}/commands/{snake_name} and queries to
    GET {prefix}/queries/{snake_name}; pass path= (and method=) to expose them
    as resource routes instead. Path parameters are merged into the message.
    """

    def __init__(self, name: str, prefix: str | None = None) -> None:
        self.name = name
        self.prefix = prefix if prefix is not None else f"/{name}"
        self._bindings: list[tuple[Any, Type[Any]]] = []
        self._commands: list[tuple[Type[Command], Handler, str | None, str]] = []
        self._queries: list[tuple[Type[Query], Handler, str | None, str]] = []
        self._event_handlers: list[tuple[type, Any]] = []

    def bind(self, interface: Any, impl: Type[Any]) -> DomainModule:
        """Register interface → implementation for DI (stores, domain services)."""
        self._bindings.append((interface, impl))
        return self

    def command(
        self,
        cmd_type: Type[Command],
        handler: Handler,
        *,
        path: str | None = None,
        method: str = "POST",
    ) -> DomainModule:
        self._commands.append((cmd_type, handler, path, method))
        return self

    def query(
        self,
        query_type: Type[Query],
        handler: Handler,
        *,
        path: str | None = None,
        method: str = "GET",
    ) -> DomainModule:
        self._queries.append((query_type, handler, path, method))
        return self

    def on_event(self, event_type: type, handler: Any) -> DomainModule:
        self._event_handlers.append((event_type, handler))
        return self

    def _full_path(self, path: str | None, kind: str, msg_type: type) -> str:
        base = self.prefix.rstrip("/")
        if path is None:
            return f"{base}/{kind}/{_snake(msg_type.__name__)}"
        return base + (path if path.startswith("/") else f"/{path}")

    def register_into(self, app: Application) -> None:
        container = app.container

        for iface, impl in self._bindings:
            if not container.has(impl):
                container.register_class(impl)
            if iface is not impl:
                container.register(iface, lambda c=container, i=impl: c.resolve(i))

        # EventBus: reuse one registered by an earlier module, else default in-process
        try:
            event_bus = container.resolve(EventBus)
        except KeyError:
            event_bus = InProcessEventDispatcher()
            container.register_instance(EventBus, event_bus)
            container.register_instance(InProcessEventDispatcher, event_bus)
        for event_type, handler in self._event_handlers:
            event_bus.subscribe(event_type, handler)

        for cmd_type, handler, path, method in self._commands:
            if isinstance(handler, type):
                container.register_class(handler)
            full_path = self._full_path(path, "commands", cmd_type)
            app.add_route(
                full_path,
                self._make_endpoint(cmd_type, handler, container, from_body=True),
                methods=[method],
                summary=(cmd_type.__doc__ or "").strip() or None,
                openapi_body_schema=schema_from_model(cmd_type),
                openapi_tags=[self.name],
            )

        for query_type, handler, path, method in self._queries:
            if isinstance(handler, type):
                container.register_class(handler)
            full_path = self._full_path(path, "queries", query_type)
            app.add_route(
                full_path,
                self._make_endpoint(query_type, handler, container, from_body=method != "GET"),
                methods=[method],
                summary=(query_type.__doc__ or "").strip() or None,
                openapi_parameters=parameters_from_model(
                    query_type, exclude=tuple(path_params(full_path))
                ),
                openapi_tags=[self.name],
            )

    def _make_endpoint(
        self,
        msg_type: Type[Command] | Type[Query],
        handler: Handler,
        container: Any,
        *,
        from_body: bool,
    ) -> Callable:
        async def endpoint(request: Request) -> Response:
            payload = await read_payload(request, from_body=from_body)
            message = validate_message(msg_type, payload)
            h = container.resolve(handler) if isinstance(handler, type) else handler
            result = await self._call_handler(h, message)
            return ok(result)

        return endpoint

    async def _call_handler(self, handler: Any, payload: Any) -> Any:
        result = handler(payload)
        if hasattr(result, "__await__"):
            return await result
        return result
