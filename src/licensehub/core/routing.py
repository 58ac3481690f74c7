"""Route module: one object per group of plain routes; routes are attached to it."""
from __future__ import annotations

from typing import Any, Callable

from licensehub.core.app import Application
from licensehub.core.module import Module


class HttpModule(Module):
    """
    HTTP module: name + routes, no commands or queries.
    Attach via app.register(module). Similar to include_router in FastAPI.
    """

    def __init__(self, name: str, prefix: str | None = None) -> None:
        self.name = name
        self.prefix = prefix if prefix is not None else f"/{name}"
        self._routes: list[tuple[str, Any, list[str], bool]] = []

    def route(
        self,
        path: str,
        endpoint: Callable[..., Any],
        methods: list[str] | None = None,
        *,
        public: bool = False,
    ) -> HttpModule:
        """Add a route. path without leading slash is under the module prefix."""
        p = path if path.startswith("/") else f"/{path}"
        self._routes.append((p, endpoint, methods or ["GET"], public))
        return self

    def register_into(self, app: Application) -> None:
        for path, endpoint, methods, public in self._routes:
            full_path = (self.prefix.rstrip("/") + path) or "/"
            app.add_route(full_path, endpoint, methods, public=public, openapi_tags=[self.name])
