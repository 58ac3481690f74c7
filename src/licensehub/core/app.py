"""Application, composed from modules via app.register(module). Served as an ASGI app on Starlette."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable

from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import HTMLResponse
from starlette.routing import Route

from licensehub.core.container import Container
from licensehub.core.errors import AppError
from licensehub.core.module import Module
from licensehub.core.openapi import SWAGGER_UI_HTML, build_openapi_spec
from licensehub.core.responses import JSONResponse, Response

logger = logging.getLogger(__name__)

Endpoint = Callable[[Request], Awaitable[Response]]
# A middleware receives the request and returns None to continue or a Response to short-circuit (e.g. 401).
RequestMiddleware = Callable[[Request], Any]
Hook = Callable[[], Any]


@dataclass
class RouteSpec:
    path: str
    endpoint: Endpoint
    methods: list[str]
    public: bool = False
    body_schema: dict[str, Any] | None = None
    parameters: list[dict[str, Any]] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    summary: str | None = None


async def _maybe_await(result: Any) -> Any:
    if hasattr(result, "__await__"):
        return await result
    return result


def error_response(exc: AppError) -> JSONResponse:
    headers = {"Retry-After": "1"} if exc.status_code == 503 else None
    return JSONResponse(exc.to_dict(), status_code=exc.status_code, headers=headers)


class Application:
    """
    Application. Composed from modules via register(module).
    Itself an ASGI callable: routes, middlewares and lifespan hooks are
    collected first, the Starlette app is built on first use.
    """

    def __init__(self, config: Any = None) -> None:
        self._modules: list[Module] = []
        self._container = Container()
        self._routes: list[RouteSpec] = []
        self._middlewares: list[RequestMiddleware] = []
        self._asgi_middleware: list[Middleware] = []
        self._on_startup: list[Hook] = []
        self._on_shutdown: list[Hook] = []
        self._openapi: dict[str, Any] | None = None
        self._asgi: Starlette | None = None
        self.config = config
        if config is not None:
            self._container.register_instance(type(config), config)
            self._container.register_instance("config", config)

    def add_middleware(self, middleware: RequestMiddleware) -> Application:
        """Add a request middleware. Runs before every non-public route, in registration order."""
        self._middlewares.append(middleware)
        return self

    def add_asgi_middleware(self, cls: type, **options: Any) -> Application:
        """Wrap the whole ASGI app (e.g. Starlette's CORSMiddleware)."""
        self._asgi_middleware.append(Middleware(cls, **options))
        return self

    def register(self, module: Module) -> Application:
        """Register a module (DomainModule, HttpModule, ...). Returns self for chaining."""
        module.register_into(self)
        self._modules.append(module)
        return self

    def add_route(
        self,
        path: str,
        endpoint: Endpoint,
        methods: list[str] | None = None,
        *,
        public: bool = False,
        summary: str | None = None,
        openapi_body_schema: dict[str, Any] | None = None,
        openapi_parameters: list[dict[str, Any]] | None = None,
        openapi_tags: list[str] | None = None,
    ) -> None:
        """Add an HTTP route. public=True skips the request middlewares (auth)."""
        if self._asgi is not None:
            raise RuntimeError("routes cannot be added after the application has started")
        self._routes.append(
            RouteSpec(
                path="/" + path.lstrip("/"),
                endpoint=endpoint,
                methods=[m.upper() for m in (methods or ["GET"])],
                public=public,
                body_schema=openapi_body_schema,
                parameters=list(openapi_parameters or []),
                tags=list(openapi_tags or []),
                summary=summary,
            )
        )

    def on_startup(self, hook: Hook) -> Application:
        self._on_startup.append(hook)
        return self

    def on_shutdown(self, hook: Hook) -> Application:
        self._on_shutdown.append(hook)
        return self

    def openapi(
        self,
        *,
        title: str = "API",
        version: str = "0.1.0",
        docs_path: str = "/docs",
        openapi_path: str = "/openapi.json",
        security_scheme: dict[str, Any] | None = None,
    ) -> Application:
        """Serve GET /openapi.json and GET /docs (both public)."""
        self._openapi = {
            "title": title,
            "version": version,
            "docs_path": docs_path,
            "openapi_path": openapi_path,
            "security_scheme": security_scheme,
        }
        return self

    @property
    def container(self) -> Container:
        """DI container: registration and resolution of dependencies."""
        return self._container

    @property
    def routes(self) -> list[RouteSpec]:
        return list(self._routes)

    def _dispatch(self, route: RouteSpec) -> Endpoint:
        middlewares = [] if route.public else self._middlewares

        async def endpoint(request: Request) -> Response:
            try:
                for mw in middlewares:
                    short = await _maybe_await(mw(request))
                    if short is not None:
                        return short
                return await route.endpoint(request)
            except AppError as exc:
                if exc.status_code >= 500:
                    logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
                return error_response(exc)
            except Exception:
                logger.exception("Unhandled error in %s %s", request.method, request.url.path)
                return error_response(AppError("Server error"))

        return endpoint

    def _openapi_routes(self) -> list[Route]:
        if self._openapi is None:
            return []
        cfg = self._openapi
        spec = build_openapi_spec(
            self._routes,
            title=cfg["title"],
            version=cfg["version"],
            security_scheme=cfg["security_scheme"],
        )
        html = SWAGGER_UI_HTML.format(title=cfg["title"], openapi_path=cfg["openapi_path"])

        async def openapi_json(request: Request) -> Response:
            return JSONResponse(spec)

        async def docs(request: Request) -> Response:
            return HTMLResponse(html)

        return [
            Route(cfg["openapi_path"], openapi_json, methods=["GET"]),
            Route(cfg["docs_path"], docs, methods=["GET"]),
        ]

    @asynccontextmanager
    async def _lifespan(self, app: Starlette) -> AsyncIterator[None]:
        for hook in self._on_startup:
            await _maybe_await(hook())
        try:
            yield
        finally:
            for hook in reversed(self._on_shutdown):
                await _maybe_await(hook())

    @staticmethod
    async def _http_error(request: Request, exc: HTTPException) -> Response:
        code = {404: "not_found", 405: "method_not_allowed"}.get(exc.status_code, "http_error")
        return JSONResponse(
            {"ok": False, "error": code, "message": str(exc.detail)},
            status_code=exc.status_code,
        )

    def build(self) -> Starlette:
        """Build (once) and return the underlying Starlette app."""
        if self._asgi is None:
            routes = [Route(r.path, self._dispatch(r), methods=r.methods) for r in self._routes]
            routes.extend(self._openapi_routes())
            self._asgi = Starlette(
                routes=routes,
                middleware=self._asgi_middleware,
                lifespan=self._lifespan,
                exception_handlers={HTTPException: self._http_error},
            )
        return self._asgi

    async def __call__(self, scope: Any, receive: Any, send: Any) -> None:
        await self.build()(scope, receive, send)

    def run(self, host: str = "127.0.0.1", port: int = 8000, **uvicorn_options: Any) -> None:
        """Run HTTP server with uvicorn (blocks)."""
        import uvicorn

        uvicorn.run(self, host=host, port=port, **uvicorn_options)
