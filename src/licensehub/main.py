"""
App composition: every part is a module object added with app.register().
To run: licensehub serve (or uvicorn licensehub.main:app with API_KEY and DATABASE_URL set).
"""
from __future__ import annotations

import logging
from typing import Optional

from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request

from licensehub import __version__
from licensehub.agents.module import agents_module
from licensehub.core import ApiKeyAuth, Application, HttpModule, Settings
from licensehub.core.auth import SECURITY_SCHEME
from licensehub.core.responses import PlainTextResponse, Response, ok
from licensehub.db import Database
from licensehub.licenses.module import licenses_module

logger = logging.getLogger(__name__)


async def banner(request: Request) -> Response:
    return PlainTextResponse("License API is running")


async def health(request: Request) -> Response:
    return ok()


system_module = (
    HttpModule("system", prefix="")
    .route("/", banner, public=True)
    .route("/health", health, public=True)
)


def create_app(settings: Settings, database: Optional[Database] = None) -> Application:
    """Compose the service. The database handle is created here unless one is passed in."""
    if database is None:
        database = Database(settings.database_url, lock_timeout_ms=settings.lock_timeout_ms)

    app = Application(config=settings)
    app.container.register_instance(Database, database)
    app.add_middleware(ApiKeyAuth(settings.api_key))
    app.add_asgi_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.register(system_module)
    app.register(agents_module)
    app.register(licenses_module)
    app.openapi(title="License API", version=__version__, security_scheme=SECURITY_SCHEME)

    async def startup() -> None:
        if settings.auto_create_schema:
            await database.create_all()
        if settings.api_key:
            logger.info("API key loaded (len=%d)", len(settings.api_key))
        else:
            logger.error("API key missing: every /api request will fail with 500")

    app.on_startup(startup)
    app.on_shutdown(database.dispose)
    return app


def __getattr__(name: str) -> Application:
    # `uvicorn licensehub.main:app` builds the app lazily from the environment
    if name == "app":
        return create_app(Settings.from_env())
    raise AttributeError(name)
