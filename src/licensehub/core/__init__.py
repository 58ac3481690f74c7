from licensehub.core.app import Application
from licensehub.core.auth import ApiKeyAuth
from licensehub.core.config import Settings
from licensehub.core.container import Container
from licensehub.core.module import Module
from licensehub.core.routing import HttpModule

__all__ = [
    "Application",
    "ApiKeyAuth",
    "Container",
    "Module",
    "HttpModule",
    "Settings",
]
