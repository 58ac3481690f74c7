"""
licensehub: license records and a sales-commission ledger for referring agents.
The application is composed from module objects via app.register(module).
"""
__version__ = "0.4.2"

from licensehub.core import Application, Container, HttpModule, Module, Settings  # noqa: E402

__all__ = [
    "Application",
    "Container",
    "Module",
    "HttpModule",
    "Settings",
    "__version__",
]
