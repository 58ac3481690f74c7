"""DI container for the service: the Database handle and Settings are registered as
instances at startup; stores and handlers declared by each DomainModule are
built on first use from their constructor annotations."""
from __future__ import annotations

import inspect
import sys
from typing import Any, Callable, TypeVar

T = TypeVar("T")

Key = Any  # a type, a protocol or a string key


def _resolve_annotation(ann: str, cls: type[Any]) -> Any:
    """String annotations (``from __future__ import annotations``) are looked up in the class's module."""
    mod = sys.modules.get(cls.__module__)
    if mod is not None and hasattr(mod, ann):
        return getattr(mod, ann)
    return ann


def _instantiate_with_container(container: Container, cls: type[T]) -> T:
    """Create cls, pulling every annotated __init__ parameter from the container.

    Parameters with a default are left to their default when the container has no
    registration for them.
    """
    sig = inspect.signature(cls)
    kwargs: dict[str, Any] = {}
    for name, param in sig.parameters.items():
        if name == "self" or param.annotation is inspect.Parameter.empty:
            continue
        ann = param.annotation
        if isinstance(ann, str):
            ann = _resolve_annotation(ann, cls)
        if param.default is not inspect.Parameter.empty and not container.has(ann):
            continue
        kwargs[name] = container.resolve(ann)
    return cls(**kwargs)


class Container:
    """
    Keys are types (Database, LedgerStore, a handler class), protocols
    (EventBus) or strings ("config"). Registrations are singletons unless
    asked otherwise, so one LedgerStore serves every ledger handler.
    """

    def __init__(self) -> None:
        self._registry: dict[Key, Callable[[], Any]] = {}
        self._singletons: dict[Key, Any] = {}
        self._singleton_keys: set[Key] = set()

    def register(self, key: Key, factory: Callable[[], T], singleton: bool = True) -> None:
        """Register a factory for a type or string key."""
        self._registry[key] = factory
        self._singletons.pop(key, None)
        if singleton:
            self._singleton_keys.add(key)
        else:
            self._singleton_keys.discard(key)

    def register_instance(self, key: Key, instance: T) -> None:
        """Register a ready-made instance."""
        self._registry[key] = lambda: instance
        self._singletons[key] = instance
        self._singleton_keys.add(key)

    def register_class(self, cls: type[T], singleton: bool = True) -> None:
        """Register a class: on resolve an instance is built with dependencies from the container."""
        self.register(cls, lambda: _instantiate_with_container(self, cls), singleton=singleton)

    def has(self, key: Key) -> bool:
        return key in self._registry

    def resolve(self, key: Key) -> Any:
        """Resolve an instance by type or key. Raises KeyError when nothing is registered."""
        if key not in self._registry:
            raise KeyError(f"No registration for {key!r}")
        if key in self._singletons:
            return self._singletons[key]
        instance = self._registry[key]()
        if key in self._singleton_keys:
            self._singletons[key] = instance
        return instance
