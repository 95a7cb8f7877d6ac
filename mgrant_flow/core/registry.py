"""Module registry: binds stable module identifiers to entry functions."""

from __future__ import annotations

import importlib
import logging
from typing import Any, Awaitable, Callable

from mgrant_flow.errors import ModuleResolutionError
from mgrant_flow.models.config import ModuleDescriptor

logger = logging.getLogger(__name__)

# execute_tests(page, log_step, record_result, shared_data, is_authenticated, *, auth)
ModuleEntry = Callable[..., Awaitable[Any]]

BUILTIN_MODULES = (
    "mgrant_flow.modules.authentication",
    "mgrant_flow.modules.organisation",
    "mgrant_flow.modules.masters_beneficiary",
    "mgrant_flow.modules.masters_focus_area",
)


class ModuleRegistry:
    """Maps module identifiers to their async entry points."""

    def __init__(self) -> None:
        self._entries: dict[str, ModuleEntry] = {}

    def register(self, name: str, entry: ModuleEntry) -> ModuleEntry:
        existing = self._entries.get(name)
        if existing is not None and existing is not entry:
            raise ValueError(f"Module '{name}' is already registered")
        self._entries[name] = entry
        return entry

    def module(self, name: str) -> Callable[[ModuleEntry], ModuleEntry]:
        """Decorator form of :meth:`register`."""
        def decorator(entry: ModuleEntry) -> ModuleEntry:
            return self.register(name, entry)
        return decorator

    def names(self) -> list[str]:
        return list(self._entries)

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def resolve(self, descriptor: ModuleDescriptor) -> ModuleEntry:
        """Return the entry for a descriptor.

        An explicit ``package.module:function`` reference wins over the
        registered identifier.
        """
        if descriptor.file_path:
            return _import_entry(descriptor.name, descriptor.file_path)
        if descriptor.name not in self:
            raise ModuleResolutionError(
                descriptor.name,
                f"not registered (known modules: {', '.join(self.names()) or 'none'})",
            )
        return self._entries[descriptor.name]


def _import_entry(name: str, reference: str) -> ModuleEntry:
    module_path, _, attr = reference.partition(":")
    if not module_path or not attr:
        raise ModuleResolutionError(name, f"entry '{reference}' must look like 'package.module:function'")
    try:
        module = importlib.import_module(module_path)
    except ImportError as e:
        raise ModuleResolutionError(name, f"cannot import '{module_path}': {e}") from e
    entry = getattr(module, attr, None)
    if not callable(entry):
        raise ModuleResolutionError(name, f"'{module_path}' has no callable '{attr}'")
    logger.debug("Resolved module %s to %s", name, reference)
    return entry


registry = ModuleRegistry()


def flow_module(name: str) -> Callable[[ModuleEntry], ModuleEntry]:
    """Register a built-in module entry on the default registry."""
    return registry.module(name)


def load_builtin_modules() -> ModuleRegistry:
    """Import the built-in modules so their decorators run."""
    for module_path in BUILTIN_MODULES:
        importlib.import_module(module_path)
    return registry
