"""Tests for module registration and resolution."""

import pytest

from mgrant_flow.core.registry import ModuleRegistry, load_builtin_modules
from mgrant_flow.errors import ModuleResolutionError
from mgrant_flow.models.config import ModuleDescriptor


async def _entry(*args, **kwargs):
    return None


async def _other_entry(*args, **kwargs):
    return None


class TestModuleRegistry:
    def test_register_and_resolve(self, empty_registry):
        empty_registry.register("Organisation", _entry)
        assert empty_registry.resolve(ModuleDescriptor(name="Organisation")) is _entry
        assert "Organisation" in empty_registry

    def test_decorator_registers(self, empty_registry):
        @empty_registry.module("Masters")
        async def execute_tests(*args, **kwargs):
            return None

        assert empty_registry.names() == ["Masters"]
        assert empty_registry.resolve(ModuleDescriptor(name="Masters")) is execute_tests

    def test_reregistering_same_entry_is_harmless(self, empty_registry):
        empty_registry.register("A", _entry)
        empty_registry.register("A", _entry)
        assert empty_registry.names() == ["A"]

    def test_conflicting_registration_rejected(self, empty_registry):
        empty_registry.register("A", _entry)
        with pytest.raises(ValueError):
            empty_registry.register("A", _other_entry)

    def test_unknown_module_is_a_config_error(self, empty_registry):
        empty_registry.register("Authentication", _entry)
        with pytest.raises(ModuleResolutionError) as exc_info:
            empty_registry.resolve(ModuleDescriptor(name="Reports"))
        assert "Authentication" in str(exc_info.value)
        assert exc_info.value.module_name == "Reports"


class TestExplicitEntry:
    def test_entry_reference_wins(self, empty_registry):
        empty_registry.register("Organisation", _entry)
        descriptor = ModuleDescriptor(
            name="Organisation",
            file_path="mgrant_flow.modules.masters_focus_area:execute_tests",
        )
        resolved = empty_registry.resolve(descriptor)
        assert resolved is not _entry
        assert resolved.__module__ == "mgrant_flow.modules.masters_focus_area"

    @pytest.mark.parametrize("reference", [
        "no_colon_here",
        ":execute_tests",
        "mgrant_flow.does_not_exist:execute_tests",
        "mgrant_flow.modules.organisation:missing_function",
        "mgrant_flow.modules.organisation:DEFAULT_SEARCH_TERM",
    ])
    def test_bad_references(self, empty_registry, reference):
        with pytest.raises(ModuleResolutionError):
            empty_registry.resolve(ModuleDescriptor(name="X", file_path=reference))


class TestBuiltinModules:
    def test_all_builtins_registered(self):
        registry = load_builtin_modules()
        for name in ("Authentication", "Organisation", "Masters-Beneficiary", "Masters-FocusArea"):
            assert name in registry

    def test_loading_twice_is_idempotent(self):
        first = load_builtin_modules().names()
        assert load_builtin_modules().names() == first
