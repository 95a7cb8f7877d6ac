"""Pytest configuration and shared fixtures."""

import json
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, Mock

import pytest

from mgrant_flow.auth.auth_manager import AuthManager
from mgrant_flow.auth.session import AuthSession
from mgrant_flow.core.registry import ModuleRegistry
from mgrant_flow.models.auth_state import AuthState, SessionSource
from mgrant_flow.models.config import AppConfig, Credentials, TimeoutsConfig
from mgrant_flow.models.test_result import ExecutionResult, TestStatus


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    """App config pointing every output path into tmp_path, with no waits."""
    return AppConfig(
        base_url="https://qa.example.test",
        credentials=Credentials(email="qa@example.test", password="s3cret"),
        auth_file=str(tmp_path / ".auth" / "session.json"),
        timeouts=TimeoutsConfig(
            navigation_ms=1000, action_ms=1000, login_ms=1000,
            verification_ms=100, settle_ms=0,
        ),
        screenshot_dir=str(tmp_path / "screenshots"),
        report_output_dir=str(tmp_path / "reports"),
    )


def manifest_data(**overrides: Any) -> dict[str, Any]:
    """Raw manifest JSON with three modules and a smoke profile."""
    data = {
        "testPrecedence": ["Authentication", "Organisation", "Masters-Beneficiary"],
        "moduleSettings": {
            "Authentication": {"priority": "critical", "required": True, "timeoutMs": 60000},
            "Organisation": {"priority": "high", "timeoutMs": 90000,
                             "dependencies": ["Authentication"]},
            "Masters-Beneficiary": {"priority": "low", "timeoutMs": 120000,
                                    "estimatedDurationSeconds": 45},
        },
        "executionProfiles": {
            "full": {"includeAll": True},
            "smoke": {"testPrecedence": ["Authentication", "Organisation"]},
        },
    }
    data.update(overrides)
    return data


@pytest.fixture
def manifest_file(tmp_path: Path) -> Path:
    path = tmp_path / "test-config.json"
    path.write_text(json.dumps(manifest_data()))
    return path


@pytest.fixture
def write_manifest(tmp_path: Path):
    """Write an arbitrary manifest dict and return its path."""
    def _write(data: dict[str, Any], name: str = "manifest.json") -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(data))
        return path
    return _write


# ============================================================================
# Auth Fixtures
# ============================================================================


@pytest.fixture
def authenticated_state() -> AuthState:
    return AuthState(
        is_authenticated=True,
        cookies=[{"name": "sid", "value": "abc", "domain": "qa.example.test", "path": "/"}],
        local_storage={"theme": "dark"},
        session_storage={"token": "tok-123", "user": json.dumps({"email": "qa@example.test"})},
        user={"email": "qa@example.test"},
        url="https://qa.example.test/#/organisations",
        session_source=SessionSource.LIVE,
    )


@pytest.fixture
def auth_manager(app_config: AppConfig) -> AuthManager:
    return AuthManager(app_config)


@pytest.fixture
def auth_session(app_config: AppConfig, auth_manager: AuthManager) -> AuthSession:
    return AuthSession(app_config, manager=auth_manager)


# ============================================================================
# Browser Mock Fixtures
# ============================================================================


@pytest.fixture
def mock_locator() -> Mock:
    locator = Mock()
    locator.first = locator
    locator.wait_for = AsyncMock()
    locator.is_visible = AsyncMock(return_value=False)
    locator.count = AsyncMock(return_value=0)
    locator.click = AsyncMock()
    locator.fill = AsyncMock()
    locator.filter = Mock(return_value=locator)
    locator.locator = Mock(return_value=locator)
    locator.nth = Mock(return_value=locator)
    return locator


@pytest.fixture
def mock_page(mock_locator: Mock) -> AsyncMock:
    """A Playwright page double: async navigation, sync locators."""
    page = AsyncMock()
    page.url = "https://qa.example.test/#/"
    page.locator = Mock(return_value=mock_locator)
    page.get_by_role = Mock(return_value=mock_locator)
    page.get_by_text = Mock(return_value=mock_locator)
    page.get_by_label = Mock(return_value=mock_locator)
    page.set_default_timeout = Mock()
    page.set_default_navigation_timeout = Mock()
    page.on = Mock()
    page.context = Mock()
    page.context.cookies = AsyncMock(return_value=[])
    page.context.add_cookies = AsyncMock()
    page.context.clear_cookies = AsyncMock()
    page.evaluate = AsyncMock(return_value={})
    return page


# ============================================================================
# Registry / Result Fixtures
# ============================================================================


@pytest.fixture
def empty_registry() -> ModuleRegistry:
    return ModuleRegistry()


def make_result(
    test_name: str = "TC001: Something",
    module_name: str = "Authentication",
    status: TestStatus = TestStatus.PASSED,
    step_number: int = 1,
    **kwargs: Any,
) -> ExecutionResult:
    return ExecutionResult(
        step_number=step_number,
        test_name=test_name,
        module_name=module_name,
        status=status,
        **kwargs,
    )
