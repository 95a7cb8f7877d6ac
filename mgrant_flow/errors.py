"""Exception hierarchy for the continuous-flow runner.

Configuration and fatal run errors abort the run; ``RecordedTestFailure``
only fails the test case it is raised in.
"""

from __future__ import annotations

from typing import Any, Optional


class FlowError(Exception):
    """Base exception class for all runner errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "context": self.context,
        }


# ---------------------------------------------------------------------------
# Configuration errors: fatal, raised before any browser session opens
# ---------------------------------------------------------------------------


class ConfigError(FlowError):
    """Raised when the manifest or app config cannot be used."""


class ConfigNotFoundError(ConfigError):
    def __init__(self, path: str):
        super().__init__(f"Configuration file not found: {path}", "CONFIG_NOT_FOUND",
                         {"path": path})
        self.path = path


class ConfigParseError(ConfigError):
    def __init__(self, path: str, reason: str):
        super().__init__(f"Failed to parse configuration {path}: {reason}",
                         "CONFIG_PARSE_FAILED", {"path": path})
        self.path = path
        self.reason = reason


class UnknownProfileError(ConfigError):
    def __init__(self, profile: str, available: list[str]):
        super().__init__(
            f"Unknown execution profile '{profile}' (available: {', '.join(available) or 'none'})",
            "UNKNOWN_PROFILE",
            {"profile": profile, "available": available},
        )
        self.profile = profile


class ModuleResolutionError(ConfigError):
    def __init__(self, module_name: str, reason: str):
        super().__init__(f"Cannot resolve module '{module_name}': {reason}",
                         "MODULE_RESOLUTION_FAILED", {"module": module_name})
        self.module_name = module_name


class DependencyOrderError(ConfigError):
    def __init__(self, module_name: str, dependency: str):
        super().__init__(
            f"Module '{module_name}' depends on '{dependency}', which does not run before it",
            "DEPENDENCY_ORDER",
            {"module": module_name, "dependency": dependency},
        )
        self.module_name = module_name
        self.dependency = dependency


# ---------------------------------------------------------------------------
# Authentication errors
# ---------------------------------------------------------------------------


class AuthError(FlowError):
    """Raised for authentication state problems."""


class SaveAuthFailedError(AuthError):
    def __init__(self, reason: str):
        super().__init__(f"Failed to save authentication state: {reason}", "SAVE_AUTH_FAILED")


class CorruptSessionError(AuthError):
    def __init__(self, reason: str):
        super().__init__(f"Persisted session snapshot is corrupt: {reason}", "CORRUPT_SESSION")


# ---------------------------------------------------------------------------
# Run errors
# ---------------------------------------------------------------------------


class FatalRunError(FlowError):
    """Halts the run. Results recorded so far stay valid."""


class ModuleTimeoutError(FatalRunError):
    def __init__(self, module_name: str, timeout_ms: int):
        super().__init__(f"Module '{module_name}' exceeded its timeout of {timeout_ms}ms",
                         "MODULE_TIMEOUT", {"module": module_name, "timeout_ms": timeout_ms})
        self.module_name = module_name
        self.timeout_ms = timeout_ms


class AuthenticationRequiredError(FatalRunError):
    def __init__(self, reason: str = "login did not succeed"):
        super().__init__(f"Authentication required: {reason}", "AUTH_REQUIRED")


class RecordedTestFailure(Exception):
    """A single test case failed; the module moves on to its next case."""

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.details = details if details is not None else message
