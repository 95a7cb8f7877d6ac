"""Configuration models: application settings and the module manifest."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from mgrant_flow.errors import (
    ConfigNotFoundError,
    ConfigParseError,
    DependencyOrderError,
    UnknownProfileError,
)

logger = logging.getLogger(__name__)

class ViewportConfig(BaseModel):
    width: int = 1280
    height: int = 720


class RoutesConfig(BaseModel):
    home: str = "/#/"
    login: str = "/#/login"
    protected: str = "/#/organisations"
    projects: str = "/#/projects/list/csr?tab=csrProject"
    masters: str = "/#/masters"


class Credentials(BaseModel):
    email: str
    password: str

    @field_validator("email", "password", mode="before")
    @classmethod
    def resolve_env_value(cls, v: str) -> str:
        if isinstance(v, str) and v.startswith("env:"):
            env_var = v[4:]
            resolved = os.environ.get(env_var)
            if resolved is None:
                raise ValueError(f"Environment variable '{env_var}' not set")
            return resolved
        return v


class LoginSelectors(BaseModel):
    username: str = "#login"
    password: str = "#password"
    submit: str = "button[type='submit']"
    login_form: str = "#login-form, [data-testid='login-form'], .login-container"


class TimeoutsConfig(BaseModel):
    navigation_ms: int = 20000
    action_ms: int = 10000
    login_ms: int = 40000
    verification_ms: int = 8000
    settle_ms: int = 2000


class AppConfig(BaseModel):
    # Target
    base_url: str = "https://qa.mgrant.in"
    routes: RoutesConfig = Field(default_factory=RoutesConfig)

    # Authentication
    credentials: Optional[Credentials] = None
    login_selectors: LoginSelectors = Field(default_factory=LoginSelectors)
    protected_signals: list[str] = Field(
        default_factory=lambda: [
            "h2:has-text('Organisations')",
            "input[placeholder='Search by organisation name']",
            "[data-testid='organisations-page']",
        ]
    )
    token_key: str = "token"
    user_key: str = "user"
    auth_file: str = ".auth/mgrant-session.json"

    # Browser
    headless: bool = True
    viewport: ViewportConfig = Field(default_factory=ViewportConfig)
    timeouts: TimeoutsConfig = Field(default_factory=TimeoutsConfig)

    # Output
    screenshot_dir: str = "./test-results/screenshots"
    report_output_dir: str = "./test-results"
    report_formats: list[str] = Field(default_factory=lambda: ["html", "json"])

    def url_for(self, route: str) -> str:
        """Absolute URL for a named route (``login``, ``protected``, ...)."""
        return self.base_url.rstrip("/") + getattr(self.routes, route)

    @classmethod
    def load(cls, path: str | Path) -> "AppConfig":
        """Load config from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise ConfigNotFoundError(str(path))
        try:
            with open(path) as f:
                data = json.load(f)
            return cls(**data)
        except (ValueError, TypeError) as e:
            raise ConfigParseError(str(path), str(e)) from e

    def save(self, path: str | Path, credentials: Optional[dict[str, str]] = None) -> None:
        """Save config to a JSON file.

        ``credentials`` replaces the stored credentials in the written file,
        so ``env:NAME`` references can be kept unresolved.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        data = self.model_dump(exclude_none=True)
        if credentials is not None:
            data["credentials"] = credentials
        with open(path, "w") as f:
            json.dump(data, f, indent=2)


# ---------------------------------------------------------------------------
# Module manifest (test-config.json)
# ---------------------------------------------------------------------------


class ModuleSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    priority: str = "medium"
    required: bool = False
    timeout_ms: int = Field(default=300000, alias="timeoutMs", gt=0)
    description: str = ""
    dependencies: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    entry: Optional[str] = None
    estimated_duration_seconds: Optional[int] = Field(default=None, alias="estimatedDurationSeconds")


class ExecutionProfile(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    include_all: bool = Field(default=False, alias="includeAll")
    test_precedence: list[str] = Field(default_factory=list, alias="testPrecedence")
    description: str = ""


class ModuleDescriptor(BaseModel):
    """Metadata for one module in the execution order."""

    model_config = ConfigDict(frozen=True)

    name: str
    file_path: Optional[str] = None
    priority: str = "medium"
    dependencies: frozenset[str] = frozenset()
    timeout_ms: int = 300000
    required: bool = False
    tags: frozenset[str] = frozenset()
    description: str = ""
    estimated_duration_seconds: int = 0


class Manifest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    test_precedence: list[str] = Field(alias="testPrecedence")
    module_settings: dict[str, ModuleSettings] = Field(default_factory=dict, alias="moduleSettings")
    execution_profiles: dict[str, ExecutionProfile] = Field(
        default_factory=dict, alias="executionProfiles"
    )

    @classmethod
    def load(cls, path: str | Path) -> "Manifest":
        path = Path(path)
        if not path.exists():
            raise ConfigNotFoundError(str(path))
        try:
            with open(path) as f:
                data = json.load(f)
            return cls.model_validate(data)
        except (ValueError, ValidationError) as e:
            raise ConfigParseError(str(path), str(e)) from e

    def order_for(self, profile: str = "full") -> list[str]:
        """Module order for a profile. ``full`` always exists implicitly."""
        selected = self.execution_profiles.get(profile)
        if selected is None:
            if profile == "full":
                return list(self.test_precedence)
            raise UnknownProfileError(profile, sorted(self.execution_profiles) + ["full"])
        if selected.include_all:
            return list(self.test_precedence)
        return list(selected.test_precedence)

    def descriptors(self, profile: str = "full") -> list[ModuleDescriptor]:
        """Ordered, validated descriptors for ``profile``.

        Array position is the execution order; priority is never used to sort.
        """
        order = self.order_for(profile)
        seen: set[str] = set()
        result = []
        for name in order:
            settings = self.module_settings.get(name, ModuleSettings())
            for dep in settings.dependencies:
                if dep not in seen:
                    raise DependencyOrderError(name, dep)
            seen.add(name)
            result.append(ModuleDescriptor(
                name=name,
                file_path=settings.entry,
                priority=settings.priority,
                dependencies=frozenset(settings.dependencies),
                timeout_ms=settings.timeout_ms,
                required=settings.required,
                tags=frozenset(settings.tags),
                description=settings.description,
                estimated_duration_seconds=(
                    settings.estimated_duration_seconds
                    if settings.estimated_duration_seconds is not None
                    else settings.timeout_ms // 1000
                ),
            ))

        for name, settings in self.module_settings.items():
            if settings.required and name not in seen:
                logger.warning("Profile '%s' omits required module '%s'", profile, name)
        return result

    def save(self, path: str | Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(by_alias=True, exclude_none=True), f, indent=2)


def default_manifest() -> Manifest:
    """Manifest covering the built-in modules."""
    return Manifest(
        test_precedence=["Authentication", "Organisation", "Masters-Beneficiary", "Masters-FocusArea"],
        module_settings={
            "Authentication": ModuleSettings(
                priority="critical", required=True, timeout_ms=60000,
                description="Login form, login flow and session persistence",
                tags=["authentication", "login", "critical"],
            ),
            "Organisation": ModuleSettings(
                priority="high", required=True, timeout_ms=90000,
                description="Organisation page access, search and selection",
                dependencies=["Authentication"], tags=["organisation", "search"],
            ),
            "Masters-Beneficiary": ModuleSettings(
                priority="medium", timeout_ms=120000,
                description="Beneficiary create, edit and delete under Masters",
                dependencies=["Authentication"], tags=["masters", "crud"],
            ),
            "Masters-FocusArea": ModuleSettings(
                priority="medium", timeout_ms=120000,
                description="CSR Focus Area create, edit and delete under Masters",
                dependencies=["Authentication"], tags=["masters", "crud"],
            ),
        },
        execution_profiles={
            "full": ExecutionProfile(include_all=True, description="Every module in precedence order"),
            "smoke": ExecutionProfile(
                test_precedence=["Authentication", "Organisation"],
                description="Login and organisation selection",
            ),
            "masters": ExecutionProfile(
                test_precedence=["Authentication", "Masters-Beneficiary", "Masters-FocusArea"],
                description="Masters CRUD flows",
            ),
        },
    )
