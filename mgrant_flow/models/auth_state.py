"""Cached browser authentication: cookies plus web storage."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from mgrant_flow.errors import CorruptSessionError

DEFAULT_TOKEN_KEY = "token"
DEFAULT_USER_KEY = "user"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SessionSource(str, Enum):
    LIVE = "live"
    FILE = "file"
    NONE = "none"


class AuthState(BaseModel):
    """Snapshot of an authenticated browser session.

    The persisted JSON keeps the camelCase keys
    (``timestamp``, ``cookies``, ``localStorage``, ``sessionStorage``, ``url``)
    so snapshots written by earlier runs stay loadable.
    """

    model_config = ConfigDict(populate_by_name=True)

    is_authenticated: bool = Field(default=False, alias="isAuthenticated")
    cookies: list[dict[str, Any]] = Field(default_factory=list)
    local_storage: dict[str, str] = Field(default_factory=dict, alias="localStorage")
    session_storage: dict[str, str] = Field(default_factory=dict, alias="sessionStorage")
    user: Optional[Any] = None
    url: Optional[str] = None
    timestamp: datetime = Field(default_factory=_now)
    last_validated: Optional[datetime] = Field(default=None, alias="lastValidated")
    validation_attempts: int = Field(default=0, alias="validationAttempts")
    session_source: SessionSource = Field(default=SessionSource.NONE, alias="sessionSource")
    reset_reason: Optional[str] = Field(default=None, alias="resetReason")

    def token(self, token_key: str = DEFAULT_TOKEN_KEY) -> str:
        return self.session_storage.get(token_key) or ""


def parse_user(session_storage: dict[str, str], user_key: str = DEFAULT_USER_KEY) -> Optional[Any]:
    """Derive the user identity from sessionStorage.

    The application stores the user as JSON; a value that is not JSON is
    kept as the raw string.
    """
    raw = session_storage.get(user_key)
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def validate(
    state: AuthState,
    token_key: str = DEFAULT_TOKEN_KEY,
    user_key: str = DEFAULT_USER_KEY,
) -> bool:
    """Check the cached state without touching the network.

    Always counts the attempt and stamps ``last_validated``.
    """
    state.validation_attempts += 1
    state.last_validated = _now()
    if not state.is_authenticated:
        return False
    if not state.token(token_key):
        return False
    return state.user is not None or bool(state.session_storage.get(user_key))


def reset(reason: str) -> AuthState:
    """Return a cleared, unauthenticated state tagged with ``reason``."""
    return AuthState(is_authenticated=False, reset_reason=reason)


def serialize(state: AuthState) -> bytes:
    data = state.model_dump(mode="json", by_alias=True)
    return json.dumps(data, indent=2).encode("utf-8")


def deserialize(data: bytes | str) -> AuthState:
    """Parse a persisted snapshot.

    Snapshots without an ``isAuthenticated`` flag derive it from the
    presence of a token.
    """
    try:
        raw = json.loads(data)
    except ValueError as e:
        raise CorruptSessionError(str(e)) from e
    if not isinstance(raw, dict):
        raise CorruptSessionError("snapshot is not a JSON object")

    if "isAuthenticated" not in raw:
        storage = raw.get("sessionStorage") or {}
        raw["isAuthenticated"] = isinstance(storage, dict) and bool(storage.get(DEFAULT_TOKEN_KEY))
    if "user" not in raw and isinstance(raw.get("sessionStorage"), dict):
        raw["user"] = parse_user(raw["sessionStorage"])
    raw.setdefault("sessionSource", SessionSource.FILE.value)

    try:
        return AuthState.model_validate(raw)
    except ValidationError as e:
        raise CorruptSessionError(str(e)) from e
