"""
Local participant session.

Holds what a browser would keep in local storage (nickname, fingerprint,
creator tokens, verified events) as an explicit object that is passed to the
services, and persists it to a YAML file between CLI runs.
"""

import getpass
import hashlib
import logging
import platform
from pathlib import Path
from typing import Dict, Optional

import yaml
from pydantic import BaseModel, Field

from ..domain.exceptions import SessionError

logger = logging.getLogger(__name__)


def generate_fingerprint() -> str:
    """
    Stable identifier for this machine and user.

    Not a secret and not meant to be secure; it only lets the backend tell
    whether a nickname is being reused by the same participant.
    """
    try:
        user = getpass.getuser()
    except (KeyError, OSError):
        user = "unknown"
    components = [
        platform.node(),
        platform.system(),
        platform.machine(),
        platform.python_implementation(),
        user,
    ]
    digest = hashlib.sha256("|".join(components).encode("utf-8")).hexdigest()
    return digest[:32]


class SessionContext(BaseModel):
    """Participant identity and per-event credentials."""
    nickname: Optional[str] = None
    fingerprint: str = Field(default_factory=generate_fingerprint)
    creator_tokens: Dict[str, str] = Field(default_factory=dict)
    verified_events: Dict[str, str] = Field(default_factory=dict)

    def require_nickname(self) -> str:
        if not self.nickname:
            raise SessionError("No nickname set. Join the event first.")
        return self.nickname

    def is_verified(self, event_id: str) -> bool:
        return event_id in self.verified_events

    def is_creator(self, event_id: str) -> bool:
        return event_id in self.creator_tokens

    def remember_creator(self, event_id: str, creator_token: str, passcode: str) -> None:
        self.creator_tokens[event_id] = creator_token
        self.verified_events[event_id] = passcode

    def remember_verified(self, event_id: str, passcode: str) -> None:
        self.verified_events[event_id] = passcode


class SessionStorage:
    """Reads and writes a SessionContext as YAML."""

    def __init__(self, path: Path):
        self.path = path

    def load(self) -> SessionContext:
        if not self.path.exists():
            return SessionContext()

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise SessionError(f"Invalid session file {self.path}: {exc}") from exc

        if not isinstance(data, dict):
            raise SessionError(f"Session file {self.path} must contain a mapping.")
        return SessionContext(**data)

    def save(self, session: SessionContext) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(session.model_dump(), f, allow_unicode=True, sort_keys=True)
        logger.debug("Saved session to %s", self.path)
