from __future__ import annotations

import enum
from dataclasses import dataclass

MIN_REQUEST_INTERVAL_SECONDS = 60.0
LOGIN_SWEEP_INTERVAL_SECONDS = 10 * 60.0
ACTIVITY_SWEEP_INTERVAL_SECONDS = 5 * 60.0
RATE_LIMIT_BACKOFF_SECONDS = 31 * 60.0

Game = int | str


class ErrorKind(enum.Enum):
    LOGGED_IN_ELSEWHERE = "logged-in-elsewhere"
    RATE_LIMITED = "rate-limited"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class AccountDescriptor:
    name: str
    password: str
    games: tuple[Game, ...]
    shared_secret: str = ""
    persona: int | None = None

    @property
    def has_shared_secret(self) -> bool:
        return bool(self.shared_secret)


@dataclass
class RuntimeState:
    authenticated: bool = False
    blocked_elsewhere: bool = False
    awaiting_code: bool = False
    last_notification: str = ""
    last_activity_refresh_at: float | None = None
    last_login_attempt_at: float | None = None
    retry_not_before: float | None = None
    steam_id: str = ""


@dataclass(frozen=True)
class AccountStatus:
    name: str
    authenticated: bool
    blocked_elsewhere: bool
    awaiting_code: bool
    steam_id: str
    retry_in_seconds: float
    last_notification: str

    def as_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "authenticated": self.authenticated,
            "blocked_elsewhere": self.blocked_elsewhere,
            "awaiting_code": self.awaiting_code,
            "steam_id": self.steam_id,
            "retry_in_seconds": round(self.retry_in_seconds, 1),
            "last_notification": self.last_notification,
        }
