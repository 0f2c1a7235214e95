"""Contract between the lifecycle manager and a remote Steam session.

The wire protocol lives outside this package: an adapter implements
RemoteSession and reports what happens through a SessionListener. Adapters are
plugged in with the SESSION_FACTORY setting (``module:callable``).
"""
from __future__ import annotations

import importlib
import logging
from typing import Any, Callable, Protocol, Sequence

from hour_farmer.config import ConfigError
from hour_farmer.models import AccountDescriptor, ErrorKind, Game

logger = logging.getLogger(__name__)

# Steam EResult codes the lifecycle manager reacts to.
ERESULT_LOGGED_IN_ELSEWHERE = 6
ERESULT_RATE_LIMIT_EXCEEDED = 84


class RemoteSession(Protocol):
    def authenticate(
        self,
        account_name: str,
        password: str,
        two_factor_code: str | None,
        auto_reconnect: bool = True,
    ) -> None: ...

    def assert_activity(self, games: Sequence[Game]) -> None: ...

    def set_presence(self, persona: int) -> None: ...


class SessionListener(Protocol):
    async def on_needs_two_factor(self, domain_hint: str | None, respond: Callable[[str], Any]) -> None: ...

    async def on_activity_blocked_changed(self, blocked: bool) -> None: ...

    async def on_authenticated(self, identity: str) -> None: ...

    async def on_error(self, kind: ErrorKind, message: str = "") -> None: ...


SessionFactory = Callable[[AccountDescriptor, SessionListener], RemoteSession]


def classify_error(eresult: int | None) -> ErrorKind:
    if eresult == ERESULT_LOGGED_IN_ELSEWHERE:
        return ErrorKind.LOGGED_IN_ELSEWHERE
    if eresult == ERESULT_RATE_LIMIT_EXCEEDED:
        return ErrorKind.RATE_LIMITED
    return ErrorKind.UNKNOWN


def load_session_factory(path: str) -> SessionFactory:
    """Resolve a ``package.module:callable`` reference to a session factory."""
    module_name, sep, attr = path.strip().partition(":")
    if not sep or not module_name or not attr:
        raise ConfigError(f"Invalid SESSION_FACTORY value (expected module:callable): {path!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigError(f"Unable to import session factory module {module_name!r}: {exc}") from exc

    factory: Any = module
    for part in attr.split("."):
        try:
            factory = getattr(factory, part)
        except AttributeError as exc:
            raise ConfigError(f"Session factory {path!r} not found") from exc
    if not callable(factory):
        raise ConfigError(f"Session factory {path!r} is not callable")
    logger.info("Session factory loaded: %s", path)
    return factory
