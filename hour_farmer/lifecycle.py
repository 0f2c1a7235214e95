"""Per-account session lifecycle: when to log in, when to assert games, how to back off."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable

from hour_farmer.guard import TwoFactorProvider
from hour_farmer.models import (
    MIN_REQUEST_INTERVAL_SECONDS,
    RATE_LIMIT_BACKOFF_SECONDS,
    AccountDescriptor,
    AccountStatus,
    ErrorKind,
    RuntimeState,
)
from hour_farmer.session import RemoteSession

logger = logging.getLogger(__name__)


class SessionLifecycleManager:
    """Owns one account's RuntimeState and reacts to sweeps and session events.

    Every entry point takes the account lock, so sweep pokes and remote events
    for the same account are applied one at a time in arrival order. Remote
    calls are fire-and-forget; their outcome comes back as events.
    """

    def __init__(
        self,
        account: AccountDescriptor,
        two_factor: TwoFactorProvider,
        *,
        min_request_interval: float = MIN_REQUEST_INTERVAL_SECONDS,
        rate_limit_backoff: float = RATE_LIMIT_BACKOFF_SECONDS,
        now_monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.account = account
        self.state = RuntimeState()
        self.session: RemoteSession | None = None
        self._two_factor = two_factor
        self._min_request_interval = min_request_interval
        self._rate_limit_backoff = rate_limit_backoff
        self._now = now_monotonic
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return self.account.name

    def attach(self, session: RemoteSession) -> None:
        self.session = session

    def _require_session(self) -> RemoteSession:
        if self.session is None:
            raise RuntimeError(f"No remote session attached for account {self.name!r}")
        return self.session

    def _notify(self, level: int, message: str) -> None:
        if self.state.last_notification == message:
            return
        self.state.last_notification = message
        logger.log(level, "%s", message)

    def _within_interval(self, anchor: float | None, now: float) -> bool:
        return anchor is not None and now - anchor <= self._min_request_interval

    def _login_allowed(self, now: float, skip_interval: bool) -> bool:
        state = self.state
        if state.authenticated or state.awaiting_code:
            return False
        if not skip_interval and self._within_interval(state.last_login_attempt_at, now):
            return False
        if state.retry_not_before is not None and now < state.retry_not_before:
            return False
        return True

    async def consider_login(self, *, skip_interval: bool = False) -> None:
        """Issue an authenticate request unless a gate holds it back.

        Gates: already authenticated, a code prompt already pending, the last
        attempt inside the minimum interval (unless ``skip_interval``), or the
        rate-limit backoff still running. Waiting for an operator code happens
        outside the account lock; the gates are checked again once it arrives.
        """
        async with self._lock:
            if not self._login_allowed(self._now(), skip_interval):
                return
            self.state.awaiting_code = True

        try:
            code = await self._two_factor.obtain_code(self.account)
        except BaseException:
            async with self._lock:
                self.state.awaiting_code = False
            raise

        async with self._lock:
            self.state.awaiting_code = False
            if not self._login_allowed(self._now(), skip_interval):
                return
            session = self._require_session()
            self._notify(logging.INFO, f'Logging in for account "{self.name}"...')
            session.authenticate(self.name, self.account.password, code or None, auto_reconnect=True)
            self.state.last_login_attempt_at = self._now()

    def _refresh_activity(self) -> None:
        state = self.state
        if not state.authenticated:
            return
        if state.blocked_elsewhere:
            self._notify(logging.INFO, f'Farming is paused for account "{self.name}".')
            return
        now = self._now()
        if self._within_interval(state.last_activity_refresh_at, now):
            return
        self._require_session().assert_activity(list(self.account.games))
        state.last_activity_refresh_at = now
        self._notify(logging.INFO, f'Farming for account "{self.name}"...')

    async def consider_activity_refresh(self) -> None:
        async with self._lock:
            self._refresh_activity()

    def _event_failed(self, event: str, exc: Exception) -> None:
        logger.error("Session event handling failed (non-fatal): account=%s event=%s error=%s", self.name, event, exc)

    async def on_authenticated(self, identity: str) -> None:
        async with self._lock:
            self.state.authenticated = True
            self.state.steam_id = str(identity or "")
            self._notify(
                logging.INFO,
                f'Successfully logged in to Steam with ID {self.state.steam_id} for account "{self.name}"',
            )
            try:
                if self.account.persona is not None:
                    self._require_session().set_presence(self.account.persona)
                self._refresh_activity()
            except Exception as exc:
                self._event_failed("authenticated", exc)

    async def on_activity_blocked_changed(self, blocked: bool) -> None:
        async with self._lock:
            self.state.blocked_elsewhere = bool(blocked)
            try:
                self._refresh_activity()
            except Exception as exc:
                self._event_failed("activity-blocked-changed", exc)

    async def on_error(self, kind: ErrorKind, message: str = "") -> None:
        relogin = False
        async with self._lock:
            if kind is ErrorKind.LOGGED_IN_ELSEWHERE:
                self.state.authenticated = False
                self._notify(
                    logging.WARNING,
                    f'Got kicked by other Steam session for account "{self.name}". Will log in shortly...',
                )
                relogin = True
            elif kind is ErrorKind.RATE_LIMITED:
                self.state.authenticated = False
                self.state.retry_not_before = self._now() + self._rate_limit_backoff
                minutes = round(self._rate_limit_backoff / 60)
                self._notify(
                    logging.WARNING,
                    f'Got rate limited by Steam for account "{self.name}". '
                    f"Will try logging in again in {minutes} minutes.",
                )
            else:
                self._notify(
                    logging.ERROR,
                    f'Got an error from Steam for account "{self.name}": "{message}". Continuing with other accounts.',
                )
        if not relogin:
            return
        try:
            await self.consider_login(skip_interval=True)
        except Exception as exc:
            self._event_failed("relogin", exc)

    async def on_needs_two_factor(self, domain_hint: str | None, respond: Callable[[str], Any]) -> None:
        try:
            code = await self._two_factor.obtain_code(self.account, domain_hint)
            respond(code)
        except Exception as exc:
            self._event_failed("needs-two-factor", exc)

    def status(self) -> AccountStatus:
        state = self.state
        retry_in = 0.0
        if state.retry_not_before is not None:
            retry_in = max(0.0, state.retry_not_before - self._now())
        return AccountStatus(
            name=self.name,
            authenticated=state.authenticated,
            blocked_elsewhere=state.blocked_elsewhere,
            awaiting_code=state.awaiting_code,
            steam_id=state.steam_id,
            retry_in_seconds=retry_in,
            last_notification=state.last_notification,
        )
