from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Iterable

from hour_farmer.config import ConfigError, account_problems, log_skipped_account
from hour_farmer.guard import TwoFactorProvider
from hour_farmer.lifecycle import SessionLifecycleManager
from hour_farmer.models import (
    ACTIVITY_SWEEP_INTERVAL_SECONDS,
    LOGIN_SWEEP_INTERVAL_SECONDS,
    MIN_REQUEST_INTERVAL_SECONDS,
    RATE_LIMIT_BACKOFF_SECONDS,
    AccountDescriptor,
    AccountStatus,
)
from hour_farmer.session import SessionFactory

logger = logging.getLogger(__name__)


class Fleet:
    """One lifecycle manager per account, driven by two shared sweeps.

    Each per-account poke runs in its own task: an account waiting on the
    operator prompt never holds up the others.
    """

    def __init__(
        self,
        accounts: Iterable[AccountDescriptor],
        session_factory: SessionFactory,
        two_factor: TwoFactorProvider | None = None,
        *,
        login_interval: float = LOGIN_SWEEP_INTERVAL_SECONDS,
        activity_interval: float = ACTIVITY_SWEEP_INTERVAL_SECONDS,
        min_request_interval: float = MIN_REQUEST_INTERVAL_SECONDS,
        rate_limit_backoff: float = RATE_LIMIT_BACKOFF_SECONDS,
        sleep_func: Callable[[float], Awaitable[object]] = asyncio.sleep,
        now_monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.two_factor = two_factor or TwoFactorProvider()
        self.login_interval = login_interval
        self.activity_interval = activity_interval
        self._sleep = sleep_func
        self._pending: set[asyncio.Task[None]] = set()
        self._loops: list[asyncio.Task[None]] = []
        self.managers: dict[str, SessionLifecycleManager] = {}

        for account in accounts:
            problems = account_problems(account)
            if problems:
                log_skipped_account(account, problems)
                continue
            if account.name in self.managers:
                logger.warning("Duplicate account ignored: account=%s", account.name)
                continue
            manager = SessionLifecycleManager(
                account,
                self.two_factor,
                min_request_interval=min_request_interval,
                rate_limit_backoff=rate_limit_backoff,
                now_monotonic=now_monotonic,
            )
            manager.attach(session_factory(account, manager))
            self.managers[account.name] = manager
        if not self.managers:
            raise ConfigError("No valid accounts to manage.")
        logger.info("Fleet ready: accounts=%d", len(self.managers))

    def _dispatch(self, manager: SessionLifecycleManager, action: str) -> asyncio.Task[None]:
        task = asyncio.create_task(self._run_action(manager, action), name=f"{action}:{manager.name}")
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _run_action(self, manager: SessionLifecycleManager, action: str) -> None:
        try:
            await getattr(manager, action)()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("Sweep action failed (non-fatal): account=%s action=%s error=%s", manager.name, action, exc)

    def sweep_login(self) -> list[asyncio.Task[None]]:
        return [self._dispatch(manager, "consider_login") for manager in self.managers.values()]

    def sweep_activity(self) -> list[asyncio.Task[None]]:
        return [self._dispatch(manager, "consider_activity_refresh") for manager in self.managers.values()]

    async def _sweep_loop(self, interval: float, sweep: Callable[[], object], label: str) -> None:
        logger.info("Sweep loop started: sweep=%s interval=%.0fs", label, interval)
        try:
            while True:
                await self._sleep(max(1.0, float(interval)))
                sweep()
        except asyncio.CancelledError:
            logger.info("Sweep loop cancelled: sweep=%s", label)
            raise

    def start(self) -> None:
        """Cold-start sweep, then schedule both periodic sweeps."""
        if self._loops:
            return
        self.sweep_login()
        self._loops = [
            asyncio.create_task(self._sweep_loop(self.login_interval, self.sweep_login, "login")),
            asyncio.create_task(self._sweep_loop(self.activity_interval, self.sweep_activity, "activity")),
        ]

    async def run(self) -> None:
        self.start()
        await asyncio.gather(*self._loops)

    async def wait_idle(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def statuses(self) -> list[AccountStatus]:
        return [manager.status() for manager in self.managers.values()]

    async def close(self) -> None:
        tasks = [*self._loops, *self._pending]
        self._loops = []
        for task in tasks:
            if not task.done():
                task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:
                pass

        for manager in self.managers.values():
            close = getattr(manager.session, "close", None)
            if close is None:
                continue
            try:
                result = close()
                if asyncio.iscoroutine(result):
                    await result
                logger.info("Closed remote session: account=%s", manager.name)
            except Exception as exc:
                logger.warning("Failed to close remote session: account=%s error=%s", manager.name, exc)
