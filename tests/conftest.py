from __future__ import annotations

import asyncio

import pytest

from hour_farmer.models import AccountDescriptor


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSession:
    def __init__(self, account: AccountDescriptor | None = None, listener: object = None) -> None:
        self.account = account
        self.listener = listener
        self.authenticate_calls: list[tuple[str, str, str | None, bool]] = []
        self.activity_calls: list[list[int | str]] = []
        self.presence_calls: list[int] = []
        self.closed = False

    def authenticate(
        self,
        account_name: str,
        password: str,
        two_factor_code: str | None,
        auto_reconnect: bool = True,
    ) -> None:
        self.authenticate_calls.append((account_name, password, two_factor_code, auto_reconnect))

    def assert_activity(self, games) -> None:  # type: ignore[no-untyped-def]
        self.activity_calls.append(list(games))

    def set_presence(self, persona: int) -> None:
        self.presence_calls.append(persona)

    def close(self) -> None:
        self.closed = True


class FixedTwoFactor:
    def __init__(self, code: str = "F4K3C") -> None:
        self.code = code
        self.calls: list[tuple[str, str | None]] = []

    async def obtain_code(self, account: AccountDescriptor, domain_hint: str | None = None) -> str:
        self.calls.append((account.name, domain_hint))
        return self.code


class ManualTwoFactor:
    """Operator stand-in: each request waits until the test answers it."""

    def __init__(self) -> None:
        self.requests: list[tuple[str, str | None, asyncio.Future[str]]] = []

    async def obtain_code(self, account: AccountDescriptor, domain_hint: str | None = None) -> str:
        future: asyncio.Future[str] = asyncio.get_running_loop().create_future()
        self.requests.append((account.name, domain_hint, future))
        return await future

    def answer(self, code: str, index: int = -1) -> None:
        self.requests[index][2].set_result(code)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def account() -> AccountDescriptor:
    return AccountDescriptor(
        name="farmer_one",
        password="hunter2",
        games=(730, "Custom Game"),
        shared_secret="c2VjcmV0LXNoYXJlZC1rZXk=",
    )


@pytest.fixture
def manual_account() -> AccountDescriptor:
    return AccountDescriptor(name="farmer_two", password="pw-2", games=(440,))
