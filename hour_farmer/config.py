from __future__ import annotations

import io
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path

from dotenv import dotenv_values, load_dotenv

from hour_farmer.guard import InvalidSharedSecret, decode_shared_secret
from hour_farmer.models import AccountDescriptor, Game

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent
ACCOUNT_HEADER = "[STEAM_ACCOUNT]"


class ConfigError(ValueError):
    """Raised when the process cannot start with the given configuration."""


@dataclass(frozen=True)
class Config:
    session_factory: str
    accounts_file: Path = field(default_factory=lambda: Path("accounts.env"))
    log_level: str = "INFO"
    status_port: int = 0

    @classmethod
    def from_env(cls, env_path: Path | str | None = None) -> Config:
        load_dotenv(dotenv_path=env_path or PROJECT_ROOT / ".env")

        session_factory = (os.getenv("SESSION_FACTORY") or "").strip()
        if not session_factory:
            raise ConfigError("Missing required environment variable: SESSION_FACTORY")

        raw_port = os.getenv("STATUS_PORT", "0").strip() or "0"
        try:
            status_port = int(raw_port)
        except ValueError as exc:
            raise ConfigError(f"Invalid STATUS_PORT value (not an integer): {raw_port!r}") from exc

        return cls(
            session_factory=session_factory,
            accounts_file=Path(os.getenv("ACCOUNTS_FILE") or "accounts.env"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            status_port=max(0, status_port),
        )


def _split_blocks(text: str) -> list[str]:
    blocks: list[str] = []
    current: list[str] = []
    for line in text.splitlines():
        if line.strip() == ACCOUNT_HEADER:
            if current:
                blocks.append("\n".join(current))
                current = []
            continue
        current.append(line)
    if current:
        blocks.append("\n".join(current))
    return blocks


def parse_games(raw_value: str | None) -> tuple[Game, ...]:
    games: list[Game] = []
    for entry in (raw_value or "").split(","):
        text = entry.strip()
        if not text:
            continue
        games.append(int(text) if text.isdecimal() else text)
    return tuple(games)


def _parse_persona(raw_value: str | None, account_name: str) -> int | None:
    text = (raw_value or "").strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        logger.warning("Invalid PERSONA value (not an integer), ignoring: account=%s value=%r", account_name, raw_value)
        return None


def account_problems(account: AccountDescriptor) -> list[str]:
    """Reasons an account cannot be managed; empty when it is usable."""
    problems: list[str] = []
    missing = [
        key
        for key, present in (("ACCOUNT_NAME", account.name), ("PASSWORD", account.password), ("GAMES", account.games))
        if not present
    ]
    if missing:
        problems.append(f"missing required fields ({', '.join(missing)})")
    if account.shared_secret:
        try:
            decode_shared_secret(account.shared_secret)
        except InvalidSharedSecret:
            problems.append("SHARED_SECRET is not valid base64")
    return problems


def log_skipped_account(account: AccountDescriptor, problems: list[str]) -> None:
    logger.error('Invalid account "%s": %s. Skipping this account.', account.name or "unknown", "; ".join(problems))


def _build_account(values: dict[str, str | None]) -> AccountDescriptor | None:
    account = AccountDescriptor(
        name=(values.get("ACCOUNT_NAME") or "").strip(),
        password=values.get("PASSWORD") or "",
        games=parse_games(values.get("GAMES")),
        shared_secret=(values.get("SHARED_SECRET") or "").strip(),
    )
    problems = account_problems(account)
    if problems:
        log_skipped_account(account, problems)
        return None
    return replace(account, persona=_parse_persona(values.get("PERSONA"), account.name))


def parse_accounts(text: str) -> list[AccountDescriptor]:
    """Parse ``[STEAM_ACCOUNT]`` separated dotenv blocks into validated accounts.

    Invalid or duplicate blocks are skipped with a logged reason. Raises
    ConfigError when no usable account remains.
    """
    accounts: list[AccountDescriptor] = []
    seen: set[str] = set()
    for block in _split_blocks(text):
        values = dotenv_values(stream=io.StringIO(block))
        if not values:
            continue
        account = _build_account(values)
        if account is None:
            continue
        if account.name in seen:
            logger.error('Duplicate account "%s". Skipping this account.', account.name)
            continue
        seen.add(account.name)
        accounts.append(account)

    if not accounts:
        raise ConfigError("No valid accounts found in accounts file.")
    return accounts


def load_accounts(path: Path | str) -> list[AccountDescriptor]:
    accounts_path = Path(path)
    try:
        text = accounts_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Unable to read accounts file {accounts_path}: {exc}") from exc
    accounts = parse_accounts(text)
    logger.info("Loaded accounts: count=%d path=%s", len(accounts), accounts_path)
    return accounts
