"""Steam Guard codes: generated from a shared secret or asked from the operator."""
from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from typing import Callable

from pyotp.contrib import Steam

from hour_farmer.models import AccountDescriptor

logger = logging.getLogger(__name__)


class InvalidSharedSecret(ValueError):
    """Raised when a shared secret is not valid base64."""


def decode_shared_secret(shared_secret: str) -> bytes:
    try:
        return base64.b64decode(shared_secret.strip(), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidSharedSecret("shared secret is not valid base64") from exc


def generate_auth_code(shared_secret: str) -> str:
    """Return the current 5-character Steam Guard code for a base64 shared secret."""
    raw = decode_shared_secret(shared_secret)
    return Steam(base64.b32encode(raw).decode("ascii")).now()


def _prompt_text(account_name: str, domain_hint: str | None) -> str:
    text = f'Enter Steam Guard code for account "{account_name}"'
    if domain_hint:
        text += f" for email at {domain_hint}"
    return text + ": "


class TwoFactorProvider:
    """Hands out two-factor codes to lifecycle managers.

    Accounts with a shared secret get a generated code right away. Others wait
    for the operator; prompts are answered one at a time and the blocking read
    runs in a worker thread so the other accounts keep being swept.
    """

    def __init__(self, input_func: Callable[[str], str] = input) -> None:
        self._input_func = input_func
        self._prompt_lock = asyncio.Lock()

    async def obtain_code(self, account: AccountDescriptor, domain_hint: str | None = None) -> str:
        if account.has_shared_secret:
            return generate_auth_code(account.shared_secret)

        async with self._prompt_lock:
            logger.info("Waiting for operator Steam Guard code: account=%s", account.name)
            answer = await asyncio.to_thread(self._input_func, _prompt_text(account.name, domain_hint))
        return (answer or "").strip()
