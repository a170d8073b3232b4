"""
Sender accounts defined in the local .env file.

Each account is a group of keys sharing a suffix:

    GMAIL_USER_<account>=email@example.com
    GMAIL_PASSWORD_<account>=app-password
    GMAIL_NAME_<account>=Display Name

DEFAULT_ACCOUNT names the account used when no --from is given.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import dotenv_values

from outreach.errors import (
    AccountNotFoundError,
    ConfigMissingError,
    CredentialNotConfiguredError,
)

logger = logging.getLogger(__name__)

USER_PREFIX = "GMAIL_USER_"
PASSWORD_PREFIX = "GMAIL_PASSWORD_"
NAME_PREFIX = "GMAIL_NAME_"
DEFAULT_ACCOUNT_KEY = "DEFAULT_ACCOUNT"
PLACEHOLDER_MARKER = "PLACEHOLDER"


@dataclass(frozen=True)
class Account:
    name: str
    address: str
    password: str
    display_name: str

    @property
    def formatted_address(self) -> str:
        return f'"{self.display_name}" <{self.address}>'

    def __repr__(self) -> str:
        return f"Account(name={self.name!r}, address={self.address!r})"


def load_config(path: Path) -> dict[str, str]:
    """Read the key/value pairs of the .env file, skipping empty keys."""
    path = Path(path)
    if not path.exists():
        raise ConfigMissingError(f".env file not found at {path}")
    values = dotenv_values(path)
    config = {k: (v or "").strip() for k, v in values.items() if k}
    logger.debug("Loaded %d config keys from %s", len(config), path)
    return config


def available_accounts(config: dict[str, str]) -> dict[str, str]:
    """Map of account name -> address for every configured account."""
    return {
        key[len(USER_PREFIX):]: value
        for key, value in config.items()
        if key.startswith(USER_PREFIX) and len(key) > len(USER_PREFIX)
    }


def resolve_account(
    config: dict[str, str],
    name: Optional[str] = None,
    default_display_name: str = "",
) -> Account:
    """
    Build the Account to send from.

    Falls back to DEFAULT_ACCOUNT when ``name`` is empty. Raises
    ConfigMissingError, AccountNotFoundError or CredentialNotConfiguredError.
    """
    if not name:
        name = config.get(DEFAULT_ACCOUNT_KEY, "")
        if not name:
            raise ConfigMissingError(
                f"No --from account specified and no {DEFAULT_ACCOUNT_KEY} in .env"
            )

    address = config.get(f"{USER_PREFIX}{name}", "")
    if not address:
        raise AccountNotFoundError(name, available_accounts(config))

    password = config.get(f"{PASSWORD_PREFIX}{name}", "")
    if not password or password.startswith(PLACEHOLDER_MARKER):
        raise CredentialNotConfiguredError(name)

    display_name = (
        config.get(f"{NAME_PREFIX}{name}", "") or default_display_name or address
    )
    return Account(name=name, address=address, password=password, display_name=display_name)
