"""
Error types raised while resolving, guarding and sending a single email.
"""

from typing import Optional


class SendEmailError(Exception):
    """Base class for errors that end the current invocation."""


class ConfigMissingError(SendEmailError):
    pass


class AccountNotFoundError(SendEmailError):
    def __init__(self, account: str, available: Optional[dict] = None):
        self.account = account
        self.available = available or {}
        super().__init__(f"Account '{account}' not found in .env")


class CredentialNotConfiguredError(SendEmailError):
    def __init__(self, account: str):
        self.account = account
        super().__init__(f"App password not configured for account '{account}'")


class AttachmentNotFoundError(SendEmailError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Attachment file not found: {path}")


class LockedOutError(SendEmailError):
    """
    Sending is blocked by a lockout flag.

    ``newly_tripped`` is True when this invocation created the flag and False
    when a flag from an earlier invocation was found.
    """

    def __init__(self, flag, newly_tripped: bool = False):
        self.flag = flag
        self.newly_tripped = newly_tripped
        super().__init__(f"{flag.reason}: {flag.details}")

    @property
    def reason(self) -> str:
        return self.flag.reason

    @property
    def details(self) -> str:
        return self.flag.details


class TransportError(SendEmailError):
    pass


class AuthenticationError(TransportError):
    pass


class LogCorruptError(Exception):
    """The send log exists but cannot be parsed. Recovered from, never fatal."""


class SettingsError(SendEmailError):
    def __init__(self, path, problem: str):
        self.path = path
        super().__init__(f"Invalid settings file {path}: {problem}")
