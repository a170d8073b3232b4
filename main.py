#!/usr/bin/env python3
"""
Send an email via Gmail SMTP, behind the send guard.

Usage:
    python main.py <to> <subject> <message> [--from <account>] [--cc <addresses>] [attachments...]

Examples:
    python main.py "client@example.com" "Invoice INV-123" "Please find attached your invoice." ./invoice.pdf
    python main.py "client@example.com" "Invoice" "Message" --from work ./invoice.pdf
    python main.py "client@example.com" "Invoice" "Message" --from personal --cc "other@example.com" ./invoice.pdf

Accounts are configured in .env (see .env.example). If --from is omitted,
DEFAULT_ACCOUNT is used.
"""

import argparse
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from outreach.accounts import load_config, resolve_account
from outreach.attachments import resolve_attachments
from outreach.errors import (
    AccountNotFoundError,
    AuthenticationError,
    ConfigMissingError,
    CredentialNotConfiguredError,
    LockedOutError,
    SendEmailError,
    SettingsError,
    TransportError,
)
from outreach.sender import GmailSender, parse_cc
from outreach.settings import ENV_FILE, SenderSettings, load_settings
from processing.guard import BlockReason, SendGuard, SendRequest
from storage.lockout import JsonLockoutStore
from storage.send_log import JsonSendLogStore, SendRecord

logger = logging.getLogger("main")

APP_PASSWORD_URL = "https://myaccount.google.com/apppasswords"

BLOCK_HEADLINES = {
    BlockReason.RATE_LIMIT_EXCEEDED.value: "RATE LIMIT EXCEEDED",
    BlockReason.DAILY_RECIPIENT_LIMIT_EXCEEDED.value: "DAILY RECIPIENT LIMIT EXCEEDED",
    BlockReason.DUPLICATE_DETECTED.value: "DUPLICATE EMAIL DETECTED",
}


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        description="Send an email via Gmail SMTP with rate limiting and duplicate protection",
        epilog="Accounts are read from .env: GMAIL_USER_<account>, GMAIL_PASSWORD_<account>, GMAIL_NAME_<account>",
    )
    parser.add_argument("to", help="Recipient address")
    parser.add_argument("subject", help="Subject line")
    parser.add_argument("message", help="Plain-text body")
    parser.add_argument(
        "attachments",
        nargs="*",
        default=[],
        help="Files to attach",
    )
    parser.add_argument(
        "--from",
        dest="from_account",
        default="",
        metavar="ACCOUNT",
        help="Account to send from (e.g. personal, work). Defaults to DEFAULT_ACCOUNT",
    )
    parser.add_argument(
        "--cc",
        default="",
        metavar="ADDRESSES",
        help="CC recipients (comma-separated for multiple)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


def _err(*lines: str) -> None:
    for line in lines:
        print(line, file=sys.stderr)


def _unlock_hint(settings: SenderSettings) -> str:
    return f"  chmod +w {settings.log_dir} && rm {settings.lockout_path}"


def report_lockout(exc: LockedOutError, settings: SenderSettings) -> None:
    flag = exc.flag
    if not exc.newly_tripped:
        _err(
            "",
            "ABORT FLAG DETECTED",
            "",
            "Email sending has been blocked due to a previous safety violation:",
            f"  Reason: {flag.reason}",
            f"  Timestamp: {flag.to_dict()['timestamp'] or 'unknown'}",
            f"  Details: {flag.details}",
        )
    else:
        _err("", BLOCK_HEADLINES.get(flag.reason, flag.reason), "")
        if flag.reason == BlockReason.RATE_LIMIT_EXCEEDED.value:
            _err(f"You can only send 1 email every {settings.rate_limit_seconds:g} seconds.")
        elif flag.reason == BlockReason.DAILY_RECIPIENT_LIMIT_EXCEEDED.value:
            _err(
                f"You can only send 1 email per recipient every "
                f"{settings.recipient_window_hours:g} hours.",
                f"Recipient: {flag.attempted_email.get('to', '')}",
            )
        elif flag.reason == BlockReason.DUPLICATE_DETECTED.value:
            _err(
                "The previous email had the same recipient and subject:",
                f"  To: {flag.attempted_email.get('to', '')}",
                f"  Subject: {flag.attempted_email.get('subject', '')}",
            )
        _err(flag.details)
    _err("", "To re-enable email sending:", _unlock_hint(settings), "")


def report_error(exc: SendEmailError, account=None) -> None:
    if isinstance(exc, TransportError):
        _err("", f"Error sending email: {exc}")
    else:
        _err(f"Error: {exc}")

    if isinstance(exc, AccountNotFoundError):
        _err("", "Available accounts:")
        for name, address in exc.available.items():
            _err(f"  --from {name}  ({address})")
    elif isinstance(exc, CredentialNotConfiguredError):
        _err(
            f"Please set GMAIL_PASSWORD_{exc.account} in .env",
            "",
            f"Get an App Password: {APP_PASSWORD_URL}",
        )
    elif isinstance(exc, ConfigMissingError):
        _err("Please copy .env.example to .env and configure your Gmail credentials.")
    elif isinstance(exc, SettingsError):
        _err("Fix the value in the settings file, or point SEND_EMAIL_SETTINGS at another one.")
    elif isinstance(exc, AuthenticationError):
        _err(
            "",
            "Authentication failed. Please check:",
            f"1. Your email address is correct: {account.address if account else ''}",
            "2. You are using an App Password (not your regular password)",
            "3. 2FA is enabled on your Google account",
            "",
            f"Get an App Password: {APP_PASSWORD_URL}",
        )


def run(
    argv: Optional[list[str]] = None,
    settings: Optional[SenderSettings] = None,
    env_file: Optional[Path] = None,
    sender_factory=GmailSender,
    now=None,
) -> int:
    """Run one send. Returns the process exit code."""
    args = build_parser().parse_intermixed_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    env_file = env_file or Path(os.getenv("SEND_EMAIL_ENV", ENV_FILE))
    now = now or (lambda: datetime.now(timezone.utc))
    cc = parse_cc(args.cc)

    account = None
    try:
        settings = settings or load_settings()
        log_store = JsonSendLogStore(settings.log_path)
        guard = SendGuard(log_store, JsonLockoutStore(settings.lockout_path), settings)

        config = load_config(env_file)
        account = resolve_account(config, args.from_account, settings.default_display_name)
        logger.debug("Sending from account %s (%s)", account.name, account.address)

        guard.check(SendRequest(to=args.to, subject=args.subject), now())
        attachments = resolve_attachments(args.attachments)

        print("Sending email...")
        sender = sender_factory(account, settings)
        result = sender.send(args.to, args.subject, args.message, cc, attachments)
    except LockedOutError as exc:
        report_lockout(exc, settings)
        return 1
    except SendEmailError as exc:
        report_error(exc, account)
        return 1

    record = SendRecord(
        timestamp=now(),
        from_account=account.name,
        sender=account.address,
        to=args.to,
        subject=args.subject,
        message_id=result.message_id,
        cc=tuple(cc),
        attachments=tuple(a.filename for a in attachments),
    )
    try:
        log_store.append(record)
    except OSError as exc:
        logger.error("Email was sent but could not be logged to %s: %s", settings.log_path, exc)
        _err(
            f"Error: email {result.message_id} was sent but not logged.",
            f"Add it to {settings.log_path} by hand before sending again.",
        )
        return 1

    print("Email sent successfully!")
    print(f"  From: {account.display_name} <{account.address}>")
    print(f"  To: {args.to}")
    if cc:
        print(f"  CC: {', '.join(cc)}")
    print(f"  Subject: {args.subject}")
    print(f"  Message ID: {result.message_id}")
    print(f"  Logged to: {settings.log_path}")
    return 0


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    try:
        sys.exit(run())
    except OSError as exc:
        logger.error("Unexpected I/O failure: %s", exc, exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
