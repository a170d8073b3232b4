"""
Send guard: rate limit, per-recipient daily cap and duplicate detection.

``evaluate`` is a pure decision over the lockout flag and the send log.
``SendGuard`` wires it to the stores and trips the lockout on every block.

Rules, checked in order against a non-empty log (first match wins):
  1. rate limit        - the last email went out less than N seconds ago
  2. daily recipient   - any email to the same recipient inside the window
  3. duplicate         - the last email had the same recipient and subject
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Sequence

from outreach.errors import LockedOutError
from outreach.settings import SenderSettings
from storage.lockout import LockoutFlag, LockoutStore
from storage.send_log import SendLogStore, SendRecord, format_timestamp

logger = logging.getLogger(__name__)


class BlockReason(str, Enum):
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    DAILY_RECIPIENT_LIMIT_EXCEEDED = "DAILY_RECIPIENT_LIMIT_EXCEEDED"
    DUPLICATE_DETECTED = "DUPLICATE_DETECTED"


@dataclass(frozen=True)
class SendRequest:
    to: str
    subject: str


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None
    details: str = ""
    previous: Optional[SendRecord] = None
    lockout: Optional[LockoutFlag] = None

    @classmethod
    def allow(cls) -> "Decision":
        return cls(allowed=True)

    @classmethod
    def block(cls, reason, details: str, previous=None, lockout=None) -> "Decision":
        return cls(
            allowed=False,
            reason=str(reason.value if isinstance(reason, BlockReason) else reason),
            details=details,
            previous=previous,
            lockout=lockout,
        )


def evaluate(
    request: SendRequest,
    log: Sequence[SendRecord],
    lockout: Optional[LockoutFlag],
    now: datetime,
    settings: Optional[SenderSettings] = None,
) -> Decision:
    """Decide whether ``request`` may be sent at ``now``."""
    settings = settings or SenderSettings()

    if lockout is not None:
        return Decision.block(lockout.reason, lockout.details, lockout=lockout)

    if not log:
        return Decision.allow()

    last = log[-1]

    elapsed = (now - last.timestamp).total_seconds()
    if elapsed < settings.rate_limit_seconds:
        return Decision.block(
            BlockReason.RATE_LIMIT_EXCEEDED,
            f"Attempted to send email {elapsed:.1f}s after previous email "
            f"(minimum: {settings.rate_limit_seconds:g}s)",
            previous=last,
        )

    window_start = now - timedelta(hours=settings.recipient_window_hours)
    recent = [r for r in log if r.to == request.to and r.timestamp > window_start]
    if recent:
        latest = recent[-1]
        hours = (now - latest.timestamp).total_seconds() / 3600
        return Decision.block(
            BlockReason.DAILY_RECIPIENT_LIMIT_EXCEEDED,
            f"Attempted to send email to {request.to} only {hours:.1f} hours after "
            f"previous email (minimum: {settings.recipient_window_hours:g} hours)",
            previous=latest,
        )

    if last.to == request.to and last.subject == request.subject:
        return Decision.block(
            BlockReason.DUPLICATE_DETECTED,
            "Attempted to send duplicate email with same recipient and subject",
            previous=last,
        )

    return Decision.allow()


class SendGuard:
    """Runs ``evaluate`` against persisted state and records every block."""

    def __init__(
        self,
        log_store: SendLogStore,
        lockout_store: LockoutStore,
        settings: Optional[SenderSettings] = None,
    ):
        self.log_store = log_store
        self.lockout_store = lockout_store
        self.settings = settings or SenderSettings()

    def check(self, request: SendRequest, now: datetime) -> Decision:
        """
        Return the Allow decision, or raise LockedOutError.

        A block found through the log rules writes a new lockout flag before
        raising; an existing flag is reported as-is.
        """
        existing = self.lockout_store.load()
        if existing is not None:
            logger.warning("Lockout flag present (%s); refusing to send", existing.reason)
            raise LockedOutError(existing, newly_tripped=False)

        log = self.log_store.load()
        decision = evaluate(request, log, None, now, self.settings)
        if decision.allowed:
            logger.debug("Guard passed for %s (%d records in log)", request.to, len(log))
            return decision

        flag = LockoutFlag(
            reason=decision.reason,
            timestamp=now,
            details=decision.details,
            attempted_email={
                "to": request.to,
                "subject": request.subject,
                "timestamp": format_timestamp(now),
            },
            previous_email=decision.previous.summary() if decision.previous else {},
        )
        self.lockout_store.set(flag)
        logger.warning("Send blocked: %s - %s", flag.reason, flag.details)
        raise LockedOutError(flag, newly_tripped=True)
