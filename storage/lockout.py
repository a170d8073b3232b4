"""
Persistent lockout flag.

While the flag file exists every send is blocked. Nothing in this package
removes it: re-enabling sends is a manual step (make the log directory
writable again and delete the file).
"""

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional, Protocol

from storage.send_log import format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

UNREADABLE_REASON = "UNREADABLE_LOCKOUT_FLAG"


@dataclass(frozen=True)
class LockoutFlag:
    reason: str
    timestamp: Optional[datetime]
    details: str
    attempted_email: dict = field(default_factory=dict)
    previous_email: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "reason": self.reason,
            "timestamp": format_timestamp(self.timestamp) if self.timestamp else None,
            "details": self.details,
            "attemptedEmail": self.attempted_email,
            "previousEmail": self.previous_email,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LockoutFlag":
        ts = data.get("timestamp")
        return cls(
            reason=str(data["reason"]),
            timestamp=parse_timestamp(ts) if ts else None,
            details=str(data.get("details", "")),
            attempted_email=data.get("attemptedEmail") or {},
            previous_email=data.get("previousEmail") or {},
        )


class LockoutStore(Protocol):
    def load(self) -> Optional[LockoutFlag]: ...

    def set(self, flag: LockoutFlag) -> None: ...


class JsonLockoutStore:
    """Lockout flag persisted as a JSON file next to the send log."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Optional[LockoutFlag]:
        if not self.path.exists():
            return None
        try:
            return LockoutFlag.from_dict(json.loads(self.path.read_text(encoding="utf-8")))
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
            # The file exists, so sending stays blocked even if it is unreadable.
            logger.warning("Lockout flag %s is unreadable: %s", self.path, exc)
            return LockoutFlag(
                reason=UNREADABLE_REASON,
                timestamp=None,
                details=f"Lockout flag exists but could not be read: {exc}",
            )

    def set(self, flag: LockoutFlag) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(flag.to_dict(), indent=2), encoding="utf-8")
        logger.info("Lockout flag written to %s (%s)", self.path, flag.reason)
        self._make_read_only()

    def _make_read_only(self) -> None:
        try:
            os.chmod(self.path, 0o444)
            os.chmod(self.path.parent, 0o555)
        except OSError as exc:
            logger.debug("Could not make %s read-only: %s", self.path, exc)


class MemoryLockoutStore:
    def __init__(self, flag: Optional[LockoutFlag] = None):
        self.flag = flag

    def load(self) -> Optional[LockoutFlag]:
        return self.flag

    def set(self, flag: LockoutFlag) -> None:
        self.flag = flag
