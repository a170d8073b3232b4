"""
Append-only log of sent emails.

The log is a JSON array in chronological order; the last element is always
the most recently sent email. It is rewritten whole on every append.
"""

import json
import logging
import os
import stat
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol

from outreach.errors import LogCorruptError

logger = logging.getLogger(__name__)


def format_timestamp(dt: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a Z suffix."""
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def parse_timestamp(value: str) -> datetime:
    dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass(frozen=True)
class SendRecord:
    timestamp: datetime
    from_account: str
    sender: str
    to: str
    subject: str
    message_id: str
    cc: tuple[str, ...] = ()
    attachments: tuple[str, ...] = field(default_factory=tuple)

    def summary(self) -> dict:
        """The (to, subject, timestamp) triple quoted in lockout flags."""
        return {
            "to": self.to,
            "subject": self.subject,
            "timestamp": format_timestamp(self.timestamp),
        }

    def to_dict(self) -> dict:
        data = {
            "timestamp": format_timestamp(self.timestamp),
            "from": self.sender,
            "fromAccount": self.from_account,
            "to": self.to,
        }
        if self.cc:
            data["cc"] = ",".join(self.cc)
        data["subject"] = self.subject
        data["messageId"] = self.message_id
        data["attachments"] = list(self.attachments)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "SendRecord":
        cc = data.get("cc") or ()
        if isinstance(cc, str):
            cc = [c.strip() for c in cc.split(",") if c.strip()]
        return cls(
            timestamp=parse_timestamp(data["timestamp"]),
            from_account=data.get("fromAccount", ""),
            sender=data.get("from", ""),
            to=data["to"],
            subject=data["subject"],
            message_id=data.get("messageId", ""),
            cc=tuple(cc),
            attachments=tuple(data.get("attachments") or ()),
        )


class SendLogStore(Protocol):
    def load(self) -> list[SendRecord]: ...

    def append(self, record: SendRecord) -> None: ...


def parse_send_log(text: str) -> list[SendRecord]:
    """Parse the JSON array of records. Raises LogCorruptError."""
    try:
        payload = json.loads(text)
    except ValueError as exc:
        raise LogCorruptError(f"invalid JSON: {exc}") from exc
    if not isinstance(payload, list):
        raise LogCorruptError(f"expected a list of records, got {type(payload).__name__}")

    records = []
    for i, item in enumerate(payload):
        try:
            records.append(SendRecord.from_dict(item))
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise LogCorruptError(f"record {i} is malformed: {exc!r}") from exc
    return records


class JsonSendLogStore:
    """Send log persisted as a JSON file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> list[SendRecord]:
        """
        Return the logged records, oldest first.

        A missing or unparseable file yields an empty log. A file that cannot
        be read at all (permissions, I/O) raises OSError, so an append never
        replaces history it could not see.
        """
        if not self.path.exists():
            return []
        raw = self.path.read_bytes()
        try:
            return parse_send_log(raw.decode("utf-8"))
        except (LogCorruptError, UnicodeDecodeError) as exc:
            logger.warning(
                "Could not parse email log %s (%s). Starting fresh.", self.path, exc
            )
            return []

    def append(self, record: SendRecord) -> None:
        records = self.load()
        records.append(record)
        self._write([r.to_dict() for r in records])
        logger.debug("Appended send record to %s (%d total)", self.path, len(records))

    def _write(self, payload: list) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            mode = stat.S_IMODE(self.path.stat().st_mode)
        except FileNotFoundError:
            mode = 0o644
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_name, mode)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


class MemorySendLogStore:
    def __init__(self, records: Optional[list[SendRecord]] = None):
        self.records = list(records or [])

    def load(self) -> list[SendRecord]:
        return list(self.records)

    def append(self, record: SendRecord) -> None:
        self.records.append(record)
