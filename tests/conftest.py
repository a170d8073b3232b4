import os
import stat
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from outreach.settings import SenderSettings
from storage.send_log import SendRecord

T0 = datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_record(to="a@x.com", subject="Hi", timestamp=T0, **kwargs) -> SendRecord:
    defaults = {
        "from_account": "personal",
        "sender": "me@gmail.com",
        "message_id": "<1@gmail.com>",
    }
    defaults.update(kwargs)
    return SendRecord(timestamp=timestamp, to=to, subject=subject, **defaults)


@pytest.fixture
def log_dir(tmp_path):
    path = tmp_path / "logs"
    yield path
    # Lockout writes leave the directory read-only.
    if path.exists():
        os.chmod(path, stat.S_IRWXU)
        for child in path.iterdir():
            os.chmod(child, stat.S_IRUSR | stat.S_IWUSR)


@pytest.fixture
def settings(log_dir):
    return SenderSettings(log_dir=log_dir)
