import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from outreach.errors import AttachmentNotFoundError


@dataclass(frozen=True)
class Attachment:
    filename: str
    path: Path


def resolve_attachments(paths: Iterable[str]) -> list[Attachment]:
    """
    Check every path up front so a missing file fails the invocation before
    anything is sent.
    """
    resolved = []
    for raw in paths:
        path = Path(raw).expanduser()
        if not path.is_file() or not os.access(path, os.R_OK):
            raise AttachmentNotFoundError(str(raw))
        resolved.append(Attachment(filename=path.name, path=path))
    return resolved
