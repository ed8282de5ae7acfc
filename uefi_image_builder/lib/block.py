from __future__ import annotations

import logging

from ..errors import PreconditionError
from .command import CommandRunner, stdout_text

logger = logging.getLogger(__name__)


def parse_uuid(blkid_export: str) -> str:
    for line in blkid_export.split("\n"):
        if line.startswith("UUID="):
            return line.strip()
    return ""


def read_uuid(runner: CommandRunner, dev: str) -> str:
    """Return the filesystem UUID of a block device as "UUID=<uuid>"."""

    r = runner.run(["blkid", "-o", "export", dev])
    uuid = parse_uuid(stdout_text(r))
    if not uuid:
        raise PreconditionError(f"Unable to determine UUID for {dev}")
    return uuid
