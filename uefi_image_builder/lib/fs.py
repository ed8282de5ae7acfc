from __future__ import annotations

import logging
from typing import Optional

from ..errors import ArgumentError
from .command import CommandRunner

logger = logging.getLogger(__name__)

FORMATTERS = {
    "vfat": ["mkfs.vfat", "-F", "32"],
    "ext4": ["mkfs.ext4"],
    "swap": ["mkswap"],
}


def format_partition(runner: CommandRunner, device: str, fs_type: Optional[str]) -> None:
    if fs_type is None:
        logger.debug("No filesystem for %s", device)
        return

    argv = FORMATTERS.get(fs_type)
    if argv is None:
        raise ArgumentError(f"Unsupported filesystem type {fs_type!r} for {device}")

    runner.run([*argv, device])
