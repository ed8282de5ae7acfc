from __future__ import annotations

import errno
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from ..errors import ArgumentError, ImageAllocationError
from .command import CommandRunner

logger = logging.getLogger(__name__)

GIB = 1024 * 1024 * 1024
IMAGE_NAME = "output.img"


@dataclass
class BackingImage:
    path: Path
    size_bytes: int
    attached: bool = False

    @classmethod
    def create(cls, work_dir: str | Path, size_gb: int) -> "BackingImage":
        """Create a sparse raw disk file of size_gb GiB in work_dir."""

        if size_gb < 1:
            raise ArgumentError(f"Disk size must be at least 1 GB, got {size_gb}")

        path = Path(work_dir) / IMAGE_NAME
        size_bytes = size_gb * GIB
        logger.info("> Creating %s GB file at %s", size_gb, str(path))
        try:
            with open(path, "wb") as f:
                f.truncate(size_bytes)
        except OSError as e:
            raise ImageAllocationError(f"Unable to allocate {size_bytes} bytes at {path}: {e}") from e
        return cls(path=path, size_bytes=size_bytes)

    def finalize(self, output_path: str | Path, runner: CommandRunner) -> Path:
        """Move the finished image to output_path."""

        if self.attached:
            raise ImageAllocationError(f"{self.path} is still attached to a loop device")

        dst = Path(output_path)
        logger.info("> Move %s to %s", str(self.path), str(dst))
        try:
            dst.parent.mkdir(parents=True, exist_ok=True)
            try:
                os.replace(self.path, dst)
            except OSError as e:
                if e.errno != errno.EXDEV:
                    raise
                # Other filesystem: keep the holes instead of writing out zeros.
                runner.run(["cp", "--sparse=always", str(self.path), str(dst)])
                self.path.unlink()
        except OSError as e:
            raise ImageAllocationError(f"Unable to move {self.path} to {dst}: {e}") from e
        self.path = dst
        return dst
