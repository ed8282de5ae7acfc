from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Mapping, Sequence

from ..errors import PreconditionError, ResourceAcquisitionError
from .command import CmdResult, CommandRunner
from .mounts import MountPoint, bind_mount
from .resources import ResourceStack

logger = logging.getLogger(__name__)

# Minimal bind mounts for apt/apk, grub and initramfs tooling
SYSTEM_DIRS = ("/dev", "/proc", "/sys")


class Chroot:
    """Run commands inside the target root."""

    def __init__(self, root: str | Path, runner: CommandRunner) -> None:
        self.root = Path(root)
        self.runner = runner
        self.binds: List[MountPoint] = []

    @property
    def ready(self) -> bool:
        return len(self.binds) == len(SYSTEM_DIRS) and all(
            b.resource is not None and not b.resource.released for b in self.binds
        )

    def path(self, rel: str) -> Path:
        return self.root / rel.lstrip("/")

    def bind_system_dirs(self, resources: ResourceStack) -> None:
        for src in SYSTEM_DIRS:
            self.binds.append(bind_mount(self.runner, resources, src, self.path(src)))

    def run(
        self,
        argv: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
        input_text: str | None = None,
        check: bool = True,
    ) -> CmdResult:
        if not self.ready:
            raise PreconditionError(
                f"Refusing to chroot into {self.root}: /dev, /proc and /sys are not bind mounted"
            )
        return self.runner.run(
            ["chroot", str(self.root), *argv],
            env=env,
            input_text=input_text,
            check=check,
        )

    def write_text(self, rel: str, contents: str) -> Path:
        p = self.path(rel)
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_text(contents, encoding="utf-8")
        except OSError as e:
            raise ResourceAcquisitionError(f"Unable to write {p}: {e}") from e
        return p
