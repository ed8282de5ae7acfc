from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from ..errors import ExecutionError, ResourceAcquisitionError
from .command import CommandRunner
from .resources import Resource, ResourceKind, ResourceStack

logger = logging.getLogger(__name__)


@dataclass
class MountPoint:
    source: str
    dest: Path
    bind: bool = False
    resource: Resource | None = field(default=None, repr=False)

    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.BIND if self.bind else ResourceKind.MOUNT


def unmount(runner: CommandRunner, mp: MountPoint) -> None:
    logger.info("# Umount %s", str(mp.dest))
    # Flush buffered writes right before the filesystem goes away.
    runner.run(["sync"])
    runner.run(["umount", str(mp.dest)])


def mount(
    runner: CommandRunner,
    resources: ResourceStack,
    source: str,
    dest: str | Path,
    *,
    bind: bool = False,
) -> MountPoint:
    """Mount source at dest and push the unmount onto the resource stack."""

    d = Path(dest)
    try:
        d.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ResourceAcquisitionError(f"Unable to create mount point {d}: {e}") from e

    argv = ["mount", "--bind", source, str(d)] if bind else ["mount", source, str(d)]
    logger.info(">> %s", " ".join(argv))
    try:
        runner.run(argv)
    except ExecutionError as e:
        raise ResourceAcquisitionError(f"Mount failed: {source} -> {d}\n{e.stderr.rstrip()}") from e

    mp = MountPoint(source=str(source), dest=d, bind=bind)
    mp.resource = resources.push(f"mount {d}", lambda: unmount(runner, mp), mp.kind)
    return mp


def bind_mount(runner: CommandRunner, resources: ResourceStack, source: str, dest: str | Path) -> MountPoint:
    return mount(runner, resources, source, dest, bind=True)
