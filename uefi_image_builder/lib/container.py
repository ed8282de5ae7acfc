from __future__ import annotations

import logging
import shutil
import uuid
from pathlib import Path

from ..errors import ResourceAcquisitionError
from .command import CommandRunner

logger = logging.getLogger(__name__)

HOST_RESOLV_CONF = "/etc/resolv.conf"


class ContainerEngine:
    """docker (or a CLI compatible engine such as podman)."""

    def __init__(self, runner: CommandRunner, program: str = "docker") -> None:
        self.runner = runner
        self.program = program

    def export(self, image_name: str, dest: str | Path) -> Path:
        """Write the filesystem of a throwaway container of image_name to dest (tar)."""

        name = str(uuid.uuid4())
        dest = Path(dest)
        logger.info("> Copy %s image contents to %s", image_name, str(dest))

        self.runner.run([self.program, "run", "-d", "--entrypoint=/bin/sh", "--name", name, image_name])
        try:
            self.runner.run([self.program, "export", "-o", str(dest), name])
        finally:
            # Failures here must not mask an export error.
            for action in ("stop", "rm"):
                r = self.runner.run([self.program, action, name], check=False)
                if r.returncode != 0:
                    logger.warning("%s %s %s failed: %s", self.program, action, name, r.stderr.strip())
        return dest


def unpack(runner: CommandRunner, archive: str | Path, dest: str | Path) -> None:
    runner.run(["tar", "--sparse", "-C", str(dest), "-xf", str(archive)])


def copy_resolv_conf(root: str | Path, source: str | Path = HOST_RESOLV_CONF) -> Path:
    """Give chrooted package managers the host's DNS configuration."""

    dst = Path(root) / "etc/resolv.conf"
    try:
        dst.parent.mkdir(parents=True, exist_ok=True)
        # Images often ship resolv.conf as a symlink into /run, which is empty here.
        if dst.is_symlink():
            dst.unlink()
        shutil.copyfile(source, dst)
    except OSError as e:
        raise ResourceAcquisitionError(f"Unable to copy {source} into {dst}: {e}") from e
    return dst
