from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from ..errors import AttachmentError, ExecutionError, ResourceOrderError
from .command import CommandRunner, stdout_text
from .image import BackingImage
from .resources import Resource, ResourceKind, ResourceStack

logger = logging.getLogger(__name__)

_LOOP_RE = re.compile(r"^/dev/loop[0-9]+$")


@dataclass
class LoopAttachment:
    image: BackingImage
    device: str
    runner: CommandRunner = field(repr=False)
    detached: bool = False
    resource: Resource | None = field(default=None, repr=False)

    def partition_path(self, n: int) -> str:
        return f"{self.device}p{n}"

    def detach(self) -> None:
        if self.detached:
            raise ResourceOrderError(f"{self.device} is already detached")
        logger.info("# Dropping %s", self.device)
        self.runner.run(["losetup", "-d", self.device])
        self.detached = True
        self.image.attached = False


def parse_device(output: str) -> str:
    device = output.strip()
    if not _LOOP_RE.match(device):
        raise AttachmentError(f"Could not parse loop device from losetup output: {output!r}")
    return device


def attach(runner: CommandRunner, resources: ResourceStack, image: BackingImage) -> LoopAttachment:
    """Bind image to the next free loop device."""

    try:
        r = runner.run(["losetup", "--show", "--find", str(image.path)])
    except ExecutionError as e:
        raise AttachmentError(f"No free loop device for {image.path}: {e.stderr.strip()}") from e

    device = parse_device(stdout_text(r))
    image.attached = True
    loop = LoopAttachment(image=image, device=device, runner=runner)
    loop.resource = resources.push(f"loop {device}", loop.detach, ResourceKind.LOOP)
    logger.info("> Main disk at %s", device)
    return loop
