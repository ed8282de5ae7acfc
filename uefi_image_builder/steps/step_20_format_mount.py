from __future__ import annotations

import logging
from typing import Any, Dict

from ..errors import ResourceAcquisitionError
from ..lib.fs import format_partition
from ..lib.mounts import mount
from ..pipeline import BuildCtx

logger = logging.getLogger(__name__)


class FormatMountStep:
    step_id = "20_format_mount"

    def run(self, ctx: BuildCtx, state: Dict[str, Any]) -> Dict[str, Any]:
        disk = ctx.require("disk")

        logger.info("> Format partitions")
        for spec in disk.layout.partitions:
            format_partition(ctx.runner, disk.loop.partition_path(spec.index), spec.fs_type)

        logger.info("> Mount partitions")
        root = ctx.mount_root
        ctx.root_mount = mount(ctx.runner, ctx.resources, disk.device("root"), root)
        ctx.esp_mount = mount(ctx.runner, ctx.resources, disk.device("esp"), root / "boot/efi")

        boot_dir = root / "boot/efi/EFI/BOOT"
        try:
            boot_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ResourceAcquisitionError(f"Unable to create {boot_dir}: {e}") from e
        return state
