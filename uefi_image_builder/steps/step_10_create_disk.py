from __future__ import annotations

import logging
from typing import Any, Dict

from ..flavors import installer_class
from ..lib.image import BackingImage
from ..lib.losetup import attach
from ..lib.partition import gpt_layout, partition
from ..pipeline import BuildCtx
from ..state_store import record_decision

logger = logging.getLogger(__name__)


class CreateDiskStep:
    step_id = "10_create_disk"

    def run(self, ctx: BuildCtx, state: Dict[str, Any]) -> Dict[str, Any]:
        req = ctx.request

        logger.info("> Creating %s GB blank disk", req.disk_size_gb)
        ctx.image = BackingImage.create(ctx.work_dir, req.disk_size_gb)

        ctx.loop = attach(ctx.runner, ctx.resources, ctx.image)

        layout = gpt_layout(
            with_swap=installer_class(req.flavor).wants_swap,
            swap_size_mib=ctx.cfg.swap_size_mib,
        )
        ctx.disk = partition(ctx.runner, ctx.loop, layout)

        record_decision(state, "loop_device", ctx.loop.device)
        record_decision(state, "partitions", ctx.disk.devices())
        return state
