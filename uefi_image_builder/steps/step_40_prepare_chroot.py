from __future__ import annotations

import logging
from typing import Any, Dict

from ..flavors import get_installer
from ..lib.chroot import Chroot
from ..lib.container import copy_resolv_conf
from ..pipeline import BuildCtx

logger = logging.getLogger(__name__)


class PrepareChrootStep:
    step_id = "40_prepare_chroot"

    def run(self, ctx: BuildCtx, state: Dict[str, Any]) -> Dict[str, Any]:
        root_mount = ctx.require("root_mount")

        copy_resolv_conf(root_mount.dest, ctx.cfg.resolv_conf)

        ctx.chroot = Chroot(root_mount.dest, ctx.runner)
        ctx.chroot.bind_system_dirs(ctx.resources)

        ctx.installer = get_installer(
            ctx.request.flavor,
            ctx.chroot,
            cfg=ctx.cfg,
            resources=ctx.resources,
            hostname=ctx.hostname,
        )
        return state
