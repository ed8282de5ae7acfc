from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.container import ContainerEngine, unpack
from ..pipeline import BuildCtx
from ..state_store import record_decision

logger = logging.getLogger(__name__)

EXPORT_NAME = "export.tar"


class UnpackContainerStep:
    step_id = "30_unpack_container"

    def run(self, ctx: BuildCtx, state: Dict[str, Any]) -> Dict[str, Any]:
        root_mount = ctx.require("root_mount")

        archive = ctx.container_archive
        if archive is None:
            engine = ContainerEngine(ctx.runner, ctx.cfg.container_engine)
            archive = engine.export(ctx.request.image_name, ctx.work_dir / EXPORT_NAME)
        else:
            logger.info("> Using supplied filesystem archive %s", str(archive))

        unpack(ctx.runner, archive, root_mount.dest)
        record_decision(state, "archive", str(archive))
        return state
