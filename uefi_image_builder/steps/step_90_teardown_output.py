from __future__ import annotations

import logging
from typing import Any, Dict

from ..pipeline import BuildCtx
from ..state_store import record_decision

logger = logging.getLogger(__name__)


class TeardownOutputStep:
    step_id = "90_teardown_output"

    def run(self, ctx: BuildCtx, state: Dict[str, Any]) -> Dict[str, Any]:
        image = ctx.require("image")

        logger.info("> Clean up")
        ctx.resources.close()

        ctx.output_path = image.finalize(ctx.request.output_file, ctx.runner)
        record_decision(state, "output_file", str(ctx.output_path))
        return state
