from __future__ import annotations

from typing import Any, Dict

from ..pipeline import BuildCtx


class RebuildInitramfsStep:
    step_id = "70_rebuild_initramfs"

    def run(self, ctx: BuildCtx, state: Dict[str, Any]) -> Dict[str, Any]:
        installer = ctx.require("installer")
        installer.rebuild_initramfs()
        state.setdefault("decisions", {}).update(installer.decisions)
        return state
