from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.accounts import generate_password, set_root_password
from ..pipeline import BuildCtx
from ..state_store import record_decision

logger = logging.getLogger(__name__)


class FinalizeSystemStep:
    step_id = "80_finalize_system"

    def run(self, ctx: BuildCtx, state: Dict[str, Any]) -> Dict[str, Any]:
        chroot = ctx.require("chroot")
        installer = ctx.require("installer")

        installer.finalize_system()

        generated = ctx.request.root_password is None
        password = ctx.request.root_password if not generated else generate_password()
        ctx.root_password = password

        # Shown to the operator only; kept out of the log file and the report.
        print(f"> set root password as {password}", flush=True)
        set_root_password(chroot, password)

        record_decision(state, "root_password_generated", generated)
        logger.info("Root password set (generated=%s)", generated)
        return state
