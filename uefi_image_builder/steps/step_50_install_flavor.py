from __future__ import annotations

import logging
from typing import Any, Dict

from ..pipeline import BuildCtx

logger = logging.getLogger(__name__)


class InstallFlavorStep:
    step_id = "50_install_flavor"

    def run(self, ctx: BuildCtx, state: Dict[str, Any]) -> Dict[str, Any]:
        installer = ctx.require("installer")

        installer.update_repositories()
        installer.install_kernel_and_bootloader()
        installer.install_extra_packages(ctx.request.extra_packages)
        installer.configure_first_boot()

        state.setdefault("decisions", {}).update(installer.decisions)
        logger.info("Installed %s base (%s)", installer.flavor.value, installer.decisions.get("kernel_package"))
        return state
