from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.block import read_uuid
from ..lib.bootloader import install_grub_efi, write_device_map, write_grub_defaults
from ..lib.fstab import esp_entry, render_fstab, root_entry
from ..lib.sysconf import write_hostname, write_hosts
from ..pipeline import BuildCtx
from ..state_store import record_decision

logger = logging.getLogger(__name__)


class WriteBootConfigStep:
    step_id = "60_write_boot_config"

    def run(self, ctx: BuildCtx, state: Dict[str, Any]) -> Dict[str, Any]:
        disk = ctx.require("disk")
        chroot = ctx.require("chroot")
        installer = ctx.require("installer")

        logger.info("> write fstab")
        root_uuid = read_uuid(ctx.runner, disk.device("root"))
        esp_uuid = read_uuid(ctx.runner, disk.device("esp"))
        ctx.uuids.update({"root": root_uuid, "esp": esp_uuid})

        entries = [root_entry(root_uuid), esp_entry(esp_uuid)]
        entries += installer.fstab_extra_entries(disk)
        for e in entries:
            if e.fstype == "swap":
                ctx.uuids["swap"] = e.spec

        fstab = render_fstab(entries)
        chroot.write_text("/etc/fstab", fstab)
        logger.info("fstab:\n%s", fstab.rstrip())

        write_hosts(chroot.root, ctx.hostname)
        write_hostname(chroot.root, ctx.hostname)

        logger.info("> install grub")
        write_device_map(chroot, disk.path)
        write_grub_defaults(
            chroot,
            root_uuid=root_uuid,
            cmdline=installer.grub_cmdline,
            terminal=ctx.cfg.grub_terminal,
        )
        install_grub_efi(chroot, disk.path)

        record_decision(state, "uuids", dict(ctx.uuids))
        record_decision(state, "hostname", ctx.hostname)
        return state
