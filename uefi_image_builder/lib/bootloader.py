from __future__ import annotations

import logging
from pathlib import Path

from .chroot import Chroot

logger = logging.getLogger(__name__)

DEVICE_MAP = "/boot/grub/device.map"
GRUB_DEFAULTS = "/etc/default/grub"
GRUB_CFG = "/boot/grub/grub.cfg"


def write_device_map(chroot: Chroot, loop_device: str) -> Path:
    """Bind (hd0) to the loop device so grub-install finds the disk."""

    return chroot.write_text(DEVICE_MAP, f"(hd0) {loop_device}\n")


def grub_defaults_contents(*, root_uuid: str, cmdline: str, terminal: str = "serial console") -> str:
    return (
        f"GRUB_DEVICE={root_uuid}\n"
        f'GRUB_TERMINAL="{terminal}"\n'
        f'GRUB_CMDLINE_LINUX_DEFAULT="{cmdline}"\n'
    )


def write_grub_defaults(chroot: Chroot, *, root_uuid: str, cmdline: str, terminal: str = "serial console") -> Path:
    return chroot.write_text(
        GRUB_DEFAULTS,
        grub_defaults_contents(root_uuid=root_uuid, cmdline=cmdline, terminal=terminal),
    )


def install_grub_efi(chroot: Chroot, loop_device: str) -> None:
    """Install GRUB for x86_64 EFI targets and generate grub.cfg.

    Assumes /boot/efi is mounted in the target and the device map exists.
    grub-install runs on the host against the mounted tree; grub-mkconfig
    runs inside the target so it sees the installed kernels.
    """

    root = str(chroot.root)
    chroot.runner.run(
        [
            "grub-install",
            "--target=x86_64-efi",
            f"--efi-directory={root}/boot/efi/",
            f"--root-directory={root}",
            "--no-floppy",
            loop_device,
        ]
    )
    chroot.run(["grub-mkconfig", "-o", GRUB_CFG])

    # The loop device means nothing once the image boots on its own.
    logger.info("> no loop necessary in final image")
    chroot.run(["rm", DEVICE_MAP])
    logger.info("GRUB EFI installed")
