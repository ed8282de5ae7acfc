from __future__ import annotations

import logging
from typing import List

from ..lib.pkg import apt_install, apt_update
from .base import Flavor, FlavorInstaller

logger = logging.getLogger(__name__)

KERNEL_PACKAGES = {
    Flavor.DEBIAN: "linux-image-amd64",
    Flavor.UBUNTU: "linux-image-generic",
}

# Init system, grub for EFI and the initramfs generator.
BOOT_PACKAGES = [
    "systemd-sysv",
    "grub2-common",
    "grub-efi-amd64-bin",
    "initramfs-tools",
]


class DebianInstaller(FlavorInstaller):
    """Debian and Ubuntu share everything but the kernel meta package."""

    @property
    def kernel_package(self) -> str:
        return KERNEL_PACKAGES[self.flavor]

    @property
    def grub_cmdline(self) -> str:
        return "quiet splash console=tty0 console=ttyS0,115200"

    def _update_repositories(self) -> None:
        apt_update(self.chroot)

    def _install_kernel_and_bootloader(self) -> None:
        logger.info("> install packages in container to support UEFI boot")
        self.decisions["kernel_package"] = self.kernel_package
        apt_install(self.chroot, [self.kernel_package, *BOOT_PACKAGES])

    def _install_extra_packages(self, packages: List[str]) -> None:
        apt_install(self.chroot, packages)

    def _rebuild_initramfs(self) -> None:
        logger.info("> update-initramfs")
        self.chroot.run(["update-initramfs", "-u"])
