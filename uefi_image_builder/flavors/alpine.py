from __future__ import annotations

import logging
from typing import List, Optional

from ..errors import AmbiguousKernelVersionError
from ..lib.block import read_uuid
from ..lib.fstab import FstabEntry, swap_entry, tmpfs_entry
from ..lib.partition import PartitionedDisk
from ..lib.pkg import apk_add, apk_update, read_apk_world
from ..lib.resources import Resource, ResourceKind
from .base import FlavorInstaller

logger = logging.getLogger(__name__)

ANSWERS_PATH = "/answers"

SETUP_PACKAGES = ["grub-efi", "mkinitfs", "alpine-conf", "busybox-openrc"]

# setup-alpine --quick does not install these.
BASE_PACKAGES = ["alpine-base"]
SERVICE_PACKAGES = ["openssh", "chrony"]

# Something sets these to sysinit; they belong in default.
MISPLACED_SYSINIT_SERVICES = ["acpid", "crond"]

SETUP_ENV = {"USE_EFI": "1", "BOOTLOADER": "none"}


def answers_contents(
    *,
    hostname: str,
    keymap: str,
    dns: str,
    timezone: str,
    kernel_flavor: str,
) -> str:
    """Answer file for setup-alpine.

    See https://github.com/alpinelinux/alpine-conf/blob/master/setup-alpine.in
    """

    return f'''
KEYMAPOPTS="{keymap}"
HOSTNAMEOPTS="{hostname}"
DEVDOPTS="mdev"
INTERFACESOPTS="
auto lo
iface lo inet loopback

auto eth0
iface eth0 inet dhcp
    hostname {hostname}
"
DNSOPTS="{dns}"
TIMEZONEOPTS="{timezone}"
APKREPOSOPTS="-1"
USEROPTS="-a -u -g audio,video,netdev alpine"
SSHDOPTS="openssh"
NTPOPTS="chrony"
DISKOPTS="-m sys -k {kernel_flavor} /tmp/mnt_loop/"
'''


class AlpineInstaller(FlavorInstaller):
    wants_swap = True

    services_guard: Optional[Resource] = None

    @property
    def grub_cmdline(self) -> str:
        return "quiet splash console=tty0 console=ttyS0,115200 rootfstype=ext4 modules=sd-mod,usb-storage,nvme,ext4"

    @property
    def kernel_package(self) -> str:
        return self.cfg.alpine_kernel_package

    def _update_repositories(self) -> None:
        apk_update(self.chroot)

    def _install_kernel_and_bootloader(self) -> None:
        apk_add(self.chroot, SETUP_PACKAGES)

        # busybox-openrc is in place now; setup-alpine starts crond and acpid,
        # which hold files open under /dev and would block the unmount.
        self.services_guard = self.resources.push(
            f"openrc services in {self.chroot.root}",
            lambda: self.chroot.run(["openrc", "shutdown"]),
            ResourceKind.GUARD,
        )

        self.chroot.write_text(
            ANSWERS_PATH,
            answers_contents(
                hostname=self.hostname,
                keymap=self.cfg.alpine_keymap,
                dns=self.cfg.alpine_dns,
                timezone=self.cfg.alpine_timezone,
                kernel_flavor=self.kernel_package.replace("linux-", "", 1),
            ),
        )

        # Quick mode, empty root password; EFI mode without a bootloader.
        self.chroot.run(
            ["/bin/sh", "-x", "/sbin/setup-alpine", "-e", "-q", "-f", ANSWERS_PATH],
            env=SETUP_ENV,
        )

        world = read_apk_world(self.chroot)
        self.decisions["apk_world"] = world
        apk_add(
            self.chroot,
            [*BASE_PACKAGES, self.kernel_package, *SERVICE_PACKAGES, *world],
            flags=["--update-cache", "--clean-protected"],
            repositories=self.cfg.alpine_repositories,
        )
        self.decisions["kernel_package"] = self.kernel_package

    def _install_extra_packages(self, packages: List[str]) -> None:
        apk_add(self.chroot, packages)

    def _configure_first_boot(self) -> None:
        # Must stop before touching runlevels: killprocs would otherwise
        # take down processes on the build host.
        if self.services_guard is not None and not self.services_guard.released:
            self.resources.release(self.services_guard)

        for service in MISPLACED_SYSINIT_SERVICES:
            self.chroot.run(["rc-update", "delete", service, "sysinit"])

        for service, runlevel in self.cfg.alpine_runlevels:
            self.chroot.run(["rc-update", "add", service, runlevel])

    def kernel_version(self) -> str:
        """The single kernel version under /lib/modules of the target."""

        modules = self.chroot.path("/lib/modules")
        versions = sorted(p.name for p in modules.iterdir() if p.is_dir()) if modules.is_dir() else []
        logger.info("detected kernel versions %s", versions)
        if len(versions) != 1:
            raise AmbiguousKernelVersionError(versions)
        return versions[0]

    def _rebuild_initramfs(self) -> None:
        # mkinitfs defaults to the running (build host) kernel version.
        version = self.kernel_version()
        self.decisions["kernel_version"] = version
        logger.info("> mkinitfs")
        self.chroot.run(["mkinitfs", "-c", "/etc/mkinitfs/mkinitfs.conf", "-b", "/", version])

    def fstab_extra_entries(self, disk: PartitionedDisk) -> List[FstabEntry]:
        entries = [tmpfs_entry()]
        if disk.layout.has_swap:
            entries.append(swap_entry(read_uuid(self.chroot.runner, disk.device("swap"))))
        return entries

    def finalize_system(self) -> None:
        # Login console on the serial port.
        self.chroot.run(["sed", "-i", "-e", "s/^#ttyS0/ttyS0/g", "/etc/inittab"])
