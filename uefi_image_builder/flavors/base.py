from __future__ import annotations

import abc
import enum
import logging
from typing import Any, Dict, List, Sequence

from ..build_config import BuildConfig
from ..errors import ArgumentError, PreconditionError
from ..lib.chroot import Chroot
from ..lib.fstab import FstabEntry
from ..lib.partition import PartitionedDisk
from ..lib.resources import ResourceStack

logger = logging.getLogger(__name__)


class Flavor(str, enum.Enum):
    DEBIAN = "debian"
    UBUNTU = "ubuntu"
    ALPINE = "alpine"

    @classmethod
    def parse(cls, value: str) -> "Flavor":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ArgumentError(
                f"Unsupported flavor {value!r} (expected one of: {', '.join(f.value for f in cls)})"
            ) from None


class InstallState(enum.IntEnum):
    PENDING = 0
    REPO_UPDATED = 1
    KERNEL_BOOTLOADER_INSTALLED = 2
    EXTRA_PACKAGES_INSTALLED = 3
    FIRST_BOOT_CONFIGURED = 4
    INITRAMFS_REBUILT = 5


class FlavorInstaller(abc.ABC):
    """Drives package installation inside the chroot for one OS family.

    The public methods are the state transitions and must be called in
    order; each delegates the actual work to a flavor hook.
    """

    flavor: Flavor
    wants_swap: bool = False

    def __init__(
        self,
        flavor: Flavor,
        chroot: Chroot,
        *,
        cfg: BuildConfig,
        resources: ResourceStack,
        hostname: str,
    ) -> None:
        self.flavor = flavor
        self.chroot = chroot
        self.cfg = cfg
        self.resources = resources
        self.hostname = hostname
        self.state = InstallState.PENDING
        self.decisions: Dict[str, Any] = {}

    def _check(self, to: InstallState) -> None:
        expected = InstallState(to - 1)
        if self.state != expected:
            raise PreconditionError(
                f"{self.flavor.value}: cannot move to {to.name} from {self.state.name} "
                f"(expected {expected.name})"
            )

    def _advance(self, to: InstallState) -> None:
        self.state = to
        logger.info("Installer state: %s", to.name)

    def update_repositories(self) -> None:
        self._check(InstallState.REPO_UPDATED)
        self._update_repositories()
        self._advance(InstallState.REPO_UPDATED)

    def install_kernel_and_bootloader(self) -> None:
        self._check(InstallState.KERNEL_BOOTLOADER_INSTALLED)
        self._install_kernel_and_bootloader()
        self._advance(InstallState.KERNEL_BOOTLOADER_INSTALLED)

    def install_extra_packages(self, packages: Sequence[str]) -> None:
        self._check(InstallState.EXTRA_PACKAGES_INSTALLED)
        if packages:
            logger.info("> install extra packages")
            self._install_extra_packages(list(packages))
        self._advance(InstallState.EXTRA_PACKAGES_INSTALLED)

    def configure_first_boot(self) -> None:
        self._check(InstallState.FIRST_BOOT_CONFIGURED)
        self._configure_first_boot()
        self._advance(InstallState.FIRST_BOOT_CONFIGURED)

    def rebuild_initramfs(self) -> None:
        self._check(InstallState.INITRAMFS_REBUILT)
        self._rebuild_initramfs()
        self._advance(InstallState.INITRAMFS_REBUILT)

    @property
    @abc.abstractmethod
    def grub_cmdline(self) -> str:
        ...

    def fstab_extra_entries(self, disk: PartitionedDisk) -> List[FstabEntry]:
        return []

    def finalize_system(self) -> None:
        """Last edits to the target before the root password is set."""

    @abc.abstractmethod
    def _update_repositories(self) -> None:
        ...

    @abc.abstractmethod
    def _install_kernel_and_bootloader(self) -> None:
        ...

    @abc.abstractmethod
    def _install_extra_packages(self, packages: List[str]) -> None:
        ...

    def _configure_first_boot(self) -> None:
        pass

    @abc.abstractmethod
    def _rebuild_initramfs(self) -> None:
        ...
