from __future__ import annotations

from typing import Type

from ..build_config import BuildConfig
from ..lib.chroot import Chroot
from ..lib.resources import ResourceStack
from .alpine import AlpineInstaller
from .base import Flavor, FlavorInstaller, InstallState
from .debian import DebianInstaller


def installer_class(flavor: Flavor) -> Type[FlavorInstaller]:
    return AlpineInstaller if flavor == Flavor.ALPINE else DebianInstaller


def get_installer(
    flavor: Flavor,
    chroot: Chroot,
    *,
    cfg: BuildConfig,
    resources: ResourceStack,
    hostname: str,
) -> FlavorInstaller:
    cls = installer_class(flavor)
    return cls(flavor, chroot, cfg=cfg, resources=resources, hostname=hostname)


__all__ = [
    "AlpineInstaller",
    "DebianInstaller",
    "Flavor",
    "FlavorInstaller",
    "InstallState",
    "get_installer",
    "installer_class",
]
