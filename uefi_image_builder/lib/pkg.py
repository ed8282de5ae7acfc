from __future__ import annotations

import logging
from typing import Sequence

from .chroot import Chroot

logger = logging.getLogger(__name__)


def apt_update(chroot: Chroot) -> None:
    chroot.run(["apt", "update", "-y"])


def apt_install(chroot: Chroot, packages: Sequence[str]) -> None:
    if not packages:
        return
    chroot.run(["apt", "install", "-y", *packages])


def apk_update(chroot: Chroot) -> None:
    chroot.run(["apk", "update"])


def apk_add(
    chroot: Chroot,
    packages: Sequence[str],
    *,
    flags: Sequence[str] = (),
    repositories: Sequence[str] = (),
) -> None:
    if not packages:
        return
    argv = ["apk", "add", *flags]
    for repo in repositories:
        argv += ["--repository", repo]
    chroot.run([*argv, *packages])


def read_apk_world(chroot: Chroot) -> list[str]:
    """Packages recorded in /etc/apk/world, in file order."""

    p = chroot.path("/etc/apk/world")
    if not p.exists():
        return []
    return [line.strip() for line in p.read_text(encoding="utf-8").split("\n") if line.strip()]
