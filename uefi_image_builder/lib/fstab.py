from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable


@dataclass(frozen=True)
class FstabEntry:
    spec: str
    mountpoint: str
    fstype: str
    options: str = "defaults"
    dump: int = 0
    passno: int = 0

    def render(self) -> str:
        return f"{self.spec} {self.mountpoint} {self.fstype} {self.options} {self.dump} {self.passno}"


def root_entry(uuid: str) -> FstabEntry:
    return FstabEntry(uuid, "/", "ext4", "defaults,errors=remount-ro", 0, 1)


def esp_entry(uuid: str) -> FstabEntry:
    return FstabEntry(uuid, "/boot/efi", "vfat", "defaults", 0, 2)


def swap_entry(uuid: str) -> FstabEntry:
    return FstabEntry(uuid, "swap", "swap", "defaults", 0, 0)


def tmpfs_entry() -> FstabEntry:
    return FstabEntry("tmpfs", "/tmp", "tmpfs", "nosuid,nodev", 0, 0)


def render_fstab(entries: Iterable[FstabEntry]) -> str:
    return "".join(e.render() + "\n" for e in entries)
