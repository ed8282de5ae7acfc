from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from ..errors import PreconditionError
from .command import CommandRunner
from .losetup import LoopAttachment

logger = logging.getLogger(__name__)

# Sector offsets of the fixed scheme (512 byte sectors).
BIOS_BOOT_START = 2048
BIOS_BOOT_END = 4095
ESP_START = 4096
ESP_END = 413695
ROOT_START = 413696

DEFAULT_SWAP_SIZE_MIB = 256


@dataclass(frozen=True)
class PartitionSpec:
    index: int
    role: str  # bios|esp|root|swap
    start: str
    end: str
    typecode: str
    label: str
    fs_type: Optional[str]  # None for the BIOS boot partition

    def sgdisk_args(self) -> list[str]:
        n = self.index
        return [
            "-n",
            f"{n}:{self.start}:{self.end}",
            "-c",
            f"{n}:{self.label}",
            "-t",
            f"{n}:{self.typecode}",
        ]


@dataclass(frozen=True)
class PartitionLayout:
    partitions: Tuple[PartitionSpec, ...]

    @property
    def has_swap(self) -> bool:
        return any(p.role == "swap" for p in self.partitions)

    def by_role(self, role: str) -> Optional[PartitionSpec]:
        for p in self.partitions:
            if p.role == role:
                return p
        return None


def gpt_layout(*, with_swap: bool = False, swap_size_mib: int = DEFAULT_SWAP_SIZE_MIB) -> PartitionLayout:
    """The fixed scheme: BIOS boot, ESP, root and optionally swap at the end."""

    parts = [
        PartitionSpec(1, "bios", str(BIOS_BOOT_START), str(BIOS_BOOT_END), "ef02", "BIOS Boot Partition", None),
        PartitionSpec(2, "esp", str(ESP_START), str(ESP_END), "ef00", "EFI System Partition", "vfat"),
    ]
    if with_swap:
        if swap_size_mib < 1:
            raise ValueError(f"swap_size_mib must be positive, got {swap_size_mib}")
        # sgdisk reads a leading minus as "relative to the end of the disk".
        parts.append(PartitionSpec(3, "root", str(ROOT_START), f"-{swap_size_mib}M", "8300", "Linux root", "ext4"))
        parts.append(PartitionSpec(4, "swap", "0", "0", "8200", "Linux swap", "swap"))
    else:
        parts.append(PartitionSpec(3, "root", str(ROOT_START), "", "8300", "Linux root", "ext4"))
    return PartitionLayout(partitions=tuple(parts))


@dataclass(frozen=True)
class PartitionedDisk:
    loop: LoopAttachment
    layout: PartitionLayout

    @property
    def path(self) -> str:
        return self.loop.device

    def device(self, role: str) -> str:
        spec = self.layout.by_role(role)
        if spec is None:
            raise PreconditionError(f"Layout has no {role} partition")
        return self.loop.partition_path(spec.index)

    def devices(self) -> Dict[str, str]:
        return {p.role: self.loop.partition_path(p.index) for p in self.layout.partitions}


def partition(runner: CommandRunner, loop: LoopAttachment, layout: PartitionLayout) -> PartitionedDisk:
    """Write the GPT layout onto an attached loop device.

    One sgdisk call per partition. A failure on partition k propagates and
    leaves partitions 1..k-1 written; nothing is rolled back.
    """

    logger.info("> Create partitions")
    for spec in layout.partitions:
        logger.info("Partition %d (%s) %s:%s type %s", spec.index, spec.role, spec.start, spec.end, spec.typecode)
        runner.run(["sgdisk", *spec.sgdisk_args(), loop.device])

    # Inform kernel
    runner.run(["partprobe", loop.device])

    return PartitionedDisk(loop=loop, layout=layout)
