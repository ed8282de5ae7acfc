from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .errors import ArgumentError

DEFAULT_ALPINE_REPOSITORIES = [
    "https://dl-cdn.alpinelinux.org/alpine/v3.17/main",
    "https://dl-cdn.alpinelinux.org/alpine/v3.17/community",
]

# Corrects setup-alpine's defaults; boot, sysinit, default and shutdown phases.
DEFAULT_ALPINE_RUNLEVELS: List[Tuple[str, str]] = [
    # boot
    ("bootmisc", "boot"),
    ("hostname", "boot"),
    ("hwclock", "boot"),
    ("modules", "boot"),
    ("networking", "boot"),
    ("seedrng", "boot"),
    ("swap", "boot"),
    ("sysctl", "boot"),
    ("syslog", "boot"),
    # sysinit
    ("devfs", "sysinit"),
    ("dmesg", "sysinit"),
    ("hwdrivers", "sysinit"),
    ("mdev", "sysinit"),
    # default
    ("acpid", "default"),
    ("crond", "default"),
    ("sshd", "default"),
    ("chronyd", "default"),
    # shutdown
    ("killprocs", "shutdown"),
    ("mount-ro", "shutdown"),
    ("savecache", "shutdown"),
]


@dataclass(frozen=True)
class BuildConfig:
    raw: Dict[str, Any] = field(default_factory=dict)

    def _section(self, name: str) -> Dict[str, Any]:
        return self.raw.get(name) or {}

    @property
    def hostname(self) -> Optional[str]:
        value = self.raw.get("hostname")
        if value is None:
            return None
        return str(value).strip() or None

    @property
    def container_engine(self) -> str:
        return str(self.raw.get("container_engine") or "docker")

    @property
    def work_dir(self) -> Optional[str]:
        value = self.raw.get("work_dir")
        return str(value) if value else None

    @property
    def swap_size_mib(self) -> int:
        return int(self.raw.get("swap_size_mib") or 256)

    @property
    def resolv_conf(self) -> str:
        return str(self.raw.get("resolv_conf") or "/etc/resolv.conf")

    @property
    def grub_terminal(self) -> str:
        return str(self._section("grub").get("terminal") or "serial console")

    @property
    def alpine_keymap(self) -> str:
        return str(self._section("alpine").get("keymap") or "us us")

    @property
    def alpine_timezone(self) -> str:
        return str(self._section("alpine").get("timezone") or "UTC")

    @property
    def alpine_dns(self) -> str:
        return str(self._section("alpine").get("dns") or "-d example.com 8.8.8.8")

    @property
    def alpine_repositories(self) -> List[str]:
        return [str(r) for r in (self._section("alpine").get("repositories") or DEFAULT_ALPINE_REPOSITORIES)]

    @property
    def alpine_kernel_package(self) -> str:
        return str(self._section("alpine").get("kernel_package") or "linux-virt")

    @property
    def alpine_runlevels(self) -> List[Tuple[str, str]]:
        raw = self._section("alpine").get("runlevels")
        if not raw:
            return list(DEFAULT_ALPINE_RUNLEVELS)
        out: List[Tuple[str, str]] = []
        for item in raw:
            if isinstance(item, dict):
                out.append((str(item["service"]), str(item["runlevel"])))
            else:
                service, runlevel = item
                out.append((str(service), str(runlevel)))
        return out


def load_build_config(path: Optional[str]) -> BuildConfig:
    if not path:
        return BuildConfig()

    p = Path(path)
    if not p.exists():
        raise ArgumentError(f"Build config not found: {path}")

    if p.suffix.lower() not in {".yaml", ".yml"}:
        raise ArgumentError("build config must be YAML")

    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ArgumentError(f"{path}: {e}") from e
    if not isinstance(raw, dict):
        raise ArgumentError(f"{path} must contain a mapping/object")

    return BuildConfig(raw=raw)
