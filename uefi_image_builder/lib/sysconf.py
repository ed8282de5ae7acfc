from __future__ import annotations

import logging
from pathlib import Path

from ..errors import ResourceAcquisitionError

logger = logging.getLogger(__name__)


def _write_file(root: str | Path, rel: str, contents: str) -> Path:
    p = Path(root) / rel.lstrip("/")
    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(contents, encoding="utf-8")
    except OSError as e:
        raise ResourceAcquisitionError(f"Unable to write {p}: {e}") from e
    return p


def write_hostname(root: str | Path, hostname: str) -> Path:
    logger.info("> write hostname")
    return _write_file(root, "/etc/hostname", hostname + "\n")


def hosts_contents(hostname: str) -> str:
    return "\n".join(
        [
            "127.0.0.1\tlocalhost localhost.localdomain",
            f"127.0.1.1\t{hostname}",
            "",
            "# The following lines are desirable for IPv6 capable hosts",
            "::1     ip6-localhost ip6-loopback",
            "fe00::0 ip6-localnet",
            "ff00::0 ip6-mcastprefix",
            "ff02::1 ip6-allnodes",
            "ff02::2 ip6-allrouters",
            "",
        ]
    )


def write_hosts(root: str | Path, hostname: str) -> Path:
    logger.info("> write hosts")
    return _write_file(root, "/etc/hosts", hosts_contents(hostname))
