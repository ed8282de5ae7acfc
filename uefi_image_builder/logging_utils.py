from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Tuple

DEFAULT_LOG_PATH = "/var/log/uefi-image-builder.log"
FALLBACK_LOG_NAME = "uefi-image-builder.log"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _open_log_file(log_path: str) -> Tuple[logging.Handler, str]:
    """File handler for log_path, or for ./uefi-image-builder.log.

    A real build runs as root (losetup, mount, chroot), so /var/log is
    writable there. The fallback is for a --log pointing somewhere that
    cannot be created, and for unprivileged runs against a fake runner.
    """

    try:
        Path(os.path.dirname(log_path) or ".").mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(log_path), log_path
    except OSError:
        fallback = str(Path.cwd() / FALLBACK_LOG_NAME)
        return logging.FileHandler(fallback), fallback


def configure_logging(
    log_path: str = DEFAULT_LOG_PATH,
    level: int = logging.INFO,
    also_console: bool = True,
) -> str:
    """Send the build log to a file and, by default, the console.

    INFO carries the progress lines ("> Create partitions", ...) and every
    command line the builder runs; DEBUG (-v) adds the commands' stdout and
    stderr. The handlers are installed once per process; later calls only
    change the level.

    Returns the log file actually in use.
    """

    root = logging.getLogger()
    root.setLevel(level)

    if getattr(root, "_uefi_builder_log_path", None):
        return root._uefi_builder_log_path

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z")

    file_handler, chosen_path = _open_log_file(log_path)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    if also_console:
        console = logging.StreamHandler()
        console.setFormatter(fmt)
        root.addHandler(console)

    root._uefi_builder_log_path = chosen_path

    if chosen_path != log_path:
        logging.getLogger(__name__).warning("Cannot write %s, logging to %s", log_path, chosen_path)
    else:
        logging.getLogger(__name__).info("Logging to %s", chosen_path)
    return chosen_path
