from __future__ import annotations

import argparse
import contextlib
import logging
import shutil
import signal
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from .build_config import BuildConfig, load_build_config
from .errors import ArgumentError, BuildError, BuildInterrupted, ResourceAcquisitionError
from .flavors import Flavor
from .lib.command import CommandRunner
from .logging_utils import DEFAULT_LOG_PATH, configure_logging
from .pipeline import BuildCtx, BuildRequest, Step, run_pipeline
from .state_store import new_state, save_state
from .steps import (
    CreateDiskStep,
    FinalizeSystemStep,
    FormatMountStep,
    InstallFlavorStep,
    PrepareChrootStep,
    RebuildInitramfsStep,
    TeardownOutputStep,
    UnpackContainerStep,
    WriteBootConfigStep,
)

logger = logging.getLogger(__name__)

DEFAULT_DISK_SIZE_GB = 8
TERMINATION_SIGNALS = (signal.SIGTERM, signal.SIGHUP)


def build_steps() -> List[Step]:
    return [
        CreateDiskStep(),
        FormatMountStep(),
        UnpackContainerStep(),
        PrepareChrootStep(),
        InstallFlavorStep(),
        WriteBootConfigStep(),
        RebuildInitramfsStep(),
        FinalizeSystemStep(),
        TeardownOutputStep(),
    ]


def split_packages(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [p.strip() for p in value.split(",") if p.strip()]


def build_request(args: argparse.Namespace, cfg: Optional[BuildConfig] = None) -> BuildRequest:
    """Validate CLI input; raises ArgumentError before anything is touched."""

    flavor = Flavor.parse(args.flavor)
    if args.disk_size < 1:
        raise ArgumentError(f"Disk size must be at least 1 GB, got {args.disk_size}")
    if not args.image_name.strip():
        raise ArgumentError("Image name must not be empty")

    hostname = args.hostname or (cfg.hostname if cfg else None)
    return BuildRequest(
        image_name=args.image_name,
        output_file=Path(args.output_file),
        flavor=flavor,
        disk_size_gb=args.disk_size,
        root_password=args.root_passwd,
        extra_packages=split_packages(args.extra_packages),
        hostname=hostname,
    )


@contextlib.contextmanager
def termination_signals_raise() -> Iterator[None]:
    """Turn SIGTERM/SIGHUP into BuildInterrupted so the cleanup path runs."""

    def _handler(signum, frame):
        raise BuildInterrupted(signum)

    previous = {}
    for sig in TERMINATION_SIGNALS:
        previous[sig] = signal.signal(sig, _handler)
    try:
        yield
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def run(
    request: BuildRequest,
    *,
    cfg: BuildConfig,
    runner: CommandRunner,
    state_path: Optional[str] = None,
    archive: Optional[str] = None,
    cleanup_on_failure: bool = True,
) -> Dict[str, Any]:
    """Build one image; returns the build report."""

    try:
        work_dir = Path(tempfile.mkdtemp(prefix="uefi-image-builder-", dir=cfg.work_dir))
    except OSError as e:
        where = cfg.work_dir or tempfile.gettempdir()
        raise ResourceAcquisitionError(f"Unable to create a working directory in {where}: {e}") from e
    logger.info("Working directory %s", str(work_dir))

    ctx = BuildCtx(
        request=request,
        cfg=cfg,
        runner=runner,
        work_dir=work_dir,
        container_archive=Path(archive) if archive else None,
    )
    state = new_state(
        flavor=request.flavor.value,
        image_name=request.image_name,
        output_file=str(request.output_file),
        disk_size_gb=request.disk_size_gb,
    )
    state["execution"]["work_dir"] = str(work_dir)

    succeeded = False
    try:
        with termination_signals_raise():
            result = run_pipeline(
                ctx=ctx,
                state=state,
                steps=build_steps(),
                cleanup_on_failure=cleanup_on_failure,
            )
        state = result.state
        state["execution"]["ran_steps"] = result.ran_steps
        succeeded = True
        return state
    except BaseException as e:
        state.setdefault("execution", {}).setdefault("errors", []).append(
            {
                "step": (state.get("execution") or {}).get("current_step"),
                "error": str(e) or type(e).__name__,
            }
        )
        raise
    finally:
        # Never rmtree while anything may still be mounted below work_dir.
        cleaned = succeeded or (cleanup_on_failure and not state["execution"].get("cleanup_errors"))
        if cleaned and not ctx.resources.active():
            shutil.rmtree(work_dir, ignore_errors=True)
        else:
            logger.warning("Leaving working directory %s in place", str(work_dir))
        if state_path:
            save_state(state_path, state)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="uefi-image-builder",
        description="Turn a container image into a bootable UEFI raw disk image.",
    )
    sub = p.add_subparsers(dest="command", required=True)

    c = sub.add_parser("create", help="Create a disk image from a container image")
    c.add_argument("-i", "--image-name", required=True, help="Container image to export")
    c.add_argument("-o", "--output-file", required=True, help="Where to write the raw disk image")
    c.add_argument("-d", "--disk-size", type=int, default=DEFAULT_DISK_SIZE_GB, help="Disk size in GB (default: 8)")
    c.add_argument("-r", "--root-passwd", default=None, help="Root password (default: generated)")
    c.add_argument("-e", "--extra-packages", default=None, help="Comma separated packages to install")
    c.add_argument("-f", "--flavor", required=True, help="debian, ubuntu or alpine")
    c.add_argument("--hostname", default=None, help="Hostname of the image (default: the flavor name)")
    c.add_argument("--engine", default=None, help="Container engine program (default: docker)")
    c.add_argument("--archive", default=None, help="Use this filesystem tarball instead of exporting the image")
    c.add_argument("--config", default=None, help="YAML build config")
    c.add_argument("--state", default=None, help="Write a build report here (json|yaml)")
    c.add_argument("--log", default=DEFAULT_LOG_PATH, help="Path to the build log")
    c.add_argument("-v", "--verbose", action="store_true", help="Log command output")
    c.add_argument(
        "--no-cleanup-on-failure",
        dest="cleanup_on_failure",
        action="store_false",
        help="Leave mounts, loop device and working directory behind when a build fails",
    )
    return p


def main(argv: Optional[list[str]] = None, runner: Optional[CommandRunner] = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)

    try:
        cfg = load_build_config(args.config)
        if args.engine:
            cfg = BuildConfig(raw={**cfg.raw, "container_engine": args.engine})
        request = build_request(args, cfg)
    except ArgumentError as e:
        p.error(str(e))

    configure_logging(log_path=args.log, level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        state = run(
            request,
            cfg=cfg,
            runner=runner or CommandRunner(),
            state_path=args.state,
            archive=args.archive,
            cleanup_on_failure=args.cleanup_on_failure,
        )
    except BuildInterrupted as e:
        logger.error("Build aborted: %s", e)
        return 128 + e.signum
    except BuildError as e:
        logger.error("Build failed: %s", e)
        return 1
    except OSError as e:
        # Host file operations outside the wrapped ones (report, output dir).
        logger.error("Build failed: %s", e)
        return 1
    except KeyboardInterrupt:
        logger.error("Build aborted by user")
        return 130

    logger.info("> Finished %s", state["decisions"].get("output_file"))
    return 0
