from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence

from .build_config import BuildConfig
from .flavors import Flavor, FlavorInstaller
from .lib.chroot import Chroot
from .lib.command import CommandRunner
from .lib.image import BackingImage
from .lib.losetup import LoopAttachment
from .lib.mounts import MountPoint
from .lib.partition import PartitionedDisk
from .lib.resources import ResourceStack

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildRequest:
    image_name: str
    output_file: Path
    flavor: Flavor
    disk_size_gb: int = 8
    root_password: Optional[str] = None
    extra_packages: List[str] = field(default_factory=list)
    hostname: Optional[str] = None


@dataclass
class BuildCtx:
    """Everything the steps share; live handles are filled in as steps run."""

    request: BuildRequest
    cfg: BuildConfig
    runner: CommandRunner
    work_dir: Path
    resources: ResourceStack = field(default_factory=ResourceStack)
    container_archive: Optional[Path] = None

    image: Optional[BackingImage] = None
    loop: Optional[LoopAttachment] = None
    disk: Optional[PartitionedDisk] = None
    root_mount: Optional[MountPoint] = None
    esp_mount: Optional[MountPoint] = None
    chroot: Optional[Chroot] = None
    installer: Optional[FlavorInstaller] = None
    uuids: Dict[str, str] = field(default_factory=dict)
    root_password: Optional[str] = None
    output_path: Optional[Path] = None

    @property
    def hostname(self) -> str:
        return self.request.hostname or self.cfg.hostname or self.request.flavor.value

    @property
    def mount_root(self) -> Path:
        return self.work_dir / "mnt"

    def require(self, name: str) -> Any:
        value = getattr(self, name)
        if value is None:
            raise RuntimeError(f"Build context has no {name}; an earlier step did not run")
        return value


class Step(Protocol):
    """A single pipeline step."""

    step_id: str

    def run(self, ctx: BuildCtx, state: Dict[str, Any]) -> Dict[str, Any]:
        ...


@dataclass(frozen=True)
class PipelineResult:
    state: Dict[str, Any]
    ran_steps: List[str]


def mark_step_completed(state: Dict[str, Any], step_id: str) -> None:
    exe = state.setdefault("execution", {})
    completed = exe.setdefault("completed_steps", [])
    if step_id not in completed:
        completed.append(step_id)


def run_pipeline(
    *,
    ctx: BuildCtx,
    state: Dict[str, Any],
    steps: Sequence[Step],
    cleanup_on_failure: bool = True,
) -> PipelineResult:
    """Run steps in order; on any failure release held resources newest first.

    Resources are released best-effort so one stuck unmount does not stop the
    others; whatever could not be released (and the loop device under it) is
    reported in execution.leaked_resources. With cleanup_on_failure=False
    everything acquired so far is left in place for inspection.
    """

    ran: List[str] = []

    try:
        for step in steps:
            state.setdefault("execution", {})["current_step"] = step.step_id
            logger.info("Running step %s", step.step_id)
            state = step.run(ctx, state)
            mark_step_completed(state, step.step_id)
            ran.append(step.step_id)
    except BaseException:
        held = [r.name for r in ctx.resources.active()]
        if cleanup_on_failure:
            if held:
                logger.info("> Clean up after failure (%d resources)", len(held))
            errors = ctx.resources.close(best_effort=True)
            if errors:
                state.setdefault("execution", {})["cleanup_errors"] = [str(e) for e in errors]
            leaked = [r.name for r in ctx.resources.active()]
            if leaked:
                state.setdefault("execution", {})["leaked_resources"] = leaked
                logger.error("Still held after cleanup: %s", ", ".join(leaked))
        elif held:
            logger.warning("Leaving resources in place: %s", ", ".join(held))
        raise
    finally:
        if ctx.installer is not None:
            state.setdefault("execution", {})["installer_state"] = ctx.installer.state.name

    state.setdefault("execution", {})["current_step"] = None
    return PipelineResult(state=state, ran_steps=ran)
