"""Error taxonomy for the image builder.

BuildError (RuntimeError)
    ExecutionError              external tool exited non-zero
    ResourceAcquisitionError    loop device, mount, directory or file allocation failed
        AttachmentError
        ImageAllocationError
    ResourceOrderError          release attempted out of creation order
    PreconditionError           the target tree is not in the expected shape
        AmbiguousKernelVersionError
    ArgumentError               bad user input, raised before any resource exists
    BuildInterrupted            termination signal received mid-build

Nothing is retried; every error aborts the build.
"""

from __future__ import annotations

import shlex
from typing import Sequence


class BuildError(RuntimeError):
    """Base class for every failure the builder reports."""


class ExecutionError(BuildError):
    def __init__(self, program: str, args: Sequence[str], exit_code: int, stderr: str):
        self.program = program
        self.args_list = list(args)
        self.exit_code = exit_code
        self.stderr = stderr
        cmdline = " ".join(shlex.quote(a) for a in [program, *self.args_list])
        msg = f"Command failed ({exit_code}): {cmdline}"
        if stderr.strip():
            msg += f"\n{stderr.rstrip()}"
        super().__init__(msg)


class ResourceAcquisitionError(BuildError):
    pass


class AttachmentError(ResourceAcquisitionError):
    pass


class ImageAllocationError(ResourceAcquisitionError):
    pass


class ResourceOrderError(BuildError):
    pass


class PreconditionError(BuildError):
    pass


class AmbiguousKernelVersionError(PreconditionError):
    def __init__(self, versions: Sequence[str]):
        self.versions = list(versions)
        super().__init__(
            f"Expected exactly one kernel module directory, found {len(self.versions)}: "
            f"{', '.join(self.versions) or '(none)'}"
        )


class ArgumentError(BuildError):
    pass


class BuildInterrupted(BuildError):
    def __init__(self, signum: int):
        self.signum = signum
        super().__init__(f"Interrupted by signal {signum}")
