from __future__ import annotations

import logging
import os
import shlex
import subprocess
from dataclasses import dataclass
from typing import Mapping, Sequence

from ..errors import ExecutionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str


def _fmt_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


def stdout_text(result: CmdResult) -> str:
    """stdout with a single trailing newline removed."""
    text = result.stdout or ""
    if text.endswith("\n"):
        text = text[:-1]
    return text


def run_cmd(
    argv: Sequence[str],
    *,
    check: bool = True,
    env: Mapping[str, str] | None = None,
    cwd: str | None = None,
    input_text: str | None = None,
) -> CmdResult:
    """Run a command with consistent logging.

    - Always logs the command (and any extra environment).
    - Blocks until the child exits; there is no timeout.
    - check=True turns a non-zero exit into ExecutionError carrying stderr.
    """

    argv_list = [str(a) for a in argv]
    if env:
        logger.info("CMD %s %s", " ".join(f"{k}={v}" for k, v in env.items()), _fmt_argv(argv_list))
    else:
        logger.info("CMD %s", _fmt_argv(argv_list))

    try:
        p = subprocess.run(
            argv_list,
            input=input_text,
            text=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=cwd,
            env=dict(os.environ, **(env or {})),
        )
    except OSError as e:
        # Missing binary or not executable: report it like a shell would.
        raise ExecutionError(argv_list[0], argv_list[1:], 127, str(e)) from e

    if p.stdout:
        logger.debug("STDOUT %s", p.stdout.strip())
    if p.stderr:
        logger.debug("STDERR %s", p.stderr.strip())

    if check and p.returncode != 0:
        raise ExecutionError(argv_list[0], argv_list[1:], p.returncode, p.stderr or "")

    return CmdResult(argv=argv_list, returncode=p.returncode, stdout=p.stdout, stderr=p.stderr)


class CommandRunner:
    """The single seam through which the builder touches external tools."""

    def run(
        self,
        argv: Sequence[str],
        *,
        check: bool = True,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
        input_text: str | None = None,
    ) -> CmdResult:
        return run_cmd(argv, check=check, env=env, cwd=cwd, input_text=input_text)
