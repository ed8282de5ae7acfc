from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from uefi_image_builder.build_config import BuildConfig
from uefi_image_builder.errors import ExecutionError
from uefi_image_builder.flavors import Flavor
from uefi_image_builder.lib.command import CmdResult, CommandRunner
from uefi_image_builder.pipeline import BuildCtx, BuildRequest

LOOP_DEVICE = "/dev/loop7"
KERNEL_VERSION = "6.1.0-0-virt"


@dataclass
class Call:
    argv: List[str]
    env: Optional[Dict[str, str]]
    input_text: Optional[str]

    @property
    def program(self) -> str:
        """The program run, looking through chroot."""
        if self.argv[0] == "chroot" and len(self.argv) > 2:
            return self.argv[2]
        return self.argv[0]

    @property
    def in_chroot(self) -> bool:
        return self.argv[0] == "chroot"


def blkid_output(argv: List[str]) -> str:
    dev = argv[-1]
    return f"DEVNAME={dev}\nUUID=uuid-{dev.rsplit('p', 1)[-1]}\nTYPE=ext4\n"


class FakeRunner(CommandRunner):
    """Records every command instead of running it.

    outputs maps a program to its stdout (string or callable(argv)).
    fail is a predicate on the call; matching calls raise ExecutionError.
    effects maps a program to a callable(argv) run before returning, used to
    fake what the tool would have done to the filesystem.
    """

    def __init__(
        self,
        *,
        outputs: Optional[Dict[str, object]] = None,
        fail: Optional[Callable[[Call], bool]] = None,
        effects: Optional[Dict[str, Callable[[List[str]], None]]] = None,
    ) -> None:
        super().__init__()
        self.outputs: Dict[str, object] = {"losetup": LOOP_DEVICE + "\n", "blkid": blkid_output}
        self.outputs.update(outputs or {})
        self.fail = fail
        self.effects = effects or {}
        self.calls: List[Call] = []

    def run(self, argv, *, check=True, env=None, cwd=None, input_text=None) -> CmdResult:
        call = Call(argv=[str(a) for a in argv], env=dict(env) if env else None, input_text=input_text)
        self.calls.append(call)

        if self.fail is not None and self.fail(call):
            if check:
                raise ExecutionError(call.argv[0], call.argv[1:], 1, "injected failure\n")
            return CmdResult(argv=call.argv, returncode=1, stdout="", stderr="injected failure\n")

        effect = self.effects.get(call.program)
        if effect is not None:
            effect(call.argv)

        out = self.outputs.get(call.program, "")
        if callable(out):
            out = out(call.argv)
        # losetup -d prints nothing.
        if call.argv[:2] == ["losetup", "-d"]:
            out = ""
        return CmdResult(argv=call.argv, returncode=0, stdout=str(out), stderr="")

    # helpers for assertions

    def argvs(self) -> List[List[str]]:
        return [c.argv for c in self.calls]

    def programs(self) -> List[str]:
        return [c.program for c in self.calls]

    def index(self, predicate: Callable[[Call], bool]) -> int:
        for i, c in enumerate(self.calls):
            if predicate(c):
                return i
        raise AssertionError("no matching call recorded")

    def find(self, program: str) -> List[Call]:
        return [c for c in self.calls if c.program == program]


def populate_rootfs(argv: List[str], *, kernel_versions=(KERNEL_VERSION,)) -> None:
    """What unpacking a small container export leaves behind."""

    dest = Path(argv[argv.index("-C") + 1])
    (dest / "etc/apk").mkdir(parents=True, exist_ok=True)
    (dest / "etc/apk/world").write_text("alpine-baselayout\nbusybox\n", encoding="utf-8")
    (dest / "etc/inittab").write_text("#ttyS0::respawn:/sbin/getty -L 0 ttyS0 vt100\n", encoding="utf-8")
    for v in kernel_versions:
        (dest / "lib/modules" / v).mkdir(parents=True, exist_ok=True)


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner(effects={"tar": populate_rootfs})


@pytest.fixture
def resolv_conf(tmp_path: Path) -> Path:
    p = tmp_path / "host-resolv.conf"
    p.write_text("nameserver 192.0.2.53\n", encoding="utf-8")
    return p


@pytest.fixture
def make_ctx(tmp_path: Path, resolv_conf: Path):
    def _make(
        runner: CommandRunner,
        flavor: Flavor = Flavor.ALPINE,
        *,
        disk_size_gb: int = 1,
        extra_packages=None,
        root_password=None,
        raw_cfg=None,
    ) -> BuildCtx:
        work_dir = tmp_path / "work"
        work_dir.mkdir(exist_ok=True)
        request = BuildRequest(
            image_name="example/rootfs:latest",
            output_file=tmp_path / "out" / "disk.img",
            flavor=flavor,
            disk_size_gb=disk_size_gb,
            root_password=root_password,
            extra_packages=list(extra_packages or []),
        )
        cfg = BuildConfig(raw={"resolv_conf": str(resolv_conf), **(raw_cfg or {})})
        return BuildCtx(request=request, cfg=cfg, runner=runner, work_dir=work_dir)

    return _make
