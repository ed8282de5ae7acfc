import pytest

from uefi_image_builder.errors import AmbiguousKernelVersionError, ExecutionError
from uefi_image_builder.flavors import Flavor
from uefi_image_builder.main import build_steps
from uefi_image_builder.pipeline import run_pipeline
from uefi_image_builder.state_store import new_state

from conftest import KERNEL_VERSION, LOOP_DEVICE, FakeRunner, populate_rootfs


def _state(ctx):
    r = ctx.request
    return new_state(
        flavor=r.flavor.value,
        image_name=r.image_name,
        output_file=str(r.output_file),
        disk_size_gb=r.disk_size_gb,
    )


def _teardown_tail(runner, start):
    return [c.argv for c in runner.calls[start:]]


def test_alpine_build(make_ctx, fake_runner):
    ctx = make_ctx(fake_runner, Flavor.ALPINE, extra_packages=["htop"])
    root = ctx.mount_root

    result = run_pipeline(ctx=ctx, state=_state(ctx), steps=build_steps())

    assert result.ran_steps == [s.step_id for s in build_steps()]
    assert result.state["execution"]["installer_state"] == "INITRAMFS_REBUILT"
    assert result.state["decisions"]["kernel_version"] == KERNEL_VERSION
    assert result.state["decisions"]["loop_device"] == LOOP_DEVICE

    # disk
    sgdisk = fake_runner.find("sgdisk")
    assert len(sgdisk) == 4
    assert sgdisk[2].argv[2] == "3:413696:-256M"
    assert ["mkswap", "/dev/loop7p4"] in fake_runner.argvs()

    # fstab
    fstab = (root / "etc/fstab").read_text().splitlines()
    assert fstab == [
        "UUID=uuid-3 / ext4 defaults,errors=remount-ro 0 1",
        "UUID=uuid-2 /boot/efi vfat defaults 0 2",
        "tmpfs /tmp tmpfs nosuid,nodev 0 0",
        "UUID=uuid-4 swap swap defaults 0 0",
    ]
    assert (root / "etc/hostname").read_text() == "alpine\n"
    assert (root / "etc/resolv.conf").read_text() == "nameserver 192.0.2.53\n"
    assert (root / "boot/efi/EFI/BOOT").is_dir()
    grub = (root / "etc/default/grub").read_text()
    assert "GRUB_DEVICE=UUID=uuid-3\n" in grub
    assert "modules=sd-mod,usb-storage,nvme,ext4" in grub

    # order of the late steps
    programs = fake_runner.programs()
    assert programs.index("grub-install") < programs.index("mkinitfs") < programs.index("passwd")
    assert programs.index("sed") < programs.index("passwd")
    passwd = fake_runner.find("passwd")[0]
    pw = ctx.root_password
    assert len(pw) == 16 and pw.isalnum()
    assert passwd.input_text == f"{pw}\n{pw}\n"

    # output
    assert ctx.output_path == ctx.request.output_file
    assert ctx.output_path.exists()
    assert len(ctx.resources) == 0


def test_teardown_unmounts_before_detach(make_ctx, fake_runner):
    ctx = make_ctx(fake_runner, Flavor.ALPINE)
    run_pipeline(ctx=ctx, state=_state(ctx), steps=build_steps())

    argvs = fake_runner.argvs()
    detach = argvs.index(["losetup", "-d", LOOP_DEVICE])
    umounts = [i for i, a in enumerate(argvs) if a[0] == "umount"]
    assert len(umounts) == 5
    assert all(i < detach for i in umounts)
    for i in umounts:
        assert argvs[i - 1] == ["sync"]

    root = ctx.mount_root
    assert [argvs[i][1] for i in umounts] == [
        str(root / "sys"),
        str(root / "proc"),
        str(root / "dev"),
        str(root / "boot/efi"),
        str(root),
    ]


def test_debian_build(make_ctx, fake_runner):
    ctx = make_ctx(fake_runner, Flavor.DEBIAN, extra_packages=["vim", "curl"], root_password="hunter2hunter2")
    run_pipeline(ctx=ctx, state=_state(ctx), steps=build_steps())

    assert len(fake_runner.find("sgdisk")) == 3
    assert fake_runner.find("mkswap") == []
    assert fake_runner.find("docker")[0].argv[-1] == "example/rootfs:latest"

    apt = [c.argv[2:] for c in fake_runner.find("apt")]
    assert apt[-1] == ["apt", "install", "-y", "vim", "curl"]
    assert ["update-initramfs", "-u"] in [c.argv[2:] for c in fake_runner.calls if c.in_chroot]

    fstab = (ctx.mount_root / "etc/fstab").read_text().splitlines()
    assert len(fstab) == 2
    assert fake_runner.find("passwd")[0].input_text == "hunter2hunter2\nhunter2hunter2\n"


def test_supplied_archive_skips_engine(make_ctx, fake_runner, tmp_path):
    ctx = make_ctx(fake_runner, Flavor.DEBIAN)
    ctx.container_archive = tmp_path / "rootfs.tar"
    run_pipeline(ctx=ctx, state=_state(ctx), steps=build_steps())

    assert fake_runner.find("docker") == []
    assert fake_runner.find("tar")[0].argv[-1] == str(tmp_path / "rootfs.tar")


def test_failure_releases_everything_in_reverse(make_ctx):
    runner = FakeRunner(effects={"tar": populate_rootfs}, fail=lambda c: c.program == "grub-install")
    ctx = make_ctx(runner, Flavor.ALPINE)
    state = _state(ctx)

    with pytest.raises(ExecutionError):
        run_pipeline(ctx=ctx, state=state, steps=build_steps())

    failed = runner.index(lambda c: c.program == "grub-install")
    root = ctx.mount_root
    assert _teardown_tail(runner, failed + 1) == [
        ["sync"], ["umount", str(root / "sys")],
        ["sync"], ["umount", str(root / "proc")],
        ["sync"], ["umount", str(root / "dev")],
        ["sync"], ["umount", str(root / "boot/efi")],
        ["sync"], ["umount", str(root)],
        ["losetup", "-d", LOOP_DEVICE],
    ]
    assert len(ctx.resources) == 0
    assert state["execution"]["current_step"] == "60_write_boot_config"
    assert "60_write_boot_config" not in state["execution"]["completed_steps"]
    assert state["execution"]["installer_state"] == "FIRST_BOOT_CONFIGURED"


def test_failure_during_setup_stops_services_first(make_ctx):
    runner = FakeRunner(effects={"tar": populate_rootfs}, fail=lambda c: c.program == "/bin/sh")
    ctx = make_ctx(runner, Flavor.ALPINE)

    with pytest.raises(ExecutionError):
        run_pipeline(ctx=ctx, state=_state(ctx), steps=build_steps())

    failed = runner.index(lambda c: c.program == "/bin/sh")
    assert runner.calls[failed + 1].argv[2:] == ["openrc", "shutdown"]
    assert runner.argvs()[-1] == ["losetup", "-d", LOOP_DEVICE]


def test_ambiguous_kernel_aborts_and_cleans_up(make_ctx):
    def two_kernels(argv):
        populate_rootfs(argv, kernel_versions=("6.1.1-virt", "6.1.2-virt"))

    runner = FakeRunner(effects={"tar": two_kernels})
    ctx = make_ctx(runner, Flavor.ALPINE)

    with pytest.raises(AmbiguousKernelVersionError):
        run_pipeline(ctx=ctx, state=_state(ctx), steps=build_steps())

    assert runner.find("mkinitfs") == []
    assert len(ctx.resources) == 0
    assert not ctx.request.output_file.exists()


def test_interrupt_cleans_up(make_ctx):
    def interrupt(argv):
        raise KeyboardInterrupt

    runner = FakeRunner(effects={"tar": interrupt})
    ctx = make_ctx(runner, Flavor.DEBIAN)

    with pytest.raises(KeyboardInterrupt):
        run_pipeline(ctx=ctx, state=_state(ctx), steps=build_steps())

    assert runner.argvs()[-1] == ["losetup", "-d", LOOP_DEVICE]
    assert len(ctx.resources) == 0


def test_no_cleanup_leaves_resources(make_ctx):
    runner = FakeRunner(effects={"tar": populate_rootfs}, fail=lambda c: c.program == "update-initramfs")
    ctx = make_ctx(runner, Flavor.DEBIAN)

    with pytest.raises(ExecutionError):
        run_pipeline(ctx=ctx, state=_state(ctx), steps=build_steps(), cleanup_on_failure=False)

    assert runner.find("umount") == []
    assert runner.find("losetup")[-1].argv[:2] == ["losetup", "--show"]
    assert len(ctx.resources) == 6


def test_stuck_root_unmount_keeps_loop_attached(make_ctx):
    def fail(call):
        return call.program == "grub-install" or call.argv == ["umount", str(ctx.mount_root)]

    runner = FakeRunner(effects={"tar": populate_rootfs}, fail=fail)
    ctx = make_ctx(runner, Flavor.ALPINE)
    state = _state(ctx)

    with pytest.raises(ExecutionError):
        run_pipeline(ctx=ctx, state=state, steps=build_steps())

    assert runner.argvs()[-2:] == [["sync"], ["umount", str(ctx.mount_root)]]
    assert ["losetup", "-d", LOOP_DEVICE] not in runner.argvs()
    assert ctx.image.attached
    assert len(state["execution"]["cleanup_errors"]) == 1
    assert state["execution"]["leaked_resources"] == [f"loop {LOOP_DEVICE}", f"mount {ctx.mount_root}"]


def test_stuck_bind_unmount_is_reported(make_ctx):
    def fail(call):
        return call.program == "mkinitfs" or call.argv == ["umount", str(ctx.mount_root / "dev")]

    runner = FakeRunner(effects={"tar": populate_rootfs}, fail=fail)
    ctx = make_ctx(runner, Flavor.ALPINE)
    state = _state(ctx)

    with pytest.raises(ExecutionError):
        run_pipeline(ctx=ctx, state=state, steps=build_steps())

    # esp and root still come down; the loop device does not.
    assert ["umount", str(ctx.mount_root)] in runner.argvs()
    assert ["losetup", "-d", LOOP_DEVICE] not in runner.argvs()
    assert state["execution"]["leaked_resources"] == [f"loop {LOOP_DEVICE}", f"mount {ctx.mount_root / 'dev'}"]
