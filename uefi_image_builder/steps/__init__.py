from .step_10_create_disk import CreateDiskStep
from .step_20_format_mount import FormatMountStep
from .step_30_unpack_container import UnpackContainerStep
from .step_40_prepare_chroot import PrepareChrootStep
from .step_50_install_flavor import InstallFlavorStep
from .step_60_write_boot_config import WriteBootConfigStep
from .step_70_rebuild_initramfs import RebuildInitramfsStep
from .step_80_finalize_system import FinalizeSystemStep
from .step_90_teardown_output import TeardownOutputStep

__all__ = [
    "CreateDiskStep",
    "FormatMountStep",
    "UnpackContainerStep",
    "PrepareChrootStep",
    "InstallFlavorStep",
    "WriteBootConfigStep",
    "RebuildInitramfsStep",
    "FinalizeSystemStep",
    "TeardownOutputStep",
]
