"""Build bootable UEFI raw disk images from container images.

The builder attaches a sparse file to a loop device, partitions it (GPT,
ESP plus ext4 root), unpacks the container filesystem into it, installs a
kernel and GRUB through the flavor's package manager and hands back a
single image file. Every loop device and mount is tracked on a resource
stack and released newest first, also when the build fails.
"""

__all__ = []
