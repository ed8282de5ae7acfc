from __future__ import annotations

import logging
import secrets
import string

from .chroot import Chroot

logger = logging.getLogger(__name__)

PASSWORD_ALPHABET = string.ascii_letters + string.digits
PASSWORD_LENGTH = 16


def generate_password(length: int = PASSWORD_LENGTH) -> str:
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


def set_root_password(chroot: Chroot, password: str) -> None:
    """Feed the password twice to the interactive passwd prompt."""

    chroot.run(["passwd"], input_text=f"{password}\n{password}\n")
