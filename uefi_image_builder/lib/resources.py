"""Ownership stack for OS-level resources.

Every loop device, mount and guard the build acquires is pushed here together
with the callable that releases it. Teardown pops entries newest first, so a
mount nested under another is always released before its parent and the loop
device is detached only after every partition on it is unmounted.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from ..errors import ResourceOrderError

logger = logging.getLogger(__name__)


class ResourceKind(str, enum.Enum):
    LOOP = "loop"
    MOUNT = "mount"
    BIND = "bind"
    GUARD = "guard"


@dataclass(eq=False)
class Resource:
    name: str
    kind: ResourceKind
    release_fn: Callable[[], None] = field(repr=False)
    released: bool = False


class ResourceStack:
    def __init__(self) -> None:
        self._entries: List[Resource] = []

    def push(self, name: str, release: Callable[[], None], kind: ResourceKind) -> Resource:
        res = Resource(name=name, kind=kind, release_fn=release)
        self._entries.append(res)
        logger.debug("Acquired %s (%s)", name, kind.value)
        return res

    def active(self, kind: Optional[ResourceKind] = None) -> List[Resource]:
        """Live entries in creation order."""
        return [r for r in self._entries if not r.released and (kind is None or r.kind == kind)]

    def _top(self) -> Optional[Resource]:
        live = self.active()
        return live[-1] if live else None

    def release(self, res: Resource) -> None:
        """Release one entry early; only the newest live entry may go."""
        if res.released:
            raise ResourceOrderError(f"{res.name} was already released")
        top = self._top()
        if top is not res:
            raise ResourceOrderError(
                f"Cannot release {res.name} while {top.name if top else '?'} is still held"
            )
        self._release(res)

    def _release(self, res: Resource) -> None:
        logger.info("Releasing %s", res.name)
        res.release_fn()
        # Only a release that went through counts; a failed one stays held.
        res.released = True

    def close(self, *, best_effort: bool = False) -> List[BaseException]:
        """Release everything newest first.

        With best_effort the remaining entries are still released after a
        failure and the collected errors are returned; otherwise the first
        failure propagates. A loop device is never detached while a mount or
        bind mount is still held: it stays on the stack with the failed mount
        and active() keeps reporting both.
        """
        errors: List[BaseException] = []
        for res in reversed(self.active()):
            if res.kind == ResourceKind.LOOP:
                mounted = self.active(ResourceKind.MOUNT) + self.active(ResourceKind.BIND)
                if mounted:
                    logger.error(
                        "Keeping %s attached, still mounted: %s",
                        res.name,
                        ", ".join(m.name for m in mounted),
                    )
                    continue
            try:
                self._release(res)
            except Exception as e:
                if not best_effort:
                    raise
                logger.error("Failed to release %s: %s", res.name, e)
                errors.append(e)
        return errors

    def __len__(self) -> int:
        return len(self.active())
