"""Registry of in-flight operations.

Four independent key spaces:

* generic - operations without a single-flight key; any number may run.
* download - keyed by source path.
* thumbnail - keyed by ``(path, size)``.
* upload - keyed by destination path.

Tracking a second operation under a key that is already live follows the
registry's :class:`SupersedePolicy`. The default, ``OVERWRITE``, replaces the
entry without cancelling the previous operation, which keeps running and
still delivers its outcome. ``cancel_all`` reaches superseded operations too.
"""

from __future__ import annotations

import enum
import logging
import threading
from collections.abc import Hashable

from .errors import CloudboxError
from .operation import KeySpace, Operation, OperationState

logger = logging.getLogger("cloudbox.registry")


class SupersedePolicy(str, enum.Enum):
    OVERWRITE = "overwrite"
    CANCEL_PREVIOUS = "cancel_previous"
    REJECT = "reject"


class DuplicateOperationError(CloudboxError):
    """A keyed operation is already in flight and the policy is ``REJECT``."""


def thumbnail_key(path: str, size: str | None) -> tuple[str, str | None]:
    return (path, size)


class RequestRegistry:
    def __init__(self, policy: SupersedePolicy = SupersedePolicy.OVERWRITE) -> None:
        self._policy = policy
        self._lock = threading.Lock()
        self._generic: set[Operation] = set()
        self._keyed: dict[KeySpace, dict[Hashable, Operation]] = {
            KeySpace.DOWNLOAD: {},
            KeySpace.THUMBNAIL: {},
            KeySpace.UPLOAD: {},
        }
        self._superseded: set[Operation] = set()

    @property
    def policy(self) -> SupersedePolicy:
        return self._policy

    def track(self, op: Operation) -> None:
        """Record ``op`` under its key space.

        Raises:
            DuplicateOperationError: the key is live and the policy is ``REJECT``.
        """
        previous: Operation | None = None
        with self._lock:
            if op.key_space is KeySpace.GENERIC:
                self._generic.add(op)
                return
            if op.key is None:
                raise ValueError(f"{op.key_space.value} operations require a key")
            space = self._keyed[op.key_space]
            previous = space.get(op.key)
            if previous is not None and previous is not op:
                if self._policy is SupersedePolicy.REJECT:
                    raise DuplicateOperationError(
                        f"a {op.key_space.value} operation for {op.key!r} is already in flight",
                        user_info={"key": op.key},
                    )
                if self._policy is SupersedePolicy.OVERWRITE:
                    self._superseded.add(previous)
                    logger.debug("superseding %s operation for %r", op.key_space.value, op.key)
            space[op.key] = op

        if previous is not None and self._policy is SupersedePolicy.CANCEL_PREVIOUS:
            previous.cancel()

    def get(self, space: KeySpace, key: Hashable) -> Operation | None:
        if space is KeySpace.GENERIC:
            raise ValueError("generic operations have no key")
        with self._lock:
            return self._keyed[space].get(key)

    def cancel(self, space: KeySpace, key: Hashable) -> bool:
        """Cancel and forget the operation under ``key``; no-op if there is none."""
        if space is KeySpace.GENERIC:
            raise ValueError("generic operations have no key; cancel the Operation itself")
        with self._lock:
            op = self._keyed[space].pop(key, None)
        if op is None:
            return False
        op.cancel()
        return True

    def cancel_download(self, path: str) -> bool:
        return self.cancel(KeySpace.DOWNLOAD, path)

    def cancel_thumbnail(self, path: str, size: str | None) -> bool:
        return self.cancel(KeySpace.THUMBNAIL, thumbnail_key(path, size))

    def cancel_upload(self, destination_path: str) -> bool:
        return self.cancel(KeySpace.UPLOAD, destination_path)

    def cancel_operation(self, op: Operation) -> bool:
        """Cancel ``op`` wherever it is tracked."""
        with self._lock:
            live = self._remove_locked(op)
        op.cancel()
        return live

    def cancel_all(self) -> int:
        """Cancel every tracked operation and clear all key spaces. Idempotent."""
        with self._lock:
            ops = list(self._generic) + list(self._superseded)
            for space in self._keyed.values():
                ops.extend(space.values())
                space.clear()
            self._generic.clear()
            self._superseded.clear()
        for op in ops:
            op.cancel()
        return len(ops)

    def complete(self, op: Operation) -> bool:
        """Remove ``op`` after its terminal outcome; returns whether it was still live.

        A keyed entry is only removed when it is ``op`` itself, so a finished
        superseded operation never evicts its replacement.
        """
        with self._lock:
            live = self._remove_locked(op)
        op.state = OperationState.REMOVED
        return live

    def _remove_locked(self, op: Operation) -> bool:
        if op in self._superseded:
            self._superseded.discard(op)
            return True
        if op.key_space is KeySpace.GENERIC:
            if op in self._generic:
                self._generic.discard(op)
                return True
            return False
        space = self._keyed[op.key_space]
        if space.get(op.key) is op:
            del space[op.key]
            return True
        return False

    def is_live(self, op: Operation) -> bool:
        with self._lock:
            if op in self._superseded or op in self._generic:
                return True
            if op.key_space is KeySpace.GENERIC:
                return False
            return self._keyed[op.key_space].get(op.key) is op

    def count(self) -> int:
        """Live entries across the four key spaces."""
        with self._lock:
            return len(self._generic) + sum(len(space) for space in self._keyed.values())

    def __len__(self) -> int:
        return self.count()


__all__ = [
    "DuplicateOperationError",
    "RequestRegistry",
    "SupersedePolicy",
    "thumbnail_key",
]
