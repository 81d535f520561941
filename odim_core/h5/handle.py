"""Reference-counted ownership of backing-store objects.

A `Handle` transparently proxies an h5py object (file, group or dataset), so
everything that works on the h5py object also works on the handle. On top of
that it implements explicit ownership:

* copying a handle shares the object and increments a shared reference count,
* `move()` transfers ownership to a new handle and empties the source,
* `close()` (or garbage collection) decrements the count and releases the
  object when the last owner is gone.

An empty handle (never acquired, moved-from or closed) reports `hid == -1`
and is falsy. Closing it again is a no-op.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Optional

import h5py
import wrapt

from .errors import ErrorKind, StorageError, TargetKind, location_of, storage_errors

logger = logging.getLogger(__name__)


class _Resource:
    """Shared state of all handles referring to the same object."""

    __slots__ = ("obj", "refs")

    def __init__(self, obj: Any):
        self.obj = obj
        self.refs = 1


def _release(obj: Any) -> None:
    # groups and datasets are closed by h5py once the last reference is dropped
    if isinstance(obj, h5py.File) and obj.id.valid:
        logger.debug("closing file %s", obj.filename)
        obj.close()


class Handle(wrapt.ObjectProxy):
    """Owning, reference-counted proxy for an h5py object."""

    def __init__(self, obj: Any = None, *, _resource: Optional[_Resource] = None):
        super().__init__(obj)
        if _resource is None and obj is not None:
            _resource = _Resource(obj)
        self._self_resource: Optional[_Resource] = _resource

    @property
    def hid(self) -> int:
        """Integer HDF5 identifier of the owned object (-1 if there is none)."""
        obj = self.__wrapped__
        if obj is None or not obj.id.valid:
            return -1
        return obj.id.id

    @property
    def refs(self) -> int:
        """Number of handles sharing the owned object (0 for an empty handle)."""
        res = self._self_resource
        return res.refs if res is not None else 0

    @property
    def path(self) -> Optional[str]:
        """Path of the owned object, queried from the backing store on every call."""
        return location_of(self.__wrapped__)

    def __bool__(self) -> bool:
        return self.hid > 0

    def copy(self) -> Handle:
        """Return a new handle sharing the owned object."""
        res = self._self_resource
        if res is None:
            return type(self)()
        res.refs += 1
        return type(self)(self.__wrapped__, _resource=res)

    def __copy__(self) -> Handle:
        return self.copy()

    def __deepcopy__(self, memo) -> Handle:
        # the backing object is never duplicated, only shared
        return self.copy()

    def move(self) -> Handle:
        """Transfer ownership to a new handle, leaving this one empty."""
        ret = type(self)(self.__wrapped__, _resource=self._self_resource)
        self._self_resource = None
        self.__wrapped__ = None
        return ret

    def close(self) -> None:
        """Give up ownership, releasing the object if this was the last owner."""
        res = self._self_resource
        if res is None:
            return
        self._self_resource = None
        self.__wrapped__ = None
        res.refs -= 1
        if res.refs == 0:
            obj, res.obj = res.obj, None
            _release(obj)

    def __del__(self):
        if getattr(self, "_self_resource", None) is not None:
            self.close()

    def __repr__(self) -> str:
        return f"<Handle hid={self.hid} refs={self.refs} wrapping {self.__wrapped__!r}>"


def acquire(
    opener: Callable[[], Any],
    *,
    operation: str,
    target: TargetKind,
    name: Optional[str] = None,
    location: Any = None,
    kind: ErrorKind = ErrorKind.open,
) -> Handle:
    """Call a backing-store function and take ownership of the object it returns.

    Args:
        opener: zero-argument callable returning an h5py object
        operation: name of the operation, used in error messages
        target: kind of object that is opened or created
        name: name of the object, if known
        location: handle of the location the object is opened at, if any
        kind: error kind to report on failure

    Raises:
        StorageError: if the backing store fails or returns an invalid object
    """
    with storage_errors(kind, operation, target, name, location):
        obj = opener()
    if obj is None or not obj.id.valid:
        raise StorageError(
            operation,
            name=name,
            target=target,
            location=location,
            reason="invalid identifier",
            kind=kind,
        )
    return Handle(obj)


def has_child(loc: Any, name: str) -> bool:
    """Return whether a link with given name exists in an open group.

    A missing name is an ordinary outcome, failures of the check itself raise.
    """
    with storage_errors(ErrorKind.open, "check link", TargetKind.group, name, loc):
        return loc.id.links.exists(name.encode("utf-8"))
