"""Error taxonomy of the ODIM_H5 binding.

All errors raised by `odim_core` subclass `OdimError` and the closest built-in
exception, so callers can catch either. Backing-store (h5py) exceptions are
translated at the boundary with `storage_errors`, which chains the original
exception.

Every error names the failing operation, the attribute/object name (if any)
and the location of the node involved. The location is resolved at the time
the error is raised, because path lookups are comparatively expensive and
errors are rare.
"""
from __future__ import annotations

from contextlib import contextmanager
from enum import Enum
from typing import Any, Iterator, Optional

import h5py


class ErrorKind(str, Enum):
    """Kind of failure."""

    create = "create-failed"
    open = "open-failed"
    read = "read-failed"
    write = "write-failed"
    remove = "remove-failed"
    type_mismatch = "type-mismatch"
    size_mismatch = "size-mismatch"
    bad_value = "bad-value"

    def __repr__(self) -> str:
        return f"{type(self).__name__}.{self.name}"


class TargetKind(str, Enum):
    """Kind of backing-store object an operation was aimed at."""

    file = "file"
    group = "group"
    type = "type"
    dataspace = "dataspace"
    attribute = "attribute"
    property_list = "property-list"
    dataset = "dataset"

    def __repr__(self) -> str:
        return f"{type(self).__name__}.{self.name}"


def location_of(obj: Any) -> Optional[str]:
    """Return the HDF5 path of an open object, or None if it cannot be resolved."""
    obj = getattr(obj, "__wrapped__", obj)  # unwrap handles
    if obj is None:
        return None
    oid = getattr(obj, "id", None)
    if isinstance(oid, int):  # low-level identifier object
        oid = obj
    if oid is None or not getattr(oid, "valid", False):
        return None
    name = h5py.h5i.get_name(oid)
    return name.decode("utf-8", errors="replace") if name else None


class OdimError(Exception):
    """Base exception for all errors of the ODIM_H5 binding."""

    kind: ErrorKind = ErrorKind.bad_value

    def __init__(
        self,
        operation: str,
        *,
        name: Optional[str] = None,
        target: Optional[TargetKind] = None,
        location: Any = None,
        reason: Optional[str] = None,
        kind: Optional[ErrorKind] = None,
    ):
        if kind is not None:
            self.kind = kind
        self.operation = operation
        self.name = name
        self.target = target
        self.reason = reason
        # a handle/node may be passed, its path is looked up right here
        self.location = location if isinstance(location, str) else location_of(location)
        super().__init__(self._message())

    def _message(self) -> str:
        lines = [f"odim error: {self.kind.value}", f"  operation: {self.operation}"]
        if self.target is not None:
            lines.append(f"  target: {self.target.value}")
        if self.name is not None:
            lines.append(f"  parameter: {self.name}")
        if self.location is not None:
            lines.append(f"  location: {self.location}")
        if self.reason:
            lines.append(f"  reason: {self.reason}")
        return "\n".join(lines)

    def __str__(self) -> str:
        return self._message()


class StorageError(OdimError, OSError):
    """A backing-store call failed (create, open, read, write or remove)."""

    kind = ErrorKind.open


class MissingChildError(StorageError):
    """A numbered child group (e.g. `dataset3`) does not exist."""

    kind = ErrorKind.open


class NoSuchAttributeError(OdimError, KeyError):
    """Requested attribute is not present in the attribute store."""

    kind = ErrorKind.open


class TypeMismatchError(OdimError, TypeError):
    """Accessor does not match the type of the stored attribute."""

    kind = ErrorKind.type_mismatch


class SizeMismatchError(OdimError, ValueError):
    """Size of a value does not match the size of its on-disk storage."""

    kind = ErrorKind.size_mismatch


class BadValueError(OdimError, ValueError):
    """Value is present but semantically invalid (e.g. unparsable date)."""

    kind = ErrorKind.bad_value


# exceptions h5py raises for failing library calls
_H5PY_ERRORS = (OSError, KeyError, ValueError, RuntimeError, TypeError)


@contextmanager
def storage_errors(
    kind: ErrorKind,
    operation: str,
    target: TargetKind,
    name: Optional[str] = None,
    location: Any = None,
) -> Iterator[None]:
    """Translate h5py exceptions raised inside the block into `StorageError`.

    Errors of this package pass through unchanged.
    """
    try:
        yield
    except OdimError:
        raise
    except _H5PY_ERRORS as e:
        raise StorageError(
            operation,
            name=name,
            target=target,
            location=location,
            reason=str(e),
            kind=kind,
        ) from e
