"""Typed access to single HDF5 attributes.

An `Attribute` does not hold the value, it describes where the value lives
(owning store, sub-group slot, name) and caches the discovered on-disk type and
size. Values are always read from and written to the backing store.

On-disk encoding:

* integers as 64 bit little endian signed integers,
* reals as 64 bit little endian IEEE floats,
* strings as fixed-length null-terminated byte strings (UTF-8),
* booleans as the strings `True` or `False`,
* arrays as one-dimensional simple dataspaces of integers or reals.

Booleans are not a storage type, so any string attribute that is exactly
`True` or `False` is reported as boolean, no matter who wrote it.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, List, Tuple, Union

import numpy as np
from h5py import h5a, h5s, h5t

from .errors import (
    BadValueError,
    ErrorKind,
    NoSuchAttributeError,
    TargetKind,
    TypeMismatchError,
    storage_errors,
)

if TYPE_CHECKING:
    from .store import AttributeStore

logger = logging.getLogger(__name__)

Value = Union[bool, int, float, str, List[int], List[float]]
"""Python value of an attribute, as returned by `Attribute.get`."""

_TRUE: bytes = b"True"
_FALSE: bytes = b"False"
# value and byte size (incl. terminator) of the two boolean encodings
_BOOLEAN_ENCODINGS = {(_TRUE, len(_TRUE) + 1), (_FALSE, len(_FALSE) + 1)}


class AttributeType(str, Enum):
    """Type of an attribute as seen through this API."""

    uninitialized = "uninitialized"
    unknown = "unknown"
    boolean = "boolean"
    integer = "integer"
    real = "real"
    string = "string"
    integer_array = "integer_array"
    real_array = "real_array"

    def __repr__(self) -> str:
        return f"{type(self).__name__}.{self.name}"


# scalar type an array accessor also accepts
_ELEMENT_TYPE = {
    AttributeType.integer_array: AttributeType.integer,
    AttributeType.real_array: AttributeType.real,
}


def _fixed_string_type(size: int) -> h5t.TypeID:
    tid = h5t.C_S1.copy()
    tid.set_size(size)
    tid.set_strpad(h5t.STR_NULLTERM)
    return tid


def _encode_string(value: str) -> Tuple[np.ndarray, h5t.TypeID, int]:
    raw = value.encode("utf-8")
    size = len(raw) + 1
    return np.array(raw, dtype=f"S{size}"), _fixed_string_type(size), size


class Attribute:
    """A named attribute in one of the sub-groups of a node.

    The parent object is looked up through the owning store on every access,
    so an attribute stays valid when its store is copied.
    """

    def __init__(
        self,
        store: AttributeStore,
        slot: str,
        name: str,
        *,
        creatable: bool = False,
    ):
        self._store = store
        self._slot = slot
        self._name = name
        self._type = (
            AttributeType.uninitialized if creatable else AttributeType.unknown
        )
        self._size = 0
        # on-disk type is the one this module writes
        self._canonical = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def slot(self) -> str:
        """Sub-group the attribute lives in (`what`, `where`, `how`, ...)."""
        return self._slot

    @property
    def size(self) -> int:
        """Element count (arrays, numbers) or byte size incl. terminator (strings)."""
        self.type()
        return self._size

    def _bind(self, store: AttributeStore) -> Attribute:
        """Return a copy of this attribute belonging to another store."""
        ret = Attribute(store, self._slot, self._name)
        ret._type, ret._size = self._type, self._size
        ret._canonical = self._canonical
        return ret

    def _parent(self):
        return self._store._lookup_slot(self._slot)

    @property
    def _bname(self) -> bytes:
        return self._name.encode("utf-8")

    def __repr__(self) -> str:
        return f"<Attribute {self._slot}/{self._name} type={self._type!r}>"

    # ---- discovery ----

    def _errors(self, kind: ErrorKind, operation: str, loc):
        return storage_errors(kind, operation, TargetKind.attribute, self._name, loc)

    def _exists(self, loc) -> bool:
        if not loc:
            return False
        with self._errors(ErrorKind.open, "check attribute", loc):
            return h5a.exists(loc.id, self._bname)

    def _probe(self, loc) -> Any:
        """Classify the on-disk attribute, update the cache and return its value."""
        with self._errors(ErrorKind.open, "open attribute", loc):
            aid = h5a.open(loc.id, name=self._bname)
            tid = aid.get_type()
            count = aid.get_space().get_simple_extent_npoints()

        cls = tid.get_class()
        value: Any = None
        atype, size = AttributeType.unknown, count
        canonical = False
        with self._errors(ErrorKind.read, "read attribute", loc):
            if count < 1:
                pass
            elif cls == h5t.INTEGER:
                buf = np.empty(aid.shape, dtype=np.int64)
                aid.read(buf, mtype=h5t.NATIVE_INT64)
                canonical = tid.equal(h5t.STD_I64LE)
                if count == 1:
                    atype, value = AttributeType.integer, int(buf.reshape(-1)[0])
                else:
                    atype, value = AttributeType.integer_array, buf.ravel().tolist()
            elif cls == h5t.FLOAT:
                buf = np.empty(aid.shape, dtype=np.float64)
                aid.read(buf, mtype=h5t.NATIVE_DOUBLE)
                canonical = tid.equal(h5t.IEEE_F64LE)
                if count == 1:
                    atype, value = AttributeType.real, float(buf.reshape(-1)[0])
                else:
                    atype, value = AttributeType.real_array, buf.ravel().tolist()
            elif cls == h5t.STRING and count == 1:
                if tid.is_variable_str():
                    # written by other tools, h5py decodes these for us
                    text = loc.attrs[self._name]
                    raw = text.encode("utf-8") if isinstance(text, str) else bytes(text)
                    size = len(raw) + 1
                else:
                    size = tid.get_size()
                    buf = np.empty(aid.shape, dtype=f"S{size}")
                    aid.read(buf, mtype=tid)
                    raw = bytes(buf.reshape(-1)[0])
                    canonical = tid.get_strpad() == h5t.STR_NULLTERM
                if (raw, size) in _BOOLEAN_ENCODINGS:
                    atype, value = AttributeType.boolean, raw == _TRUE
                else:
                    atype, value = AttributeType.string, raw.decode("utf-8")

        self._type, self._size, self._canonical = atype, size, canonical
        return value

    def _load(self) -> Any:
        loc = self._parent()
        if not self._exists(loc):
            raise NoSuchAttributeError(
                "read attribute",
                name=self._name,
                target=TargetKind.attribute,
                location=loc,
                reason="attribute does not exist",
            )
        return self._probe(loc)

    def type(self) -> AttributeType:
        """Return the attribute type, probing the backing store if not yet known.

        A creatable attribute that is not on disk yet is `uninitialized`.
        """
        if self._type is AttributeType.uninitialized:
            loc = self._parent()
            if self._exists(loc):
                self._probe(loc)
        elif self._type is AttributeType.unknown:
            self._load()
        return self._type

    # ---- reading ----

    def get(self) -> Value:
        """Return the current value, with the Python type matching `type()`."""
        value = self._load()
        if self._type is AttributeType.unknown:
            raise TypeMismatchError(
                "read attribute",
                name=self._name,
                target=TargetKind.attribute,
                location=self._parent(),
                reason="unsupported attribute type",
            )
        return value

    def _project(self, expected: AttributeType) -> Any:
        value = self.get()
        if self._type is expected:
            return value
        if _ELEMENT_TYPE.get(expected) is self._type:
            return [value]
        raise TypeMismatchError(
            f"get_{expected.value}",
            name=self._name,
            target=TargetKind.attribute,
            location=self._parent(),
            reason=f"attribute has type {self._type.value}",
        )

    def get_boolean(self) -> bool:
        return self._project(AttributeType.boolean)

    def get_integer(self) -> int:
        return self._project(AttributeType.integer)

    def get_real(self) -> float:
        return self._project(AttributeType.real)

    def get_string(self) -> str:
        return self._project(AttributeType.string)

    def get_integer_array(self) -> List[int]:
        return self._project(AttributeType.integer_array)

    def get_real_array(self) -> List[float]:
        return self._project(AttributeType.real_array)

    # ---- writing ----

    def _write(
        self,
        atype: AttributeType,
        data: np.ndarray,
        ftype: h5t.TypeID,
        mtype: h5t.TypeID,
        size: int,
    ) -> None:
        loc = self._store._ensure_slot(self._slot)
        if self._type is AttributeType.uninitialized and not self._exists(loc):
            exists = False
        else:
            # refresh, another store may have changed it
            self._probe(loc)
            exists = True

        # foreign storage types (i4, f4, variable-length strings) are replaced
        if exists and self._canonical and self._type is atype and self._size == size:
            with self._errors(ErrorKind.write, "write attribute", loc):
                h5a.open(loc.id, name=self._bname).write(data, mtype=mtype)
            return

        if exists:
            logger.debug(
                "recreating attribute %s (%s/%d -> %s/%d)",
                self._name,
                self._type.value,
                self._size,
                atype.value,
                size,
            )
            with self._errors(ErrorKind.remove, "delete attribute", loc):
                h5a.delete(loc.id, name=self._bname)

        with storage_errors(
            ErrorKind.create, "create dataspace", TargetKind.dataspace, self._name, loc
        ):
            if data.ndim == 0:
                space = h5s.create(h5s.SCALAR)
            else:
                space = h5s.create_simple(data.shape)
        with self._errors(ErrorKind.create, "create attribute", loc):
            aid = h5a.create(loc.id, self._bname, ftype, space)
        with self._errors(ErrorKind.write, "write attribute", loc):
            aid.write(data, mtype=mtype)
        self._type, self._size, self._canonical = atype, size, True

    def set_boolean(self, value: bool) -> None:
        data, tid, size = _encode_string("True" if value else "False")
        self._write(AttributeType.boolean, data, tid, tid, size)

    def set_integer(self, value: int) -> None:
        data = self._as_array(value, np.int64, 0)
        self._write(AttributeType.integer, data, h5t.STD_I64LE, h5t.NATIVE_INT64, 1)

    def set_real(self, value: float) -> None:
        data = self._as_array(value, np.float64, 0)
        self._write(AttributeType.real, data, h5t.IEEE_F64LE, h5t.NATIVE_DOUBLE, 1)

    def set_string(self, value: str) -> None:
        data, tid, size = _encode_string(value)
        self._write(AttributeType.string, data, tid, tid, size)

    def set_integer_array(self, value) -> None:
        data = self._as_array(value, np.int64, 1)
        self._write(
            AttributeType.integer_array,
            data,
            h5t.STD_I64LE,
            h5t.NATIVE_INT64,
            data.size,
        )

    def set_real_array(self, value) -> None:
        data = self._as_array(value, np.float64, 1)
        self._write(
            AttributeType.real_array,
            data,
            h5t.IEEE_F64LE,
            h5t.NATIVE_DOUBLE,
            data.size,
        )

    def _as_array(self, value, dtype, ndim: int) -> np.ndarray:
        try:
            data = np.array(value, dtype=dtype)
        except (TypeError, ValueError, OverflowError) as e:
            raise BadValueError(
                "encode attribute",
                name=self._name,
                target=TargetKind.attribute,
                reason=str(e),
            ) from e
        if data.ndim != ndim or (ndim and data.size == 0):
            raise BadValueError(
                "encode attribute",
                name=self._name,
                target=TargetKind.attribute,
                reason="expected a non-empty list" if ndim else "expected a scalar",
            )
        return data

    def set(self, value: Value) -> None:
        """Write a value, choosing the storage type from its Python type."""
        if isinstance(value, (bool, np.bool_)):
            self.set_boolean(bool(value))
        elif isinstance(value, (int, np.integer)):
            self.set_integer(int(value))
        elif isinstance(value, (float, np.floating)):
            self.set_real(float(value))
        elif isinstance(value, str):
            self.set_string(value)
        else:
            try:
                kind = np.asarray(value).dtype.kind
            except ValueError:  # ragged nesting
                kind = "O"
            if kind in "iu":
                self.set_integer_array(value)
            elif kind == "f":
                self.set_real_array(value)
            else:
                raise BadValueError(
                    "encode attribute",
                    name=self._name,
                    target=TargetKind.attribute,
                    reason=f"unsupported value of type {type(value).__name__}",
                )

    def _delete(self) -> None:
        """Remove the attribute from disk, if it is there."""
        loc = self._parent()
        if self._exists(loc):
            with self._errors(ErrorKind.remove, "delete attribute", loc):
                h5a.delete(loc.id, name=self._bname)
        self._type, self._size = AttributeType.uninitialized, 0
        self._canonical = False
