"""Node hierarchy of an ODIM_H5 file.

    File                      (root, what/where/how)
      datasetN   -> Dataset   (what/where/how)
        dataN    -> Data      (what/where/how + `data` array)
          qualityN -> Data
        qualityN -> Data

Numbered children are named `<base><index>` with 1-based, contiguous indices.
Child counts are found by probing `base1, base2, ...` when a node is opened
and are only incremented in memory afterwards, so appending always uses
`count + 1`.
"""
from __future__ import annotations

import logging
import re
from enum import Enum
from pathlib import Path
from typing import FrozenSet, Optional, Tuple, Type, TypeVar, Union

import h5py
import numpy as np
from typing_extensions import Final, Literal

from .conventions import Conventions
from .h5.attribute import Attribute, AttributeType
from .h5.errors import (
    BadValueError,
    ErrorKind,
    MissingChildError,
    SizeMismatchError,
    TargetKind,
    storage_errors,
)
from .h5.handle import Handle, acquire, has_child
from .h5.store import AttributeStore
from .packing import Predicate, pack, unpack
from .util import child_name
from .util.timestamps import strings_to_time, time_to_strings

logger = logging.getLogger(__name__)

OpenMode = Literal["r", "r+", "w"]
"""Read-only, read-write, create (truncating an existing file)."""

T = TypeVar("T", bound="Group")


class Group(AttributeStore):
    """An addressable group with its attribute store and numbered children."""

    _api_attributes: FrozenSet[str] = frozenset()
    """Attribute names exposed as dedicated properties of this class."""

    def __init__(
        self,
        node: Handle,
        *,
        create: bool = False,
        conventions: Optional[Conventions] = None,
    ):
        super().__init__(node, create=create, conventions=conventions)

    @classmethod
    def is_api_attribute(cls, name: str) -> bool:
        """Return whether the attribute is covered by a property of this class.

        Generic copying tools can skip these names.
        """
        return name in cls._api_attributes

    def _probe_count(self, base: str) -> int:
        n = 0
        while has_child(self.handle, child_name(base, n + 1)):
            n += 1
        logger.debug("found %d %s children in %s", n, base, self.path)
        return n

    def _child_open(self, base: str, index: int) -> Handle:
        name = child_name(base, index)
        if index < 1:
            raise BadValueError(
                "open child",
                name=name,
                target=TargetKind.group,
                location=self.handle,
                reason="indices start at 1",
            )
        if not has_child(self.handle, name):
            raise MissingChildError(
                "open child",
                name=name,
                target=TargetKind.group,
                location=self.handle,
                reason="no such child",
            )
        return acquire(
            lambda: self.handle[name],
            operation="open group",
            target=TargetKind.group,
            name=name,
            location=self.handle,
        )

    def _child_create(self, base: str, index: int) -> Handle:
        name = child_name(base, index)
        return acquire(
            lambda: self.handle.create_group(name),
            operation="create group",
            target=TargetKind.group,
            name=name,
            location=self.handle,
            kind=ErrorKind.create,
        )

    def _get(self, name: str, kind: AttributeType):
        return getattr(self[name], f"get_{kind.value}")()

    def _get_or(self, name: str, kind: AttributeType, default):
        attr = self.find(name)
        if attr is None or attr.type() is AttributeType.uninitialized:
            return default
        return getattr(attr, f"get_{kind.value}")()

    def _set(self, name: str, kind: AttributeType, value) -> None:
        getattr(self.require(name), f"set_{kind.value}")(value)

    def _date_time(self, date: str, time: str) -> int:
        return strings_to_time(
            self._get(date, AttributeType.string), self._get(time, AttributeType.string)
        )

    def _set_date_time(self, date: str, time: str, t: int) -> None:
        d, tm = time_to_strings(t)
        self._set(date, AttributeType.string, d)
        self._set(time, AttributeType.string, tm)

    # ---- context manager support (i.e. to use `with`) ----

    def __enter__(self):
        return self

    def __exit__(self, ex_type, ex_value, ex_traceback):
        self.close()


class _WithQuality(Group):
    """Group that can have numbered `qualityN` children."""

    _quality_count: int = 0

    def _init_copy(self, other):
        super()._init_copy(other)
        self._quality_count = other._quality_count

    @property
    def quality_count(self) -> int:
        return self._quality_count

    def quality_open(self, index: int) -> Data:
        """Open the quality layer with given 1-based index."""
        hnd = self._child_open("quality", index)
        return Data(hnd, conventions=self.settings)

    def quality_append(
        self, dtype: DataTypeLike, dims, compression: Optional[int] = None
    ) -> Data:
        """Create the next quality layer with a sample array of given type and shape.

        See `Dataset.data_append` for the accepted types.
        """
        dtype, dims = _array_layout(dtype, dims, self.handle)
        hnd = self._child_create("quality", self._quality_count + 1)
        ret = Data(
            hnd,
            create=True,
            dtype=dtype,
            dims=dims,
            compression=compression,
            conventions=self.settings,
        )
        self._quality_count += 1
        return ret


class DataType(str, Enum):
    """Storage type of a sample array (all little endian)."""

    i8 = "i8"
    u8 = "u8"
    i16 = "i16"
    u16 = "u16"
    i32 = "i32"
    u32 = "u32"
    i64 = "i64"
    u64 = "u64"
    f32 = "f32"
    f64 = "f64"

    def __repr__(self) -> str:
        return f"{type(self).__name__}.{self.name}"

    @property
    def dtype(self) -> np.dtype:
        return np.dtype(_NUMPY_TYPES[self])

    @classmethod
    def of(cls, dtype) -> DataType:
        """Return the storage type matching a numpy dtype."""
        dt = np.dtype(dtype)
        for k, v in _NUMPY_TYPES.items():
            if np.dtype(v) == dt.newbyteorder("<"):
                return k
        raise BadValueError(
            "convert type", name=str(dt), target=TargetKind.type, reason="unsupported"
        )


_NUMPY_TYPES: Final = {
    DataType.i8: "<i1",
    DataType.u8: "<u1",
    DataType.i16: "<i2",
    DataType.u16: "<u2",
    DataType.i32: "<i4",
    DataType.u32: "<u4",
    DataType.i64: "<i8",
    DataType.u64: "<u8",
    DataType.f32: "<f4",
    DataType.f64: "<f8",
}

DataTypeLike = Union[DataType, str, np.dtype, type]


def _data_type(dtype: DataTypeLike) -> DataType:
    if isinstance(dtype, DataType):
        return dtype
    if isinstance(dtype, str) and dtype in DataType.__members__:
        return DataType[dtype]
    return DataType.of(dtype)


def _array_layout(dtype, dims, location) -> Tuple[DataType, Tuple[int, ...]]:
    """Validate the storage type and shape of a new sample array."""
    if dtype is None or dims is None:
        raise BadValueError(
            "create dataset",
            name="data",
            location=location,
            reason="type and dimensions required",
        )
    dt = _data_type(dtype)
    shape: Tuple[int, ...] = tuple(int(d) for d in dims)
    if not shape or any(d < 1 for d in shape):
        raise BadValueError(
            "create dataset",
            name="data",
            target=TargetKind.dataspace,
            location=location,
            reason=f"invalid dimensions {shape}",
        )
    return dt, shape


class Data(_WithQuality):
    """A data or quality layer: metadata plus one sample array named `data`."""

    _api_attributes = _WithQuality._api_attributes | {
        "quantity",
        "gain",
        "offset",
        "nodata",
        "undetect",
    }

    def __init__(
        self,
        node: Handle,
        *,
        create: bool = False,
        dtype: Optional[DataTypeLike] = None,
        dims=None,
        compression: Optional[int] = None,
        conventions: Optional[Conventions] = None,
    ):
        super().__init__(node, create=create, conventions=conventions)
        if create:
            self._handles["data"] = self._create_array(dtype, dims, compression)
        else:
            self._handles["data"] = acquire(
                lambda: node["data"],
                operation="open dataset",
                target=TargetKind.dataset,
                name="data",
                location=node,
            )
        self._quality_count = 0 if create else self._probe_count("quality")

    def _create_array(self, dtype, dims, compression: Optional[int]) -> Handle:
        dt, shape = _array_layout(dtype, dims, self.handle)
        level = self.settings.compression if compression is None else compression
        kwargs = {"chunks": shape}
        if level:
            kwargs.update(compression="gzip", compression_opts=level)

        node = self.handle
        logger.debug("creating %s array %s in %s", dt.value, shape, node.path)
        hnd = acquire(
            lambda: node.create_dataset("data", shape=shape, dtype=dt.dtype, **kwargs),
            operation="create dataset",
            target=TargetKind.dataset,
            name="data",
            location=node,
            kind=ErrorKind.create,
        )
        self._handles["data"] = hnd
        if len(shape) == 2:
            # image attributes understood by generic HDF5 viewers
            self.array_attribute("CLASS").set_string("IMAGE")
            self.array_attribute("IMAGE_VERSION").set_string("1.2")
        return hnd

    @property
    def array(self) -> Handle:
        """Handle of the sample array."""
        return self._handles["data"]

    def array_attribute(self, name: str) -> Attribute:
        """Return an attribute attached to the sample array itself."""
        return self.slot_attribute("data", name)

    # ---- array metadata ----

    def type(self) -> DataType:
        return DataType.of(self.array.dtype)

    def rank(self) -> int:
        return len(self.array.shape)

    def dims(self) -> Tuple[int, ...]:
        return tuple(self.array.shape)

    def size(self) -> int:
        return int(np.prod(self.dims()))

    # ---- layer metadata ----

    @property
    def quantity(self) -> str:
        return self._get("quantity", AttributeType.string)

    @quantity.setter
    def quantity(self, value: str):
        self._set("quantity", AttributeType.string, value)

    @property
    def gain(self) -> float:
        return self._get("gain", AttributeType.real)

    @gain.setter
    def gain(self, value: float):
        self._set("gain", AttributeType.real, value)

    @property
    def offset(self) -> float:
        return self._get("offset", AttributeType.real)

    @offset.setter
    def offset(self, value: float):
        self._set("offset", AttributeType.real, value)

    @property
    def nodata(self) -> float:
        return self._get("nodata", AttributeType.real)

    @nodata.setter
    def nodata(self, value: float):
        self._set("nodata", AttributeType.real, value)

    @property
    def undetect(self) -> float:
        return self._get("undetect", AttributeType.real)

    @undetect.setter
    def undetect(self, value: float):
        self._set("undetect", AttributeType.real, value)

    # ---- sample I/O ----

    def read(self, dtype=None) -> np.ndarray:
        """Read the full sample array (optionally converted to another dtype)."""
        with storage_errors(
            ErrorKind.read, "read dataset", TargetKind.dataset, "data", self.handle
        ):
            raw = self.array[()]
        return raw if dtype is None else raw.astype(dtype)

    def write(self, values) -> None:
        """Write the full sample array.

        Raises:
            SizeMismatchError: if the shape differs from the stored array
        """
        values = np.asarray(values)
        if values.shape != self.dims():
            raise SizeMismatchError(
                "write dataset",
                name="data",
                target=TargetKind.dataset,
                location=self.handle,
                reason=f"shape {values.shape} does not match {self.dims()}",
            )
        with storage_errors(
            ErrorKind.write, "write dataset", TargetKind.dataset, "data", self.handle
        ):
            self.array[...] = values

    def read_unpack(
        self,
        nodata_value: float = np.nan,
        undetect_value: float = np.nan,
        dtype=np.float64,
    ) -> np.ndarray:
        """Read the array converted to physical values.

        Missing gain/offset default to 1 and 0, missing sentinel codes match nothing.
        """
        return unpack(
            self.read(),
            gain=self._get_or("gain", AttributeType.real, 1.0),
            offset=self._get_or("offset", AttributeType.real, 0.0),
            nodata=self._get_or("nodata", AttributeType.real, None),
            undetect=self._get_or("undetect", AttributeType.real, None),
            nodata_value=nodata_value,
            undetect_value=undetect_value,
            dtype=dtype,
        )

    def write_pack(
        self,
        values,
        is_nodata: Optional[Predicate] = None,
        is_undetect: Optional[Predicate] = None,
    ) -> None:
        """Write physical values, packed with the layer's gain, offset and codes."""
        packed = pack(
            values,
            gain=self._get_or("gain", AttributeType.real, 1.0),
            offset=self._get_or("offset", AttributeType.real, 0.0),
            nodata=self._get_or("nodata", AttributeType.real, None),
            undetect=self._get_or("undetect", AttributeType.real, None),
            is_nodata=is_nodata,
            is_undetect=is_undetect,
            dtype=self.array.dtype,
        )
        self.write(packed)


class Dataset(_WithQuality):
    """A numbered `datasetN` group holding data and quality layers."""

    def __init__(
        self,
        node: Handle,
        *,
        create: bool = False,
        conventions: Optional[Conventions] = None,
    ):
        super().__init__(node, create=create, conventions=conventions)
        self._data_count = 0 if create else self._probe_count("data")
        self._quality_count = 0 if create else self._probe_count("quality")

    def _init_copy(self, other):
        super()._init_copy(other)
        self._data_count = other._data_count

    @property
    def data_count(self) -> int:
        return self._data_count

    def data_open(self, index: int) -> Data:
        """Open the data layer with given 1-based index."""
        hnd = self._child_open("data", index)
        return Data(hnd, conventions=self.settings)

    def data_append(
        self, dtype: DataTypeLike, dims, compression: Optional[int] = None
    ) -> Data:
        """Create the next data layer with a sample array of given type and shape.

        `dtype` is a `DataType`, the name of one (`"u8"`, `"f32"`, ...) or a
        numpy dtype. Names count bits, so `"i8"` is an 8 bit integer, unlike
        the numpy code `np.dtype("i8")` which is `DataType.i64`.

        The type and shape are checked before the `dataN` group is created.
        """
        dtype, dims = _array_layout(dtype, dims, self.handle)
        hnd = self._child_create("data", self._data_count + 1)
        ret = Data(
            hnd,
            create=True,
            dtype=dtype,
            dims=dims,
            compression=compression,
            conventions=self.settings,
        )
        self._data_count += 1
        return ret

    def data_find(self, quantity: str) -> Optional[Data]:
        """Return the first data layer with given quantity, or None."""
        for i in range(1, self._data_count + 1):
            layer = self.data_open(i)
            if layer._get_or("quantity", AttributeType.string, None) == quantity:
                return layer
            layer.close()
        return None


class ObjectType(str, Enum):
    """Object type of a file, stored as short code in `what/object`."""

    polar_volume = "PVOL"
    cartesian_volume = "CVOL"
    polar_scan = "SCAN"
    polar_ray = "RAY"
    azimuthal_object = "AZIM"
    cartesian_image = "IMAGE"
    composite_image = "COMP"
    vertical_cross_section = "XSEC"
    vertical_profile = "VP"
    graphical_image = "PIC"
    unknown = "UNKNOWN"

    def __repr__(self) -> str:
        return f"{type(self).__name__}.{self.name}"

    @classmethod
    def from_code(cls, code: Optional[str]) -> ObjectType:
        """Return the object type for a code (unknown for unrecognised codes)."""
        try:
            return cls(code)
        except ValueError:
            return cls.unknown


_VERSION = re.compile(r"^H5rad (\d+)\.(\d+)$")


class File(Group):
    """An ODIM_H5 file, i.e. the root group.

    Use it as a context manager or call `close()` when done.
    """

    _object_code: Optional[ObjectType] = None
    """Object type enforced by subclasses representing a product."""

    _dataset_class: Type[Dataset] = Dataset

    _api_attributes = Group._api_attributes | {
        "Conventions",
        "object",
        "version",
        "date",
        "time",
        "source",
    }

    def __init__(
        self,
        path: Union[Path, str],
        mode: OpenMode = "r",
        *,
        conventions: Optional[Conventions] = None,
    ):
        if mode not in ("r", "r+", "w"):
            raise BadValueError(
                "open file", name=str(path), reason=f"unsupported mode {mode!r}"
            )
        create = mode == "w"
        hnd = acquire(
            lambda: h5py.File(path, mode),
            operation="create file" if create else "open file",
            target=TargetKind.file,
            name=str(path),
            kind=ErrorKind.create if create else ErrorKind.open,
        )
        logger.debug("%s %s (mode %s)", "created" if create else "opened", path, mode)
        super().__init__(hnd, create=create, conventions=conventions)
        self._filename = str(path)
        self._mode: OpenMode = mode

        if create:
            self._dataset_count = 0
            self._object_type = ObjectType.unknown
            self.conventions = self.settings.conventions_string
            self.version = self.settings.version
            if self._object_code is not None:
                self.object_type = self._object_code
        else:
            self._dataset_count = self._probe_count("dataset")
            self._object_type = ObjectType.from_code(
                self._get_or("object", AttributeType.string, None)
            )
            expected = self._object_code
            if expected is not None and self._object_type is not expected:
                found = self._object_type
                self.close()
                raise BadValueError(
                    "open file",
                    name=str(path),
                    target=TargetKind.file,
                    reason=f"expected object {expected.value}, found {found.value}",
                )

    def _init_copy(self, other):
        super()._init_copy(other)
        self._filename = other._filename
        self._mode = other._mode
        self._dataset_count = other._dataset_count
        self._object_type = other._object_type

    def _as(self, cls: Type[T]) -> T:
        expected = cls._object_code
        if self._object_type is not expected:
            if self._object_type is not ObjectType.unknown or self._mode != "w":
                raise BadValueError(
                    "convert file",
                    name=self._filename,
                    target=TargetKind.file,
                    reason=f"object is {self._object_type.value}, not {expected.value}",
                )
            self.object_type = expected
        ret = cls.__new__(cls)
        ret._init_copy(self)
        return ret

    def as_polar_volume(self):
        """Return a polar volume view sharing this file's handles."""
        from .product.volume import PolarVolume

        return self._as(PolarVolume)

    def as_vertical_profile(self):
        """Return a vertical profile view sharing this file's handles."""
        from .product.profile import VerticalProfile

        return self._as(VerticalProfile)

    @property
    def filename(self) -> str:
        return self._filename

    @property
    def mode(self) -> OpenMode:
        return self._mode

    @property
    def object_type(self) -> ObjectType:
        return self._object_type

    @object_type.setter
    def object_type(self, value: ObjectType):
        value = ObjectType(value)
        if value is ObjectType.unknown:
            raise BadValueError(
                "set object", name="object", reason="unknown object type"
            )
        self._set("object", AttributeType.string, value.value)
        self._object_type = value

    @property
    def conventions(self) -> str:
        """Value of the root `Conventions` attribute."""
        return self.slot_attribute("node", "Conventions").get_string()

    @conventions.setter
    def conventions(self, value: str):
        self.slot_attribute("node", "Conventions").set_string(value)

    @property
    def version(self) -> Tuple[int, int]:
        """Convention version from `what/version` (`H5rad <major>.<minor>`)."""
        text = self._get("version", AttributeType.string)
        m = _VERSION.match(text)
        if m is None:
            raise BadValueError(
                "parse version",
                name="version",
                location=self.handle,
                reason=f"unexpected value {text!r}",
            )
        return int(m.group(1)), int(m.group(2))

    @version.setter
    def version(self, value: Tuple[int, int]):
        major, minor = value
        self._set("version", AttributeType.string, f"H5rad {major}.{minor}")

    @property
    def date(self) -> str:
        return self._get("date", AttributeType.string)

    @property
    def time(self) -> str:
        return self._get("time", AttributeType.string)

    @property
    def date_time(self) -> int:
        """Nominal time of the product as UTC epoch seconds."""
        return self._date_time("date", "time")

    @date_time.setter
    def date_time(self, value: int):
        self._set_date_time("date", "time", value)

    @property
    def source(self) -> str:
        return self._get("source", AttributeType.string)

    @source.setter
    def source(self, value: str):
        self._set("source", AttributeType.string, value)

    # ---- datasets ----

    @property
    def dataset_count(self) -> int:
        return self._dataset_count

    def dataset_open(self, index: int) -> Dataset:
        """Open the dataset with given 1-based index."""
        hnd = self._child_open("dataset", index)
        return self._dataset_class(hnd, conventions=self.settings)

    def dataset_append(self) -> Dataset:
        """Create the next dataset."""
        hnd = self._child_create("dataset", self._dataset_count + 1)
        ret = self._dataset_class(hnd, create=True, conventions=self.settings)
        self._dataset_count += 1
        return ret

    def flush(self) -> None:
        """Write buffered changes to disk."""
        with storage_errors(
            ErrorKind.write, "flush file", TargetKind.file, self._filename
        ):
            self.handle.flush()

    def close(self) -> None:
        if self.handle:
            logger.debug("closing %s", self._filename)
        super().close()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self._filename!r} (mode {self._mode})>"
