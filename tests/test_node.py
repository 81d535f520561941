import shutil

import h5py
import numpy as np
import pytest

from odim_core.conventions import Conventions
from odim_core.h5 import (
    AttributeType,
    BadValueError,
    MissingChildError,
    SizeMismatchError,
    StorageError,
)
from odim_core.h5.errors import ErrorKind
from odim_core.node import Data, Dataset, DataType, File, Group, ObjectType


def test_create_writes_convention(tmp_h5_path):
    with File(tmp_h5_path, "w") as f:
        assert f.mode == "w"
        assert f.dataset_count == 0
        assert f.object_type is ObjectType.unknown
        assert f.conventions == "ODIM_H5/V2_1"
        assert f.version == (2, 1)

    with h5py.File(tmp_h5_path, "r") as raw:
        assert raw.attrs["Conventions"] == b"ODIM_H5/V2_1"
        assert raw["what"].attrs["version"] == b"H5rad 2.1"
        assert "where" not in raw

    with File(tmp_h5_path) as f:
        assert f.mode == "r"
        assert f.version == (2, 1)
        assert f.conventions == "ODIM_H5/V2_1"
        assert "version" in f


def test_custom_version(tmp_h5_path):
    with File(tmp_h5_path, "w", conventions=Conventions(version=(2, 4))) as f:
        assert f.conventions == "ODIM_H5/V2_4"
        assert f.version == (2, 4)


def test_bad_mode(tmp_h5_path):
    with pytest.raises(BadValueError):
        File(tmp_h5_path, "a")


def test_open_missing_file(tmp_h5_path):
    with pytest.raises(StorageError) as e:
        File(tmp_h5_path, "r")
    assert e.value.kind is ErrorKind.open


def test_bad_version(tmp_h5_path):
    with File(tmp_h5_path, "w") as f:
        f["version"] = "H5rad two"
        with pytest.raises(BadValueError):
            f.version


def test_metadata(tmp_h5_path):
    with File(tmp_h5_path, "w") as f:
        f.date_time = 1_600_000_000
        f.source = "WMO:06477,NOD:bewid"
        f.object_type = ObjectType.polar_volume
        with pytest.raises(BadValueError):
            f.object_type = ObjectType.unknown

    with File(tmp_h5_path) as f:
        assert f.date == "20200913"
        assert f.time == "122640"
        assert f.date_time == 1_600_000_000
        assert f.source == "WMO:06477,NOD:bewid"
        assert f.object_type is ObjectType.polar_volume
        assert f["object"].slot == "what"


def test_unknown_object_code(tmp_h5_path):
    with File(tmp_h5_path, "w") as f:
        f["object"] = "FOO"
    with File(tmp_h5_path) as f:
        assert f.object_type is ObjectType.unknown
    assert ObjectType.from_code("XSEC") is ObjectType.vertical_cross_section
    assert ObjectType.from_code(None) is ObjectType.unknown


def test_read_only(tmp_h5_path):
    File(tmp_h5_path, "w").close()
    with File(tmp_h5_path) as f:
        with pytest.raises(StorageError):
            f["source"] = "x"
        with pytest.raises(StorageError):
            f.dataset_append()
        assert f.dataset_count == 0


def test_missing_groups_tolerated(tmp_h5_path):
    with h5py.File(tmp_h5_path, "w") as raw:
        raw.create_group("dataset1").create_group("data1").create_dataset(
            "data", data=np.zeros((2, 3), dtype=np.uint8)
        )
    with File(tmp_h5_path) as f:
        assert f.dataset_count == 1
        assert f.object_type is ObjectType.unknown
        assert f.find("object") is None
        ds = f.dataset_open(1)
        assert len(ds) == 0
        assert ds.data_count == 1
        assert ds.data_open(1).dims() == (2, 3)


@pytest.mark.parametrize("n", [0, 1, 3])
def test_append_reopen(tmp_h5_path, n):
    with File(tmp_h5_path, "w") as f:
        for i in range(n):
            ds = f.dataset_append()
            assert f.dataset_count == i + 1
            for j in range(i + 1):
                ds.data_append(DataType.u8, (2, 2))
            ds.quality_append("u16", (2, 2))
            assert ds.data_count == i + 1
            assert ds.quality_count == 1

    with File(tmp_h5_path) as f:
        assert f.dataset_count == n
        for i in range(1, n + 1):
            ds = f.dataset_open(i)
            assert ds.data_count == i
            assert ds.quality_count == 1
            assert ds.quality_open(1).type() is DataType.u16
        with pytest.raises(MissingChildError) as e:
            f.dataset_open(n + 1)
        assert e.value.name == f"dataset{n + 1}"
        with pytest.raises(BadValueError):
            f.dataset_open(0)


def test_append_failure_keeps_count(tmp_h5_path):
    with File(tmp_h5_path, "w") as f:
        f.dataset_append()
        f.handle.create_group("dataset2")
        with pytest.raises(StorageError) as e:
            f.dataset_append()
        assert e.value.kind is ErrorKind.create
        assert f.dataset_count == 1

        ds = f.dataset_open(1)
        with pytest.raises(BadValueError):
            ds.data_append("u8", (0, 3))
        with pytest.raises(BadValueError):
            ds.quality_append(np.complex64, (2,))
        with pytest.raises(BadValueError):
            ds.data_append("u8", None)
        assert ds.data_count == 0
        assert "data1" not in f.handle["dataset1"]
        assert "quality1" not in f.handle["dataset1"]

        ds.data_append("u8", (2, 3))
        ds.quality_append("u8", (2, 3))
        assert ds.data_count == 1
        assert ds.quality_count == 1

    with File(tmp_h5_path) as f:
        assert f.dataset_open(1).data_open(1).dims() == (2, 3)


def test_nested_quality(tmp_h5_path):
    with File(tmp_h5_path, "w") as f:
        layer = f.dataset_append().data_append("u8", (3,))
        layer.quality_append("u8", (3,))
        layer.quality_append("f32", (3,))
        assert layer.quality_count == 2
    with File(tmp_h5_path) as f:
        layer = f.dataset_open(1).data_open(1)
        assert layer.quality_count == 2
        assert layer.quality_open(2).type() is DataType.f32
        with pytest.raises(MissingChildError):
            layer.quality_open(3)


def test_data_array(tmp_h5_path):
    with File(tmp_h5_path, "w") as f:
        ds = f.dataset_append()
        img = ds.data_append("i16", (360, 100), compression=3)
        vec = ds.data_append(np.float64, (10,), compression=0)
        ds.data_append("u8", (4, 4))
        assert img.type() is DataType.i16
        assert img.rank() == 2
        assert img.dims() == (360, 100)
        assert img.size() == 36000
        assert vec.type() is DataType.f64
        assert vec.rank() == 1

    with h5py.File(tmp_h5_path, "r") as raw:
        data = raw["dataset1/data1/data"]
        assert data.dtype == np.dtype("<i2")
        assert data.chunks == (360, 100)
        assert data.compression == "gzip"
        assert data.compression_opts == 3
        assert data.attrs["CLASS"] == b"IMAGE"
        assert data.attrs["IMAGE_VERSION"] == b"1.2"

        data = raw["dataset1/data2/data"]
        assert data.compression is None
        assert "CLASS" not in data.attrs

        # deflate level 6 unless configured otherwise
        data = raw["dataset1/data3/data"]
        assert data.compression == "gzip"
        assert data.compression_opts == 6


def test_default_compression(tmp_h5_path):
    with File(tmp_h5_path, "w", conventions=Conventions(compression=4)) as f:
        f.dataset_append().data_append("u8", (5, 5))
    with h5py.File(tmp_h5_path, "r") as raw:
        assert raw["dataset1/data1/data"].compression_opts == 4


def test_read_write(tmp_h5_path):
    values = np.arange(12, dtype=np.uint8).reshape(3, 4)
    with File(tmp_h5_path, "w") as f:
        layer = f.dataset_append().data_append("u8", (3, 4))
        layer.write(values)
        with pytest.raises(SizeMismatchError):
            layer.write(values.T)
        with pytest.raises(SizeMismatchError):
            layer.write(values[0])

    with File(tmp_h5_path) as f:
        layer = f.dataset_open(1).data_open(1)
        np.testing.assert_array_equal(layer.read(), values)
        assert layer.read(dtype=np.float32).dtype == np.float32


def test_layer_metadata(tmp_h5_path):
    with File(tmp_h5_path, "w") as f:
        layer = f.dataset_append().data_append("u8", (2,))
        layer.quantity = "DBZH"
        layer.gain = 0.5
        layer.offset = -32.0
        layer.nodata = 255
        layer.undetect = 0
    with File(tmp_h5_path) as f:
        layer = f.dataset_open(1).data_open(1)
        assert layer.quantity == "DBZH"
        assert layer.gain == 0.5
        assert layer.offset == -32.0
        assert layer.nodata == 255.0
        assert layer.undetect == 0.0
        assert isinstance(layer.nodata, float)
        assert layer.array_attribute("CLASS").type() is AttributeType.uninitialized


def test_data_find(tmp_h5_path):
    with File(tmp_h5_path, "w") as f:
        ds = f.dataset_append()
        for q in ["TH", "DBZH", "VRADH"]:
            ds.data_append("u8", (1,)).quantity = q
        assert ds.data_find("VRADH").path == "/dataset1/data3"
    with File(tmp_h5_path) as f:
        ds = f.dataset_open(1)
        assert ds.data_find("DBZH").path == "/dataset1/data2"
        assert ds.data_find("ZDR") is None


def test_conversion(tmp_h5_path):
    f = File(tmp_h5_path, "w")
    pv = f.as_polar_volume()
    assert f.object_type is ObjectType.polar_volume
    assert pv.handle.hid == f.handle.hid
    f.close()
    # the view keeps the file open
    pv.latitude = 50.0
    pv.close()

    with File(tmp_h5_path) as f:
        assert f.as_polar_volume().latitude == 50.0
        with pytest.raises(BadValueError):
            f.as_vertical_profile()


def test_conversion_unknown_read_only(tmp_h5_path):
    File(tmp_h5_path, "w").close()
    with File(tmp_h5_path) as f:
        with pytest.raises(BadValueError):
            f.as_polar_volume()


def test_data_type():
    assert DataType.u8.dtype == np.dtype("u1")
    assert DataType.of(np.dtype(">i4")) is DataType.i32
    assert DataType.of("<f8") is DataType.f64
    with pytest.raises(BadValueError):
        DataType.of(np.complex64)


def test_type_names_count_bits(tmp_h5_path):
    with File(tmp_h5_path, "w") as f:
        ds = f.dataset_append()
        assert ds.data_append("i8", (2,)).type() is DataType.i8
        assert ds.data_append(np.dtype("i8"), (2,)).type() is DataType.i64
        assert ds.data_append("u16", (2,)).array.dtype == np.dtype("<u2")


@pytest.mark.parametrize(
    "cls, name, expected",
    [
        (Group, "quantity", False),
        (Group, "lat", False),
        (Dataset, "quantity", False),
        (Dataset, "startdate", False),
        (Data, "quantity", True),
        (Data, "gain", True),
        (Data, "undetect", True),
        (Data, "elangle", False),
        (File, "object", True),
        (File, "version", True),
        (File, "source", True),
        (File, "lat", False),
        (File, "quantity", False),
    ],
)
def test_is_api_attribute(cls, name, expected):
    assert cls.is_api_attribute(name) is expected


def test_api_attributes_of_open_layer(tmp_h5_path):
    with File(tmp_h5_path, "w") as f:
        layer = f.dataset_append().data_append("u8", (2,))
        layer.quantity = "TH"
        layer["beamwidth"] = 1.0
        assert [k for k in layer if not layer.is_api_attribute(k)] == ["beamwidth"]


def test_recreate_read_only(tmp_h5_path):
    File(tmp_h5_path, "w").close()
    with File(tmp_h5_path) as f:
        # a longer value needs delete+recreate, the delete fails first
        with pytest.raises(StorageError) as e:
            f["version"] = "H5rad 2.10"
        assert e.value.kind is ErrorKind.remove
        assert e.value.name == "version"
        assert e.value.location == "/what"
        assert f.version == (2, 1)


def test_flush(tmp_h5_path, tmp_h5_path_factory):
    snapshot = tmp_h5_path_factory()
    with File(tmp_h5_path, "w") as f:
        f.source = "NOD:bewid"
        layer = f.dataset_append().data_append("u8", (2, 2))
        layer.write(np.ones((2, 2), dtype=np.uint8))
        f.flush()
        # a byte copy of the open file is a complete file
        shutil.copyfile(tmp_h5_path, snapshot)
        f.flush()

    with File(snapshot) as f:
        assert f.source == "NOD:bewid"
        assert f.dataset_open(1).data_open(1).read().sum() == 4
