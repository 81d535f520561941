import pytest

from odim_core.h5.errors import (
    BadValueError,
    ErrorKind,
    MissingChildError,
    NoSuchAttributeError,
    OdimError,
    SizeMismatchError,
    StorageError,
    TargetKind,
    TypeMismatchError,
    storage_errors,
)


@pytest.mark.parametrize(
    "cls, builtin, kind",
    [
        (StorageError, OSError, ErrorKind.open),
        (MissingChildError, OSError, ErrorKind.open),
        (NoSuchAttributeError, KeyError, ErrorKind.open),
        (TypeMismatchError, TypeError, ErrorKind.type_mismatch),
        (SizeMismatchError, ValueError, ErrorKind.size_mismatch),
        (BadValueError, ValueError, ErrorKind.bad_value),
    ],
)
def test_error_classes(cls, builtin, kind):
    err = cls("op", name="x")
    assert isinstance(err, OdimError)
    assert isinstance(err, builtin)
    assert err.kind is kind
    assert str(err).splitlines()[0] == f"odim error: {kind.value}"


def test_message_lines():
    err = BadValueError(
        "parse version",
        name="version",
        target=TargetKind.attribute,
        location="/what",
        reason="unexpected value",
    )
    assert str(err).splitlines() == [
        "odim error: bad-value",
        "  operation: parse version",
        "  target: attribute",
        "  parameter: version",
        "  location: /what",
        "  reason: unexpected value",
    ]


def test_kind_override():
    err = StorageError("delete attribute", kind=ErrorKind.remove)
    assert err.kind is ErrorKind.remove
    assert StorageError.kind is ErrorKind.open


def test_storage_errors_translates():
    with pytest.raises(StorageError) as e:
        with storage_errors(ErrorKind.read, "read", TargetKind.dataset, "data"):
            raise RuntimeError("boom")
    assert e.value.kind is ErrorKind.read
    assert e.value.reason == "boom"
    assert isinstance(e.value.__cause__, RuntimeError)


def test_storage_errors_passes_own_errors():
    with pytest.raises(TypeMismatchError):
        with storage_errors(ErrorKind.read, "read", TargetKind.attribute):
            raise TypeMismatchError("get_integer")
