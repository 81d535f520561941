"""Binding of the object model to HDF5 (via h5py)."""
from .attribute import Attribute, AttributeType, Value
from .errors import (
    BadValueError,
    ErrorKind,
    MissingChildError,
    NoSuchAttributeError,
    OdimError,
    SizeMismatchError,
    StorageError,
    TargetKind,
    TypeMismatchError,
)
from .handle import Handle, acquire, has_child
from .store import AttributeStore

__all__ = [
    "Attribute",
    "AttributeStore",
    "AttributeType",
    "BadValueError",
    "ErrorKind",
    "Handle",
    "MissingChildError",
    "NoSuchAttributeError",
    "OdimError",
    "SizeMismatchError",
    "StorageError",
    "TargetKind",
    "TypeMismatchError",
    "Value",
    "acquire",
    "has_child",
]
