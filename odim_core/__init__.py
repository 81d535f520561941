"""odim_core package."""
import importlib_metadata
from typing_extensions import Final

from .conventions import DEFAULT_CONVENTIONS, Conventions
from .h5 import (
    Attribute,
    AttributeStore,
    AttributeType,
    BadValueError,
    Handle,
    MissingChildError,
    NoSuchAttributeError,
    OdimError,
    SizeMismatchError,
    StorageError,
    TypeMismatchError,
)
from .node import Data, Dataset, DataType, File, Group, ObjectType
from .product import PolarVolume, Profile, Scan, VerticalProfile

# Set version, will use version from pyproject.toml if defined
__version__: Final[str] = importlib_metadata.version(__package__ or __name__)
