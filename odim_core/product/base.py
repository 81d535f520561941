"""Pieces shared by the product classes."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional, Type, TypeVar, Union

from ..conventions import Conventions
from ..h5.attribute import AttributeType
from ..h5.errors import BadValueError
from ..node import Dataset, File, Group

T = TypeVar("T", bound="Product")


def _prop(name: str, kind: AttributeType, doc: Optional[str] = None) -> property:
    """Property reading and writing one attribute of a node."""

    def fget(self):
        return self._get(name, kind)

    def fset(self, value):
        self._set(name, kind, value)

    return property(fget, fset, doc=doc or f"`{name}` attribute ({kind.value}).")


def fill(node: Group, fields: Dict[str, Any]) -> None:
    """Assign keyword arguments to the properties of a node."""
    for key, value in fields.items():
        if not isinstance(getattr(type(node), key, None), property):
            raise BadValueError(
                "set field",
                name=key,
                location=node.handle,
                reason=f"{type(node).__name__} has no such field",
            )
        setattr(node, key, value)


TIME_RANGE_ATTRIBUTES: FrozenSet[str] = frozenset(
    {"startdate", "starttime", "enddate", "endtime"}
)
"""Attribute names covered by the `TimeRange` properties."""


class TimeRange:
    """Start and end date/time attributes of a dataset."""

    start_date = _prop("startdate", AttributeType.string)
    start_time = _prop("starttime", AttributeType.string)
    end_date = _prop("enddate", AttributeType.string)
    end_time = _prop("endtime", AttributeType.string)

    @property
    def start_date_time(self) -> int:
        return self._date_time("startdate", "starttime")

    @start_date_time.setter
    def start_date_time(self, value: int):
        self._set_date_time("startdate", "starttime", value)

    @property
    def end_date_time(self) -> int:
        return self._date_time("enddate", "endtime")

    @end_date_time.setter
    def end_date_time(self, value: int):
        self._set_date_time("enddate", "endtime", value)


class Product(File):
    """A file of a fixed object type with a site location."""

    _api_attributes = File._api_attributes | {"lat", "lon", "height"}

    latitude = _prop("lat", AttributeType.real, "Site latitude in degrees.")
    longitude = _prop("lon", AttributeType.real, "Site longitude in degrees.")
    height = _prop("height", AttributeType.real, "Site height above sea level in m.")

    @classmethod
    def create(
        cls: Type[T],
        path: Union[Path, str],
        *,
        conventions: Optional[Conventions] = None,
        **fields,
    ) -> T:
        """Create a new file and set given fields, e.g. `source` or `date_time`."""
        ret = cls(path, "w", conventions=conventions)
        try:
            fill(ret, fields)
        except BaseException:
            ret.close()
            raise
        return ret

    def _append(self, fields: Dict[str, Any]) -> Dataset:
        ret = self.dataset_append()
        fill(ret, fields)
        return ret
