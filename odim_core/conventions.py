"""Vocabulary of the ODIM_H5 convention.

The names of attributes that live in the `what` and `where` sub-groups are
fixed by the convention version. They are kept here as data (sorted tuples
looked up by bisection), so a different convention version only needs a
different `Conventions` instance.
"""
from __future__ import annotations

from bisect import bisect_left
from typing import Tuple

from pydantic import BaseModel, Field, field_validator
from typing_extensions import Annotated, Final, Literal

Slot = Literal["what", "where", "how"]

WHAT_NAMES: Final[Tuple[str, ...]] = (
    "date",
    "enddate",
    "endtime",
    "gain",
    "nodata",
    "object",
    "offset",
    "prodpar",
    "product",
    "quantity",
    "source",
    "startdate",
    "starttime",
    "time",
    "undetect",
    "version",
)

WHERE_NAMES: Final[Tuple[str, ...]] = (
    "LL_lat",
    "LL_lon",
    "LR_lat",
    "LR_lon",
    "UL_lat",
    "UL_lon",
    "UR_lat",
    "UR_lon",
    "a1gate",
    "angles",
    "az_angle",
    "elangle",
    "height",
    "interval",
    "lat",
    "levels",
    "lon",
    "maxheight",
    "minheight",
    "nbins",
    "nrays",
    "projdef",
    "range",
    "rscale",
    "rstart",
    "start_lat",
    "start_lon",
    "startaz",
    "stop_lat",
    "stop_lon",
    "stopaz",
    "xscale",
    "xsize",
    "yscale",
    "ysize",
)


def _contains(table: Tuple[str, ...], name: str) -> bool:
    i = bisect_left(table, name)
    return i < len(table) and table[i] == name


class Conventions(BaseModel):
    """Convention version and vocabulary used when reading and writing files."""

    version: Tuple[int, int] = (2, 1)
    """Major and minor version of the convention."""

    what_names: Tuple[str, ...] = WHAT_NAMES
    """Names of attributes stored in `what` groups (strictly sorted)."""

    where_names: Tuple[str, ...] = WHERE_NAMES
    """Names of attributes stored in `where` groups (strictly sorted)."""

    compression: Annotated[int, Field(ge=0, le=9)] = 6
    """Default deflate level for new sample arrays (0 disables compression)."""

    model_config = {"frozen": True}

    @field_validator("what_names", "where_names")
    @classmethod
    def _check_sorted(cls, names: Tuple[str, ...]) -> Tuple[str, ...]:
        for a, b in zip(names, names[1:]):
            if not a < b:
                raise ValueError(f"names must be strictly sorted: {a!r} >= {b!r}")
        return names

    @property
    def conventions_string(self) -> str:
        """Value of the root `Conventions` attribute, e.g. `ODIM_H5/V2_1`."""
        return "ODIM_H5/V{}_{}".format(*self.version)

    @property
    def version_string(self) -> str:
        """Value of the `what/version` attribute, e.g. `H5rad 2.1`."""
        return "H5rad {}.{}".format(*self.version)

    def classify(self, name: str) -> Slot:
        """Return the sub-group an attribute with given name belongs to."""
        if _contains(self.what_names, name):
            return "what"
        if _contains(self.where_names, name):
            return "where"
        return "how"


DEFAULT_CONVENTIONS: Final[Conventions] = Conventions()
