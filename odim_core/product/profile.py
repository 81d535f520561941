"""Vertical profiles (`VP`)."""
from __future__ import annotations

from ..h5.attribute import AttributeType
from ..node import Dataset, ObjectType
from .base import TIME_RANGE_ATTRIBUTES, Product, TimeRange, _prop


class Profile(TimeRange, Dataset):
    """One profile of a vertical profile product (a `datasetN` group)."""

    _api_attributes = Dataset._api_attributes | TIME_RANGE_ATTRIBUTES


class VerticalProfile(Product):
    """Wind and reflectivity profile above a site, split into height levels."""

    _object_code = ObjectType.vertical_profile
    _dataset_class = Profile
    _api_attributes = Product._api_attributes | {
        "levels",
        "interval",
        "minheight",
        "maxheight",
    }

    level_count = _prop("levels", AttributeType.integer, "Number of height levels.")
    interval = _prop(
        "interval", AttributeType.real, "Vertical distance between levels in m."
    )
    min_height = _prop("minheight", AttributeType.real, "Minimum height in m.")
    max_height = _prop("maxheight", AttributeType.real, "Maximum height in m.")

    @property
    def profile_count(self) -> int:
        return self.dataset_count

    def profile_open(self, index: int) -> Profile:
        """Open the profile with given 1-based index."""
        return self.dataset_open(index)

    def profile_append(self, **fields) -> Profile:
        """Append a new profile, setting given fields."""
        return self._append(fields)
