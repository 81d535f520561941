"""Polar volumes (`PVOL`) and their scans."""
from __future__ import annotations

from typing import Optional

from ..h5.attribute import AttributeType
from ..node import Dataset, ObjectType
from .base import TIME_RANGE_ATTRIBUTES, Product, TimeRange, _prop


class Scan(TimeRange, Dataset):
    """One sweep of a polar volume (a `datasetN` group)."""

    _api_attributes = Dataset._api_attributes | TIME_RANGE_ATTRIBUTES | {
        "quantity",
        "elangle",
        "nbins",
        "rstart",
        "rscale",
        "nrays",
        "a1gate",
    }

    elevation_angle = _prop(
        "elangle", AttributeType.real, "Elevation angle in degrees."
    )
    bin_count = _prop("nbins", AttributeType.integer, "Number of range bins per ray.")
    range_start = _prop("rstart", AttributeType.real, "Range of the first bin in km.")
    range_scale = _prop("rscale", AttributeType.real, "Distance between bins in m.")
    ray_count = _prop("nrays", AttributeType.integer, "Number of azimuth gates.")
    first_ray_radiated = _prop(
        "a1gate", AttributeType.integer, "Index of the first azimuth gate radiated."
    )

    @property
    def quantity(self) -> Optional[str]:
        """Quantity of the scan, or of its first data layer if it has none itself."""
        own = self._get_or("quantity", AttributeType.string, None)
        if own is not None or not self.data_count:
            return own
        with self.data_open(1) as layer:
            return layer._get_or("quantity", AttributeType.string, None)

    @quantity.setter
    def quantity(self, value: str):
        self._set("quantity", AttributeType.string, value)


class PolarVolume(Product):
    """A polar volume: a site location plus a sequence of scans."""

    _object_code = ObjectType.polar_volume
    _dataset_class = Scan

    @property
    def scan_count(self) -> int:
        return self.dataset_count

    def scan_open(self, index: int) -> Scan:
        """Open the scan with given 1-based index."""
        return self.dataset_open(index)

    def scan_append(self, **fields) -> Scan:
        """Append a new scan, setting given fields (e.g. `elevation_angle=0.5`)."""
        return self._append(fields)
