"""Helpers for tests of code using this package."""
from pathlib import Path
from typing import Tuple

import numpy as np

from ..node import Data, DataTypeLike, File


def layer_with(
    path: Path, raw: np.ndarray, dtype: DataTypeLike = "u8", **meta
) -> Tuple[File, Data]:
    """Create a file with one dataset holding one data layer filled with `raw`.

    Keyword arguments are written as attributes of the layer.
    Returns the open file and layer (the caller closes them).
    """
    f = File(path, "w")
    layer = f.dataset_append().data_append(dtype, raw.shape)
    for k, v in meta.items():
        layer[k] = v
    layer.write(raw)
    return f, layer
