"""Five-class drought classification of VCI rasters."""

from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd

from drought_monitor.core.raster import GridSpec, RasterImage
from drought_monitor.utils.constants import DROUGHT_CLASSES, UNCLASSIFIED

# Upper bounds of classes 1..4; a value equal to a bound falls in the higher class.
THRESHOLDS = np.array([upper for _, _, _, upper, _ in DROUGHT_CLASSES[:-1]])

CLASS_LABELS = {code: label for code, label, _, _, _ in DROUGHT_CLASSES}


@dataclass(frozen=True, eq=False)
class DroughtClassRaster:
    """Integer class codes 1..5; 0 marks unclassified cells."""
    classes: np.ndarray
    grid: GridSpec
    tags: dict

    def __post_init__(self):
        classes = np.array(self.classes, dtype=np.uint8)
        classes.setflags(write=False)
        object.__setattr__(self, "classes", classes)

    @property
    def valid(self) -> np.ndarray:
        return self.classes != UNCLASSIFIED

    def where(self, code: int) -> np.ndarray:
        return self.classes == code


def classify_value(vci: float) -> int:
    """Class code of a single VCI value, 0 for NaN."""
    if np.isnan(vci):
        return UNCLASSIFIED
    for code, _, lower, upper, _ in DROUGHT_CLASSES:
        if lower <= vci < upper:
            return code
    raise ValueError(f"VCI {vci} matches no drought class")


def classify(vci: RasterImage) -> DroughtClassRaster:
    """Threshold a VCI raster into the five drought classes."""
    valid = vci.valid
    codes = np.digitize(np.where(valid, vci.data, 0.0), THRESHOLDS, right=False) + 1
    return DroughtClassRaster(
        classes=np.where(valid, codes, UNCLASSIFIED),
        grid=vci.grid,
        tags={**vci.tags, "band": "drought_class"},
    )


def frequency_histogram(
    classes: DroughtClassRaster,
    region_mask: Optional[np.ndarray] = None,
) -> dict:
    """Pixel count per class code, over classified cells inside the region.

    Only classes that occur are present, as a frequency histogram reports.
    """
    selected = classes.valid if region_mask is None else classes.valid & region_mask
    codes, counts = np.unique(classes.classes[selected], return_counts=True)
    return {int(code): int(count) for code, count in zip(codes, counts)}


def summary_table(histogram: dict) -> pd.DataFrame:
    """Per-class counts and share of classified pixels, all five classes listed."""
    total = sum(histogram.values())
    rows = []
    for code, label, lower, upper, color in DROUGHT_CLASSES:
        count = histogram.get(code, 0)
        rows.append({
            "class": code,
            "label": label,
            "vci_range": _range_label(lower, upper),
            "pixels": count,
            "percent": round(100.0 * count / total, 2) if total else 0.0,
            "color": color,
        })
    return pd.DataFrame(rows)


def _range_label(lower: float, upper: float) -> str:
    if np.isinf(lower):
        return f"< {upper:g}"
    if np.isinf(upper):
        return f">= {lower:g}"
    return f"{lower:g}-{upper:g}"
