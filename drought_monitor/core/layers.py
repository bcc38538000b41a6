"""Map layer descriptors and legend for the drought view."""

from dataclasses import dataclass, field

import numpy as np

from drought_monitor.core.query import DroughtQueryResult
from drought_monitor.utils.constants import (
    DROUGHT_CLASSES,
    DROUGHT_PALETTE,
    EXTREME_DROUGHT_COLOR,
    VCI_PALETTE,
)

VCI_VIS = {"min": 0, "max": 100, "palette": VCI_PALETTE}
DROUGHT_VIS = {"min": 1, "max": 5, "palette": DROUGHT_PALETTE}
EXTREME_VIS = {"palette": [EXTREME_DROUGHT_COLOR]}


@dataclass(frozen=True, eq=False)
class DisplayLayer:
    name: str
    data: np.ndarray
    vis_params: dict = field(default_factory=dict)
    shown: bool = True

    def to_dict(self) -> dict:
        """JSON-ready descriptor; invalid cells become None."""
        if self.data.dtype.kind == "f":
            data = [[None if np.isnan(v) else v for v in row] for row in self.data.tolist()]
        else:
            data = self.data.tolist()
        return {
            "name": self.name,
            "shown": self.shown,
            "vis_params": self.vis_params,
            "data": data,
        }


def build_display_layers(result: DroughtQueryResult, inside_region: np.ndarray) -> list:
    """Layers clipped to the region, in drawing order."""
    def clip(data: np.ndarray, fill):
        return np.where(inside_region, data, fill)

    classes = result.drought_class
    return [
        DisplayLayer("VCI", clip(result.vci.data, np.nan), VCI_VIS),
        DisplayLayer("VCI (Cropland Only)", clip(result.vci_cropland.data, np.nan), VCI_VIS, shown=False),
        DisplayLayer("Drought Condition", clip(classes.classes, 0), DROUGHT_VIS),
        DisplayLayer("Extreme Drought Areas", clip(result.extreme_drought, False), EXTREME_VIS, shown=False),
    ]


def legend_items() -> list:
    """(color, text) rows for the drought class legend."""
    items = []
    for code, label, lower, upper, color in DROUGHT_CLASSES:
        if np.isinf(lower):
            rng = f"VCI < {upper:g}"
        elif np.isinf(upper):
            rng = f"VCI > {lower:g}"
        else:
            rng = f"VCI {lower:g}-{upper:g}"
        items.append((color, f"{label} ({rng})"))
    return items
