"""Project-wide constants."""

import calendar

MONTH_NAMES = list(calendar.month_name)[1:]

# (code, label, lower inclusive, upper exclusive, color)
DROUGHT_CLASSES = [
    (1, "Extreme Drought", float("-inf"), 20.0, "#730000"),
    (2, "Severe Drought", 20.0, 40.0, "#e60000"),
    (3, "Moderate Drought", 40.0, 60.0, "#ffaa00"),
    (4, "Normal", 60.0, 80.0, "#66bd63"),
    (5, "Above Normal", 80.0, float("inf"), "#1a9850"),
]

UNCLASSIFIED = 0

VCI_PALETTE = [
    "#a50026", "#d73027", "#f46d43", "#fdae61", "#fee08b",
    "#d9ef8b", "#a6d96a", "#66bd63", "#1a9850", "#006837",
]

DROUGHT_PALETTE = [color for _, _, _, _, color in DROUGHT_CLASSES]

EXTREME_DROUGHT_COLOR = "#FF0000"

MODIS_PARAMS = {
    "ndvi_band": "NDVI",
    "qa_band": "SummaryQA",
    "resolution_m": 250,
    "fill_value": -3000,
}

CROPLAND_PARAMS = {
    "band": "b1",
    "resolution_m": 30,
}

EXPORT_BANDS = ("vci", "drought_class")
