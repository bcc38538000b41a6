"""Output formatters for drought query results."""

import json

import numpy as np

from drought_monitor.core.classifier import CLASS_LABELS, summary_table
from drought_monitor.core.query import DroughtQueryResult


def _stats(data: np.ndarray) -> dict:
    valid = data[~np.isnan(data)]
    if valid.size == 0:
        return {"pixels": 0, "mean": None, "min": None, "max": None}
    return {
        "pixels": int(valid.size),
        "mean": round(float(valid.mean()), 2),
        "min": round(float(valid.min()), 2),
        "max": round(float(valid.max()), 2),
    }


class OperatorFormatter:
    """Markdown drought bulletin."""

    def format(self, result: DroughtQueryResult) -> str:
        vci = _stats(result.vci_cropland.data)
        table = summary_table(result.histogram)

        lines = [
            f"**{result.title}**",
            "",
            "**CROPLAND VCI:**",
        ]
        if vci["pixels"]:
            lines.append(f"- Mean: {vci['mean']:.1f} (range {vci['min']:.1f} to {vci['max']:.1f})")
            lines.append(f"- Classified pixels: {vci['pixels']:,}")
        else:
            lines.append("- No valid cropland pixels for this month.")
        lines.append("")

        lines.append("**DROUGHT CLASSES:**")
        for row in table.itertuples(index=False):
            lines.append(f"- {row.label} (VCI {row.vci_range}): {row.pixels:,} px ({row.percent:.1f}%)")

        extreme = int(result.histogram.get(1, 0))
        lines.extend([
            "",
            "---",
            f"**Extreme drought pixels:** {extreme:,}",
        ])
        return "\n".join(lines)


class ResearcherFormatter:
    """JSON with full statistics."""

    def format(self, result: DroughtQueryResult) -> dict:
        return {
            "title": result.title,
            "region": result.region_label,
            "year": result.year,
            "month": result.month,
            "month_name": result.month_name,
            "vci": _stats(result.vci.data),
            "vci_cropland": _stats(result.vci_cropland.data),
            "histogram": {str(k): v for k, v in result.histogram.items()},
            "classes": {str(k): v for k, v in CLASS_LABELS.items()},
            "summary": summary_table(result.histogram).to_dict(orient="records"),
        }

    def to_json(self, result: DroughtQueryResult) -> str:
        return json.dumps(self.format(result), indent=2, default=str)


def format_output(result: DroughtQueryResult, audience: str = "operator") -> str:
    if audience == "researcher":
        return ResearcherFormatter().to_json(result)
    return OperatorFormatter().format(result)
