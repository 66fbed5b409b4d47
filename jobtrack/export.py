"""
JSON and CSV renderings of the job list, shared by `jobtrack export` and
the POST /export route.
"""

import enum
import json
from pathlib import Path
from typing import List

import pandas as pd

from .errors import ParseError
from .models import JobRecord

COLUMNS = ["id", "title", "description", "date"]


class ExportFormat(enum.Enum):
    JSON = "json"
    CSV = "csv"

    @classmethod
    def parse(cls, value: str) -> "ExportFormat":
        try:
            return cls(value.strip().lower())
        except (ValueError, AttributeError):
            raise ParseError(f"Invalid format: {value}. Valid formats: json, csv")

    @property
    def content_type(self) -> str:
        if self is ExportFormat.JSON:
            return "application/json"
        return "text/csv"


def render_json(records: List[JobRecord]) -> str:
    """A JSON array with one record object per line."""
    lines = [json.dumps(r.to_row(), ensure_ascii=False) for r in records]
    if not lines:
        return "[\n]\n"
    return "[\n" + ",\n".join(lines) + "\n]\n"


def render_csv(records: List[JobRecord]) -> str:
    df = pd.DataFrame([r.to_row() for r in records], columns=COLUMNS)
    return df.to_csv(index=False, lineterminator="\n")


def render(records: List[JobRecord], fmt: ExportFormat) -> str:
    if fmt is ExportFormat.JSON:
        return render_json(records)
    return render_csv(records)


def export_to_file(records: List[JobRecord], fmt: ExportFormat, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as f:
        f.write(render(records, fmt))
