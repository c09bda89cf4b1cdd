# Licensed under the Apache License, Version 2.0 (the "License");
# ...
from __future__ import annotations

import csv
import json
from typing import Any, List
from pathlib import Path

from ..ports.index import IndexPort

FIELDNAMES = [
    "probe_path",
    "reference_path",
    "score",
    "matches",
    "structural_similarity",
    "spatial_score",
    "is_render1",
    "is_render2",
    "error",
    "compared_at",
]


class ReportService:
    """
    Writes stored comparison results as JSON/NDJSON/CSV.

    Notes:
      - JSON (default): one JSON array of comparison records, best score first.
      - NDJSON: one record per line.
      - CSV: one row per record; stable column order.
    """

    def __init__(self, index: IndexPort) -> None:
        self._index = index

    def write_comparisons(self, out: Path, fmt: str = "json") -> Path:
        """
        Write every stored comparison to `out` in the specified format.

        Returns:
            The path written.

        Raises:
            ValueError: if an unsupported format is requested.
        """
        fmt = (fmt or "json").lower()
        if fmt not in {"json", "ndjson", "csv"}:
            raise ValueError(f"Unsupported format: {fmt}")

        records: List[dict[str, Any]] = [
            {k: rec.get(k) for k in FIELDNAMES} for rec in self._index.comparisons()
        ]
        out.parent.mkdir(parents=True, exist_ok=True)

        if fmt == "json":
            out.write_text(
                json.dumps(records, ensure_ascii=False, indent=2), encoding="utf-8"
            )
            return out

        if fmt == "ndjson":
            text = "\n".join(json.dumps(rec, ensure_ascii=False) for rec in records)
            out.write_text(text + ("\n" if text else ""), encoding="utf-8")
            return out

        with open(out, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=FIELDNAMES)
            writer.writeheader()
            writer.writerows(records)
        return out
