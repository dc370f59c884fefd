"""Read-only preview of exported Avro artifacts."""
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List

from fastavro import reader
from tabulate import tabulate


@dataclass
class ArtifactPreview:
    path: Path
    table: str
    columns: List[str]
    record_count: int
    sample_rows: List[dict]


def _display(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return value.hex()
    if isinstance(value, list):
        return ", ".join(f"{item.get('key')}={item.get('value')}" for item in value if isinstance(item, dict))
    return value


def collect_preview(path: Path | str, sample_rows: int) -> ArtifactPreview:
    path = Path(path)
    rows: List[dict] = []
    count = 0
    with path.open("rb") as fp:
        avro_reader = reader(fp)
        schema = avro_reader.writer_schema
        for record in avro_reader:
            if count < sample_rows:
                rows.append(record)
            count += 1
    return ArtifactPreview(
        path=path,
        table=schema.get("name", path.stem),
        columns=[field["name"] for field in schema.get("fields", [])],
        record_count=count,
        sample_rows=rows,
    )


def render_preview(preview: ArtifactPreview, output_format: str) -> str:
    if output_format == "json":
        payload = {
            "path": str(preview.path),
            "table": preview.table,
            "record_count": preview.record_count,
            "sample_rows": [
                {name: _display(row.get(name)) for name in preview.columns}
                for row in preview.sample_rows
            ],
        }
        return json.dumps(payload, indent=2)

    table_data = [[_display(row.get(name)) for name in preview.columns] for row in preview.sample_rows]
    header = f"{preview.table} ({preview.record_count} records) from {preview.path}"
    return header + "\n" + tabulate(table_data, headers=preview.columns, tablefmt="github")


__all__ = ["ArtifactPreview", "collect_preview", "render_preview"]
