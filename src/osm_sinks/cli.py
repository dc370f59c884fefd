"""Command line interface for the export sinks."""
import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer

from .artifact_preview import collect_preview, render_preview
from .config import ConfigLoader
from .errors import SinkError
from .factory import create_sink
from .sink import Sink
from .warehouse.sink import WarehouseSink

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)

logger = logging.getLogger(__name__)

app = typer.Typer(help="Bulk export of map-matched OSM tables")

ConfigOption = typer.Option(None, "--config", help="Export configuration YAML")


@contextmanager
def _open_sink(config: Optional[Path]) -> Iterator[Sink]:
    try:
        loader = ConfigLoader(config)
        sink = create_sink(loader.sink, loader.mapping)
    except SinkError as exc:
        typer.echo(f"Configuration error: {exc}", err=True)
        raise typer.Exit(code=2)
    try:
        yield sink
    except SinkError as exc:
        logger.error("%s", exc)
        raise typer.Exit(code=1)
    finally:
        sink.close()


def _require_warehouse(sink: Sink) -> WarehouseSink:
    if not isinstance(sink, WarehouseSink):
        typer.echo(f"{sink.scheme}:// sinks do not support this command", err=True)
        raise typer.Exit(code=1)
    return sink


@app.command()
def init(config: Optional[Path] = ConfigOption) -> None:
    """Drop and recreate the import tables."""
    with _open_sink(config) as sink:
        sink.init()


@app.command("import")
def import_rows(
    rows_path: Path = typer.Argument(..., help="JSONL file of {\"table\": ..., \"row\": [...]} objects"),
    generalize: bool = typer.Option(False, "--generalize", help="Build generalized tables afterwards"),
    config: Optional[Path] = ConfigOption,
) -> None:
    """Bulk-load rows from a JSONL file into every table."""
    with _open_sink(config) as sink:
        sink.begin_bulk()
        count = 0
        try:
            with rows_path.open("r", encoding="utf-8") as fp:
                for line in fp:
                    if not line.strip():
                        continue
                    payload = json.loads(line)
                    sink.tx.insert(payload["table"], payload["row"])
                    count += 1
        except Exception:
            sink.abort()
            raise
        sink.end()
        logger.info("Imported %s rows", count)
        if generalize:
            sink.generalize()


@app.command("generalize")
def generalize_tables(config: Optional[Path] = ConfigOption) -> None:
    """Rebuild all generalized tables in the import dataset."""
    with _open_sink(config) as sink:
        _require_warehouse(sink).generalize()


@app.command("deploy")
def deploy(config: Optional[Path] = ConfigOption) -> None:
    """Promote the import dataset to production, backing up production first."""
    with _open_sink(config) as sink:
        _require_warehouse(sink).deploy()


@app.command("revert-deploy")
def revert_deploy(config: Optional[Path] = ConfigOption) -> None:
    """Restore production from the backup dataset."""
    with _open_sink(config) as sink:
        _require_warehouse(sink).revert_deploy()


@app.command("remove-backup")
def remove_backup(config: Optional[Path] = ConfigOption) -> None:
    """Delete all tables from the backup dataset."""
    with _open_sink(config) as sink:
        _require_warehouse(sink).remove_backup()


@app.command("preview")
def preview(
    artifact: Path = typer.Argument(..., help="Local .avro artifact"),
    sample_rows: int = typer.Option(5, "--sample-rows"),
    output_format: str = typer.Option("table", "--format", help="table or json"),
) -> None:
    """Show the first records of an exported artifact."""
    if not artifact.exists():
        typer.echo(f"Artifact not found: {artifact}", err=True)
        raise typer.Exit(code=1)
    typer.echo(render_preview(collect_preview(artifact, sample_rows), output_format=output_format))


if __name__ == "__main__":
    app()
