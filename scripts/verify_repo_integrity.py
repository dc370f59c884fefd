#!/usr/bin/env python
"""Fail-fast import verification for the sink modules and their registry."""
from __future__ import annotations

import importlib
import os
import sys

MODULES = [
    "osm_sinks",
    "osm_sinks.cli",
    "osm_sinks.encoder",
    "osm_sinks.table_import",
    "osm_sinks.local_sink",
    "osm_sinks.object_sink",
    "osm_sinks.factory",
    "osm_sinks.warehouse.sink",
]

EXPECTED_SCHEMES = {"avro", "s3", "gs", "bigquery"}


def main() -> int:
    if not os.getenv("VIRTUAL_ENV"):
        print(
            "[verify_repo_integrity] Must run inside an activated virtualenv.",
            file=sys.stderr,
        )
        return 1
    for module in MODULES:
        try:
            importlib.import_module(module)
        except Exception as exc:  # pragma: no cover - intentional fail fast
            print(f"[verify_repo_integrity] Failed to import {module}: {exc}", file=sys.stderr)
            return 1
    registered = set(importlib.import_module("osm_sinks.factory").SINKS)
    missing = EXPECTED_SCHEMES - registered
    if missing:
        print(
            f"[verify_repo_integrity] Sink schemes not registered: {', '.join(sorted(missing))}",
            file=sys.stderr,
        )
        return 1
    print(f"[verify_repo_integrity] {len(MODULES)} modules imported, schemes: {', '.join(sorted(registered))}.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
