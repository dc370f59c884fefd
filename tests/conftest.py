"""Pytest configuration for loading local environment variables."""
from __future__ import annotations

from pathlib import Path

try:
    from osm_sinks.env import load_env
except ImportError as exc:
    raise RuntimeError(
        "osm_sinks is not importable. Activate your virtualenv and run "
        "\"pip install -e '.[test]'\" before running pytest."
    ) from exc

# Load default runtime env first, then overlay .env.test if provided
load_env()
test_env = Path(".env.test")
if test_env.exists():
    load_env(dotenv_path=test_env, override=True)
