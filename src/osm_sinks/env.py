"""Loading of .env files for local runs and tests."""
from __future__ import annotations

import os


def load_env(*args, **kwargs):
    """Load ``.env`` (or ``OSM_SINKS_ENV_FILE``) through python-dotenv."""
    try:
        from dotenv import load_dotenv as _load_dotenv
    except ModuleNotFoundError as exc:  # pragma: no cover - dependency missing
        raise RuntimeError(
            "python-dotenv is not installed. Install the exporter with "
            "`pip install -e '.[test]'` before running commands."
        ) from exc
    if not args and "dotenv_path" not in kwargs and os.getenv("OSM_SINKS_ENV_FILE"):
        kwargs["dotenv_path"] = os.environ["OSM_SINKS_ENV_FILE"]
    return _load_dotenv(*args, **kwargs)


__all__ = ["load_env"]
