"""
`.env` loading and data-directory resolution.

Deployments keep `MONGODB_URI` and the backend choice in a `.env` file next to
`pyproject.toml`. The API (uvicorn) and the CLI may start from any working directory,
so both the `.env` file and relative `storage.dir` paths are anchored at the checkout
that contains the current directory.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

_ROOT_MARKERS = (".env", "pyproject.toml")


@lru_cache
def get_project_root() -> Path:
    """Nearest directory (cwd or a parent) holding `.env` or `pyproject.toml`; else cwd."""
    cwd = Path.cwd().resolve()
    for candidate in (cwd, *cwd.parents):
        if any((candidate / marker).is_file() for marker in _ROOT_MARKERS):
            return candidate
    return cwd


@lru_cache
def load_dotenv_if_present() -> Path | None:
    """Load `FAREPASS_ENV_FILE` (or `<root>/.env`) once, never overriding real env vars."""
    explicit = os.getenv("FAREPASS_ENV_FILE")
    env_path = Path(explicit).expanduser() if explicit else get_project_root() / ".env"
    if not env_path.is_file():
        return None
    load_dotenv(dotenv_path=env_path, override=False)
    return env_path


def resolve_project_path(path: str | Path) -> Path:
    """Absolute paths pass through; relative ones hang off the project root."""
    p = Path(path).expanduser()
    return p if p.is_absolute() else (get_project_root() / p).resolve()
