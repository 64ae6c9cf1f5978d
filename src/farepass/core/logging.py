"""
Logging setup for the API and the CLI.

The handler/formatter layout lives in `src/farepass/config/logging.yaml`; only the
level is decided at runtime (CLI `--log-level`, else `app.log_level` /
`FAREPASS_LOG_LEVEL`). Third-party loggers listed in the YAML keep their own level.
"""

from __future__ import annotations

import copy
import logging
import logging.config

from farepass.config.settings import get_logging_config, get_settings


def configure_logging(level: str | None = None) -> str:
    """Apply the packaged dictConfig at `level` and return the level actually used."""
    chosen = (level or get_settings().app.log_level).strip().upper()
    if not isinstance(logging.getLevelName(chosen), int):
        raise ValueError(f"Unknown log level: {chosen}")

    # get_logging_config() is cached; never mutate the shared mapping.
    config = copy.deepcopy(get_logging_config())
    config.setdefault("root", {})["level"] = chosen
    for handler in config.get("handlers", {}).values():
        handler["level"] = chosen
    config.setdefault("loggers", {}).setdefault("farepass", {})["level"] = chosen

    logging.config.dictConfig(config)
    return chosen
