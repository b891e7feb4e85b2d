"""Configuration loading for db-dumper."""

import logging
import tomllib
from pathlib import Path

from pydantic import ValidationError

from db_dumper.config.models import DumpSettings
from db_dumper.exceptions import ConfigError

logger = logging.getLogger(__name__)


def load_dump_settings(config_path: Path | None = None) -> DumpSettings:
    """Load dump settings from environment and an optional TOML file.

    Values from the file's ``[dump]`` table override ``DB_DUMPER_*``
    environment variables, which override the defaults.

    Example db-dumper.toml:
        [dump]
        output_dir = "backups/sql"
        batch_size = 5000
        statement_timeout_ms = 120000

    Args:
        config_path: Path to the TOML file, or ``None`` for env/defaults only.

    Returns:
        DumpSettings

    Raises:
        FileNotFoundError: If ``config_path`` doesn't exist
        ConfigError: If the file is not valid TOML or holds invalid values
    """
    if config_path is None:
        try:
            return DumpSettings()
        except ValidationError as e:
            raise ConfigError(f"Invalid DB_DUMPER_* environment settings: {e}") from e

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {config_path}: {e}") from e

    values = data.get("dump", {})
    if not isinstance(values, dict):
        raise ConfigError(f"[dump] in {config_path} must be a table")

    try:
        settings = DumpSettings(**values)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings in {config_path}: {e}") from e

    logger.debug("Loaded settings from %s", config_path)
    return settings
