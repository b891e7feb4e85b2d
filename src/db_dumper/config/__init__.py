"""Configuration management: connection options, settings, TOML loading.

Usage:
    >>> from db_dumper.config import load_dump_settings, ConnectionOptions, DumpSettings
"""

from db_dumper.config.loader import load_dump_settings
from db_dumper.config.models import ConnectionOptions, DumpSettings

__all__ = ["load_dump_settings", "ConnectionOptions", "DumpSettings"]
