"""Pydantic models for connection options and dump settings."""

from pathlib import Path

from psycopg.conninfo import make_conninfo
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# ============================================================================
# Connection Options
# ============================================================================


class ConnectionOptions(BaseModel):
    """The six values the command line delivers to the engine."""

    host: str
    port: int = Field(default=5432, gt=0, lt=65536)
    dbname: str
    user: str
    password: str
    output: str | None = None

    def conninfo(self) -> str:
        """libpq keyword/value connection string."""
        return make_conninfo(
            host=self.host,
            port=str(self.port),
            dbname=self.dbname,
            user=self.user,
            password=self.password,
        )

    def output_path(self, output_dir: Path) -> Path:
        """Where the dump is written.

        Defaults to ``<dbname>-dump.sql``. Relative names land under
        ``output_dir``; absolute paths are used as given.
        """
        name = Path(self.output or f"{self.dbname}-dump.sql")
        if name.is_absolute():
            return name
        return output_dir / name


# ============================================================================
# Dump Settings
# ============================================================================


class DumpSettings(BaseSettings):
    """Engine tuning, read from ``DB_DUMPER_*`` env vars or a TOML file.

    Example:
        >>> DumpSettings().batch_size
        1000
    """

    model_config = SettingsConfigDict(env_prefix="DB_DUMPER_", extra="forbid")

    output_dir: Path = Path("dumps")
    batch_size: int = Field(default=1000, gt=0)
    statement_timeout_ms: int = Field(default=60_000, ge=0)  # 0 disables
    connect_timeout: int = Field(default=10, gt=0)
    application_name: str = "db-dumper"
