"""Configuration models.

Every field can come from ``rizz.yaml``, from a ``RIZZ__<SECTION>__<FIELD>``
environment variable, or from keyword arguments to ``load_config()``, in
increasing order of precedence:

    RIZZ__DATABASE__PATH=/var/lib/app/app.db
    RIZZ__DATABASE__JOURNAL_MODE=DELETE
    RIZZ__LOGGING__LEVEL=DEBUG
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
JournalMode = Literal["DELETE", "TRUNCATE", "PERSIST", "MEMORY", "WAL", "OFF"]
Synchronous = Literal["OFF", "NORMAL", "FULL", "EXTRA"]

MEMORY_PATH = ":memory:"


class LogOutputConfig(BaseModel):
    """Where one stream of log events goes and how it is rendered."""

    format: Literal["json", "console"] = "console"
    destination: str = Field(
        default="stderr",
        description="'stderr', 'stdout', or an absolute path to append to.",
    )
    level: LogLevel | None = Field(
        default=None,
        description="Minimum level for this output. None uses LoggingConfig.level.",
    )

    @field_validator("destination")
    @classmethod
    def _absolute_file(cls, value: str) -> str:
        if value in ("stderr", "stdout"):
            return value
        resolved = Path(value).expanduser()
        if not resolved.is_absolute():
            raise ValueError(f"log file must be an absolute path, got {value!r}")
        return str(resolved)


class LoggingConfig(BaseModel):
    level: LogLevel = Field(
        default="INFO",
        description="Root level. DEBUG also logs every prepared statement.",
    )
    outputs: list[LogOutputConfig] = Field(
        default_factory=lambda: [LogOutputConfig()],
        description="One handler per entry.",
    )


class DatabaseConfig(BaseModel):
    """How the SQLite file is opened and tuned."""

    path: str = Field(
        default=MEMORY_PATH,
        description="Database file path. ':memory:' keeps everything in one connection.",
    )
    journal_mode: JournalMode = Field(
        default="WAL",
        description="PRAGMA journal_mode. WAL lets readers proceed during a write.",
    )
    synchronous: Synchronous = Field(
        default="NORMAL",
        description="PRAGMA synchronous. NORMAL is safe with WAL.",
    )
    foreign_keys: bool = Field(
        default=True,
        description="Enforce REFERENCES constraints (PRAGMA foreign_keys).",
    )
    busy_timeout_ms: int = Field(
        default=30000,
        description="PRAGMA busy_timeout. A statement waits this long on a locked file "
        "before SQLite reports it busy.",
    )
    cache_size_kb: int = Field(
        default=64000,
        description="Page cache size in KiB (PRAGMA cache_size=-N).",
    )
    read_only: bool = Field(
        default=False,
        description="Open the file read-only. Migration fails if DDL is needed.",
    )
    create_if_missing: bool = Field(
        default=True,
        description="Create the database file when it does not exist.",
    )
    read_pool_size: int = Field(
        default=4,
        description="Read connections serving select queries concurrently. "
        "Ignored for :memory: databases.",
    )
    max_retries: int = Field(
        default=3,
        description="Extra BEGIN IMMEDIATE attempts while another process holds the write lock.",
    )
    retry_base_delay_sec: float = Field(
        default=0.1,
        description="First backoff delay; doubled on every further attempt.",
    )
    retry_max_delay_sec: float = Field(
        default=2.0,
        description="Upper bound on a single backoff delay.",
    )

    @field_validator("read_pool_size", "max_retries")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError(f"must be >= 0, got {value}")
        return value

    @property
    def is_memory(self) -> bool:
        return self.path == MEMORY_PATH


class RizzConfig(BaseModel):
    """Root configuration as returned by ``load_config()``."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
