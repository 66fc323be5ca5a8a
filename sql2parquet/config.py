# ==============================================
# Configuration Management
# ==============================================
#
# PURPOSE:
#   Load all configuration from environment variables / .env file.
#   Provides typed config objects to the CLI and, through it, to the
#   inferencer and writer.
#
# CLASSES:
# --------
# - SourceConfig (dataclass)
#     backend: str              (default "sqlite")
#     sqlite_path: str | None   (default None)
#
# - MySQLConfig (dataclass)
#     host: str          (default "localhost")
#     port: int          (default 3306)
#     user: str          (default "root")
#     password: str      (default "root")
#     database: str      (default "")
#
# - WriterConfig (dataclass)
#     group_size: int    (default 1_000_000)
#     compression: str   (default "zstd")
#
# - InferenceConfig (dataclass)
#     sample_size: int             (default 1000)
#     max_dictionary_ratio: float  (default 0.75)
#
# - AppConfig (dataclass)
#     source, mysql, writer, inference
#     out_dir: str       (default "parquet/")
#     log_level: str     (default "INFO")
#
# FUNCTIONS:
# ----------
# - load_config() -> AppConfig
#     Load .env using python-dotenv and build a fresh AppConfig.
# - get_config() -> AppConfig
#     Same, but returns one singleton on repeated calls.
#
# USAGE:
# ------
#   from sql2parquet.config import get_config
#   config = get_config()
#   print(config.writer.group_size)
#
# ==============================================

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


DEFAULT_GROUP_SIZE = 1_000_000


@dataclass
class SourceConfig:
    """Which relational backend to read from."""
    backend: str = "sqlite"
    sqlite_path: Optional[str] = None


@dataclass
class MySQLConfig:
    """MySQL database configuration."""
    host: str = "localhost"
    port: int = 3306
    user: str = "root"
    password: str = "root"
    database: str = ""


@dataclass
class WriterConfig:
    """Row-group batching and compression for the parquet writer."""
    group_size: int = DEFAULT_GROUP_SIZE
    compression: str = "zstd"


@dataclass
class InferenceConfig:
    """Sampling parameters for schema inference."""
    sample_size: int = 1000
    max_dictionary_ratio: float = 0.75


@dataclass
class AppConfig:
    """Main application configuration."""
    source: SourceConfig = field(default_factory=SourceConfig)
    mysql: MySQLConfig = field(default_factory=MySQLConfig)
    writer: WriterConfig = field(default_factory=WriterConfig)
    inference: InferenceConfig = field(default_factory=InferenceConfig)
    out_dir: str = "parquet/"
    log_level: str = "INFO"


# Singleton instance
_config_instance: Optional[AppConfig] = None


def load_config(env_path: Optional[Path] = None) -> AppConfig:
    """
    Build an AppConfig from environment variables / .env file.

    Args:
        env_path: Optional explicit .env location. Defaults to the
                  project root, then whatever python-dotenv finds
                  from the current directory.

    Returns:
        AppConfig: A new configuration object
    """
    if env_path is None:
        env_path = Path(__file__).parent.parent / ".env"
    load_dotenv(dotenv_path=env_path)
    load_dotenv()

    source_config = SourceConfig(
        backend=os.getenv("SQL2PARQUET_BACKEND", "sqlite").lower(),
        sqlite_path=os.getenv("SQLITE_PATH") or None,
    )

    mysql_config = MySQLConfig(
        host=os.getenv("MYSQL_HOST", "localhost"),
        port=int(os.getenv("MYSQL_PORT", "3306")),
        user=os.getenv("MYSQL_USER", "root"),
        password=os.getenv("MYSQL_PASSWORD", "root"),
        database=os.getenv("MYSQL_DATABASE", ""),
    )

    writer_config = WriterConfig(
        group_size=int(os.getenv("GROUP_SIZE", str(DEFAULT_GROUP_SIZE))),
        compression=os.getenv("COMPRESSION", "zstd"),
    )

    inference_config = InferenceConfig(
        sample_size=int(os.getenv("SAMPLE_SIZE", "1000")),
        max_dictionary_ratio=float(os.getenv("MAX_DICTIONARY_RATIO", "0.75")),
    )

    return AppConfig(
        source=source_config,
        mysql=mysql_config,
        writer=writer_config,
        inference=inference_config,
        out_dir=os.getenv("OUT_DIR", "parquet/"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


def get_config() -> AppConfig:
    """
    Load configuration from environment variables / .env file.
    Returns the same singleton instance on repeated calls.

    Returns:
        AppConfig: Application configuration
    """
    global _config_instance

    if _config_instance is None:
        _config_instance = load_config()
    return _config_instance
