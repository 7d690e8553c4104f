"""
routeagg/config.py

Application configuration via Pydantic Settings.
All values can be overridden with environment variables or a .env file.

Quick start — create a .env file in your project root:
    SINK=relational-upsert
    PGHOST=localhost
    PGUSER=routes
    PGPASSWORD=secret
    PGDATABASE=bgp
    PGSCHEMA=public
"""

from __future__ import annotations

import json
import re
from typing import Annotated

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .errors import ConfigError

SINK_NAMES = (
    "stdout-jsonl",
    "relational-upsert",
    "embedded-upsert",
    "csv-file",
    "text-file",
)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def valid_identifier(name: str) -> bool:
    """True for a plain SQL identifier (letters, digits, underscore)."""
    return bool(_IDENTIFIER.match(name))


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Source
    SOURCE: str = ""
    PARSER_FILTERS: Annotated[dict[str, str], NoDecode] = {}

    # Output
    SINK: str = "stdout-jsonl"
    OUTPUT_PATH: str = ""
    INCLUDE_UUID: bool = True
    INCLUDE_IP_RANGE: bool = False

    # Embedded store
    DB_PATH: str = "data/routes.db"
    TABLE_NAME: str = "log_table"

    # Relational store (libpq-style names)
    PGHOST: str = ""
    PGPORT: int = 5432
    PGUSER: str = ""
    PGPASSWORD: str = ""
    PGDATABASE: str = ""
    PGSCHEMA: str = ""

    # Logging
    LOG_LEVEL: str = "INFO"

    @field_validator("PARSER_FILTERS", mode="before")
    @classmethod
    def parse_filters(cls, v):
        if isinstance(v, str):
            v = v.strip()
            if not v:
                return {}
            if v.startswith("{"):
                return json.loads(v)
            filters = {}
            for pair in v.split(","):
                if not pair.strip():
                    continue
                key, sep, value = pair.partition("=")
                if not sep or not key.strip():
                    raise ValueError(f"expected key=value, got {pair.strip()!r}")
                filters[key.strip()] = value.strip()
            return filters
        return v

    # ------------------------------------------------------------------
    # Startup checks
    # ------------------------------------------------------------------

    def require_sink_options(self) -> None:
        """
        Validate the options the selected sink needs.

        Raises:
            ConfigError: unknown sink, bad table name, or missing options.
        """
        if self.SINK not in SINK_NAMES:
            raise ConfigError(
                f"unknown sink {self.SINK!r} — expected one of {', '.join(SINK_NAMES)}"
            )
        if not valid_identifier(self.TABLE_NAME):
            raise ConfigError(f"invalid table name {self.TABLE_NAME!r}")
        if self.PGSCHEMA and not valid_identifier(self.PGSCHEMA):
            raise ConfigError(f"invalid schema name {self.PGSCHEMA!r}")

        missing: list[str] = []
        if self.SINK in ("csv-file", "text-file") and not self.OUTPUT_PATH:
            missing.append("OUTPUT_PATH")
        elif self.SINK == "embedded-upsert" and not self.DB_PATH:
            missing.append("DB_PATH")
        elif self.SINK == "relational-upsert":
            for name in ("PGHOST", "PGUSER", "PGDATABASE"):
                if not getattr(self, name):
                    missing.append(name)
        if missing:
            raise ConfigError(
                f"sink {self.SINK!r} requires: {', '.join(missing)}"
            )


def load_settings() -> Settings:
    """
    Read Settings from the environment and .env.

    Raises:
        ConfigError: a value does not validate (bad filters, non-integer
                     PGPORT, ...).
    """
    try:
        return Settings()
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in exc.errors()
        )
        raise ConfigError(f"invalid configuration: {problems}") from exc
