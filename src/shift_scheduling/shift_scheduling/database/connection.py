from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

import mysql.connector

DEFAULT_DATABASE = "shift_scheduling"


@dataclass(frozen=True)
class DBConfig:
    host: str
    port: int
    user: str
    password: str
    database: str

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "DBConfig":
        """Build from a settings ``DB_CONFIG`` dict, filling local defaults."""
        return cls(
            host=str(data.get("host") or "localhost"),
            port=int(data.get("port") or 3306),
            user=str(data.get("user") or "root"),
            password=str(data.get("password") or ""),
            database=str(data.get("database") or DEFAULT_DATABASE),
        )

    def connect_kwargs(self, *, with_database: bool = True) -> dict:
        kwargs: dict = {"host": self.host, "port": self.port, "user": self.user, "password": self.password}
        if with_database:
            kwargs["database"] = self.database
        return kwargs


class DatabaseConnection:
    """Process-wide factory for short-lived MySQL connections.

    Sessions run with ``time_zone='+00:00'`` so DATETIME columns hold UTC.
    """

    _instance: Optional["DatabaseConnection"] = None

    def __init__(self, config: DBConfig):
        self._config = config

    @property
    def config(self) -> DBConfig:
        return self._config

    @classmethod
    def get_instance(cls, config: DBConfig) -> "DatabaseConnection":
        if cls._instance is None or cls._instance.config != config:
            cls._instance = cls(config)
        return cls._instance

    def connect(self):
        return mysql.connector.connect(**self._config.connect_kwargs(), time_zone="+00:00")
