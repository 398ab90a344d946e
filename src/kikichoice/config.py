from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional
from urllib.parse import quote

from dotenv import load_dotenv


DEFAULT_SOURCE = "./images"


class ConfigError(Exception):
    pass


def load_env(dotenv_path: Optional[str]) -> None:
    if dotenv_path is None:
        # try default .env in cwd if present
        default_env = Path.cwd() / ".env"
        if default_env.exists():
            load_dotenv(default_env)
        return
    p = Path(dotenv_path)
    if not p.exists():
        raise ConfigError(f"dotenv file not found: {p}")
    load_dotenv(p)


def _pg_url(user: str, password: str, host: str, port: str, name: str, params: str = "") -> str:
    url = f"postgres://{quote(user, safe='')}"
    if password:
        url += ":" + quote(password, safe="")
    url += f"@{host}:{port}/{name}"
    return url + params


@dataclass(frozen=True)
class DatabaseConfig:
    host: str
    port: str = "5432"
    user: str = "postgres"
    password: str = ""
    name: str = "postgres"
    production: bool = False
    url: Optional[str] = None

    @classmethod
    def from_env(cls) -> "DatabaseConfig":
        return cls(
            host=os.getenv("DB_HOST", ""),
            port=os.getenv("DB_PORT") or "5432",
            user=os.getenv("DB_USER") or "postgres",
            password=os.getenv("DB_PASSWORD", ""),
            name=os.getenv("DB_NAME") or "postgres",
            production=os.getenv("ENV", "").lower() == "production",
            url=os.getenv("DATABASE_URL") or None,
        )

    def dsn(self) -> str:
        if self.url:
            return self.url
        if not self.host:
            raise ConfigError("Missing required config: DATABASE_URL or DB_HOST")
        params = "?sslmode=require" if self.production else ""
        return _pg_url(self.user, self.password, self.host, self.port, self.name, params)


@dataclass(frozen=True)
class LocalDBConfig:
    """Second database that mirrors image rows when ``--sync-local`` is on."""

    host: str
    port: str = "5432"
    user: str = "postgres"
    password: str = ""
    name: str = "postgres"
    enabled: bool = False

    @classmethod
    def from_env(cls) -> "LocalDBConfig":
        return cls(
            host=os.getenv("LOCAL_DB_HOST", ""),
            port=os.getenv("LOCAL_DB_PORT") or "5432",
            user=os.getenv("LOCAL_DB_USER") or "postgres",
            password=os.getenv("LOCAL_DB_PASSWORD", ""),
            name=os.getenv("LOCAL_DB_NAME") or "postgres",
            enabled=os.getenv("LOCAL_DB_ENABLED") == "true",
        )

    def validate(self) -> None:
        if not self.enabled:
            raise ConfigError("LOCAL_DB_ENABLED must be set to 'true' when --sync-local flag is used")
        if not self.host:
            raise ConfigError("LOCAL_DB_HOST is required when LOCAL_DB_ENABLED=true")

    def dsn(self) -> str:
        self.validate()
        return _pg_url(self.user, self.password, self.host, self.port, self.name)


@dataclass(frozen=True)
class BlobStorageConfig:
    account_name: str
    account_key: str

    @classmethod
    def from_env(cls) -> "BlobStorageConfig":
        account_name = os.getenv("AZURE_BLOB_STORAGE_ACCOUNT_NAME", "").strip()
        account_key = os.getenv("AZURE_BLOB_STORAGE_KEY", "").strip()
        missing: List[str] = []
        if not account_name:
            missing.append("AZURE_BLOB_STORAGE_ACCOUNT_NAME")
        if not account_key:
            missing.append("AZURE_BLOB_STORAGE_KEY")
        if missing:
            raise ConfigError(f"Missing required config: {', '.join(missing)}")
        return cls(account_name=account_name, account_key=account_key)

    @property
    def account_url(self) -> str:
        return f"https://{self.account_name}.blob.core.windows.net"


@dataclass(frozen=True)
class UploadOptions:
    source: Path = Path(DEFAULT_SOURCE)
    dry_run: bool = False
    clean_first: bool = False
    sync_local: bool = False
