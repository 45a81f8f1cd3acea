"""
Main settings object.
"""

from datetime import timedelta
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy import URL

from .managers import AsyncSessionManager, SyncSessionManager


class Settings(BaseSettings):
    database_type: Literal["sqlite", "postgres"] = "sqlite"
    database_user: str | None = None
    database_password: str | None = None
    database_port: int | None = None
    database_host: str | None = None
    database_db: str = "ovgs.db"

    database_echo: bool = False

    # Voucher signing material (the vendor key that signs every voucher). Both
    # are PEM encoded; the key may be encrypted with `voucher_key_password`.
    voucher_certificate_filename: Path | None = None  # Suggest /data/voucher.crt
    voucher_key_filename: Path | None = None  # Suggest /data/voucher.key
    voucher_key_password: str | None = None
    voucher_certificate_common_name: str = "OVGS Voucher Signer"
    voucher_certificate_validity: timedelta = timedelta(weeks=520)

    # If create_files is set, `ovgs setup` creates the database tables and
    # a self-signed voucher signing key pair if they do not already exist.
    create_files: bool = False

    # Development setup
    create_example_org: bool = False
    example_org_id: str = "org-example"
    example_admin: str = "example_admin"

    model_config = SettingsConfigDict(env_prefix="OVGS_", env_file=".env")

    @property
    def sync_driver(self) -> str:
        match self.database_type:
            case "sqlite":
                return "sqlite"
            case "postgres":
                return "postgresql+psycopg"
            case _:
                raise ValueError

    @property
    def async_driver(self) -> str:
        match self.database_type:
            case "sqlite":
                return "sqlite+aiosqlite"
            case "postgres":
                return "postgresql+asyncpg"
            case _:
                raise ValueError

    @property
    def sync_uri(self) -> URL:
        return URL.create(
            drivername=self.sync_driver,
            username=self.database_user,
            password=self.database_password,
            host=self.database_host,
            port=self.database_port,
            database=self.database_db,
        )

    def sync_manager(self) -> SyncSessionManager:
        return SyncSessionManager(connection_url=self.sync_uri, echo=self.database_echo)

    @property
    def async_uri(self) -> URL:
        return URL.create(
            drivername=self.async_driver,
            username=self.database_user,
            password=self.database_password,
            host=self.database_host,
            port=self.database_port,
            database=self.database_db,
        )

    def async_manager(self) -> AsyncSessionManager:
        return AsyncSessionManager(
            connection_url=self.async_uri, echo=self.database_echo
        )
