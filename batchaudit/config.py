"""
Configuration settings for batch-audit.

Uses Pydantic Settings to load environment variables for database connections,
logging, audit-table conventions and batch engine behaviour.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("batch_audit", alias="DB_NAME")
    db_statement_timeout_ms: int = Field(0, alias="DB_STATEMENT_TIMEOUT_MS")
    db_pool_min_size: int = Field(1, alias="DB_POOL_MIN_SIZE")
    db_pool_max_size: int = Field(10, alias="DB_POOL_MAX_SIZE")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Audit log table conventions
    audit_log_table_suffix: str = Field("_log", alias="AUDIT_LOG_TABLE_SUFFIX")
    audit_doc_id_field: str = Field("doc_id", alias="AUDIT_DOC_ID_FIELD")
    audit_changed_attributes_field: str = Field(
        "changed_attributes", alias="AUDIT_CHANGED_ATTRIBUTES_FIELD"
    )
    audit_changed_by_field: str = Field("changed_by", alias="AUDIT_CHANGED_BY_FIELD")
    audit_time_field: str = Field("atime", alias="AUDIT_TIME_FIELD")
    audit_version_field: str = Field("version", alias="AUDIT_VERSION_FIELD")

    # Batch engine
    batch_key_assignment: Literal["returning", "sequence"] = Field(
        "returning", alias="BATCH_KEY_ASSIGNMENT"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
