"""
Configuration management using environment variables.
Handles primary store, search index and logging settings with validation and defaults.
"""

from typing import Optional
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """
    Configuration class for the book catalog.
    Uses pydantic BaseSettings for environment variable management.
    """

    # MongoDB Configuration (primary store)
    mongodb_url: str = Field(default="mongodb://localhost:27017")
    mongodb_database: str = Field(default="book_catalog")
    mongodb_collection: str = Field(default="books")
    mongodb_counters_collection: str = Field(default="counters")
    mongodb_timeout_ms: int = Field(default=5000)

    # Elasticsearch Configuration (search index)
    elasticsearch_url: str = Field(default="http://localhost:9200")
    elasticsearch_index: str = Field(default="books")
    elasticsearch_timeout: float = Field(default=10.0)
    elasticsearch_refresh: str = Field(default="wait_for")
    elasticsearch_max_result_window: int = Field(default=10000)

    # Pagination
    default_page_size: int = Field(default=20)
    max_page_size: int = Field(default=100)

    # Index divergence alerting
    index_alert_max_per_hour: int = Field(default=10)

    # Logging Configuration
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")
    log_file: Optional[str] = Field(default=None)

    # Development/Testing
    debug: bool = Field(default=False)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator('mongodb_timeout_ms')
    @classmethod
    def validate_mongodb_timeout(cls, v):
        """Ensure the server selection timeout is reasonable."""
        if v < 100 or v > 120000:
            raise ValueError('mongodb_timeout_ms must be between 100 and 120000')
        return v

    @field_validator('elasticsearch_timeout')
    @classmethod
    def validate_elasticsearch_timeout(cls, v):
        """Ensure the request timeout is reasonable."""
        if v <= 0 or v > 300:
            raise ValueError('elasticsearch_timeout must be between 0 and 300 seconds')
        return v

    @field_validator('elasticsearch_refresh')
    @classmethod
    def validate_refresh(cls, v):
        """Ensure the refresh policy is one Elasticsearch accepts."""
        valid_policies = ['true', 'false', 'wait_for']
        if v.lower() not in valid_policies:
            raise ValueError(f'elasticsearch_refresh must be one of: {valid_policies}')
        return v.lower()

    @field_validator('elasticsearch_max_result_window')
    @classmethod
    def validate_max_result_window(cls, v):
        """Must match or stay below the index.max_result_window setting."""
        if v < 1:
            raise ValueError('elasticsearch_max_result_window must be positive')
        return v

    @field_validator('default_page_size', 'max_page_size')
    @classmethod
    def validate_page_size(cls, v):
        """Ensure page sizes are positive and bounded."""
        if v < 1 or v > 1000:
            raise ValueError('page sizes must be between 1 and 1000')
        return v

    @field_validator('index_alert_max_per_hour')
    @classmethod
    def validate_alert_rate(cls, v):
        if v < 0:
            raise ValueError('index_alert_max_per_hour cannot be negative')
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'log_level must be one of: {valid_levels}')
        return v.upper()

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ['json', 'console']
        if v.lower() not in valid_formats:
            raise ValueError(f'log_format must be one of: {valid_formats}')
        return v.lower()

    def get_log_file_path(self) -> Optional[Path]:
        """Get log file path as Path object."""
        if self.log_file:
            return Path(self.log_file)
        return None

    def get_refresh_policy(self):
        """Translate the refresh setting into the value the Elasticsearch client expects."""
        if self.elasticsearch_refresh == "true":
            return True
        if self.elasticsearch_refresh == "false":
            return False
        return self.elasticsearch_refresh


# Global configuration instance
config = AppConfig()
