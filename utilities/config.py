"""
Configuration management using environment variables.
Handles connection, logging and walkthrough settings with validation and defaults.
"""

from typing import Optional
from pydantic import Field, validator
from pydantic_settings import BaseSettings
from pathlib import Path


class CatalogConfig(BaseSettings):
    """
    Configuration class for the book catalog.
    Uses pydantic BaseSettings for environment variable management.
    """

    # MongoDB Configuration
    mongodb_url: str = Field(default="mongodb://localhost:27017", env="MONGODB_URL")
    mongodb_database: str = Field(default="plp_bookstore", env="MONGODB_DATABASE")
    mongodb_collection: str = Field(default="books", env="MONGODB_COLLECTION")
    mongodb_timeout_ms: int = Field(default=5000, env="MONGODB_TIMEOUT_MS")

    # Logging Configuration
    log_level: str = Field(default="INFO", env="LOG_LEVEL")
    log_format: str = Field(default="console", env="LOG_FORMAT")
    log_file: Optional[str] = Field(default=None, env="LOG_FILE")
    debug: bool = Field(default=False, env="DEBUG")

    # Walkthrough parameters used by main.py
    demo_genre: str = Field(default="Fiction", env="DEMO_GENRE")
    demo_author: str = Field(default="George Orwell", env="DEMO_AUTHOR")
    demo_year: int = Field(default=1950, env="DEMO_YEAR")
    demo_in_stock_year: int = Field(default=2010, env="DEMO_IN_STOCK_YEAR")
    demo_title: str = Field(default="To Kill a Mockingbird", env="DEMO_TITLE")
    demo_new_price: float = Field(default=14.99, env="DEMO_NEW_PRICE")
    demo_delete_title: str = Field(default="Moby Dick", env="DEMO_DELETE_TITLE")
    demo_page_size: int = Field(default=5, env="DEMO_PAGE_SIZE")

    @validator('mongodb_timeout_ms')
    def validate_timeout(cls, v):
        """Ensure server selection timeout is reasonable."""
        if v < 100 or v > 120000:
            raise ValueError('mongodb_timeout_ms must be between 100 and 120000')
        return v

    @validator('demo_page_size')
    def validate_page_size(cls, v):
        if v < 1:
            raise ValueError('demo_page_size must be positive')
        return v

    @validator('log_level')
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'log_level must be one of: {valid_levels}')
        return v.upper()

    @validator('log_format')
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ['json', 'console']
        if v.lower() not in valid_formats:
            raise ValueError(f'log_format must be one of: {valid_formats}')
        return v.lower()

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"  # Ignore extra fields from .env

    def get_log_file_path(self) -> Optional[Path]:
        """Get log file path as Path object."""
        if self.log_file:
            return Path(self.log_file)
        return None


# Global configuration instance
config = CatalogConfig()
