"""Application configuration using Pydantic Settings."""

import re
from pydantic import field_validator
from pydantic_settings import BaseSettings
from typing import Dict, Optional


# Dropbox rejects list_folder limits above this value
MAX_PAGE_SIZE = 2000


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Service Identity
    SERVICE_NAME: str = "dropbox-storage"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development, staging, production

    # Logging Configuration
    LOG_LEVEL: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    LOG_JSON: bool = True    # JSON logs (prod) vs pretty console (dev)
    DEBUG: bool = False      # Enable debug mode features

    # Storage Backend Configuration
    STORAGE_BACKEND: str = "Dropbox"  # Registry name, case-sensitive

    # Dropbox Storage Configuration
    DROPBOX_TOKEN: Optional[str] = None  # Long-lived bearer token from setup
    DROPBOX_PAGE_SIZE: int = 1000        # Max entries per list call
    DROPBOX_API_URL: str = "https://api.dropboxapi.com"
    DROPBOX_CONTENT_URL: str = "https://content.dropboxapi.com"

    # OAuth2 app credentials, only needed by the setup tooling
    DROPBOX_APP_KEY: str = ""
    DROPBOX_APP_SECRET: str = ""
    DROPBOX_OAUTH_AUTHORIZE_URL: str = "https://www.dropbox.com/oauth2/authorize"
    DROPBOX_OAUTH_TOKEN_URL: str = "https://api.dropboxapi.com/oauth2/token"

    @field_validator('STORAGE_BACKEND')
    @classmethod
    def validate_storage_backend(cls, v: str) -> str:
        """Backend names are matched exactly, so surrounding whitespace is a mistake."""
        if not v or v != v.strip():
            raise ValueError(f"STORAGE_BACKEND must be a non-empty name without surrounding whitespace, got {v!r}")
        return v

    @field_validator('DROPBOX_TOKEN')
    @classmethod
    def validate_token(cls, v: Optional[str]) -> Optional[str]:
        """Treat an empty token as unset."""
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator('DROPBOX_PAGE_SIZE')
    @classmethod
    def validate_page_size(cls, v: int) -> int:
        """Ensure the page size is accepted by list_folder."""
        if v <= 0:
            raise ValueError(f"DROPBOX_PAGE_SIZE must be positive, got {v}")
        if v > MAX_PAGE_SIZE:
            raise ValueError(f"DROPBOX_PAGE_SIZE too large (max {MAX_PAGE_SIZE}), got {v}")
        return v

    @field_validator(
        'DROPBOX_API_URL',
        'DROPBOX_CONTENT_URL',
        'DROPBOX_OAUTH_AUTHORIZE_URL',
        'DROPBOX_OAUTH_TOKEN_URL',
    )
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate endpoint URL format."""
        if not re.match(r'^https?://.+', v):
            raise ValueError(f"Endpoint URL must start with http:// or https://, got '{v}'")
        return v.rstrip('/')

    def storage_options(self) -> Dict[str, str]:
        """Build the option bag handed to the storage backend factory.

        Options are plain strings, the same shape a config file line
        "key=value" produces. An unset token is left out so the backend
        reports it as missing.
        """
        opts = {
            "page_size": str(self.DROPBOX_PAGE_SIZE),
            "api_url": self.DROPBOX_API_URL,
            "content_url": self.DROPBOX_CONTENT_URL,
        }
        if self.DROPBOX_TOKEN:
            opts["token"] = self.DROPBOX_TOKEN
        return opts

    @property
    def is_debug_mode(self) -> bool:
        """Check if application is in debug mode."""
        return self.DEBUG or self.LOG_LEVEL.upper() == "DEBUG"

    @property
    def use_json_logs(self) -> bool:
        """Determine if JSON logging should be used.

        In production, always use JSON logs.
        In development, allow override via LOG_JSON setting.
        """
        if self.ENVIRONMENT == "production":
            return True
        if self.DEBUG:
            return self.LOG_JSON
        return True

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
