"""Configuration management using Pydantic."""
from pathlib import Path
from typing import Optional, List
from functools import lru_cache
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import yaml

from .constants import (
    DEFAULT_BACKEND_URL,
    DEFAULT_API_PREFIX,
    DEFAULT_EXPORTS_DIR,
    DEFAULT_FORM,
    REQUEST_TIMEOUT_SECONDS,
    CREDIT_CACHE_TTL_SECONDS,
    COST_DEBOUNCE_SECONDS,
    USER_CONFIG_DIRNAME
)


class Settings(BaseSettings):
    """Application settings loaded from environment and config files."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
        validate_assignment=True
    )

    # Backend Configuration
    backend_url: str = Field(
        default=DEFAULT_BACKEND_URL,
        description="Base URL of the book backend",
        alias="BOOKSTUDIO_BACKEND_URL"
    )
    api_prefix: str = Field(
        default=DEFAULT_API_PREFIX,
        description="Path prefix of the REST API"
    )
    api_token: Optional[str] = Field(
        default=None,
        description="Bearer token issued by the authentication provider",
        alias="BOOKSTUDIO_API_TOKEN"
    )
    request_timeout: float = Field(
        default=REQUEST_TIMEOUT_SECONDS,
        description="Total timeout in seconds for a single backend request"
    )

    # Storage paths
    exports_dir: Path = Field(
        default=DEFAULT_EXPORTS_DIR,
        description="Directory for exported books"
    )

    # Credits and cost estimate
    credit_cache_ttl: int = Field(
        default=CREDIT_CACHE_TTL_SECONDS,
        description="Seconds after which the cached credit balance is shown as stale"
    )
    cost_debounce_seconds: float = Field(
        default=COST_DEBOUNCE_SECONDS,
        description="Delay before recalculating the book cost estimate"
    )

    # Setup form defaults
    default_pages: int = Field(default=DEFAULT_FORM['pages'])
    default_chapters: int = Field(default=DEFAULT_FORM['chapters'])
    default_language: str = Field(default=DEFAULT_FORM['language'])
    default_writing_style: str = Field(default=DEFAULT_FORM['writing_style'])

    verbose: bool = Field(
        default=False,
        description="Enable verbose logging"
    )

    @field_validator('backend_url')
    @classmethod
    def validate_backend_url(cls, v: str) -> str:
        """Validate that the backend URL is an http(s) URL."""
        if not v.startswith(('http://', 'https://')):
            raise ValueError("Backend URL must start with 'http://' or 'https://'")
        return v.rstrip('/')

    @field_validator('api_prefix')
    @classmethod
    def normalize_prefix(cls, v: str) -> str:
        """Ensure the prefix has a single leading slash and no trailing one."""
        v = v.strip('/')
        return f"/{v}" if v else ""

    @field_validator('request_timeout')
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Validate request timeout."""
        if v <= 0:
            raise ValueError("Request timeout must be positive")
        return v

    @field_validator('exports_dir')
    @classmethod
    def create_directories(cls, v: Path) -> Path:
        """Ensure directories exist."""
        v = Path(v).resolve()
        v.mkdir(parents=True, exist_ok=True)
        return v

    @property
    def api_base_url(self) -> str:
        """Get the full base URL for API calls."""
        return f"{self.backend_url}{self.api_prefix}"

    def load_config_file(self, config_path: Path) -> None:
        """
        Overlay keys from a YAML file; unknown keys are ignored.

        Values go through the field validators, so a bad value raises
        pydantic.ValidationError.
        """
        if not config_path.exists():
            return
        with open(config_path, encoding='utf-8') as f:
            overrides = yaml.safe_load(f) or {}
        for key, value in overrides.items():
            if key in type(self).model_fields:
                setattr(self, key, value)

    def save_config_file(self, config_path: Path) -> None:
        """Write the current settings as YAML. The API token is never written."""
        config_data = self.model_dump(mode='json', exclude={'api_token'})
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(config_data, f, default_flow_style=False, sort_keys=False)


def config_files() -> List[Path]:
    """YAML overlays in the order they are applied."""
    return [Path.home() / USER_CONFIG_DIRNAME / 'config.yaml', Path('config.yaml')]


@lru_cache()
def get_settings() -> Settings:
    """Settings from the environment, then the user and project config files."""
    settings = Settings()
    for path in config_files():
        settings.load_config_file(path)
    return settings
