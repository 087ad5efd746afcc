"""
Run configuration.

Settings come from command-line flags layered over environment variables,
which may be supplied in a .env file beside the project. The resulting
RunConfig is passed explicitly to the runner and store; the engine itself
never reads configuration.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .models import DEFAULT_SOURCE_SITE


_project_dir = Path(__file__).parent.parent
_env_path = _project_dir / ".env"

STORE_CHOICES = ("sql", "frappe")

DEFAULT_SQLITE_PATH = "catalog.db"
DEFAULT_FRAPPE_URL = "http://localhost:8000/api/resource/Product%20Item"

# Throttle between console rows so long dry runs stay readable
DEFAULT_PRODUCT_DELAY_MS = 20


class ConfigError(ValueError):
    """Raised when required settings are missing or inconsistent."""


def load_environment(env_path: Optional[Path] = None) -> None:
    """Load variables from the .env file without overriding the real environment."""
    load_dotenv(env_path or _env_path)


def get_database_url() -> Optional[str]:
    """Get the PostgreSQL database URL from environment variables."""
    return os.getenv("DATABASE_URL")


@dataclass
class FrappeSettings:
    url: str
    api_key: str
    api_secret: str

    @classmethod
    def from_env(cls) -> 'FrappeSettings':
        api_key = os.getenv("FRAPPE_API_KEY")
        api_secret = os.getenv("FRAPPE_API_SECRET")
        if not api_key or not api_secret:
            raise ConfigError(
                "FRAPPE_API_KEY and FRAPPE_API_SECRET must be set to use the Frappe store"
            )
        return cls(
            url=os.getenv("FRAPPE_URL", DEFAULT_FRAPPE_URL),
            api_key=api_key,
            api_secret=api_secret,
        )


@dataclass
class RunConfig:
    """Explicit settings for one import run."""
    upload: bool = False
    store: str = "sql"
    source_site: str = DEFAULT_SOURCE_SITE
    id_prefix: str = "P"
    overrides_file: Optional[str] = None
    sqlite_path: str = DEFAULT_SQLITE_PATH
    store_name: Optional[str] = None
    max_products: Optional[int] = None
    product_delay_ms: int = DEFAULT_PRODUCT_DELAY_MS

    def __post_init__(self):
        if self.store not in STORE_CHOICES:
            raise ConfigError(f"Unknown store '{self.store}' (expected one of {', '.join(STORE_CHOICES)})")
        if self.max_products is not None and self.max_products <= 0:
            raise ConfigError("max_products must be positive")
        if self.product_delay_ms < 0:
            raise ConfigError("product_delay_ms cannot be negative")

    @property
    def dry_run(self) -> bool:
        return not self.upload

    @classmethod
    def from_env(cls, **overrides) -> 'RunConfig':
        """
        Build a config from environment variables, then apply keyword
        overrides (typically parsed command-line flags). None values in
        `overrides` are ignored.
        """
        values = {
            'source_site': os.getenv("SOURCE_SITE", DEFAULT_SOURCE_SITE),
            'id_prefix': os.getenv("ID_PREFIX", "P"),
            'overrides_file': os.getenv("OVERRIDES_FILE") or None,
            'sqlite_path': os.getenv("SQLITE_PATH", DEFAULT_SQLITE_PATH),
            'store_name': os.getenv("STORE_NAME") or None,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
