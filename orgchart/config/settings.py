"""Application configuration settings."""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional


@dataclass
class SheetNames:
    """Names of the tabs in the backing spreadsheet."""

    employees: str = "Funcionarios"
    departments: str = "Departamentos"
    settings: str = "Configuracoes"
    org_charts: str = "Organogramas"


@dataclass
class SheetsSettings:
    """Connection settings for the Google Sheets proxy function."""

    # Base URL of the proxy function; empty means not configured
    proxy_url: str = ""
    api_key: Optional[str] = None
    timeout_seconds: float = 15.0

    sheets: SheetNames = field(default_factory=SheetNames)

    @property
    def is_configured(self) -> bool:
        """Whether a proxy endpoint has been provided."""
        return bool(self.proxy_url.strip())


@dataclass
class HierarchySettings:
    """Hierarchy traversal configuration."""

    # Maximum number of parent hops followed by ancestor lookups
    max_walk_depth: int = 32


@dataclass
class Settings:
    """Main application settings."""

    # Application info
    app_name: str = "Org Chart Builder API"
    app_version: str = "1.0.0"
    debug: bool = False

    # Backing store
    sheets: SheetsSettings = field(default_factory=SheetsSettings)

    # Hierarchy
    hierarchy: HierarchySettings = field(default_factory=HierarchySettings)

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings from environment variables."""
        return cls(
            app_name=os.getenv("APP_NAME", "Org Chart Builder API"),
            app_version=os.getenv("APP_VERSION", "1.0.0"),
            debug=os.getenv("DEBUG", "false").lower() == "true",
            sheets=SheetsSettings(
                proxy_url=os.getenv("SHEETS_PROXY_URL", ""),
                api_key=os.getenv("SHEETS_PROXY_KEY") or None,
                timeout_seconds=float(os.getenv("SHEETS_TIMEOUT_SECONDS", "15")),
                sheets=SheetNames(
                    employees=os.getenv("SHEETS_EMPLOYEES_TAB", "Funcionarios"),
                    departments=os.getenv("SHEETS_DEPARTMENTS_TAB", "Departamentos"),
                    settings=os.getenv("SHEETS_SETTINGS_TAB", "Configuracoes"),
                    org_charts=os.getenv("SHEETS_ORG_CHARTS_TAB", "Organogramas"),
                ),
            ),
            hierarchy=HierarchySettings(
                max_walk_depth=int(os.getenv("HIERARCHY_MAX_WALK_DEPTH", "32")),
            ),
        )


# Singleton settings instance
_settings: Optional[Settings] = None


@lru_cache()
def get_settings() -> Settings:
    """Get application settings (cached)."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    """Reset settings (for testing)."""
    global _settings
    _settings = None
    get_settings.cache_clear()
