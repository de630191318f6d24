"""Spreadsheet connection lifecycle and request dependencies."""

import logging
from typing import Optional

from orgchart.config.settings import SheetsSettings, get_settings
from orgchart.data.org_repository import OrgRepository
from orgchart.infrastructure.sheets.sheets_client import SheetsClient

logger = logging.getLogger(__name__)


# Global client instance
_client: Optional[SheetsClient] = None


def get_sheets_client(config: Optional[SheetsSettings] = None) -> SheetsClient:
    """
    Get or create the shared sheets client.

    Args:
        config: Connection settings. Uses environment settings if not provided.

    Returns:
        SheetsClient instance
    """
    global _client

    if _client is None:
        config = config or get_settings().sheets
        _client = SheetsClient(config)
        if config.is_configured:
            logger.info(f"Sheets proxy configured at {config.proxy_url}")
        else:
            logger.warning("Sheets proxy URL not set; data endpoints will fail until configured")

    return _client


async def close_sheets_client() -> None:
    """Close the shared client and forget it."""
    global _client

    if _client is not None:
        await _client.close()
        _client = None


def get_repository() -> OrgRepository:
    """Dependency that provides a repository over the shared client."""
    return OrgRepository(get_sheets_client())
