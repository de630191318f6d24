"""Data package for spreadsheet access and connection management."""

from orgchart.data.connection import (
    close_sheets_client,
    get_repository,
    get_sheets_client,
)
from orgchart.data.org_repository import DataSnapshot, OrgRepository

__all__ = [
    "DataSnapshot",
    "OrgRepository",
    "close_sheets_client",
    "get_repository",
    "get_sheets_client",
]
