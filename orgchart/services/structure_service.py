"""Checks that the backing spreadsheet has the expected tabs and columns."""

import logging
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from orgchart.data.org_repository import OrgRepository
from orgchart.infrastructure.sheets.row_schema import SheetSchema
from orgchart.utils.errors import SheetsError

logger = logging.getLogger(__name__)


class StructureStatus(str, Enum):
    """Outcome for one tab."""

    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class SheetStructureResult(BaseModel):
    """Validation outcome for one tab."""

    sheet: str = Field(..., description="Tab name, or 'Connection'")
    status: StructureStatus
    message: str
    details: Optional[str] = None


class StructureValidator:
    """Validates tab presence, header columns and row counts."""

    def __init__(self, repository: OrgRepository):
        self.repository = repository

    @property
    def required_sheets(self) -> List[SheetSchema]:
        repo = self.repository
        return [
            repo.employee_schema,
            repo.department_schema,
            repo.settings_schema,
            repo.org_chart_schema,
        ]

    async def validate_structure(self) -> List[SheetStructureResult]:
        """Check every required tab; stops early when the store is not configured."""
        client = self.repository.client
        if not client.is_configured:
            return [SheetStructureResult(
                sheet="Connection",
                status=StructureStatus.ERROR,
                message="Google Sheets is not configured",
                details="Configure the connection before validating the spreadsheet",
            )]

        results = []
        for schema in self.required_sheets:
            results.append(await self._validate_sheet(schema))
        return results

    async def _validate_sheet(self, schema: SheetSchema) -> SheetStructureResult:
        try:
            values = await self.repository.client.read_sheet(schema.sheet)
        except SheetsError as e:
            return SheetStructureResult(
                sheet=schema.sheet,
                status=StructureStatus.ERROR,
                message="Could not read tab",
                details=f"Error: {e.message}",
            )

        headers = schema.header_row()

        if not values:
            return SheetStructureResult(
                sheet=schema.sheet,
                status=StructureStatus.ERROR,
                message="Tab is empty or missing",
                details=f"Create the tab \"{schema.sheet}\" with the headers: {', '.join(headers)}",
            )

        if len(values) == 1:
            return SheetStructureResult(
                sheet=schema.sheet,
                status=StructureStatus.WARNING,
                message="Tab has no data rows",
                details=f"Add at least one data row to \"{schema.sheet}\"",
            )

        missing = schema.missing_headers(values[0])
        if missing:
            return SheetStructureResult(
                sheet=schema.sheet,
                status=StructureStatus.WARNING,
                message="Columns missing",
                details=f"Missing columns: {', '.join(missing)}",
            )

        return SheetStructureResult(
            sheet=schema.sheet,
            status=StructureStatus.SUCCESS,
            message=f"Tab configured correctly ({len(values) - 1} records)",
        )
