"""Org chart repository backed by the spreadsheet proxy."""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from orgchart.config.settings import SheetsSettings
from orgchart.infrastructure.sheets.row_schema import (
    department_schema,
    employee_schema,
    org_chart_schema,
    settings_schema,
)
from orgchart.infrastructure.sheets.sheets_client import SheetsClient
from orgchart.schemas.records import (
    Department,
    Employee,
    OrgChart,
    SiteSettings,
    SiteSettingsUpdate,
)
from orgchart.utils.errors import SheetsError, create_not_found_error

logger = logging.getLogger(__name__)


# Settings keys as stored in the sheet, mapped to model fields
SETTINGS_KEYS: Dict[str, str] = {
    "companyName": "company_name",
    "logo": "logo",
    "primaryColor": "primary_color",
    "secondaryColor": "secondary_color",
    "introText": "intro_text",
    "carouselImages": "carousel_images",
}


@dataclass
class DataSnapshot:
    """
    All collections fetched for one validation or backup pass.

    Each slot holds either the collection or the exception raised while
    fetching it, so one failing tab does not hide the others.
    """

    employees: Union[List[Employee], Exception]
    departments: Union[List[Department], Exception]
    settings: Union[SiteSettings, Exception]
    org_charts: Union[List[OrgChart], Exception]


class OrgRepository:
    """
    Repository for employees, departments, org charts and site settings.

    Every write is a read-modify-write of a whole tab, so callers should
    re-read after mutating rather than trust earlier copies.
    """

    def __init__(self, client: SheetsClient, config: Optional[SheetsSettings] = None):
        """Initialize repository with a sheets client."""
        self.client = client
        self.config = config or client.config
        names = self.config.sheets
        self.employee_schema = employee_schema(names.employees)
        self.department_schema = department_schema(names.departments)
        self.org_chart_schema = org_chart_schema(names.org_charts)
        self.settings_schema = settings_schema(names.settings)

    # =========================================================================
    # Employees
    # =========================================================================

    async def get_employees(self) -> List[Employee]:
        """Load all employees."""
        values = await self.client.read_sheet(self.employee_schema.sheet)
        employees = []
        for index, record in enumerate(self.employee_schema.parse(values)):
            if not record["id"]:
                record["id"] = f"emp-{index}"
            record["parent_id"] = record["parent_id"] or None
            employees.append(Employee(**record))
        return employees

    async def get_employee(self, employee_id: str) -> Employee:
        """Load one employee or raise NotFoundError."""
        for employee in await self.get_employees():
            if employee.id == employee_id:
                return employee
        raise create_not_found_error("Employee", employee_id)

    async def add_employee(self, employee: Employee) -> None:
        """Append an employee row."""
        row = self.employee_schema.to_row(employee.model_dump())
        await self.client.append_sheet(self.employee_schema.sheet, [row])
        logger.info(f"Added employee {employee.id}")

    async def update_employee(self, employee: Employee) -> None:
        """Replace the stored row of an existing employee."""
        employees = await self.get_employees()
        index = next((i for i, e in enumerate(employees) if e.id == employee.id), None)
        if index is None:
            raise create_not_found_error("Employee", employee.id)
        employees[index] = employee
        await self.save_employees(employees)

    async def save_employees(self, employees: List[Employee]) -> None:
        """Rewrite the whole employee tab."""
        values = self.employee_schema.to_values([e.model_dump() for e in employees])
        await self.client.write_sheet(
            self.employee_schema.sheet, values, self.employee_schema.range
        )

    # =========================================================================
    # Departments
    # =========================================================================

    async def get_departments(self) -> List[Department]:
        """Load all departments."""
        values = await self.client.read_sheet(self.department_schema.sheet)
        return [Department(**record) for record in self.department_schema.parse(values)]

    async def add_department(self, department: Department) -> None:
        """Append a department row."""
        row = self.department_schema.to_row(department.model_dump())
        await self.client.append_sheet(self.department_schema.sheet, [row])
        logger.info(f"Added department {department.id}")

    async def save_departments(self, departments: List[Department]) -> None:
        """Rewrite the whole department tab."""
        values = self.department_schema.to_values([d.model_dump() for d in departments])
        await self.client.write_sheet(
            self.department_schema.sheet, values, self.department_schema.range
        )

    # =========================================================================
    # Org Charts
    # =========================================================================

    async def get_org_charts(self) -> List[OrgChart]:
        """Load all custom org charts; undecodable data stays as raw text."""
        values = await self.client.read_sheet(self.org_chart_schema.sheet)
        charts = []
        for record in self.org_chart_schema.parse(values):
            if not isinstance(record["data"], (dict, str)):
                # Valid JSON that is not an object stays as text
                record["data"] = json.dumps(record["data"])
            charts.append(OrgChart(**record))
        return charts

    async def get_org_chart(self, chart_id: str) -> OrgChart:
        """Load one org chart or raise NotFoundError."""
        for chart in await self.get_org_charts():
            if chart.id == chart_id:
                return chart
        raise create_not_found_error("Org chart", chart_id)

    async def add_org_chart(self, chart: OrgChart) -> None:
        """Append an org chart row."""
        row = self.org_chart_schema.to_row(chart.model_dump())
        await self.client.append_sheet(self.org_chart_schema.sheet, [row])
        logger.info(f"Added org chart {chart.id}")

    async def update_org_chart(self, chart: OrgChart) -> None:
        """Replace the stored row of an existing org chart."""
        charts = await self.get_org_charts()
        index = next((i for i, c in enumerate(charts) if c.id == chart.id), None)
        if index is None:
            raise create_not_found_error("Org chart", chart.id)
        charts[index] = chart
        await self.save_org_charts(charts)

    async def save_org_charts(self, charts: List[OrgChart]) -> None:
        """Rewrite the whole org chart tab."""
        values = self.org_chart_schema.to_values([c.model_dump() for c in charts])
        await self.client.write_sheet(
            self.org_chart_schema.sheet, values, self.org_chart_schema.range
        )

    # =========================================================================
    # Site Settings
    # =========================================================================

    async def get_site_settings(self) -> SiteSettings:
        """Load site settings, falling back to defaults when unavailable."""
        try:
            values = await self.client.read_sheet(self.settings_schema.sheet)
            rows = self.settings_schema.parse(values)
        except SheetsError as e:
            logger.error(f"Error getting site settings: {e.message}")
            return SiteSettings()

        stored: Dict[str, Any] = {}
        for row in rows:
            field_name = SETTINGS_KEYS.get(row["key"].strip())
            if field_name is None:
                continue
            value = row["value"]
            if field_name == "carousel_images":
                stored[field_name] = [url.strip() for url in value.split(",") if url.strip()]
            elif value:
                stored[field_name] = value

        return SiteSettings(**stored)

    async def update_site_settings(self, update: SiteSettingsUpdate) -> SiteSettings:
        """Merge a partial update into the stored settings and rewrite the tab."""
        current = await self.get_site_settings()
        merged = current.model_copy(update=update.model_dump(exclude_none=True))
        await self.save_site_settings(merged)
        return merged

    async def save_site_settings(self, settings: SiteSettings) -> None:
        """Rewrite the whole settings tab."""
        records = []
        for key, field_name in SETTINGS_KEYS.items():
            value = getattr(settings, field_name)
            if field_name == "carousel_images":
                value = ", ".join(value)
            records.append({"key": key, "value": value})
        values = self.settings_schema.to_values(records)
        await self.client.write_sheet(
            self.settings_schema.sheet, values, self.settings_schema.range
        )

    # =========================================================================
    # Snapshot
    # =========================================================================

    async def load_snapshot(self) -> DataSnapshot:
        """Fetch every collection concurrently; failures are kept per slot."""
        employees, departments, settings, charts = await asyncio.gather(
            self.get_employees(),
            self.get_departments(),
            self.get_site_settings(),
            self.get_org_charts(),
            return_exceptions=True,
        )
        return DataSnapshot(
            employees=employees,
            departments=departments,
            settings=settings,
            org_charts=charts,
        )
