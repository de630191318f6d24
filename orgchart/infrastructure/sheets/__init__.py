"""Google Sheets infrastructure module."""

from orgchart.infrastructure.sheets.sheets_client import (
    SheetsClient,
    SheetValues,
)

from orgchart.infrastructure.sheets.row_schema import (
    ColumnDef,
    ColumnKind,
    SheetSchema,
    SheetSchemaError,
    department_schema,
    employee_schema,
    org_chart_schema,
    settings_schema,
)

__all__ = [
    # Client
    "SheetsClient",
    "SheetValues",
    # Row schema
    "ColumnDef",
    "ColumnKind",
    "SheetSchema",
    "SheetSchemaError",
    "department_schema",
    "employee_schema",
    "org_chart_schema",
    "settings_schema",
]
