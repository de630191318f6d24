"""Column schemas mapping spreadsheet rows to record dictionaries."""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from orgchart.utils.errors import ValidationError

logger = logging.getLogger(__name__)


class ColumnKind(str, Enum):
    """How a cell is decoded and encoded."""

    TEXT = "text"
    FLAG = "flag"
    JSON = "json"


class SheetSchemaError(ValidationError):
    """A sheet is missing a column the schema requires."""

    error_code: str = "sheet_schema_error"
    message: str = "Sheet does not match the expected columns"


@dataclass(frozen=True)
class ColumnDef:
    """A single typed column."""

    field: str
    header: str
    kind: ColumnKind = ColumnKind.TEXT
    default: Any = ""
    required: bool = False
    aliases: Sequence[str] = ()

    def matches(self, header: str) -> bool:
        wanted = {normalize_header(self.header), normalize_header(self.field)}
        wanted.update(normalize_header(alias) for alias in self.aliases)
        return normalize_header(header) in wanted

    def decode(self, cell: Optional[str]) -> Any:
        """Decode a raw cell, falling back to the default for blanks."""
        if cell is None or str(cell).strip() == "":
            return self._default()

        value = str(cell)
        if self.kind == ColumnKind.FLAG:
            lowered = value.strip().lower()
            if lowered in ("true", "false"):
                return lowered == "true"
            return self.default
        if self.kind == ColumnKind.JSON:
            try:
                decoded = json.loads(value)
            except ValueError:
                logger.warning(f"Column '{self.header}' holds undecodable JSON; keeping raw text")
                return value
            # A JSON string literal keeps its quotes so it still reads as valid JSON
            return value if isinstance(decoded, str) else decoded
        return value

    def encode(self, value: Any) -> str:
        """Encode a record value as a cell string."""
        if value is None:
            value = self._default()
        if value is None:
            return ""
        if self.kind == ColumnKind.FLAG:
            return "true" if value else "false"
        if self.kind == ColumnKind.JSON:
            if isinstance(value, str):
                return value
            return json.dumps(value, ensure_ascii=False)
        return str(value)

    def _default(self) -> Any:
        if callable(self.default):
            return self.default()
        return self.default


@dataclass(frozen=True)
class SheetSchema:
    """Ordered column definitions of one tab."""

    sheet: str
    columns: Sequence[ColumnDef] = field(default_factory=tuple)

    @property
    def range(self) -> str:
        """Column range covered by the schema, e.g. ``A:J``."""
        return f"A:{column_letter(len(self.columns) - 1)}"

    def header_row(self) -> List[str]:
        return [column.header for column in self.columns]

    def missing_headers(self, headers: Sequence[str]) -> List[str]:
        """Headers the schema expects that the sheet does not have."""
        return [
            column.header
            for column in self.columns
            if not any(column.matches(header) for header in headers)
        ]

    def locate(self, headers: Sequence[str]) -> Dict[str, Optional[int]]:
        """
        Find each column's position in a header row.

        Raises:
            SheetSchemaError: If a required column is absent
        """
        positions: Dict[str, Optional[int]] = {}
        missing_required = []

        for column in self.columns:
            index = next(
                (i for i, header in enumerate(headers) if column.matches(header)),
                None,
            )
            if index is None and column.required:
                missing_required.append(column.header)
            positions[column.field] = index

        if missing_required:
            raise SheetSchemaError(
                message=f"Sheet '{self.sheet}' is missing required columns: "
                        f"{', '.join(missing_required)}",
                details={"sheet": self.sheet, "missing_columns": missing_required},
            )

        return positions

    def parse(self, values: Sequence[Sequence[str]]) -> List[Dict[str, Any]]:
        """
        Decode data rows into dictionaries keyed by field name.

        Row 0 is the header. Columns are located by header text, so a
        reordered sheet still decodes; blank rows are skipped.
        """
        if len(values) <= 1:
            return []

        positions = self.locate(values[0])
        records = []

        for row in values[1:]:
            if not any(str(cell).strip() for cell in row):
                continue
            record = {}
            for column in self.columns:
                index = positions[column.field]
                cell = row[index] if index is not None and index < len(row) else None
                record[column.field] = column.decode(cell)
            records.append(record)

        return records

    def to_row(self, record: Dict[str, Any]) -> List[str]:
        """Encode a record dictionary in schema column order."""
        return [column.encode(record.get(column.field)) for column in self.columns]

    def to_values(self, records: Sequence[Dict[str, Any]]) -> List[List[str]]:
        """Header row followed by one row per record."""
        return [self.header_row()] + [self.to_row(record) for record in records]


def normalize_header(name: str) -> str:
    """Normalize a header for matching."""
    return str(name).lower().strip().replace("-", "_").replace(" ", "_")


def column_letter(index: int) -> str:
    """Zero-based column index to spreadsheet letters (0 -> A, 26 -> AA)."""
    letters = ""
    index += 1
    while index > 0:
        index, remainder = divmod(index - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


# =============================================================================
# Tab Schemas
# =============================================================================

EMPLOYEE_COLUMNS = (
    ColumnDef("id", "ID", required=True),
    ColumnDef("name", "Nome", aliases=("name",)),
    ColumnDef("position", "Cargo", aliases=("position",)),
    ColumnDef("department", "Departamento", aliases=("department",)),
    ColumnDef("team", "Equipe", aliases=("team",)),
    ColumnDef("description", "Descrição", aliases=("description",)),
    ColumnDef("photo_url", "Foto (URL)", aliases=("photo", "photo url")),
    ColumnDef("is_manager", "É Gerente", ColumnKind.FLAG, default=False, aliases=("is manager",)),
    ColumnDef("parent_id", "ID do Superior", default=None, aliases=("parent id", "manager id")),
    ColumnDef("visible", "Visível", ColumnKind.FLAG, default=True, aliases=("visible",)),
)

DEPARTMENT_COLUMNS = (
    ColumnDef("id", "ID", required=True),
    ColumnDef("name", "Nome", aliases=("name",)),
    ColumnDef("color", "Cor", default="#1f4e78", aliases=("color",)),
    ColumnDef("visible", "Visível", ColumnKind.FLAG, default=True, aliases=("visible",)),
)

ORG_CHART_COLUMNS = (
    ColumnDef("id", "ID", required=True),
    ColumnDef("name", "Nome", aliases=("name",)),
    ColumnDef("type", "Tipo", default="macro", aliases=("type",)),
    ColumnDef("data", "Dados (JSON)", ColumnKind.JSON, default=dict, aliases=("data",)),
    ColumnDef("visible", "Visível", ColumnKind.FLAG, default=True, aliases=("visible",)),
)

SETTINGS_COLUMNS = (
    ColumnDef("key", "Configuração", required=True, aliases=("setting", "key")),
    ColumnDef("value", "Valor", aliases=("value",)),
)


def employee_schema(sheet: str = "Funcionarios") -> SheetSchema:
    return SheetSchema(sheet, EMPLOYEE_COLUMNS)


def department_schema(sheet: str = "Departamentos") -> SheetSchema:
    return SheetSchema(sheet, DEPARTMENT_COLUMNS)


def org_chart_schema(sheet: str = "Organogramas") -> SheetSchema:
    return SheetSchema(sheet, ORG_CHART_COLUMNS)


def settings_schema(sheet: str = "Configuracoes") -> SheetSchema:
    return SheetSchema(sheet, SETTINGS_COLUMNS)
