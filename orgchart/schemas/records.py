"""Pydantic models for the records stored in the backing spreadsheet."""

import json
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

logger = logging.getLogger(__name__)


DEFAULT_DEPARTMENT_COLOR = "#1f4e78"


class NodeType(str, Enum):
    """Position levels of an org chart, highest first."""

    PARTNER = "socio"
    EXECUTIVE_DIRECTOR = "diretor-executivo"
    DIRECTORATE = "diretoria"
    MANAGEMENT = "gerencia"
    COORDINATION = "coordenacao"
    STAFF = "funcionario"

    @property
    def rank(self) -> int:
        """Sort rank; lower ranks render first."""
        return NODE_TYPE_ORDER.index(self)

    @property
    def label(self) -> str:
        return NODE_TYPE_LABELS[self]


NODE_TYPE_ORDER: List[NodeType] = list(NodeType)

NODE_TYPE_LABELS: Dict[NodeType, str] = {
    NodeType.PARTNER: "Sócio",
    NodeType.EXECUTIVE_DIRECTOR: "Diretor Executivo",
    NodeType.DIRECTORATE: "Diretoria",
    NodeType.MANAGEMENT: "Gerência",
    NodeType.COORDINATION: "Coordenação",
    NodeType.STAFF: "Funcionário",
}


class Employee(BaseModel):
    """
    A person shown on the company org chart.

    ``department_id`` is in-memory only: the employee tab has no column for
    it, so records loaded from the sheet always join departments by name.
    Callers that already know the department (imports, other services) can
    set it to bypass the name match.
    """

    id: str = Field(..., description="Employee identifier")
    name: str = Field(default="", description="Display name")
    position: str = Field(default="", description="Job title")
    department: str = Field(default="", description="Department name (joined by name)")
    team: str = Field(default="", description="Team name")
    description: str = Field(default="", description="Free-text description")
    photo_url: str = Field(default="", description="Photo URL")
    is_manager: bool = Field(default=False, description="Whether the employee manages a team")
    parent_id: Optional[str] = Field(default=None, description="Manager employee ID")
    visible: bool = Field(default=True, description="Whether shown on public charts")
    department_id: Optional[str] = Field(
        default=None,
        description="Explicit department ID; in-memory only, not stored in the sheet",
    )


class Department(BaseModel):
    """A department; its members are derived from employees."""

    id: str = Field(..., description="Department identifier")
    name: str = Field(default="", description="Department name")
    color: str = Field(default=DEFAULT_DEPARTMENT_COLOR, description="Hex display color")
    visible: bool = Field(default=True, description="Whether shown on public charts")


class OrgNode(BaseModel):
    """
    A position inside a custom org chart.

    Layout keys written by the editor (``level``, ``x``, ``y``, ``photo``)
    are kept as extra fields so they survive a rewrite.
    """

    id: str = Field(..., description="Node identifier")
    parent_id: Optional[str] = Field(default=None, alias="parentId")
    name: str = Field(default="", description="Display name")
    position: str = Field(default="", description="Position label")
    type: NodeType = Field(default=NodeType.STAFF, description="Position level")
    employee_count: Optional[int] = Field(default=None, alias="employeeCount")
    department: Optional[str] = None
    description: Optional[str] = None

    model_config = {"populate_by_name": True, "extra": "allow"}

    @field_validator("type", mode="before")
    @classmethod
    def unknown_type_is_staff(cls, value: Any) -> Any:
        """Unrecognized levels render as staff."""
        if isinstance(value, NodeType):
            return value
        try:
            return NodeType(value)
        except ValueError:
            return NodeType.STAFF


class OrgChart(BaseModel):
    """A custom org chart layout with its nodes embedded as JSON."""

    id: str = Field(..., description="Chart identifier")
    name: str = Field(default="", description="Chart name")
    type: str = Field(default="macro", description="Chart layout type")
    data: Union[Dict[str, Any], str] = Field(
        default_factory=dict,
        description="Decoded chart data, or the raw cell text when it is not valid JSON",
    )
    visible: bool = Field(default=True, description="Whether shown on public pages")

    @property
    def description(self) -> str:
        data = self.decoded_data()
        return (data or {}).get("description") or ""

    def decoded_data(self) -> Optional[Dict[str, Any]]:
        """Chart data as a dictionary, or None when it cannot be decoded."""
        if isinstance(self.data, dict):
            return self.data
        try:
            decoded = json.loads(self.data)
        except ValueError:
            return None
        return decoded if isinstance(decoded, dict) else None

    def nodes(self) -> List[OrgNode]:
        """Nodes stored in the chart data; malformed entries are skipped."""
        valid, malformed = self.parse_nodes()
        if malformed:
            logger.warning(f"Org chart {self.id} has {malformed} malformed node(s); skipping them")
        return valid

    def parse_nodes(self) -> Tuple[List[OrgNode], int]:
        """
        Validate the stored nodes.

        Returns:
            The nodes that validate, and how many entries did not. A ``nodes``
            value that is not a list counts as one malformed entry.
        """
        data = self.decoded_data()
        if data is None:
            return [], 0

        raw_nodes = data.get("nodes")
        if raw_nodes is None:
            return [], 0
        if not isinstance(raw_nodes, list):
            return [], 1

        valid = []
        malformed = 0
        for raw in raw_nodes:
            if not isinstance(raw, dict):
                malformed += 1
                continue
            try:
                valid.append(OrgNode.model_validate(raw))
            except PydanticValidationError:
                malformed += 1
        return valid, malformed


class SiteSettings(BaseModel):
    """Public site configuration stored as key/value rows."""

    company_name: str = "Cazanga"
    logo: str = ""
    primary_color: str = "#1f4e78"
    secondary_color: str = "#548235"
    intro_text: str = (
        "Explore nossa estrutura organizacional de forma interativa e detalhada."
    )
    carousel_images: List[str] = Field(default_factory=list)


class SiteSettingsUpdate(BaseModel):
    """Partial update of the site settings."""

    company_name: Optional[str] = None
    logo: Optional[str] = None
    primary_color: Optional[str] = None
    secondary_color: Optional[str] = None
    intro_text: Optional[str] = None
    carousel_images: Optional[List[str]] = None
