"""Pydantic models for data integrity reports."""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class IssueType(str, Enum):
    """Kinds of integrity defects."""

    MISSING_DATA = "missing_data"
    INVALID_REFERENCE = "invalid_reference"
    DUPLICATE_ID = "duplicate_id"
    CORRUPTED_DATA = "corrupted_data"


class IssueEntity(str, Enum):
    """Collections an issue can be attached to."""

    EMPLOYEE = "employee"
    DEPARTMENT = "department"
    ORG_CHART = "orgchart"
    SETTINGS = "settings"


class IssueSeverity(str, Enum):
    """Issue severity, lowest first."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class IntegrityIssue(BaseModel):
    """A single structural or referential defect in stored data."""

    type: IssueType = Field(..., description="Kind of defect")
    entity: IssueEntity = Field(..., description="Affected collection")
    entity_id: Optional[str] = Field(default=None, description="Affected record ID")
    field: Optional[str] = Field(default=None, description="Offending attribute")
    message: str = Field(..., description="Short description")
    details: Optional[str] = Field(default=None, description="Longer explanation")
    severity: IssueSeverity = Field(..., description="Issue severity")
    fixable: bool = Field(default=False, description="Whether an automatic fix exists")


class SeveritySummary(BaseModel):
    """Issue counts per severity."""

    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    total: int = 0
    fixable: int = 0


class IntegrityReport(BaseModel):
    """Response for a validation run."""

    issues: List[IntegrityIssue] = Field(default_factory=list)
    summary: SeveritySummary = Field(default_factory=SeveritySummary)
    is_valid: bool = Field(..., description="True when no issues were found")


class FixResult(BaseModel):
    """Response for a single fix attempt."""

    fixed: bool
    issue: IntegrityIssue


class FixAllResult(BaseModel):
    """Response for a fix-all run followed by re-validation."""

    attempted: int
    fixed: int
    remaining: IntegrityReport


def summarize(issues: List[IntegrityIssue]) -> SeveritySummary:
    """Count issues per severity."""
    counts: Dict[str, int] = {severity.value: 0 for severity in IssueSeverity}
    for issue in issues:
        counts[issue.severity.value] += 1
    return SeveritySummary(
        **counts,
        total=len(issues),
        fixable=sum(1 for issue in issues if issue.fixable),
    )
