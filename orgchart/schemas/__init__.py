"""Pydantic schemas for stored records and integrity reports."""

from orgchart.schemas.records import (
    Department,
    Employee,
    NodeType,
    OrgChart,
    OrgNode,
    SiteSettings,
    SiteSettingsUpdate,
)
from orgchart.schemas.integrity import (
    FixAllResult,
    FixResult,
    IntegrityIssue,
    IntegrityReport,
    IssueEntity,
    IssueSeverity,
    IssueType,
    SeveritySummary,
)

__all__ = [
    # Record schemas
    "Department",
    "Employee",
    "NodeType",
    "OrgChart",
    "OrgNode",
    "SiteSettings",
    "SiteSettingsUpdate",
    # Integrity schemas
    "FixAllResult",
    "FixResult",
    "IntegrityIssue",
    "IntegrityReport",
    "IssueEntity",
    "IssueSeverity",
    "IssueType",
    "SeveritySummary",
]
