"""API endpoints for data integrity checks and fixes."""

from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from orgchart.data.connection import get_repository
from orgchart.data.org_repository import OrgRepository
from orgchart.schemas.integrity import FixAllResult, FixResult, IntegrityIssue, IntegrityReport
from orgchart.services.integrity_service import IntegrityValidator


class FixAllRequest(BaseModel):
    """Issues to fix; the current issues are used when omitted."""

    issues: Optional[List[IntegrityIssue]] = Field(default=None)


def get_integrity_validator(
    repository: Annotated[OrgRepository, Depends(get_repository)],
) -> IntegrityValidator:
    """Get integrity validator instance."""
    return IntegrityValidator(repository)


integrity_router = APIRouter(
    prefix="/api/integrity",
    tags=["Data Integrity"],
)


@integrity_router.get(
    "",
    response_model=IntegrityReport,
    summary="Validate Data",
    description="Scan every stored collection for integrity issues.",
)
async def validate_data(
    validator: Annotated[IntegrityValidator, Depends(get_integrity_validator)],
) -> IntegrityReport:
    return await validator.report()


@integrity_router.post(
    "/fix",
    response_model=FixResult,
    summary="Fix Issue",
)
async def fix_issue(
    issue: IntegrityIssue,
    validator: Annotated[IntegrityValidator, Depends(get_integrity_validator)],
) -> FixResult:
    """
    Apply the automatic fix for one issue.

    ``fixed`` is false for non-fixable issues and for fixes that failed.
    """
    fixed = await validator.fix_issue(issue)
    return FixResult(fixed=fixed, issue=issue)


@integrity_router.post(
    "/fix-all",
    response_model=FixAllResult,
    summary="Fix All Issues",
)
async def fix_all_issues(
    validator: Annotated[IntegrityValidator, Depends(get_integrity_validator)],
    request: Optional[FixAllRequest] = None,
) -> FixAllResult:
    issues = request.issues if request else None
    return await validator.fix_all(issues)
