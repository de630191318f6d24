"""Admin API endpoints for spreadsheet structure, site settings and backups."""

from typing import Annotated, Any, Dict, List

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from orgchart.data.connection import get_repository
from orgchart.data.org_repository import OrgRepository
from orgchart.schemas.records import SiteSettings, SiteSettingsUpdate
from orgchart.services.backup_service import BackupService, BackupValidation, RestoreSummary
from orgchart.services.error_handling_service import ErrorHandlingService
from orgchart.services.structure_service import (
    SheetStructureResult,
    StructureStatus,
    StructureValidator,
)


# =============================================================================
# Response Models
# =============================================================================

class StructureResponse(BaseModel):
    """Per-tab structure check results."""

    results: List[SheetStructureResult]
    is_valid: bool


# =============================================================================
# Dependencies
# =============================================================================

def get_structure_validator(
    repository: Annotated[OrgRepository, Depends(get_repository)],
) -> StructureValidator:
    return StructureValidator(repository)


def get_backup_service(
    repository: Annotated[OrgRepository, Depends(get_repository)],
) -> BackupService:
    """Get backup service instance."""
    return BackupService(repository)


# =============================================================================
# Router Setup
# =============================================================================

admin_sheets_router = APIRouter(
    prefix="/api",
    tags=["Admin"],
)


# =============================================================================
# Endpoints
# =============================================================================

@admin_sheets_router.get(
    "/sheets/structure",
    response_model=StructureResponse,
    summary="Validate Spreadsheet Structure",
)
async def validate_structure(
    validator: Annotated[StructureValidator, Depends(get_structure_validator)],
) -> StructureResponse:
    results = await validator.validate_structure()
    return StructureResponse(
        results=results,
        is_valid=all(r.status != StructureStatus.ERROR for r in results),
    )


@admin_sheets_router.get("/settings", response_model=SiteSettings, summary="Get Site Settings")
async def get_site_settings(
    repository: Annotated[OrgRepository, Depends(get_repository)],
) -> SiteSettings:
    return await repository.get_site_settings()


@admin_sheets_router.put("/settings", response_model=SiteSettings, summary="Update Site Settings")
async def update_site_settings(
    update: SiteSettingsUpdate,
    repository: Annotated[OrgRepository, Depends(get_repository)],
) -> SiteSettings:
    """Merge the provided fields into the stored settings."""
    return await repository.update_site_settings(update)


@admin_sheets_router.get("/backup", summary="Download Backup")
async def download_backup(
    service: Annotated[BackupService, Depends(get_backup_service)],
) -> JSONResponse:
    """Full backup as a JSON attachment."""
    backup = await service.create_backup()
    return JSONResponse(
        content=backup.model_dump(mode="json"),
        headers={"Content-Disposition": f'attachment; filename="{backup.filename}"'},
    )


@admin_sheets_router.post(
    "/backup/validate",
    response_model=BackupValidation,
    summary="Validate Backup",
)
async def validate_backup(
    service: Annotated[BackupService, Depends(get_backup_service)],
    payload: Annotated[Any, Body()],
) -> BackupValidation:
    return service.validate_backup(payload)


@admin_sheets_router.post(
    "/backup/restore",
    response_model=RestoreSummary,
    summary="Restore Backup",
    description="Overwrite the spreadsheet with the contents of a backup.",
)
async def restore_backup(
    service: Annotated[BackupService, Depends(get_backup_service)],
    payload: Annotated[Dict[str, Any], Body()],
) -> RestoreSummary:
    return await service.restore_backup(payload)


@admin_sheets_router.get("/errors/recent", summary="Recent Backend Errors")
async def list_recent_errors(request: Request) -> Dict[str, Any]:
    """Spreadsheet failures recorded during the last hour."""
    errors: ErrorHandlingService = request.app.state.error_service
    recent = errors.recent_errors()
    return {
        "data": [
            {**error.to_dict(), "retryable": errors.is_retryable(error)}
            for error in recent
        ],
        "total": len(recent),
    }
