"""
Backup Service

Exports every collection of the backing spreadsheet as one JSON document
and restores such documents back into the spreadsheet.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Union

from pydantic import BaseModel, Field

from orgchart.data.org_repository import OrgRepository
from orgchart.schemas.records import Department, Employee, OrgChart, SiteSettings
from orgchart.utils.errors import APIError, ValidationError

logger = logging.getLogger(__name__)


BACKUP_VERSION = "2.0"


# =============================================================================
# Models
# =============================================================================

class BackupContents(BaseModel):
    """Collections included in a backup."""

    employees: List[Employee] = Field(default_factory=list)
    departments: List[Department] = Field(default_factory=list)
    site_settings: SiteSettings = Field(default_factory=SiteSettings)
    org_charts: List[OrgChart] = Field(default_factory=list)


class BackupMetadata(BaseModel):
    """Record counts and origin of a backup."""

    total_employees: int = 0
    total_departments: int = 0
    total_org_charts: int = 0
    source: str = "google_sheets"


class BackupData(BaseModel):
    """A full backup document."""

    timestamp: datetime
    version: str = BACKUP_VERSION
    data: BackupContents
    metadata: BackupMetadata

    @property
    def filename(self) -> str:
        """Suggested download name."""
        return f"backup-organograma-{self.timestamp.date().isoformat()}.json"


class BackupValidation(BaseModel):
    """Result of checking a backup document."""

    is_valid: bool
    issues: List[str] = Field(default_factory=list)


class RestoreSummary(BaseModel):
    """Counts of restored records."""

    employees: int = 0
    departments: int = 0
    org_charts: int = 0
    settings_restored: bool = False
    message: str = ""


# =============================================================================
# Backup Service
# =============================================================================

class BackupService:
    """
    Service for exporting and restoring spreadsheet data.

    Provides functionality for:
    - Creating a full backup of every collection
    - Checking a backup document before restoring it
    - Rewriting the spreadsheet from a backup
    """

    def __init__(self, repository: OrgRepository):
        self.repository = repository

    async def create_backup(self) -> BackupData:
        """
        Fetch every collection concurrently into a backup document.

        Raises:
            APIError: If any collection cannot be read
        """
        snapshot = await self.repository.load_snapshot()

        for loaded in (snapshot.employees, snapshot.departments, snapshot.settings, snapshot.org_charts):
            if isinstance(loaded, APIError):
                logger.error(f"Error creating backup: {loaded.message}")
                raise loaded
            if isinstance(loaded, Exception):
                logger.error(f"Error creating backup: {str(loaded)}")
                raise APIError(message=f"Error creating backup: {str(loaded)}")

        backup = BackupData(
            timestamp=datetime.now(timezone.utc),
            data=BackupContents(
                employees=snapshot.employees,
                departments=snapshot.departments,
                site_settings=snapshot.settings,
                org_charts=snapshot.org_charts,
            ),
            metadata=BackupMetadata(
                total_employees=len(snapshot.employees),
                total_departments=len(snapshot.departments),
                total_org_charts=len(snapshot.org_charts),
            ),
        )
        logger.info(f"Created backup {backup.filename}")
        return backup

    def validate_backup(self, payload: Union[str, bytes, Dict[str, Any]]) -> BackupValidation:
        """Check the shape of a backup document without restoring it."""
        if isinstance(payload, (str, bytes)):
            try:
                payload = json.loads(payload)
            except ValueError:
                return BackupValidation(is_valid=False, issues=["Invalid JSON file"])

        if not isinstance(payload, dict):
            return BackupValidation(is_valid=False, issues=["Backup must be a JSON object"])

        issues = []
        if not payload.get("timestamp"):
            issues.append("Timestamp missing")
        if not payload.get("data"):
            issues.append("Data missing")
        if not payload.get("metadata"):
            issues.append("Metadata missing")

        data = payload.get("data")
        if isinstance(data, dict):
            if not isinstance(data.get("employees"), list):
                issues.append("Employee list is invalid")
            if not isinstance(data.get("departments"), list):
                issues.append("Department list is invalid")
            if not data.get("site_settings"):
                issues.append("Site settings missing")

        return BackupValidation(is_valid=not issues, issues=issues)

    async def restore_backup(self, payload: Union[str, bytes, Dict[str, Any]]) -> RestoreSummary:
        """
        Rewrite the spreadsheet from a backup document.

        Empty collections in the backup leave the stored ones untouched.

        Raises:
            ValidationError: If the backup document is malformed
        """
        validation = self.validate_backup(payload)
        if not validation.is_valid:
            raise ValidationError(
                message="Invalid backup file",
                details={"issues": validation.issues},
            )

        if isinstance(payload, (str, bytes)):
            payload = json.loads(payload)
        backup = BackupData.model_validate(payload)
        contents = backup.data

        await self.repository.save_site_settings(contents.site_settings)
        if contents.employees:
            await self.repository.save_employees(contents.employees)
        if contents.departments:
            await self.repository.save_departments(contents.departments)
        if contents.org_charts:
            await self.repository.save_org_charts(contents.org_charts)

        summary = RestoreSummary(
            employees=len(contents.employees),
            departments=len(contents.departments),
            org_charts=len(contents.org_charts),
            settings_restored=True,
            message=(
                f"Backup restored. {len(contents.employees)} employees, "
                f"{len(contents.departments)} departments and "
                f"{len(contents.org_charts)} org charts were restored."
            ),
        )
        logger.info(summary.message)
        return summary
