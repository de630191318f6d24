"""Data integrity validation for employees, departments and org charts.

Scans the stored collections for referential and structural defects
(duplicate identifiers, dangling manager and department references,
circular reporting chains, orphaned departments, corrupted chart JSON)
and reports them as IntegrityIssue records. Problems are returned as
data; only transport failures are raised by the layers below, and those
are caught per collection.
"""

import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Set, TypeVar, Union

from orgchart.data.org_repository import OrgRepository
from orgchart.schemas.integrity import (
    FixAllResult,
    IntegrityIssue,
    IntegrityReport,
    IssueEntity,
    IssueSeverity,
    IssueType,
    summarize,
)
from orgchart.schemas.records import Department, Employee, OrgChart
from orgchart.services.department_service import department_members, employee_department
from orgchart.services.hierarchy_service import index_by_id
from orgchart.utils.errors import APIError

logger = logging.getLogger(__name__)

T = TypeVar("T")

EMPTY_CHART_DATA: Dict[str, Any] = {"nodes": [], "connections": []}

ENTITY_LABELS: Dict[IssueEntity, str] = {
    IssueEntity.EMPLOYEE: "employee",
    IssueEntity.DEPARTMENT: "department",
    IssueEntity.ORG_CHART: "org chart",
    IssueEntity.SETTINGS: "settings",
}


# =============================================================================
# Issue Collection
# =============================================================================

@dataclass
class IssueCollector:
    """Accumulates issues in check order."""

    issues: List[IntegrityIssue] = field(default_factory=list)

    def add(
        self,
        type: IssueType,
        entity: IssueEntity,
        message: str,
        severity: IssueSeverity,
        fixable: bool,
        entity_id: Optional[str] = None,
        field: Optional[str] = None,
        details: Optional[str] = None,
    ) -> None:
        """Add an issue to the result."""
        self.issues.append(IntegrityIssue(
            type=type,
            entity=entity,
            entity_id=entity_id,
            field=field,
            message=message,
            details=details,
            severity=severity,
            fixable=fixable,
        ))


def build_report(issues: List[IntegrityIssue]) -> IntegrityReport:
    """Wrap issues with their severity summary."""
    return IntegrityReport(
        issues=issues,
        summary=summarize(issues),
        is_valid=not issues,
    )


# =============================================================================
# Pure Checks
# =============================================================================

def find_reporting_cycles(employees: Sequence[Any]) -> List[List[str]]:
    """
    Every cycle in the manager pointers, self-references included.

    Each cycle is listed once, in parent-walk order. Uses a visited set, so
    it terminates on any input regardless of chain length.
    """
    by_id = index_by_id(employees)
    done: Set[str] = set()
    cycles: List[List[str]] = []

    for employee in employees:
        path: List[str] = []
        on_path: Dict[str, int] = {}
        current: Optional[str] = employee.id

        while current is not None and current in by_id and current not in done:
            if current in on_path:
                cycles.append(path[on_path[current]:])
                break
            on_path[current] = len(path)
            path.append(current)
            current = by_id[current].parent_id or None

        done.update(path)

    return cycles


def check_duplicate_ids(
    collector: IssueCollector,
    records: Sequence[Any],
    entity: IssueEntity,
) -> None:
    """Every repeat of an already-seen ID is a duplicate."""
    seen: Set[str] = set()
    label = ENTITY_LABELS[entity]
    for record in records:
        if record.id in seen:
            collector.add(
                IssueType.DUPLICATE_ID,
                entity,
                f"Duplicate {label} ID: {record.id}",
                IssueSeverity.HIGH,
                fixable=True,
                entity_id=record.id,
                field="id",
                details=f"{label.capitalize()} \"{record.name}\" reuses ID {record.id}",
            )
        seen.add(record.id)


def check_duplicate_department_names(
    collector: IssueCollector,
    departments: Sequence[Department],
) -> None:
    """Department names are a second clash axis, joined to employees by name."""
    seen: Set[str] = set()
    for department in departments:
        if not department.name.strip():
            continue
        if department.name in seen:
            collector.add(
                IssueType.DUPLICATE_ID,
                IssueEntity.DEPARTMENT,
                f"Duplicate department name: {department.name}",
                IssueSeverity.MEDIUM,
                fixable=True,
                entity_id=department.id,
                field="name",
            )
        seen.add(department.name)


def check_missing_names(
    collector: IssueCollector,
    records: Sequence[Any],
    entity: IssueEntity,
) -> None:
    label = ENTITY_LABELS[entity]
    for record in records:
        if not (record.name or "").strip():
            collector.add(
                IssueType.MISSING_DATA,
                entity,
                f"Required {label} name is missing",
                IssueSeverity.MEDIUM,
                fixable=True,
                entity_id=record.id,
                field="name",
                details=f"{label.capitalize()} {record.id} has no name",
            )


def check_dangling_managers(
    collector: IssueCollector,
    employees: Sequence[Employee],
) -> None:
    known_ids = {employee.id for employee in employees}
    for employee in employees:
        if employee.parent_id and employee.parent_id not in known_ids:
            collector.add(
                IssueType.INVALID_REFERENCE,
                IssueEntity.EMPLOYEE,
                "Manager reference does not exist",
                IssueSeverity.MEDIUM,
                fixable=True,
                entity_id=employee.id,
                field="parent_id",
                details=f"Employee \"{employee.name}\" reports to missing employee "
                        f"{employee.parent_id}",
            )


def check_reporting_cycles(
    collector: IssueCollector,
    employees: Sequence[Employee],
) -> None:
    """One issue per cycle, tagged to the member that appears first."""
    position = {}
    for i, employee in enumerate(employees):
        position.setdefault(employee.id, i)

    for cycle in find_reporting_cycles(employees):
        first = min(cycle, key=lambda employee_id: position[employee_id])
        chain = " -> ".join(cycle + [cycle[0]])
        collector.add(
            IssueType.INVALID_REFERENCE,
            IssueEntity.EMPLOYEE,
            "Circular reporting chain",
            IssueSeverity.HIGH,
            fixable=True,
            entity_id=first,
            field="parent_id",
            details=f"Reporting chain loops back on itself: {chain}",
        )


def check_chart_data(
    collector: IssueCollector,
    org_charts: Sequence[OrgChart],
) -> None:
    """Chart data must decode as JSON and every stored node must be well formed."""
    for chart in org_charts:
        if isinstance(chart.data, str):
            try:
                json.loads(chart.data)
            except ValueError:
                collector.add(
                    IssueType.CORRUPTED_DATA,
                    IssueEntity.ORG_CHART,
                    f"Corrupted data in org chart \"{chart.name}\"",
                    IssueSeverity.HIGH,
                    fixable=True,
                    entity_id=chart.id,
                    field="data",
                    details="Invalid JSON in the data column",
                )
                continue

        _, malformed = chart.parse_nodes()
        if malformed:
            collector.add(
                IssueType.CORRUPTED_DATA,
                IssueEntity.ORG_CHART,
                f"Malformed nodes in org chart \"{chart.name}\"",
                IssueSeverity.HIGH,
                fixable=True,
                entity_id=chart.id,
                field="data",
                details=f"{malformed} stored node(s) lack a valid id or are not objects",
            )


def check_department_references(
    collector: IssueCollector,
    employees: Sequence[Employee],
    departments: Sequence[Department],
) -> None:
    for employee in employees:
        if not employee.department and not employee.department_id:
            continue
        if employee_department(employee, departments) is None:
            collector.add(
                IssueType.INVALID_REFERENCE,
                IssueEntity.EMPLOYEE,
                "Department does not exist",
                IssueSeverity.MEDIUM,
                fixable=True,
                entity_id=employee.id,
                field="department",
                details=f"Employee \"{employee.name}\" belongs to missing department "
                        f"\"{employee.department}\"",
            )


def check_orphaned_departments(
    collector: IssueCollector,
    employees: Sequence[Employee],
    departments: Sequence[Department],
) -> None:
    """Informational only; deleting a department is a human decision."""
    for department in departments:
        if not department_members(department, employees):
            collector.add(
                IssueType.MISSING_DATA,
                IssueEntity.DEPARTMENT,
                "Department has no employees",
                IssueSeverity.LOW,
                fixable=False,
                entity_id=department.id,
                field="employees",
                details=f"Department \"{department.name}\" has no employees assigned",
            )


def validate_records(
    employees: Optional[Sequence[Employee]],
    departments: Optional[Sequence[Department]],
    org_charts: Optional[Sequence[OrgChart]],
) -> List[IntegrityIssue]:
    """
    Run every record-level check over already loaded collections.

    A collection passed as None could not be loaded; the checks that need
    it are skipped.
    """
    collector = IssueCollector()

    if employees is not None:
        check_duplicate_ids(collector, employees, IssueEntity.EMPLOYEE)
    if departments is not None:
        check_duplicate_ids(collector, departments, IssueEntity.DEPARTMENT)
    if org_charts is not None:
        check_duplicate_ids(collector, org_charts, IssueEntity.ORG_CHART)

    if departments is not None:
        check_duplicate_department_names(collector, departments)

    if employees is not None:
        check_missing_names(collector, employees, IssueEntity.EMPLOYEE)
    if departments is not None:
        check_missing_names(collector, departments, IssueEntity.DEPARTMENT)
    if org_charts is not None:
        check_missing_names(collector, org_charts, IssueEntity.ORG_CHART)

    if employees is not None:
        check_dangling_managers(collector, employees)
        check_reporting_cycles(collector, employees)

    if org_charts is not None:
        check_chart_data(collector, org_charts)

    if employees is not None and departments is not None:
        check_department_references(collector, employees, departments)
        check_orphaned_departments(collector, employees, departments)
    else:
        collector.add(
            IssueType.CORRUPTED_DATA,
            IssueEntity.SETTINGS,
            "Cross-reference check skipped",
            IssueSeverity.HIGH,
            fixable=False,
            details="Employees and departments must both load to check department references",
        )

    return collector.issues


# =============================================================================
# Validator
# =============================================================================

class IntegrityValidator:
    """
    Validates stored org data and applies targeted fixes.

    Provides functionality for:
    - A connectivity precheck that short-circuits when the store is unreachable
    - Concurrent loading of every collection with per-collection recovery
    - Idempotent fixes that re-read the current data before writing
    """

    def __init__(self, repository: OrgRepository):
        """Initialize with the org data repository."""
        self.repository = repository

    async def validate(self) -> List[IntegrityIssue]:
        """
        Validate every stored collection.

        Returns:
            All detected issues; an empty list means full integrity
        """
        collector = IssueCollector()

        try:
            client = self.repository.client
            if not client.is_configured or not await client.check_connection():
                collector.add(
                    IssueType.MISSING_DATA,
                    IssueEntity.SETTINGS,
                    "Google Sheets is not configured",
                    IssueSeverity.CRITICAL,
                    fixable=True,
                    details="Configure the Google Sheets integration to check data integrity",
                )
                return collector.issues

            snapshot = await self.repository.load_snapshot()

            employees = self._loaded(collector, snapshot.employees, IssueEntity.EMPLOYEE)
            departments = self._loaded(collector, snapshot.departments, IssueEntity.DEPARTMENT)
            org_charts = self._loaded(collector, snapshot.org_charts, IssueEntity.ORG_CHART)

            collector.issues.extend(validate_records(employees, departments, org_charts))

        except Exception as e:
            logger.exception("Data integrity validation failed")
            collector.add(
                IssueType.CORRUPTED_DATA,
                IssueEntity.SETTINGS,
                "Data validation failed",
                IssueSeverity.HIGH,
                fixable=False,
                details=f"Validation failed: {str(e)}",
            )

        logger.info(f"Integrity validation found {len(collector.issues)} issue(s)")
        return collector.issues

    async def report(self) -> IntegrityReport:
        """Validate and summarize."""
        return build_report(await self.validate())

    def _loaded(
        self,
        collector: IssueCollector,
        loaded: Union[List[T], Exception],
        entity: IssueEntity,
    ) -> Optional[List[T]]:
        """Unwrap a snapshot slot, turning a fetch failure into one issue."""
        if not isinstance(loaded, Exception):
            return loaded

        label = ENTITY_LABELS[entity]
        message = loaded.message if isinstance(loaded, APIError) else str(loaded)
        logger.error(f"Could not load {label} data for validation: {message}")
        collector.add(
            IssueType.CORRUPTED_DATA,
            entity,
            f"Could not validate {label} data",
            IssueSeverity.HIGH,
            fixable=False,
            details=message,
        )
        return None

    # =========================================================================
    # Fixes
    # =========================================================================

    async def fix_issue(self, issue: IntegrityIssue) -> bool:
        """
        Apply the targeted fix for an issue.

        Returns:
            True when the issue is resolved (including when it already was);
            False for non-fixable issues and failed fixes
        """
        if not issue.fixable:
            return False

        handlers: Dict[IssueType, Callable[[IntegrityIssue], Awaitable[bool]]] = {
            IssueType.MISSING_DATA: self._fix_missing_data,
            IssueType.INVALID_REFERENCE: self._fix_invalid_reference,
            IssueType.DUPLICATE_ID: self._fix_duplicate_id,
            IssueType.CORRUPTED_DATA: self._fix_corrupted_data,
        }

        try:
            fixed = await handlers[issue.type](issue)
        except APIError as e:
            logger.error(
                f"Error fixing {issue.type.value} on {issue.entity.value} "
                f"{issue.entity_id}: {e.message}"
            )
            return False

        if fixed:
            logger.info(f"Fixed {issue.type.value} on {issue.entity.value} {issue.entity_id}")
        return fixed

    async def fix_all(self, issues: Optional[List[IntegrityIssue]] = None) -> FixAllResult:
        """Fix every fixable issue one at a time, then validate again."""
        if issues is None:
            issues = await self.validate()

        fixable = [issue for issue in issues if issue.fixable]
        fixed = 0
        for issue in fixable:
            if await self.fix_issue(issue):
                fixed += 1

        remaining = await self.validate()
        return FixAllResult(
            attempted=len(fixable),
            fixed=fixed,
            remaining=build_report(remaining),
        )

    async def _fix_missing_data(self, issue: IntegrityIssue) -> bool:
        if issue.entity == IssueEntity.SETTINGS:
            client = self.repository.client
            return client.is_configured and await client.check_connection()

        if issue.field != "name" or not issue.entity_id:
            return False

        placeholder = f"Unnamed {ENTITY_LABELS[issue.entity]} {issue.entity_id}"

        def fill_name(records: List[Any]) -> bool:
            changed = False
            for i, record in enumerate(records):
                if record.id == issue.entity_id and not (record.name or "").strip():
                    records[i] = record.model_copy(update={"name": placeholder})
                    changed = True
            return changed

        return await self._rewrite(issue.entity, fill_name)

    async def _fix_invalid_reference(self, issue: IntegrityIssue) -> bool:
        if issue.entity != IssueEntity.EMPLOYEE or not issue.entity_id:
            return False

        if issue.field == "parent_id":
            def clear_manager(employees: List[Employee]) -> bool:
                known_ids = {employee.id for employee in employees}
                on_cycle = {
                    employee_id
                    for cycle in find_reporting_cycles(employees)
                    for employee_id in cycle
                }
                changed = False
                for i, employee in enumerate(employees):
                    if employee.id != issue.entity_id or not employee.parent_id:
                        continue
                    if employee.parent_id not in known_ids or employee.id in on_cycle:
                        employees[i] = employee.model_copy(update={"parent_id": None})
                        changed = True
                return changed

            return await self._rewrite(IssueEntity.EMPLOYEE, clear_manager)

        if issue.field == "department":
            departments = await self.repository.get_departments()

            def clear_department(employees: List[Employee]) -> bool:
                changed = False
                for i, employee in enumerate(employees):
                    if employee.id != issue.entity_id or not employee.department:
                        continue
                    if employee_department(employee, departments) is None:
                        employees[i] = employee.model_copy(
                            update={"department": "", "department_id": None}
                        )
                        changed = True
                return changed

            return await self._rewrite(IssueEntity.EMPLOYEE, clear_department)

        return False

    async def _fix_duplicate_id(self, issue: IntegrityIssue) -> bool:
        if not issue.entity_id:
            return False

        if issue.field == "name" and issue.entity == IssueEntity.DEPARTMENT:
            return await self._rewrite(IssueEntity.DEPARTMENT, self._renamer(issue.entity_id))

        def regenerate_ids(records: List[Any]) -> bool:
            positions = [i for i, record in enumerate(records) if record.id == issue.entity_id]
            for i in positions[1:]:
                records[i] = records[i].model_copy(update={"id": str(uuid.uuid4())})
            return len(positions) > 1

        return await self._rewrite(issue.entity, regenerate_ids)

    def _renamer(self, department_id: str) -> Callable[[List[Department]], bool]:
        """Suffix every later department sharing the flagged department's name."""
        def rename(departments: List[Department]) -> bool:
            flagged = next((d for d in departments if d.id == department_id), None)
            if flagged is None:
                return False
            name = flagged.name
            taken = {d.name for d in departments}
            positions = [i for i, d in enumerate(departments) if d.name == name]
            suffix = 2
            for i in positions[1:]:
                while f"{name} ({suffix})" in taken:
                    suffix += 1
                new_name = f"{name} ({suffix})"
                taken.add(new_name)
                departments[i] = departments[i].model_copy(update={"name": new_name})
            return len(positions) > 1

        return rename

    async def _fix_corrupted_data(self, issue: IntegrityIssue) -> bool:
        if issue.entity != IssueEntity.ORG_CHART or issue.field != "data" or not issue.entity_id:
            return False

        def reset_data(charts: List[OrgChart]) -> bool:
            changed = False
            for i, chart in enumerate(charts):
                if chart.id != issue.entity_id:
                    continue
                if isinstance(chart.data, str):
                    try:
                        json.loads(chart.data)
                    except ValueError:
                        charts[i] = chart.model_copy(update={"data": dict(EMPTY_CHART_DATA)})
                        changed = True
                        continue

                valid, malformed = chart.parse_nodes()
                data = chart.decoded_data()
                if malformed and data is not None:
                    # Keep the nodes that validate and every other data key
                    nodes = [node.model_dump(by_alias=True, mode="json") for node in valid]
                    charts[i] = chart.model_copy(update={"data": {**data, "nodes": nodes}})
                    changed = True
            return changed

        return await self._rewrite(IssueEntity.ORG_CHART, reset_data)

    async def _rewrite(
        self,
        entity: IssueEntity,
        mutate: Callable[[List[Any]], bool],
    ) -> bool:
        """
        Load a collection, mutate it in place and save it if anything changed.

        An unchanged collection means the issue is already resolved.
        """
        loaders = {
            IssueEntity.EMPLOYEE: (self.repository.get_employees, self.repository.save_employees),
            IssueEntity.DEPARTMENT: (self.repository.get_departments, self.repository.save_departments),
            IssueEntity.ORG_CHART: (self.repository.get_org_charts, self.repository.save_org_charts),
        }
        if entity not in loaders:
            return False

        load, save = loaders[entity]
        records = await load()
        if mutate(records):
            await save(records)
        return True
