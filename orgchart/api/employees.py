"""API endpoints for employees, departments and the company org chart."""

import logging
import uuid
from typing import Annotated, Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from orgchart.config.settings import get_settings
from orgchart.data.connection import get_repository
from orgchart.data.org_repository import OrgRepository
from orgchart.schemas.records import DEFAULT_DEPARTMENT_COLOR, Department, Employee
from orgchart.services.department_service import DepartmentWithMembers, departments_with_members
from orgchart.services.hierarchy_service import (
    HierarchyNode,
    build_forest,
    possible_parents,
    visible_only,
)
from orgchart.utils.errors import (
    ValidationError,
    create_duplicate_error,
    create_not_found_error,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Request Models
# =============================================================================

class EmployeeCreateRequest(BaseModel):
    """Request body for adding an employee."""

    id: Optional[str] = Field(default=None, description="Generated when omitted")
    name: str = Field(..., min_length=1)
    position: str = ""
    department: str = ""
    team: str = ""
    description: str = ""
    photo_url: str = ""
    is_manager: bool = False
    parent_id: Optional[str] = None
    visible: bool = True


class EmployeeUpdateRequest(BaseModel):
    """Partial update of an employee; omitted fields are kept."""

    name: Optional[str] = None
    position: Optional[str] = None
    department: Optional[str] = None
    team: Optional[str] = None
    description: Optional[str] = None
    photo_url: Optional[str] = None
    is_manager: Optional[bool] = None
    parent_id: Optional[str] = None
    clear_parent: bool = Field(default=False, description="Make the employee a root")
    visible: Optional[bool] = None


class DepartmentCreateRequest(BaseModel):
    """Request body for adding a department."""

    id: Optional[str] = None
    name: str = Field(..., min_length=1)
    color: str = DEFAULT_DEPARTMENT_COLOR
    visible: bool = True


# =============================================================================
# Response Models
# =============================================================================

class EmployeeListResponse(BaseModel):
    data: List[Employee]
    total: int


class EmployeeResponse(BaseModel):
    data: Employee
    message: Optional[str] = None


class DepartmentListResponse(BaseModel):
    data: List[DepartmentWithMembers]
    total: int


class DepartmentResponse(BaseModel):
    data: Department
    message: Optional[str] = None


class HierarchyTreeResponse(BaseModel):
    """Nested hierarchy for rendering."""

    roots: List[Dict[str, Any]] = Field(default_factory=list)
    total_nodes: int = 0


# =============================================================================
# Helpers
# =============================================================================

def ensure_valid_parent(employees: List[Employee], employee_id: str, parent_id: Optional[str]) -> None:
    """Reject unknown managers and reporting lines that would form a cycle."""
    if not parent_id:
        return
    if not any(e.id == parent_id for e in employees):
        raise create_not_found_error("Manager", parent_id)

    max_depth = get_settings().hierarchy.max_walk_depth
    allowed = {e.id for e in possible_parents(employees, employee_id, max_depth)}
    if parent_id not in allowed:
        raise ValidationError(
            message="An employee cannot report to themselves or to one of their reports",
            details={"employee_id": employee_id, "parent_id": parent_id},
        )


# =============================================================================
# Router Setup
# =============================================================================

employees_router = APIRouter(
    prefix="/api",
    tags=["Employees"],
)


# =============================================================================
# Employee Endpoints
# =============================================================================

@employees_router.get(
    "/employees",
    response_model=EmployeeListResponse,
    summary="List Employees",
)
async def list_employees(
    repository: Annotated[OrgRepository, Depends(get_repository)],
) -> EmployeeListResponse:
    employees = await repository.get_employees()
    return EmployeeListResponse(data=employees, total=len(employees))


@employees_router.post(
    "/employees",
    response_model=EmployeeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Employee",
)
async def create_employee(
    request: EmployeeCreateRequest,
    repository: Annotated[OrgRepository, Depends(get_repository)],
) -> EmployeeResponse:
    """
    Add an employee.

    - Rejects duplicate IDs with 409
    - Rejects a manager that does not exist or would close a reporting cycle
    """
    employees = await repository.get_employees()
    employee_id = request.id or str(uuid.uuid4())

    if any(e.id == employee_id for e in employees):
        raise create_duplicate_error("Employee", "id", employee_id)

    employee = Employee(**request.model_dump(exclude={"id"}), id=employee_id)
    ensure_valid_parent(employees + [employee], employee_id, employee.parent_id)

    await repository.add_employee(employee)
    return EmployeeResponse(data=employee, message="Employee created")


@employees_router.put(
    "/employees/{employee_id}",
    response_model=EmployeeResponse,
    summary="Update Employee",
)
async def update_employee(
    employee_id: str,
    request: EmployeeUpdateRequest,
    repository: Annotated[OrgRepository, Depends(get_repository)],
) -> EmployeeResponse:
    employees = await repository.get_employees()
    current = next((e for e in employees if e.id == employee_id), None)
    if current is None:
        raise create_not_found_error("Employee", employee_id)

    changes = request.model_dump(exclude_none=True, exclude={"clear_parent"})
    if request.clear_parent:
        changes["parent_id"] = None
    elif "parent_id" in changes:
        ensure_valid_parent(employees, employee_id, changes["parent_id"])

    updated = current.model_copy(update=changes)
    await repository.update_employee(updated)
    return EmployeeResponse(data=updated, message="Employee updated")


@employees_router.get(
    "/org-chart",
    response_model=HierarchyTreeResponse,
    summary="Company Org Chart",
    description="Employee reporting hierarchy as a forest.",
)
async def get_company_org_chart(
    repository: Annotated[OrgRepository, Depends(get_repository)],
    include_hidden: Annotated[bool, Query()] = False,
) -> HierarchyTreeResponse:
    """
    Build the employee forest.

    Hidden employees are dropped before building, so their reports
    surface as roots.
    """
    employees = await repository.get_employees()
    nodes = [HierarchyNode.from_employee(e) for e in employees]
    if not include_hidden:
        nodes = visible_only(nodes)

    forest = build_forest(nodes)
    return HierarchyTreeResponse(roots=forest.to_tree(), total_nodes=len(forest))


# =============================================================================
# Department Endpoints
# =============================================================================

@employees_router.get(
    "/departments",
    response_model=DepartmentListResponse,
    summary="List Departments",
    description="Departments with their members joined from the employee list.",
)
async def list_departments(
    repository: Annotated[OrgRepository, Depends(get_repository)],
) -> DepartmentListResponse:
    departments = await repository.get_departments()
    employees = await repository.get_employees()
    joined = departments_with_members(departments, employees)
    return DepartmentListResponse(data=joined, total=len(joined))


@employees_router.post(
    "/departments",
    response_model=DepartmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Department",
)
async def create_department(
    request: DepartmentCreateRequest,
    repository: Annotated[OrgRepository, Depends(get_repository)],
) -> DepartmentResponse:
    departments = await repository.get_departments()
    department_id = request.id or str(uuid.uuid4())

    if any(d.id == department_id for d in departments):
        raise create_duplicate_error("Department", "id", department_id)
    if any(d.name == request.name for d in departments):
        raise create_duplicate_error("Department", "name", request.name)

    department = Department(**request.model_dump(exclude={"id"}), id=department_id)
    await repository.add_department(department)
    return DepartmentResponse(data=department, message="Department created")
