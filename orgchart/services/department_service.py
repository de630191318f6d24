"""Department membership joins."""

from typing import List, Optional, Sequence

from pydantic import BaseModel, Field

from orgchart.schemas.records import Department, Employee


class DepartmentWithMembers(BaseModel):
    """A department together with the employees joined to it."""

    department: Department
    employees: List[Employee] = Field(default_factory=list)
    employee_count: int = 0


def belongs_to(employee: Employee, department: Department) -> bool:
    """
    Whether an employee is a member of a department.

    An explicit ``department_id`` wins; stored rows only carry the
    department name, so those fall back to exact name equality.
    """
    if employee.department_id:
        return employee.department_id == department.id
    return bool(employee.department) and employee.department == department.name


def department_members(
    department: Department,
    employees: Sequence[Employee],
) -> List[Employee]:
    """Employees joined to a department."""
    return [employee for employee in employees if belongs_to(employee, department)]


def departments_with_members(
    departments: Sequence[Department],
    employees: Sequence[Employee],
) -> List[DepartmentWithMembers]:
    """Join every department to its members."""
    joined = []
    for department in departments:
        members = department_members(department, employees)
        joined.append(DepartmentWithMembers(
            department=department,
            employees=members,
            employee_count=len(members),
        ))
    return joined


def employee_department(
    employee: Employee,
    departments: Sequence[Department],
) -> Optional[Department]:
    """The department an employee points at, or None for a dangling reference."""
    for department in departments:
        if belongs_to(employee, department):
            return department
    return None
