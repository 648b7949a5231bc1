"""
Pay group membership lookup.

Three generations of membership data coexist. They are consulted in order and
the first source that yields employees wins.
"""

from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.orm import Session

from payroll_admin.models.employee import Employee
from payroll_admin.models.pay_group import EmployeePayGroup, PaygroupEmployee

SOURCE_EMPLOYEE_PAY_GROUPS = "employee_pay_groups"
SOURCE_PAYGROUP_EMPLOYEES = "paygroup_employees"
SOURCE_EMPLOYEE_FIELD = "employees.pay_group_id"


@dataclass(frozen=True)
class MembershipLookup:
    source: str
    employees: tuple[Employee, ...]

    @property
    def employee_ids(self) -> list[str]:
        return [e.id for e in self.employees]

    def __bool__(self) -> bool:
        return bool(self.employees)


MembershipStrategy = Callable[[Session, str, Optional[str]], MembershipLookup]


def _active_employees(db: Session, organization_id: Optional[str]):
    q = db.query(Employee).filter(Employee.status == "active")
    if organization_id is not None:
        q = q.filter(Employee.organization_id == str(organization_id))
    return q


def from_employee_pay_groups(db: Session, pay_group_id: str, organization_id: Optional[str]) -> MembershipLookup:
    rows = (
        _active_employees(db, organization_id)
        .join(EmployeePayGroup, EmployeePayGroup.employee_id == Employee.id)
        .filter(EmployeePayGroup.pay_group_id == str(pay_group_id))
        .filter(EmployeePayGroup.unassigned_on.is_(None))
        .order_by(Employee.created_at.asc(), Employee.id.asc())
        .all()
    )
    return MembershipLookup(SOURCE_EMPLOYEE_PAY_GROUPS, tuple(_unique(rows)))


def from_paygroup_employees(db: Session, pay_group_id: str, organization_id: Optional[str]) -> MembershipLookup:
    rows = (
        _active_employees(db, organization_id)
        .join(PaygroupEmployee, PaygroupEmployee.employee_id == Employee.id)
        .filter(PaygroupEmployee.pay_group_id == str(pay_group_id))
        .filter(PaygroupEmployee.active.is_(True))
        .order_by(Employee.created_at.asc(), Employee.id.asc())
        .all()
    )
    return MembershipLookup(SOURCE_PAYGROUP_EMPLOYEES, tuple(_unique(rows)))


def from_employee_field(db: Session, pay_group_id: str, organization_id: Optional[str]) -> MembershipLookup:
    rows = (
        _active_employees(db, organization_id)
        .filter(Employee.pay_group_id == str(pay_group_id))
        .order_by(Employee.created_at.asc(), Employee.id.asc())
        .all()
    )
    return MembershipLookup(SOURCE_EMPLOYEE_FIELD, tuple(rows))


DEFAULT_STRATEGIES: tuple[MembershipStrategy, ...] = (
    from_employee_pay_groups,
    from_paygroup_employees,
    from_employee_field,
)


def _unique(employees):
    seen = set()
    for e in employees:
        if e.id not in seen:
            seen.add(e.id)
            yield e


def resolve_members(
    db: Session,
    pay_group_id: str,
    organization_id: Optional[str],
    strategies: tuple[MembershipStrategy, ...] = DEFAULT_STRATEGIES,
) -> MembershipLookup:
    lookup = MembershipLookup(SOURCE_EMPLOYEE_PAY_GROUPS, ())
    for strategy in strategies:
        lookup = strategy(db, pay_group_id, organization_id)
        if lookup:
            return lookup
    return lookup
