"""Employee lookups and approver resolution."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from overtime_workflow.errors import NotFoundError, PermissionDeniedError
from overtime_workflow.models import AccessLevel, Division, Employee


class EmployeeDirectory:
    """Read-only view of the org hierarchy."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, employee_id: UUID) -> Employee | None:
        return await self.session.get(Employee, employee_id)

    async def require(self, employee_id: UUID) -> Employee:
        """Get an employee, raising NotFoundError if unknown."""
        employee = await self.get(employee_id)
        if employee is None:
            raise NotFoundError(f"Employee {employee_id} not found")
        return employee

    async def require_admin(self, actor_id: UUID, *, system_only: bool = False) -> Employee:
        """Get an admin actor, raising PermissionDeniedError for anyone else."""
        actor = await self.require(actor_id)
        allowed = actor.is_system_admin if system_only else actor.is_admin
        if not allowed:
            raise PermissionDeniedError(
                "Only system administrators may perform this operation"
                if system_only
                else "Only administrators may perform this operation"
            )
        return actor

    async def division_head_id(self, employee: Employee) -> UUID | None:
        """Head of the employee's division, unless that is the employee."""
        if employee.division_id is None:
            return None
        division = await self.session.get(Division, employee.division_id)
        if division is None or division.head_id is None or division.head_id == employee.id:
            return None
        return division.head_id

    async def first_admin_id(self) -> UUID | None:
        result = await self.session.execute(
            select(Employee.id)
            .where(Employee.access_level <= int(AccessLevel.HR))
            .order_by(Employee.access_level, Employee.created_at, Employee.id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def determine_approver(self, employee: Employee) -> UUID:
        """First approver for a new request.

        Direct supervisor, then division head, then the first HR/admin.

        Raises:
            NotFoundError: nobody can approve for this employee.
        """
        if employee.supervisor_id is not None and employee.supervisor_id != employee.id:
            return employee.supervisor_id

        head_id = await self.division_head_id(employee)
        if head_id is not None:
            return head_id

        admin_id = await self.first_admin_id()
        if admin_id is not None and admin_id != employee.id:
            return admin_id

        raise NotFoundError(
            "No approver found. Please contact HR to set up your supervisor or division head."
        )
