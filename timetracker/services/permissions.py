import uuid
from typing import Optional, List, Tuple

from sqlalchemy.orm import Session

from ..models.models import User, Employee, ROLE_ADMIN, ROLE_MANAGER, ROLE_EMPLOYEE, USER_ROLES


def is_admin(user: Optional[User]) -> bool:
    return bool(user) and user.role == ROLE_ADMIN


def is_manager_or_admin(user: Optional[User]) -> bool:
    return bool(user) and user.role in (ROLE_ADMIN, ROLE_MANAGER)


def employee_for_user(db: Session, user: User) -> Optional[Employee]:
    return db.query(Employee).filter(Employee.user_id == user.id).first()


def can_manage_employee_entries(db: Session, user: User, employee_id: uuid.UUID) -> bool:
    """Admins and managers act for anyone; employees only for their own record."""
    if is_manager_or_admin(user):
        return True
    own = employee_for_user(db, user)
    return own is not None and own.id == employee_id


def can_create_role(actor: User, role: str) -> bool:
    if role not in USER_ROLES:
        return False
    if is_admin(actor):
        return True
    # Managers may only create plain employees
    return actor.role == ROLE_MANAGER and role == ROLE_EMPLOYEE


def can_be_project_manager(employee: Optional[Employee]) -> bool:
    return employee is not None and employee.user is not None and is_manager_or_admin(employee.user)


def employees_by_name(db: Session) -> List[Employee]:
    return (
        db.query(Employee)
        .join(User, Employee.user_id == User.id)
        .order_by(User.last_name.asc(), User.first_name.asc())
        .all()
    )


def viewable_employee(db: Session, user: User, employee_id: Optional[uuid.UUID] = None) -> Tuple[Optional[Employee], Optional[List[Employee]]]:
    """
    The employee whose data the user may look at, plus the list to choose
    from when the user may pick (managers and admins).
    Managers/admins default to their own record, else the first employee;
    employees always get their own record.
    """
    if not is_manager_or_admin(user):
        return employee_for_user(db, user), None
    everyone = employees_by_name(db)
    if employee_id:
        return next((e for e in everyone if e.id == employee_id), None), everyone
    return employee_for_user(db, user) or (everyone[0] if everyone else None), everyone
