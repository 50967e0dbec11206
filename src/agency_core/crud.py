"""CRUD operations for agency records, users and sessions."""
import logging
from collections import defaultdict
from datetime import date, datetime, timedelta
from decimal import Decimal
from functools import lru_cache
from typing import Optional

from pydantic import BaseModel
from sqlalchemy import or_, func
from sqlalchemy.orm import Session

from . import models, schemas
from .config import Settings
from .security import hash_password, verify_password, generate_session_token, hash_token
from .state_machine import validate_transition

logger = logging.getLogger("agency-core.crud")

ROLE_DESCRIPTIONS = {
    models.RoleName.ADMIN: "Full access including user administration and deletes",
    models.RoleName.MANAGER: "Create and update agency records, view financials",
    models.RoleName.CLIENT: "Client portal access",
    models.RoleName.USER: "Read access to agency records",
}

# Checked against for unknown emails so failed logins take the same time
_DUMMY_PASSWORD = "agency-core-timing-dummy"


@lru_cache
def _dummy_password_hash() -> str:
    return hash_password(_DUMMY_PASSWORD)


class ReferenceNotFoundError(ValueError):
    """Raised when a record or a referenced parent record does not exist."""

    def __init__(self, entity: str, record_id: str):
        self.entity = entity
        self.record_id = record_id
        super().__init__(f"{entity} not found: {record_id}")


class DuplicateRecordError(ValueError):
    """Raised when a unique value is already taken."""

    pass


def _require(db: Session, model, record_id: str, entity: str):
    """Load a record by id or raise ReferenceNotFoundError."""
    record = db.query(model).filter(model.id == record_id).first()
    if not record:
        raise ReferenceNotFoundError(entity, record_id)
    return record


def _apply_update(record, update: BaseModel) -> dict:
    """
    Copy explicitly provided fields from an update schema onto a record.

    Raises:
        ValueError: If null is sent for a required column
    """
    changes = update.model_dump(exclude_unset=True)
    columns = record.__table__.columns
    for field, value in changes.items():
        if value is None and field in columns and not columns[field].nullable:
            raise ValueError(f"{field} cannot be null")
    for field, value in changes.items():
        setattr(record, field, value)
    return changes


def _check_dates(start: Optional[date], end: Optional[date]) -> None:
    if start is not None and end is not None and end < start:
        raise ValueError("end_date must be on or after start_date")


def _paginate(query, order_by, skip: int, limit: int) -> tuple[list, int]:
    total = query.count()
    items = query.order_by(order_by).offset(skip).limit(limit).all()
    return items, total


# ============================================================================
# Role & User CRUD Operations
# ============================================================================

def ensure_default_roles(db: Session) -> dict[models.RoleName, models.Role]:
    """
    Create any missing built-in roles.

    Args:
        db: Database session

    Returns:
        Mapping of role name to Role instance
    """
    roles = {}
    created = False
    for role_name in models.RoleName:
        role = db.query(models.Role).filter(models.Role.name == role_name.value).first()
        if not role:
            role = models.Role(name=role_name.value, description=ROLE_DESCRIPTIONS[role_name])
            db.add(role)
            created = True
            logger.info(f"Created role '{role_name.value}'")
        roles[role_name] = role
    if created:
        db.commit()
    return roles


def get_roles(db: Session) -> list[models.Role]:
    """List all roles."""
    return db.query(models.Role).order_by(models.Role.name).all()


def _resolve_roles(db: Session, role_names: list[models.RoleName]) -> list[models.Role]:
    available = ensure_default_roles(db)
    # Preserve order, drop duplicates
    return [available[name] for name in dict.fromkeys(role_names)]


def get_user(db: Session, user_id: str) -> Optional[models.User]:
    """
    Get a user by ID.

    Args:
        db: Database session
        user_id: User id

    Returns:
        User if found, None otherwise
    """
    return db.query(models.User).filter(models.User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    """
    Get a user by email address.

    Args:
        db: Database session
        email: Email address (case-insensitive)

    Returns:
        User if found, None otherwise
    """
    return db.query(models.User).filter(models.User.email == email.strip().lower()).first()


def create_user(
    db: Session,
    name: str,
    email: str,
    password: str,
    roles: Optional[list[models.RoleName]] = None,
) -> models.User:
    """
    Create a user with a hashed password and at least one role.

    Args:
        db: Database session
        name: Display name
        email: Email address (stored lowercase, must be unique)
        password: Plain-text password (hashed with bcrypt)
        roles: Role names to assign (defaults to User)

    Returns:
        Created user instance

    Raises:
        DuplicateRecordError: If the email is already registered
        ValueError: If an empty role list is given
    """
    if roles is None:
        roles = [models.RoleName.USER]
    if not roles:
        raise ValueError("A user must have at least one role")

    if get_user_by_email(db, email):
        raise DuplicateRecordError("User with this email already exists")

    user = models.User(
        name=name,
        email=email.strip().lower(),
        password_hash=hash_password(password),
    )
    user.roles = _resolve_roles(db, roles)
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Created user {user.id} ({user.email}) with roles {user.role_names}")
    return user


def list_users(
    db: Session,
    skip: int = 0,
    limit: int = 50,
    search: Optional[str] = None,
    role: Optional[models.RoleName] = None,
) -> tuple[list[models.User], int]:
    """
    List users with optional search and role filter.

    Returns:
        Tuple of (users list, total count)
    """
    query = db.query(models.User)

    if search:
        search_term = f"%{search.lower()}%"
        query = query.filter(
            or_(
                func.lower(models.User.email).like(search_term),
                func.lower(models.User.name).like(search_term),
            )
        )

    if role:
        query = query.filter(models.User.roles.any(models.Role.name == role.value))

    return _paginate(query, models.User.email, skip, limit)


def _ensure_admin_remains(db: Session, user: models.User) -> None:
    """
    Refuse a change that would strip the last active Admin.

    Raises:
        ValueError: If no other active user holds the Admin role
    """
    if not user.is_active or models.RoleName.ADMIN.value not in user.role_names:
        return

    others = (
        db.query(func.count(models.User.id))
        .filter(
            models.User.id != user.id,
            models.User.is_active.is_(True),
            models.User.roles.any(models.Role.name == models.RoleName.ADMIN.value),
        )
        .scalar()
    )
    if not others:
        raise ValueError("At least one active Admin is required")


def update_user(db: Session, user_id: str, update: schemas.UserUpdate) -> Optional[models.User]:
    """
    Update a user's name or activation flag.

    Deactivating a user also revokes their open sessions.

    Raises:
        ValueError: If the last active Admin would be deactivated
    """
    user = get_user(db, user_id)
    if not user:
        return None

    if "is_active" in update.model_fields_set and update.is_active is False:
        _ensure_admin_remains(db, user)

    changes = _apply_update(user, update)
    if changes.get("is_active") is False:
        now = datetime.utcnow()
        for session in user.sessions:
            if session.revoked_at is None:
                session.revoked_at = now

    db.commit()
    db.refresh(user)
    logger.debug(f"Updated user {user_id}: {sorted(changes)}")
    return user


def set_user_roles(db: Session, user_id: str, role_names: list[models.RoleName]) -> Optional[models.User]:
    """
    Replace a user's role set.

    Raises:
        ValueError: If the new role set is empty or drops the last active Admin
    """
    user = get_user(db, user_id)
    if not user:
        return None
    if not role_names:
        raise ValueError("A user must have at least one role")
    if models.RoleName.ADMIN not in role_names:
        _ensure_admin_remains(db, user)

    user.roles = _resolve_roles(db, role_names)
    db.commit()
    db.refresh(user)
    logger.info(f"Set roles for user {user_id}: {user.role_names}")
    return user


def authenticate_user(db: Session, email: str, password: str) -> Optional[models.User]:
    """
    Verify credentials.

    Returns:
        The active user on success, None otherwise
    """
    user = get_user_by_email(db, email)
    if not user:
        verify_password(password, _dummy_password_hash())
        return None
    if not verify_password(password, user.password_hash):
        return None
    if not user.is_active:
        return None
    return user


def bootstrap_admin(db: Session, settings: Settings) -> Optional[models.User]:
    """Create the configured admin account if it does not exist yet."""
    if not settings.bootstrap_admin_email or not settings.bootstrap_admin_password:
        return None

    existing = get_user_by_email(db, settings.bootstrap_admin_email)
    if existing:
        return existing

    return create_user(
        db,
        name=settings.bootstrap_admin_name,
        email=settings.bootstrap_admin_email,
        password=settings.bootstrap_admin_password,
        roles=[models.RoleName.ADMIN],
    )


# ============================================================================
# Session CRUD Operations
# ============================================================================

def create_session(db: Session, user: models.User, ttl_hours: int) -> tuple[str, models.SessionToken]:
    """
    Issue a bearer session for a user.

    Returns:
        Tuple of (plain token, session record). The plain token is not stored.
    """
    token = generate_session_token()
    session = models.SessionToken(
        user_id=user.id,
        token_hash=hash_token(token),
        expires_at=datetime.utcnow() + timedelta(hours=ttl_hours),
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    logger.info(f"Issued session {session.id} for user {user.id}")
    return token, session


def get_active_session(db: Session, token: str) -> Optional[models.SessionToken]:
    """Resolve a bearer token to an active session of an active user."""
    session = (
        db.query(models.SessionToken)
        .filter(models.SessionToken.token_hash == hash_token(token))
        .first()
    )
    if not session or not session.is_active or not session.user.is_active:
        return None

    session.last_used_at = datetime.utcnow()
    db.commit()
    return session


def revoke_session(db: Session, token: str) -> bool:
    """Revoke the session for a bearer token. Returns False if unknown."""
    session = (
        db.query(models.SessionToken)
        .filter(models.SessionToken.token_hash == hash_token(token))
        .first()
    )
    if not session:
        return False
    if session.revoked_at is None:
        session.revoked_at = datetime.utcnow()
        db.commit()
        logger.info(f"Revoked session {session.id}")
    return True


# ============================================================================
# Client CRUD Operations
# ============================================================================

def create_client(db: Session, data: schemas.ClientCreate) -> models.Client:
    """Create a new client."""
    client = models.Client(**data.model_dump())
    db.add(client)
    db.commit()
    db.refresh(client)
    logger.debug(f"Created client {client.id} ({client.name})")
    return client


def get_client(db: Session, client_id: str) -> Optional[models.Client]:
    """Get a client by ID."""
    return db.query(models.Client).filter(models.Client.id == client_id).first()


def get_clients(
    db: Session,
    skip: int = 0,
    limit: int = 100,
    status_filter: Optional[models.ClientStatus] = None,
    search: Optional[str] = None,
) -> tuple[list[models.Client], int]:
    """
    Get clients with optional filtering and pagination.

    Returns:
        Tuple of (clients list, total count)
    """
    query = db.query(models.Client)

    if status_filter:
        query = query.filter(models.Client.status == status_filter)

    if search:
        search_pattern = f"%{search}%"
        query = query.filter(
            or_(
                models.Client.name.ilike(search_pattern),
                models.Client.contact_email.ilike(search_pattern),
            )
        )

    return _paginate(query, models.Client.created_at.desc(), skip, limit)


def update_client(db: Session, client_id: str, update: schemas.ClientUpdate) -> Optional[models.Client]:
    """Update a client. Returns None if not found."""
    client = get_client(db, client_id)
    if not client:
        return None

    _apply_update(client, update)
    db.commit()
    db.refresh(client)
    logger.debug(f"Updated client {client_id}")
    return client


def delete_client(db: Session, client_id: str) -> bool:
    """
    Delete a client and its projects (cascading delete).

    Financial records that referenced the client are kept and detached.
    """
    client = get_client(db, client_id)
    if not client:
        return False

    db.delete(client)
    db.commit()
    logger.debug(f"Deleted client {client_id}")
    return True


# ============================================================================
# Project CRUD Operations
# ============================================================================

def create_project(db: Session, data: schemas.ProjectCreate) -> models.Project:
    """
    Create a new project for an existing client.

    Raises:
        ReferenceNotFoundError: If the client does not exist
    """
    _require(db, models.Client, data.client_id, "Client")

    project = models.Project(**data.model_dump())
    db.add(project)
    db.commit()
    db.refresh(project)
    logger.debug(f"Created project {project.id} ({project.name}) for client {project.client_id}")
    return project


def get_project(db: Session, project_id: str) -> Optional[models.Project]:
    """Get a project by ID."""
    return db.query(models.Project).filter(models.Project.id == project_id).first()


def get_projects(
    db: Session,
    skip: int = 0,
    limit: int = 100,
    client_id: Optional[str] = None,
    status_filter: Optional[models.ProjectStatus] = None,
    search: Optional[str] = None,
) -> tuple[list[models.Project], int]:
    """
    Get projects with optional filtering and pagination.

    Args:
        db: Database session
        skip: Number of records to skip
        limit: Maximum number of records to return
        client_id: Optional client filter
        status_filter: Optional status filter
        search: Optional search in name and description

    Returns:
        Tuple of (projects list, total count)
    """
    query = db.query(models.Project)

    if client_id:
        query = query.filter(models.Project.client_id == client_id)

    if status_filter:
        query = query.filter(models.Project.status == status_filter)

    if search:
        search_pattern = f"%{search}%"
        query = query.filter(
            or_(
                models.Project.name.ilike(search_pattern),
                models.Project.description.ilike(search_pattern),
            )
        )

    return _paginate(query, models.Project.created_at.desc(), skip, limit)


def update_project(db: Session, project_id: str, update: schemas.ProjectUpdate) -> Optional[models.Project]:
    """
    Update a project.

    Raises:
        ReferenceNotFoundError: If a new client_id does not exist
        ValueError: If the resulting date range is inverted
    """
    project = get_project(db, project_id)
    if not project:
        return None

    if update.client_id is not None:
        _require(db, models.Client, update.client_id, "Client")

    start = update.start_date if "start_date" in update.model_fields_set else project.start_date
    end = update.end_date if "end_date" in update.model_fields_set else project.end_date
    _check_dates(start, end)

    _apply_update(project, update)
    db.commit()
    db.refresh(project)
    logger.debug(f"Updated project {project_id}")
    return project


def delete_project(db: Session, project_id: str) -> bool:
    """
    Delete a project with its tasks and allocations.

    Financial records and AI deployments are detached, not deleted.
    """
    project = get_project(db, project_id)
    if not project:
        return False

    db.delete(project)
    db.commit()
    logger.debug(f"Deleted project {project_id}")
    return True


# ============================================================================
# Task CRUD Operations
# ============================================================================

def create_task(db: Session, data: schemas.TaskCreate) -> models.Task:
    """
    Create a task in an existing project.

    Raises:
        ReferenceNotFoundError: If the project or assignee does not exist
    """
    _require(db, models.Project, data.project_id, "Project")
    if data.assigned_to_id:
        _require(db, models.User, data.assigned_to_id, "User")

    task = models.Task(**data.model_dump())
    db.add(task)
    db.commit()
    db.refresh(task)
    logger.info(f"Created task {task.id}: {task.title}")
    return task


def get_task(db: Session, task_id: str) -> Optional[models.Task]:
    """Get a task by ID."""
    return db.query(models.Task).filter(models.Task.id == task_id).first()


def get_tasks(
    db: Session,
    skip: int = 0,
    limit: int = 50,
    project_id: Optional[str] = None,
    assigned_to_id: Optional[str] = None,
    status: Optional[models.TaskStatus] = None,
    priority: Optional[models.TaskPriority] = None,
    overdue_only: bool = False,
) -> tuple[list[models.Task], int]:
    """
    Get tasks with filtering and pagination.

    Tasks are ordered by due date (earliest first, undated last), then creation time.
    """
    query = db.query(models.Task)

    if project_id:
        query = query.filter(models.Task.project_id == project_id)
    if assigned_to_id:
        query = query.filter(models.Task.assigned_to_id == assigned_to_id)
    if status:
        query = query.filter(models.Task.status == status)
    if priority:
        query = query.filter(models.Task.priority == priority)
    if overdue_only:
        query = query.filter(
            models.Task.due_date < date.today(),
            models.Task.status != models.TaskStatus.DONE,
        )

    total = query.count()
    tasks = (
        query.order_by(
            models.Task.due_date.is_(None),
            models.Task.due_date,
            models.Task.created_at.desc(),
        )
        .offset(skip)
        .limit(limit)
        .all()
    )
    return tasks, total


def update_task(db: Session, task_id: str, update: schemas.TaskUpdate) -> Optional[models.Task]:
    """
    Update a task.

    Raises:
        ReferenceNotFoundError: If a new project or assignee does not exist
    """
    task = get_task(db, task_id)
    if not task:
        return None

    if update.project_id is not None:
        _require(db, models.Project, update.project_id, "Project")
    if update.assigned_to_id is not None:
        _require(db, models.User, update.assigned_to_id, "User")

    changes = _apply_update(task, update)
    db.commit()
    db.refresh(task)
    logger.debug(f"Updated task {task_id}: {sorted(changes)}")
    return task


def delete_task(db: Session, task_id: str) -> bool:
    """Delete a task."""
    task = get_task(db, task_id)
    if not task:
        return False

    db.delete(task)
    db.commit()
    logger.debug(f"Deleted task {task_id}")
    return True


# ============================================================================
# Financial Record CRUD Operations
# ============================================================================

def _check_financial_references(db: Session, project_id: Optional[str], client_id: Optional[str]) -> None:
    if project_id:
        _require(db, models.Project, project_id, "Project")
    if client_id:
        _require(db, models.Client, client_id, "Client")


def create_financial_record(db: Session, data: schemas.FinancialRecordCreate) -> models.FinancialRecord:
    """
    Create a financial record.

    Raises:
        ReferenceNotFoundError: If a referenced project or client does not exist
    """
    _check_financial_references(db, data.project_id, data.client_id)

    record = models.FinancialRecord(**data.model_dump())
    db.add(record)
    db.commit()
    db.refresh(record)
    logger.debug(f"Created financial record {record.id} ({record.type.value} {record.amount})")
    return record


def get_financial_record(db: Session, record_id: str) -> Optional[models.FinancialRecord]:
    """Get a financial record by ID."""
    return db.query(models.FinancialRecord).filter(models.FinancialRecord.id == record_id).first()


def get_financial_records(
    db: Session,
    skip: int = 0,
    limit: int = 100,
    project_id: Optional[str] = None,
    client_id: Optional[str] = None,
    record_type: Optional[models.FinancialRecordType] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> tuple[list[models.FinancialRecord], int]:
    """
    Get financial records, most recent first.

    Returns:
        Tuple of (records list, total count)
    """
    query = db.query(models.FinancialRecord)

    if project_id:
        query = query.filter(models.FinancialRecord.project_id == project_id)
    if client_id:
        query = query.filter(models.FinancialRecord.client_id == client_id)
    if record_type:
        query = query.filter(models.FinancialRecord.type == record_type)
    if date_from:
        query = query.filter(models.FinancialRecord.date >= date_from)
    if date_to:
        query = query.filter(models.FinancialRecord.date <= date_to)

    return _paginate(query, models.FinancialRecord.date.desc(), skip, limit)


def update_financial_record(
    db: Session, record_id: str, update: schemas.FinancialRecordUpdate
) -> Optional[models.FinancialRecord]:
    """Update a financial record. Returns None if not found."""
    record = get_financial_record(db, record_id)
    if not record:
        return None

    _check_financial_references(db, update.project_id, update.client_id)

    _apply_update(record, update)
    db.commit()
    db.refresh(record)
    logger.debug(f"Updated financial record {record_id}")
    return record


def delete_financial_record(db: Session, record_id: str) -> bool:
    """Delete a financial record."""
    record = get_financial_record(db, record_id)
    if not record:
        return False

    db.delete(record)
    db.commit()
    logger.debug(f"Deleted financial record {record_id}")
    return True


# ============================================================================
# Resource CRUD Operations
# ============================================================================

def create_resource(db: Session, data: schemas.ResourceCreate) -> models.Resource:
    """
    Register a user as an allocatable resource.

    Raises:
        ReferenceNotFoundError: If the user does not exist
    """
    _require(db, models.User, data.user_id, "User")

    resource = models.Resource(**data.model_dump())
    db.add(resource)
    db.commit()
    db.refresh(resource)
    logger.debug(f"Created resource {resource.id} for user {resource.user_id}")
    return resource


def get_resource(db: Session, resource_id: str) -> Optional[models.Resource]:
    """Get a resource by ID."""
    return db.query(models.Resource).filter(models.Resource.id == resource_id).first()


def get_resources(
    db: Session,
    skip: int = 0,
    limit: int = 100,
    availability: Optional[models.Availability] = None,
    search: Optional[str] = None,
) -> tuple[list[models.Resource], int]:
    """Get resources with optional availability filter and skill search."""
    query = db.query(models.Resource)

    if availability:
        query = query.filter(models.Resource.availability == availability)
    if search:
        query = query.filter(models.Resource.skill_set.ilike(f"%{search}%"))

    return _paginate(query, models.Resource.created_at.desc(), skip, limit)


def update_resource(db: Session, resource_id: str, update: schemas.ResourceUpdate) -> Optional[models.Resource]:
    """Update a resource. Returns None if not found."""
    resource = get_resource(db, resource_id)
    if not resource:
        return None

    _apply_update(resource, update)
    db.commit()
    db.refresh(resource)
    logger.debug(f"Updated resource {resource_id}")
    return resource


def delete_resource(db: Session, resource_id: str) -> bool:
    """Delete a resource and its allocations."""
    resource = get_resource(db, resource_id)
    if not resource:
        return False

    db.delete(resource)
    db.commit()
    logger.debug(f"Deleted resource {resource_id}")
    return True


# ============================================================================
# Resource Allocation CRUD Operations
# ============================================================================

def _covers(allocation: models.ResourceAllocation, day: date) -> bool:
    return allocation.start_date <= day and (allocation.end_date is None or allocation.end_date >= day)


def get_resource_load(db: Session, resource_id: str, on_date: date) -> int:
    """Total allocation percentage of a resource on a given day."""
    allocations = (
        db.query(models.ResourceAllocation)
        .filter(models.ResourceAllocation.resource_id == resource_id)
        .all()
    )
    return sum(a.allocation_percentage for a in allocations if _covers(a, on_date))


def peak_allocation(
    db: Session,
    resource_id: str,
    start_date: date,
    end_date: Optional[date],
    percentage: int,
    exclude_id: Optional[str] = None,
) -> int:
    """
    Peak total allocation of a resource over a date range if a new allocation were added.

    Load only increases where an allocation starts, so checking the range start
    and every overlapping allocation's start date finds the peak.
    """
    query = db.query(models.ResourceAllocation).filter(
        models.ResourceAllocation.resource_id == resource_id,
        or_(
            models.ResourceAllocation.end_date.is_(None),
            models.ResourceAllocation.end_date >= start_date,
        ),
    )
    if end_date is not None:
        query = query.filter(models.ResourceAllocation.start_date <= end_date)
    if exclude_id:
        query = query.filter(models.ResourceAllocation.id != exclude_id)

    overlapping = query.all()
    checkpoints = {start_date} | {a.start_date for a in overlapping if a.start_date > start_date}

    return max(
        percentage + sum(a.allocation_percentage for a in overlapping if _covers(a, day))
        for day in checkpoints
    )


def _check_capacity(
    db: Session,
    resource_id: str,
    start_date: date,
    end_date: Optional[date],
    percentage: int,
    exclude_id: Optional[str] = None,
) -> None:
    peak = peak_allocation(db, resource_id, start_date, end_date, percentage, exclude_id)
    if peak > 100:
        raise ValueError(
            f"Resource {resource_id} would be allocated {peak}% in this period (maximum 100%)"
        )


def create_allocation(db: Session, data: schemas.ResourceAllocationCreate) -> models.ResourceAllocation:
    """
    Allocate a resource to a project.

    Raises:
        ReferenceNotFoundError: If the resource or project does not exist
        ValueError: If the resource would exceed 100% allocation
    """
    _require(db, models.Resource, data.resource_id, "Resource")
    _require(db, models.Project, data.project_id, "Project")
    _check_dates(data.start_date, data.end_date)
    _check_capacity(db, data.resource_id, data.start_date, data.end_date, data.allocation_percentage)

    allocation = models.ResourceAllocation(**data.model_dump())
    db.add(allocation)
    db.commit()
    db.refresh(allocation)
    logger.info(
        f"Allocated resource {allocation.resource_id} to project {allocation.project_id} "
        f"at {allocation.allocation_percentage}%"
    )
    return allocation


def get_allocation(db: Session, allocation_id: str) -> Optional[models.ResourceAllocation]:
    """Get an allocation by ID."""
    return db.query(models.ResourceAllocation).filter(models.ResourceAllocation.id == allocation_id).first()


def get_allocations(
    db: Session,
    skip: int = 0,
    limit: int = 100,
    resource_id: Optional[str] = None,
    project_id: Optional[str] = None,
    active_on: Optional[date] = None,
) -> tuple[list[models.ResourceAllocation], int]:
    """Get allocations, optionally only those covering a given day."""
    query = db.query(models.ResourceAllocation)

    if resource_id:
        query = query.filter(models.ResourceAllocation.resource_id == resource_id)
    if project_id:
        query = query.filter(models.ResourceAllocation.project_id == project_id)
    if active_on:
        query = query.filter(
            models.ResourceAllocation.start_date <= active_on,
            or_(
                models.ResourceAllocation.end_date.is_(None),
                models.ResourceAllocation.end_date >= active_on,
            ),
        )

    return _paginate(query, models.ResourceAllocation.start_date.desc(), skip, limit)


def update_allocation(
    db: Session, allocation_id: str, update: schemas.ResourceAllocationUpdate
) -> Optional[models.ResourceAllocation]:
    """
    Update an allocation's percentage or dates.

    Raises:
        ValueError: If the dates are inverted or the resource would be over-allocated
    """
    allocation = get_allocation(db, allocation_id)
    if not allocation:
        return None

    fields = update.model_fields_set
    for field in ("start_date", "allocation_percentage"):
        if field in fields and getattr(update, field) is None:
            raise ValueError(f"{field} cannot be null")

    start = update.start_date if "start_date" in fields else allocation.start_date
    end = update.end_date if "end_date" in fields else allocation.end_date
    percentage = (
        update.allocation_percentage if "allocation_percentage" in fields else allocation.allocation_percentage
    )

    _check_dates(start, end)
    _check_capacity(db, allocation.resource_id, start, end, percentage, exclude_id=allocation.id)

    allocation.start_date = start
    allocation.end_date = end
    allocation.allocation_percentage = percentage
    db.commit()
    db.refresh(allocation)
    logger.debug(f"Updated allocation {allocation_id}")
    return allocation


def delete_allocation(db: Session, allocation_id: str) -> bool:
    """Delete an allocation."""
    allocation = get_allocation(db, allocation_id)
    if not allocation:
        return False

    db.delete(allocation)
    db.commit()
    logger.debug(f"Deleted allocation {allocation_id}")
    return True


# ============================================================================
# AI Model CRUD Operations
# ============================================================================

def create_ai_model(db: Session, data: schemas.AIModelCreate) -> models.AIModel:
    """Create an AI model catalogue entry."""
    ai_model = models.AIModel(**data.model_dump())
    db.add(ai_model)
    db.commit()
    db.refresh(ai_model)
    logger.info(f"Created AI model {ai_model.id} ({ai_model.name} v{ai_model.version})")
    return ai_model


def get_ai_model(db: Session, model_id: str) -> Optional[models.AIModel]:
    """Get an AI model by ID."""
    return db.query(models.AIModel).filter(models.AIModel.id == model_id).first()


def get_ai_models(
    db: Session,
    skip: int = 0,
    limit: int = 100,
    status_filter: Optional[models.ModelStatus] = None,
    provider: Optional[str] = None,
) -> tuple[list[models.AIModel], int]:
    """Get AI models with optional status and provider filters."""
    query = db.query(models.AIModel)

    if status_filter:
        query = query.filter(models.AIModel.status == status_filter)
    if provider:
        query = query.filter(models.AIModel.provider.ilike(provider))

    return _paginate(query, models.AIModel.created_at.desc(), skip, limit)


def update_ai_model(db: Session, model_id: str, update: schemas.AIModelUpdate) -> Optional[models.AIModel]:
    """Update an AI model. Returns None if not found."""
    ai_model = get_ai_model(db, model_id)
    if not ai_model:
        return None

    _apply_update(ai_model, update)
    db.commit()
    db.refresh(ai_model)
    logger.debug(f"Updated AI model {model_id}")
    return ai_model


def delete_ai_model(db: Session, model_id: str) -> bool:
    """Delete an AI model and its deployments."""
    ai_model = get_ai_model(db, model_id)
    if not ai_model:
        return False

    db.delete(ai_model)
    db.commit()
    logger.debug(f"Deleted AI model {model_id}")
    return True


# ============================================================================
# AI Deployment CRUD Operations
# ============================================================================

def create_ai_deployment(db: Session, data: schemas.AIDeploymentCreate) -> models.AIDeployment:
    """
    Deploy an AI model, optionally bound to a project.

    Raises:
        ReferenceNotFoundError: If the model or project does not exist
    """
    _require(db, models.AIModel, data.model_id, "AI model")
    if data.project_id:
        _require(db, models.Project, data.project_id, "Project")

    deployment = models.AIDeployment(**data.model_dump())
    db.add(deployment)
    db.commit()
    db.refresh(deployment)
    logger.info(f"Created AI deployment {deployment.id} of model {deployment.model_id}")
    return deployment


def get_ai_deployment(db: Session, deployment_id: str) -> Optional[models.AIDeployment]:
    """Get an AI deployment by ID."""
    return db.query(models.AIDeployment).filter(models.AIDeployment.id == deployment_id).first()


def get_ai_deployments(
    db: Session,
    skip: int = 0,
    limit: int = 100,
    project_id: Optional[str] = None,
    model_id: Optional[str] = None,
    status_filter: Optional[models.DeploymentStatus] = None,
) -> tuple[list[models.AIDeployment], int]:
    """Get AI deployments filtered by project and/or model, newest first."""
    query = db.query(models.AIDeployment)

    if project_id:
        query = query.filter(models.AIDeployment.project_id == project_id)
    if model_id:
        query = query.filter(models.AIDeployment.model_id == model_id)
    if status_filter:
        query = query.filter(models.AIDeployment.status == status_filter)

    return _paginate(query, models.AIDeployment.deployment_date.desc(), skip, limit)


def update_ai_deployment(
    db: Session, deployment_id: str, update: schemas.AIDeploymentUpdate
) -> Optional[models.AIDeployment]:
    """
    Update an AI deployment.

    Raises:
        ReferenceNotFoundError: If a new project does not exist
        StateTransitionError: If the status change is not allowed
    """
    deployment = get_ai_deployment(db, deployment_id)
    if not deployment:
        return None

    if update.project_id:
        _require(db, models.Project, update.project_id, "Project")
    if update.status is not None:
        validate_transition(deployment.status, update.status)

    _apply_update(deployment, update)
    db.commit()
    db.refresh(deployment)
    logger.debug(f"Updated AI deployment {deployment_id}")
    return deployment


def delete_ai_deployment(db: Session, deployment_id: str) -> bool:
    """Delete an AI deployment."""
    deployment = get_ai_deployment(db, deployment_id)
    if not deployment:
        return False

    db.delete(deployment)
    db.commit()
    logger.debug(f"Deleted AI deployment {deployment_id}")
    return True


# ============================================================================
# Dashboard
# ============================================================================

def _count_by(db: Session, column, enum_cls) -> dict[str, int]:
    counts = {member.value: 0 for member in enum_cls}
    for value, count in db.query(column, func.count()).group_by(column).all():
        counts[value.value] = count
    return counts


def get_dashboard_summary(
    db: Session, today: Optional[date] = None, include_financials: bool = True
) -> dict:
    """
    Aggregate the agency overview.

    Args:
        db: Database session
        today: Day used for resource utilization (defaults to today)
        include_financials: Whether to aggregate monthly financials; an
            empty list is returned in their place otherwise

    Returns:
        Dict matching schemas.DashboardSummary
    """
    today = today or date.today()

    total_clients = db.query(func.count(models.Client.id)).scalar()
    active_clients = (
        db.query(func.count(models.Client.id))
        .filter(models.Client.status == models.ClientStatus.ACTIVE)
        .scalar()
    )

    # Month bucketing in Python keeps this portable across databases
    months: dict[str, dict[str, Decimal]] = defaultdict(
        lambda: {"revenue": Decimal("0"), "expenses": Decimal("0")}
    )
    records = db.query(models.FinancialRecord).all() if include_financials else []
    for record in records:
        bucket = months[record.date.strftime("%Y-%m")]
        if record.type == models.FinancialRecordType.REVENUE:
            bucket["revenue"] += record.amount
        else:
            bucket["expenses"] += record.amount

    monthly_financials = [
        {
            "month": month,
            "revenue": totals["revenue"],
            "expenses": totals["expenses"],
            "profit": totals["revenue"] - totals["expenses"],
        }
        for month, totals in sorted(months.items())
    ]

    resource_utilization = []
    for resource in db.query(models.Resource).order_by(models.Resource.created_at).all():
        allocated = sum(a.allocation_percentage for a in resource.allocations if _covers(a, today))
        resource_utilization.append({
            "resource_id": resource.id,
            "name": resource.user.name if resource.user else None,
            "allocated_percentage": allocated,
            "available_percentage": max(0, 100 - allocated),
        })

    return {
        "total_clients": total_clients,
        "active_clients": active_clients,
        "projects_by_status": _count_by(db, models.Project.status, models.ProjectStatus),
        "deployments_by_status": _count_by(db, models.AIDeployment.status, models.DeploymentStatus),
        "monthly_financials": monthly_financials,
        "resource_utilization": resource_utilization,
    }
