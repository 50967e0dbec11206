"""SQLAlchemy database models."""
from datetime import datetime
from functools import partial
from uuid import uuid4
import enum

from sqlalchemy import (
    Column,
    String,
    Text,
    Integer,
    Date,
    DateTime,
    Numeric,
    ForeignKey,
    Enum,
    CheckConstraint,
    Boolean,
    Table,
)
from sqlalchemy.orm import declarative_base, relationship

# Base class for all models
Base = declarative_base()


def generate_id(prefix: str) -> str:
    """Generate an opaque record id prefixed by its entity type (e.g. ``client_3f2a...``)."""
    return f"{prefix}_{uuid4().hex}"


def _id_column(prefix: str) -> Column:
    return Column(String(64), primary_key=True, default=partial(generate_id, prefix))


def _enum(enum_cls) -> Enum:
    # Store enum values ("In Progress") instead of names (IN_PROGRESS)
    return Enum(enum_cls, values_callable=lambda obj: [e.value for e in obj])


# Association table for user roles (many-to-many)
user_roles = Table(
    "user_roles",
    Base.metadata,
    Column("user_id", String(64), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", String(64), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("assigned_at", DateTime, nullable=False, default=datetime.utcnow),
)


class RoleName(str, enum.Enum):
    """Built-in role names, ordered from most to least privileged."""

    ADMIN = "Admin"
    MANAGER = "Manager"
    CLIENT = "Client"
    USER = "User"


class ClientStatus(str, enum.Enum):
    """Client account status."""

    ACTIVE = "Active"
    INACTIVE = "Inactive"


class ProjectStatus(str, enum.Enum):
    """Project delivery status."""

    PLANNING = "Planning"
    ACTIVE = "Active"
    IN_PROGRESS = "In Progress"
    TESTING = "Testing"
    COMPLETED = "Completed"
    ON_HOLD = "On Hold"


class TaskStatus(str, enum.Enum):
    """Task lifecycle status."""

    TODO = "To Do"
    IN_PROGRESS = "In Progress"
    DONE = "Done"


class TaskPriority(str, enum.Enum):
    """Task priority."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class FinancialRecordType(str, enum.Enum):
    """Direction of money for a financial record."""

    REVENUE = "Revenue"
    EXPENSE = "Expense"


class Availability(str, enum.Enum):
    """Staff resource availability."""

    AVAILABLE = "Available"
    PARTIALLY_AVAILABLE = "Partially Available"
    UNAVAILABLE = "Unavailable"


class ModelStatus(str, enum.Enum):
    """AI model catalogue status."""

    ACTIVE = "Active"
    INACTIVE = "Inactive"


class DeploymentStatus(str, enum.Enum):
    """AI deployment operational status.

    Lifecycle: pending -> active <-> inactive, with failed reachable from
    pending/active and retried back to pending.
    """

    PENDING = "Pending"
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    FAILED = "Failed"


class Role(Base):
    """
    Named permission level.

    Roles form a fixed hierarchy (Admin > Manager > Client > User); the
    hierarchy itself lives in the permissions module, not in the table.
    """

    __tablename__ = "roles"

    id = _id_column("role")
    name = Column(String(50), nullable=False, unique=True, index=True)
    description = Column(String(255))
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    users = relationship("User", secondary=user_roles, back_populates="roles")

    def __repr__(self) -> str:
        return f"<Role {self.name}>"


class User(Base):
    """
    User account.

    Passwords are stored as bcrypt hashes. Every user holds at least one role.
    """

    __tablename__ = "users"

    id = _id_column("user")
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    # Audit fields
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    roles = relationship("Role", secondary=user_roles, back_populates="users", lazy="selectin")
    sessions = relationship("SessionToken", back_populates="user", cascade="all, delete-orphan")
    resources = relationship("Resource", back_populates="user")

    @property
    def role_names(self) -> list[str]:
        return sorted(role.name for role in self.roles)

    def __repr__(self) -> str:
        return f"<User {self.email}>"


class SessionToken(Base):
    """
    Bearer session issued at login.

    Only the SHA-256 hash of the token is stored. Sessions end by expiry or
    by revocation (logout).
    """

    __tablename__ = "session_tokens"

    id = _id_column("session")
    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = Column(String(64), nullable=False, unique=True, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=False)
    last_used_at = Column(DateTime, nullable=True)
    revoked_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="sessions")

    @property
    def is_active(self) -> bool:
        """Check if session is active (not revoked and not expired)."""
        if self.revoked_at:
            return False
        if self.expires_at < datetime.utcnow():
            return False
        return True

    def __repr__(self) -> str:
        return f"<SessionToken {self.id} for user_id={self.user_id}>"


class Client(Base):
    """Agency client (customer organisation)."""

    __tablename__ = "clients"

    id = _id_column("client")
    name = Column(String(255), nullable=False)
    contact_email = Column(String(255))
    contact_phone = Column(String(50))
    address = Column(Text)
    status = Column(_enum(ClientStatus), nullable=False, default=ClientStatus.ACTIVE, index=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    projects = relationship("Project", back_populates="client", cascade="all, delete-orphan")
    financial_records = relationship("FinancialRecord", back_populates="client")

    def __repr__(self) -> str:
        return f"<Client {self.name}>"


class Project(Base):
    """
    Client engagement.

    Tasks and resource allocations belong to a project and are removed with
    it; financial records and AI deployments only reference it and are
    detached instead.
    """

    __tablename__ = "projects"

    id = _id_column("project")
    client_id = Column(String(64), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    description = Column(Text)
    start_date = Column(Date)
    end_date = Column(Date)
    status = Column(_enum(ProjectStatus), nullable=False, default=ProjectStatus.PLANNING, index=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    client = relationship("Client", back_populates="projects")
    tasks = relationship("Task", back_populates="project", cascade="all, delete-orphan")
    allocations = relationship("ResourceAllocation", back_populates="project", cascade="all, delete-orphan")
    financial_records = relationship("FinancialRecord", back_populates="project")
    ai_deployments = relationship("AIDeployment", back_populates="project")

    __table_args__ = (
        CheckConstraint("end_date IS NULL OR start_date IS NULL OR end_date >= start_date", name="project_dates_ordered"),
    )

    def __repr__(self) -> str:
        return f"<Project {self.name}>"


class Task(Base):
    """Unit of work within a project."""

    __tablename__ = "tasks"

    id = _id_column("task")
    project_id = Column(String(64), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    assigned_to_id = Column(String(64), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    title = Column(String(200), nullable=False)
    description = Column(Text)
    status = Column(_enum(TaskStatus), nullable=False, default=TaskStatus.TODO, index=True)
    priority = Column(_enum(TaskPriority), nullable=False, default=TaskPriority.MEDIUM, index=True)
    due_date = Column(Date, nullable=True, index=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    project = relationship("Project", back_populates="tasks")
    assigned_to = relationship("User")

    def __repr__(self) -> str:
        return f"<Task {self.title[:30]}>"


class FinancialRecord(Base):
    """Revenue or expense entry, optionally tied to a project and/or client."""

    __tablename__ = "financial_records"

    id = _id_column("financial")
    project_id = Column(String(64), ForeignKey("projects.id", ondelete="SET NULL"), nullable=True, index=True)
    client_id = Column(String(64), ForeignKey("clients.id", ondelete="SET NULL"), nullable=True, index=True)

    type = Column(_enum(FinancialRecordType), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    description = Column(Text)
    date = Column(Date, nullable=False, index=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    project = relationship("Project", back_populates="financial_records")
    client = relationship("Client", back_populates="financial_records")

    __table_args__ = (
        CheckConstraint("amount > 0", name="financial_amount_positive"),
    )

    def __repr__(self) -> str:
        return f"<FinancialRecord {self.type.value} {self.amount}>"


class Resource(Base):
    """Staff member available for project allocation."""

    __tablename__ = "resources"

    id = _id_column("resource")
    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    skill_set = Column(Text)
    availability = Column(_enum(Availability), nullable=False, default=Availability.AVAILABLE, index=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="resources")
    allocations = relationship("ResourceAllocation", back_populates="resource", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Resource {self.id} user_id={self.user_id}>"


class ResourceAllocation(Base):
    """Percentage-of-time assignment of a resource to a project over a date range."""

    __tablename__ = "resource_allocations"

    id = _id_column("allocation")
    resource_id = Column(String(64), ForeignKey("resources.id", ondelete="CASCADE"), nullable=False, index=True)
    project_id = Column(String(64), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)

    allocation_percentage = Column(Integer, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)  # Open-ended when null

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    resource = relationship("Resource", back_populates="allocations")
    project = relationship("Project", back_populates="allocations")

    __table_args__ = (
        CheckConstraint("allocation_percentage BETWEEN 1 AND 100", name="allocation_percentage_range"),
        CheckConstraint("end_date IS NULL OR end_date >= start_date", name="allocation_dates_ordered"),
    )

    def __repr__(self) -> str:
        return f"<ResourceAllocation {self.resource_id} -> {self.project_id} {self.allocation_percentage}%>"


class AIModel(Base):
    """AI model catalogue entry."""

    __tablename__ = "ai_models"

    id = _id_column("model")
    name = Column(String(255), nullable=False)
    type = Column(String(100))
    provider = Column(String(255))
    description = Column(Text)
    version = Column(String(50), nullable=False, default="1.0")
    capabilities = Column(Text)
    status = Column(_enum(ModelStatus), nullable=False, default=ModelStatus.ACTIVE, index=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    deployments = relationship("AIDeployment", back_populates="model", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<AIModel {self.name} v{self.version}>"


class AIDeployment(Base):
    """
    Instance of an AI model bound to a project with an operational status.

    The project link is optional; deleting the project detaches the deployment.
    """

    __tablename__ = "ai_deployments"

    id = _id_column("deployment")
    model_id = Column(String(64), ForeignKey("ai_models.id", ondelete="CASCADE"), nullable=False, index=True)
    project_id = Column(String(64), ForeignKey("projects.id", ondelete="SET NULL"), nullable=True, index=True)

    endpoint = Column(String(500))
    description = Column(Text)
    status = Column(_enum(DeploymentStatus), nullable=False, default=DeploymentStatus.ACTIVE, index=True)
    performance_metrics = Column(Text, nullable=False, default="")
    deployment_date = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    model = relationship("AIModel", back_populates="deployments")
    project = relationship("Project", back_populates="ai_deployments")

    def __repr__(self) -> str:
        return f"<AIDeployment {self.model_id}: {self.status.value}>"
