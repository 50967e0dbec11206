"""Pydantic schemas for request/response validation."""
import datetime as dt
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, ConfigDict, model_validator

from .models import (
    RoleName,
    ClientStatus,
    ProjectStatus,
    TaskStatus,
    TaskPriority,
    FinancialRecordType,
    Availability,
    ModelStatus,
    DeploymentStatus,
)

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def _check_date_order(start: Optional[date], end: Optional[date], label: str = "end_date") -> None:
    if start is not None and end is not None and end < start:
        raise ValueError(f"{label} must be on or after start_date")


class ListResponse(BaseModel):
    """Pagination envelope shared by list endpoints."""

    total: int
    page: int
    page_size: int
    total_pages: int


# ============================================================================
# Role & User Schemas
# ============================================================================

class RoleResponse(BaseModel):
    """Schema for role responses."""

    id: str
    name: str
    description: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class UserRegister(BaseModel):
    """Schema for self-service registration."""

    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=8, max_length=128)


class UserCreate(UserRegister):
    """Schema for an administrator creating a user with explicit roles."""

    roles: list[RoleName] = Field(default_factory=lambda: [RoleName.USER], min_length=1)


class UserUpdate(BaseModel):
    """Schema for updating a user's profile or activation."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    is_active: Optional[bool] = None


class UserRolesUpdate(BaseModel):
    """Schema for replacing a user's role set."""

    roles: list[RoleName]


class UserResponse(BaseModel):
    """Schema for user responses (never includes the password hash)."""

    id: str
    name: str
    email: str
    is_active: bool
    roles: list[str]
    role_level: int
    created_at: datetime


class UserListResponse(ListResponse):
    """Schema for paginated user list."""

    items: list[UserResponse]


# ============================================================================
# Auth Schemas
# ============================================================================

class LoginRequest(BaseModel):
    """Schema for credential login."""

    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    """Issued session token."""

    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: UserResponse


class PolicyEntry(BaseModel):
    """One row of the access policy table."""

    action: str
    resource: str
    minimum_role: str
    minimum_level: int


class PermissionsResponse(BaseModel):
    """Caller's effective permissions plus the full policy table."""

    roles: list[str]
    role_level: int
    allowed: dict[str, list[str]]
    policy: list[PolicyEntry]


class GateResponse(BaseModel):
    """Route gate decision."""

    decision: str
    redirect_to: Optional[str] = None
    user_level: Optional[int] = None
    required_level: int


# ============================================================================
# Client Schemas
# ============================================================================

class ClientBase(BaseModel):
    """Base schema for client fields."""

    name: str = Field(..., min_length=1, max_length=255)
    contact_email: Optional[str] = Field(None, max_length=255, pattern=EMAIL_PATTERN)
    contact_phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None
    status: ClientStatus = ClientStatus.ACTIVE


class ClientCreate(ClientBase):
    """Schema for creating a new client."""

    pass


class ClientUpdate(BaseModel):
    """Schema for updating a client."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    contact_email: Optional[str] = Field(None, max_length=255, pattern=EMAIL_PATTERN)
    contact_phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None
    status: Optional[ClientStatus] = None


class ClientResponse(ClientBase):
    """Schema for client responses."""

    id: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ClientListResponse(ListResponse):
    """Schema for paginated client list."""

    items: list[ClientResponse]


# ============================================================================
# Project Schemas
# ============================================================================

class ProjectBase(BaseModel):
    """Base schema for project fields."""

    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: ProjectStatus = ProjectStatus.PLANNING


class ProjectCreate(ProjectBase):
    """Schema for creating a new project."""

    client_id: str = Field(..., min_length=1)

    @model_validator(mode="after")
    def check_dates(self):
        _check_date_order(self.start_date, self.end_date)
        return self


class ProjectUpdate(BaseModel):
    """Schema for updating a project."""

    client_id: Optional[str] = Field(None, min_length=1)
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Optional[ProjectStatus] = None


class ProjectResponse(ProjectBase):
    """Schema for project responses."""

    id: str
    client_id: str
    client_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProjectListResponse(ListResponse):
    """Schema for paginated project list."""

    items: list[ProjectResponse]


# ============================================================================
# Task Schemas
# ============================================================================

class TaskCreate(BaseModel):
    """Schema for creating a new task."""

    project_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    assigned_to_id: Optional[str] = None
    due_date: Optional[date] = None


class TaskUpdate(BaseModel):
    """Schema for updating an existing task."""

    project_id: Optional[str] = Field(None, min_length=1)
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    assigned_to_id: Optional[str] = None
    due_date: Optional[date] = None


class TaskResponse(BaseModel):
    """Schema for task responses."""

    id: str
    project_id: str
    project_name: Optional[str] = None
    title: str
    description: Optional[str] = None
    status: TaskStatus
    priority: TaskPriority
    assigned_to_id: Optional[str] = None
    assigned_to_name: Optional[str] = None
    due_date: Optional[date] = None
    is_overdue: bool = False
    created_at: datetime
    updated_at: datetime


class TaskListResponse(ListResponse):
    """Schema for paginated task list."""

    items: list[TaskResponse]


# ============================================================================
# Financial Record Schemas
# ============================================================================

class FinancialRecordCreate(BaseModel):
    """Schema for creating a financial record.

    A record may reference a project, a client, both, or neither.
    """

    project_id: Optional[str] = None
    client_id: Optional[str] = None
    type: FinancialRecordType = FinancialRecordType.REVENUE
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    description: Optional[str] = None
    date: dt.date


class FinancialRecordUpdate(BaseModel):
    """Schema for updating a financial record."""

    project_id: Optional[str] = None
    client_id: Optional[str] = None
    type: Optional[FinancialRecordType] = None
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    description: Optional[str] = None
    date: Optional[dt.date] = None


class FinancialRecordResponse(BaseModel):
    """Schema for financial record responses."""

    id: str
    project_id: Optional[str] = None
    project_name: Optional[str] = None
    client_id: Optional[str] = None
    client_name: Optional[str] = None
    type: FinancialRecordType
    amount: Decimal
    description: Optional[str] = None
    date: dt.date
    created_at: datetime
    updated_at: datetime


class FinancialRecordListResponse(ListResponse):
    """Schema for paginated financial record list."""

    items: list[FinancialRecordResponse]


# ============================================================================
# Resource Schemas
# ============================================================================

class ResourceCreate(BaseModel):
    """Schema for registering a user as an allocatable resource."""

    user_id: str = Field(..., min_length=1)
    skill_set: Optional[str] = None
    availability: Availability = Availability.AVAILABLE


class ResourceUpdate(BaseModel):
    """Schema for updating a resource."""

    skill_set: Optional[str] = None
    availability: Optional[Availability] = None


class ResourceResponse(BaseModel):
    """Schema for resource responses."""

    id: str
    user_id: str
    user_name: Optional[str] = None
    skill_set: Optional[str] = None
    availability: Availability
    allocated_percentage: int = Field(0, description="Sum of allocations active today")
    created_at: datetime
    updated_at: datetime


class ResourceListResponse(ListResponse):
    """Schema for paginated resource list."""

    items: list[ResourceResponse]


# ============================================================================
# Resource Allocation Schemas
# ============================================================================

class ResourceAllocationCreate(BaseModel):
    """Schema for allocating a resource to a project."""

    resource_id: str = Field(..., min_length=1)
    project_id: str = Field(..., min_length=1)
    allocation_percentage: int = Field(..., ge=1, le=100)
    start_date: date
    end_date: Optional[date] = None

    @model_validator(mode="after")
    def check_dates(self):
        _check_date_order(self.start_date, self.end_date)
        return self


class ResourceAllocationUpdate(BaseModel):
    """Schema for updating an allocation."""

    allocation_percentage: Optional[int] = Field(None, ge=1, le=100)
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class ResourceAllocationResponse(BaseModel):
    """Schema for allocation responses."""

    id: str
    resource_id: str
    resource_name: Optional[str] = None
    project_id: str
    project_name: Optional[str] = None
    allocation_percentage: int
    start_date: date
    end_date: Optional[date] = None
    created_at: datetime
    updated_at: datetime


class ResourceAllocationListResponse(ListResponse):
    """Schema for paginated allocation list."""

    items: list[ResourceAllocationResponse]


# ============================================================================
# AI Model Schemas
# ============================================================================

class AIModelBase(BaseModel):
    """Base schema for AI model fields."""

    name: str = Field(..., min_length=1, max_length=255)
    type: Optional[str] = Field(None, max_length=100)
    provider: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    version: str = Field("1.0", min_length=1, max_length=50)
    capabilities: Optional[str] = None
    status: ModelStatus = ModelStatus.ACTIVE


class AIModelCreate(AIModelBase):
    """Schema for creating an AI model."""

    pass


class AIModelUpdate(BaseModel):
    """Schema for updating an AI model."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    type: Optional[str] = Field(None, max_length=100)
    provider: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    version: Optional[str] = Field(None, min_length=1, max_length=50)
    capabilities: Optional[str] = None
    status: Optional[ModelStatus] = None


class AIModelResponse(AIModelBase):
    """Schema for AI model responses."""

    id: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AIModelListResponse(ListResponse):
    """Schema for paginated AI model list."""

    items: list[AIModelResponse]


# ============================================================================
# AI Deployment Schemas
# ============================================================================

class AIDeploymentCreate(BaseModel):
    """Schema for deploying a model, optionally bound to a project."""

    model_id: str = Field(..., min_length=1)
    project_id: Optional[str] = None
    endpoint: Optional[str] = Field(None, max_length=500)
    description: Optional[str] = None
    status: DeploymentStatus = DeploymentStatus.ACTIVE
    performance_metrics: str = ""

    model_config = ConfigDict(protected_namespaces=())


class AIDeploymentUpdate(BaseModel):
    """Schema for updating a deployment; status changes follow the state machine."""

    project_id: Optional[str] = None
    endpoint: Optional[str] = Field(None, max_length=500)
    description: Optional[str] = None
    status: Optional[DeploymentStatus] = None
    performance_metrics: Optional[str] = None


class AIDeploymentResponse(BaseModel):
    """Schema for deployment responses."""

    id: str
    model_id: str
    model_name: Optional[str] = None
    project_id: Optional[str] = None
    project_name: Optional[str] = None
    endpoint: Optional[str] = None
    description: Optional[str] = None
    status: DeploymentStatus
    allowed_transitions: list[DeploymentStatus] = Field(default_factory=list)
    performance_metrics: str = ""
    deployment_date: datetime
    updated_at: datetime

    model_config = ConfigDict(protected_namespaces=())


class AIDeploymentListResponse(ListResponse):
    """Schema for paginated deployment list."""

    items: list[AIDeploymentResponse]


# ============================================================================
# Dashboard Schemas
# ============================================================================

class MonthlyFinancials(BaseModel):
    """Revenue, expenses and profit for one calendar month."""

    month: str = Field(..., description="YYYY-MM")
    revenue: Decimal
    expenses: Decimal
    profit: Decimal


class ResourceUtilization(BaseModel):
    """A resource's allocation on the current day."""

    resource_id: str
    name: Optional[str] = None
    allocated_percentage: int
    available_percentage: int


class DashboardSummary(BaseModel):
    """Aggregated agency overview."""

    total_clients: int
    active_clients: int
    projects_by_status: dict[str, int]
    deployments_by_status: dict[str, int]
    monthly_financials: list[MonthlyFinancials]
    resource_utilization: list[ResourceUtilization]
