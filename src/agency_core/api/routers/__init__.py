"""API routers for Agency Core."""

from . import (
    auth,
    users,
    clients,
    projects,
    tasks,
    financials,
    resources,
    resource_allocations,
    ai_models,
    ai_deployments,
    dashboard,
)

__all__ = [
    "auth",
    "users",
    "clients",
    "projects",
    "tasks",
    "financials",
    "resources",
    "resource_allocations",
    "ai_models",
    "ai_deployments",
    "dashboard",
]
