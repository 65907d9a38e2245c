"""Project Routes - client submission and management of website projects.

Endpoints:
- POST /api/projects - Submit a project (estimate computed server-side)
- GET /api/projects - Caller's projects with payments, newest first
- GET /api/projects/{project_id} - One project (owner or admin)
- PATCH /api/projects/{project_id} - Set status (owner or admin, any status)
- DELETE /api/projects/{project_id} - Hard delete; payments are retained
- GET /api/projects/{project_id}/payment-quote - Full and deposit amounts in cents
"""
from fastapi import APIRouter, Body, Depends, status
from typing import Any, Dict
from database import get_database
from middleware import client_route_guard
from services.project_lifecycle import ProjectLifecycleManager
from services.project_validation import validate_project_form, validate_status_update
from services.stripe_service import payment_quote
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/projects", tags=["projects"])


def get_lifecycle_manager(db=Depends(get_database)) -> ProjectLifecycleManager:
    return ProjectLifecycleManager(db)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_project(
    payload: Dict[str, Any] = Body(...),
    current_user: dict = Depends(client_route_guard),
    manager: ProjectLifecycleManager = Depends(get_lifecycle_manager),
):
    """Validate and store a project submission as SUBMITTED."""
    data = validate_project_form(payload)
    return await manager.create_project(current_user, data)


@router.get("")
async def list_projects(
    current_user: dict = Depends(client_route_guard),
    manager: ProjectLifecycleManager = Depends(get_lifecycle_manager),
):
    return await manager.list_projects(current_user)


@router.get("/{project_id}")
async def get_project(
    project_id: str,
    current_user: dict = Depends(client_route_guard),
    manager: ProjectLifecycleManager = Depends(get_lifecycle_manager),
):
    return await manager.get_project(current_user, project_id)


@router.patch("/{project_id}")
async def update_project_status(
    project_id: str,
    payload: Dict[str, Any] = Body(...),
    current_user: dict = Depends(client_route_guard),
    manager: ProjectLifecycleManager = Depends(get_lifecycle_manager),
):
    """Set the project's status. Any status may follow any status."""
    update = validate_status_update(payload)
    return await manager.update_status(current_user, project_id, update.status, notes=update.notes)


@router.delete("/{project_id}")
async def delete_project(
    project_id: str,
    current_user: dict = Depends(client_route_guard),
    manager: ProjectLifecycleManager = Depends(get_lifecycle_manager),
):
    await manager.delete_project(current_user, project_id)
    return {"message": "Project deleted successfully"}


@router.get("/{project_id}/payment-quote")
async def get_payment_quote(
    project_id: str,
    current_user: dict = Depends(client_route_guard),
    manager: ProjectLifecycleManager = Depends(get_lifecycle_manager),
):
    project = await manager.get_project(current_user, project_id)
    return payment_quote(project)
