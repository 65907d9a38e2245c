"""Admin Routes - cross-user project oversight (ADMIN role only).

- GET /api/admin/projects?status= - All projects with owner email and payments
- GET /api/admin/stats - Totals, active/completed counts, revenue
- GET /api/admin/projects/{project_id}/audit - Audit trail of one project
"""
from fastapi import APIRouter, Depends, Query
from typing import Optional
from database import get_database
from middleware import admin_route_guard
from models import ProjectStatus
from services.admin_dashboard import AdminDashboard
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(admin_route_guard)])


def get_admin_dashboard(db=Depends(get_database)) -> AdminDashboard:
    return AdminDashboard(db)


@router.get("/projects")
async def list_all_projects(
    status: Optional[ProjectStatus] = Query(None),
    dashboard: AdminDashboard = Depends(get_admin_dashboard),
):
    projects = await dashboard.list_projects(status=status)
    return {"projects": projects, "total": len(projects)}


@router.get("/stats")
async def get_stats(dashboard: AdminDashboard = Depends(get_admin_dashboard)):
    return await dashboard.stats()


@router.get("/projects/{project_id}/audit")
async def get_project_audit(
    project_id: str,
    limit: int = Query(50, ge=1, le=500),
    dashboard: AdminDashboard = Depends(get_admin_dashboard),
):
    logs = await dashboard.project_audit_trail(project_id, limit=limit)
    return {"project_id": project_id, "audit_logs": logs}
