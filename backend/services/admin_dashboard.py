"""Admin dashboard - cross-user project listing and headline figures."""
import logging
from decimal import Decimal
from typing import Dict, List, Optional
from models import PaymentStatus, ProjectStatus
from services.project_lifecycle import RESOURCE_TYPE
from utils.audit import get_audit_logs_for_resource
from utils.errors import NotFound

logger = logging.getLogger(__name__)


class AdminDashboard:

    def __init__(self, db):
        self.db = db

    async def list_projects(self, status: Optional[ProjectStatus] = None) -> List[Dict]:
        """All projects, newest first, with owner email and payments."""
        query = {}
        if status:
            query["status"] = ProjectStatus(status).value

        projects = await self.db.project_forms.find(query, {"_id": 0}).sort("created_at", -1).to_list(length=None)
        if not projects:
            return projects

        user_ids = list({p["user_id"] for p in projects})
        users = await self.db.users.find(
            {"user_id": {"$in": user_ids}}, {"_id": 0, "user_id": 1, "email": 1}
        ).to_list(length=None)
        emails = {u["user_id"]: u.get("email") for u in users}

        project_ids = [p["project_id"] for p in projects]
        payments = await self.db.payments.find(
            {"project_form_id": {"$in": project_ids}}, {"_id": 0}
        ).sort("created_at", -1).to_list(length=None)
        by_project: Dict[str, List[Dict]] = {}
        for payment in payments:
            by_project.setdefault(payment["project_form_id"], []).append(payment)

        for project in projects:
            project["owner_email"] = emails.get(project["user_id"])
            project["payments"] = by_project.get(project["project_id"], [])
        return projects

    async def stats(self) -> Dict:
        total_projects = await self.db.project_forms.count_documents({})
        projects_by_status = {}
        for status in ProjectStatus:
            projects_by_status[status.value] = await self.db.project_forms.count_documents({"status": status.value})

        # Amounts are stored as decimal strings; summed here rather than with $sum
        paid = await self.db.payments.find(
            {"status": PaymentStatus.PAID.value}, {"_id": 0, "amount": 1}
        ).to_list(length=None)
        total_revenue = sum((Decimal(str(p.get("amount") or "0")) for p in paid), Decimal("0"))

        return {
            "total_projects": total_projects,
            "active_projects": projects_by_status[ProjectStatus.IN_PROGRESS.value],
            "completed_projects": projects_by_status[ProjectStatus.COMPLETED.value],
            "projects_by_status": projects_by_status,
            "paid_payments": len(paid),
            "total_revenue": str(total_revenue.quantize(Decimal("0.01"))),
        }

    async def project_audit_trail(self, project_id: str, limit: int = 50) -> List[Dict]:
        """Audit entries for one project, newest first. Deleted projects keep their trail."""
        logs = await get_audit_logs_for_resource(self.db, RESOURCE_TYPE, project_id, limit=limit)
        if not logs:
            project = await self.db.project_forms.find_one({"project_id": project_id}, {"_id": 0, "project_id": 1})
            if not project:
                raise NotFound("Project not found")
        return logs
