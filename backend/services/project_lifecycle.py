"""Project Lifecycle Manager - create, read, status writes and deletion of ProjectForms.

Status is an unconstrained field: an authorised actor may move a project
from any status to any other. Authorisation is owner-or-admin for every
mutation. No cascades on status change (CANCELLED does not refund).

Deleting a project is a hard delete of the ProjectForm only; its Payment
rows are kept as financial records.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional
from models import ProjectForm, ProjectStatus, UserRole, AuditAction
from services.pricing import estimate
from services.project_validation import ProjectFormData
from utils.audit import create_audit_log
from utils.errors import Forbidden, NotFound

logger = logging.getLogger(__name__)

RESOURCE_TYPE = "project_form"


def is_admin(actor: Dict) -> bool:
    return actor.get("role") == UserRole.ADMIN.value


def is_authorized(actor: Dict, project: Dict) -> bool:
    """Owner or admin."""
    return is_admin(actor) or project.get("user_id") == actor.get("user_id")


class ProjectLifecycleManager:

    def __init__(self, db):
        self.db = db

    # =========================================================================
    # Reads
    # =========================================================================

    async def _find(self, project_id: str) -> Optional[Dict]:
        return await self.db.project_forms.find_one({"project_id": project_id}, {"_id": 0})

    async def _attach_payments(self, projects: List[Dict]) -> List[Dict]:
        if not projects:
            return projects
        ids = [p["project_id"] for p in projects]
        payments = await self.db.payments.find(
            {"project_form_id": {"$in": ids}}, {"_id": 0}
        ).sort("created_at", -1).to_list(length=None)
        by_project: Dict[str, List[Dict]] = {}
        for payment in payments:
            by_project.setdefault(payment["project_form_id"], []).append(payment)
        for project in projects:
            project["payments"] = by_project.get(project["project_id"], [])
        return projects

    async def list_projects(self, actor: Dict) -> List[Dict]:
        """Caller's own projects with their payments, newest first."""
        projects = await self.db.project_forms.find(
            {"user_id": actor["user_id"]}, {"_id": 0}
        ).sort("created_at", -1).to_list(length=None)
        return await self._attach_payments(projects)

    async def get_project(self, actor: Dict, project_id: str) -> Dict:
        """One project with payments. Missing and not-owned are both NotFound."""
        project = await self._find(project_id)
        if not project or not is_authorized(actor, project):
            raise NotFound("Project not found")
        return (await self._attach_payments([project]))[0]

    # =========================================================================
    # Writes
    # =========================================================================

    async def create_project(self, actor: Dict, data: ProjectFormData) -> Dict:
        """Store a validated submission as SUBMITTED with a server-side estimate."""
        project = ProjectForm(
            user_id=actor["user_id"],
            business_name=data.business_name,
            industry=data.industry,
            website_type=data.website_type,
            features=data.features,
            number_of_pages=data.number_of_pages,
            deadline=data.deadline_date,
            budget=data.budget,
            estimated_cost=estimate(data.number_of_pages, data.features, data.website_type),
            status=ProjectStatus.SUBMITTED,
        )
        doc = project.to_document()
        await self.db.project_forms.insert_one(doc)
        doc.pop("_id", None)

        await create_audit_log(
            self.db,
            action=AuditAction.PROJECT_SUBMITTED,
            actor_id=actor["user_id"],
            actor_role=actor.get("role"),
            resource_type=RESOURCE_TYPE,
            resource_id=project.project_id,
            metadata={"estimated_cost": project.estimated_cost, "website_type": project.website_type.value},
        )
        logger.info(f"Project {project.project_id} submitted by {actor['user_id']} estimate={project.estimated_cost}")
        doc["payments"] = []
        return doc

    async def _load_for_mutation(self, actor: Dict, project_id: str) -> Dict:
        project = await self._find(project_id)
        if not project:
            raise NotFound("Project not found")
        if not is_authorized(actor, project):
            logger.warning(f"User {actor.get('user_id')} denied mutation of project {project_id}")
            raise Forbidden()
        return project

    async def update_status(
        self,
        actor: Dict,
        project_id: str,
        status: ProjectStatus,
        notes: Optional[str] = None,
    ) -> Dict:
        """Set a project's status. Any status may follow any status."""
        project = await self._load_for_mutation(actor, project_id)
        status = ProjectStatus(status)

        update_fields = {
            "status": status.value,
            "updated_at": datetime.now(timezone.utc),
        }
        if notes is not None:
            update_fields["notes"] = notes

        result = await self.db.project_forms.update_one(
            {"project_id": project_id},
            {"$set": update_fields},
        )
        if result.matched_count == 0:
            # Deleted between the read and the write
            raise NotFound("Project not found")

        await create_audit_log(
            self.db,
            action=AuditAction.PROJECT_STATUS_UPDATED,
            actor_id=actor["user_id"],
            actor_role=actor.get("role"),
            resource_type=RESOURCE_TYPE,
            resource_id=project_id,
            before_state={"status": project.get("status")},
            after_state={"status": status.value},
            metadata={"notes": notes} if notes else None,
        )
        logger.info(f"Project {project_id} status {project.get('status')} -> {status.value}")

        project.update(update_fields)
        return project

    async def delete_project(self, actor: Dict, project_id: str) -> None:
        """Hard delete. Dependent payments are retained."""
        project = await self._load_for_mutation(actor, project_id)
        result = await self.db.project_forms.delete_one({"project_id": project_id})
        if result.deleted_count == 0:
            raise NotFound("Project not found")

        retained = await self.db.payments.count_documents({"project_form_id": project_id})
        await create_audit_log(
            self.db,
            action=AuditAction.PROJECT_DELETED,
            actor_id=actor["user_id"],
            actor_role=actor.get("role"),
            resource_type=RESOURCE_TYPE,
            resource_id=project_id,
            before_state={"status": project.get("status"), "business_name": project.get("business_name")},
            metadata={"retained_payments": retained},
        )
        logger.info(f"Project {project_id} deleted by {actor['user_id']} (payments retained: {retained})")
