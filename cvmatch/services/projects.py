"""
Search project management: creation rules, updates and the criteria-change
invalidation of project CV scores.
"""
import asyncio
import uuid
import weakref
from datetime import datetime
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from cvmatch.models.models import ProjectCriteria
from cvmatch.models.schemas import (
    CreateProjectCVInput,
    CreateSearchProjectInput,
    ProjectCVModel,
    SearchProjectModel,
    UpdateSearchProjectInput,
)
from cvmatch.services.db import projects_coll, project_cvs_coll, users_coll, to_dict
from cvmatch.utils.exceptions import BusinessLogicError, NotFoundError, ValidationError
from cvmatch.utils.logging_config import get_logger

logger = get_logger(__name__)


class ProjectManager:
    """Manages search projects and the score lifecycle of their CVs"""

    # Project status constants
    STATUS_DRAFT = "DRAFT"
    STATUS_ACTIVE = "ACTIVE"
    STATUS_COMPLETED = "COMPLETED"
    STATUS_ARCHIVED = "ARCHIVED"

    MAX_CVS_PER_PROJECT = 10
    PROJECT_CREATOR_ROLES = ("JOB_PROVIDER", "TALENT_ACQUISITION")

    # fields a partial update may not set to null; description may be cleared
    NON_NULLABLE_FIELDS = ("name", "status", "criteria")

    # one lock per project; matching runs and criteria edits take it.
    # An entry lives only while some coroutine holds or awaits the lock.
    _locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    @classmethod
    def lock_for(cls, project_id: str) -> asyncio.Lock:
        lock = cls._locks.get(project_id)
        if lock is None:
            lock = cls._locks[project_id] = asyncio.Lock()
        return lock

    @staticmethod
    def validate_criteria(criteria: ProjectCriteria) -> None:
        total = criteria.weights.total()
        if abs(total - 100) > 1e-6:
            raise ValidationError(
                f"Criteria weights must sum to 100, got {total:g}",
                field="criteria.weights",
                value=total,
            )

    @staticmethod
    async def get_project(project_id: str) -> SearchProjectModel:
        doc = await projects_coll.find_one({"project_id": project_id})
        if not doc:
            raise NotFoundError(f"Project {project_id} not found", resource="project", resource_id=project_id)
        return SearchProjectModel(**to_dict(doc))

    @staticmethod
    async def create_project(payload: CreateSearchProjectInput) -> SearchProjectModel:
        user = await users_coll.find_one({"user_id": payload.created_by_user_id})
        if not user:
            raise NotFoundError(
                f"User {payload.created_by_user_id} not found",
                resource="user",
                resource_id=payload.created_by_user_id,
            )
        if user.get("role") not in ProjectManager.PROJECT_CREATOR_ROLES:
            raise BusinessLogicError(
                "Only JOB_PROVIDER and TALENT_ACQUISITION users can create search projects",
                rule="project_creator_role",
            )
        ProjectManager.validate_criteria(payload.criteria)

        now = datetime.utcnow()
        project = SearchProjectModel(
            project_id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            **payload.model_dump(),
        )
        await projects_coll.insert_one(project.model_dump())
        logger.info(f"Created project {project.project_id}", extra={"project_id": project.project_id})
        return project

    @staticmethod
    async def update_project(project_id: str, update: UpdateSearchProjectInput) -> SearchProjectModel:
        """
        Apply a partial update. A new ``criteria`` value replaces the stored one
        and resets every project CV's score and ranking to unscored; other
        fields leave scores alone. An explicit null for a non-nullable field is
        ignored.
        """
        changes = {
            k: v for k, v in update.model_dump(exclude_unset=True).items()
            if v is not None or k not in ProjectManager.NON_NULLABLE_FIELDS
        }
        criteria = changes.pop("criteria", None)
        if criteria is not None:
            ProjectManager.validate_criteria(update.criteria)

        if changes:
            changes["updated_at"] = datetime.utcnow()
            result = await projects_coll.update_one({"project_id": project_id}, {"$set": changes})
            if result.matched_count == 0:
                raise NotFoundError(f"Project {project_id} not found", resource="project", resource_id=project_id)

        if criteria is not None:
            await ProjectManager.on_criteria_updated(project_id, update.criteria)

        return await ProjectManager.get_project(project_id)

    @staticmethod
    async def on_criteria_updated(project_id: str, criteria: ProjectCriteria) -> int:
        """Store new criteria and invalidate all scores; returns the CVs reset."""
        async with ProjectManager.lock_for(project_id):
            now = datetime.utcnow()
            result = await projects_coll.update_one(
                {"project_id": project_id},
                {"$set": {"criteria": criteria.model_dump(), "updated_at": now}},
            )
            if result.matched_count == 0:
                raise NotFoundError(f"Project {project_id} not found", resource="project", resource_id=project_id)

            reset = await project_cvs_coll.update_many(
                {"project_id": project_id},
                {"$set": {"score": None, "ranking": None, "updated_at": now}},
            )

        logger.info(
            f"Criteria updated for project {project_id}; reset scores on {reset.modified_count} CVs",
            extra={"project_id": project_id, "reset_count": reset.modified_count},
        )
        return reset.modified_count

    @staticmethod
    async def add_project_cv(project_id: str, payload: CreateProjectCVInput) -> ProjectCVModel:
        await ProjectManager.get_project(project_id)

        existing = await project_cvs_coll.count_documents({"project_id": project_id})
        if existing >= ProjectManager.MAX_CVS_PER_PROJECT:
            raise BusinessLogicError(
                f"Project has reached maximum limit of {ProjectManager.MAX_CVS_PER_PROJECT} CVs",
                rule="max_cvs_per_project",
            )

        now = datetime.utcnow()
        project_cv = ProjectCVModel(
            project_cv_id=str(uuid.uuid4()),
            project_id=project_id,
            created_at=now,
            updated_at=now,
            **payload.model_dump(),
        )
        await project_cvs_coll.insert_one(project_cv.model_dump())
        logger.info(
            f"Added CV {project_cv.project_cv_id} to project {project_id}",
            extra={"project_id": project_id, "project_cv_id": project_cv.project_cv_id},
        )
        return project_cv

    @staticmethod
    def load_project_cv(doc: dict) -> ProjectCVModel:
        """Build a ProjectCVModel; unusable parsed data is treated as not parsed."""
        doc = to_dict(doc)
        try:
            return ProjectCVModel(**doc)
        except PydanticValidationError as e:
            logger.warning(
                f"Stored parsed data for CV {doc.get('project_cv_id')} is invalid; treating it as unparsed: {e}",
                extra={"project_cv_id": doc.get("project_cv_id")},
            )
            return ProjectCVModel(**{**doc, "parsed_data": None})

    @staticmethod
    async def list_project_cvs(project_id: str) -> List[ProjectCVModel]:
        """All CVs of a project in upload order."""
        cursor = project_cvs_coll.find({"project_id": project_id}).sort(
            [("created_at", 1), ("project_cv_id", 1)]
        )
        docs = await cursor.to_list(length=None)
        return [ProjectManager.load_project_cv(doc) for doc in docs]

    @staticmethod
    async def get_ranked_project_cvs(project_id: str, limit: int = 50, offset: int = 0) -> List[ProjectCVModel]:
        """Ranked CVs first, then by score, then newest upload."""
        cvs = await ProjectManager.list_project_cvs(project_id)
        cvs.sort(key=lambda cv: cv.created_at, reverse=True)
        cvs.sort(key=lambda cv: -cv.score if cv.score is not None else float("inf"))
        cvs.sort(key=lambda cv: (cv.ranking is None, cv.ranking or 0))
        return cvs[offset:offset + limit]

    @staticmethod
    async def list_projects(created_by_user_id: Optional[str] = None) -> List[SearchProjectModel]:
        query = {"created_by_user_id": created_by_user_id} if created_by_user_id else {}
        docs = await projects_coll.find(query).sort([("created_at", -1)]).to_list(length=None)
        return [SearchProjectModel(**to_dict(doc)) for doc in docs]
