from fastapi import APIRouter, Query, Request
from fastapi.responses import PlainTextResponse
from typing import List

from cvmatch.models.schemas import (
    CreateProjectCVInput,
    CreateSearchProjectInput,
    ProjectCVModel,
    SearchProjectModel,
    UpdateSearchProjectInput,
)
from cvmatch.models.response import ParseSummary, ProjectMatchingResults
from cvmatch.services.projects import ProjectManager
from cvmatch.services.project_matching import parse_pending_cvs, run_matching
from cvmatch.services.reports import rankings_csv
from cvmatch.utils.logging_config import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.post("/", response_model=SearchProjectModel)
async def create_project(payload: CreateSearchProjectInput):
    """Create a search project with weighted matching criteria"""
    return await ProjectManager.create_project(payload)


@router.get("/all", response_model=List[SearchProjectModel])
async def list_all_projects():
    return await ProjectManager.list_projects()


@router.get("/user/{user_id}", response_model=List[SearchProjectModel])
async def list_projects_by_user(user_id: str):
    return await ProjectManager.list_projects(created_by_user_id=user_id)


@router.get("/{project_id}", response_model=SearchProjectModel)
async def get_project(project_id: str):
    return await ProjectManager.get_project(project_id)


@router.patch("/{project_id}", response_model=SearchProjectModel)
async def update_project(project_id: str, payload: UpdateSearchProjectInput, request: Request):
    """
    Update name, description, status or criteria.

    New criteria reset every project CV to unscored; run matching again to
    get fresh rankings.
    """
    request_id = getattr(request.state, "request_id", "unknown")
    logger.info(
        f"Updating project {project_id}",
        extra={"request_id": request_id, "project_id": project_id, "criteria_changed": payload.criteria is not None}
    )
    return await ProjectManager.update_project(project_id, payload)


@router.post("/{project_id}/cvs", response_model=ProjectCVModel)
async def add_project_cv(project_id: str, payload: CreateProjectCVInput):
    """Attach an uploaded candidate CV to the project (max 10 per project)"""
    return await ProjectManager.add_project_cv(project_id, payload)


@router.get("/{project_id}/cvs", response_model=List[ProjectCVModel])
async def list_project_cvs(
    project_id: str,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    """Project CVs: ranked first, then by score, then newest upload"""
    await ProjectManager.get_project(project_id)
    return await ProjectManager.get_ranked_project_cvs(project_id, limit=limit, offset=offset)


@router.post("/{project_id}/cvs/parse", response_model=ParseSummary)
async def parse_project_cvs(project_id: str):
    """Parse every project CV that has no parsed data yet; failures are per CV"""
    return await parse_pending_cvs(project_id)


@router.post("/{project_id}/match", response_model=ProjectMatchingResults)
async def match_project(project_id: str, request: Request, parse_pending: bool = False):
    """Score and rank the project's parsed CVs against its criteria"""
    request_id = getattr(request.state, "request_id", "unknown")
    logger.info(f"Matching requested for project {project_id}", extra={"request_id": request_id, "project_id": project_id})
    return await run_matching(project_id, parse_pending=parse_pending)


@router.get("/{project_id}/rankings.csv", response_class=PlainTextResponse)
async def export_rankings(project_id: str):
    """Download the stored ranking of the project as CSV"""
    await ProjectManager.get_project(project_id)
    project_cvs = await ProjectManager.list_project_cvs(project_id)
    return PlainTextResponse(
        rankings_csv(project_cvs),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{project_id}_rankings.csv"'},
    )
