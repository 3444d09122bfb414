"""
Matching orchestration for a search project.

A run takes the project lock, reads the criteria and the project's CVs once,
ranks every CV that has parsed data and writes ``score``/``ranking`` back to
each CV in a single ``$set``. CVs without parsed data are neither scored nor
returned.
"""
import asyncio
from datetime import datetime
from typing import List

from cvmatch.models.response import ParseSummary, ProjectMatchingResults
from cvmatch.models.schemas import ProjectCVModel
from cvmatch.services.cv_parser import parse_cv_async
from cvmatch.services.db import project_cvs_coll
from cvmatch.services.matching import rank_candidates
from cvmatch.services.projects import ProjectManager
from cvmatch.utils.exceptions import CVMatchBaseException
from cvmatch.utils.logging_config import get_logger, PerformanceMonitor

logger = get_logger(__name__)


async def _parse_one(project_cv: ProjectCVModel) -> bool:
    """Parse and store one CV; a failure is recorded on the CV, not raised."""
    try:
        parsed = await parse_cv_async(project_cv.file_path)
    except CVMatchBaseException as e:
        logger.warning(
            f"Parsing failed for project CV {project_cv.project_cv_id}: {e.message}",
            extra={"project_cv_id": project_cv.project_cv_id, "error_code": e.error_code},
        )
        error = e.message
        parsed = None
    except Exception as e:
        logger.error(
            f"Unexpected parser failure for project CV {project_cv.project_cv_id}: {e}",
            extra={"project_cv_id": project_cv.project_cv_id},
            exc_info=True,
        )
        error = str(e) or e.__class__.__name__
        parsed = None

    update = {"updated_at": datetime.utcnow()}
    if parsed is not None:
        update.update({"parsed_data": parsed.model_dump(), "parse_error": None})
    else:
        update["parse_error"] = error
    await project_cvs_coll.update_one({"project_cv_id": project_cv.project_cv_id}, {"$set": update})
    return parsed is not None


async def _parse_pending(project_id: str) -> ParseSummary:
    cvs = await ProjectManager.list_project_cvs(project_id)
    pending = [cv for cv in cvs if cv.parsed_data is None]
    summary = ParseSummary(project_id=project_id, skipped=len(cvs) - len(pending))
    if not pending:
        return summary

    logger.info(f"Parsing {len(pending)} CVs for project {project_id}", extra={"project_id": project_id})
    outcomes = await asyncio.gather(*[_parse_one(cv) for cv in pending])
    for cv, ok in zip(pending, outcomes):
        (summary.parsed if ok else summary.failed).append(cv.project_cv_id)
    return summary


async def parse_pending_cvs(project_id: str) -> ParseSummary:
    """Parse every CV of the project that has no parsed data yet."""
    await ProjectManager.get_project(project_id)
    async with ProjectManager.lock_for(project_id):
        return await _parse_pending(project_id)


async def _write_back(results, processed_at: datetime) -> None:
    for result in results:
        await project_cvs_coll.update_one(
            {"project_cv_id": result.cv.project_cv_id},
            {"$set": {"score": result.score, "ranking": result.ranking, "updated_at": processed_at}},
        )


async def run_matching(project_id: str, parse_pending: bool = False) -> ProjectMatchingResults:
    """
    Score and rank a project's CVs against its criteria.

    Raises NotFoundError when the project does not exist. Everything else
    degrades: CVs without usable parsed data are simply left out.
    """
    await ProjectManager.get_project(project_id)

    with PerformanceMonitor(f"run_matching[{project_id}]", logger):
        async with ProjectManager.lock_for(project_id):
            # re-read: the criteria may have changed while waiting for the lock
            project = await ProjectManager.get_project(project_id)
            if parse_pending:
                await _parse_pending(project_id)

            project_cvs: List[ProjectCVModel] = await ProjectManager.list_project_cvs(project_id)
            results = rank_candidates(project.criteria, project_cvs)

            processed_at = datetime.utcnow()
            await _write_back(results, processed_at)

    logger.info(
        f"Matched {len(results)} of {len(project_cvs)} CVs for project {project_id}",
        extra={"project_id": project_id, "scored": len(results), "uploaded": len(project_cvs)},
    )
    return ProjectMatchingResults(
        project=project,
        results=results,
        total_candidates=len(results),
        processed_at=processed_at,
    )
