from fastapi import APIRouter
from cvmatch.services.db import cvs_coll, users_coll, to_dict
from cvmatch.services.cv_parser import parse_cv_async
from cvmatch.models.schemas import CVModel, CreateCVInput, UpdateCVInput
from cvmatch.utils.exceptions import NotFoundError
from cvmatch.utils.logging_config import get_logger
from datetime import datetime
from typing import List
import uuid

router = APIRouter()
logger = get_logger(__name__)


async def _get_cv_or_404(cv_id: str) -> dict:
    cv = await cvs_coll.find_one({"cv_id": cv_id})
    if not cv:
        raise NotFoundError(f"CV {cv_id} not found", resource="cv", resource_id=cv_id)
    return cv


@router.post("/", response_model=CVModel)
async def create_cv(payload: CreateCVInput):
    """Register an uploaded CV for a job seeker"""
    if not await users_coll.find_one({"user_id": payload.user_id}):
        raise NotFoundError("User not found", resource="user", resource_id=payload.user_id)

    now = datetime.utcnow()
    cv = CVModel(cv_id=str(uuid.uuid4()), created_at=now, updated_at=now, **payload.model_dump())
    await cvs_coll.insert_one(cv.model_dump())
    return cv


@router.get("/user/{user_id}", response_model=List[CVModel])
async def list_cvs_by_user(user_id: str):
    """Get all CVs of a user, newest first"""
    cursor = cvs_coll.find({"user_id": user_id}).sort([("created_at", -1)])
    cvs = await cursor.to_list(length=None)
    return [CVModel(**to_dict(cv)) for cv in cvs]


@router.patch("/{cv_id}", response_model=CVModel)
async def update_cv(cv_id: str, payload: UpdateCVInput):
    """Update status and/or parsed data; a user has at most one ACTIVE CV"""
    cv = await _get_cv_or_404(cv_id)
    now = datetime.utcnow()

    if payload.status == "ACTIVE":
        await cvs_coll.update_many(
            {"user_id": cv["user_id"], "cv_id": {"$ne": cv_id}},
            {"$set": {"status": "INACTIVE", "updated_at": now}}
        )

    changes = payload.model_dump(exclude_unset=True)
    if "status" in changes and changes["status"] is None:
        # status is not nullable; parsed_data may be cleared with null
        del changes["status"]
    changes["updated_at"] = now
    await cvs_coll.update_one({"cv_id": cv_id}, {"$set": changes})

    return CVModel(**to_dict(await cvs_coll.find_one({"cv_id": cv_id})))


@router.post("/{cv_id}/parse", response_model=CVModel)
async def parse_cv_document(cv_id: str):
    """Run the CV parser on the stored file and save the structured result"""
    cv = await _get_cv_or_404(cv_id)
    parsed = await parse_cv_async(cv["file_path"])

    await cvs_coll.update_one(
        {"cv_id": cv_id},
        {"$set": {"parsed_data": parsed.model_dump(), "updated_at": datetime.utcnow()}}
    )
    logger.info(f"Parsed CV {cv_id}", extra={"cv_id": cv_id})
    return CVModel(**to_dict(await cvs_coll.find_one({"cv_id": cv_id})))
