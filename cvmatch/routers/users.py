from fastapi import APIRouter
from cvmatch.services.db import users_coll, to_dict
from cvmatch.models.schemas import CreateUserInput, UserModel, UserRole
from cvmatch.utils.exceptions import NotFoundError, ValidationError
from cvmatch.utils.logging_config import get_logger
from datetime import datetime
from typing import List
import uuid

router = APIRouter()
logger = get_logger(__name__)


@router.post("/", response_model=UserModel)
async def create_user(payload: CreateUserInput):
    """Register a job seeker, job provider or talent-acquisition user"""
    if await users_coll.find_one({"email": payload.email}):
        raise ValidationError("A user with this email already exists", field="email", value=payload.email)

    now = datetime.utcnow()
    user = UserModel(user_id=str(uuid.uuid4()), created_at=now, updated_at=now, **payload.model_dump())
    await users_coll.insert_one(user.model_dump())
    logger.info(f"Created user {user.user_id}", extra={"user_id": user.user_id, "role": user.role})
    return user


@router.get("/role/{role}", response_model=List[UserModel])
async def list_users_by_role(role: UserRole):
    cursor = users_coll.find({"role": role})
    users = await cursor.to_list(length=None)
    return [UserModel(**to_dict(u)) for u in users]


@router.get("/{user_id}", response_model=UserModel)
async def get_user(user_id: str):
    user = await users_coll.find_one({"user_id": user_id})
    if not user:
        raise NotFoundError("User not found", resource="user", resource_id=user_id)
    return UserModel(**to_dict(user))
