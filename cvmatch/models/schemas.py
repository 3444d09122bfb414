from pydantic import BaseModel, Field
from typing import Optional, Literal
from datetime import datetime

from cvmatch.models.models import ParsedCVData, ProjectCriteria

UserRole = Literal["JOB_SEEKER", "JOB_PROVIDER", "TALENT_ACQUISITION"]
CVStatus = Literal["ACTIVE", "INACTIVE"]
ProjectStatus = Literal["DRAFT", "ACTIVE", "COMPLETED", "ARCHIVED"]


# -------- Users --------
class UserModel(BaseModel):
    user_id: str
    email: str
    first_name: str
    last_name: str
    role: UserRole
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class CreateUserInput(BaseModel):
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    role: UserRole


# -------- Job seeker CVs --------
class CVModel(BaseModel):
    cv_id: str
    user_id: str
    filename: str
    original_filename: str
    file_path: str
    status: CVStatus = "INACTIVE"
    parsed_data: Optional[ParsedCVData] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class CreateCVInput(BaseModel):
    user_id: str
    filename: str
    original_filename: str
    file_path: str
    status: CVStatus = "INACTIVE"


class UpdateCVInput(BaseModel):
    status: Optional[CVStatus] = None
    parsed_data: Optional[ParsedCVData] = None


# -------- Search projects --------
class SearchProjectModel(BaseModel):
    project_id: str
    name: str
    description: Optional[str] = None
    created_by_user_id: str
    status: ProjectStatus = "DRAFT"
    criteria: ProjectCriteria
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class CreateSearchProjectInput(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    created_by_user_id: str
    criteria: ProjectCriteria
    status: ProjectStatus = "DRAFT"


class UpdateSearchProjectInput(BaseModel):
    """Partial update; fields left unset are not touched."""
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    status: Optional[ProjectStatus] = None
    criteria: Optional[ProjectCriteria] = None


# -------- Project CVs --------
class ProjectCVModel(BaseModel):
    project_cv_id: str
    project_id: str
    filename: str
    original_filename: str
    file_path: str
    parsed_data: Optional[ParsedCVData] = None
    score: Optional[float] = None
    ranking: Optional[int] = None
    parse_error: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class CreateProjectCVInput(BaseModel):
    filename: str
    original_filename: str
    file_path: str
