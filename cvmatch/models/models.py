from pydantic import BaseModel, Field
from typing import List, Optional


# -------- Parsed CV data --------
class EmploymentEntry(BaseModel):
    company: str
    position: str
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    duration_months: Optional[float] = None
    description: Optional[str] = None


class ContactInfo(BaseModel):
    email: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None


class EducationEntry(BaseModel):
    institution: str
    degree: Optional[str] = None
    field: Optional[str] = None
    graduation_year: Optional[int] = None


class ParsedCVData(BaseModel):
    """Structured extraction of a CV; every field may be null."""
    total_years_experience: Optional[float] = None
    employment_history: Optional[List[EmploymentEntry]] = None
    job_changes_frequency: Optional[float] = None  # job changes per year
    roles_positions: Optional[List[str]] = None
    skills: Optional[List[str]] = None
    dominant_industries: Optional[List[str]] = None  # most dominant first
    contact_info: Optional[ContactInfo] = None
    education: Optional[List[EducationEntry]] = None


# -------- Project criteria --------
class CriteriaWeights(BaseModel):
    years_experience: float = Field(default=25, ge=0, le=100)
    role_match: float = Field(default=25, ge=0, le=100)
    skills_match: float = Field(default=30, ge=0, le=100)
    industry_match: float = Field(default=10, ge=0, le=100)
    job_stability: float = Field(default=10, ge=0, le=100)

    def total(self) -> float:
        return (self.years_experience + self.role_match + self.skills_match
                + self.industry_match + self.job_stability)


class ProjectCriteria(BaseModel):
    minimum_years_experience: Optional[float] = None
    target_role: Optional[str] = None
    required_skills: List[str] = Field(default_factory=list)
    preferred_skills: List[str] = Field(default_factory=list)
    target_industries: List[str] = Field(default_factory=list)
    max_job_changes_per_year: Optional[float] = None
    weights: CriteriaWeights = Field(default_factory=CriteriaWeights)
