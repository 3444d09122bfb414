# models/response.py
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from cvmatch.models.schemas import ProjectCVModel, SearchProjectModel


class ExperienceHighlight(BaseModel):
    actual: Optional[float] = None
    required: Optional[float] = None
    score: float


class RoleHighlight(BaseModel):
    target: Optional[str] = None
    matches: List[str] = Field(default_factory=list)
    score: float


class SkillsHighlight(BaseModel):
    exact_matches: List[str] = Field(default_factory=list)
    semantic_matches: List[str] = Field(default_factory=list)
    score: float


class IndustryHighlight(BaseModel):
    matches: List[str] = Field(default_factory=list)
    score: float


class StabilityHighlight(BaseModel):
    job_changes_per_year: Optional[float] = None
    max_allowed: Optional[float] = None
    score: float


class MatchHighlights(BaseModel):
    years_experience_match: ExperienceHighlight
    role_match: RoleHighlight
    skills_match: SkillsHighlight
    industry_match: IndustryHighlight
    job_stability: StabilityHighlight


class CVMatchResult(BaseModel):
    cv: ProjectCVModel
    score: float
    ranking: int
    highlights: MatchHighlights


class ProjectMatchingResults(BaseModel):
    project: SearchProjectModel
    results: List[CVMatchResult]
    total_candidates: int
    processed_at: datetime


class ParseSummary(BaseModel):
    project_id: str
    parsed: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)
    skipped: int = 0
