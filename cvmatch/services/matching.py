import math
from typing import List, Optional, Sequence, Tuple

from cvmatch.models.models import ParsedCVData, ProjectCriteria
from cvmatch.models.response import (
    CVMatchResult,
    ExperienceHighlight,
    IndustryHighlight,
    MatchHighlights,
    RoleHighlight,
    SkillsHighlight,
    StabilityHighlight,
)
from cvmatch.models.schemas import ProjectCVModel
from cvmatch.services.similarity import best_match, text_similarity
from cvmatch.utils.logging_config import get_logger

logger = get_logger(__name__)

NEUTRAL_SCORE = 50.0
ROLE_MATCH_THRESHOLD = 0.3
SKILL_SEMANTIC_THRESHOLD = 0.7
INDUSTRY_MATCH_THRESHOLD = 0.6
REQUIRED_SKILL_WEIGHT = 2.0
PREFERRED_SKILL_WEIGHT = 1.0


def _finite(x: Optional[float]) -> Optional[float]:
    if x is None:
        return None
    try:
        x = float(x)
    except (TypeError, ValueError):
        return None
    return x if math.isfinite(x) else None


def _clamp(x: float) -> float:
    return max(0.0, min(100.0, x))


def _unique(items: Optional[Sequence[str]]) -> List[str]:
    """Drop blanks and case-insensitive duplicates, keeping first-seen order."""
    seen, out = set(), []
    for item in items or []:
        if not isinstance(item, str):
            continue
        key = item.strip().lower()
        if key and key not in seen:
            seen.add(key)
            out.append(item.strip())
    return out


def score_experience(actual: Optional[float], required: Optional[float]) -> float:
    actual, required = _finite(actual), _finite(required)
    if actual is None or required is None:
        return NEUTRAL_SCORE
    actual = max(0.0, actual)
    if required <= 0:
        return 100.0
    if actual >= required:
        bonus = min((actual - required) / required * 20, 20)
        return _clamp(min(100.0, 80 + bonus))
    return _clamp(max(0.0, (actual / required) * 80))


def score_role(target: Optional[str], roles: Optional[Sequence[str]]) -> Tuple[float, List[str]]:
    roles = _unique(roles)
    if not target or not target.strip() or not roles:
        return 0.0, []

    matches, best = [], 0.0
    for role in roles:
        sim = text_similarity(target, role)
        if sim > ROLE_MATCH_THRESHOLD:
            matches.append(role)
        best = max(best, sim)
    return _clamp(best * 100), matches


def score_skills(
    required: Optional[Sequence[str]],
    preferred: Optional[Sequence[str]],
    candidate: Optional[Sequence[str]],
) -> Tuple[float, List[str], List[str]]:
    """
    Weighted coverage of target skills: returns (score, exact, semantic).

    A skill listed as both required and preferred counts once, as required
    (weight 2, not 3).
    """
    required = _unique(required)
    required_keys = {s.lower() for s in required}
    preferred = [s for s in _unique(preferred) if s.lower() not in required_keys]
    targets = [(s, REQUIRED_SKILL_WEIGHT) for s in required] + [(s, PREFERRED_SKILL_WEIGHT) for s in preferred]
    if not targets:
        return 0.0, [], []

    candidate = _unique(candidate)
    exact, semantic = [], []
    awarded = total = 0.0
    for skill, weight in targets:
        total += weight
        match, sim = best_match(skill, candidate)
        if match is None:
            continue
        if sim >= 1.0:
            awarded += weight
            exact.append(skill)
        elif sim > SKILL_SEMANTIC_THRESHOLD:
            awarded += sim * weight
            semantic.append(f"{skill} → {match}")
    return _clamp(100 * awarded / total), exact, semantic


def score_industry(
    targets: Optional[Sequence[str]],
    industries: Optional[Sequence[str]],
) -> Tuple[float, List[str]]:
    targets, industries = _unique(targets), _unique(industries)
    if not targets or not industries:
        return 0.0, []

    matches, accumulated = [], 0.0
    for target in targets:
        match, sim = best_match(target, industries)
        if match is not None and sim > INDUSTRY_MATCH_THRESHOLD:
            accumulated += sim
            if match not in matches:
                matches.append(match)
    return _clamp(100 * accumulated / len(targets)), matches


def score_stability(actual: Optional[float], max_allowed: Optional[float]) -> float:
    actual, max_allowed = _finite(actual), _finite(max_allowed)
    if actual is None or max_allowed is None:
        return NEUTRAL_SCORE
    if actual <= max_allowed:
        return 100.0
    if max_allowed <= 0:
        return 0.0
    return _clamp(100 - 50 * (actual - max_allowed) / max_allowed)


def evaluate_candidate(criteria: ProjectCriteria, parsed: ParsedCVData) -> Tuple[float, MatchHighlights]:
    """Weighted final score (2 decimals) and the per-dimension highlights."""
    experience = score_experience(parsed.total_years_experience, criteria.minimum_years_experience)
    role, role_matches = score_role(criteria.target_role, parsed.roles_positions)
    skills, exact, semantic = score_skills(criteria.required_skills, criteria.preferred_skills, parsed.skills)
    industry, industry_matches = score_industry(criteria.target_industries, parsed.dominant_industries)
    stability = score_stability(parsed.job_changes_frequency, criteria.max_job_changes_per_year)

    w = criteria.weights
    final = (
        experience * w.years_experience
        + role * w.role_match
        + skills * w.skills_match
        + industry * w.industry_match
        + stability * w.job_stability
    ) / 100

    highlights = MatchHighlights(
        years_experience_match=ExperienceHighlight(
            actual=_finite(parsed.total_years_experience),
            required=_finite(criteria.minimum_years_experience),
            score=round(experience, 2),
        ),
        role_match=RoleHighlight(target=criteria.target_role, matches=role_matches, score=round(role, 2)),
        skills_match=SkillsHighlight(exact_matches=exact, semantic_matches=semantic, score=round(skills, 2)),
        industry_match=IndustryHighlight(matches=industry_matches, score=round(industry, 2)),
        job_stability=StabilityHighlight(
            job_changes_per_year=_finite(parsed.job_changes_frequency),
            max_allowed=_finite(criteria.max_job_changes_per_year),
            score=round(stability, 2),
        ),
    )
    return round(final, 2), highlights


def rank_candidates(criteria: ProjectCriteria, project_cvs: Sequence[ProjectCVModel]) -> List[CVMatchResult]:
    """
    Score every CV that has parsed data and rank them.

    Ordering is score descending; the sort is stable, so equal scores keep
    the order of ``project_cvs``. Rankings are 1..N with no shared ranks.
    CVs without parsed data are left out entirely.
    """
    total_weight = criteria.weights.total()
    if abs(total_weight - 100) > 1e-9:
        logger.warning(
            f"Criteria weights sum to {total_weight}, not 100; scores are computed as-is",
            extra={"weights_total": total_weight},
        )

    scored = []
    for cv in project_cvs:
        if cv.parsed_data is None:
            continue
        score, highlights = evaluate_candidate(criteria, cv.parsed_data)
        scored.append((cv, score, highlights))

    scored.sort(key=lambda item: item[1], reverse=True)

    results = []
    for index, (cv, score, highlights) in enumerate(scored):
        ranking = index + 1
        results.append(CVMatchResult(
            cv=cv.model_copy(update={"score": score, "ranking": ranking}),
            score=score,
            ranking=ranking,
            highlights=highlights,
        ))
    return results
