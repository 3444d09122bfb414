import pytest

from cvmatch.models.schemas import (
    CreateProjectCVInput,
    CreateSearchProjectInput,
    UpdateSearchProjectInput,
)
from cvmatch.services.project_matching import run_matching
from cvmatch.services.projects import ProjectManager
from cvmatch.utils.exceptions import BusinessLogicError, NotFoundError, ValidationError
from tests.conftest import AVERAGE, EXCELLENT, POOR, make_criteria


async def _add_user(fake_db, user_id="user-1", role="TALENT_ACQUISITION"):
    await fake_db.users_coll.insert_one({
        "user_id": user_id, "email": f"{user_id}@example.com", "first_name": "Sam",
        "last_name": "Hiring", "role": role,
    })
    return user_id


def _project_input(user_id, **overrides):
    data = {
        "name": "Senior Frontend Developer Search",
        "description": "Looking for experienced frontend developers",
        "created_by_user_id": user_id,
        "criteria": make_criteria(),
    }
    data.update(overrides)
    return CreateSearchProjectInput(**data)


def _cv_input(i):
    return CreateProjectCVInput(filename=f"cv_{i}.pdf", original_filename=f"candidate_{i}.pdf",
                                file_path=f"/uploads/cv_{i}.pdf")


class TestCreateProject:

    @pytest.mark.asyncio
    async def test_creates_project(self, fake_db):
        user_id = await _add_user(fake_db)

        project = await ProjectManager.create_project(_project_input(user_id))

        assert project.status == "DRAFT"
        assert project.criteria.weights.total() == 100
        stored = await fake_db.projects_coll.find_one({"project_id": project.project_id})
        assert stored["criteria"]["target_role"] == "Software Engineer"

    @pytest.mark.asyncio
    async def test_job_seekers_cannot_create_projects(self, fake_db):
        user_id = await _add_user(fake_db, role="JOB_SEEKER")

        with pytest.raises(BusinessLogicError):
            await ProjectManager.create_project(_project_input(user_id))

    @pytest.mark.asyncio
    async def test_unknown_creator(self, fake_db):
        with pytest.raises(NotFoundError):
            await ProjectManager.create_project(_project_input("ghost"))

    @pytest.mark.asyncio
    async def test_weights_must_sum_to_100(self, fake_db):
        user_id = await _add_user(fake_db)
        criteria = make_criteria(weights={
            "years_experience": 30, "role_match": 30, "skills_match": 30,
            "industry_match": 10, "job_stability": 10,
        })

        with pytest.raises(ValidationError) as exc_info:
            await ProjectManager.create_project(_project_input(user_id, criteria=criteria))
        assert exc_info.value.details["field"] == "criteria.weights"
        assert fake_db.projects_coll.docs == []


class TestUpdateProject:

    @pytest.mark.asyncio
    async def test_missing_project(self, fake_db):
        with pytest.raises(NotFoundError):
            await ProjectManager.update_project("nope", UpdateSearchProjectInput(name="x"))
        with pytest.raises(NotFoundError):
            await ProjectManager.update_project("nope", UpdateSearchProjectInput(criteria=make_criteria()))

    @pytest.mark.asyncio
    async def test_null_for_required_fields_is_ignored(self, fake_db, seed_project):
        project_id, _ = await seed_project([EXCELLENT])
        update = UpdateSearchProjectInput.model_validate({"name": None, "status": None, "criteria": None})

        project = await ProjectManager.update_project(project_id, update)

        assert project.name == "Senior Frontend Developer Search"
        assert project.status == "ACTIVE"
        stored = await fake_db.projects_coll.find_one({"project_id": project_id})
        assert stored["name"] == "Senior Frontend Developer Search"
        assert stored["status"] == "ACTIVE"
        result = await run_matching(project_id)
        assert result.total_candidates == 1

    @pytest.mark.asyncio
    async def test_null_description_clears_it(self, fake_db, seed_project):
        project_id, _ = await seed_project([])

        project = await ProjectManager.update_project(
            project_id, UpdateSearchProjectInput.model_validate({"description": None, "name": None})
        )

        assert project.description is None
        assert project.name == "Senior Frontend Developer Search"

    @pytest.mark.asyncio
    async def test_invalid_criteria_leave_scores_alone(self, fake_db, seed_project):
        project_id, cv_ids = await seed_project([EXCELLENT])
        await run_matching(project_id)
        bad = make_criteria(weights={
            "years_experience": 0, "role_match": 0, "skills_match": 0,
            "industry_match": 0, "job_stability": 0,
        })

        with pytest.raises(ValidationError):
            await ProjectManager.update_project(project_id, UpdateSearchProjectInput(criteria=bad))

        stored = await fake_db.project_cvs_coll.find_one({"project_cv_id": cv_ids[0]})
        assert stored["ranking"] == 1

    @pytest.mark.asyncio
    async def test_on_criteria_updated_returns_reset_count(self, fake_db, seed_project):
        project_id, _ = await seed_project([EXCELLENT, AVERAGE, None])
        await run_matching(project_id)

        reset = await ProjectManager.on_criteria_updated(project_id, make_criteria(target_role="Designer"))

        assert reset == 3

    @pytest.mark.asyncio
    async def test_on_criteria_updated_only_touches_its_project(self, fake_db, seed_project):
        project_a, _ = await seed_project([EXCELLENT])
        project_b, (other_cv,) = await seed_project([AVERAGE])
        await run_matching(project_b)

        await ProjectManager.on_criteria_updated(project_a, make_criteria(target_role="Designer"))

        stored = await fake_db.project_cvs_coll.find_one({"project_cv_id": other_cv})
        assert stored["ranking"] == 1


class TestProjectCVs:

    @pytest.mark.asyncio
    async def test_add_cv_starts_unparsed_and_unscored(self, fake_db, seed_project):
        project_id, _ = await seed_project([])

        cv = await ProjectManager.add_project_cv(project_id, _cv_input(0))

        assert cv.project_id == project_id
        assert (cv.parsed_data, cv.score, cv.ranking) == (None, None, None)

    @pytest.mark.asyncio
    async def test_cv_limit_per_project(self, fake_db, seed_project):
        project_id, _ = await seed_project([None] * ProjectManager.MAX_CVS_PER_PROJECT)

        with pytest.raises(BusinessLogicError):
            await ProjectManager.add_project_cv(project_id, _cv_input(99))

    @pytest.mark.asyncio
    async def test_add_cv_to_missing_project(self, fake_db):
        with pytest.raises(NotFoundError):
            await ProjectManager.add_project_cv("nope", _cv_input(0))

    @pytest.mark.asyncio
    async def test_ranked_listing_order(self, fake_db, seed_project):
        project_id, (poor, unparsed, excellent, average) = await seed_project([POOR, None, EXCELLENT, AVERAGE])
        await run_matching(project_id)

        ranked = await ProjectManager.get_ranked_project_cvs(project_id)

        assert [cv.project_cv_id for cv in ranked] == [excellent, average, poor, unparsed]
        assert ranked[-1].ranking is None

    @pytest.mark.asyncio
    async def test_ranked_listing_pagination(self, fake_db, seed_project):
        project_id, (poor, excellent, average) = await seed_project([POOR, EXCELLENT, AVERAGE])
        await run_matching(project_id)

        page = await ProjectManager.get_ranked_project_cvs(project_id, limit=1, offset=1)

        assert [cv.project_cv_id for cv in page] == [average]

    @pytest.mark.asyncio
    async def test_unranked_cvs_are_newest_first(self, fake_db, seed_project):
        project_id, cv_ids = await seed_project([None, None, None])

        ranked = await ProjectManager.get_ranked_project_cvs(project_id)

        assert [cv.project_cv_id for cv in ranked] == list(reversed(cv_ids))


class TestListProjects:

    @pytest.mark.asyncio
    async def test_filter_by_creator(self, fake_db):
        alice = await _add_user(fake_db, "alice")
        bob = await _add_user(fake_db, "bob", role="JOB_PROVIDER")
        await ProjectManager.create_project(_project_input(alice, name="A"))
        await ProjectManager.create_project(_project_input(bob, name="B"))

        assert [p.name for p in await ProjectManager.list_projects(created_by_user_id=bob)] == ["B"]
        assert len(await ProjectManager.list_projects()) == 2
