import asyncio
import copy
import os
import uuid
import weakref
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("SIMILARITY_BACKEND", "token")

from cvmatch.models.models import ParsedCVData, ProjectCriteria  # noqa: E402


def _matches(doc, query):
    for key, cond in query.items():
        value = doc.get(key)
        if isinstance(cond, dict):
            for op, arg in cond.items():
                if op == "$ne" and value == arg:
                    return False
                if op == "$in" and value not in arg:
                    return False
        elif value != cond:
            return False
    return True


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs

    def sort(self, key_or_list, direction=None):
        keys = key_or_list if isinstance(key_or_list, list) else [(key_or_list, direction or 1)]
        for key, d in reversed(keys):
            self._docs.sort(key=lambda doc: (doc.get(key) is None, doc.get(key)), reverse=d == -1)
        return self

    def skip(self, n):
        self._docs = self._docs[n:]
        return self

    def limit(self, n):
        if n:
            self._docs = self._docs[:n]
        return self

    async def to_list(self, length=None):
        await asyncio.sleep(0)
        return self._docs if length is None else self._docs[:length]


class FakeCollection:
    """Just enough of motor's AsyncIOMotorCollection for the services and routers."""

    def __init__(self, name):
        self.name = name
        self.docs = []
        self.writes = []

    async def find_one(self, query):
        await asyncio.sleep(0)
        for doc in self.docs:
            if _matches(doc, query):
                return copy.deepcopy(doc)
        return None

    def find(self, query=None):
        return FakeCursor([copy.deepcopy(d) for d in self.docs if _matches(d, query or {})])

    async def insert_one(self, doc):
        await asyncio.sleep(0)
        doc = copy.deepcopy(doc)
        doc.setdefault("_id", uuid.uuid4().hex)
        self.docs.append(doc)
        return SimpleNamespace(inserted_id=doc["_id"])

    async def _update(self, query, update, many):
        await asyncio.sleep(0)
        changes = update.get("$set", {})
        matched = modified = 0
        for doc in self.docs:
            if not _matches(doc, query):
                continue
            matched += 1
            if any(doc.get(k) != v for k, v in changes.items()):
                modified += 1
            doc.update(copy.deepcopy(changes))
            self.writes.append((dict(query), dict(changes)))
            if not many:
                break
        return SimpleNamespace(matched_count=matched, modified_count=modified)

    async def update_one(self, query, update):
        return await self._update(query, update, many=False)

    async def update_many(self, query, update):
        return await self._update(query, update, many=True)

    async def count_documents(self, query):
        await asyncio.sleep(0)
        return len([d for d in self.docs if _matches(d, query)])

    async def create_index(self, keys, **kwargs):
        return "_".join(k for k, _ in keys)


COLLECTION_NAMES = ("users_coll", "cvs_coll", "projects_coll", "project_cvs_coll")
PATCHED_MODULES = (
    "cvmatch.services.db",
    "cvmatch.services.projects",
    "cvmatch.services.project_matching",
    "cvmatch.routers.users",
    "cvmatch.routers.cvs",
)


@pytest.fixture
def fake_db(monkeypatch):
    """Replace every Mongo collection the code imports with an in-memory one."""
    import importlib
    from cvmatch.services.projects import ProjectManager

    colls = SimpleNamespace(**{name: FakeCollection(name.replace("_coll", "")) for name in COLLECTION_NAMES})
    for module_name in PATCHED_MODULES:
        module = importlib.import_module(module_name)
        for name in COLLECTION_NAMES:
            if hasattr(module, name):
                monkeypatch.setattr(module, name, getattr(colls, name))
    monkeypatch.setattr(ProjectManager, "_locks", weakref.WeakValueDictionary())
    return colls


# -------- sample data --------

def make_criteria(**overrides) -> ProjectCriteria:
    data = {
        "minimum_years_experience": 3,
        "target_role": "Software Engineer",
        "required_skills": ["JavaScript", "React"],
        "preferred_skills": ["TypeScript", "Node.js"],
        "target_industries": ["Technology"],
        "max_job_changes_per_year": 1,
        "weights": {
            "years_experience": 25,
            "role_match": 25,
            "skills_match": 30,
            "industry_match": 10,
            "job_stability": 10,
        },
    }
    data.update(overrides)
    return ProjectCriteria(**data)


EXCELLENT = {
    "total_years_experience": 5,
    "employment_history": [{
        "company": "Tech Corp",
        "position": "Senior Software Engineer",
        "start_date": "2019-01",
        "end_date": None,
        "duration_months": 60,
        "description": "Full-stack development",
    }],
    "job_changes_frequency": 0.2,
    "roles_positions": ["Software Engineer", "Senior Software Engineer"],
    "skills": ["JavaScript", "React", "TypeScript", "Node.js", "Python"],
    "dominant_industries": ["Technology", "Software"],
    "contact_info": {"email": "candidate@example.com", "phone": "+1234567890", "location": "San Francisco, CA"},
    "education": [{
        "institution": "Stanford University",
        "degree": "Bachelor of Science",
        "field": "Computer Science",
        "graduation_year": 2019,
    }],
}

AVERAGE = {
    "total_years_experience": 2,
    "employment_history": [{
        "company": "Small Startup",
        "position": "Junior Developer",
        "start_date": "2022-01",
        "end_date": None,
        "duration_months": 24,
        "description": "Web development",
    }],
    "job_changes_frequency": 0.5,
    "roles_positions": ["Junior Developer", "Web Developer"],
    "skills": ["JavaScript", "HTML", "CSS"],
    "dominant_industries": ["Technology"],
    "contact_info": None,
    "education": None,
}

POOR = {
    "total_years_experience": 1,
    "employment_history": [
        {"company": "Different Industry Corp", "position": "Marketing Assistant",
         "start_date": "2023-01", "end_date": "2023-06", "duration_months": 6, "description": None},
        {"company": "Another Corp", "position": "Sales Rep",
         "start_date": "2023-07", "end_date": None, "duration_months": 6, "description": None},
    ],
    "job_changes_frequency": 2.0,
    "roles_positions": ["Marketing Assistant", "Sales Rep"],
    "skills": ["Excel", "PowerPoint", "Communication"],
    "dominant_industries": ["Marketing", "Sales"],
    "contact_info": None,
    "education": None,
}


def make_parsed(data: dict) -> ParsedCVData:
    return ParsedCVData(**data)


@pytest.fixture
def criteria():
    return make_criteria()


@pytest.fixture
def seed_project(fake_db):
    """Insert a project plus CVs; returns a coroutine factory for tests."""

    async def _seed(parsed_list, criteria=None, status="ACTIVE"):
        project_id = str(uuid.uuid4())
        user_id = str(uuid.uuid4())
        now = datetime.utcnow()
        await fake_db.users_coll.insert_one({
            "user_id": user_id, "email": f"{user_id}@example.com", "first_name": "Jane",
            "last_name": "Recruiter", "role": "TALENT_ACQUISITION", "created_at": now, "updated_at": now,
        })
        await fake_db.projects_coll.insert_one({
            "project_id": project_id,
            "name": "Senior Frontend Developer Search",
            "description": "Looking for experienced frontend developers",
            "created_by_user_id": user_id,
            "status": status,
            "criteria": (criteria or make_criteria()).model_dump(),
            "created_at": now,
            "updated_at": now,
        })
        cv_ids = []
        for i, parsed in enumerate(parsed_list):
            cv_id = f"cv-{i:02d}-{uuid.uuid4().hex[:6]}"
            await fake_db.project_cvs_coll.insert_one({
                "project_cv_id": cv_id,
                "project_id": project_id,
                "filename": f"cv_{i}.pdf",
                "original_filename": f"candidate_{i}.pdf",
                "file_path": f"/uploads/cv_{i}.pdf",
                "parsed_data": parsed,
                "score": None,
                "ranking": None,
                "parse_error": None,
                "created_at": now + timedelta(seconds=i),
                "updated_at": now + timedelta(seconds=i),
            })
            cv_ids.append(cv_id)
        return project_id, cv_ids

    return _seed
