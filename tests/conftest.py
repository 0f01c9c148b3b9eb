import json
import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")

import fitz  # PyMuPDF
import pytest
from fastapi.testclient import TestClient
from langchain_core.language_models.fake_chat_models import FakeListChatModel

from resume_pipeline.config import Settings
from resume_pipeline.database import build_engine, build_session_factory, init_db
from resume_pipeline.main import create_app
from resume_pipeline.models.user import User
from resume_pipeline.utils.auth import get_password_hash

RESUME_TEXT = (
    "Jane Doe\n"
    "Senior Software Engineer - Berlin, Germany\n"
    "jane.doe@example.com\n\n"
    "Experience\n"
    "Acme Corp, Backend Engineer, 2019 - 2024\n"
    "Built data pipelines in Python and PostgreSQL.\n\n"
    "Education\n"
    "TU Berlin, BSc Computer Science, 2015 - 2019\n"
)

SAMPLE_RESUME = {
    "profile": {
        "name": "Jane",
        "surname": "Doe",
        "email": "jane.doe@example.com",
        "headline": "Senior Software Engineer",
        "professionalSummary": "Backend engineer focused on data pipelines.",
        "linkedIn": None,
        "website": None,
        "country": "Germany",
        "city": "Berlin",
        "relocation": False,
        "remote": True,
    },
    "workExperiences": [
        {
            "jobTitle": "Backend Engineer",
            "employmentType": "FULL_TIME",
            "locationType": "ONSITE",
            "company": "Acme Corp",
            "startMonth": 1,
            "startYear": 2019,
            "endMonth": 12,
            "endYear": 2024,
            "current": False,
            "description": "Built data pipelines in Python and PostgreSQL.",
        }
    ],
    "educations": [
        {
            "school": "TU Berlin",
            "degree": "BACHELOR",
            "major": "Computer Science",
            "startYear": 2015,
            "endYear": 2019,
            "current": False,
            "description": "",
        }
    ],
    "skills": ["Python", "PostgreSQL"],
    "licenses": [],
    "languages": [{"language": "English", "level": "ADVANCED"}],
    "achievements": [],
    "publications": [],
    "honors": [],
}


def make_pdf(text=None) -> bytes:
    doc = fitz.open()
    page = doc.new_page()
    if text:
        page.insert_textbox(fitz.Rect(72, 72, 540, 770), text, fontsize=11)
    data = doc.tobytes()
    doc.close()
    return data


def fake_llm(*responses):
    return FakeListChatModel(responses=list(responses) or [json.dumps(SAMPLE_RESUME)])


def make_settings(tmp_path, **overrides) -> Settings:
    values = dict(
        SECRET_KEY="test-secret-key",
        DATABASE_URL=f"sqlite:///{tmp_path / 'test.db'}",
        PROCESS_INLINE=True,
        LLM_RETRY_BASE_DELAY=0,
        LOG_LEVEL="WARNING",
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def resume_pdf():
    return make_pdf(RESUME_TEXT)


@pytest.fixture
def session_factory(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'unit.db'}")
    init_db(engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture
def make_user(session_factory):
    def _make_user(credits=1000, email="jane@example.com"):
        with session_factory() as db:
            user = User(email=email, name="Jane", password_hash=get_password_hash("secret"), credits=credits)
            db.add(user)
            db.commit()
            return user.id

    return _make_user


class ApiHarness:
    """TestClient plus helpers for registering users and authenticating."""

    def __init__(self, app, client):
        self.app = app
        self.client = client

    @property
    def session_factory(self):
        return self.app.state.session_factory

    def register(self, email="jane@example.com", password="secret", credits=None):
        response = self.client.post(
            "/auth/register", json={"email": email, "name": "Jane Doe", "password": password}
        )
        assert response.status_code == 200, response.text
        user_id = response.json()["id"]
        if credits is not None:
            with self.session_factory() as db:
                db.get(User, user_id).credits = credits
                db.commit()
        token = self.client.post("/auth/token", data={"username": email, "password": password}).json()
        return user_id, {"Authorization": f"Bearer {token['access_token']}"}

    def upload(self, headers, content, file_name="resume.pdf", content_type="application/pdf"):
        return self.client.post(
            "/files/upload", files={"file": (file_name, content, content_type)}, headers=headers
        )


@pytest.fixture
def api(tmp_path):
    clients = []

    def _api(llm=None, **overrides):
        app = create_app(make_settings(tmp_path, **overrides), llm=llm or fake_llm())
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return ApiHarness(app, client)

    yield _api
    for client in clients:
        client.__exit__(None, None, None)
