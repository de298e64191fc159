from __future__ import annotations

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Ensure repo root is on sys.path so `import app` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.api import providers  # noqa: E402
from app.main import app  # noqa: E402
from app.models.learner import LearnerProfile  # noqa: E402
from app.models.material import Material  # noqa: E402
from app.models.question import (  # noqa: E402
    MultipleChoiceQuestion,
    QuestionOption,
    SingleChoiceQuestion,
    TrueFalseQuestion,
)
from app.services import token_service  # noqa: E402
from app.services.cache import cache_service  # noqa: E402
from app.services.task_queue import task_queue  # noqa: E402


@pytest.fixture(autouse=True)
def reset_repos() -> providers.Repos:
    """Fresh in-memory repositories for every test."""
    providers.memory_repos = providers.build_memory_repos()
    return providers.memory_repos


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    """Clear cache between tests."""
    if hasattr(cache_service, "_store"):
        cache_service._store.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_task_queue() -> None:
    """Clear task queues between tests."""
    if hasattr(task_queue, "_queues"):
        task_queue._queues.clear()  # type: ignore[union-attr]


@pytest.fixture
def repos(reset_repos: providers.Repos) -> providers.Repos:
    """The in-memory repositories the app is using in this test."""
    return reset_repos


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(
    username: str = "learner-1",
    roles: list[str] | None = None,
) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=username, roles=roles)


@pytest.fixture
def token() -> str:
    """Token with the default learner role."""
    return mint_token()


@pytest.fixture
def admin_token() -> str:
    """Token with admin role."""
    return mint_token(username="admin-1", roles=["admin"])


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Catalog helpers
# ---------------------------------------------------------------------------


def add_course(
    repos: providers.Repos,
    course_id: str,
    videos: tuple[str, ...] = ("v1",),
    documents: tuple[str, ...] = (),
    course_name: str | None = None,
) -> None:
    """Seed the material catalog with one course."""
    name = course_name if course_name is not None else course_id.title()
    for position, title in enumerate(videos + documents):
        repos.materials.add(  # type: ignore[attr-defined]
            Material.new(
                course_id=course_id,
                course_name=name,
                type="video" if title in videos else "document",
                title=title,
                position=position,
            )
        )


def add_learner(
    repos: providers.Repos,
    learner_id: str = "learner-1",
    name: str = "Kim Learner",
    gender: str = "female",
) -> LearnerProfile:
    profile = LearnerProfile(learner_id=learner_id, name=name, gender=gender)
    repos.learners.add(profile)  # type: ignore[attr-defined]
    return profile


def true_false(qid: str, correct: bool = True, position: int = 0) -> TrueFalseQuestion:
    return TrueFalseQuestion(
        id=qid,
        title=f"Question {qid}",
        content=f"Is {qid} true?",
        correct_answer=correct,
        position=position,
    )


def single_choice(
    qid: str, correct: str = "b", position: int = 0
) -> SingleChoiceQuestion:
    return SingleChoiceQuestion(
        id=qid,
        title=f"Question {qid}",
        content=f"Pick one for {qid}",
        options=tuple(
            QuestionOption(id=oid, text=oid.upper(), is_correct=oid == correct, order=i)
            for i, oid in enumerate(("a", "b", "c"))
        ),
        position=position,
    )


def multiple_choice(
    qid: str, correct: tuple[str, ...] = ("a", "c"), position: int = 0
) -> MultipleChoiceQuestion:
    return MultipleChoiceQuestion(
        id=qid,
        title=f"Question {qid}",
        content=f"Pick all for {qid}",
        options=tuple(
            QuestionOption(id=oid, text=oid.upper(), is_correct=oid in correct, order=i)
            for i, oid in enumerate(("a", "b", "c", "d"))
        ),
        position=position,
    )
