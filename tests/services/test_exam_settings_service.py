from __future__ import annotations

import asyncio

import pytest

from app.core.errors import ValidationError
from app.repos.exam_settings_repo import InMemoryExamSettingsRepo
from app.services.exam_settings_service import ExamSettingsStore


def _store() -> ExamSettingsStore:
    return ExamSettingsStore(InMemoryExamSettingsRepo())


def test_get_creates_defaults_once() -> None:
    repo = InMemoryExamSettingsRepo()
    store = ExamSettingsStore(repo)

    settings = asyncio.run(store.get())

    assert settings.time_limit == 60
    assert settings.number_of_questions == 20
    assert settings.passing_score == 70
    assert settings.reverification_interval == 15
    assert settings.updated_by == "system"
    assert asyncio.run(repo.get()) == settings
    assert asyncio.run(store.get()) == settings


def test_update_changes_only_given_fields() -> None:
    store = _store()

    updated = asyncio.run(store.update({"passing_score": 80}, updated_by="admin-1"))

    assert updated.passing_score == 80
    assert updated.time_limit == 60
    assert updated.updated_by == "admin-1"
    assert updated.updated_at is not None
    assert asyncio.run(store.get()) == updated


@pytest.mark.parametrize(
    "changes",
    [
        {"time_limit": 0},
        {"time_limit": 481},
        {"number_of_questions": 0},
        {"number_of_questions": 101},
        {"passing_score": -1},
        {"passing_score": 101},
        {"reverification_interval": 0},
        {"reverification_interval": 61},
        {"passing_score": 70.5},
        {"passing_score": True},
        {"unknown": 1},
    ],
)
def test_update_rejects_invalid_values(changes: dict) -> None:
    store = _store()
    before = asyncio.run(store.get())

    with pytest.raises(ValidationError):
        asyncio.run(store.update(changes, updated_by="admin-1"))

    assert asyncio.run(store.get()) == before


def test_update_is_all_or_nothing() -> None:
    store = _store()
    before = asyncio.run(store.get())

    with pytest.raises(ValidationError):
        asyncio.run(
            store.update(
                {"time_limit": 90, "passing_score": 500}, updated_by="admin-1"
            )
        )

    assert asyncio.run(store.get()) == before


@pytest.mark.parametrize(
    "changes",
    [
        {"time_limit": 1},
        {"time_limit": 480},
        {"passing_score": 0},
        {"passing_score": 100},
        {"number_of_questions": 100},
        {"reverification_interval": 60},
    ],
)
def test_update_accepts_range_bounds(changes: dict) -> None:
    store = _store()
    updated = asyncio.run(store.update(changes, updated_by="admin-1"))
    for field, value in changes.items():
        assert getattr(updated, field) == value
