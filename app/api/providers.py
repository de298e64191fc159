"""Repository and service wiring for the HTTP layer.

Without DATABASE_URL every request shares the module-level in-memory
repositories in ``memory_repos``.  With it, each request gets PostgreSQL
repositories bound to one session, committed when the response is ready
and rolled back if the handler raises.  Work registered on the request's
``CommitHooks`` runs after that commit, and not at all if it fails.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends

from app.db import engine as db_engine
from app.db.engine import CommitHooks
from app.repos.certificate_repo import CertificateRepo, InMemoryCertificateRepo
from app.repos.enrollment_repo import EnrollmentRepo, InMemoryEnrollmentRepo
from app.repos.exam_history_repo import ExamHistoryRepo, InMemoryExamHistoryRepo
from app.repos.exam_settings_repo import ExamSettingsRepo, InMemoryExamSettingsRepo
from app.repos.learner_repo import InMemoryLearnerDirectory, LearnerDirectory
from app.repos.material_repo import InMemoryMaterialCatalog, MaterialCatalog
from app.repos.pg_catalog_repo import (
    PgLearnerDirectory,
    PgMaterialCatalog,
    PgQuestionBank,
)
from app.repos.pg_certificate_repo import PgCertificateRepo
from app.repos.pg_enrollment_repo import PgEnrollmentRepo
from app.repos.pg_exam_repo import PgExamHistoryRepo, PgExamSettingsRepo
from app.repos.question_repo import InMemoryQuestionBank, QuestionBank
from app.services.cache import cache_service
from app.services.certificate_service import CertificateService
from app.services.eligibility_service import EligibilityService
from app.services.exam_service import ExamService
from app.services.exam_settings_service import ExamSettingsStore
from app.services.notifications import QueueNotifier
from app.services.progress_service import ProgressService
from app.services.task_queue import task_queue


@dataclass
class Repos:
    enrollments: EnrollmentRepo
    materials: MaterialCatalog
    questions: QuestionBank
    exam_settings: ExamSettingsRepo
    histories: ExamHistoryRepo
    certificates: CertificateRepo
    learners: LearnerDirectory


def build_memory_repos() -> Repos:
    return Repos(
        enrollments=InMemoryEnrollmentRepo(),
        materials=InMemoryMaterialCatalog(),
        questions=InMemoryQuestionBank(),
        exam_settings=InMemoryExamSettingsRepo(),
        histories=InMemoryExamHistoryRepo(),
        certificates=InMemoryCertificateRepo(),
        learners=InMemoryLearnerDirectory(),
    )


memory_repos = build_memory_repos()


async def get_commit_hooks() -> AsyncIterator[CommitHooks]:
    hooks = CommitHooks()
    yield hooks
    # Reached only when the request and its commit both succeeded.
    await hooks.run()


RequestCommitHooks = Annotated[CommitHooks, Depends(get_commit_hooks)]


# Depends on the hooks so FastAPI tears this down, and commits, first.
async def get_repos(_hooks: RequestCommitHooks) -> AsyncIterator[Repos]:
    if db_engine.async_session_factory is None:
        yield memory_repos
        return
    async with db_engine.session_scope() as session:
        yield Repos(
            enrollments=PgEnrollmentRepo(session),
            materials=PgMaterialCatalog(session),
            questions=PgQuestionBank(session),
            exam_settings=PgExamSettingsRepo(session),
            histories=PgExamHistoryRepo(session),
            certificates=PgCertificateRepo(session),
            learners=PgLearnerDirectory(session),
        )


RequestRepos = Annotated[Repos, Depends(get_repos)]


def get_eligibility_service(repos: RequestRepos) -> EligibilityService:
    return EligibilityService(repos.enrollments, repos.materials)


def get_progress_service(repos: RequestRepos) -> ProgressService:
    return ProgressService(
        repos.enrollments, EligibilityService(repos.enrollments, repos.materials)
    )


def get_settings_store(repos: RequestRepos) -> ExamSettingsStore:
    return ExamSettingsStore(repos.exam_settings)


def get_exam_service(repos: RequestRepos, hooks: RequestCommitHooks) -> ExamService:
    return ExamService(
        settings=ExamSettingsStore(repos.exam_settings),
        questions=repos.questions,
        histories=repos.histories,
        eligibility=EligibilityService(repos.enrollments, repos.materials),
        cache=cache_service,
        after_commit=hooks.add,
    )


def get_certificate_service(
    repos: RequestRepos, hooks: RequestCommitHooks
) -> CertificateService:
    return CertificateService(
        certificates=repos.certificates,
        enrollments=repos.enrollments,
        learners=repos.learners,
        notifier=QueueNotifier(task_queue),
        after_commit=hooks.add,
    )
