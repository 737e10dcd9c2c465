from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

import pytest
import pytest_asyncio

from services.scoring_engine.models import (
    AptitudeQuestion,
    Principal,
    PsychQuestion,
    StoredSubmission,
)
from services.scoring_engine.idempotency import as_utc, utc_now
from solvo.db.seed import create_tables, load_aptitude_catalog, load_psych_catalog, seed_questions
from solvo.db.session import get_async_engine, get_session_factory


# --- Catalog fixtures (built from the shipped YAML catalogs) ---

@pytest.fixture(scope="session")
def psych_catalog():
    return load_psych_catalog()


@pytest.fixture(scope="session")
def aptitude_catalog():
    return load_aptitude_catalog()


@pytest.fixture
def psych_rows(psych_catalog) -> List[Dict[str, Any]]:
    return [
        {"id": q.id, "trait": q.trait.value, "polarity": q.polarity, "question_text": q.text}
        for q in psych_catalog.questions
    ]


@pytest.fixture
def aptitude_rows(aptitude_catalog) -> List[Dict[str, Any]]:
    return [
        {"id": q.id, "category": q.category.value, "correct_answer": q.correct_answer, "question_text": q.text}
        for q in aptitude_catalog.questions
    ]


@pytest.fixture
def psych_questions(psych_rows) -> List[PsychQuestion]:
    return [PsychQuestion(**row) for row in psych_rows]


@pytest.fixture
def aptitude_questions(aptitude_rows) -> List[AptitudeQuestion]:
    return [AptitudeQuestion(**row) for row in aptitude_rows]


@pytest.fixture
def likert_answers(psych_rows) -> Dict[str, int]:
    """A complete, neutral answer set (every item answered 3)."""
    return {row["id"]: 3 for row in psych_rows}


@pytest.fixture
def answer_key(aptitude_rows) -> Dict[str, str]:
    return {row["id"]: row["correct_answer"] for row in aptitude_rows}


# --- In-memory collaborators ---

class InMemoryStore:
    """
    SubmissionStore backed by plain lists.

    `failures` maps a method name to the exception it should raise.
    """

    def __init__(self, psych_rows, aptitude_rows):
        self.psych_rows = psych_rows
        self.aptitude_rows = aptitude_rows
        self.records: Dict[str, List[StoredSubmission]] = {"psych_results": [], "aptitude_submissions": []}
        self.payloads: List[Dict[str, Any]] = []
        self.failures: Dict[str, Exception] = {}
        self.calls: List[str] = []
        self.return_id: Optional[str] = "generated"

    def _enter(self, name: str) -> None:
        self.calls.append(name)
        if name in self.failures:
            raise self.failures[name]

    async def fetch_psych_questions(self) -> List[Mapping[str, Any]]:
        self._enter("fetch_psych_questions")
        return list(self.psych_rows)

    async def fetch_aptitude_questions(self) -> List[Mapping[str, Any]]:
        self._enter("fetch_aptitude_questions")
        return list(self.aptitude_rows)

    async def latest_submission_since(self, table: str, user_id: str, since: datetime) -> Optional[datetime]:
        self._enter("latest_submission_since")
        matches = [r.created_at for r in self.records[table]
                   if r.user_id == user_id and as_utc(r.created_at) >= as_utc(since)]
        return max(matches) if matches else None

    def add_record(self, table: str, user_id: str, created_at: datetime) -> None:
        self.records[table].append(StoredSubmission(id="seeded", user_id=user_id, created_at=created_at))

    async def _insert(self, table: str, user_id: str, payload: Dict[str, Any]) -> StoredSubmission:
        stored = StoredSubmission(id=self.return_id, user_id=user_id, created_at=utc_now())
        self.records[table].append(stored)
        self.payloads.append(payload)
        return stored

    async def insert_psych_result(self, user_id, scores, answers) -> StoredSubmission:
        self._enter("insert_psych_result")
        return await self._insert("psych_results", user_id, {"scores": scores.as_dict(), "answers": dict(answers)})

    async def insert_aptitude_submission(self, user_id, score_total, breakdown, answers) -> StoredSubmission:
        self._enter("insert_aptitude_submission")
        return await self._insert("aptitude_submissions", user_id,
                                  {"score_total": score_total, "breakdown": dict(breakdown), "answers": dict(answers)})


class StaticAuthenticator:
    def __init__(self, principals: Dict[str, Principal]):
        self.principals = principals

    async def authenticate(self, token: Optional[str]) -> Optional[Principal]:
        return self.principals.get(token) if token else None


@pytest.fixture
def store(psych_rows, aptitude_rows) -> InMemoryStore:
    return InMemoryStore(psych_rows, aptitude_rows)


@pytest.fixture
def authenticator() -> StaticAuthenticator:
    return StaticAuthenticator({
        "user-1-token": Principal(id="user-1"),
        "user-2-token": Principal(id="user-2"),
    })


# --- Database fixtures (temporary sqlite file per test) ---

@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = get_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'solvo_test.db'}")
    await create_tables(engine)
    yield get_session_factory(engine)
    await engine.dispose()


@pytest_asyncio.fixture
async def seeded_factory(session_factory, psych_catalog, aptitude_catalog):
    async with session_factory() as session:
        await seed_questions(session, psych_catalog, aptitude_catalog)
    return session_factory
