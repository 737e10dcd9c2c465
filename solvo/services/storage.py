import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from services.scoring_engine.models import AnswerSet, StoredSubmission, StoreError
from services.scoring_engine.output_validation import ValidatedTraitScores
from solvo.db.models import (
    RESULT_TABLES,
    AptitudeQuestion,
    AptitudeSubmission,
    PsychQuestion,
    PsychResult,
)

logger = logging.getLogger(__name__)

# asyncpg surfaces refused or dropped connections as plain OSError
BACKEND_ERRORS = (SQLAlchemyError, OSError, asyncio.TimeoutError)


class SqlSubmissionStore:
    """
    SQLAlchemy-backed question catalog and submission store.

    Bound to one request-scoped session. Every backend failure is re-raised
    as StoreError so the pipeline never sees driver exceptions.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def fetch_psych_questions(self) -> List[Mapping[str, Any]]:
        stmt = select(
            PsychQuestion.id, PsychQuestion.trait, PsychQuestion.polarity, PsychQuestion.question_text
        ).where(PsychQuestion.deleted_at.is_(None))
        try:
            result = await self.session.execute(stmt)
        except BACKEND_ERRORS as e:
            raise StoreError(f"Failed to fetch psych_questions: {e}", operation="fetch") from e
        return [dict(row) for row in result.mappings().all()]

    async def fetch_aptitude_questions(self) -> List[Mapping[str, Any]]:
        stmt = select(
            AptitudeQuestion.id,
            AptitudeQuestion.category,
            AptitudeQuestion.correct_answer,
            AptitudeQuestion.question_text,
        ).where(AptitudeQuestion.deleted_at.is_(None)).order_by(AptitudeQuestion.id)
        try:
            result = await self.session.execute(stmt)
        except BACKEND_ERRORS as e:
            raise StoreError(f"Failed to fetch aptitude_questions: {e}", operation="fetch") from e
        return [dict(row) for row in result.mappings().all()]

    async def latest_submission_since(self, table: str, user_id: str, since: datetime) -> Optional[datetime]:
        model = RESULT_TABLES.get(table)
        if model is None:
            raise StoreError(f"Unknown submission table: {table}", operation="lookup")
        stmt = (
            select(model.created_at)
            .where(model.user_id == user_id, model.created_at >= since)
            .order_by(model.created_at.desc())
            .limit(1)
        )
        try:
            result = await self.session.execute(stmt)
        except BACKEND_ERRORS as e:
            raise StoreError(f"Idempotency lookup on {table} failed: {e}", operation="lookup") from e
        return result.scalar_one_or_none()

    async def insert_psych_result(
        self, user_id: str, scores: ValidatedTraitScores, answers: AnswerSet
    ) -> StoredSubmission:
        row = PsychResult(user_id=user_id, scores=scores.as_dict(), answers=dict(answers))
        return await self._insert(row)

    async def insert_aptitude_submission(
        self, user_id: str, score_total: int, breakdown: Dict[str, int], answers: AnswerSet
    ) -> StoredSubmission:
        row = AptitudeSubmission(user_id=user_id, score_total=score_total, breakdown=dict(breakdown),
                                 answers=dict(answers))
        return await self._insert(row)

    async def _insert(self, row: Any) -> StoredSubmission:
        table = row.__tablename__
        try:
            self.session.add(row)
            await self.session.flush()
        except BACKEND_ERRORS as e:
            await self._rollback(table)
            raise StoreError(f"Insert into {table} failed: {e}", operation="insert") from e
        try:
            await self.session.commit()
        except BACKEND_ERRORS as e:
            await self._rollback(table)
            raise StoreError(f"Commit on {table} failed: {e}", operation="commit") from e
        logger.debug(f"Stored row {row.id} in {table} for user {row.user_id}")
        return StoredSubmission(id=row.id, user_id=row.user_id, created_at=row.created_at)

    async def _rollback(self, table: str) -> None:
        try:
            await self.session.rollback()
        except BACKEND_ERRORS as e:
            logger.warning(f"Rollback on {table} failed: {e}")
