import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    SmallInteger,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base

# Define naming conventions for constraints and indexes
# https://alembic.sqlalchemy.org/en/latest/naming.html
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=convention)
Base = declarative_base(metadata=metadata)


def _uuid_str() -> str:
    return str(uuid.uuid4())


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# --- Question catalogs (read-only to the submission pipeline) ---

class PsychQuestion(Base):
    __tablename__ = "psych_questions"

    id = Column(String(64), primary_key=True, default=_uuid_str)
    question_text = Column(Text, nullable=False)
    trait = Column(String(32), nullable=False)
    polarity = Column(SmallInteger, nullable=False)
    # Soft delete: only rows with deleted_at NULL are active
    deleted_at = Column(DateTime(timezone=True), nullable=True)


class AptitudeQuestion(Base):
    __tablename__ = "aptitude_questions"

    id = Column(String(64), primary_key=True, default=_uuid_str)
    question_text = Column(Text, nullable=False)
    option_a = Column(Text, nullable=False)
    option_b = Column(Text, nullable=False)
    option_c = Column(Text, nullable=False)
    option_d = Column(Text, nullable=False)
    correct_answer = Column(String(1), nullable=False)
    category = Column(String(32), nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)


# --- Append-only submission records ---

class PsychResult(Base):
    __tablename__ = "psych_results"

    id = Column(String(36), primary_key=True, default=_uuid_str)
    user_id = Column(String(64), nullable=False)
    scores = Column(JSON, nullable=False)
    answers = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utc_now)

    __table_args__ = (
        Index("ix_psych_results_user_id_created_at", "user_id", "created_at"),
    )


class AptitudeSubmission(Base):
    __tablename__ = "aptitude_submissions"

    id = Column(String(36), primary_key=True, default=_uuid_str)
    user_id = Column(String(64), nullable=False)
    score_total = Column(Integer, nullable=False)
    breakdown = Column(JSON, nullable=False)
    answers = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utc_now)

    __table_args__ = (
        Index("ix_aptitude_submissions_user_id_created_at", "user_id", "created_at"),
    )


RESULT_TABLES = {
    PsychResult.__tablename__: PsychResult,
    AptitudeSubmission.__tablename__: AptitudeSubmission,
}
