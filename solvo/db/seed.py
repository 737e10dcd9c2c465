"""
Loads the question catalogs from YAML and writes them to the database.

Run as ``python -m solvo.db.seed`` to create the tables and (re)seed both
catalogs. Items that are no longer present in a catalog file are soft-deleted
rather than removed, so historical submissions keep their referents.
"""
import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from services.scoring_engine.models import (
    APTITUDE_QUESTION_COUNT,
    LIKERT_QUESTION_COUNT,
    Category,
    Trait,
)
from solvo.config import get_settings
from solvo.db.models import AptitudeQuestion, Base, PsychQuestion
from solvo.db.session import get_async_engine, get_session_factory
from solvo.logging_config import setup_logging

logger = logging.getLogger(__name__)

ASSETS_DIR = Path(__file__).resolve().parents[2] / "assets"
PSYCH_CATALOG_PATH = ASSETS_DIR / "psych_questions.yml"
APTITUDE_CATALOG_PATH = ASSETS_DIR / "aptitude_questions.yml"


class CatalogValidationError(ValueError):
    """Catalog file problems not covered by the pydantic schema."""
    pass


# --- Catalog file schema ---

class PsychItem(BaseModel):
    id: str = Field(..., min_length=1)
    trait: Trait
    polarity: Literal[1, -1]
    text: str = Field(..., min_length=1)


class AptitudeItem(BaseModel):
    id: str = Field(..., min_length=1)
    category: Category
    text: str = Field(..., min_length=1)
    options: Dict[Literal["A", "B", "C", "D"], str]
    correct_answer: Literal["A", "B", "C", "D"]


class PsychCatalog(BaseModel):
    version: str
    questions: List[PsychItem]


class AptitudeCatalog(BaseModel):
    version: str
    questions: List[AptitudeItem]


def _read_yaml(file_path: Path) -> Dict[str, Any]:
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise CatalogValidationError(f"File not found: {file_path}")
    except yaml.YAMLError as e:
        raise CatalogValidationError(f"Error parsing YAML file {file_path}: {e}")
    if not isinstance(data, dict):
        raise CatalogValidationError(f"YAML file is empty or invalid: {file_path}")
    return data


def _check_ids(ids: List[str], expected_count: int, name: str) -> None:
    if len(ids) != expected_count:
        raise CatalogValidationError(f"{name} catalog must hold {expected_count} questions, found {len(ids)}")
    seen = set()
    for question_id in ids:
        if question_id in seen:
            raise CatalogValidationError(f"Duplicate question ID '{question_id}' in {name} catalog")
        seen.add(question_id)


def load_psych_catalog(file_path: Path = PSYCH_CATALOG_PATH,
                       expected_count: int = LIKERT_QUESTION_COUNT) -> PsychCatalog:
    """
    Loads and validates the Likert catalog.

    Raises:
        CatalogValidationError: Missing file, bad YAML, wrong size or duplicate ids.
        ValidationError: An item does not match the schema (unknown trait, bad polarity).
    """
    catalog = PsychCatalog.model_validate(_read_yaml(file_path))
    _check_ids([q.id for q in catalog.questions], expected_count, "psychometric")
    missing = {t.value for t in Trait} - {q.trait.value for q in catalog.questions}
    if missing:
        raise CatalogValidationError(f"psychometric catalog has no items for: {', '.join(sorted(missing))}")
    return catalog


def load_aptitude_catalog(file_path: Path = APTITUDE_CATALOG_PATH,
                          expected_count: int = APTITUDE_QUESTION_COUNT) -> AptitudeCatalog:
    """Loads and validates the multiple-choice catalog."""
    catalog = AptitudeCatalog.model_validate(_read_yaml(file_path))
    _check_ids([q.id for q in catalog.questions], expected_count, "aptitude")
    for q in catalog.questions:
        if set(q.options) != {"A", "B", "C", "D"}:
            raise CatalogValidationError(f"Question '{q.id}' must define options A, B, C and D")
    return catalog


# --- Writing ---

async def _retire_missing(session: AsyncSession, model: Any, keep_ids: List[str], now: datetime) -> int:
    result = await session.execute(
        update(model)
        .where(model.deleted_at.is_(None), model.id.not_in(keep_ids))
        .values(deleted_at=now)
    )
    return result.rowcount or 0


async def seed_questions(session: AsyncSession, psych: PsychCatalog, aptitude: AptitudeCatalog) -> Dict[str, int]:
    """
    Upserts both catalogs and soft-deletes rows that are no longer listed.

    Returns:
        Counts of active rows written and rows retired, per table.
    """
    now = datetime.now(timezone.utc)
    for q in psych.questions:
        await session.merge(PsychQuestion(
            id=q.id, question_text=q.text, trait=q.trait.value, polarity=q.polarity, deleted_at=None,
        ))
    for q in aptitude.questions:
        await session.merge(AptitudeQuestion(
            id=q.id,
            question_text=q.text,
            option_a=q.options["A"],
            option_b=q.options["B"],
            option_c=q.options["C"],
            option_d=q.options["D"],
            correct_answer=q.correct_answer,
            category=q.category.value,
            deleted_at=None,
        ))
    await session.flush()
    retired_psych = await _retire_missing(session, PsychQuestion, [q.id for q in psych.questions], now)
    retired_aptitude = await _retire_missing(session, AptitudeQuestion, [q.id for q in aptitude.questions], now)
    await session.commit()

    active_psych = len((await session.execute(
        select(PsychQuestion.id).where(PsychQuestion.deleted_at.is_(None)))).all())
    active_aptitude = len((await session.execute(
        select(AptitudeQuestion.id).where(AptitudeQuestion.deleted_at.is_(None)))).all())
    counts = {
        "psych_questions": active_psych,
        "psych_questions_retired": retired_psych,
        "aptitude_questions": active_aptitude,
        "aptitude_questions_retired": retired_aptitude,
    }
    logger.info(f"Seeded question catalogs (psych v{psych.version}, aptitude v{aptitude.version})", extra=counts)
    return counts


async def create_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def main() -> None:
    settings = get_settings()
    setup_logging(settings.logging.level, json_format=settings.logging.json_format)
    try:
        psych = load_psych_catalog()
        aptitude = load_aptitude_catalog()
    except (CatalogValidationError, ValidationError) as e:
        logger.error(f"Refusing to seed, catalog is invalid: {e}")
        raise SystemExit(1)

    engine = get_async_engine(settings.database.url, echo=settings.database.echo)
    try:
        await create_tables(engine)
        async with get_session_factory(engine)() as session:
            await seed_questions(session, psych, aptitude)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
