"""Integrity checks for question rows fetched from the store."""
import logging
from typing import Any, List, Mapping, Optional, Sequence

from .models import (
    CATEGORIES,
    OPTION_ALPHABET,
    TRAITS,
    VALID_POLARITIES,
    AptitudeQuestion,
    Failure,
    FailureKind,
    PsychQuestion,
    Result,
    Stage,
    Success,
)

logger = logging.getLogger(__name__)

UNAVAILABLE_MESSAGE = "Service temporarily unavailable"


def _integrity_failure(code: str, details: str) -> Failure:
    return Failure(stage=Stage.QUESTIONS_FETCHED, kind=FailureKind.INTEGRITY, code=code,
                   message=UNAVAILABLE_MESSAGE, status_code=503, details=details)


def _check_count(rows: Sequence[Mapping[str, Any]], expected_count: int, table: str) -> Optional[Failure]:
    if not rows:
        logger.error("catalog.no_questions", extra={"table": table})
        return _integrity_failure("NO_QUESTIONS", "Database contains no active questions")
    if len(rows) != expected_count:
        logger.error("catalog.count_mismatch", extra={"table": table, "expected": expected_count, "actual": len(rows)})
        return _integrity_failure("INVALID_QUESTION_COUNT", f"Expected {expected_count} questions, found {len(rows)}")
    return None


def _check_common(row: Mapping[str, Any], table: str) -> Optional[Failure]:
    question_id = row.get("id")
    if not question_id or not isinstance(question_id, str):
        logger.error("catalog.integrity_error", extra={"table": table, "issue": "missing_id", "question_id": question_id})
        return _integrity_failure("DB_INTEGRITY_ERROR", "Question found with invalid or missing id")
    text = row.get("question_text")
    if not text or not isinstance(text, str):
        logger.error("catalog.integrity_error", extra={"table": table, "issue": "missing_question_text", "question_id": question_id})
        return _integrity_failure("DB_INTEGRITY_ERROR", "Question missing text content")
    return None


def validate_psych_catalog(rows: Sequence[Mapping[str, Any]], expected_count: int) -> Result[List[PsychQuestion]]:
    failure = _check_count(rows, expected_count, "psych_questions")
    if failure:
        return failure

    questions: List[PsychQuestion] = []
    for row in rows:
        failure = _check_common(row, "psych_questions")
        if failure:
            return failure
        if row.get("trait") not in TRAITS:
            logger.error("catalog.integrity_error",
                         extra={"table": "psych_questions", "issue": "invalid_trait", "question_id": row["id"], "trait": row.get("trait")})
            return _integrity_failure("DB_INTEGRITY_ERROR", "Invalid trait found in question database")
        polarity = row.get("polarity")
        if isinstance(polarity, bool) or polarity not in VALID_POLARITIES:
            logger.error("catalog.integrity_error",
                         extra={"table": "psych_questions", "issue": "invalid_polarity", "question_id": row["id"], "polarity": polarity})
            return _integrity_failure("DB_INTEGRITY_ERROR", "Invalid polarity found in question database")
        questions.append(PsychQuestion(id=row["id"], trait=row["trait"], polarity=int(polarity),
                                       question_text=row["question_text"]))
    return Success(questions)


def validate_aptitude_catalog(rows: Sequence[Mapping[str, Any]], expected_count: int) -> Result[List[AptitudeQuestion]]:
    failure = _check_count(rows, expected_count, "aptitude_questions")
    if failure:
        return failure

    questions: List[AptitudeQuestion] = []
    for row in rows:
        failure = _check_common(row, "aptitude_questions")
        if failure:
            return failure
        if row.get("category") not in CATEGORIES:
            logger.error("catalog.integrity_error",
                         extra={"table": "aptitude_questions", "issue": "invalid_category", "question_id": row["id"], "category": row.get("category")})
            return _integrity_failure("DB_INTEGRITY_ERROR", "Invalid category found in question database")
        if row.get("correct_answer") not in OPTION_ALPHABET:
            logger.error("catalog.integrity_error",
                         extra={"table": "aptitude_questions", "issue": "invalid_correct_answer", "question_id": row["id"]})
            return _integrity_failure("DB_INTEGRITY_ERROR", "Invalid answer key found in question database")
        questions.append(AptitudeQuestion(id=row["id"], category=row["category"],
                                          correct_answer=row["correct_answer"], question_text=row["question_text"]))
    return Success(questions)
