"""
Answer Validator.

Classifies a submitted answer set against the active question set. Checks
run in a fixed order and the first failing check is the one reported:

1. structural   - body decodes to a non-empty object of id -> scalar
2. cardinality  - exactly as many answers as active questions
3. value        - each answer is in the assessment's response range
4. referential  - no unknown ids, no unanswered questions
5. set equality - answer id set and question id set have equal size

Nothing here touches I/O; every function returns a Success or a Failure.
"""
import json
import math
from typing import Any, Callable, Iterable, Optional, Union

from .models import (
    LIKERT_MAX,
    LIKERT_MIN,
    OPTION_ALPHABET,
    AnswerSet,
    Failure,
    Result,
    Stage,
    Success,
    input_error,
)

ValueCheck = Callable[[str, Any], Union[Any, Failure]]

_SCALAR_TYPES = (str, int, float, bool, type(None))


def parse_submission_body(raw: Union[bytes, str]) -> Result[AnswerSet]:
    """Decodes the request body and returns its `answers` object."""
    try:
        body = json.loads(raw)
    except (ValueError, UnicodeDecodeError):
        return input_error(Stage.BODY_PARSED, "INVALID_JSON", "Invalid JSON payload",
                           "Unable to parse request body")

    answers = body.get("answers") if isinstance(body, dict) else None
    if isinstance(answers, list):
        return input_error(Stage.BODY_PARSED, "INVALID_BODY", "Invalid request body",
                           "answers must be an object, not an array")
    if not isinstance(answers, dict):
        return input_error(Stage.BODY_PARSED, "INVALID_BODY", "Invalid request body",
                           "answers field is required and must be an object")
    if not answers:
        return input_error(Stage.BODY_PARSED, "INVALID_BODY", "Invalid request body",
                           "answers object cannot be empty")
    for question_id, value in answers.items():
        if not isinstance(value, _SCALAR_TYPES):
            return input_error(Stage.BODY_PARSED, "INVALID_BODY", "Invalid request body",
                               f"Answer for question {question_id} must be a single value")
    return Success(answers)


# --- Per-answer value checks ---
# Each returns the normalized value on success, or a Failure.

def check_likert_value(question_id: str, value: Any) -> Union[int, Failure]:
    # bool is an int subclass in Python; true/false are not Likert responses
    is_integer = (
        not isinstance(value, bool)
        and (isinstance(value, int) or (isinstance(value, float) and math.isfinite(value) and value.is_integer()))
    )
    if not is_integer:
        return input_error(Stage.ANSWERS_VALIDATED, "INVALID_ANSWER_VALUE", "Invalid answer value",
                           f"Answer for question {question_id} must be an integer")
    value = int(value)
    if value < LIKERT_MIN or value > LIKERT_MAX:
        return input_error(Stage.ANSWERS_VALIDATED, "INVALID_ANSWER_RANGE", "Invalid answer value",
                           f"Answer for question {question_id} must be between {LIKERT_MIN} and {LIKERT_MAX}")
    return value


def check_option_value(question_id: str, value: Any) -> Union[str, Failure]:
    if not isinstance(value, str) or value not in OPTION_ALPHABET:
        return input_error(Stage.ANSWERS_VALIDATED, "INVALID_ANSWER_VALUE", "Invalid answer value",
                           f"Answer for question {question_id} must be {', '.join(OPTION_ALPHABET[:-1])}, or {OPTION_ALPHABET[-1]}")
    return value


# --- Set checks ---

def check_answer_count(answers: AnswerSet, expected_count: int) -> Optional[Failure]:
    received = len(answers)
    if received != expected_count:
        return input_error(Stage.ANSWERS_VALIDATED, "INVALID_ANSWER_COUNT", "Invalid answer count",
                           f"Expected exactly {expected_count} answers, received {received}")
    return None


def check_referential_integrity(answers: AnswerSet, question_ids: Iterable[str]) -> Optional[Failure]:
    """Rejects answers for unknown questions, then questions left unanswered."""
    known = set(question_ids)
    answered = set(answers.keys())

    unknown = [qid for qid in answered if qid not in known]
    if unknown:
        return input_error(Stage.ANSWERS_VALIDATED, "UNKNOWN_QUESTION_IDS", "Unknown question IDs detected",
                           f"Found {len(unknown)} answer(s) for non-existent questions")

    missing = [qid for qid in known if qid not in answered]
    if missing:
        return input_error(Stage.ANSWERS_VALIDATED, "INCOMPLETE_ANSWERS", "Incomplete answers",
                           f"Missing answers for {len(missing)} question(s)")
    return None


def check_set_equality(answers: AnswerSet, question_ids: Iterable[str]) -> Optional[Failure]:
    expected = len(set(question_ids))
    received = len(set(answers.keys()))
    if expected != received:
        return input_error(Stage.ANSWERS_VALIDATED, "ANSWER_COUNT_MISMATCH", "Answer count mismatch",
                           f"Expected {expected} answers, received {received}")
    return None


def validate_answers(
    answers: AnswerSet,
    question_ids: Iterable[str],
    expected_count: int,
    check_value: ValueCheck,
) -> Result[AnswerSet]:
    """
    Runs checks 2-5 against an already-parsed answer set.

    Args:
        answers: The decoded answers object.
        question_ids: Ids of the active question set.
        expected_count: Number of answers the assessment requires.
        check_value: Per-answer check, e.g. check_likert_value.

    Returns:
        Success holding the answers with normalized values, or the first Failure.
    """
    question_ids = list(question_ids)

    failure = check_answer_count(answers, expected_count)
    if failure:
        return failure

    normalized: AnswerSet = {}
    for question_id, value in answers.items():
        checked = check_value(question_id, value)
        if isinstance(checked, Failure):
            return checked
        normalized[question_id] = checked

    failure = check_referential_integrity(normalized, question_ids)
    if failure:
        return failure

    failure = check_set_equality(normalized, question_ids)
    if failure:
        return failure

    return Success(normalized)
