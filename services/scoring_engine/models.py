"""
Core types shared by the submission pipeline: questions, answer sets,
tagged stage results and the store interface the pipeline talks to.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Generic, List, Mapping, Optional, Protocol, TypeVar, Union

if TYPE_CHECKING:
    from .output_validation import ValidatedTraitScores

T = TypeVar("T")

# --- Fixed enumerations ---

class Trait(str, Enum):
    OPENNESS = "openness"
    CONSCIENTIOUSNESS = "conscientiousness"
    EXTRAVERSION = "extraversion"
    AGREEABLENESS = "agreeableness"
    NEUROTICISM = "neuroticism"


class Category(str, Enum):
    NUMERICAL = "numerical"
    VERBAL = "verbal"
    CREATIVE = "creative"


TRAITS: List[str] = [t.value for t in Trait]
CATEGORIES: List[str] = [c.value for c in Category]
VALID_POLARITIES = (1, -1)
OPTION_ALPHABET = ("A", "B", "C", "D")

LIKERT_MIN = 1
LIKERT_MAX = 5
LIKERT_REVERSE_BASE = LIKERT_MIN + LIKERT_MAX  # 6

LIKERT_QUESTION_COUNT = 50
APTITUDE_QUESTION_COUNT = 30


# --- Questions ---

@dataclass(frozen=True)
class PsychQuestion:
    id: str
    trait: str
    polarity: int
    question_text: str


@dataclass(frozen=True)
class AptitudeQuestion:
    id: str
    category: str
    correct_answer: str
    question_text: str


# Raw answers as decoded from the request: question id -> response value
AnswerSet = Dict[str, Any]


# --- Tagged stage results ---

class Stage(str, Enum):
    """Pipeline states, in the order a submission moves through them."""
    RECEIVED = "received"
    BODY_PARSED = "body_parsed"
    AUTHENTICATED = "authenticated"
    RATE_LIMITED = "rate_limited"
    IDEMPOTENCY_CHECKED = "idempotency_checked"
    QUESTIONS_FETCHED = "questions_fetched"
    ANSWERS_VALIDATED = "answers_validated"
    SCORED = "scored"
    OUTPUT_VALIDATED = "output_validated"
    PERSISTED = "persisted"
    RESPONDED = "responded"


class FailureKind(str, Enum):
    INPUT = "input"
    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    CONFLICT = "conflict"
    INTEGRITY = "integrity"
    COMPUTATION = "computation"
    PERSISTENCE = "persistence"
    INTERNAL = "internal"


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T
    ok: bool = field(default=True, init=False)


@dataclass(frozen=True)
class Failure:
    stage: Stage
    kind: FailureKind
    code: str
    message: str
    status_code: int
    details: Optional[str] = None
    retry_after: Optional[int] = None
    ok: bool = field(default=False, init=False)


Result = Union[Success[T], Failure]


def input_error(stage: Stage, code: str, message: str, details: Optional[str] = None) -> Failure:
    """Shorthand for the 400 family; these are user mistakes, not faults."""
    return Failure(stage=stage, kind=FailureKind.INPUT, code=code, message=message,
                   status_code=400, details=details)


# --- Exceptions for unexpected faults ---

class ScoringError(Exception):
    """Raised when a scorer cannot produce a result from validated input."""
    pass


class StoreError(Exception):
    """Raised by store adapters when the backing store fails."""
    def __init__(self, message: str, operation: str = "unknown"):
        self.operation = operation
        super().__init__(message)


# --- Collaborators ---

@dataclass(frozen=True)
class Principal:
    """The authenticated subject a submission is recorded against."""
    id: str
    tier: str = "free"


class Authenticator(Protocol):
    async def authenticate(self, token: Optional[str]) -> Optional[Principal]: ...


# --- Store interface ---

@dataclass(frozen=True)
class StoredSubmission:
    id: Optional[str]
    user_id: str
    created_at: datetime


class SubmissionStore(Protocol):
    """What the pipeline needs from the external question/result store.

    Implementations raise StoreError on any backend failure.
    """

    async def fetch_psych_questions(self) -> List[Mapping[str, Any]]: ...

    async def fetch_aptitude_questions(self) -> List[Mapping[str, Any]]: ...

    async def latest_submission_since(self, table: str, user_id: str, since: datetime) -> Optional[datetime]: ...

    async def insert_psych_result(self, user_id: str, scores: "ValidatedTraitScores", answers: AnswerSet) -> StoredSubmission: ...

    async def insert_aptitude_submission(
        self, user_id: str, score_total: int, breakdown: Dict[str, int], answers: AnswerSet
    ) -> StoredSubmission: ...
