"""
Submission Orchestrator.

Moves one submission through a linear sequence of stages:

    Received -> BodyParsed -> Authenticated -> IdempotencyChecked
    -> QuestionsFetched -> AnswersValidated -> Scored -> OutputValidated
    -> Persisted -> Responded

(a rate-limit check sits between Authenticated and IdempotencyChecked).
Each stage either advances or ends the run with a Failure tagged with that
stage. Nothing after a failing stage executes. Store errors are caught where
they happen and converted, so raw backend errors never reach the caller.

The two assessments differ only in the pieces supplied by an Assessment
subclass: catalog fetch and integrity, per-answer value check, scoring,
output validation, persistence and the success payload.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Union

from .aptitude import AptitudeScore, calculate_aptitude_score
from .catalog import validate_aptitude_catalog, validate_psych_catalog
from .idempotency import IdempotencyGuard
from .likert import calculate_big_five_score
from .models import (
    APTITUDE_QUESTION_COUNT,
    LIKERT_QUESTION_COUNT,
    AnswerSet,
    Authenticator,
    Failure,
    FailureKind,
    Principal,
    Result,
    Stage,
    StoredSubmission,
    StoreError,
    SubmissionStore,
    Success,
)
from .output_validation import ValidatedTraitScores, validate_trait_scores
from .rate_limit import AllowAllRateLimiter, RateLimiter
from .validation import (
    ValueCheck,
    check_likert_value,
    check_option_value,
    parse_submission_body,
    validate_answers,
)

logger = logging.getLogger(__name__)


# --- Assessment definitions ---

class Assessment(ABC):
    name: str
    results_table: str
    expected_count: int

    @abstractmethod
    async def fetch_catalog(self, store: SubmissionStore) -> Sequence[Dict[str, Any]]:
        ...

    @abstractmethod
    def validate_catalog(self, rows: Sequence[Dict[str, Any]]) -> Result[List[Any]]:
        ...

    @property
    @abstractmethod
    def check_value(self) -> ValueCheck:
        ...

    @abstractmethod
    def score(self, answers: AnswerSet, questions: List[Any]) -> Any:
        """Computes the score; may raise for unexpected faults."""

    def validate_output(self, score: Any) -> Result[Any]:
        return Success(score)

    @abstractmethod
    async def persist(self, store: SubmissionStore, user_id: str, output: Any, answers: AnswerSet) -> StoredSubmission:
        ...

    @abstractmethod
    def success_body(self, output: Any) -> Dict[str, Any]:
        ...


class PsychometricAssessment(Assessment):
    """50-item Big Five inventory scored per trait."""
    name = "psychometric"
    results_table = "psych_results"
    expected_count = LIKERT_QUESTION_COUNT

    async def fetch_catalog(self, store: SubmissionStore) -> Sequence[Dict[str, Any]]:
        return await store.fetch_psych_questions()

    def validate_catalog(self, rows):
        return validate_psych_catalog(rows, self.expected_count)

    @property
    def check_value(self) -> ValueCheck:
        return check_likert_value

    def score(self, answers, questions) -> Dict[str, float]:
        return calculate_big_five_score(answers, questions)

    def validate_output(self, score: Any) -> Result[ValidatedTraitScores]:
        return validate_trait_scores(score)

    async def persist(self, store, user_id, output: ValidatedTraitScores, answers) -> StoredSubmission:
        return await store.insert_psych_result(user_id, output, answers)

    def success_body(self, output: ValidatedTraitScores) -> Dict[str, Any]:
        return {"success": True, "scores": output.as_dict()}


class AptitudeAssessment(Assessment):
    """30-item multiple-choice test scored per category."""
    name = "aptitude"
    results_table = "aptitude_submissions"
    expected_count = APTITUDE_QUESTION_COUNT

    async def fetch_catalog(self, store: SubmissionStore) -> Sequence[Dict[str, Any]]:
        return await store.fetch_aptitude_questions()

    def validate_catalog(self, rows):
        return validate_aptitude_catalog(rows, self.expected_count)

    @property
    def check_value(self) -> ValueCheck:
        return check_option_value

    def score(self, answers, questions) -> AptitudeScore:
        return calculate_aptitude_score(answers, questions, self.expected_count)

    async def persist(self, store, user_id, output: AptitudeScore, answers) -> StoredSubmission:
        return await store.insert_aptitude_submission(user_id, output.total, output.breakdown, answers)

    def success_body(self, output: AptitudeScore) -> Dict[str, Any]:
        return {
            "success": True,
            "scoreTotal": output.total,
            "breakdown": dict(output.breakdown),
            "percentage": output.percentage,
        }


# --- Orchestrator ---

class SubmissionOrchestrator:
    def __init__(
        self,
        assessment: Assessment,
        store: SubmissionStore,
        authenticator: Authenticator,
        guard: IdempotencyGuard,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        self.assessment = assessment
        self.store = store
        self.authenticator = authenticator
        self.guard = guard
        self.rate_limiter = rate_limiter or AllowAllRateLimiter()

    async def submit(self, raw_body: Union[bytes, str], token: Optional[str]) -> Result[Dict[str, Any]]:
        """Runs the pipeline; never raises."""
        try:
            return await self._run(raw_body, token)
        except Exception as e:
            logger.error("submission.unexpected_error",
                         extra={"assessment": self.assessment.name, "error": str(e)}, exc_info=True)
            return Failure(stage=Stage.RECEIVED, kind=FailureKind.INTERNAL, code="INTERNAL_ERROR",
                           message="Internal server error", status_code=500)

    async def _run(self, raw_body: Union[bytes, str], token: Optional[str]) -> Result[Dict[str, Any]]:
        assessment = self.assessment

        # Received -> BodyParsed
        parsed = parse_submission_body(raw_body)
        if isinstance(parsed, Failure):
            return self._input_failure(parsed)
        answers: AnswerSet = parsed.value

        # BodyParsed -> Authenticated
        principal = await self.authenticator.authenticate(token)
        if principal is None or not principal.id:
            logger.info("submission.unauthorized", extra={"assessment": assessment.name})
            return Failure(stage=Stage.AUTHENTICATED, kind=FailureKind.AUTH, code="UNAUTHORIZED",
                           message="Unauthorized: Valid session required", status_code=401)
        user_id = principal.id

        failure = await self._check_rate_limit(principal)
        if failure:
            return failure

        # Authenticated -> IdempotencyChecked
        verdict = await self.guard.check(self.store, assessment.results_table, user_id)
        if verdict.is_duplicate:
            logger.info("submission.duplicate_blocked",
                        extra={"assessment": assessment.name, "user_id": user_id, "age_seconds": verdict.age_seconds})
            return Failure(stage=Stage.IDEMPOTENCY_CHECKED, kind=FailureKind.CONFLICT, code="DUPLICATE_SUBMISSION",
                           message="Duplicate submission detected", status_code=409,
                           details=f"Please wait {verdict.retry_after} seconds before resubmitting",
                           retry_after=verdict.retry_after)

        # IdempotencyChecked -> QuestionsFetched
        try:
            rows = await assessment.fetch_catalog(self.store)
        except StoreError as e:
            logger.error("catalog.fetch_failed", extra={"assessment": assessment.name, "error": str(e)})
            return Failure(stage=Stage.QUESTIONS_FETCHED, kind=FailureKind.PERSISTENCE, code="DB_FETCH_FAILED",
                           message="Failed to fetch questions", status_code=500)
        catalog = assessment.validate_catalog(rows)
        if isinstance(catalog, Failure):
            # Already logged with the violation by the catalog check
            return Failure(stage=catalog.stage, kind=catalog.kind, code=catalog.code,
                           message=catalog.message, status_code=catalog.status_code)
        questions = catalog.value

        # QuestionsFetched -> AnswersValidated
        validated = validate_answers(answers, (q.id for q in questions), assessment.expected_count,
                                     assessment.check_value)
        if isinstance(validated, Failure):
            return self._input_failure(validated, user_id)
        answers = validated.value

        # AnswersValidated -> Scored
        try:
            score = assessment.score(answers, questions)
        except Exception as e:
            logger.error("score.calculation_failed",
                         extra={"assessment": assessment.name, "user_id": user_id, "error": str(e)}, exc_info=True)
            return Failure(stage=Stage.SCORED, kind=FailureKind.COMPUTATION, code="CALCULATION_FAILED",
                           message="Failed to calculate scores", status_code=500)

        # Scored -> OutputValidated
        output = assessment.validate_output(score)
        if isinstance(output, Failure):
            logger.error("score.output_invalid",
                         extra={"assessment": assessment.name, "user_id": user_id, "reason": output.details})
            # The specific violation stays in the log
            return Failure(stage=output.stage, kind=output.kind, code=output.code,
                           message=output.message, status_code=output.status_code)

        # OutputValidated -> Persisted
        persisted = await self._persist(output.value, user_id, answers)
        if isinstance(persisted, Failure):
            return persisted

        # Persisted -> Responded
        logger.info("submission.success",
                    extra={"assessment": assessment.name, "user_id": user_id, "result_id": persisted.value.id})
        return Success(assessment.success_body(output.value))

    async def _check_rate_limit(self, principal: Principal) -> Optional[Failure]:
        decision = await self.rate_limiter.check(principal)
        if decision.allowed:
            return None
        logger.info("submission.rate_limited",
                    extra={"assessment": self.assessment.name, "user_id": principal.id, "retry_after": decision.retry_after})
        return Failure(stage=Stage.RATE_LIMITED, kind=FailureKind.RATE_LIMIT, code="RATE_LIMIT_EXCEEDED",
                       message="Too many submissions", status_code=429,
                       details=(f"Please try again in {decision.retry_after} seconds" if decision.retry_after else None),
                       retry_after=decision.retry_after)

    async def _persist(self, output: Any, user_id: str, answers: AnswerSet) -> Result[StoredSubmission]:
        table = self.assessment.results_table
        try:
            stored = await self.assessment.persist(self.store, user_id, output, answers)
        except StoreError as e:
            if e.operation == "commit":
                logger.error("persist.transaction_failed", extra={"table": table, "user_id": user_id, "error": str(e)})
                return Failure(stage=Stage.PERSISTED, kind=FailureKind.PERSISTENCE, code="DB_TRANSACTION_FAILED",
                               message="Failed to save results", status_code=500)
            logger.error("persist.insert_failed", extra={"table": table, "user_id": user_id, "error": str(e)})
            return Failure(stage=Stage.PERSISTED, kind=FailureKind.PERSISTENCE, code="DB_INSERT_FAILED",
                           message="Failed to save results", status_code=500)

        if stored is None or not stored.id:
            logger.error("persist.verification_failed", extra={"table": table, "user_id": user_id})
            return Failure(stage=Stage.PERSISTED, kind=FailureKind.PERSISTENCE, code="DB_VERIFICATION_FAILED",
                           message="Failed to verify saved results", status_code=500)
        return Success(stored)

    def _input_failure(self, failure: Failure, user_id: Optional[str] = None) -> Failure:
        logger.info("submission.rejected",
                    extra={"assessment": self.assessment.name, "user_id": user_id, "code": failure.code})
        return failure
