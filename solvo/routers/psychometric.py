from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from services.scoring_engine.idempotency import IdempotencyGuard
from services.scoring_engine.models import Authenticator
from services.scoring_engine.pipeline import PsychometricAssessment, SubmissionOrchestrator
from services.scoring_engine.rate_limit import RateLimiter
from solvo.dependencies import (
    get_access_token,
    get_authenticator,
    get_idempotency_guard,
    get_rate_limiter,
    get_submission_store,
)
from solvo.schemas.submission import (
    METHOD_NOT_ALLOWED,
    ErrorResponse,
    PsychometricSubmitResponse,
    render_outcome,
)
from solvo.services.storage import SqlSubmissionStore

router = APIRouter()

SUBMIT_PATH = "/psychometric/submit"


@router.post(
    SUBMIT_PATH,
    response_model=PsychometricSubmitResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}, 409: {"model": ErrorResponse},
               500: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def submit_psychometric(
    request: Request,
    token: Optional[str] = Depends(get_access_token),
    store: SqlSubmissionStore = Depends(get_submission_store),
    authenticator: Authenticator = Depends(get_authenticator),
    guard: IdempotencyGuard = Depends(get_idempotency_guard),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
):
    """
    Scores a 50-answer Big Five submission and records it.

    Body: ``{"answers": {"<question_id>": 1..5, ...}}``
    """
    orchestrator = SubmissionOrchestrator(
        assessment=PsychometricAssessment(),
        store=store,
        authenticator=authenticator,
        guard=guard,
        rate_limiter=rate_limiter,
    )
    outcome = await orchestrator.submit(await request.body(), token)
    return render_outcome(outcome, PsychometricSubmitResponse)


@router.api_route(SUBMIT_PATH, methods=["GET", "PUT", "DELETE", "PATCH"], include_in_schema=False)
async def psychometric_method_not_allowed():
    return JSONResponse(status_code=405, content=METHOD_NOT_ALLOWED.model_dump(exclude_none=True),
                        headers={"Allow": "POST"})
