from typing import Dict, Literal, Optional

from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from services.scoring_engine.models import Failure, Result


class ErrorResponse(BaseModel):
    """Error envelope shared by every submission endpoint."""
    success: Literal[False] = False
    error: str = Field(..., description="Human-readable error message.")
    code: str = Field(..., description="Machine-readable error code.")
    details: Optional[str] = Field(None, description="Extra, user-actionable context.")


class BigFiveScores(BaseModel):
    openness: float
    conscientiousness: float
    extraversion: float
    agreeableness: float
    neuroticism: float


class PsychometricSubmitResponse(BaseModel):
    success: Literal[True] = True
    scores: BigFiveScores


class AptitudeSubmitResponse(BaseModel):
    success: Literal[True] = True
    scoreTotal: int
    breakdown: Dict[str, int]
    percentage: int


METHOD_NOT_ALLOWED = ErrorResponse(error="Method not allowed", code="METHOD_NOT_ALLOWED")


def error_response(failure: Failure) -> JSONResponse:
    # Server-side failures never describe their cause to the caller
    details = failure.details if failure.status_code < 500 else None
    body = ErrorResponse(error=failure.message, code=failure.code, details=details)
    headers = {"Retry-After": str(failure.retry_after)} if failure.retry_after else None
    return JSONResponse(status_code=failure.status_code, content=body.model_dump(exclude_none=True), headers=headers)


def render_outcome(outcome: Result, response_model: type[BaseModel]) -> JSONResponse:
    """Turns a pipeline result into the HTTP response."""
    if isinstance(outcome, Failure):
        return error_response(outcome)
    body = response_model.model_validate(outcome.value)
    return JSONResponse(status_code=200, content=body.model_dump())
