"""
Output Validator for Likert scores.

A score that fails here means the scoring logic produced garbage. It is an
internal integrity fault, never a user error, and it must not be persisted.
Persistence only accepts a ValidatedTraitScores, which only this module
creates.
"""
import logging
import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Mapping

from .models import TRAITS, Failure, FailureKind, Result, Stage, Success

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidatedTraitScores:
    scores: Mapping[str, float]

    def as_dict(self) -> Dict[str, float]:
        return {trait: self.scores[trait] for trait in TRAITS}


def _reject(reason: str) -> Failure:
    return Failure(stage=Stage.OUTPUT_VALIDATED, kind=FailureKind.COMPUTATION, code="INVALID_OUTPUT",
                   message="Invalid score output", status_code=500, details=reason)


def validate_trait_scores(scores: Any) -> Result[ValidatedTraitScores]:
    if scores is None or not isinstance(scores, Mapping):
        return _reject("Score output is not an object")

    for trait in TRAITS:
        if trait not in scores:
            return _reject(f"Missing trait: {trait}")
        value = scores[trait]
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            return _reject(f"Invalid value for {trait}")
        if value < 0 or value > 100:
            return _reject(f"Value for {trait} out of range")

    if len(scores) != len(TRAITS):
        extra = sorted(str(k) for k in scores if k not in TRAITS)
        return _reject(f"Expected {len(TRAITS)} traits, found {len(scores)} (unexpected: {', '.join(extra)})")

    frozen = MappingProxyType({trait: float(scores[trait]) for trait in TRAITS})
    return Success(ValidatedTraitScores(scores=frozen))
