"""Aptitude (multiple-choice) scoring: correct answers tallied per category."""
from dataclasses import dataclass
from typing import Dict, Mapping, Sequence

from .likert import round_half_up
from .models import CATEGORIES, AptitudeQuestion, ScoringError


@dataclass(frozen=True)
class AptitudeScore:
    total: int
    breakdown: Dict[str, int]
    percentage: int


def calculate_aptitude_score(
    answers: Mapping[str, str],
    questions: Sequence[AptitudeQuestion],
    expected_count: int,
) -> AptitudeScore:
    if expected_count <= 0:
        raise ScoringError("expected_count must be positive")

    breakdown = {category: 0 for category in CATEGORIES}
    total = 0
    for question in questions:
        # Exact, case-sensitive comparison against the stored key
        if answers.get(question.id) == question.correct_answer:
            if question.category not in breakdown:
                raise ScoringError(f"Unknown category '{question.category}' for question {question.id}")
            breakdown[question.category] += 1
            total += 1

    percentage = int(round_half_up(total / expected_count * 100))
    return AptitudeScore(total=total, breakdown=breakdown, percentage=percentage)
