"""
Big Five (Likert) scoring.

Each answer in 1..5 is added to its trait's running sum, reverse-mapped first
(6 - answer) when the question has polarity -1. Traits are then normalized
independently against the range their own question count allows, so uneven
distributions of questions across traits score correctly.
"""
import math
from dataclasses import dataclass
from typing import Dict, Mapping, Sequence

from .models import (
    LIKERT_MAX,
    LIKERT_MIN,
    LIKERT_REVERSE_BASE,
    TRAITS,
    PsychQuestion,
    ScoringError,
)


@dataclass
class TraitTally:
    raw: int = 0
    count: int = 0


def round_half_up(value: float, places: int = 0) -> float:
    factor = 10 ** places
    return math.floor(value * factor + 0.5) / factor


def score_answer(answer: int, polarity: int) -> int:
    """Applies polarity to a raw response; the result stays in 1..5."""
    return LIKERT_REVERSE_BASE - answer if polarity == -1 else answer


def accumulate_trait_scores(answers: Mapping[str, int], questions: Sequence[PsychQuestion]) -> Dict[str, TraitTally]:
    tallies = {trait: TraitTally() for trait in TRAITS}
    for question in questions:
        answer = answers.get(question.id)
        if answer is None:
            raise ScoringError(f"Missing answer for question: {question.id}")
        if isinstance(answer, bool) or not isinstance(answer, int) or not LIKERT_MIN <= answer <= LIKERT_MAX:
            raise ScoringError(f"Invalid answer {answer!r} for question {question.id}. Must be {LIKERT_MIN}-{LIKERT_MAX}.")
        if question.polarity not in (1, -1):
            raise ScoringError(f"Invalid polarity for question {question.id}. Must be 1 or -1.")
        tally = tallies.get(question.trait)
        if tally is None:
            raise ScoringError(f"Unknown trait '{question.trait}' for question {question.id}")
        tally.raw += score_answer(answer, question.polarity)
        tally.count += 1
    return tallies


def normalize_trait_score(raw: int, count: int) -> float:
    min_possible = count * LIKERT_MIN
    max_possible = count * LIKERT_MAX
    span = max_possible - min_possible
    if span == 0:
        raise ScoringError("Cannot normalize: question count resulted in zero range")
    normalized = (raw - min_possible) / span * 100
    return round_half_up(max(0.0, min(100.0, normalized)), 2)


def calculate_raw_scores(answers: Mapping[str, int], questions: Sequence[PsychQuestion]) -> Dict[str, TraitTally]:
    """Per-trait sums and counts, without normalization."""
    if not questions:
        raise ScoringError("questions must be a non-empty sequence")
    return accumulate_trait_scores(answers, questions)


def calculate_big_five_score(answers: Mapping[str, int], questions: Sequence[PsychQuestion]) -> Dict[str, float]:
    """
    Computes the normalized Big Five profile.

    Args:
        answers: Validated answers, question id -> integer 1..5.
        questions: The active Likert question set.

    Returns:
        A dict with exactly the five traits, each a float in [0, 100] rounded to 2 places.

    Raises:
        ScoringError: If the input cannot be scored, including any trait with no questions.
    """
    tallies = calculate_raw_scores(answers, questions)
    for trait, tally in tallies.items():
        if tally.count == 0:
            raise ScoringError(f"No questions found for trait: {trait}")
    return {trait: normalize_trait_score(tally.raw, tally.count) for trait, tally in tallies.items()}
