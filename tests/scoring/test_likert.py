# tests/scoring/test_likert.py
import pytest

from services.scoring_engine.likert import (
    calculate_big_five_score,
    calculate_raw_scores,
    normalize_trait_score,
    round_half_up,
    score_answer,
)
from services.scoring_engine.models import TRAITS, PsychQuestion, ScoringError


def _agreeing_answers(questions, high=True):
    """Answers that push every trait to its maximum (or minimum)."""
    answers = {}
    for q in questions:
        top = q.polarity == 1 if high else q.polarity == -1
        answers[q.id] = 5 if top else 1
    return answers


def test_score_answer_applies_polarity():
    assert score_answer(5, 1) == 5
    assert score_answer(5, -1) == 1
    assert score_answer(2, -1) == 4


def test_all_maximum_scores_100(psych_questions):
    scores = calculate_big_five_score(_agreeing_answers(psych_questions), psych_questions)
    assert scores == {trait: 100.0 for trait in TRAITS}


def test_all_minimum_scores_0(psych_questions):
    scores = calculate_big_five_score(_agreeing_answers(psych_questions, high=False), psych_questions)
    assert scores == {trait: 0.0 for trait in TRAITS}


def test_neutral_answers_score_50(psych_questions, likert_answers):
    scores = calculate_big_five_score(likert_answers, psych_questions)
    assert scores == {trait: 50.0 for trait in TRAITS}


def test_reverse_scored_item_equivalence():
    forward = [PsychQuestion(id=f"{t}_f", trait=t, polarity=1, question_text="x") for t in TRAITS]
    reverse = [PsychQuestion(id=f"{t}_f", trait=t, polarity=-1, question_text="x") for t in TRAITS]
    for a in range(1, 6):
        answers = {q.id: a for q in forward}
        reversed_answers = {q.id: 6 - a for q in reverse}
        assert calculate_big_five_score(answers, forward) == calculate_big_five_score(reversed_answers, reverse)


def test_uneven_trait_distribution_normalizes_per_trait():
    questions = [PsychQuestion(id="ope_1", trait="openness", polarity=1, question_text="x")]
    questions += [PsychQuestion(id=f"{t}_{i}", trait=t, polarity=1, question_text="x")
                  for t in TRAITS[1:] for i in range(3)]
    answers = {q.id: 5 for q in questions}
    answers["ope_1"] = 4
    scores = calculate_big_five_score(answers, questions)
    assert scores["openness"] == 75.0
    assert all(scores[t] == 100.0 for t in TRAITS[1:])


def test_trait_without_questions_raises(psych_questions, likert_answers):
    questions = [q for q in psych_questions if q.trait != "neuroticism"]
    with pytest.raises(ScoringError, match="No questions found for trait: neuroticism"):
        calculate_big_five_score(likert_answers, questions)


def test_missing_answer_raises(psych_questions, likert_answers):
    likert_answers.pop(psych_questions[0].id)
    with pytest.raises(ScoringError, match="Missing answer"):
        calculate_big_five_score(likert_answers, psych_questions)


@pytest.mark.parametrize("bad", [0, 6, True, "3"])
def test_invalid_answer_raises(psych_questions, likert_answers, bad):
    likert_answers[psych_questions[0].id] = bad
    with pytest.raises(ScoringError):
        calculate_big_five_score(likert_answers, psych_questions)


def test_raw_scores_per_trait(psych_questions, likert_answers):
    tallies = calculate_raw_scores(likert_answers, psych_questions)
    for trait in TRAITS:
        assert tallies[trait].count == 10
        assert tallies[trait].raw == 30


def test_raw_scores_need_questions():
    with pytest.raises(ScoringError):
        calculate_raw_scores({}, [])


def test_normalize_rounds_to_two_places():
    # 3 questions, raw 10: (10 - 3) / 12 * 100 = 58.333...
    assert normalize_trait_score(10, 3) == 58.33
    with pytest.raises(ScoringError):
        normalize_trait_score(0, 0)


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(0.125, 2) == 0.13
    assert round_half_up(66.666, 2) == 66.67
