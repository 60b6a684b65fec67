import random

import pytest

from triviaquest.domain import quiz_state
from triviaquest.domain.model import Score
from triviaquest.services.scorer import score

from conftest import build_questions


def _answered(questions, answers, clock):
    state = quiz_state.start(questions, now=clock())
    for i, a in enumerate(answers):
        if a is not None:
            state = quiz_state.record_answer(state, i, a)
    return state


def test_one_correct_one_wrong_one_unset(questions, clock):
    state = _answered(questions, ["right 1", "wrong 2a", None], clock)
    result = score(state)
    assert result == Score(correct=1, incorrect=1, unanswered=1, total=3)
    assert result.percentage == 33
    assert not result.celebrate


def test_buckets_always_sum_to_total(clock):
    rng = random.Random(1234)
    for n in range(1, 12):
        questions = build_questions(n)
        answers = [rng.choice([None, *q.options]) for q in questions]
        result = score(_answered(questions, answers, clock))
        assert result.correct + result.incorrect + result.unanswered == result.total == n


def test_partial_scoring_of_running_quiz(questions, clock):
    state = _answered(questions, ["right 1"], clock)
    assert score(state) == Score(correct=1, incorrect=0, unanswered=2, total=3)
    # pure: scoring twice gives the same answer
    assert score(state) == score(state)


@pytest.mark.parametrize(
    "correct,total,expected",
    [(0, 10, 0), (1, 8, 13), (2, 3, 67), (10, 10, 100), (0, 0, 0)],
)
def test_percentage_rounds_half_up(correct, total, expected):
    assert Score(correct=correct, incorrect=total - correct, unanswered=0, total=total).percentage == expected


def test_celebrate_from_seventy_percent():
    assert Score(correct=7, incorrect=3, unanswered=0, total=10).celebrate
    assert not Score(correct=6, incorrect=4, unanswered=0, total=10).celebrate
