"""Pure operations over :class:`QuizState`.

Every function returns a new state and leaves its input untouched. Persistence
and timers live elsewhere (``repositories.session_store`` and
``services.quiz_machine``).
"""

import random
import uuid
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Optional, Sequence

from .errors import AlreadyAnswered, InvalidOption, QuizCompleted
from .model import Phase, Question, QuizState


def start(
    questions: Sequence[Question],
    time_budget: Optional[timedelta] = None,
    *,
    now: datetime,
    user_id: Optional[str] = None,
) -> QuizState:
    """Create a fresh quiz positioned on the first question."""
    if not questions:
        raise ValueError("A quiz needs at least one question")
    if time_budget is not None and time_budget <= timedelta(0):
        raise ValueError("time_budget must be positive")
    return QuizState(
        quiz_id=str(uuid.uuid4()),
        questions=tuple(questions),
        answers=(None,) * len(questions),
        current_index=0,
        started_at=now,
        time_budget=time_budget,
        user_id=user_id,
    )


def record_answer(state: QuizState, index: int, answer: str) -> QuizState:
    if state.is_complete:
        raise QuizCompleted("Cannot answer a completed quiz")
    if not 0 <= index < state.total:
        raise IndexError(f"Question index {index} out of range 0..{state.total - 1}")
    if state.answers[index] is not None:
        raise AlreadyAnswered(index)
    if not state.questions[index].is_option(answer):
        raise InvalidOption(index, answer)

    answers = list(state.answers)
    answers[index] = answer
    return replace(state, answers=tuple(answers))


def advance(state: QuizState) -> QuizState:
    # callers detect completion by current_index == total
    if state.is_complete or state.current_index >= state.total:
        raise QuizCompleted("No question left to advance to")
    return replace(state, current_index=state.current_index + 1)


def is_expired(state: QuizState, now: datetime) -> bool:
    if state.time_budget is None:
        return False
    return now - state.started_at >= state.time_budget


def remaining_time(state: QuizState, now: datetime) -> Optional[timedelta]:
    if state.time_budget is None:
        return None
    left = state.time_budget - (now - state.started_at)
    return max(left, timedelta(0))


def complete(state: QuizState, now: datetime) -> QuizState:
    if state.is_complete:
        raise QuizCompleted(f"Quiz {state.quiz_id} is already complete")
    return replace(state, completed_at=now)


def attach_user(state: QuizState, user_id: Optional[str]) -> QuizState:
    # first owner wins; a later sign-in on the same browser does not take the quiz over
    if user_id is None or state.user_id is not None or state.is_complete:
        return state
    return replace(state, user_id=user_id)


def phase(state: QuizState) -> Phase:
    if state.is_complete:
        return Phase.COMPLETE
    if state.current_index < state.total and state.answers[state.current_index] is not None:
        return Phase.ANSWERED
    return Phase.PRESENTING


def present_options(question: Question, rng: Optional[random.Random] = None) -> list[str]:
    """Return the option set in a fresh random order."""
    options = list(question.options)
    (rng or random).shuffle(options)
    return options
