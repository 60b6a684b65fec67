import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Tuple


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class Phase(str, Enum):
    PRESENTING = "presenting"
    ANSWERED = "answered"
    COMPLETE = "complete"


@dataclass(frozen=True)
class Question:
    category: str
    difficulty: Difficulty
    text: str
    correct_answer: str
    incorrect_answers: Tuple[str, ...]

    @property
    def options(self) -> Tuple[str, ...]:
        return (self.correct_answer, *self.incorrect_answers)

    def is_option(self, answer: str) -> bool:
        return answer in self.options


@dataclass(frozen=True)
class QuizState:
    quiz_id: str
    questions: Tuple[Question, ...]
    answers: Tuple[Optional[str], ...]
    current_index: int
    started_at: datetime
    time_budget: Optional[timedelta] = None
    user_id: Optional[str] = None
    completed_at: Optional[datetime] = None
    result_id: Optional[str] = None
    save_error: Optional[str] = None

    @property
    def total(self) -> int:
        return len(self.questions)

    @property
    def is_complete(self) -> bool:
        return self.completed_at is not None

    @property
    def answered_count(self) -> int:
        return sum(1 for a in self.answers if a is not None)


CELEBRATE_RATIO = 0.7


def percent(part: int, total: int) -> int:
    # half-up, so 12.5 -> 13 rather than banker's rounding
    if total <= 0:
        return 0
    return math.floor(part / total * 100 + 0.5)


@dataclass(frozen=True)
class Score:
    correct: int
    incorrect: int
    unanswered: int
    total: int

    @property
    def percentage(self) -> int:
        return percent(self.correct, self.total)

    @property
    def celebrate(self) -> bool:
        return self.total > 0 and self.correct / self.total >= CELEBRATE_RATIO


@dataclass(frozen=True)
class HistoryEntry:
    id: str
    user_id: str
    score: int
    incorrect: int
    unanswered: int
    total: int
    completed_at: datetime

    @property
    def percentage(self) -> int:
        return percent(self.score, self.total)


@dataclass(frozen=True)
class Identity:
    user_id: str
    email: Optional[str] = None
