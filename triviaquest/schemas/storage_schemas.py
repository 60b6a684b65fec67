"""Versioned shape of a persisted in-progress quiz.

The session store only ever writes ``StoredQuizState`` JSON. On read the blob
is validated here; blobs in the old browser ``localStorage`` shape are migrated,
anything else is rejected with ``StoredStateInvalid``.
"""

import json
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from ..domain.errors import StoredStateInvalid
from ..domain.model import Difficulty, Question, QuizState

SCHEMA_VERSION = 1


class StoredQuestion(BaseModel):
    model_config = ConfigDict(extra="forbid")

    category: str
    difficulty: Difficulty
    text: str
    correctAnswer: str
    incorrectAnswers: List[str] = Field(..., min_length=1)

    @classmethod
    def from_domain(cls, q: Question) -> "StoredQuestion":
        return cls(
            category=q.category,
            difficulty=q.difficulty,
            text=q.text,
            correctAnswer=q.correct_answer,
            incorrectAnswers=list(q.incorrect_answers),
        )

    def to_domain(self) -> Question:
        return Question(
            category=self.category,
            difficulty=self.difficulty,
            text=self.text,
            correct_answer=self.correctAnswer,
            incorrect_answers=tuple(self.incorrectAnswers),
        )


class StoredQuizState(BaseModel):
    model_config = ConfigDict(extra="forbid")

    schemaVersion: Literal[1] = SCHEMA_VERSION
    quizId: str
    questions: List[StoredQuestion] = Field(..., min_length=1)
    answers: List[Optional[str]]
    currentIndex: int = Field(..., ge=0)
    startedAt: datetime
    timeBudgetSeconds: Optional[float] = Field(None, gt=0)
    userId: Optional[str] = None
    completedAt: Optional[datetime] = None
    resultId: Optional[str] = None
    saveError: Optional[str] = None

    @model_validator(mode="after")
    def _check_invariants(self) -> "StoredQuizState":
        if len(self.answers) != len(self.questions):
            raise ValueError("answers and questions differ in length")
        if self.currentIndex > len(self.questions):
            raise ValueError("currentIndex is past the end of the quiz")
        for i, (q, a) in enumerate(zip(self.questions, self.answers)):
            if a is not None and a != q.correctAnswer and a not in q.incorrectAnswers:
                raise ValueError(f"answer {i} is not one of the question's options")
        if self.startedAt.tzinfo is None:
            self.startedAt = self.startedAt.replace(tzinfo=timezone.utc)
        if self.completedAt is not None and self.completedAt.tzinfo is None:
            self.completedAt = self.completedAt.replace(tzinfo=timezone.utc)
        return self

    @classmethod
    def from_domain(cls, state: QuizState) -> "StoredQuizState":
        return cls(
            quizId=state.quiz_id,
            questions=[StoredQuestion.from_domain(q) for q in state.questions],
            answers=list(state.answers),
            currentIndex=state.current_index,
            startedAt=state.started_at,
            timeBudgetSeconds=state.time_budget.total_seconds() if state.time_budget else None,
            userId=state.user_id,
            completedAt=state.completed_at,
            resultId=state.result_id,
            saveError=state.save_error,
        )

    def to_domain(self) -> QuizState:
        return QuizState(
            quiz_id=self.quizId,
            questions=tuple(q.to_domain() for q in self.questions),
            answers=tuple(self.answers),
            current_index=self.currentIndex,
            started_at=self.startedAt,
            time_budget=timedelta(seconds=self.timeBudgetSeconds) if self.timeBudgetSeconds else None,
            user_id=self.userId,
            completed_at=self.completedAt,
            result_id=self.resultId,
            save_error=self.saveError,
        )


def _migrate_legacy(raw: dict) -> dict:
    """Convert the unversioned browser blob (``triviaQuiz`` key) to schema v1."""
    questions = [
        {
            "category": q["category"],
            "difficulty": q["difficulty"],
            "text": q["question"],
            "correctAnswer": q["correct_answer"],
            "incorrectAnswers": q["incorrect_answers"],
        }
        for q in raw["questions"]
    ]
    limit = raw.get("timeLimit")
    return {
        "schemaVersion": SCHEMA_VERSION,
        "quizId": str(uuid.uuid4()),
        "questions": questions,
        "answers": raw["answers"],
        "currentIndex": raw["currentQuestionIndex"],
        "startedAt": datetime.fromtimestamp(raw["startTime"] / 1000, tz=timezone.utc),
        "timeBudgetSeconds": limit if limit else None,
    }


def dump_state(state: QuizState) -> str:
    return StoredQuizState.from_domain(state).model_dump_json()


def load_state(blob: str | bytes) -> QuizState:
    try:
        raw: Any = json.loads(blob)
    except ValueError as e:
        raise StoredStateInvalid(f"Stored quiz is not JSON: {e}") from e
    if not isinstance(raw, dict):
        raise StoredStateInvalid("Stored quiz is not an object")

    version = raw.get("schemaVersion")
    if version is None and "currentQuestionIndex" in raw:
        try:
            raw = _migrate_legacy(raw)
        except (KeyError, TypeError, ValueError, OverflowError) as e:
            raise StoredStateInvalid(f"Legacy quiz blob could not be migrated: {e}") from e
    elif version != SCHEMA_VERSION:
        raise StoredStateInvalid(f"Unsupported stored quiz schema version {version!r}")

    try:
        return StoredQuizState.model_validate(raw).to_domain()
    except ValidationError as e:
        raise StoredStateInvalid(f"Stored quiz failed validation: {e.error_count()} error(s)") from e
