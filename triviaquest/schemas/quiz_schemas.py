from typing import List, Literal, Optional
from pydantic import BaseModel, Field


class TimeLimitOption(BaseModel):
    value: Optional[int]
    label: str


class QuizConfigOut(BaseModel):
    timeLimits: List[TimeLimitOption]
    defaultTimeLimit: Optional[int]
    questionCount: int


class StartQuizIn(BaseModel):
    timeLimit: Optional[int] = Field(None, gt=0, description="Seconds for the whole quiz; null for no limit")


class QuizStatusOut(BaseModel):
    quizId: str
    phase: Literal["presenting", "answered", "complete"]
    currentIndex: int
    total: int
    answeredCount: int
    timeLimit: Optional[int]
    remainingSeconds: Optional[int]
    next: str


class QuestionOut(BaseModel):
    number: int
    total: int
    category: str
    difficulty: str
    # may contain markup; rendered verbatim by the client
    text: str
    options: List[str]
    phase: Literal["presenting", "answered"]
    selectedAnswer: Optional[str] = None
    correctAnswer: Optional[str] = None
    isCorrect: Optional[bool] = None
    remainingSeconds: Optional[int] = None


class AnswerIn(BaseModel):
    answer: str = Field(..., min_length=1)


class AnswerOut(BaseModel):
    accepted: bool
    selectedAnswer: str
    correctAnswer: str
    isCorrect: bool
    isLast: bool
    next: Optional[str] = None


class ResultOut(BaseModel):
    quizId: str
    correct: int
    incorrect: int
    unanswered: int
    total: int
    percentage: int
    celebrate: bool
    timedOut: bool
    completedAt: str
    saved: bool
    resultId: Optional[str] = None
    warning: Optional[str] = None


class HistoryEntryOut(BaseModel):
    id: str
    score: int
    incorrect: int
    unanswered: int
    total: int
    percentage: int
    completedAt: str


class SignInIn(BaseModel):
    email: str = Field(..., min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+$")


class SignInOut(BaseModel):
    token: str
    userId: str
    email: Optional[str]


class IdentityOut(BaseModel):
    userId: str
    email: Optional[str]
