import asyncio
import logging
import random
from datetime import timedelta
from typing import List, Optional, Tuple

from ..domain import quiz_state
from ..domain.errors import NoActiveQuiz, QuizCompleted, QuizNotComplete
from ..domain.model import Question, QuizState, Score
from ..repositories.history_repository import HistoryRepository
from .quiz_machine import AnswerOutcome, Clock, CompletionHook, QuizMachineRegistry, utcnow
from .scorer import score
from .trivia_source import TriviaSource

logger = logging.getLogger(__name__)


def history_recorder(repo: HistoryRepository) -> CompletionHook:
    """Completion hook that appends the result for signed-in players."""

    async def record(state: QuizState, result: Score) -> Optional[str]:
        if state.user_id is None:
            return None
        # the Supabase client is blocking
        entry_id = await asyncio.to_thread(repo.append, state.user_id, result, state.completed_at)
        logger.info("Saved result of quiz %s as history entry %s", state.quiz_id[:8], entry_id)
        return entry_id

    return record


def time_limit_label(seconds: Optional[int]) -> str:
    if seconds is None:
        return "No Limit"
    if seconds % 60:
        return f"{seconds} Seconds"
    minutes = seconds // 60
    return "1 Minute" if minutes == 1 else f"{minutes} Minutes"


class QuizService:
    def __init__(
        self,
        registry: QuizMachineRegistry,
        source: TriviaSource,
        *,
        question_count: int = 10,
        time_limit_choices: Optional[List[int]] = None,
        default_time_limit: Optional[int] = 300,
        rng: Optional[random.Random] = None,
        clock: Clock = utcnow,
    ) -> None:
        self.registry = registry
        self.source = source
        self.question_count = question_count
        self.time_limit_choices = list(time_limit_choices or [60, 180, 300, 600])
        self.default_time_limit = default_time_limit
        self.rng = rng or random.Random()
        self.clock = clock

    def config(self) -> dict:
        choices: List[Optional[int]] = [*self.time_limit_choices, None]
        return {
            "timeLimits": [{"value": c, "label": time_limit_label(c)} for c in choices],
            "defaultTimeLimit": self.default_time_limit,
            "questionCount": self.question_count,
        }

    async def start_quiz(
        self, session_id: str, time_limit: Optional[int], user_id: Optional[str] = None
    ) -> Optional[QuizState]:
        """Fetch questions and start. ``None`` means the source had nothing to offer."""
        if time_limit is not None and time_limit not in self.time_limit_choices:
            raise ValueError(f"timeLimit must be one of {self.time_limit_choices} or null")
        questions = await self.source.fetch_questions(self.question_count)
        if not questions:
            return None
        budget = timedelta(seconds=time_limit) if time_limit is not None else None
        async with self.registry.checkout(session_id) as machine:
            return await machine.start(questions, budget, user_id)

    async def status(self, session_id: str, user_id: Optional[str] = None) -> QuizState:
        async with self.registry.checkout(session_id) as machine:
            state = await machine.current(user_id)
        if state is None:
            raise NoActiveQuiz("No quiz in progress")
        return state

    async def present(
        self, session_id: str, user_id: Optional[str] = None
    ) -> Tuple[QuizState, Question, List[str]]:
        """Current question with its options freshly shuffled."""
        state = await self.status(session_id, user_id)
        if state.is_complete:
            raise QuizCompleted("Quiz is complete")
        question = state.questions[state.current_index]
        return state, question, quiz_state.present_options(question, self.rng)

    async def answer(
        self, session_id: str, index: int, answer: str, user_id: Optional[str] = None
    ) -> AnswerOutcome:
        async with self.registry.checkout(session_id) as machine:
            return await machine.answer(index, answer, user_id)

    async def advance(self, session_id: str, user_id: Optional[str] = None) -> QuizState:
        async with self.registry.checkout(session_id) as machine:
            return await machine.advance(user_id)

    async def results(self, session_id: str, user_id: Optional[str] = None) -> Tuple[QuizState, Score]:
        state = await self.status(session_id, user_id)
        if not state.is_complete:
            raise QuizNotComplete("Quiz is still in progress")
        return state, score(state)

    async def dismiss(self, session_id: str) -> None:
        await self.registry.discard(session_id)

    def remaining_seconds(self, state: QuizState) -> Optional[int]:
        left = quiz_state.remaining_time(state, self.clock())
        return None if left is None else int(left.total_seconds())
