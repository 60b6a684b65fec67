"""Drives one session's quiz: present -> answer -> advance -> complete.

The persisted ``QuizState`` is the source of truth; a ``QuizMachine`` only owns
the timers for it. Two kinds of timer exist, both plain ``asyncio`` tasks:

* expiry, which completes the quiz when the time budget runs out;
* auto-advance, which moves past an answered question after a short delay.

Every timer re-reads the state under the machine lock and checks that it still
belongs to the quiz it was scheduled for before doing anything.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Awaitable, Callable, Coroutine, Dict, Optional, Sequence, Set

from ..domain import quiz_state
from ..domain.errors import AlreadyAnswered, NoActiveQuiz, NotCurrentQuestion, QuizCompleted
from ..domain.model import Phase, Question, QuizState, Score
from ..repositories.session_store import SessionStore
from .scorer import score

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
# receives the completed state and its score, returns the history entry id (or None)
CompletionHook = Callable[[QuizState, Score], Awaitable[Optional[str]]]

SAVE_FAILED_WARNING = "Your result could not be saved to your history."


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AnswerOutcome:
    state: QuizState
    accepted: bool


class QuizMachine:
    def __init__(
        self,
        session_id: str,
        store: SessionStore,
        *,
        on_complete: Optional[CompletionHook] = None,
        auto_advance_delay: Optional[float] = None,
        clock: Clock = utcnow,
        on_idle: Optional[Callable[["QuizMachine"], None]] = None,
    ) -> None:
        self.session_id = session_id
        self.store = store
        self.on_complete = on_complete
        self.auto_advance_delay = auto_advance_delay
        self.clock = clock
        # called once the last timer task has finished
        self.on_idle = on_idle
        self._lock = asyncio.Lock()
        self._expiry_task: Optional[asyncio.Task] = None
        self._expiry_quiz_id: Optional[str] = None
        self._advance_task: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def has_timers(self) -> bool:
        return any(not t.done() for t in self._tasks)

    # --- public transitions ---

    async def start(
        self,
        questions: Sequence[Question],
        time_budget: Optional[timedelta] = None,
        user_id: Optional[str] = None,
    ) -> QuizState:
        """Begin a new quiz, throwing away whatever this session had before."""
        async with self._lock:
            self._cancel_timers()
            state = quiz_state.start(questions, time_budget, now=self.clock(), user_id=user_id)
            await self.store.save(self.session_id, state)
            self._schedule_expiry(state)
            logger.info(
                "Session %s started quiz %s (%d questions, budget=%s)",
                self.session_id[:8], state.quiz_id[:8], state.total, time_budget,
            )
            return state

    async def resume(self) -> Optional[QuizState]:
        """Reload after a page reload or process restart and re-arm the timer."""
        async with self._lock:
            return await self._load()

    async def current(self, user_id: Optional[str] = None) -> Optional[QuizState]:
        async with self._lock:
            return await self._load(user_id)

    async def answer(self, index: int, answer: str, user_id: Optional[str] = None) -> AnswerOutcome:
        """Record ``answer`` for the current question.

        A second answer to the same question is a no-op for the player
        (``accepted=False``). ``InvalidOption`` propagates.
        """
        async with self._lock:
            state = await self._require(user_id)
            if state.is_complete:
                raise QuizCompleted(f"Quiz {state.quiz_id} is already complete")
            if index != state.current_index:
                raise NotCurrentQuestion(index, state.current_index)
            try:
                state = quiz_state.record_answer(state, index, answer)
            except AlreadyAnswered:
                logger.info("Session %s ignored repeat answer for question %d", self.session_id[:8], index)
                return AnswerOutcome(state=state, accepted=False)
            await self.store.save(self.session_id, state)
            self._schedule_auto_advance(state, index)
            return AnswerOutcome(state=state, accepted=True)

    async def advance(self, user_id: Optional[str] = None) -> QuizState:
        """Move on from an answered question; a no-op while still presenting."""
        async with self._lock:
            state = await self._require(user_id)
            if state.is_complete:
                return state
            if quiz_state.phase(state) is not Phase.ANSWERED:
                logger.info(
                    "Session %s: advance ignored, question %d not answered",
                    self.session_id[:8], state.current_index,
                )
                return state
            return await self._advance(state)

    async def expire(self) -> Optional[QuizState]:
        """Force completion, e.g. when the time budget is exhausted."""
        async with self._lock:
            state = await self._load()
            if state is None or state.is_complete:
                return state
            return await self._complete(state)

    async def abandon(self) -> None:
        """Drop the quiz without saving a result."""
        async with self._lock:
            self._cancel_timers()
            await self.store.clear(self.session_id)
            logger.info("Session %s abandoned its quiz", self.session_id[:8])

    async def aclose(self) -> None:
        """Cancel every timer task and wait for them to unwind. Stored state is left alone."""
        self._cancel_timers()
        pending = list(self._tasks)
        for task in pending:
            if task is not asyncio.current_task():
                task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    # --- internals (lock held) ---

    async def _require(self, user_id: Optional[str] = None) -> QuizState:
        state = await self._load(user_id)
        if state is None:
            raise NoActiveQuiz(f"Session {self.session_id[:8]} has no quiz")
        return state

    async def _load(self, user_id: Optional[str] = None) -> Optional[QuizState]:
        state = await self.store.load(self.session_id)
        if state is None:
            self._cancel_timers()
            return None
        if state.is_complete:
            return state
        attached = quiz_state.attach_user(state, user_id)
        if attached is not state:
            # the owner must be known before completion saves the result
            await self.store.save(self.session_id, attached)
            state = attached
        if quiz_state.is_expired(state, self.clock()) or state.current_index >= state.total:
            return await self._complete(state)
        if self._expiry_quiz_id != state.quiz_id:
            self._schedule_expiry(state)
        return state

    async def _advance(self, state: QuizState) -> QuizState:
        self._cancel(self._advance_task)
        self._advance_task = None
        state = quiz_state.advance(state)
        if state.current_index >= state.total:
            return await self._complete(state)
        await self.store.save(self.session_id, state)
        return state

    async def _complete(self, state: QuizState) -> QuizState:
        self._cancel_timers()
        state = quiz_state.complete(state, self.clock())
        result = score(state)
        # completed_at is persisted before the hook runs, so a result is written at most once
        await self.store.save(self.session_id, state)
        logger.info(
            "Session %s completed quiz %s: %d/%d correct, %d unanswered",
            self.session_id[:8], state.quiz_id[:8], result.correct, result.total, result.unanswered,
        )
        if self.on_complete is None:
            return state
        try:
            result_id = await self.on_complete(state, result)
        except Exception:
            logger.exception("Saving result of quiz %s failed", state.quiz_id[:8])
            state = replace(state, save_error=SAVE_FAILED_WARNING)
        else:
            state = replace(state, result_id=result_id)
        await self.store.save(self.session_id, state)
        return state

    # --- timers ---

    @staticmethod
    def _cancel(task: Optional[asyncio.Task]) -> None:
        # a timer may finish the quiz itself; it must not cancel its own task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _cancel_timers(self) -> None:
        self._cancel(self._expiry_task)
        self._cancel(self._advance_task)
        self._expiry_task = None
        self._expiry_quiz_id = None
        self._advance_task = None

    def _schedule_expiry(self, state: QuizState) -> None:
        remaining = quiz_state.remaining_time(state, self.clock())
        if remaining is None:
            return
        self._cancel(self._expiry_task)
        self._expiry_task = self._spawn(self._expire_after(state.quiz_id, remaining.total_seconds()))
        self._expiry_quiz_id = state.quiz_id

    def _schedule_auto_advance(self, state: QuizState, index: int) -> None:
        if self.auto_advance_delay is None:
            return
        self._cancel(self._advance_task)
        self._advance_task = self._spawn(self._advance_after(state.quiz_id, index, self.auto_advance_delay))

    def _spawn(self, coro: Coroutine) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._timer_done)
        return task

    def _timer_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "Session %s: timer failed", self.session_id[:8], exc_info=task.exception()
            )
        if self.on_idle is not None and not self.has_timers:
            self.on_idle(self)

    async def _expire_after(self, quiz_id: str, delay: float) -> None:
        await asyncio.sleep(delay)
        async with self._lock:
            state = await self.store.load(self.session_id)
            if state is None or state.quiz_id != quiz_id or state.is_complete:
                logger.debug("Session %s: stale expiry timer for quiz %s skipped", self.session_id[:8], quiz_id[:8])
                return
            logger.info("Session %s: time is up for quiz %s", self.session_id[:8], quiz_id[:8])
            await self._complete(state)

    async def _advance_after(self, quiz_id: str, index: int, delay: float) -> None:
        await asyncio.sleep(delay)
        async with self._lock:
            state = await self._load()
            if (
                state is None
                or state.quiz_id != quiz_id
                or state.is_complete
                or state.current_index != index
                or state.answers[index] is None
            ):
                logger.debug("Session %s: stale auto-advance for question %d skipped", self.session_id[:8], index)
                return
            await self._advance(state)


class QuizMachineRegistry:
    """Per-process map of session id -> machine.

    A machine stays in the map only while a request is using it or one of its
    timers is pending. Everything else lives in the session store, so an idle
    session costs no process memory.
    """

    def __init__(
        self,
        store: SessionStore,
        *,
        on_complete: Optional[CompletionHook] = None,
        auto_advance_delay: Optional[float] = None,
        clock: Clock = utcnow,
    ) -> None:
        self.store = store
        self.on_complete = on_complete
        self.auto_advance_delay = auto_advance_delay
        self.clock = clock
        self.machines: Dict[str, QuizMachine] = {}
        self._users: Dict[str, int] = {}

    def get(self, session_id: str) -> QuizMachine:
        machine = self.machines.get(session_id)
        if machine is None:
            machine = QuizMachine(
                session_id,
                self.store,
                on_complete=self.on_complete,
                auto_advance_delay=self.auto_advance_delay,
                clock=self.clock,
                on_idle=self._evict_if_idle,
            )
            self.machines[session_id] = machine
        return machine

    @asynccontextmanager
    async def checkout(self, session_id: str) -> AsyncIterator[QuizMachine]:
        """Use the session's machine for one request, releasing it afterwards."""
        machine = self.get(session_id)
        self._users[session_id] = self._users.get(session_id, 0) + 1
        try:
            yield machine
        finally:
            left = self._users[session_id] - 1
            if left:
                self._users[session_id] = left
            else:
                del self._users[session_id]
            self._evict_if_idle(machine)

    def _evict_if_idle(self, machine: QuizMachine) -> None:
        sid = machine.session_id
        if self.machines.get(sid) is machine and sid not in self._users and not machine.has_timers:
            del self.machines[sid]

    async def discard(self, session_id: str) -> None:
        async with self.checkout(session_id) as machine:
            await machine.abandon()

    async def aclose(self) -> None:
        machines = list(self.machines.values())
        self.machines.clear()
        self._users.clear()
        await asyncio.gather(*(m.aclose() for m in machines))
