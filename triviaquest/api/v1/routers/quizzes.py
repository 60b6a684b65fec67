from typing import Annotated, Optional

from fastapi import APIRouter, HTTPException, Path, Request, status
from fastapi.responses import RedirectResponse

from ....domain import quiz_state
from ....domain.errors import (
    InvalidOption,
    NoActiveQuiz,
    NotCurrentQuestion,
    QuizCompleted,
    QuizNotComplete,
)
from ....domain.model import Identity, QuizState
from ....schemas.quiz_schemas import (
    AnswerIn,
    AnswerOut,
    QuestionOut,
    QuizConfigOut,
    QuizStatusOut,
    ResultOut,
    StartQuizIn,
)
from ....services.quiz_service import QuizService
from ....services.typing import to_iso
from ...deps import OptionalIdentityDep, QuizServiceDep, SessionDep

router = APIRouter(prefix="/quiz", tags=["quiz"])

NO_QUIZ = "No quiz in progress"
SOURCE_EMPTY = "Could not load trivia questions. Please try again later."

QuestionNumber = Annotated[int, Path(ge=1, description="1-based question number")]


def _uid(identity: Optional[Identity]) -> Optional[str]:
    return identity.user_id if identity else None


def _question_path(request: Request, number: int) -> str:
    return str(request.app.url_path_for("get_question", number=number))


def _results_path(request: Request) -> str:
    return str(request.app.url_path_for("get_results"))


def _next_path(request: Request, state: QuizState) -> str:
    if state.is_complete:
        return _results_path(request)
    return _question_path(request, state.current_index + 1)


def _status_out(request: Request, svc: QuizService, state: QuizState) -> QuizStatusOut:
    return QuizStatusOut(
        quizId=state.quiz_id,
        phase=quiz_state.phase(state).value,
        currentIndex=state.current_index,
        total=state.total,
        answeredCount=state.answered_count,
        timeLimit=int(state.time_budget.total_seconds()) if state.time_budget else None,
        remainingSeconds=None if state.is_complete else svc.remaining_seconds(state),
        next=_next_path(request, state),
    )


@router.get("/config", response_model=QuizConfigOut)
async def get_config(svc: QuizServiceDep):
    return svc.config()


@router.post("", response_model=QuizStatusOut, status_code=status.HTTP_201_CREATED)
async def start_quiz(
    payload: StartQuizIn,
    request: Request,
    svc: QuizServiceDep,
    session_id: SessionDep,
    identity: OptionalIdentityDep,
):
    try:
        state = await svc.start_quiz(session_id, payload.timeLimit, _uid(identity))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    if state is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=SOURCE_EMPTY)
    return _status_out(request, svc, state)


@router.get("", response_model=QuizStatusOut)
async def get_status(request: Request, svc: QuizServiceDep, session_id: SessionDep, identity: OptionalIdentityDep):
    try:
        state = await svc.status(session_id, _uid(identity))
    except NoActiveQuiz:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NO_QUIZ)
    return _status_out(request, svc, state)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def dismiss_quiz(svc: QuizServiceDep, session_id: SessionDep):
    # play again / go home / navigate away: nothing is saved
    await svc.dismiss(session_id)
    return None


@router.get("/questions/{number}", response_model=QuestionOut, name="get_question")
async def get_question(
    number: QuestionNumber,
    request: Request,
    svc: QuizServiceDep,
    session_id: SessionDep,
    identity: OptionalIdentityDep,
):
    try:
        state, question, options = await svc.present(session_id, _uid(identity))
    except NoActiveQuiz:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NO_QUIZ)
    except QuizCompleted:
        return RedirectResponse(_results_path(request), status_code=status.HTTP_307_TEMPORARY_REDIRECT)

    # keep the URL in sync with the stored position
    if number != state.current_index + 1:
        return RedirectResponse(
            _question_path(request, state.current_index + 1),
            status_code=status.HTTP_307_TEMPORARY_REDIRECT,
        )

    selected = state.answers[state.current_index]
    answered = selected is not None
    return QuestionOut(
        number=number,
        total=state.total,
        category=question.category,
        difficulty=question.difficulty.value,
        text=question.text,
        options=options,
        phase="answered" if answered else "presenting",
        selectedAnswer=selected,
        correctAnswer=question.correct_answer if answered else None,
        isCorrect=(selected == question.correct_answer) if answered else None,
        remainingSeconds=svc.remaining_seconds(state),
    )


@router.post("/questions/{number}/answer", response_model=AnswerOut)
async def answer_question(
    number: QuestionNumber,
    payload: AnswerIn,
    request: Request,
    svc: QuizServiceDep,
    session_id: SessionDep,
    identity: OptionalIdentityDep,
):
    try:
        outcome = await svc.answer(session_id, number - 1, payload.answer, _uid(identity))
    except NoActiveQuiz:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NO_QUIZ)
    except QuizCompleted:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Quiz is already complete")
    except NotCurrentQuestion as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Question {number} is not the current question ({e.current_index + 1})",
        )
    except InvalidOption:
        raise HTTPException(
            status_code=422,
            detail="Answer is not one of this question's options",
        )

    state = outcome.state
    question = state.questions[number - 1]
    # on a repeat answer this is still the first one
    selected = state.answers[number - 1]
    is_last = number == state.total
    return AnswerOut(
        accepted=outcome.accepted,
        selectedAnswer=selected,
        correctAnswer=question.correct_answer,
        isCorrect=selected == question.correct_answer,
        isLast=is_last,
        next=_results_path(request) if is_last else _question_path(request, number + 1),
    )


@router.post("/next", response_model=QuizStatusOut)
async def next_question(request: Request, svc: QuizServiceDep, session_id: SessionDep, identity: OptionalIdentityDep):
    try:
        state = await svc.advance(session_id, _uid(identity))
    except NoActiveQuiz:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NO_QUIZ)
    return _status_out(request, svc, state)


@router.get("/results", response_model=ResultOut, name="get_results")
async def get_results(svc: QuizServiceDep, session_id: SessionDep, identity: OptionalIdentityDep):
    try:
        state, result = await svc.results(session_id, _uid(identity))
    except NoActiveQuiz:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NO_QUIZ)
    except QuizNotComplete:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Quiz is still in progress")

    timed_out = bool(
        state.time_budget
        and state.completed_at
        and state.completed_at - state.started_at >= state.time_budget
    )
    return ResultOut(
        quizId=state.quiz_id,
        correct=result.correct,
        incorrect=result.incorrect,
        unanswered=result.unanswered,
        total=result.total,
        percentage=result.percentage,
        celebrate=result.celebrate,
        timedOut=timed_out,
        completedAt=to_iso(state.completed_at),
        saved=state.result_id is not None,
        resultId=state.result_id,
        warning=state.save_error,
    )
