from ..domain.model import QuizState, Score


def score(state: QuizState) -> Score:
    """Count correct, incorrect and unanswered slots. Safe on a quiz still in progress."""
    correct = incorrect = unanswered = 0
    for question, answer in zip(state.questions, state.answers):
        if answer is None:
            unanswered += 1
        elif answer == question.correct_answer:
            correct += 1
        else:
            incorrect += 1
    return Score(
        correct=correct,
        incorrect=incorrect,
        unanswered=unanswered,
        total=state.total,
    )
