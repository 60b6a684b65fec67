class TriviaQuestError(Exception):
    """Base class for every error raised by the quiz core."""


# --- question source ---

class SourceError(TriviaQuestError):
    pass


class SourceUnavailable(SourceError):
    """The trivia provider could not be reached or answered with a non-2xx status."""


class SourceDataInvalid(SourceError):
    """The provider answered, but the payload is unusable."""


# --- quiz state ---

class QuizStateError(TriviaQuestError):
    pass


class AlreadyAnswered(QuizStateError):
    def __init__(self, index: int) -> None:
        super().__init__(f"Question {index} has already been answered")
        self.index = index


class InvalidOption(QuizStateError):
    def __init__(self, index: int, answer: str) -> None:
        super().__init__(f"{answer!r} is not an option for question {index}")
        self.index = index
        self.answer = answer


class QuizCompleted(QuizStateError):
    """The quiz has already reached its terminal state."""


class QuizNotComplete(QuizStateError):
    """Results were requested for a quiz that is still running."""


class NoActiveQuiz(QuizStateError):
    """The session has no quiz in progress."""


class NotCurrentQuestion(QuizStateError):
    def __init__(self, index: int, current_index: int) -> None:
        super().__init__(f"Question {index} is not the current question ({current_index})")
        self.index = index
        self.current_index = current_index


class StoredStateInvalid(QuizStateError):
    """A persisted quiz blob does not match the current schema."""


# --- history ---

class HistoryError(TriviaQuestError):
    pass


class HistoryNotFound(HistoryError):
    def __init__(self, entry_id: str) -> None:
        super().__init__(f"History entry {entry_id} not found")
        self.entry_id = entry_id


class HistoryForbidden(HistoryError):
    def __init__(self, entry_id: str) -> None:
        super().__init__(f"History entry {entry_id} belongs to another user")
        self.entry_id = entry_id


# --- identity ---

class SignInUnsupported(TriviaQuestError):
    """The configured identity provider does not issue tokens itself."""
