import base64
import uuid
from collections import defaultdict
from datetime import datetime, timedelta, timezone

import httpx
import pytest
from fastapi.testclient import TestClient

from triviaquest.core.config import Settings
from triviaquest.domain.model import Difficulty, Question
from triviaquest.main import create_app
from triviaquest.repositories.history_repository import InMemoryHistoryRepository
from triviaquest.repositories.session_store import InMemorySessionStore
from triviaquest.services.identity import LocalIdentityProvider
from triviaquest.services.trivia_source import TriviaSource

API = "/api/v1"


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def build_questions(n: int = 3) -> list[Question]:
    return [
        Question(
            category="General Knowledge",
            difficulty=Difficulty.EASY,
            text=f"Question {i + 1}?",
            correct_answer=f"right {i + 1}",
            incorrect_answers=(f"wrong {i + 1}a", f"wrong {i + 1}b", f"wrong {i + 1}c"),
        )
        for i in range(n)
    ]


def _b64(s: str) -> str:
    return base64.b64encode(s.encode("utf-8")).decode("ascii")


def encoded_payload(questions: list[Question]) -> dict:
    return {
        "response_code": 0,
        "results": [
            {
                "type": _b64("multiple"),
                "difficulty": _b64(q.difficulty.value),
                "category": _b64(q.category),
                "question": _b64(q.text),
                "correct_answer": _b64(q.correct_answer),
                "incorrect_answers": [_b64(a) for a in q.incorrect_answers],
            }
            for q in questions
        ],
    }


# --- test doubles for third-party clients ---


class FakeRedis:
    """The handful of redis.asyncio calls the session store makes."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.data[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            removed += self.data.pop(key, None) is not None
            self.ttls.pop(key, None)
        return removed


class _FakeResponse:
    def __init__(self, data):
        self.data = data


class _FakeQuery:
    def __init__(self, rows: list[dict]) -> None:
        self.rows = rows
        self.op = "select"
        self.payload = None
        self.filters: list[tuple] = []
        self.order_by: tuple | None = None
        self.limit_n: int | None = None

    def select(self, _columns):
        self.op = "select"
        return self

    def insert(self, payload):
        self.op = "insert"
        self.payload = payload
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, n):
        self.limit_n = n
        return self

    def _matches(self, row):
        return all(row.get(c) == v for c, v in self.filters)

    def execute(self):
        if self.op == "insert":
            row = dict(self.payload, id=str(uuid.uuid4()))
            self.rows.append(row)
            return _FakeResponse([row])
        hits = [r for r in self.rows if self._matches(r)]
        if self.op == "delete":
            self.rows[:] = [r for r in self.rows if not self._matches(r)]
            return _FakeResponse(hits)
        if self.order_by:
            column, desc = self.order_by
            hits.sort(key=lambda r: r[column], reverse=desc)
        if self.limit_n is not None:
            hits = hits[: self.limit_n]
        return _FakeResponse([dict(r) for r in hits])


class FakeSupabase:
    """Mimics supabase-py's chained table queries over in-memory rows."""

    def __init__(self) -> None:
        self.tables: dict[str, list[dict]] = defaultdict(list)

    def table(self, name):
        return _FakeQuery(self.tables[name])


# --- fixtures ---


@pytest.fixture
def questions():
    return build_questions(3)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def test_settings():
    return Settings(
        TRIVIA_QUESTION_COUNT=3,
        AUTO_ADVANCE_DELAY_MS=None,
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def provider_state(questions):
    """Mutable knobs for the mocked trivia provider."""
    return {"status": 200, "payload": encoded_payload(questions), "calls": []}


@pytest.fixture
def trivia_source(provider_state):
    def handler(request: httpx.Request) -> httpx.Response:
        provider_state["calls"].append(request)
        return httpx.Response(provider_state["status"], json=provider_state["payload"])

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return TriviaSource(client, "https://trivia.test/api.php", encoding="base64", default_count=3)


@pytest.fixture
def history_repo():
    return InMemoryHistoryRepository()


@pytest.fixture
def identity():
    return LocalIdentityProvider()


@pytest.fixture
def client(test_settings, trivia_source, history_repo, identity, clock):
    app = create_app(
        test_settings,
        trivia_source=trivia_source,
        session_store=InMemorySessionStore(),
        history_repository=history_repo,
        identity_provider=identity,
        clock=clock,
    )
    with TestClient(app) as c:
        yield c
