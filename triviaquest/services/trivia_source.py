"""Adapter for Open Trivia DB compatible question providers."""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any, Literal
from urllib.parse import unquote

import httpx

from ..domain.errors import SourceDataInvalid, SourceError, SourceUnavailable
from ..domain.model import Difficulty, Question

logger = logging.getLogger(__name__)

Encoding = Literal["base64", "url3986", "none"]

MAX_QUESTIONS = 50

# response_code values documented by the provider
RESPONSE_CODES = {
    0: "success",
    1: "no results",
    2: "invalid parameter",
    3: "token not found",
    4: "token empty",
    5: "rate limited",
}


def decode_text(value: Any, encoding: Encoding) -> str:
    if not isinstance(value, str):
        raise SourceDataInvalid(f"Expected a string, got {type(value).__name__}")
    if encoding == "base64":
        try:
            return base64.b64decode(value, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            raise SourceDataInvalid(f"Invalid base64 text: {e}") from e
    if encoding == "url3986":
        return unquote(value, errors="strict")
    # HTML entities are kept verbatim for the presentation layer
    return value


def parse_question(item: Any, encoding: Encoding) -> Question:
    if not isinstance(item, dict):
        raise SourceDataInvalid("Question record is not an object")
    try:
        raw_incorrect = item["incorrect_answers"]
        if not isinstance(raw_incorrect, list) or not raw_incorrect:
            raise SourceDataInvalid("incorrect_answers must be a non-empty list")
        difficulty = decode_text(item["difficulty"], encoding)
        question = Question(
            category=decode_text(item["category"], encoding),
            difficulty=Difficulty(difficulty),
            text=decode_text(item["question"], encoding),
            correct_answer=decode_text(item["correct_answer"], encoding),
            incorrect_answers=tuple(decode_text(a, encoding) for a in raw_incorrect),
        )
    except KeyError as e:
        raise SourceDataInvalid(f"Question record is missing {e.args[0]!r}") from e
    except ValueError as e:
        # unknown difficulty or undecodable percent escapes
        raise SourceDataInvalid(str(e)) from e
    if question.correct_answer in question.incorrect_answers:
        raise SourceDataInvalid("Correct answer is also listed as incorrect")
    return question


class TriviaSource:
    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        *,
        encoding: Encoding = "base64",
        default_count: int = 10,
    ) -> None:
        self.client = client
        self.url = url
        self.encoding = encoding
        self.default_count = default_count

    async def request_questions(self, count: int | None = None) -> list[Question]:
        """Fetch and decode questions, raising ``SourceUnavailable`` / ``SourceDataInvalid``."""
        count = self.default_count if count is None else count
        if not 1 <= count <= MAX_QUESTIONS:
            raise ValueError(f"count must be between 1 and {MAX_QUESTIONS}")

        params: dict[str, str | int] = {"amount": count, "type": "multiple"}
        if self.encoding != "none":
            params["encode"] = self.encoding

        try:
            res = await self.client.get(self.url, params=params)
            res.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise SourceUnavailable(f"Trivia provider returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise SourceUnavailable(f"Trivia provider unreachable: {e}") from e

        try:
            data = res.json()
        except ValueError as e:
            raise SourceDataInvalid("Trivia provider returned non-JSON body") from e
        if not isinstance(data, dict):
            raise SourceDataInvalid("Trivia envelope is not an object")

        code = data.get("response_code")
        if code != 0:
            reason = RESPONSE_CODES.get(code, "unknown") if isinstance(code, int) else "missing"
            raise SourceDataInvalid(f"Trivia provider response_code={code} ({reason})")

        results = data.get("results")
        if not isinstance(results, list):
            raise SourceDataInvalid("Trivia envelope has no results list")
        if len(results) < count:
            raise SourceDataInvalid(f"Expected {count} questions, got {len(results)}")

        return [parse_question(item, self.encoding) for item in results[:count]]

    async def fetch_questions(self, count: int | None = None) -> list[Question]:
        """Fail-soft variant: any source problem yields an empty list."""
        try:
            questions = await self.request_questions(count)
        except SourceError as e:
            logger.warning("Could not load trivia questions: %s", e)
            return []
        logger.info("Fetched %d trivia questions", len(questions))
        return questions
