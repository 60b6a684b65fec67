import base64
from urllib.parse import quote

import httpx
import pytest

from triviaquest.domain.errors import SourceDataInvalid, SourceUnavailable
from triviaquest.domain.model import Difficulty
from triviaquest.services.trivia_source import TriviaSource, decode_text

from conftest import build_questions, encoded_payload


def _source(handler, **kwargs) -> TriviaSource:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    kwargs.setdefault("default_count", 3)
    return TriviaSource(client, "https://trivia.test/api.php", **kwargs)


def _respond(status=200, json=None, content=None):
    def handler(request):
        if content is not None:
            return httpx.Response(status, content=content)
        return httpx.Response(status, json=json)

    return handler


async def test_decodes_base64_entries():
    expected = build_questions(3)
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=encoded_payload(expected))

    questions = await _source(handler).fetch_questions(3)

    assert questions == expected
    params = seen[0].url.params
    assert params["amount"] == "3"
    assert params["type"] == "multiple"
    assert params["encode"] == "base64"


async def test_markup_survives_decoding_verbatim():
    q = build_questions(1)[0]
    payload = encoded_payload([q])
    payload["results"][0]["question"] = base64.b64encode("Who wrote <i>&quot;Dune&quot;</i>?".encode()).decode()
    questions = await _source(_respond(json=payload), default_count=1).fetch_questions()
    assert questions[0].text == "Who wrote <i>&quot;Dune&quot;</i>?"


async def test_url3986_encoding():
    payload = {
        "response_code": 0,
        "results": [
            {
                "category": quote("Science: Computers"),
                "difficulty": "hard",
                "question": quote("What does \"CPU\" stand for?"),
                "correct_answer": quote("Central Processing Unit"),
                "incorrect_answers": [quote("Computer Personal Unit"), quote("Central Process Unit")],
            }
        ],
    }
    source = _source(_respond(json=payload), encoding="url3986", default_count=1)
    [question] = await source.fetch_questions()
    assert question.text == 'What does "CPU" stand for?'
    assert question.difficulty is Difficulty.HARD
    assert question.incorrect_answers == ("Computer Personal Unit", "Central Process Unit")


async def test_http_500_yields_empty_list():
    assert await _source(_respond(status=500, json={})).fetch_questions(3) == []


async def test_http_500_raises_from_strict_variant():
    with pytest.raises(SourceUnavailable):
        await _source(_respond(status=500, json={})).request_questions(3)


async def test_transport_error_yields_empty_list():
    def handler(request):
        raise httpx.ConnectError("boom", request=request)

    assert await _source(handler).fetch_questions(3) == []


@pytest.mark.parametrize("code", [1, 2, 5, None])
async def test_non_success_response_code_yields_empty_list(code):
    payload = encoded_payload(build_questions(3))
    payload["response_code"] = code
    source = _source(_respond(json=payload))
    assert await source.fetch_questions(3) == []
    with pytest.raises(SourceDataInvalid):
        await source.request_questions(3)


async def test_too_few_entries_is_invalid():
    source = _source(_respond(json=encoded_payload(build_questions(2))))
    assert await source.fetch_questions(3) == []


async def test_malformed_entry_is_invalid():
    payload = encoded_payload(build_questions(3))
    del payload["results"][1]["correct_answer"]
    assert await _source(_respond(json=payload)).fetch_questions(3) == []


async def test_empty_incorrect_answers_is_invalid():
    payload = encoded_payload(build_questions(3))
    payload["results"][2]["incorrect_answers"] = []
    with pytest.raises(SourceDataInvalid):
        await _source(_respond(json=payload)).request_questions(3)


async def test_non_json_body_is_invalid():
    assert await _source(_respond(content=b"<html>oops</html>")).fetch_questions(3) == []


async def test_count_out_of_range():
    with pytest.raises(ValueError):
        await _source(_respond(json={})).request_questions(0)


def test_decode_text_rejects_bad_base64():
    with pytest.raises(SourceDataInvalid):
        decode_text("not base64!!", "base64")
    with pytest.raises(SourceDataInvalid):
        decode_text(42, "none")
