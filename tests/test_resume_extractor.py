import asyncio
import json

import httpx
import pytest
from langchain_core.runnables import RunnableLambda

from resume_pipeline.exceptions import LlmError
from resume_pipeline.schemas.resume import LIST_FIELDS, normalize_resume_data
from resume_pipeline.services.llm.prompts import SYSTEM_PROMPT
from resume_pipeline.services.llm.resume_extractor import (
    TRUNCATION_MARKER,
    ResumeDataExtractor,
    classify_llm_failure,
    parse_llm_json,
    preprocess_text,
)

from .conftest import RESUME_TEXT, SAMPLE_RESUME, fake_llm


def scripted_llm(*steps):
    """An LLM stand-in that replays `steps`: exceptions are raised, strings returned."""
    calls = []

    async def _respond(prompt):
        calls.append(prompt)
        step = steps[min(len(calls), len(steps)) - 1]
        if isinstance(step, BaseException):
            raise step
        if callable(step):
            return await step()
        return step

    return RunnableLambda(_respond), calls


def extractor_for(llm, **kwargs):
    kwargs.setdefault("base_delay", 0)
    return ResumeDataExtractor(llm=llm, **kwargs)


def test_preprocess_collapses_whitespace():
    text = "Jane   Doe\t\tEngineer\n\n\n\n\nExperience\n\nAcme"

    assert preprocess_text(text) == "Jane Doe Engineer\n\nExperience\n\nAcme"


def test_preprocess_truncates_long_text():
    processed = preprocess_text("a" * 25, max_length=10)

    assert processed == "a" * 10 + TRUNCATION_MARKER


def test_parse_strips_code_fences():
    assert parse_llm_json('```json\n{"skills": ["Python"]}\n```') == {"skills": ["Python"]}


@pytest.mark.parametrize("content", ["", "   ", None])
def test_parse_rejects_empty_reply(content):
    with pytest.raises(LlmError, match="did not return any content"):
        parse_llm_json(content)


def test_parse_rejects_non_object():
    with pytest.raises(LlmError, match="not a JSON object"):
        parse_llm_json("[1, 2, 3]")


def test_normalize_fills_missing_keys():
    data = normalize_resume_data({"profile": {"name": "Jane", "linkedIn": ""}, "skills": "Python", "extra": 1})

    assert data["profile"]["name"] == "Jane"
    assert data["profile"]["linkedIn"] is None
    assert data["profile"]["surname"] is None
    assert data["profile"]["remote"] is False
    for field in LIST_FIELDS:
        assert data[field] == []
    assert "extra" not in data


def test_system_prompt_embeds_schema_enumerations():
    for token in ("workExperiences", "FULL_TIME|PART_TIME|INTERNSHIP|CONTRACT", "BEGINNER|INTERMEDIATE|ADVANCED|NATIVE",
                  "HIGH_SCHOOL|ASSOCIATE|BACHELOR|MASTER|DOCTORATE", "ONSITE|REMOTE|HYBRID", "honors"):
        assert token in SYSTEM_PROMPT


def test_extract_returns_normalized_document():
    data = asyncio.run(extractor_for(fake_llm()).extract(RESUME_TEXT))

    assert data == SAMPLE_RESUME


def test_prompt_carries_preprocessed_text():
    llm, calls = scripted_llm(json.dumps(SAMPLE_RESUME))

    asyncio.run(extractor_for(llm, max_text_length=30).extract("Jane    Doe\n\n\n\nEngineer " + "x" * 100))

    messages = calls[0].to_messages()
    assert messages[0].content == SYSTEM_PROMPT
    assert "Jane Doe\n\nEngineer" in messages[1].content
    assert messages[1].content.endswith(TRUNCATION_MARKER)


def test_transient_failures_are_retried():
    llm, calls = scripted_llm(ConnectionError("connection reset"), ConnectionError("connection reset"),
                              json.dumps(SAMPLE_RESUME))

    data = asyncio.run(extractor_for(llm, max_retries=3).extract(RESUME_TEXT))

    assert len(calls) == 3
    assert data["profile"]["name"] == "Jane"


def test_gives_up_after_max_retries():
    llm, calls = scripted_llm(ConnectionError("connection reset"))

    with pytest.raises(LlmError, match="connection reset"):
        asyncio.run(extractor_for(llm, max_retries=3).extract(RESUME_TEXT))

    assert len(calls) == 3


def test_timeouts_are_retried_then_reported():
    async def hang():
        await asyncio.sleep(5)

    llm, calls = scripted_llm(hang)

    with pytest.raises(LlmError) as excinfo:
        asyncio.run(extractor_for(llm, max_retries=3, timeout=0.05).extract(RESUME_TEXT))

    assert len(calls) == 3
    assert "timed out" in excinfo.value.message
    assert excinfo.value.retryable is False


@pytest.mark.parametrize(
    "error",
    [
        Exception("Error code: 429 - Rate limit reached for requests"),
        Exception("insufficient_quota: You exceeded your current quota"),
        Exception("You exceeded your current quota, please check your plan and billing details"),
        Exception("Incorrect API key provided"),
        httpx.HTTPStatusError(
            "Unauthorized",
            request=httpx.Request("POST", "http://localhost:11434/api/chat"),
            response=httpx.Response(401),
        ),
    ],
)
def test_fatal_errors_are_not_retried(error):
    llm, calls = scripted_llm(error, json.dumps(SAMPLE_RESUME))

    with pytest.raises(LlmError):
        asyncio.run(extractor_for(llm, max_retries=3).extract(RESUME_TEXT))

    assert len(calls) == 1


def test_invalid_json_is_not_resent():
    llm, calls = scripted_llm("Sure! Here is the resume: {name: Jane", json.dumps(SAMPLE_RESUME))

    with pytest.raises(LlmError, match="not valid JSON"):
        asyncio.run(extractor_for(llm, max_retries=3).extract(RESUME_TEXT))

    assert len(calls) == 1


def test_classify_uses_status_code_attribute():
    class ResponseError(Exception):
        def __init__(self, message, status_code):
            super().__init__(message)
            self.status_code = status_code

    assert classify_llm_failure(ResponseError("model is overloaded", 503)).retryable is True
    assert classify_llm_failure(ResponseError("forbidden", 403)).retryable is False
