"""Tests for batched procedure classification."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from clinic_ingest.core.exceptions import APIClientError
from clinic_ingest.core.unified_llm import UnavailableLLMClient
from clinic_ingest.services.classification.procedure_classifier import (
    FALLBACK_REASONING,
    ProcedureClassifier,
    clamp_confidence,
    coerce_flag,
)


def make_records(count):
    return [
        {"code": f"A1.0{i}.01.01", "description": f"Procedimento {i}", "value": 10.0 * (i + 1)}
        for i in range(count)
    ]


def classification_response(items):
    return json.dumps({"classifications": items})


def item(periciable=False, adults_only=False, reasoning="ok"):
    return {
        "isPericiable": periciable,
        "adultsOnly": adults_only,
        "periciableConfidence": 0.9,
        "adultsOnlyConfidence": 0.7,
        "reasoning": reasoning,
    }


def assert_default(record):
    assert record["isPericiable"] is False
    assert record["adultsOnly"] is False
    assert record["aiPericiableConfidence"] == 0.0
    assert record["aiAdultsOnlyConfidence"] == 0.0
    assert record["reasoning"] == FALLBACK_REASONING


@pytest.fixture
def llm_client() -> MagicMock:
    client = MagicMock()
    client.available = True
    client.generate_json = AsyncMock()
    return client


@pytest.mark.parametrize(
    "raw, expected",
    [(True, True), ("true", True), (" TRUE ", True), (False, False), ("yes", False), (1, False), (None, False)],
)
def test_coerce_flag(raw, expected):
    assert coerce_flag(raw) is expected


@pytest.mark.parametrize(
    "raw, expected",
    [(0.4, 0.4), ("0.4", 0.4), (1.5, 1.0), (-2, 0.0), (None, 0.0), ("abc", 0.0), (True, 0.0), (float("nan"), 0.0)],
)
def test_clamp_confidence(raw, expected):
    assert clamp_confidence(raw) == expected


@pytest.mark.asyncio
async def test_classify_merges_by_position(llm_client):
    records = make_records(3)
    llm_client.generate_json.return_value = classification_response([
        {"isPericiable": True, "adultsOnly": "true", "periciableConfidence": 1.5,
         "adultsOnlyConfidence": "0.4", "reasoning": " Prótese "},
        {"isPericiable": "yes", "adultsOnly": False, "periciableConfidence": -1,
         "adultsOnlyConfidence": 0.2, "reasoning": "Consulta"},
        item(),
    ])
    classifier = ProcedureClassifier(llm_client, batch_size=50)

    result = await classifier.classify(records)

    assert [r["code"] for r in result] == [r["code"] for r in records]
    assert result[0]["isPericiable"] is True
    assert result[0]["adultsOnly"] is True
    assert result[0]["aiPericiableConfidence"] == 1.0
    assert result[0]["aiAdultsOnlyConfidence"] == 0.4
    assert result[0]["reasoning"] == "Prótese"
    assert result[1]["isPericiable"] is False
    assert result[1]["aiPericiableConfidence"] == 0.0
    assert result[0]["description"] == records[0]["description"]
    assert result[0]["value"] == records[0]["value"]
    llm_client.generate_json.assert_awaited_once()


@pytest.mark.asyncio
async def test_count_mismatch_falls_back_to_defaults(llm_client):
    records = make_records(3)
    llm_client.generate_json.return_value = classification_response([item(True, True), item(True, True)])
    classifier = ProcedureClassifier(llm_client)

    result = await classifier.classify(records)

    assert len(result) == 3
    for record in result:
        assert_default(record)


@pytest.mark.asyncio
async def test_missing_classifications_key_falls_back(llm_client):
    llm_client.generate_json.return_value = json.dumps({"items": [item()]})
    classifier = ProcedureClassifier(llm_client)

    result = await classifier.classify(make_records(1))

    assert_default(result[0])


@pytest.mark.asyncio
async def test_repairs_fenced_response_with_trailing_comma(llm_client):
    llm_client.generate_json.return_value = (
        '```json\n{"classifications": [' + json.dumps(item(periciable=True)) + ",]}\n```"
    )
    classifier = ProcedureClassifier(llm_client)

    result = await classifier.classify(make_records(1))

    assert result[0]["isPericiable"] is True
    assert result[0]["aiPericiableConfidence"] == 0.9


@pytest.mark.asyncio
async def test_empty_input_makes_no_call(llm_client):
    classifier = ProcedureClassifier(llm_client)

    assert await classifier.classify([]) == []
    llm_client.generate_json.assert_not_awaited()


@pytest.mark.asyncio
async def test_unavailable_client_applies_defaults():
    classifier = ProcedureClassifier(UnavailableLLMClient("OPENROUTER_API_KEY not configured"))

    result = await classifier.classify(make_records(2))

    assert len(result) == 2
    for record in result:
        assert_default(record)


@pytest.mark.asyncio
async def test_batches_run_sequentially_and_fail_independently(llm_client):
    records = make_records(5)
    llm_client.generate_json.side_effect = [
        classification_response([item(True), item(True)]),
        "this is not json",
        classification_response([item(True)]),
    ]
    classifier = ProcedureClassifier(llm_client, batch_size=2)

    result = await classifier.classify(records)

    assert llm_client.generate_json.await_count == 3
    assert [r["code"] for r in result] == [r["code"] for r in records]
    assert result[0]["isPericiable"] is True
    assert result[1]["isPericiable"] is True
    assert_default(result[2])
    assert_default(result[3])
    assert result[4]["isPericiable"] is True

    first_prompt = llm_client.generate_json.call_args_list[0].kwargs["prompt"]
    assert records[0]["code"] in first_prompt
    assert records[2]["code"] not in first_prompt


@pytest.mark.asyncio
async def test_client_error_falls_back_for_that_batch(llm_client):
    llm_client.generate_json.side_effect = [
        APIClientError("API Timeout"),
        classification_response([item(adults_only=True)]),
    ]
    classifier = ProcedureClassifier(llm_client, batch_size=1)

    result = await classifier.classify(make_records(2))

    assert_default(result[0])
    assert result[1]["adultsOnly"] is True


@pytest.mark.asyncio
async def test_unexpected_error_falls_back(llm_client):
    llm_client.generate_json.side_effect = RuntimeError("boom")
    classifier = ProcedureClassifier(llm_client)

    result = await classifier.classify(make_records(2))

    for record in result:
        assert_default(record)


def test_batch_size_must_be_positive(llm_client):
    with pytest.raises(ValueError):
        ProcedureClassifier(llm_client, batch_size=0)
