"""Tests for the document extraction pipeline."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import httpx
import pytest

from clinic_ingest.core.exceptions import InvalidPDFError, OCRExtractionError
from clinic_ingest.core.unified_llm import UnavailableLLMClient, UnifiedLLMClient
from clinic_ingest.database.models import ProcessingStage, ProcessingStatus
from clinic_ingest.pipeline.classification_pipeline import ClassificationPipeline
from clinic_ingest.pipeline.document_pipeline import (
    DocumentPipeline,
    build_error_payload,
    extraction_progress,
)
from clinic_ingest.services.extraction.procedure_extractor import ProcedureExtractor
from clinic_ingest.services.ocr.rasterizer import PageImage, PageRasterizer
from clinic_ingest.services.ocr.text_recognizer import TextRecognizer

REPOSITORY_PATH = "clinic_ingest.pipeline.document_pipeline.DocumentRepository"

PAGE_TEXT = "A1.01.01.01 Consulta inicial 50,00\nA1.01.01.01 Consulta 50,00\nA1.02.01.01 Destartarização"


@pytest.fixture
def document_repository():
    with patch(REPOSITORY_PATH) as repository_cls:
        repository = repository_cls.return_value
        repository.get_by_id = AsyncMock(return_value=SimpleNamespace(file_path="memory://doc"))
        repository.mark_completed = AsyncMock()
        repository.mark_failed = AsyncMock()
        yield repository


@pytest.fixture
def storage():
    storage = MagicMock()
    storage.load = AsyncMock(return_value=b"%PDF-1.4")
    return storage


@pytest.fixture
def rasterizer():
    rasterizer = MagicMock()
    rasterizer.rasterize = AsyncMock(
        return_value=[PageImage(page_number=n, image=object()) for n in (1, 2, 3)]
    )
    return rasterizer


@pytest.fixture
def extractor():
    extractor = MagicMock()
    extractor.extract_page = AsyncMock(return_value=[
        {"code": "A1.01.01.01", "description": "Consulta", "value": None},
        {"code": "A1.01.01.01", "description": "Consulta inicial", "value": 50.0},
        {"code": "A1.02.01.01", "description": "Destartarização", "value": None},
    ])
    return extractor


@pytest.fixture
def progress():
    progress = MagicMock()
    progress.set_progress = AsyncMock()
    return progress


def make_pipeline(session_factory, storage, rasterizer, extractor, progress, recognizer=None, llm_client=None):
    if recognizer is None:
        recognizer = TextRecognizer(min_text_length=20)
        recognizer.recognize = AsyncMock(return_value=PAGE_TEXT)
    if llm_client is None:
        llm_client = MagicMock(available=True)
    return DocumentPipeline(
        session_factory=session_factory,
        storage=storage,
        llm_client=llm_client,
        rasterizer=rasterizer,
        recognizer=recognizer,
        extractor=extractor,
        progress=progress,
    )


@pytest.mark.parametrize(
    "page_index, page_count, expected",
    [(0, 3, 20), (1, 3, 40), (2, 3, 60), (1, 2, 50), (0, 1, 20), (0, 0, 20)],
)
def test_extraction_progress(page_index, page_count, expected):
    assert extraction_progress(page_index, page_count) == expected


def test_build_error_payload():
    try:
        raise InvalidPDFError("Unreadable PDF")
    except InvalidPDFError as e:
        payload = build_error_payload(e)

    assert payload["error"] == "Unreadable PDF"
    assert "InvalidPDFError" in payload["stack"]
    assert payload["timestamp"]


@pytest.mark.asyncio
async def test_process_completes_and_persists_deduplicated_set(
    session_factory, storage, rasterizer, extractor, progress, document_repository
):
    document_id = uuid4()
    pipeline = make_pipeline(session_factory, storage, rasterizer, extractor, progress)

    result = await pipeline.process(document_id)

    assert result["status"] == ProcessingStatus.COMPLETED
    assert result["page_count"] == 3
    assert result["pages_processed"] == 3
    assert result["total_extracted"] == 9
    assert result["unique_procedures"] == 2

    storage.load.assert_awaited_once_with("memory://doc")
    document_repository.mark_completed.assert_awaited_once()
    saved_id, extracted_data = document_repository.mark_completed.call_args.args
    assert saved_id == document_id
    assert extracted_data["procedures"] == [
        {"code": "A1.01.01.01", "description": "Consulta inicial", "value": 50.0},
        {"code": "A1.02.01.01", "description": "Destartarização", "value": None},
    ]
    assert extracted_data["pageCount"] == 3
    assert extracted_data["totalExtracted"] == 9
    assert "extractedAt" in extracted_data
    document_repository.mark_failed.assert_not_awaited()


@pytest.mark.asyncio
async def test_progress_follows_stage_sequence(
    session_factory, storage, rasterizer, extractor, progress, document_repository
):
    document_id = uuid4()
    pipeline = make_pipeline(session_factory, storage, rasterizer, extractor, progress)

    await pipeline.process(document_id)

    updates = [call.args[1:] for call in progress.set_progress.await_args_list]
    assert updates == [
        (5, ProcessingStage.UPLOADING),
        (10, ProcessingStage.CONVERTING),
        (20, ProcessingStage.EXTRACTING),
        (40, ProcessingStage.EXTRACTING),
        (60, ProcessingStage.EXTRACTING),
        (85, ProcessingStage.DEDUPLICATING),
        (95, ProcessingStage.SAVING),
        (100, ProcessingStage.COMPLETED),
    ]


@pytest.mark.asyncio
async def test_page_failures_only_cost_that_page(
    session_factory, storage, rasterizer, extractor, progress, document_repository
):
    recognizer = TextRecognizer(min_text_length=20)
    recognizer.recognize = AsyncMock(side_effect=[
        PAGE_TEXT,
        OCRExtractionError("Tesseract failed"),
        "   pág. 3   ",
    ])
    pipeline = make_pipeline(session_factory, storage, rasterizer, extractor, progress, recognizer=recognizer)

    result = await pipeline.process(uuid4())

    assert result["status"] == ProcessingStatus.COMPLETED
    assert result["pages_processed"] == 1
    assert result["pages_skipped"] == 2
    extractor.extract_page.assert_awaited_once_with(PAGE_TEXT, 1)
    _, extracted_data = document_repository.mark_completed.call_args.args
    assert extracted_data["pagesSkipped"] == 2
    assert len(extracted_data["procedures"]) == 2


@pytest.mark.asyncio
async def test_missing_credentials_fail_the_document(
    session_factory, storage, rasterizer, extractor, progress, document_repository
):
    document_id = uuid4()
    pipeline = make_pipeline(
        session_factory, storage, rasterizer, extractor, progress,
        llm_client=UnavailableLLMClient("OPENROUTER_API_KEY not configured"),
    )

    result = await pipeline.process(document_id)

    assert result["status"] == ProcessingStatus.FAILED
    rasterizer.rasterize.assert_not_awaited()
    document_repository.mark_failed.assert_awaited_once()
    failed_id, payload = document_repository.mark_failed.call_args.args
    assert failed_id == document_id
    assert "not configured" in payload["error"]
    assert set(payload) == {"error", "stack", "timestamp"}


@pytest.mark.asyncio
async def test_invalid_pdf_fails_the_document(
    session_factory, storage, rasterizer, extractor, progress, document_repository
):
    rasterizer.rasterize = AsyncMock(side_effect=InvalidPDFError("Unreadable PDF: Data format error"))
    pipeline = make_pipeline(session_factory, storage, rasterizer, extractor, progress)

    result = await pipeline.process(uuid4())

    assert result["status"] == ProcessingStatus.FAILED
    extractor.extract_page.assert_not_awaited()
    document_repository.mark_completed.assert_not_awaited()
    _, payload = document_repository.mark_failed.call_args.args
    assert payload["error"].startswith("Unreadable PDF")


@pytest.mark.asyncio
async def test_unknown_document_fails(
    session_factory, storage, rasterizer, extractor, progress, document_repository
):
    document_repository.get_by_id = AsyncMock(return_value=None)
    pipeline = make_pipeline(session_factory, storage, rasterizer, extractor, progress)

    result = await pipeline.process(uuid4())

    assert result["status"] == ProcessingStatus.FAILED
    storage.load.assert_not_awaited()


@pytest.mark.asyncio
async def test_failure_recording_error_is_logged_not_raised(
    session_factory, storage, rasterizer, extractor, progress, document_repository
):
    rasterizer.rasterize = AsyncMock(side_effect=InvalidPDFError("Unreadable PDF"))
    document_repository.mark_failed = AsyncMock(side_effect=RuntimeError("database down"))
    pipeline = make_pipeline(session_factory, storage, rasterizer, extractor, progress)

    result = await pipeline.process(uuid4())

    assert result["status"] == ProcessingStatus.FAILED


class TestPageRasterizer:

    @pytest.mark.asyncio
    async def test_empty_payload_is_invalid(self):
        with pytest.raises(InvalidPDFError):
            await PageRasterizer().rasterize(b"")

    @pytest.mark.asyncio
    async def test_garbage_payload_is_invalid(self):
        with pytest.raises(InvalidPDFError):
            await PageRasterizer().rasterize(b"this is not a pdf")


def test_text_recognizer_extractable_threshold():
    recognizer = TextRecognizer(min_text_length=10)

    assert recognizer.is_extractable("  0123456789  ")
    assert not recognizer.is_extractable("  short  ")
    assert not recognizer.is_extractable("")


def test_text_recognizer_default_threshold():
    recognizer = TextRecognizer()

    assert not recognizer.is_extractable(" " + "x" * 49 + " ")
    assert recognizer.is_extractable(" " + "x" * 50 + " ")


@pytest.mark.asyncio
async def test_non_json_gateway_body_only_costs_the_page(
    session_factory, storage, progress, document_repository
):
    llm_client = UnifiedLLMClient(provider="openrouter", api_key="or-key", model="openai/gpt-4o", max_retries=1)
    rasterizer = MagicMock()
    rasterizer.rasterize = AsyncMock(return_value=[PageImage(page_number=1, image=object())])
    html = httpx.Response(
        200,
        text="<html>gateway hiccup</html>",
        request=httpx.Request("POST", "https://openrouter.ai/api/v1/chat/completions"),
    )
    pipeline = make_pipeline(
        session_factory, storage, rasterizer, ProcedureExtractor(llm_client), progress, llm_client=llm_client
    )

    with patch.object(httpx.AsyncClient, "post", new=AsyncMock(return_value=html)):
        result = await pipeline.process(uuid4())

    assert result["status"] == ProcessingStatus.COMPLETED
    assert result["unique_procedures"] == 0
    document_repository.mark_failed.assert_not_awaited()


@pytest.mark.asyncio
async def test_price_table_to_classified_procedures_without_credentials(
    mock_session, session_factory, storage, progress, document_repository
):
    document_id = uuid4()
    page_text = "A1.01.01.01 Consulta inicial 50,00€\nA1.01.01.01 Consulta 130,00€"
    llm_client = MagicMock(available=True)
    llm_client.generate_json = AsyncMock(return_value=json.dumps({
        "procedures": [
            {"code": "A1.01.01.01", "description": "Consulta inicial", "value": "50,00€"},
            {"code": "A1.01.01.01", "description": "Consulta", "value": "130,00€"},
        ]
    }))
    recognizer = TextRecognizer()
    recognizer.recognize = AsyncMock(return_value=page_text)
    rasterizer = MagicMock()
    rasterizer.rasterize = AsyncMock(return_value=[PageImage(page_number=1, image=object())])
    pipeline = make_pipeline(
        session_factory, storage, rasterizer, ProcedureExtractor(llm_client), progress,
        recognizer=recognizer, llm_client=llm_client,
    )

    result = await pipeline.process(document_id)

    assert result["status"] == ProcessingStatus.COMPLETED
    _, extracted_data = document_repository.mark_completed.call_args.args

    with patch("clinic_ingest.pipeline.classification_pipeline.DocumentRepository") as classify_repo_cls, \
            patch("clinic_ingest.pipeline.classification_pipeline.MappingReviewService") as review_cls:
        classify_repo = classify_repo_cls.return_value
        classify_repo.get_by_id = AsyncMock(return_value=SimpleNamespace(
            processing_status=ProcessingStatus.COMPLETED, extracted_data=extracted_data,
        ))
        classify_repo.replace_extracted_data = AsyncMock()
        review_cls.return_value.seed_mappings = AsyncMock(return_value=1)

        classification = ClassificationPipeline(mock_session, UnavailableLLMClient("OPENROUTER_API_KEY not configured"))
        await classification.classify_document(document_id)

    _, classified_data = classify_repo.replace_extracted_data.call_args.args
    procedures = classified_data["procedures"]
    assert len(procedures) == 1
    assert procedures[0]["code"] == "A1.01.01.01"
    assert procedures[0]["description"] == "Consulta inicial"
    assert procedures[0]["value"] == 50.0
    assert procedures[0]["isPericiable"] is False
    assert procedures[0]["adultsOnly"] is False
    assert procedures[0]["aiPericiableConfidence"] == 0.0
    assert procedures[0]["aiAdultsOnlyConfidence"] == 0.0
