import json

import httpx
import pytest

from core.config import settings
from models.user import UserRole
from services.extraction_service import ExtractionService
from utils.exceptions import ForbiddenException, InternalServerException


def service_returning(status_code=200, payload=None, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, json=payload if payload is not None else {})

    return ExtractionService(transport=httpx.MockTransport(handler))


async def test_audio_extraction_posts_file_url_and_normalizes(db, make_user):
    user = await make_user(role=UserRole.LOCAL)
    seen = []
    service = service_returning(
        payload={
            "age": 61,
            "gender": "female",
            "medical_history": "Type 2 diabetes",
            "case_summary": "Suspicious lung nodule",
            "medications": [
                {"name": "Metformin", "dosage": "500mg"},
                {"medication": "Insulin", "dose": "10u"},
                {"dosage": "no name, dropped"},
            ],
        },
        seen=seen,
    )

    draft = await service.extract(user, "audio", "https://files.example.org/a.mp3")

    request = seen[0]
    assert str(request.url) == settings.AUDIO_EXTRACTION_URL
    assert request.headers["Authorization"] == f"Bearer {settings.EXTRACTION_API_KEY}"
    assert json.loads(request.content) == {"audio_file": "https://files.example.org/a.mp3"}

    assert draft.age == 61
    assert draft.gender == "FEMALE"
    assert draft.medical_history == "Type 2 diabetes"
    assert [(m.name, m.dosage) for m in draft.medications] == [
        ("Metformin", "500mg"),
        ("Insulin", "10u"),
    ]


async def test_image_extraction_uses_image_endpoint(db, make_user):
    user = await make_user(role=UserRole.LOCAL)
    seen = []
    service = service_returning(payload={}, seen=seen)

    draft = await service.extract(user, "image", "https://files.example.org/scan.png")

    assert str(seen[0].url) == settings.IMAGE_EXTRACTION_URL
    assert json.loads(seen[0].content) == {"image_url": "https://files.example.org/scan.png"}
    assert draft.age is None and draft.medications == []


def test_normalize_drops_unusable_values():
    draft = ExtractionService.normalize(
        {"age": 0, "gender": "unknown", "medical_history": "", "medications": "none"}
    )

    assert draft.age is None
    assert draft.gender is None
    assert draft.medical_history is None
    assert draft.medications == []


async def test_upstream_error_is_internal(db, make_user):
    user = await make_user(role=UserRole.LOCAL)
    service = service_returning(status_code=502, payload={"error": "boom"})

    with pytest.raises(InternalServerException):
        await service.extract(user, "audio", "https://files.example.org/a.mp3")


async def test_transport_failure_is_internal(db, make_user):
    user = await make_user(role=UserRole.LOCAL)

    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    service = ExtractionService(transport=httpx.MockTransport(handler))
    with pytest.raises(InternalServerException):
        await service.extract(user, "image", "https://files.example.org/scan.png")


async def test_missing_api_key_is_internal(db, make_user, monkeypatch):
    user = await make_user(role=UserRole.LOCAL)
    monkeypatch.setattr(settings, "EXTRACTION_API_KEY", "")

    with pytest.raises(InternalServerException):
        await service_returning().extract(user, "audio", "https://files.example.org/a.mp3")


async def test_external_users_cannot_extract(db, make_user):
    user = await make_user(role=UserRole.EXTERNAL)

    with pytest.raises(ForbiddenException):
        await service_returning().extract(user, "audio", "https://files.example.org/a.mp3")
