# src/services/extraction_service.py
from typing import Any, Dict, List, Optional
import httpx
from core.config import settings
from models.user import User
from schemas.mdt_schemas import PatientProfileDraft
from utils.exceptions import ForbiddenException, InternalServerException
from utils.logger import setup_logger

logger = setup_logger("EXTRACTION_SERVICE")

VALID_GENDERS = {"MALE", "FEMALE"}


class ExtractionService:
    """Proxy to the external service that turns recordings and scans into case drafts"""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.transport = transport

    async def extract(self, user: User, source: str, file_url: str) -> PatientProfileDraft:
        if not user.is_local:
            raise ForbiddenException("Only local professionals can extract case data")

        if source == "audio":
            return await self.extract_from_audio(file_url)
        return await self.extract_from_image(file_url)

    async def extract_from_audio(self, file_url: str) -> PatientProfileDraft:
        payload = await self._post(settings.AUDIO_EXTRACTION_URL, {"audio_file": file_url})
        return self.normalize(payload)

    async def extract_from_image(self, file_url: str) -> PatientProfileDraft:
        payload = await self._post(settings.IMAGE_EXTRACTION_URL, {"image_url": file_url})
        return self.normalize(payload)

    async def _post(self, url: str, body: Dict[str, str]) -> Dict[str, Any]:
        if not settings.EXTRACTION_API_KEY:
            logger.error("Extraction requested but EXTRACTION_API_KEY is not set")
            raise InternalServerException(
                "Case extraction is not configured. Please contact an administrator."
            )

        headers = {"Authorization": f"Bearer {settings.EXTRACTION_API_KEY}"}
        try:
            async with httpx.AsyncClient(
                transport=self.transport, timeout=settings.EXTRACTION_TIMEOUT_SECONDS
            ) as client:
                response = await client.post(url, json=body, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Extraction request to {url} failed: {e}")
            raise InternalServerException("Case extraction service is unavailable")

        if response.is_error:
            logger.error(
                f"Extraction service returned {response.status_code}: {response.text[:200]}"
            )
            raise InternalServerException("Failed to extract case data")

        try:
            data = response.json()
        except ValueError:
            logger.error("Extraction service returned a non-JSON body")
            raise InternalServerException("Failed to extract case data")

        if not isinstance(data, dict):
            raise InternalServerException("Failed to extract case data")
        return data

    @staticmethod
    def normalize(data: Dict[str, Any]) -> PatientProfileDraft:
        """Keep only the fields that can pre-fill a patient profile"""
        draft: Dict[str, Any] = {}

        age = data.get("age")
        if isinstance(age, (int, float)) and not isinstance(age, bool) and age > 0:
            draft["age"] = int(age)

        gender = data.get("gender")
        if gender and str(gender).upper() in VALID_GENDERS:
            draft["gender"] = str(gender).upper()

        for field in ("medical_history", "case_summary"):
            if data.get(field):
                draft[field] = str(data[field])

        medications: List[Dict[str, str]] = []
        raw = data.get("medications")
        if isinstance(raw, list):
            for med in raw:
                if not isinstance(med, dict):
                    continue
                name = med.get("name") or med.get("medication") or ""
                if not name:
                    continue
                medications.append(
                    {
                        "name": str(name)[:200],
                        "dosage": str(med.get("dosage") or med.get("dose") or "")[:200],
                    }
                )
        draft["medications"] = medications

        return PatientProfileDraft(**draft)


extraction_service = ExtractionService()
