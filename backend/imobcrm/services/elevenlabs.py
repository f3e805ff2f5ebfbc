"""
ElevenLabs service - voice catalogue for the AI audio settings
"""
import logging
from typing import Optional, Any, Dict, List

import httpx

from ..core.config import settings
from ..core.exceptions import IntegrationError

logger = logging.getLogger(__name__)

ELEVENLABS_API_URL = "https://api.elevenlabs.io/v1"


class ElevenLabsService:
    """Lists the voices available to the configured ElevenLabs account"""

    def __init__(self, api_key: Optional[str] = None, base_url: str = ELEVENLABS_API_URL):
        self.api_key = api_key or settings.ELEVEN_LABS_API_KEY
        self.base_url = base_url

    @staticmethod
    def format_voice(voice: Dict[str, Any]) -> Dict[str, Any]:
        labels = voice.get("labels") or {}
        description = (
            labels.get("description")
            or ", ".join(str(v) for v in labels.values())
            or voice.get("description")
            or ""
        )
        return {
            "id": voice.get("voice_id"),
            "name": voice.get("name"),
            "category": voice.get("category"),
            "description": description,
            "previewUrl": voice.get("preview_url"),
        }

    async def list_voices(self) -> Dict[str, Any]:
        """
        Fetch voices, flat and grouped by category.

        Raises:
            IntegrationError: key not configured or API error
        """
        if not self.api_key:
            raise IntegrationError("elevenlabs", "ELEVENLABS_API_KEY not configured", 500)

        async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS) as client:
            response = await client.get(f"{self.base_url}/voices", headers={"xi-api-key": self.api_key})

        if response.status_code >= 400:
            logger.error(f"[ElevenLabs] API error {response.status_code}: {response.text[:300]}")
            raise IntegrationError("elevenlabs", f"ElevenLabs error: {response.status_code}", response.status_code)

        raw_voices = response.json().get("voices") or []
        voices = [self.format_voice(v) for v in raw_voices]

        grouped: Dict[str, List[Dict[str, Any]]] = {}
        for voice in voices:
            grouped.setdefault(voice["category"] or "other", []).append(voice)

        logger.info(f"[ElevenLabs] Found {len(voices)} voices")
        return {
            "success": True,
            "voices": voices,
            "groupedVoices": grouped,
            "totalCount": len(voices),
        }


elevenlabs = ElevenLabsService()
