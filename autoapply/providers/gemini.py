"""Google Gemini backend (REST generateContent, with search grounding for discovery)."""

import logging

import requests

from autoapply.errors import TransientProviderError
from autoapply.profile.models import ProviderName
from autoapply.providers.base import ProviderBackend

logger = logging.getLogger("autoapply.providers.gemini")

API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"


class GeminiBackend(ProviderBackend):
    name = ProviderName.GEMINI
    supports_search = True

    def generate(self, prompt: str, *, json_output: bool = True, search: bool = False) -> str:
        payload: dict = {"contents": [{"parts": [{"text": prompt}]}]}
        if search:
            # The API rejects a JSON mime type together with tools
            payload["tools"] = [{"google_search": {}}]
        elif json_output:
            payload["generationConfig"] = {"responseMimeType": "application/json"}

        try:
            response = self.session.post(
                API_URL.format(model=self.model),
                json=payload,
                headers={"x-goog-api-key": self.credential},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise TransientProviderError(f"Gemini request failed: {e}") from e

        try:
            parts = data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError) as e:
            raise TransientProviderError(f"Gemini response had no candidates: {data!r:.200}") from e

        text = "".join(str(part.get("text") or "") for part in parts if isinstance(part, dict))
        logger.debug("Gemini returned %d chars", len(text))
        return text
