"""Hugging Face Inference API backend (instruction-tuned text generation)."""

import logging

import requests

from autoapply.errors import TransientProviderError
from autoapply.profile.models import ProviderName
from autoapply.providers.base import ProviderBackend

logger = logging.getLogger("autoapply.providers.huggingface")

API_URL = "https://api-inference.huggingface.co/models/{model}"


class HuggingFaceBackend(ProviderBackend):
    """Free-text backend; JSON is scraped from the completion by the caller."""

    name = ProviderName.HUGGINGFACE

    def generate(self, prompt: str, *, json_output: bool = True, search: bool = False) -> str:
        payload = {
            "inputs": f"[INST] {prompt} [/INST]",
            "parameters": {"max_new_tokens": 1000, "return_full_text": False},
        }
        try:
            response = self.session.post(
                API_URL.format(model=self.model),
                json=payload,
                headers={"Authorization": f"Bearer {self.credential}"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise TransientProviderError(f"Hugging Face request failed: {e}") from e

        if isinstance(data, dict) and data.get("error"):
            raise TransientProviderError(f"Hugging Face error: {data['error']}")
        try:
            return str(data[0]["generated_text"] or "")
        except (KeyError, IndexError, TypeError) as e:
            raise TransientProviderError("Hugging Face response had no generated_text") from e
