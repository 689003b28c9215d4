"""OpenRouter backend via its OpenAI-compatible chat completions endpoint."""

import logging

from openai import OpenAI, OpenAIError

from autoapply.errors import TransientProviderError
from autoapply.profile.models import ProviderName
from autoapply.providers.base import ProviderBackend

logger = logging.getLogger("autoapply.providers.openrouter")

BASE_URL = "https://openrouter.ai/api/v1"


class OpenRouterBackend(ProviderBackend):
    name = ProviderName.OPENROUTER

    def __init__(self, *args, client=None, **kwargs):
        super().__init__(*args, **kwargs)
        self._client = client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(
                api_key=self.credential,
                base_url=BASE_URL,
                timeout=self.timeout,
                max_retries=0,
            )
        return self._client

    def generate(self, prompt: str, *, json_output: bool = True, search: bool = False) -> str:
        content = prompt + "\n\nReturn ONLY raw JSON." if json_output else prompt
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": content}],
                temperature=0.2,
            )
            return (response.choices[0].message.content or "").strip()
        except OpenAIError as e:
            raise TransientProviderError(f"OpenRouter request failed: {e}") from e
        except (IndexError, AttributeError, TypeError) as e:
            raise TransientProviderError("OpenRouter response had no choices") from e
