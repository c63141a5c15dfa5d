"""Document-understanding adapter using the OpenAI chat completions API."""

import logging
import os

from ...exceptions import UnderstandingServiceError
from ...ports.understanding import UnderstandingPort
from .http import encode_payload, post_json

logger = logging.getLogger(__name__)


class OpenAIAdapter(UnderstandingPort):
    """Sends the document as an image data URL alongside the prompt."""

    def __init__(
        self,
        model: str = "gpt-4o",
        base_url: str = "https://api.openai.com/v1",
        api_key: str | None = None,
        max_tokens: int = 2000,
        timeout: float = 60.0,
    ) -> None:
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
        self.max_tokens = max_tokens
        self.timeout = timeout

    def complete(self, prompt: str, payload: bytes, mime_type: str) -> str:
        logger.info(f"Extracting document with OpenAI ({self.model})")

        if not self.api_key:
            raise UnderstandingServiceError("OPENAI_API_KEY not set")

        data = post_json(
            f"{self.base_url}/chat/completions",
            {
                "model": self.model,
                "messages": [
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": prompt},
                            {
                                "type": "image_url",
                                "image_url": {
                                    "url": f"data:{mime_type};base64,{encode_payload(payload)}"
                                },
                            },
                        ],
                    }
                ],
                "max_tokens": self.max_tokens,
            },
            timeout=self.timeout,
            headers={"Authorization": f"Bearer {self.api_key}"},
        )

        try:
            return data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError):
            logger.warning(f"Unexpected OpenAI response shape: {str(data)[:200]}")
            return ""
