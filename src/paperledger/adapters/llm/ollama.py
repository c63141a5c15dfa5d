"""Document-understanding adapter using Ollama."""

import logging
from urllib.parse import urlparse

from ...ports.understanding import UnderstandingPort
from .http import encode_payload, post_json

logger = logging.getLogger(__name__)


class OllamaAdapter(UnderstandingPort):
    """Uses a local vision model through Ollama's chat endpoint."""

    def __init__(
        self,
        model: str = "qwen2.5vl",
        base_url: str = "http://localhost:11434",
        timeout: float = 120.0,
    ) -> None:
        parsed = urlparse(base_url)
        if parsed.scheme not in ("http", "https"):
            raise ValueError(f"Invalid ollama_url scheme: {parsed.scheme}")
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def complete(self, prompt: str, payload: bytes, mime_type: str) -> str:
        logger.info(f"Extracting document with Ollama ({self.model})")

        data = post_json(
            f"{self.base_url}/api/chat",
            {
                "model": self.model,
                "messages": [
                    {
                        "role": "user",
                        "content": prompt,
                        "images": [encode_payload(payload)],
                    },
                ],
                "stream": False,
                "format": "json",
            },
            timeout=self.timeout,
        )

        return data.get("message", {}).get("content", "")
