"""Document-understanding adapter using the Claude API."""

import logging
from typing import Any

from ...exceptions import UnderstandingServiceError
from ...ports.understanding import UnderstandingPort
from .http import encode_payload

logger = logging.getLogger(__name__)


def build_content_block(payload: bytes, mime_type: str) -> dict[str, Any]:
    """Wrap the document as a PDF, image or plain-text content block."""
    if mime_type == "application/pdf":
        return {
            "type": "document",
            "source": {"type": "base64", "media_type": mime_type, "data": encode_payload(payload)},
        }
    if mime_type.startswith("image/"):
        return {
            "type": "image",
            "source": {"type": "base64", "media_type": mime_type, "data": encode_payload(payload)},
        }
    return {"type": "text", "text": payload.decode("utf-8", errors="replace")}


class ClaudeAPIAdapter(UnderstandingPort):
    """Extraction using the Claude API (pay-as-you-go)."""

    def __init__(
        self,
        model: str = "claude-sonnet-4-20250514",
        api_key: str | None = None,
        max_tokens: int = 2000,
        timeout: float = 60.0,
    ) -> None:
        import anthropic

        self.client = anthropic.Anthropic(api_key=api_key, timeout=timeout, max_retries=0)
        self.model = model
        self.max_tokens = max_tokens

    def complete(self, prompt: str, payload: bytes, mime_type: str) -> str:
        import anthropic

        logger.info("Extracting document with Claude API")

        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            build_content_block(payload, mime_type),
                            {"type": "text", "text": prompt},
                        ],
                    },
                ],
            )
        except anthropic.APITimeoutError as e:
            raise UnderstandingServiceError("Claude API request timed out") from e
        except anthropic.APIError as e:
            raise UnderstandingServiceError(f"Claude API request failed: {e}") from e

        return "".join(block.text for block in response.content if block.type == "text")
