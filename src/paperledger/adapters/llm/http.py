"""Shared HTTP helpers for document-understanding adapters."""

import base64
import logging
from typing import Any

import httpx

from ...exceptions import UnderstandingServiceError

logger = logging.getLogger(__name__)


def encode_payload(payload: bytes) -> str:
    return base64.b64encode(payload).decode("ascii")


def post_json(
    url: str,
    body: dict[str, Any],
    timeout: float,
    headers: dict[str, str] | None = None,
) -> dict[str, Any]:
    """POST a JSON body and return the decoded JSON response.

    Transport errors, non-2xx responses, timeouts and undecodable bodies are
    raised as UnderstandingServiceError. No retries are made.
    """
    try:
        response = httpx.post(url, json=body, headers=headers, timeout=timeout)
        response.raise_for_status()
        return response.json()
    except httpx.TimeoutException as e:
        raise UnderstandingServiceError(f"AI API request timed out after {timeout}s") from e
    except httpx.HTTPStatusError as e:
        raise UnderstandingServiceError(
            f"AI API request failed: {e.response.status_code} {e.response.text[:200]}"
        ) from e
    except httpx.HTTPError as e:
        raise UnderstandingServiceError(f"AI API request failed: {e}") from e
    except ValueError as e:
        raise UnderstandingServiceError(f"AI API returned invalid JSON: {e}") from e
