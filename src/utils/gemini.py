"""Minimal Gemini ``generateContent`` REST client."""

from __future__ import annotations

import base64
from typing import Any

from loguru import logger
import requests

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"


class GeminiError(Exception):
    """Raised when the Gemini API call fails or returns no text."""


def image_part(data: bytes, mime_type: str = "image/jpeg") -> dict:
    """Build an inline image content part."""
    return {
        "inline_data": {
            "mime_type": mime_type,
            "data": base64.b64encode(data).decode("ascii"),
        }
    }


def text_part(text: str) -> dict:
    return {"text": text}


class GeminiClient:
    """Thin wrapper around the Gemini REST endpoint.

    Parameters
    ----------
    api_key : str
        Gemini API key.
    timeout : float
        Request timeout in seconds.
    session : requests.Session, optional
        Injected HTTP session; a new one is created when omitted.
    """

    def __init__(
        self,
        api_key: str,
        timeout: float = 60.0,
        session: requests.Session | None = None,
    ) -> None:
        self.api_key = api_key
        self.timeout = timeout
        self._session = session or requests.Session()

    def generate(
        self,
        model: str,
        parts: list[dict],
        generation_config: dict | None = None,
    ) -> str:
        """Send one prompt and return the first candidate's text.

        Parameters
        ----------
        model : str
            Model name, e.g. ``gemini-2.5-flash``.
        parts : list[dict]
            Content parts, see :func:`image_part` and :func:`text_part`.
        generation_config : dict, optional
            Optional ``generationConfig`` payload.

        Returns
        -------
        str
            Generated text.

        Raises
        ------
        GeminiError
            Raised on missing key, HTTP failure or an empty response.
        """
        if not self.api_key:
            raise GeminiError("Gemini API key is not configured")
        payload: dict[str, Any] = {"contents": [{"parts": parts}]}
        if generation_config:
            payload["generationConfig"] = generation_config
        url = f"{GEMINI_BASE_URL}/{model}:generateContent"
        try:
            response = self._session.post(
                url,
                json=payload,
                headers={"x-goog-api-key": self.api_key},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise GeminiError(f"Gemini request failed: {exc}") from exc
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as exc:
            raise GeminiError("Gemini response contained no text") from exc
        logger.debug(f"Gemini {model} returned {len(text)} chars")
        return text
