"""Receipt text recognition gateway.

The bill lifecycle only needs one capability from the outside world:
turn receipt image bytes into raw text. ``RecognitionGateway`` names
that capability; ``OpenAIRecognitionGateway`` implements it with a
vision-enabled model through the OpenAI Responses API.

The gateway performs exactly one request per call and never retries:
transport, quota and credential failures surface as
``ServiceUnavailable``; a successful call with an empty transcription
surfaces as ``NoTextDetected``.
"""

from __future__ import annotations

import base64
import logging
from typing import Optional, Protocol

from openai import AsyncOpenAI, OpenAIError

from expense_tracker.core.config import Settings
from expense_tracker.core.errors import NoTextDetected, ServiceUnavailable
from expense_tracker.utils.image_processing import preprocess_image
from expense_tracker.utils.prompts import get_default_recognition_prompt

logger = logging.getLogger(__name__)


class RecognitionGateway(Protocol):
    async def recognize(self, image_bytes: bytes) -> str:
        """Return the text found in ``image_bytes``."""
        ...


class OpenAIRecognitionGateway:
    """Recognition gateway backed by an OpenAI vision model.

    The ``AsyncOpenAI`` client is created on first use unless one is
    injected, so building the gateway never needs credentials.
    """

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
        prompt: Optional[str] = None,
        image_max_size: int = 2048,
    ) -> None:
        self.model = model
        self._api_key = api_key
        self._client = client
        self.prompt = prompt or get_default_recognition_prompt()
        self.image_max_size = image_max_size

    @classmethod
    def from_settings(cls, settings: Settings) -> "OpenAIRecognitionGateway":
        return cls(
            model=settings.RECOGNITION_MODEL,
            api_key=settings.OPENAI_API_KEY,
            image_max_size=settings.RECOGNITION_IMAGE_MAX_SIZE,
        )

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            try:
                self._client = AsyncOpenAI(api_key=self._api_key, max_retries=0)
            except OpenAIError as exc:
                raise ServiceUnavailable(f"Recognition client could not be configured: {exc}") from exc
        return self._client

    def _image_to_data_url(self, data: bytes) -> str:
        processed = preprocess_image(data, max_size=self.image_max_size)
        return f"data:image/jpeg;base64,{base64.b64encode(processed).decode('utf-8')}"

    async def recognize(self, image_bytes: bytes) -> str:
        client = self._get_client()
        image_url = self._image_to_data_url(image_bytes)
        logger.info("[recognition] request model=%s bytes=%d", self.model, len(image_bytes))
        try:
            response = await client.responses.create(
                model=self.model,
                input=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "input_image", "image_url": image_url, "detail": "high"},
                            {"type": "input_text", "text": self.prompt},
                        ],
                    }
                ],
            )
        except OpenAIError as exc:
            logger.warning("[recognition] request failed model=%s err=%s", self.model, exc)
            raise ServiceUnavailable(f"Text recognition failed: {exc}") from exc

        text = (getattr(response, "output_text", None) or "").strip()
        if not text:
            raise NoTextDetected("No text detected in the image")
        logger.info("[recognition] received %d characters", len(text))
        return text


__all__ = ["RecognitionGateway", "OpenAIRecognitionGateway"]
