"""Gemini service adapter.

Serves both halves of a run through the ``google-genai`` SDK:

- **List requests** go to a text model with ``response_mime_type`` set to
  JSON and a response schema listing the six required draft fields.
- **Image requests** go to an image model with the background bitmap as an
  inline PNG part followed by the text prompt. The first inline image part of
  the first candidate is returned.

The SDK client is created lazily so that importing this module (which
registers the adapter) never requires credentials.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from google import genai
from google.genai import types

from ..config import ArchivistConfig
from ..model_adapters import ServiceAdapterBase, adapter_registry
from ..prompt_builder import LIST_FIELDS, build_list_prompt

logger = logging.getLogger(__name__)

LIST_RESPONSE_SCHEMA = types.Schema(
    type=types.Type.ARRAY,
    items=types.Schema(
        type=types.Type.OBJECT,
        properties={
            "name": types.Schema(type=types.Type.STRING),
            "year": types.Schema(type=types.Type.STRING),
            "description": types.Schema(type=types.Type.STRING),
            "width_mm": types.Schema(type=types.Type.NUMBER),
            "height_mm": types.Schema(type=types.Type.NUMBER),
            "depth_mm": types.Schema(type=types.Type.NUMBER),
        },
        required=list(LIST_FIELDS),
    ),
)


def extract_inline_image(response) -> bytes | None:
    """Return the first inline image payload of a response, or None."""
    candidates = getattr(response, "candidates", None)
    if not candidates:
        return None
    content = candidates[0].content
    if content is None or not content.parts:
        return None
    for part in content.parts:
        inline = getattr(part, "inline_data", None)
        if inline and inline.data:
            return inline.data
    return None


def parse_list_response(text: str | None) -> list[dict[str, Any]]:
    """Parse the JSON body of a list response.

    Raises:
        ValueError: If the text is empty, not JSON, or not a JSON array
    """
    if not text:
        raise ValueError("List response was empty")

    body = text.strip()
    # Strip a Markdown code fence if the model added one
    if body.startswith("```"):
        body = body.split("\n", 1)[1] if "\n" in body else ""
        if body.rstrip().endswith("```"):
            body = body.rstrip()[:-3]

    data = json.loads(body)
    if not isinstance(data, list):
        raise ValueError(f"Expected a JSON array, got {type(data).__name__}")
    return data


class GeminiAdapter(ServiceAdapterBase):
    """List and image service backed by Google Gemini models."""

    name = "Gemini"
    description = "Google Gemini text model for lists, Gemini image model for synthesis"
    version = "0.1.0"

    def __init__(self, config: ArchivistConfig) -> None:
        super().__init__(config)
        self._client: genai.Client | None = None

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            if not self.config.gemini_api_key:
                raise RuntimeError(
                    "Gemini API key is not configured (set GEMINI_API_KEY or "
                    "ARCHIVIST_GEMINI_API_KEY)"
                )
            self._client = genai.Client(api_key=self.config.gemini_api_key)
        return self._client

    async def aclose(self) -> None:
        """Close the SDK client, if one was created."""
        client, self._client = self._client, None
        if client is None:
            return
        await client.aio.aclose()
        client.close()
        logger.info(f"Closed {self.name} client")

    async def fetch_drafts(self, count: int) -> list[dict[str, Any]]:
        logger.info(f"Requesting {count} entities from {self.config.list_model}")
        response = await self.client.aio.models.generate_content(
            model=self.config.list_model,
            contents=build_list_prompt(count),
            config=types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=LIST_RESPONSE_SCHEMA,
            ),
        )
        drafts = parse_list_response(response.text)
        logger.info(f"List service returned {len(drafts)} entities")
        return drafts

    async def synthesize(
        self, background: bytes, prompt: str, aspect_ratio: str = "1:1"
    ) -> bytes | None:
        response = await self.client.aio.models.generate_content(
            model=self.config.image_model,
            contents=[
                types.Part.from_bytes(data=background, mime_type="image/png"),
                types.Part.from_text(text=prompt),
            ],
            config=types.GenerateContentConfig(
                image_config=types.ImageConfig(aspect_ratio=aspect_ratio),
            ),
        )
        return extract_inline_image(response)


# Register the adapter
adapter_registry.register(GeminiAdapter)
