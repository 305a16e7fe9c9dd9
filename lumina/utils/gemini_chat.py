"""Gemini request shaping and response extraction.

Builds the ``contents`` payloads for the two remote capabilities Lumina
uses (image editing and the grounded design consultant) and pulls images,
text and grounding citations back out of responses. Everything here is
synchronous and side-effect free apart from ``get_client``; the activities
run the actual SDK calls in a worker thread.
"""

from __future__ import annotations

import base64
from collections.abc import Sequence

import structlog
from google import genai
from google.genai import types

from lumina.config import Settings, settings
from lumina.models.contracts import ChatTurn, Citation
from lumina.utils.image import media_type_of, strip_data_uri_prefix, to_data_uri

logger = structlog.get_logger()

RESPONSE_IMAGE_MEDIA_TYPE = "image/png"  # used when a part carries no mime_type

EDIT_PROMPT_TEMPLATE = (
    "Edit this interior design image. Instruction: {instruction}. "
    "Maintain the structural integrity of the room but apply the requested style "
    "or changes strictly. High quality, photorealistic."
)

ROOM_STATE_NOTE = "\n[System: The above image is the current state of the user's room.]"

CONSULTANT_SYSTEM_INSTRUCTION = (
    "You are an expert Interior Design Consultant. Your goal is to help users design "
    "their dream space. You can see the current state of their room design. Provide "
    "helpful advice on layout, colors, and decor. When the user asks for products, use "
    "Google Search to find real, shoppable links. Be concise, friendly, and professional."
)

CONSULTANT_CONFIG = types.GenerateContentConfig(
    system_instruction=CONSULTANT_SYSTEM_INSTRUCTION,
    tools=[types.Tool(google_search=types.GoogleSearch())],
)

# Gemini names the assistant side of a conversation "model"
_ROLE_MAP = {"user": "user", "assistant": "model"}


def get_client(config: Settings | None = None) -> genai.Client:
    """Create a Gemini client from explicit settings."""
    config = config or settings
    return genai.Client(api_key=config.google_ai_api_key)


def image_part(image: str) -> types.Part:
    """Inline image part for a data-URI (or bare base64) image handle."""
    payload = strip_data_uri_prefix(image)
    return types.Part.from_bytes(
        data=base64.b64decode(payload),
        mime_type=media_type_of(image),
    )


def build_edit_contents(image: str, instruction: str) -> list[types.Part]:
    """Image first, then the wrapped instruction."""
    return [
        image_part(image),
        types.Part(text=EDIT_PROMPT_TEMPLATE.format(instruction=instruction)),
    ]


def trim_history(history: Sequence[ChatTurn], window: int) -> list[ChatTurn]:
    """Most recent ``window`` turns, oldest first."""
    if window <= 0:
        return []
    return list(history[-window:])


def build_chat_contents(
    history: Sequence[ChatTurn],
    image: str | None,
    message: str,
    window: int = 10,
) -> list[types.Content]:
    """Role-tagged history window plus the new user turn.

    The current room image (when there is one) rides on the final user turn,
    followed by a note telling the model what the image is.
    """
    contents = [
        types.Content(role=_ROLE_MAP[turn.role], parts=[types.Part(text=turn.text)])
        for turn in trim_history(history, window)
    ]

    new_parts = [types.Part(text=message)]
    if image:
        new_parts.append(image_part(image))
        new_parts.append(types.Part(text=ROOM_STATE_NOTE))
    contents.append(types.Content(role="user", parts=new_parts))
    return contents


def _first_candidate_parts(response: types.GenerateContentResponse) -> list[types.Part]:
    if not response.candidates:
        return []
    content = response.candidates[0].content
    if content is None or content.parts is None:
        return []
    return list(content.parts)


def extract_image(response: types.GenerateContentResponse) -> str | None:
    """First inline image in the response as a data URI, or None."""
    for part in _first_candidate_parts(response):
        inline = part.inline_data
        if inline is None or not inline.data:
            continue
        return to_data_uri(inline.data, inline.mime_type or RESPONSE_IMAGE_MEDIA_TYPE)
    return None


def extract_text(response: types.GenerateContentResponse) -> str:
    """Answer text of a Gemini response, thought parts skipped.

    Grounded replies arrive split across several parts, so they are
    concatenated as-is.
    """
    texts = [
        part.text for part in _first_candidate_parts(response) if part.text and not part.thought
    ]
    return "".join(texts)


def extract_citations(response: types.GenerateContentResponse) -> list[Citation]:
    """Web grounding sources attached to the first candidate, in order."""
    if not response.candidates:
        return []
    metadata = response.candidates[0].grounding_metadata
    if metadata is None or not metadata.grounding_chunks:
        return []

    citations = []
    for chunk in metadata.grounding_chunks:
        web = chunk.web
        if web is None or not web.uri:
            continue
        citations.append(Citation(url=web.uri, title=web.title or None))
    return citations
