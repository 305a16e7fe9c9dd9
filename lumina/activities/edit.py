"""edit_room_image — single-shot image redesign via Gemini.

Sends the current room image and a wrapped instruction to the image model
and returns the first image in the response. Failures are not recovered
here: callers surface them to the user and keep the last good image.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from lumina.config import settings
from lumina.utils.gemini_chat import build_edit_contents, extract_image, extract_text

if TYPE_CHECKING:
    from google import genai

logger = structlog.get_logger()

STYLE_INSTRUCTION_TEMPLATE = "Redesign this room in a {style} style."


class ImageEditError(Exception):
    """Base class for image edit failures."""


class NoImageGeneratedError(ImageEditError):
    """The model answered but returned no image part."""


class EditGatewayError(ImageEditError):
    """The remote call itself failed (network, auth, quota, bad request)."""


def style_instruction(style: str) -> str:
    return STYLE_INSTRUCTION_TEMPLATE.format(style=style)


async def edit_room_image(
    client: genai.Client,
    image: str,
    instruction: str,
    *,
    model: str | None = None,
) -> str:
    """Apply ``instruction`` to ``image`` and return the edited image handle.

    Raises:
        ValueError: ``image`` is empty or ``instruction`` is blank.
        NoImageGeneratedError: the response carried no image.
        EditGatewayError: the Gemini call failed.
    """
    if not image:
        raise ValueError("An image is required for editing")
    if not instruction.strip():
        raise ValueError("Edit instruction must not be empty")

    model = model or settings.edit_model
    logger.info("edit_room_image_start", model=model, instruction_len=len(instruction))

    try:
        contents = build_edit_contents(image, instruction)
        response = await asyncio.to_thread(
            client.models.generate_content,
            model=model,
            contents=contents,
        )
    except Exception as e:
        logger.error(
            "edit_room_image_failed",
            model=model,
            error_type=type(e).__name__,
            error=str(e)[:200],
        )
        raise EditGatewayError(f"Edit failed: {type(e).__name__}: {str(e)[:200]}") from e

    result = extract_image(response)
    if result is None:
        logger.warning(
            "edit_room_image_no_image",
            model=model,
            text_preview=extract_text(response)[:200],
        )
        raise NoImageGeneratedError("No image generated.")

    logger.info("edit_room_image_done", model=model, size_chars=len(result))
    return result
