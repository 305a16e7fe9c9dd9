"""chat_with_consultant — grounded design-consultant chat via Gemini.

Remote failures are recovered here: the caller always receives a reply,
either the model's answer or a fixed apology, so every user turn is
answered by exactly one assistant turn.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import TYPE_CHECKING

import structlog

from lumina.config import settings
from lumina.models.contracts import ChatTurn, ConsultantReply
from lumina.utils.gemini_chat import (
    CONSULTANT_CONFIG,
    build_chat_contents,
    extract_citations,
    extract_text,
)

if TYPE_CHECKING:
    from google import genai

logger = structlog.get_logger()

EMPTY_REPLY_TEXT = "I couldn't generate a response. Please try again."
CONNECTION_ERROR_TEXT = "Sorry, I encountered an error while connecting to the design consultant."


async def chat_with_consultant(
    client: genai.Client,
    history: Sequence[ChatTurn],
    image: str | None,
    message: str,
    *,
    model: str | None = None,
    window: int | None = None,
) -> ConsultantReply:
    """Send the recent conversation plus ``message`` to the consultant model.

    ``history`` is the conversation before ``message``; only its most recent
    ``window`` turns are forwarded.
    """
    model = model or settings.chat_model
    window = settings.chat_history_window if window is None else window

    logger.info(
        "consultant_chat_start",
        model=model,
        history_turns=len(history),
        has_image=image is not None,
    )

    try:
        contents = build_chat_contents(history, image, message, window=window)
        response = await asyncio.to_thread(
            client.models.generate_content,
            model=model,
            contents=contents,
            config=CONSULTANT_CONFIG,
        )
        text = extract_text(response) or EMPTY_REPLY_TEXT
        citations = extract_citations(response)
    except Exception as e:
        logger.error(
            "consultant_chat_failed",
            model=model,
            error_type=type(e).__name__,
            error=str(e)[:200],
        )
        return ConsultantReply(text=CONNECTION_ERROR_TEXT)

    logger.info("consultant_chat_done", model=model, citations=len(citations))
    return ConsultantReply(text=text, citations=citations)
