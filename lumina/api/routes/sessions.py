"""Design session endpoints — the orchestration shell.

Each session holds one room photo, its redesigns and the consultant
conversation, kept in process memory. Handlers translate user actions into
session events, call the Gemini activities and dispatch the results.

Edits and chats use independent loading flags. A second submit of the same
kind while one is in flight is rejected with 409 until the first settles.
A flag is always cleared when its request ends, including on cancellation.

Domain failures (``ImageEditError``, ``InvalidImageError``) propagate to the
app's exception handlers, which turn them into ``ErrorResponse`` bodies.
"""

import asyncio
import uuid
from typing import Literal

import structlog
from fastapi import APIRouter, Query, Request, Response, UploadFile
from fastapi.responses import JSONResponse
from google import genai

from lumina.activities.consult import chat_with_consultant
from lumina.activities.edit import edit_room_image, style_instruction
from lumina.config import settings
from lumina.models.contracts import (
    ChatRequest,
    ConsultantReply,
    CreateSessionResponse,
    CustomEditRequest,
    ErrorResponse,
    ModeRequest,
    SessionState,
    SessionView,
    SliderEventRequest,
    StyleEditRequest,
)
from lumina.utils.compare import render_compare
from lumina.utils.gemini_chat import get_client
from lumina.utils.image import (
    decode_data_uri,
    decode_payload,
    encode_upload,
    image_to_bytes,
    media_type_of,
)
from lumina.workflows.design_session import (
    ChatReplied,
    ChatSent,
    EditFailed,
    EditStarted,
    EditSucceeded,
    ImageUploaded,
    ModeSelected,
    ResetRequested,
    SessionEvent,
    SliderPointerDown,
    SliderPointerMove,
    SliderPointerUp,
    apply_event,
    new_session,
    render_view,
)

logger = structlog.get_logger()

router = APIRouter(tags=["sessions"])

CHAT_UNAVAILABLE_TEXT = "Sorry, I'm having trouble connecting right now."

_UPLOAD_CHUNK_BYTES = 65_536

# In-memory session store, oldest first; nothing outlives the process
_sessions: dict[str, SessionState] = {}


def _error(status: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content=ErrorResponse(error=code, message=message).model_dump(),
    )


_NOT_FOUND = ("session_not_found", "Session not found")


def _dispatch(session_id: str, event: SessionEvent) -> SessionState | None:
    """Apply an event to the latest stored state.

    Returns None when the session was deleted in the meantime.
    """
    state = _sessions.get(session_id)
    if state is None:
        return None
    state = apply_event(state, event)
    _sessions[session_id] = state
    return state


def _genai_client(request: Request) -> genai.Client:
    """One Gemini client per app, built from settings on first use."""
    client = getattr(request.app.state, "genai_client", None)
    if client is None:
        client = get_client(settings)
        request.app.state.genai_client = client
    return client


def _check_image(state: SessionState | None) -> JSONResponse | None:
    if state is None:
        return _error(404, *_NOT_FOUND)
    if state.current_image is None:
        return _error(409, "no_image", "Upload a room photo first")
    return None


# --- Session lifecycle ---


@router.post("/sessions", status_code=201, response_model=CreateSessionResponse)
async def create_session() -> CreateSessionResponse:
    # Each session can hold two copies of a full-size photo, so the store is capped
    while _sessions and len(_sessions) >= settings.max_sessions:
        evicted = next(iter(_sessions))
        del _sessions[evicted]
        logger.info("session_evicted", session_id=evicted, max_sessions=settings.max_sessions)

    session_id = str(uuid.uuid4())
    _sessions[session_id] = new_session(session_id)
    logger.info("session_created", session_id=session_id)
    return CreateSessionResponse(session_id=session_id)


@router.get(
    "/sessions/{session_id}",
    response_model=SessionView,
    responses={404: {"model": ErrorResponse}},
)
async def get_session(session_id: str):
    state = _sessions.get(session_id)
    if state is None:
        return _error(404, *_NOT_FOUND)
    return render_view(state)


@router.delete(
    "/sessions/{session_id}",
    status_code=204,
    responses={404: {"model": ErrorResponse}},
)
async def delete_session(session_id: str):
    if _sessions.pop(session_id, None) is None:
        return _error(404, *_NOT_FOUND)
    logger.info("session_deleted", session_id=session_id)


# --- Photo upload ---


@router.post(
    "/sessions/{session_id}/photo",
    response_model=SessionView,
    responses={
        404: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def upload_photo(session_id: str, file: UploadFile):
    """Read the photo fully, encode it and start a fresh image session."""
    if session_id not in _sessions:
        return _error(404, *_NOT_FOUND)

    # Stream-read with early termination to avoid buffering unbounded uploads
    chunks: list[bytes] = []
    total = 0
    while chunk := await file.read(_UPLOAD_CHUNK_BYTES):
        total += len(chunk)
        if total > settings.max_upload_bytes:
            mb = settings.max_upload_bytes // (1024 * 1024)
            return _error(413, "file_too_large", f"Photo exceeds {mb} MB limit")
        chunks.append(chunk)
    data = b"".join(chunks)

    image = await asyncio.to_thread(encode_upload, data)
    state = _dispatch(session_id, ImageUploaded(image=image))
    if state is None:
        return _error(404, *_NOT_FOUND)

    logger.info(
        "photo_uploaded",
        session_id=session_id,
        media_type=media_type_of(image),
        size_bytes=len(data),
        epoch=state.epoch,
    )
    return render_view(state)


# --- Image edits ---


async def _run_edit(request: Request, session_id: str, instruction: str):
    state = _sessions.get(session_id)
    if err := _check_image(state):
        return err
    assert state is not None and state.current_image is not None
    if state.is_generating:
        return _error(409, "edit_in_progress", "A redesign is already in progress")

    client = _genai_client(request)
    state = _dispatch(session_id, EditStarted())
    assert state is not None
    epoch = state.epoch

    image: str | None = None
    try:
        image = await edit_room_image(client, state.current_image, instruction)
    finally:
        if image is None:
            # Failed or cancelled; ImageEditError goes on to the 502 handler
            _dispatch(session_id, EditFailed(epoch=epoch))
            logger.info("session_edit_settled_without_image", session_id=session_id)

    state = _dispatch(
        session_id,
        EditSucceeded(epoch=epoch, image=image, instruction=instruction),
    )
    if state is None:
        return _error(404, *_NOT_FOUND)
    logger.info("session_edit_applied", session_id=session_id, epoch=epoch)
    return render_view(state)


@router.post(
    "/sessions/{session_id}/style",
    response_model=SessionView,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
)
async def apply_style(session_id: str, body: StyleEditRequest, request: Request):
    """Redesign the current image in one of the preset styles."""
    return await _run_edit(request, session_id, style_instruction(body.style.value))


@router.post(
    "/sessions/{session_id}/edit",
    response_model=SessionView,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
)
async def apply_custom_edit(session_id: str, body: CustomEditRequest, request: Request):
    """Apply a freeform instruction to the current image."""
    return await _run_edit(request, session_id, body.instruction)


@router.post(
    "/sessions/{session_id}/reset",
    response_model=SessionView,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def reset_image(session_id: str):
    """Put the original photo back as the current image."""
    if err := _check_image(_sessions.get(session_id)):
        return err
    state = _dispatch(session_id, ResetRequested())
    assert state is not None
    logger.info("session_image_reset", session_id=session_id)
    return render_view(state)


# --- Consultant chat ---


@router.post(
    "/sessions/{session_id}/chat",
    response_model=SessionView,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def send_chat(session_id: str, body: ChatRequest, request: Request):
    """Append the user's message, ask the consultant, append its reply."""
    state = _sessions.get(session_id)
    if err := _check_image(state):
        return err
    assert state is not None
    if state.is_chatting:
        return _error(409, "chat_in_progress", "The consultant is still replying")

    client = _genai_client(request)
    history = state.conversation
    state = _dispatch(session_id, ChatSent(text=body.message))
    assert state is not None
    epoch = state.epoch

    reply: ConsultantReply | None = None
    try:
        reply = await chat_with_consultant(client, history, state.current_image, body.message)
    except Exception:
        logger.exception("session_chat_unexpected_error", session_id=session_id)
        reply = ConsultantReply(text=CHAT_UNAVAILABLE_TEXT)
    finally:
        if reply is None:
            # Cancelled mid-call; still close the user's turn
            _dispatch(session_id, ChatReplied(epoch=epoch, text=CHAT_UNAVAILABLE_TEXT))
            logger.info("session_chat_cancelled", session_id=session_id)

    state = _dispatch(
        session_id,
        ChatReplied(epoch=epoch, text=reply.text, citations=tuple(reply.citations)),
    )
    if state is None:
        return _error(404, *_NOT_FOUND)
    logger.info(
        "session_chat_replied",
        session_id=session_id,
        turns=len(state.conversation),
        citations=len(reply.citations),
    )
    return render_view(state)


# --- UI mode & compare view ---


@router.put(
    "/sessions/{session_id}/mode",
    response_model=SessionView,
    responses={404: {"model": ErrorResponse}},
)
async def select_mode(session_id: str, body: ModeRequest):
    state = _dispatch(session_id, ModeSelected(mode=body.mode))
    if state is None:
        return _error(404, *_NOT_FOUND)
    return render_view(state)


@router.post(
    "/sessions/{session_id}/slider",
    response_model=SessionView,
    responses={404: {"model": ErrorResponse}},
)
async def slider_event(session_id: str, body: SliderEventRequest):
    """Feed a pointer/touch event to the compare slider."""
    event: SessionEvent
    if body.action == "down":
        event = SliderPointerDown()
    elif body.action == "up":
        event = SliderPointerUp()
    else:
        event = SliderPointerMove(
            pointer_x=body.pointer_x,
            container_left=body.container_left,
            container_width=body.container_width,
            touch=body.action == "touch_move",
        )
    state = _dispatch(session_id, event)
    if state is None:
        return _error(404, *_NOT_FOUND)
    return render_view(state)


@router.get(
    "/sessions/{session_id}/images/{slot}",
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def get_image(session_id: str, slot: Literal["original", "current"]):
    state = _sessions.get(session_id)
    if err := _check_image(state):
        return err
    assert state is not None
    image = state.original_image if slot == "original" else state.current_image
    assert image is not None
    return Response(content=decode_payload(image), media_type=media_type_of(image))


@router.get(
    "/sessions/{session_id}/compare.png",
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def get_compare(
    session_id: str,
    position: float | None = Query(default=None, ge=0, le=100),
):
    """Render the before/after split at the slider (or given) position."""
    state = _sessions.get(session_id)
    if err := _check_image(state):
        return err
    assert state is not None
    assert state.original_image is not None and state.current_image is not None
    split = state.slider.position if position is None else position

    def _render() -> bytes:
        before = decode_data_uri(state.original_image)
        after = decode_data_uri(state.current_image)
        return image_to_bytes(render_compare(before, after, split))

    png = await asyncio.to_thread(_render)
    return Response(content=png, media_type="image/png")
