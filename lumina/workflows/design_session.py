"""Design session state machine.

A session is one uploaded room photo plus everything done to it: the
original and current images, the consultant conversation, the UI mode, the
two loading flags and the compare slider. ``apply_event`` is a pure reducer
from (state, event) to a new state; ``render_view`` projects a state into
what clients display. The HTTP layer owns the store and dispatches events.

Results of remote calls carry the ``epoch`` they were started under. An
upload bumps the epoch, so an edit or chat reply that lands after a newer
upload is dropped instead of leaking into the new session.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from lumina.models.contracts import (
    ChatTurn,
    Citation,
    SessionState,
    SessionView,
    SliderState,
    StyleOption,
    UiMode,
)
from lumina.utils import compare

logger = structlog.get_logger()

EDIT_NOTE_TEMPLATE = 'I\'ve updated the design based on: "{instruction}". How does it look?'


# === Events ===


@dataclass(frozen=True)
class ImageUploaded:
    image: str


@dataclass(frozen=True)
class EditStarted:
    pass


@dataclass(frozen=True)
class EditSucceeded:
    epoch: int
    image: str
    instruction: str


@dataclass(frozen=True)
class EditFailed:
    epoch: int


@dataclass(frozen=True)
class ChatSent:
    text: str


@dataclass(frozen=True)
class ChatReplied:
    epoch: int
    text: str
    citations: tuple[Citation, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ResetRequested:
    pass


@dataclass(frozen=True)
class ModeSelected:
    mode: UiMode


@dataclass(frozen=True)
class SliderPointerDown:
    pass


@dataclass(frozen=True)
class SliderPointerUp:
    pass


@dataclass(frozen=True)
class SliderPointerMove:
    pointer_x: float
    container_left: float
    container_width: float
    touch: bool = False


SessionEvent = (
    ImageUploaded
    | EditStarted
    | EditSucceeded
    | EditFailed
    | ChatSent
    | ChatReplied
    | ResetRequested
    | ModeSelected
    | SliderPointerDown
    | SliderPointerUp
    | SliderPointerMove
)


def new_session(session_id: str) -> SessionState:
    return SessionState(session_id=session_id)


def _is_stale(state: SessionState, epoch: int, event: SessionEvent) -> bool:
    if epoch == state.epoch:
        return False
    logger.info(
        "session_stale_result_dropped",
        session_id=state.session_id,
        event=type(event).__name__,
        result_epoch=epoch,
        current_epoch=state.epoch,
    )
    return True


def apply_event(state: SessionState, event: SessionEvent) -> SessionState:
    """Return the state that follows ``event``. ``state`` is never mutated."""
    if isinstance(event, ImageUploaded):
        return state.model_copy(
            update={
                "epoch": state.epoch + 1,
                "original_image": event.image,
                "current_image": event.image,
                "conversation": (),
                "is_generating": False,
                "is_chatting": False,
                "slider": SliderState(),
            }
        )

    if isinstance(event, EditStarted):
        return state.model_copy(update={"is_generating": True})

    if isinstance(event, EditSucceeded):
        if _is_stale(state, event.epoch, event):
            return state
        note = ChatTurn(
            role="assistant",
            text=EDIT_NOTE_TEMPLATE.format(instruction=event.instruction),
        )
        return state.model_copy(
            update={
                "current_image": event.image,
                "conversation": (*state.conversation, note),
                "is_generating": False,
            }
        )

    if isinstance(event, EditFailed):
        if _is_stale(state, event.epoch, event):
            return state
        return state.model_copy(update={"is_generating": False})

    if isinstance(event, ChatSent):
        turn = ChatTurn(role="user", text=event.text)
        return state.model_copy(
            update={"conversation": (*state.conversation, turn), "is_chatting": True}
        )

    if isinstance(event, ChatReplied):
        if _is_stale(state, event.epoch, event):
            return state
        turn = ChatTurn(role="assistant", text=event.text, citations=tuple(event.citations))
        return state.model_copy(
            update={"conversation": (*state.conversation, turn), "is_chatting": False}
        )

    if isinstance(event, ResetRequested):
        return state.model_copy(update={"current_image": state.original_image})

    if isinstance(event, ModeSelected):
        return state.model_copy(update={"mode": event.mode})

    if isinstance(event, SliderPointerDown):
        return state.model_copy(update={"slider": compare.pointer_down(state.slider)})

    if isinstance(event, SliderPointerUp):
        return state.model_copy(update={"slider": compare.pointer_up(state.slider)})

    if isinstance(event, SliderPointerMove):
        move = compare.touch_move if event.touch else compare.pointer_move
        slider = move(state.slider, event.pointer_x, event.container_left, event.container_width)
        return state.model_copy(update={"slider": slider})

    raise TypeError(f"Unknown session event: {type(event).__name__}")


def render_view(state: SessionState) -> SessionView:
    """Stateless projection of a session for display."""
    has_image = state.current_image is not None
    return SessionView(
        session_id=state.session_id,
        mode=state.mode,
        has_image=has_image,
        is_modified=has_image and state.current_image != state.original_image,
        is_generating=state.is_generating,
        is_chatting=state.is_chatting,
        can_edit=has_image and not state.is_generating,
        can_chat=has_image and not state.is_chatting,
        styles=list(StyleOption),
        slider=state.slider,
        conversation=list(state.conversation),
    )
