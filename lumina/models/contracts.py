"""Lumina contract models.

Shared by the gateway, the session reducer and the HTTP layer. Chat turns
and citations are frozen: once appended to a conversation they never change.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# === Shared Types ===


class StyleOption(str, Enum):
    MODERN = "Modern"
    SCANDINAVIAN = "Scandinavian"
    INDUSTRIAL = "Industrial"
    BOHEMIAN = "Bohemian"
    MINIMALIST = "Minimalist"
    ART_DECO = "Art Deco"


class UiMode(str, Enum):
    """Which panel is visible on narrow viewports."""

    DESIGN = "design"
    CHAT = "chat"


class Citation(BaseModel):
    """A web source backing a consultant reply."""

    model_config = ConfigDict(frozen=True)

    url: str
    title: str | None = None


class ChatTurn(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant"]
    text: str
    citations: tuple[Citation, ...] = ()


class ConsultantReply(BaseModel):
    text: str
    citations: list[Citation] = []


class SliderState(BaseModel):
    """Split position (percent of width) and drag flag of the compare view."""

    model_config = ConfigDict(frozen=True)

    position: float = Field(default=50.0, ge=0, le=100)
    dragging: bool = False


# === Session State ===


class SessionState(BaseModel):
    model_config = ConfigDict(frozen=True)

    session_id: str
    epoch: int = 0  # bumped by every upload
    original_image: str | None = None
    current_image: str | None = None
    conversation: tuple[ChatTurn, ...] = ()
    mode: UiMode = UiMode.DESIGN
    is_generating: bool = False
    is_chatting: bool = False
    slider: SliderState = SliderState()


class SessionView(BaseModel):
    """Render projection of a session returned to clients."""

    session_id: str
    mode: UiMode
    has_image: bool
    is_modified: bool
    is_generating: bool
    is_chatting: bool
    can_edit: bool
    can_chat: bool
    styles: list[StyleOption]
    slider: SliderState
    conversation: list[ChatTurn]


# === API Request/Response Models ===


class CreateSessionResponse(BaseModel):
    session_id: str


class StyleEditRequest(BaseModel):
    style: StyleOption


class CustomEditRequest(BaseModel):
    instruction: str

    @field_validator("instruction")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Instruction must not be empty")
        return value


class ChatRequest(BaseModel):
    message: str

    @field_validator("message")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Message must not be empty")
        return value


class ModeRequest(BaseModel):
    mode: UiMode


class SliderEventRequest(BaseModel):
    action: Literal["down", "move", "touch_move", "up"]
    pointer_x: float = 0.0
    container_left: float = 0.0
    container_width: float = 0.0


class ErrorResponse(BaseModel):
    error: str
    message: str
    retryable: bool
    detail: str | None = None
