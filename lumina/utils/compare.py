"""Before/after compare view.

Two halves: pure slider geometry driven by pointer and touch events, and a
Pillow renderer that draws the split composite at a given position. The
"after" image fills the canvas; the "before" image is clipped to the left
``position`` percent with a divider and handle drawn at the boundary.
"""

from __future__ import annotations

from PIL import Image, ImageDraw, ImageFont

from lumina.models.contracts import SliderState

DIVIDER_WIDTH = 4
HANDLE_RADIUS = 16
LABEL_FONT_SIZE = 18
LABEL_PADDING = 8
LABEL_MARGIN = 16
HANDLE_COLOR = "#4F46E5"  # indigo
BEFORE_LABEL_FILL = (0, 0, 0, 128)
AFTER_LABEL_FILL = (79, 70, 229, 204)


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(value, high))


def position_from_pointer(
    current: float,
    pointer_x: float,
    container_left: float,
    container_width: float,
) -> float:
    """Split position for a pointer x coordinate, saturated to [0, 100].

    A container with no width keeps the current position.
    """
    if container_width <= 0:
        return current
    return clamp((pointer_x - container_left) / container_width * 100)


def pointer_down(state: SliderState) -> SliderState:
    return state.model_copy(update={"dragging": True})


def pointer_up(state: SliderState) -> SliderState:
    # Also used for releases outside the component
    return state.model_copy(update={"dragging": False})


def pointer_move(
    state: SliderState,
    pointer_x: float,
    container_left: float,
    container_width: float,
) -> SliderState:
    """Mouse moves only track the pointer while dragging."""
    if not state.dragging:
        return state
    return touch_move(state, pointer_x, container_left, container_width)


def touch_move(
    state: SliderState,
    pointer_x: float,
    container_left: float,
    container_width: float,
) -> SliderState:
    """Touch moves always track the finger."""
    position = position_from_pointer(state.position, pointer_x, container_left, container_width)
    return state.model_copy(update={"position": position})


def render_compare(
    before: Image.Image,
    after: Image.Image,
    position: float,
) -> Image.Image:
    """Draw the split composite of ``before`` over ``after``.

    Args:
        before: Original room image, clipped to the left of the divider.
        after: Redesigned image, drawn full-bleed.
        position: Split position in percent of width (clamped to [0, 100]).

    Returns:
        New RGB image the size of ``after`` (inputs are not modified).
    """
    canvas = after.convert("RGBA")
    w, h = canvas.size
    split_x = round(clamp(position) / 100 * w)

    if split_x > 0:
        base = before.convert("RGBA")
        if base.size != canvas.size:
            base = base.resize(canvas.size, Image.Resampling.LANCZOS)
        canvas.paste(base.crop((0, 0, split_x, h)), (0, 0))

    overlay = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(overlay)
    font = _load_font(LABEL_FONT_SIZE)

    _draw_divider(draw, split_x, h)
    _draw_label(draw, "Original", font, BEFORE_LABEL_FILL, anchor_left=True, width=w)
    _draw_label(draw, "Redesigned", font, AFTER_LABEL_FILL, anchor_left=False, width=w)

    return Image.alpha_composite(canvas, overlay).convert("RGB")


def _draw_divider(draw: ImageDraw.ImageDraw, x: int, height: int) -> None:
    """Vertical white bar with a round handle at mid-height."""
    half = DIVIDER_WIDTH // 2
    draw.rectangle([(x - half, 0), (x + half, height)], fill="white")
    cy = height // 2
    draw.ellipse(
        [(x - HANDLE_RADIUS, cy - HANDLE_RADIUS), (x + HANDLE_RADIUS, cy + HANDLE_RADIUS)],
        fill="white",
        outline=HANDLE_COLOR,
        width=2,
    )
    # Left/right chevrons
    arm = HANDLE_RADIUS // 2
    draw.line([(x - 3, cy - arm), (x - 3 - arm, cy), (x - 3, cy + arm)], fill=HANDLE_COLOR, width=2)
    draw.line([(x + 3, cy - arm), (x + 3 + arm, cy), (x + 3, cy + arm)], fill=HANDLE_COLOR, width=2)


def _draw_label(
    draw: ImageDraw.ImageDraw,
    text: str,
    font: ImageFont.FreeTypeFont | ImageFont.ImageFont,
    fill: tuple[int, int, int, int],
    *,
    anchor_left: bool,
    width: int,
) -> None:
    bbox = font.getbbox(text)
    tw = bbox[2] - bbox[0]
    th = bbox[3] - bbox[1]
    box_w = tw + 2 * LABEL_PADDING
    box_h = th + 2 * LABEL_PADDING
    x0 = LABEL_MARGIN if anchor_left else width - LABEL_MARGIN - box_w
    y0 = LABEL_MARGIN
    draw.rounded_rectangle([(x0, y0), (x0 + box_w, y0 + box_h)], radius=box_h // 2, fill=fill)
    draw.text((x0 + LABEL_PADDING, y0 + LABEL_PADDING - bbox[1]), text, fill="white", font=font)


def _load_font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    """Load a font, falling back to default if system fonts unavailable."""
    font_paths = [
        "/System/Library/Fonts/Helvetica.ttc",
        "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
        "/usr/share/fonts/TTF/DejaVuSans-Bold.ttf",
    ]
    for path in font_paths:
        try:
            return ImageFont.truetype(path, size)
        except OSError:
            continue
    return ImageFont.load_default()
