"""drawtext filter construction for timed text cues.

Features:
- Named or hex font colours
- top/center/bottom placement with custom x/y override
- Optional outline and background box
- Keyframed position, opacity and scale
"""

from framecast.config import Settings, get_settings
from framecast.schemas.composition import TextCue
from framecast.utils.interpolation import build_keyframe_expression, format_number

COLOR_HEX: dict[str, str] = {
    "white": "ffffff",
    "black": "000000",
    "red": "ff0000",
    "green": "00ff00",
    "blue": "0000ff",
    "yellow": "ffff00",
}


def color_to_hex(color: str) -> str:
    """Map a colour name or ``#rrggbb`` to ``rrggbb``; unknown names give white."""
    value = color.strip().lower()
    if value.startswith("#") and len(value) == 7:
        return value[1:]
    return COLOR_HEX.get(value, "ffffff")


def escape_text(text: str) -> str:
    return text.replace("'", "'\\''").replace(":", "\\:")


def enable_between(start: float, end: float) -> str:
    return f"between(t,{format_number(start)},{format_number(end)})"


class TextRenderer:
    """Builds drawtext filters for TextCues."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def is_drawable(self, cue: TextCue) -> bool:
        return bool(cue.text.strip()) and cue.end > cue.start

    def generate_drawtext_filter(self, cue: TextCue) -> str:
        """Generate the drawtext filter for one cue, gated to its window."""
        x_expr, y_expr = self._position_to_expr(cue)
        params = [f"drawtext=text='{escape_text(cue.text)}'"]
        if self.settings.font_file:
            params.append(f"fontfile='{self.settings.font_file}'")

        if cue.keyframes:
            scale = build_keyframe_expression(cue.keyframes, "scale", offset=cue.start)
            params.append(f"fontsize='{cue.font_size}*({scale})'")
        else:
            params.append(f"fontsize={cue.font_size}")
        params.append(f"fontcolor=0x{color_to_hex(cue.font_color)}")

        if cue.keyframes:
            dx = build_keyframe_expression(cue.keyframes, "x", offset=cue.start)
            dy = build_keyframe_expression(cue.keyframes, "y", offset=cue.start)
            alpha = build_keyframe_expression(cue.keyframes, "opacity", offset=cue.start)
            params.extend([
                f"x='{x_expr}+({dx})'",
                f"y='{y_expr}+({dy})'",
                f"alpha='{alpha}'",
            ])
        else:
            params.extend([f"x={x_expr}", f"y={y_expr}"])

        if cue.border_width > 0:
            params.extend([f"borderw={cue.border_width}", "bordercolor=0x000000"])
        if cue.box_color:
            params.extend(["box=1", f"boxcolor=0x{color_to_hex(cue.box_color)}", "boxborderw=10"])

        params.append(f"enable='{enable_between(cue.start, cue.end)}'")
        return ":".join(params)

    def _position_to_expr(self, cue: TextCue) -> tuple[str, str]:
        """Custom coordinates win when both are positive."""
        if cue.x > 0 and cue.y > 0:
            return str(cue.x), str(cue.y)
        x_expr = "(w-text_w)/2"
        if cue.position == "top":
            return x_expr, "50"
        if cue.position == "bottom":
            return x_expr, "h-text_h-50"
        return x_expr, "(h-text_h)/2"
