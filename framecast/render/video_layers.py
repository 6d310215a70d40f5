"""Video overlay layers: fit, chroma key, opacity.

A layer is scaled to fit its box, padded with transparent borders, keyed,
converted to an alpha-capable format and faded to the clip's opacity::

    scale=W:H:force_original_aspect_ratio=decrease,pad=...,chromakey=...,
    despill=...,format=yuva420p,colorchannelmixer=aa=0.8
"""

from framecast.schemas.composition import ChromaKeySpec, OverlayClip
from framecast.utils.interpolation import format_number

KEY_COLORS = {
    "green": "0x00FF00",
    "blue": "0x0000FF",
    "red": "0xFF0000",
    "white": "0xFFFFFF",
    "black": "0x000000",
}

# despill only knows these two screen colours
_DESPILL_TYPES = ("green", "blue")


def key_color(color: str) -> str:
    """Colour as ffmpeg's ``0xRRGGBB``; named screen colours are mapped, others pass through."""
    name = color.strip().lower()
    if name in KEY_COLORS:
        return KEY_COLORS[name]
    if name.startswith("#"):
        return "0x" + name[1:].upper()
    return color


def build_chroma_key_filter(spec: ChromaKeySpec) -> str | None:
    """chromakey/colorkey (+ despill) chain, or None when keying is off."""
    if not spec.enabled:
        return None
    key = "chromakey" if spec.auto_adjust else "colorkey"
    chain = (
        f"{key}=color={key_color(spec.color)}"
        f":similarity={format_number(spec.similarity)}:blend={format_number(spec.blend)}"
    )
    if spec.auto_adjust:
        chain += ":yuv=1"
    name = spec.color.strip().lower()
    if spec.spill_suppress and name in _DESPILL_TYPES:
        chain += f",despill=type={name}:mix=0.7:expand=0.1"
    return chain


def build_layer_filter(clip: OverlayClip, width: int, height: int) -> str:
    """Filter chain turning an overlay input into a ``width`` x ``height`` RGBA-ish layer."""
    parts = [
        f"scale={width}:{height}:force_original_aspect_ratio=decrease",
        f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2:color=black@0.0",
    ]
    if clip.chroma_key is not None:
        keyed = build_chroma_key_filter(clip.chroma_key)
        if keyed:
            parts.append(keyed)
    parts.append("format=yuva420p")
    parts.append(f"colorchannelmixer=aa={format_number(clip.opacity)}")
    if clip.start > 0:
        # Layer frames start at 0; move them to the clip's window
        parts.append(f"setpts=PTS-STARTPTS+{format_number(clip.start)}/TB")
    return ",".join(parts)
