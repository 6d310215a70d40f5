import re
from typing import Literal, Protocol, Sequence, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Bare colour names ("black", "navy", "white@0.5") or hex colours
_COLOR_RE = re.compile(r"^(#[0-9A-Fa-f]{6}([0-9A-Fa-f]{2})?|[A-Za-z]{3,32}(@[0-9.]+)?)$")

ScreenPosition = Literal["top", "center", "bottom"]
AudioRole = Literal["music", "voice_over"]


def is_color(value: str) -> bool:
    """True when ``value`` names a solid colour rather than an image source."""
    return bool(_COLOR_RE.match(value.strip()))


class _TimedSource(Protocol):
    @property
    def source(self) -> str: ...

    @property
    def length(self) -> float: ...


ClipT = TypeVar("ClipT", bound=_TimedSource)


def schedulable_clips(clips: Sequence[ClipT], limit: int | None = None) -> list[tuple[int, ClipT]]:
    """Clips that get an engine input, as ``(request position, clip)``.

    A clip needs a source and a positive length; past ``limit`` the rest
    are dropped. Input planning and asset materialization both use this,
    so a skipped clip is never decoded or downloaded.
    """
    eligible = [(i, clip) for i, clip in enumerate(clips) if clip.source and clip.length > 0]
    return eligible if limit is None else eligible[:limit]


class _ValueObject(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


# =============================================================================
# Keyframes
# =============================================================================


class Keyframe(_ValueObject):
    """Animation anchor. ``time`` is seconds relative to the element start."""
    time: float
    x: float = 0
    y: float = 0
    opacity: float = Field(default=1.0, ge=0.0, le=1.0)
    scale: float = Field(default=1.0, gt=0)


# =============================================================================
# Images
# =============================================================================


class KenBurnsSpec(_ValueObject):
    """Zoom/pan parameters. Unset fields are filled from ``preset``."""
    enabled: bool = True
    preset: str | None = None
    zoom_rate: float | None = None
    scale_width: int | None = Field(default=None, gt=0)
    pan_x: str | None = None
    pan_y: str | None = None


class KenBurnsDefaults(_ValueObject):
    """Ken Burns settings applied to clips that carry no spec of their own."""
    enabled: bool = False
    preset: str | None = None
    # Pick a preset per clip from the compiler's random source
    randomize: bool = False


class ImageClip(_ValueObject):
    data: str | None = None  # base64 or data URI
    url: str | None = None   # URL or local path
    start: float = 0
    length: float = 0
    x: int = 0
    y: int = 0
    width: int | None = None
    height: int | None = None
    ken_burns: KenBurnsSpec | None = None
    keyframes: list[Keyframe] = Field(default_factory=list)

    @property
    def source(self) -> str:
        return self.data or self.url or ""


# =============================================================================
# Video overlays
# =============================================================================


class ChromaKeySpec(_ValueObject):
    """Key out a solid backdrop (green screen) from an overlay video."""
    enabled: bool = True
    color: str = "green"
    similarity: float = Field(default=0.3, gt=0, le=1)
    blend: float = Field(default=0.1, ge=0, le=1)
    # chromakey in YUV when True, plain RGB colorkey otherwise
    auto_adjust: bool = True
    # despill, only for green and blue keys
    spill_suppress: bool = True


class OverlayClip(_ValueObject):
    """A video layered over the canvas, optionally keyed and faded by ``opacity``."""
    data: str | None = None  # base64 or data URI
    url: str | None = None   # URL or local path
    start: float = 0
    length: float = 0
    x: int = 0
    y: int = 0
    width: int | None = None
    height: int | None = None
    opacity: float = Field(default=1.0, ge=0.0, le=1.0)
    # Repeat the source until ``length`` is filled
    loop: bool = False
    chroma_key: ChromaKeySpec | None = None

    @property
    def source(self) -> str:
        return self.data or self.url or ""


# =============================================================================
# Audio
# =============================================================================


class AudioTrack(_ValueObject):
    role: AudioRole = "music"
    data: str | None = None
    url: str | None = None
    volume: float = Field(default=1.0, ge=0)
    fade_in: float = Field(default=0, ge=0)
    fade_out: float = Field(default=0, ge=0)

    @property
    def source(self) -> str:
        return self.data or self.url or ""


# =============================================================================
# Subtitles and text
# =============================================================================


class SubtitleSpec(_ValueObject):
    srt: str | None = None  # inline SRT text
    url: str | None = None  # path or URL to an .srt file
    font_size: int = Field(default=24, gt=0)
    font_color: str = "white"
    position: ScreenPosition = "bottom"
    outline: bool = True
    background: str = "transparent"

    @property
    def source(self) -> str:
        return self.srt or self.url or ""


class TextCue(_ValueObject):
    text: str
    start: float = 0
    end: float = 0
    font_size: int = Field(default=48, gt=0)
    font_color: str = "white"
    position: ScreenPosition = "center"
    x: int = 0
    y: int = 0
    border_width: int = Field(default=0, ge=0)
    box_color: str | None = None
    keyframes: list[Keyframe] = Field(default_factory=list)


# =============================================================================
# Request
# =============================================================================


class CompositionRequest(_ValueObject):
    """Declarative description of one video to render."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        json_schema_extra={
            "examples": [
                {
                    "title": "Spring sale",
                    "duration": 10,
                    "background": "#000000",
                    "images": [{"url": "/assets/cover.png", "start": 0, "length": 5}],
                    "texts": [{"text": "Hello", "start": 0, "end": 5}],
                }
            ]
        },
    )

    title: str
    duration: float = Field(gt=0, description="Total output length in seconds")
    width: int = Field(default=1920, gt=0)
    height: int = Field(default=1080, gt=0)
    background: str = "black"
    images: list[ImageClip] = Field(default_factory=list)
    overlays: list[OverlayClip] = Field(default_factory=list)
    audio: list[AudioTrack] = Field(default_factory=list)
    subtitles: SubtitleSpec | None = None
    texts: list[TextCue] = Field(default_factory=list)
    ken_burns: KenBurnsDefaults | None = None
    encoder: Literal["nvidia", "amd", "intel", "software"] | None = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title is required")
        return v

    @property
    def has_color_background(self) -> bool:
        return not self.background or is_color(self.background)
