from framecast.schemas.composition import (
    AudioTrack,
    ChromaKeySpec,
    CompositionRequest,
    ImageClip,
    KenBurnsDefaults,
    KenBurnsSpec,
    Keyframe,
    OverlayClip,
    SubtitleSpec,
    TextCue,
)
from framecast.schemas.job import JobStatusResponse

__all__ = [
    "AudioTrack",
    "ChromaKeySpec",
    "CompositionRequest",
    "ImageClip",
    "JobStatusResponse",
    "KenBurnsDefaults",
    "KenBurnsSpec",
    "Keyframe",
    "OverlayClip",
    "SubtitleSpec",
    "TextCue",
]
