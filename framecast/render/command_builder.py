"""Engine input planning and argument assembly.

Input 0 is always the background. Image, overlay and audio inputs follow
in request order, skipping clips that have no source or no length.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

from framecast.config import Settings, get_settings
from framecast.schemas.composition import CompositionRequest, schedulable_clips
from framecast.utils.interpolation import format_number

if TYPE_CHECKING:
    from framecast.render.encoder import EncoderProfile
    from framecast.render.filter_compiler import CompiledGraph
    from framecast.services.asset_materializer import MaterializedAssets

logger = logging.getLogger(__name__)

InputKind = Literal["background", "image", "overlay", "audio"]


@dataclass
class InputSpec:
    index: int
    kind: InputKind
    source: str
    args: list[str]


@dataclass
class InputPlan:
    """Engine inputs for one request plus the file the subtitle pass reads."""

    inputs: list[InputSpec] = field(default_factory=list)
    # request list position -> engine input index
    image_inputs: dict[int, int] = field(default_factory=dict)
    overlay_inputs: dict[int, int] = field(default_factory=dict)
    audio_inputs: dict[int, int] = field(default_factory=dict)
    subtitle_path: str | None = None

    def add(self, kind: InputKind, source: str, options: list[str]) -> int:
        index = len(self.inputs)
        self.inputs.append(InputSpec(index, kind, source, [*options, "-i", source]))
        return index

    def args(self) -> list[str]:
        return [arg for spec in self.inputs for arg in spec.args]


def plan_inputs(
    request: CompositionRequest,
    settings: Settings | None = None,
    assets: "MaterializedAssets | None" = None,
) -> InputPlan:
    """Declare one engine input per background, image, overlay and audio source.

    Materialized files take precedence over the request's own references.
    """
    settings = settings or get_settings()
    plan = InputPlan()
    duration = format_number(request.duration)

    if request.has_color_background:
        color = request.background or "black"
        plan.add(
            "background",
            f"color=c={color}:s={request.width}x{request.height}:d={duration}:r={settings.render_fps}",
            ["-f", "lavfi"],
        )
    else:
        source = (assets.background if assets else None) or request.background
        plan.add("background", source, ["-loop", "1", "-t", duration])

    images = schedulable_clips(request.images)
    if len(images) > settings.max_image_inputs:
        logger.warning(
            f"[COMPILE] image input limit ({settings.max_image_inputs}) reached, "
            f"skipping {len(images) - settings.max_image_inputs} clip(s)"
        )
    for i, clip in images[: settings.max_image_inputs]:
        source = (assets.images.get(i) if assets else None) or clip.source
        plan.image_inputs[i] = plan.add(
            "image", source, ["-loop", "1", "-t", format_number(clip.length)]
        )

    overlays = schedulable_clips(request.overlays)
    if len(overlays) > settings.max_overlay_inputs:
        logger.warning(
            f"[COMPILE] overlay input limit ({settings.max_overlay_inputs}) reached, "
            f"skipping {len(overlays) - settings.max_overlay_inputs} clip(s)"
        )
    for i, overlay in overlays[: settings.max_overlay_inputs]:
        source = (assets.overlays.get(i) if assets else None) or overlay.source
        options = ["-stream_loop", "-1"] if overlay.loop else []
        plan.overlay_inputs[i] = plan.add(
            "overlay", source, [*options, "-t", format_number(overlay.length)]
        )

    for i, track in enumerate(request.audio):
        if not track.source:
            continue
        source = (assets.audio.get(i) if assets else None) or track.source
        plan.audio_inputs[i] = plan.add("audio", source, [])

    if request.subtitles is not None:
        plan.subtitle_path = (assets.subtitles if assets else None) or request.subtitles.url

    return plan


def build_command(
    request: CompositionRequest,
    plan: InputPlan,
    compiled: "CompiledGraph",
    profile: "EncoderProfile",
    output_path: str,
    settings: Settings | None = None,
) -> list[str]:
    """Full engine argument list, ending with the output path."""
    settings = settings or get_settings()
    cmd = [settings.ffmpeg_path, "-hide_banner", "-y"]
    cmd.extend(profile.hwaccel_args)
    cmd.extend(plan.args())
    cmd.extend(["-filter_complex", compiled.program])
    cmd.extend(["-map", f"[{compiled.video_label}]"])
    if compiled.audio_label:
        cmd.extend(["-map", f"[{compiled.audio_label}]"])

    cmd.extend(["-c:v", profile.encoder])
    cmd.extend(profile.flags)
    cmd.extend(["-pix_fmt", settings.video_pix_fmt])
    if compiled.audio_label:
        cmd.extend(["-c:a", settings.audio_codec, "-b:a", settings.audio_bitrate])

    cmd.extend(["-t", format_number(request.duration)])
    cmd.append(output_path)
    return cmd
