"""Filter graph compiler.

Turns a CompositionRequest into a filter_complex program. Stages run in a
fixed order, each one reading the label the previous stage produced:

    background -> images (scale / Ken Burns + overlay) -> video layers
    (fit, chroma key, opacity + overlay) -> text cues
    -> terminal [v] -> audio mix [a] -> subtitle burn-in
"""

import logging
import random
from dataclasses import dataclass

from framecast.config import Settings, get_settings
from framecast.render.audio_mixer import AudioMixer
from framecast.render.command_builder import InputPlan, plan_inputs
from framecast.render.graph import (
    AUDIO_OUT,
    VIDEO_OUT,
    FilterGraph,
    GraphNode,
    LabelAllocator,
    NodeKind,
    video_stream,
)
from framecast.render.ken_burns import build_zoompan_filter, resolve_ken_burns
from framecast.render.subtitles import inject_subtitles
from framecast.render.text_renderer import TextRenderer
from framecast.render.video_layers import build_layer_filter
from framecast.schemas.composition import CompositionRequest, ImageClip, OverlayClip
from framecast.utils.interpolation import build_keyframe_expression, format_number

logger = logging.getLogger(__name__)


@dataclass
class CompiledGraph:
    graph: FilterGraph
    video_label: str
    audio_label: str | None

    @property
    def program(self) -> str:
        return self.graph.serialize()


class FilterCompiler:
    """Compiles composition requests into filter graphs.

    ``rng`` drives randomized Ken Burns preset selection; pass a seeded
    ``random.Random`` for reproducible output.
    """

    def __init__(self, settings: Settings | None = None, rng: random.Random | None = None):
        self.settings = settings or get_settings()
        self.rng = rng or random.Random()
        self.text_renderer = TextRenderer(self.settings)
        self.audio_mixer = AudioMixer()

    def compile(self, request: CompositionRequest, plan: InputPlan | None = None) -> CompiledGraph:
        plan = plan or plan_inputs(request, self.settings)
        graph = FilterGraph()
        labels = LabelAllocator()

        current = self._add_background(graph, labels, request)

        # 1. Images, in request order
        for clip_index, clip in enumerate(request.images):
            input_index = plan.image_inputs.get(clip_index)
            if input_index is None or clip.length <= 0:
                continue
            if clip.start + clip.length > request.duration:
                logger.warning(
                    f"[COMPILE] clip {clip_index} ends at {clip.start + clip.length}s, "
                    f"past the {request.duration}s output"
                )
            current = self._add_image(graph, labels, request, clip, input_index, current)

        # 2. Video layers, in request order
        for clip_index, overlay in enumerate(request.overlays):
            input_index = plan.overlay_inputs.get(clip_index)
            if input_index is None or overlay.length <= 0:
                continue
            current = self._add_video_layer(graph, labels, request, overlay, input_index, current)

        # 3. Text cues, in request order
        for cue in request.texts:
            if not self.text_renderer.is_drawable(cue):
                continue
            label, ordinal = labels.allocate(NodeKind.TEXT.prefix)
            graph.add(
                GraphNode(
                    NodeKind.TEXT,
                    [current],
                    label,
                    self.text_renderer.generate_drawtext_filter(cue),
                    ordinal,
                )
            )
            current = label

        # 4. Terminal video label
        if current != video_stream(0):
            # Last node written, possibly the image background itself
            graph.rename_output(current, VIDEO_OUT)
        else:
            graph.add(GraphNode(NodeKind.PASSTHROUGH, [current], VIDEO_OUT, "copy"))

        # 5. Audio
        tracks = [(request.audio[i], index) for i, index in plan.audio_inputs.items()]
        audio_label = self.audio_mixer.add_mix(graph, labels, tracks, request.duration)

        # 6. Subtitles
        if request.subtitles is not None:
            if plan.subtitle_path:
                inject_subtitles(graph, plan.subtitle_path, request.subtitles)
            else:
                logger.warning("[COMPILE] subtitles requested but no subtitle file is available")

        graph.validate({VIDEO_OUT, AUDIO_OUT})
        logger.info(
            f"[COMPILE] '{request.title}': {len(graph)} node(s), "
            f"{len(plan.image_inputs)} image(s), {len(plan.overlay_inputs)} layer(s), "
            f"{len(tracks)} audio track(s)"
        )
        return CompiledGraph(graph=graph, video_label=VIDEO_OUT, audio_label=audio_label)

    def _add_background(
        self, graph: FilterGraph, labels: LabelAllocator, request: CompositionRequest
    ) -> str:
        """Current video label for the background (input 0)."""
        if request.has_color_background:
            return video_stream(0)
        # Image backgrounds are fill-cropped to the canvas first
        label, ordinal = labels.allocate(NodeKind.BACKGROUND.prefix)
        graph.add(
            GraphNode(
                NodeKind.BACKGROUND,
                [video_stream(0)],
                label,
                self._fill_crop(request.width, request.height),
                ordinal,
            )
        )
        return label

    def _add_image(
        self,
        graph: FilterGraph,
        labels: LabelAllocator,
        request: CompositionRequest,
        clip: ImageClip,
        input_index: int,
        current: str,
    ) -> str:
        fps = self.settings.render_fps
        ken_burns = resolve_ken_burns(clip.ken_burns, request.ken_burns, self.rng)

        if ken_burns is not None:
            kind = NodeKind.KEN_BURNS
            chain = build_zoompan_filter(ken_burns, clip.length, request.width, request.height, fps)
            if clip.start > 0:
                # zoompan starts at t=0; move it to the clip's window
                chain += f",setpts=PTS+{format_number(clip.start)}/TB"
            x, y = "0", "0"
        elif self._is_fullscreen(clip, request):
            kind = NodeKind.SCALE
            chain = self._fill_crop(request.width, request.height)
            x, y = "0", "0"
        else:
            kind = NodeKind.SCALE
            chain = f"scale={clip.width}:{clip.height}"
            x, y = str(clip.x), str(clip.y)

        scaled, ordinal = labels.allocate(kind.prefix)
        graph.add(GraphNode(kind, [video_stream(input_index)], scaled, chain, ordinal))

        if clip.keyframes:
            dx = build_keyframe_expression(clip.keyframes, "x", offset=clip.start)
            dy = build_keyframe_expression(clip.keyframes, "y", offset=clip.start)
            x, y = f"'{x}+({dx})'", f"'{y}+({dy})'"

        return self._composite(graph, labels, current, scaled, x, y, clip.start, clip.length)

    def _add_video_layer(
        self,
        graph: FilterGraph,
        labels: LabelAllocator,
        request: CompositionRequest,
        clip: OverlayClip,
        input_index: int,
        current: str,
    ) -> str:
        if clip.width and clip.height:
            width, height, x, y = clip.width, clip.height, str(clip.x), str(clip.y)
        else:
            width, height, x, y = request.width, request.height, "0", "0"

        layer, ordinal = labels.allocate(NodeKind.VIDEO_LAYER.prefix)
        graph.add(
            GraphNode(
                NodeKind.VIDEO_LAYER,
                [video_stream(input_index)],
                layer,
                build_layer_filter(clip, width, height),
                ordinal,
            )
        )
        return self._composite(graph, labels, current, layer, x, y, clip.start, clip.length)

    def _composite(
        self,
        graph: FilterGraph,
        labels: LabelAllocator,
        current: str,
        layer: str,
        x: str,
        y: str,
        start: float,
        length: float,
    ) -> str:
        """Overlay ``layer`` on ``current`` for ``start <= t < start + length``."""
        begin = format_number(start)
        end = format_number(start + length)
        out, ordinal = labels.allocate(NodeKind.OVERLAY.prefix)
        graph.add(
            GraphNode(
                NodeKind.OVERLAY,
                [current, layer],
                out,
                f"overlay={x}:{y}:enable='gte(t,{begin})*lt(t,{end})'",
                ordinal,
            )
        )
        return out

    @staticmethod
    def _fill_crop(width: int, height: int) -> str:
        return f"scale={width}:{height}:force_original_aspect_ratio=increase,crop={width}:{height}"

    @staticmethod
    def _is_fullscreen(clip: ImageClip, request: CompositionRequest) -> bool:
        if not clip.width or not clip.height:
            return True
        return (
            clip.x <= 0
            and clip.y <= 0
            and clip.width >= request.width
            and clip.height >= request.height
        )
