"""Audio mix node construction.

Every track, music or voice-over, goes into one amix node so the output
mapping is the same for one track or many.
"""

import logging

from framecast.render.graph import (
    AUDIO_OUT,
    FilterGraph,
    GraphNode,
    LabelAllocator,
    NodeKind,
    audio_stream,
)
from framecast.schemas.composition import AudioTrack
from framecast.utils.interpolation import format_number

logger = logging.getLogger(__name__)


class AudioMixer:
    """Adds per-track adjustments and the final mix to a filter graph."""

    def build_track_filter(self, track: AudioTrack, duration: float) -> str | None:
        """Volume and fade chain for one track, or None when it needs none."""
        parts: list[str] = []
        if track.volume != 1.0:
            parts.append(f"volume={format_number(track.volume)}")
        if track.fade_in > 0:
            parts.append(f"afade=t=in:st=0:d={format_number(track.fade_in)}")
        if track.fade_out > 0:
            fade_start = max(duration - track.fade_out, 0)
            parts.append(
                f"afade=t=out:st={format_number(fade_start)}:d={format_number(track.fade_out)}"
            )
        return ",".join(parts) if parts else None

    def add_mix(
        self,
        graph: FilterGraph,
        labels: LabelAllocator,
        tracks: list[tuple[AudioTrack, int]],
        duration: float,
    ) -> str | None:
        """Mix ``(track, input index)`` pairs into the terminal audio label.

        Returns the terminal label, or None when there are no tracks.
        """
        if not tracks:
            return None

        mix_inputs: list[str] = []
        for track, input_index in tracks:
            chain = self.build_track_filter(track, duration)
            if chain is None:
                mix_inputs.append(audio_stream(input_index))
                continue
            label, ordinal = labels.allocate(NodeKind.AUDIO_PREP.prefix)
            graph.add(GraphNode(NodeKind.AUDIO_PREP, [audio_stream(input_index)], label, chain, ordinal))
            mix_inputs.append(label)

        graph.add(
            GraphNode(
                NodeKind.AUDIO_MIX,
                mix_inputs,
                AUDIO_OUT,
                f"amix=inputs={len(mix_inputs)}:duration=longest",
            )
        )
        logger.debug(f"[COMPILE] mixed {len(mix_inputs)} audio track(s)")
        return AUDIO_OUT
