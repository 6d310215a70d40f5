"""Ken Burns (slow zoom/pan) presets and zoompan filter construction."""

import random
from dataclasses import dataclass, replace

from framecast.schemas.composition import KenBurnsDefaults, KenBurnsSpec
from framecast.utils.interpolation import format_number

CENTER_X = "iw/2-(iw/zoom/2)"
CENTER_Y = "ih/2-(ih/zoom/2)"


@dataclass(frozen=True)
class KenBurnsConfig:
    zoom_rate: float = 0.0005
    scale_width: int = 8000
    pan_x: str = CENTER_X
    pan_y: str = CENTER_Y


PRESETS: dict[str, KenBurnsConfig] = {
    "zoom_in_slow": KenBurnsConfig(zoom_rate=0.0002, scale_width=6000),
    "zoom_in_fast": KenBurnsConfig(zoom_rate=0.001),
    "pan_left": KenBurnsConfig(pan_x="iw-iw/zoom"),
    "pan_right": KenBurnsConfig(pan_x="0"),
    "pan_up": KenBurnsConfig(pan_y="ih-ih/zoom"),
    "pan_down": KenBurnsConfig(pan_y="0"),
    "standard": KenBurnsConfig(),
}


def get_preset(name: str | None) -> KenBurnsConfig:
    """Look up a preset; unknown or missing names give ``standard``."""
    return PRESETS.get(name or "standard", PRESETS["standard"])


def resolve_ken_burns(
    spec: KenBurnsSpec | None,
    defaults: KenBurnsDefaults | None,
    rng: random.Random,
) -> KenBurnsConfig | None:
    """Work out the effective Ken Burns config for one clip.

    A clip's own spec wins over request defaults. With ``randomize`` set,
    the preset is drawn from ``rng`` so results are reproducible for a seed.
    Returns None when the clip should be scaled statically.
    """
    if spec is not None:
        if not spec.enabled:
            return None
        overrides = {
            name: getattr(spec, name)
            for name in ("zoom_rate", "scale_width", "pan_x", "pan_y")
            if getattr(spec, name) is not None
        }
        return replace(get_preset(spec.preset), **overrides)

    if defaults is None or not defaults.enabled:
        return None
    if defaults.randomize:
        return PRESETS[rng.choice(sorted(PRESETS))]
    return get_preset(defaults.preset)


def build_zoompan_filter(
    config: KenBurnsConfig,
    length: float,
    width: int,
    height: int,
    fps: int,
) -> str:
    """Pre-scale then zoom/pan over ``round(length * fps)`` frames."""
    frames = max(round(length * fps), 1)
    return (
        f"scale={config.scale_width}:-1,"
        f"zoompan=z='zoom+{format_number(config.zoom_rate)}'"
        f":x='{config.pan_x}':y='{config.pan_y}'"
        f":d={frames}:s={width}x{height}:fps={fps}"
    )
