"""Keyframe interpolation for animated filter parameters.

Turns a list of keyframes into a piecewise-linear expression that ffmpeg
evaluates per output frame, e.g. for drawtext ``x``/``y``/``alpha``.

Usage:
    from framecast.utils.interpolation import build_keyframe_expression

    expr = build_keyframe_expression(cue.keyframes, "x", offset=cue.start)
    # -> "if(lt(t,1),0,if(lt(t,3),0+100*(t-1)/2,100))"
"""

from typing import Literal, Protocol, Sequence

KeyframeProperty = Literal["x", "y", "opacity", "scale"]

# Value used when a sequence has no keyframes at all
NEUTRAL_VALUES: dict[str, float] = {
    "x": 0.0,
    "y": 0.0,
    "opacity": 1.0,
    "scale": 1.0,
}


class KeyframeLike(Protocol):
    time: float
    x: float
    y: float
    opacity: float
    scale: float


def format_number(value: float) -> str:
    """Format a number for a filter expression without float noise.

    Examples:
        format_number(5.0)      # -> "5"
        format_number(0.30000)  # -> "0.3"
        format_number(-1.25)    # -> "-1.25"
    """
    if float(value).is_integer():
        return str(int(value))
    text = f"{value:.6f}".rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def _exact(value: float) -> str:
    """Shortest repr that round-trips to the same float."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def _signed(value: float) -> str:
    text = _exact(value)
    return f"({text})" if text.startswith("-") else text


def _sorted(keyframes: Sequence[KeyframeLike]) -> list[KeyframeLike]:
    # Stable: equal-time keyframes keep their input order, so the later one wins
    return sorted(keyframes, key=lambda k: k.time)


def build_keyframe_expression(
    keyframes: Sequence[KeyframeLike],
    prop: KeyframeProperty,
    *,
    offset: float = 0.0,
    var: str = "t",
) -> str:
    """Build a nested if(lt(t,...)) expression interpolating ``prop``.

    Args:
        keyframes: Keyframes in any order
        prop: Property to animate
        offset: Added to every keyframe time (element start on the output timeline)
        var: Time variable name used by the consuming filter

    Returns:
        Expression string. Constant when there are fewer than two keyframes.
    """
    if not keyframes:
        return _exact(NEUTRAL_VALUES[prop])

    sorted_kf = _sorted(keyframes)
    if len(sorted_kf) == 1:
        return _exact(getattr(sorted_kf[0], prop))

    parts: list[str] = []
    for i, kf in enumerate(sorted_kf):
        t_abs = kf.time + offset
        value = getattr(kf, prop)

        if i == 0:
            # Hold the first value before the first keyframe
            parts.append(f"if(lt({var},{_exact(t_abs)}),{_exact(value)},")
            continue

        prev = sorted_kf[i - 1]
        prev_t = prev.time + offset
        prev_value = getattr(prev, prop)
        dt = t_abs - prev_t
        if dt <= 0:
            # Equal times: step straight to the later value
            continue

        delta = value - prev_value
        if delta == 0:
            interp = _exact(prev_value)
        else:
            # (t - t0) / dt is exactly 1 at the boundary
            interp = f"{_exact(prev_value)}+{_signed(delta)}*({var}-{_signed(prev_t)})/{_exact(dt)}"
        parts.append(f"if(lt({var},{_exact(t_abs)}),{interp},")

    last_value = getattr(sorted_kf[-1], prop)
    return "".join(parts) + _exact(last_value) + ")" * len(parts)


def evaluate_keyframes(
    keyframes: Sequence[KeyframeLike],
    prop: KeyframeProperty,
    time: float,
) -> float:
    """Evaluate the same piecewise-linear curve numerically at ``time``."""
    if not keyframes:
        return NEUTRAL_VALUES[prop]

    sorted_kf = _sorted(keyframes)
    if time < sorted_kf[0].time:
        return getattr(sorted_kf[0], prop)

    for prev, kf in zip(sorted_kf, sorted_kf[1:]):
        dt = kf.time - prev.time
        if dt <= 0 or time >= kf.time:
            continue
        progress = (time - prev.time) / dt
        return getattr(prev, prop) + (getattr(kf, prop) - getattr(prev, prop)) * progress

    return getattr(sorted_kf[-1], prop)
