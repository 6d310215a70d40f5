"""Encoder profiles and hardware capability negotiation.

Hardware backends are probed with a short synthetic encode in a fixed
preference order (discrete GPUs, then integrated). Software x264 is always
the last resort and is never probed.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Literal

from framecast.config import Settings, get_settings
from framecast.render.engine import ExternalEngine

logger = logging.getLogger(__name__)

DeviceClass = Literal["discrete", "integrated", "software"]

SOFTWARE = "software"


@dataclass(frozen=True)
class EncoderProfile:
    backend: str
    encoder: str
    flags: list[str] = field(default_factory=list)
    # Lower ranks are preferred
    rank: int = 99
    device_class: DeviceClass = "software"
    hwaccel_args: list[str] = field(default_factory=list)

    @property
    def is_hardware(self) -> bool:
        return self.device_class != "software"


PROFILES: dict[str, EncoderProfile] = {
    "nvidia": EncoderProfile(
        backend="nvidia",
        encoder="h264_nvenc",
        flags=[
            "-preset", "p4",
            "-rc", "vbr",
            "-cq", "20",
            "-b:v", "6M",
            "-maxrate", "10M",
            "-bufsize", "12M",
            "-profile:v", "high",
        ],
        rank=0,
        device_class="discrete",
        hwaccel_args=["-hwaccel", "cuda"],
    ),
    "amd": EncoderProfile(
        backend="amd",
        encoder="h264_amf",
        flags=[
            "-quality", "speed",
            "-rc", "vbr_peak",
            "-qp_i", "20",
            "-qp_p", "22",
            "-qp_b", "24",
            "-b:v", "5M",
            "-maxrate", "8M",
        ],
        rank=1,
        device_class="discrete",
        hwaccel_args=["-hwaccel", "auto"],
    ),
    "intel": EncoderProfile(
        backend="intel",
        encoder="h264_qsv",
        flags=[
            "-preset", "fast",
            "-global_quality", "20",
            "-b:v", "4M",
            "-maxrate", "6M",
        ],
        rank=2,
        device_class="integrated",
        hwaccel_args=["-hwaccel", "qsv"],
    ),
    SOFTWARE: EncoderProfile(
        backend=SOFTWARE,
        encoder="libx264",
        flags=["-preset", "medium", "-crf", "21", "-threads", "0"],
        rank=99,
        device_class="software",
    ),
}


def hardware_profiles() -> list[EncoderProfile]:
    """Hardware profiles in preference order."""
    return sorted((p for p in PROFILES.values() if p.is_hardware), key=lambda p: p.rank)


class CapabilityNegotiator:
    """Selects an encoder profile, falling back to software on any failure.

    Probe results are cached for the lifetime of the negotiator.
    """

    def __init__(self, engine: ExternalEngine, settings: Settings | None = None):
        self.engine = engine
        self.settings = settings or get_settings()
        self._probe_cache: dict[str, bool] = {}
        self._lock = asyncio.Lock()

    async def negotiate(self, requested: str | None = None) -> EncoderProfile:
        requested = requested or self.settings.encoder_backend

        if requested == SOFTWARE:
            return PROFILES[SOFTWARE]

        if requested:
            profile = PROFILES.get(requested)
            if profile is None:
                logger.warning(f"[ENCODER] unknown backend '{requested}', auto-detecting")
            elif await self._probe(profile):
                logger.info(f"[ENCODER] using pinned backend {profile.backend} ({profile.encoder})")
                return profile
            else:
                logger.warning(f"[ENCODER] pinned backend {requested} unavailable, auto-detecting")
        elif not self.settings.use_hardware_encoding:
            return PROFILES[SOFTWARE]

        for profile in hardware_profiles():
            if profile.backend == requested:
                continue
            if await self._probe(profile):
                logger.info(f"[ENCODER] detected {profile.backend} ({profile.encoder})")
                return profile

        logger.info("[ENCODER] no hardware encoder available, using libx264")
        return PROFILES[SOFTWARE]

    async def _probe(self, profile: EncoderProfile) -> bool:
        async with self._lock:
            cached = self._probe_cache.get(profile.backend)
            if cached is not None:
                return cached
            try:
                ok = await self.engine.probe(profile.encoder)
            except Exception as e:
                logger.warning(f"[ENCODER] probe for {profile.backend} raised: {e}")
                ok = False
            self._probe_cache[profile.backend] = ok
            return ok

    def describe(self) -> list[dict]:
        """All profiles with their cached probe result (None = not probed)."""
        return [
            {
                "backend": profile.backend,
                "encoder": profile.encoder,
                "device_class": profile.device_class,
                "rank": profile.rank,
                "available": True if not profile.is_hardware else self._probe_cache.get(profile.backend),
            }
            for profile in sorted(PROFILES.values(), key=lambda p: p.rank)
        ]
