"""Per-job working storage for decoded and downloaded assets.

Each job gets ``<work_dir>/<job id>``. Base64 images are decoded, checked
with Pillow and re-saved as PNG so the engine always reads a well-formed
file. Local paths pass through untouched; remote URLs are downloaded only
when ``prefetch_remote_assets`` is on.
"""

import asyncio
import base64
import binascii
import io
import logging
import os
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

from PIL import Image, UnidentifiedImageError

from framecast.config import Settings, get_settings
from framecast.exceptions import AssetError, BatchError
from framecast.schemas.composition import CompositionRequest, ImageClip, OverlayClip, schedulable_clips
from framecast.services.http_client import UpstreamClient
from framecast.utils.concurrency import WorkerPool

logger = logging.getLogger(__name__)

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w/+.-]+)?;base64,", re.IGNORECASE)

AUDIO_EXTENSIONS = {
    "audio/mpeg": ".mp3",
    "audio/mp3": ".mp3",
    "audio/wav": ".wav",
    "audio/x-wav": ".wav",
    "audio/aac": ".aac",
    "audio/ogg": ".ogg",
}

VIDEO_EXTENSIONS = {
    "video/mp4": ".mp4",
    "video/quicktime": ".mov",
    "video/webm": ".webm",
    "video/x-matroska": ".mkv",
}


@dataclass
class MaterializedAssets:
    """Engine-readable locations for a request's assets."""

    work_dir: Path
    background: str | None = None
    # request list position -> file path or URL
    images: dict[int, str] = field(default_factory=dict)
    overlays: dict[int, str] = field(default_factory=dict)
    audio: dict[int, str] = field(default_factory=dict)
    subtitles: str | None = None


def is_remote(source: str) -> bool:
    return urlparse(source).scheme in ("http", "https")


def decode_base64(data: str) -> tuple[bytes, str | None]:
    """Decode plain base64 or a data URI. Returns ``(bytes, mime type or None)``."""
    mime = None
    match = _DATA_URI_RE.match(data)
    if match:
        mime = match.group("mime")
        data = data[match.end():]
    try:
        return base64.b64decode(data, validate=True), mime
    except (binascii.Error, ValueError) as e:
        raise AssetError(f"Invalid base64 data: {e}") from e


def save_image(raw: bytes, path: Path) -> Path:
    """Verify image bytes and write them as PNG."""
    try:
        with Image.open(io.BytesIO(raw)) as img:
            img.verify()
        with Image.open(io.BytesIO(raw)) as img:
            if img.mode not in ("RGB", "RGBA"):
                img = img.convert("RGBA")
            img.save(path, format="PNG")
    except (UnidentifiedImageError, OSError) as e:
        raise AssetError(f"Failed to decode image for {path.name}: {e}") from e
    return path


class AssetMaterializer:
    def __init__(self, settings: Settings | None = None, http_client: UpstreamClient | None = None):
        self.settings = settings or get_settings()
        self.http_client = http_client or UpstreamClient(self.settings)

    def work_dir_for(self, job_id: str) -> Path:
        return Path(self.settings.work_dir) / job_id

    async def materialize(self, job_id: str, request: CompositionRequest) -> MaterializedAssets:
        work_dir = self.work_dir_for(job_id)
        work_dir.mkdir(parents=True, exist_ok=True)
        assets = MaterializedAssets(work_dir=work_dir)

        if not request.has_color_background:
            assets.background = await self._image_source(
                request.background, work_dir / "background.png", embedded=_is_embedded(request.background)
            )

        pool = WorkerPool(self.settings.max_concurrency)
        clips = schedulable_clips(request.images, self.settings.max_image_inputs)
        try:
            results = await pool.run(clips, lambda item: self._materialize_image(work_dir, *item))
        except BatchError as e:
            raise AssetError(f"Failed to materialize images: {e.message}") from e
        assets.images = dict(results)

        overlays = schedulable_clips(request.overlays, self.settings.max_overlay_inputs)
        try:
            results = await pool.run(overlays, lambda item: self._materialize_overlay(work_dir, *item))
        except BatchError as e:
            raise AssetError(f"Failed to materialize overlays: {e.message}") from e
        assets.overlays = dict(results)

        for i, track in enumerate(request.audio):
            if track.source:
                assets.audio[i] = await self._audio_source(track.data, track.url, work_dir, i)

        if request.subtitles is not None:
            assets.subtitles = await self._subtitle_source(request.subtitles.srt, request.subtitles.url, work_dir)

        logger.info(
            f"[ASSETS] job {job_id}: {len(assets.images)} image(s), {len(assets.overlays)} overlay(s), "
            f"{len(assets.audio)} audio track(s) in {work_dir}"
        )
        return assets

    def cleanup(self, work_dir: Path) -> None:
        if work_dir.exists():
            shutil.rmtree(work_dir, ignore_errors=True)
            logger.info(f"[ASSETS] removed {work_dir}")

    async def _materialize_image(self, work_dir: Path, index: int, clip: ImageClip) -> tuple[int, str]:
        target = work_dir / f"image_{index}.png"
        if clip.data:
            return index, await self._image_source(clip.data, target, embedded=True)
        return index, await self._image_source(clip.url or "", target, embedded=False)

    async def _materialize_overlay(self, work_dir: Path, index: int, clip: OverlayClip) -> tuple[int, str]:
        if clip.data:
            raw, mime = decode_base64(clip.data)
            target = work_dir / f"overlay_{index}{VIDEO_EXTENSIONS.get(mime or '', '.mp4')}"
        elif clip.url and is_remote(clip.url) and self.settings.prefetch_remote_assets:
            raw = await self.http_client.get_bytes(clip.url)
            target = work_dir / f"overlay_{index}{Path(urlparse(clip.url).path).suffix or '.mp4'}"
        else:
            return index, clip.url or ""
        await asyncio.to_thread(target.write_bytes, raw)
        return index, str(target)

    async def _image_source(self, source: str, target: Path, *, embedded: bool) -> str:
        if embedded:
            raw, _ = decode_base64(source)
        elif is_remote(source) and self.settings.prefetch_remote_assets:
            raw = await self.http_client.get_bytes(source)
        else:
            return source
        await asyncio.to_thread(save_image, raw, target)
        return str(target)

    async def _audio_source(self, data: str | None, url: str | None, work_dir: Path, index: int) -> str:
        if data:
            raw, mime = decode_base64(data)
            target = work_dir / f"audio_{index}{AUDIO_EXTENSIONS.get(mime or '', '.mp3')}"
        elif url and is_remote(url) and self.settings.prefetch_remote_assets:
            raw = await self.http_client.get_bytes(url)
            target = work_dir / f"audio_{index}{Path(urlparse(url).path).suffix or '.mp3'}"
        else:
            return url or ""
        await asyncio.to_thread(target.write_bytes, raw)
        return str(target)

    async def _subtitle_source(self, srt: str | None, url: str | None, work_dir: Path) -> str | None:
        target = work_dir / "subtitles.srt"
        if srt:
            await asyncio.to_thread(target.write_text, srt, encoding="utf-8")
            return str(target)
        if url and is_remote(url) and self.settings.prefetch_remote_assets:
            raw = await self.http_client.get_bytes(url)
            await asyncio.to_thread(target.write_bytes, raw)
            return str(target)
        return url


def _is_embedded(source: str) -> bool:
    """Background strings are base64 unless they name a URL or an existing file."""
    if source.startswith("data:"):
        return True
    if is_remote(source):
        return False
    return len(source) > 1024 or not os.path.exists(source)
