"""External engine port and its ffmpeg adapter.

The job pipeline and the capability negotiator talk to ``ExternalEngine``
only, so tests can substitute a fake that never spawns a process.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

from framecast.config import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass
class EngineResult:
    returncode: int
    output: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class ExternalEngine(Protocol):
    async def probe(self, encoder: str) -> bool:
        """Return True if a short synthetic encode with ``encoder`` succeeds."""
        ...

    async def run(self, args: list[str]) -> EngineResult:
        """Run the engine to completion and capture its diagnostic output."""
        ...


def build_probe_command(ffmpeg_path: str, encoder: str) -> list[str]:
    return [
        ffmpeg_path,
        "-hide_banner",
        "-loglevel", "error",
        "-f", "lavfi",
        "-i", "testsrc=duration=1:size=320x240:rate=1",
        "-t", "1",
        "-c:v", encoder,
        "-f", "null",
        "-",
    ]


class FFmpegEngine:
    """Runs ffmpeg as an asyncio subprocess."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    async def probe(self, encoder: str) -> bool:
        cmd = build_probe_command(self.settings.ffmpeg_path, encoder)
        try:
            result = await asyncio.wait_for(
                self._exec(cmd), timeout=self.settings.probe_timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning(f"[ENCODER] probe for {encoder} timed out")
            return False
        except OSError as e:
            logger.warning(f"[ENCODER] probe for {encoder} could not start ffmpeg: {e}")
            return False
        if not result.ok:
            logger.debug(f"[ENCODER] probe for {encoder} failed: {result.output.strip()}")
        return result.ok

    async def run(self, args: list[str]) -> EngineResult:
        logger.info(f"[RENDER] running: {' '.join(args[:3])} ... ({len(args)} args)")
        return await self._exec(args)

    async def _exec(self, args: list[str]) -> EngineResult:
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
        try:
            stdout, _ = await proc.communicate()
        except asyncio.CancelledError:
            # Task cancellation (probe timeout or terminate-on-cancel) kills the process
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            raise
        return EngineResult(returncode=proc.returncode or 0, output=stdout.decode(errors="replace"))
