"""
Pytest fixtures for framecast tests.

No test spawns a real ffmpeg: the pipeline and the capability negotiator
run against FakeEngine, which records every probe and run.
"""

import asyncio
import base64
import io
import random
from pathlib import Path

import pytest
from PIL import Image

from framecast.config import Settings
from framecast.render.engine import EngineResult
from framecast.schemas.composition import CompositionRequest


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: mark test as slow")


class FakeEngine:
    """ExternalEngine double.

    Args:
        available: encoder names whose probe succeeds
        returncode/output: what every run returns
        error: exception raised by run instead of returning
        hold: if True, run blocks until ``release`` is set
    """

    def __init__(
        self,
        available: tuple[str, ...] = (),
        *,
        returncode: int = 0,
        output: str = "",
        error: Exception | None = None,
        hold: bool = False,
    ):
        self.available = set(available)
        self.returncode = returncode
        self.output = output
        self.error = error
        self.hold = hold
        self.probes: list[str] = []
        self.runs: list[list[str]] = []
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def probe(self, encoder: str) -> bool:
        self.probes.append(encoder)
        return encoder in self.available

    async def run(self, args: list[str]) -> EngineResult:
        self.runs.append(args)
        self.started.set()
        if self.hold:
            await self.release.wait()
        if self.error is not None:
            raise self.error
        return EngineResult(returncode=self.returncode, output=self.output)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from the environment, writing under tmp_path."""
    return Settings(
        _env_file=None,
        output_dir=str(tmp_path / "output"),
        work_dir=str(tmp_path / "work"),
        render_fps=25,
        encoder_backend=None,
        use_hardware_encoding=True,
        max_concurrency=2,
        rate_limit_per_minute=1000,
        retry_initial_delay=0.0,
    )


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def make_request():
    """Build a CompositionRequest from keyword overrides."""
    def _make(**overrides) -> CompositionRequest:
        data = {"title": "Test video", "duration": 10, "background": "black"}
        data.update(overrides)
        return CompositionRequest.model_validate(data)
    return _make


@pytest.fixture
def png_base64() -> str:
    """A small red PNG, base64 encoded."""
    buf = io.BytesIO()
    Image.new("RGB", (32, 18), (255, 0, 0)).save(buf, format="PNG")
    return base64.b64encode(buf.getvalue()).decode()
