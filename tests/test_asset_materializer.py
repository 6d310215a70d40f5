"""Tests for per-job asset materialization."""

import base64
from pathlib import Path

import httpx
import pytest
from PIL import Image

from framecast.exceptions import AssetError
from framecast.services.asset_materializer import (
    AssetMaterializer,
    decode_base64,
    is_remote,
)
from framecast.services.http_client import UpstreamClient
from framecast.utils.concurrency import RateLimiter
from framecast.utils.retry import RetryPolicy


@pytest.fixture
def downloads():
    return []


@pytest.fixture
def materializer(settings, png_base64, downloads):
    png = base64.b64decode(png_base64)

    def handler(request: httpx.Request) -> httpx.Response:
        downloads.append(str(request.url))
        if request.url.path.endswith(".srt"):
            return httpx.Response(200, text="1\n00:00:00,000 --> 00:00:01,000\nHi\n")
        return httpx.Response(200, content=png)

    client = UpstreamClient(
        settings,
        rate_limiter=RateLimiter(100),
        retry_policy=RetryPolicy(max_attempts=1),
        transport=httpx.MockTransport(handler),
    )
    return AssetMaterializer(settings, client)


class TestDecodeBase64:
    """Test base64 and data URI decoding."""

    def test_plain(self):
        raw, mime = decode_base64(base64.b64encode(b"hello").decode())
        assert raw == b"hello"
        assert mime is None

    def test_data_uri(self):
        raw, mime = decode_base64("data:audio/wav;base64," + base64.b64encode(b"RIFF").decode())
        assert raw == b"RIFF"
        assert mime == "audio/wav"

    def test_invalid(self):
        with pytest.raises(AssetError, match="Invalid base64"):
            decode_base64("not base64 at all!")


class TestIsRemote:
    @pytest.mark.parametrize(
        "source,expected",
        [
            ("https://cdn.example.com/a.png", True),
            ("http://cdn.example.com/a.png", True),
            ("/srv/media/a.png", False),
            ("relative/a.png", False),
        ],
    )
    def test_schemes(self, source, expected):
        assert is_remote(source) is expected


class TestMaterialize:
    """Test what ends up in the job's working directory."""

    @pytest.mark.asyncio
    async def test_base64_images_are_saved_as_png(self, materializer, make_request, png_base64):
        request = make_request(
            images=[
                {"data": png_base64, "start": 0, "length": 2},
                {"data": "data:image/png;base64," + png_base64, "start": 2, "length": 2},
            ]
        )

        assets = await materializer.materialize("job-1", request)

        assert set(assets.images) == {0, 1}
        for path in assets.images.values():
            assert Path(path).parent == assets.work_dir
            with Image.open(path) as img:
                assert img.format == "PNG"
                assert img.size == (32, 18)

    @pytest.mark.asyncio
    async def test_local_paths_pass_through(self, materializer, make_request):
        request = make_request(images=[{"url": "/srv/media/photo.jpg", "start": 0, "length": 3}])
        assets = await materializer.materialize("job-2", request)
        assert assets.images == {0: "/srv/media/photo.jpg"}

    @pytest.mark.asyncio
    async def test_remote_urls_pass_through_without_prefetch(self, materializer, make_request, downloads):
        request = make_request(images=[{"url": "https://cdn.example.com/a.png", "start": 0, "length": 3}])
        assets = await materializer.materialize("job-3", request)
        assert assets.images == {0: "https://cdn.example.com/a.png"}
        assert downloads == []

    @pytest.mark.asyncio
    async def test_remote_urls_downloaded_with_prefetch(self, materializer, make_request, downloads):
        materializer.settings.prefetch_remote_assets = True
        request = make_request(
            images=[{"url": "https://cdn.example.com/a.png", "start": 0, "length": 3}],
            subtitles={"url": "https://cdn.example.com/subs.srt"},
        )

        assets = await materializer.materialize("job-4", request)

        assert Path(assets.images[0]).exists()
        assert Path(assets.subtitles).read_text().startswith("1\n")
        assert len(downloads) == 2

    @pytest.mark.asyncio
    async def test_image_background_is_materialized(self, materializer, make_request, png_base64):
        request = make_request(background=png_base64)
        assets = await materializer.materialize("job-5", request)
        assert assets.background == str(assets.work_dir / "background.png")

    @pytest.mark.asyncio
    async def test_color_background_needs_no_file(self, materializer, make_request):
        assets = await materializer.materialize("job-6", make_request(background="#102030"))
        assert assets.background is None

    @pytest.mark.asyncio
    async def test_non_image_bytes_are_rejected(self, materializer, make_request):
        junk = base64.b64encode(b"definitely not an image").decode()
        request = make_request(images=[{"data": junk, "start": 0, "length": 2}])

        with pytest.raises(AssetError, match="Failed to materialize images"):
            await materializer.materialize("job-7", request)

    @pytest.mark.asyncio
    async def test_audio_data_uri_uses_mime_extension(self, materializer, make_request):
        data = "data:audio/wav;base64," + base64.b64encode(b"RIFF0000WAVE").decode()
        request = make_request(audio=[{"data": data}])

        assets = await materializer.materialize("job-8", request)

        assert assets.audio[0].endswith("audio_0.wav")
        assert Path(assets.audio[0]).read_bytes() == b"RIFF0000WAVE"

    @pytest.mark.asyncio
    async def test_inline_subtitles_written_to_file(self, materializer, make_request):
        srt = "1\n00:00:00,000 --> 00:00:02,000\nHello\n"
        assets = await materializer.materialize("job-9", make_request(subtitles={"srt": srt}))
        assert Path(assets.subtitles).name == "subtitles.srt"
        assert Path(assets.subtitles).read_text(encoding="utf-8") == srt

    @pytest.mark.asyncio
    async def test_overlay_videos_are_written_by_mime(self, materializer, make_request):
        data = "data:video/quicktime;base64," + base64.b64encode(b"moov").decode()
        request = make_request(
            overlays=[
                {"data": data, "length": 2},
                {"url": "/srv/media/host.mp4", "length": 2},
            ]
        )

        assets = await materializer.materialize("job-11", request)

        assert Path(assets.overlays[0]).name == "overlay_0.mov"
        assert Path(assets.overlays[0]).read_bytes() == b"moov"
        assert assets.overlays[1] == "/srv/media/host.mp4"

    @pytest.mark.asyncio
    async def test_ineligible_clips_are_skipped(self, materializer, make_request, png_base64, downloads):
        materializer.settings.prefetch_remote_assets = True
        request = make_request(
            images=[
                {"data": "not-base64!!", "length": 0},
                {"data": png_base64, "length": 2},
            ],
            overlays=[{"url": "https://cdn.example.com/late.mp4", "length": 0}],
        )

        assets = await materializer.materialize("job-12", request)

        assert list(assets.images) == [1]
        assert assets.overlays == {}
        assert downloads == []

    @pytest.mark.asyncio
    async def test_cleanup_removes_work_dir(self, materializer, make_request, png_base64):
        request = make_request(images=[{"data": png_base64, "start": 0, "length": 2}])
        assets = await materializer.materialize("job-10", request)
        assert assets.work_dir.exists()

        materializer.cleanup(assets.work_dir)

        assert not assets.work_dir.exists()
