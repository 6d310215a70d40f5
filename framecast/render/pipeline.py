"""Render job pipeline.

Each submitted request becomes a Job and gets its own asyncio task that
runs, in order:

    materialize assets (10) -> compile graph (30) -> negotiate encoder and
    run ffmpeg (50) -> clean up (90) -> completed (100)

Any failure marks the job failed with a readable message. Cancellation
marks the job cancelled; the worker notices at the next checkpoint and
never reports it completed.
"""

import asyncio
import logging
import re
from pathlib import Path
from typing import Any, Callable, Optional

from pydantic import ValidationError

from framecast.config import Settings, get_settings
from framecast.exceptions import ExecutionError, FramecastError, InvalidJobTransitionError, RequestValidationError
from framecast.render.command_builder import build_command, plan_inputs
from framecast.render.encoder import CapabilityNegotiator
from framecast.render.engine import EngineResult, ExternalEngine, FFmpegEngine
from framecast.render.filter_compiler import FilterCompiler
from framecast.schemas.composition import CompositionRequest
from framecast.schemas.job import JobStatusResponse
from framecast.services.asset_materializer import AssetMaterializer
from framecast.services.job_store import Job, JobStatus, JobStore

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_RE = re.compile(r'[/\\:*?"<>|]')


def sanitize_filename(name: str) -> str:
    return _UNSAFE_FILENAME_RE.sub("_", name)


class JobPipeline:
    """Schedules and supervises render jobs."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        engine: ExternalEngine | None = None,
        store: JobStore | None = None,
        compiler: FilterCompiler | None = None,
        negotiator: CapabilityNegotiator | None = None,
        materializer: AssetMaterializer | None = None,
    ):
        self.settings = settings or get_settings()
        self.engine = engine or FFmpegEngine(self.settings)
        self.store = store or JobStore()
        self.compiler = compiler or FilterCompiler(self.settings)
        self.negotiator = negotiator or CapabilityNegotiator(self.engine, self.settings)
        self.materializer = materializer or AssetMaterializer(self.settings)
        self._tasks: dict[str, asyncio.Task] = {}
        self._engine_runs: dict[str, asyncio.Task] = {}
        self._progress_callback: Optional[Callable[[Job], Any]] = None

    def set_progress_callback(self, callback: Callable[[Job], Any]) -> None:
        """Set callback invoked with the job after every progress checkpoint."""
        self._progress_callback = callback

    # =========================================================================
    # Public API
    # =========================================================================

    async def submit(self, request: CompositionRequest | dict[str, Any]) -> Job:
        """Validate a request, create its job and schedule the worker.

        Raises:
            RequestValidationError: the request is malformed; no job is created
        """
        if not isinstance(request, CompositionRequest):
            try:
                request = CompositionRequest.model_validate(request)
            except ValidationError as e:
                raise RequestValidationError(
                    f"Invalid composition request: {e.error_count()} error(s)",
                    details={"errors": e.errors(include_url=False)},
                ) from e

        job = self.store.create(request.title)
        self._tasks[job.id] = asyncio.create_task(
            self._run(job.id, request), name=f"framecast-job-{job.id[:8]}"
        )
        logger.info(f"[JOB] {job.id} queued: '{request.title}'")
        return job

    def get_job(self, job_id: str) -> Job:
        return self.store.get(job_id)

    def get_status(self, job_id: str) -> JobStatusResponse:
        return self.store.get(job_id).to_status()

    def list_jobs(self) -> list[Job]:
        return self.store.list_jobs()

    def cancel_job(self, job_id: str) -> bool:
        """Mark a job cancelled. Returns False if it had already finished.

        The running ffmpeg process is left alone unless ``terminate_on_cancel``
        is set.
        """
        cancelled = self.store.cancel(job_id)
        if cancelled:
            logger.info(f"[JOB] {job_id} cancelled")
            run = self._engine_runs.get(job_id)
            if run is not None and self.settings.terminate_on_cancel:
                run.cancel()
        return cancelled

    async def wait(self, job_id: str) -> Job:
        """Wait for a job's worker to finish and return the final record."""
        task = self._tasks.get(job_id)
        if task is not None:
            await task
        return self.store.get(job_id)

    async def shutdown(self) -> None:
        await asyncio.gather(*self._tasks.values(), return_exceptions=True)

    def output_path_for(self, job_id: str, title: str) -> Path:
        return Path(self.settings.output_dir) / f"{sanitize_filename(title)}_{job_id[:8]}.mp4"

    # =========================================================================
    # Worker
    # =========================================================================

    async def _run(self, job_id: str, request: CompositionRequest) -> None:
        work_dir = self.materializer.work_dir_for(job_id)
        failed = False
        try:
            if not self._advance(job_id, 10, "Materializing assets"):
                return
            assets = await self.materializer.materialize(job_id, request)

            if not self._advance(job_id, 30, "Compiling filter graph"):
                return
            plan = plan_inputs(request, self.settings, assets)
            compiled = self.compiler.compile(request, plan)

            if not self._advance(job_id, 50, "Encoding video"):
                return
            profile = await self.negotiator.negotiate(request.encoder)
            output_path = self.output_path_for(job_id, request.title)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            args = build_command(request, plan, compiled, profile, str(output_path), self.settings)

            result = await self._execute(job_id, args)
            if result is None:
                return
            if not result.ok:
                raise ExecutionError(
                    f"ffmpeg exited with code {result.returncode}: {result.output.strip()}",
                    returncode=result.returncode,
                )

            if not self._advance(job_id, 90, "Cleaning up"):
                return
            self.materializer.cleanup(work_dir)
            self._complete(job_id, str(output_path))

        except FramecastError as e:
            failed = True
            logger.error(f"[JOB] {job_id} failed: {e.message}")
            self._fail(job_id, e.message)
        except Exception as e:
            failed = True
            logger.error(f"[JOB] {job_id} crashed: {e}", exc_info=True)
            self._fail(job_id, f"Unexpected error: {e}")
        finally:
            self._engine_runs.pop(job_id, None)
            if failed and self.settings.keep_failed_workdirs:
                logger.info(f"[JOB] {job_id} keeping {work_dir} for inspection")
            else:
                self.materializer.cleanup(work_dir)

    async def _execute(self, job_id: str, args: list[str]) -> EngineResult | None:
        """Run the engine. Returns None if the run was terminated by a cancel."""
        run = asyncio.create_task(self.engine.run(args))
        self._engine_runs[job_id] = run
        try:
            return await run
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if run.cancelled() and current is not None and not current.cancelling():
                logger.info(f"[JOB] {job_id} engine run terminated after cancellation")
                return None
            raise

    def _advance(self, job_id: str, progress: int, message: str) -> bool:
        """Record a checkpoint. False means the job is no longer active."""
        try:
            job = self.store.update_state(
                job_id, status=JobStatus.PROCESSING, progress=progress, message=message
            )
        except InvalidJobTransitionError:
            logger.info(f"[JOB] {job_id} no longer active, stopping at {progress}%")
            return False
        logger.info(f"[JOB] {job_id} {progress}%: {message}")
        if self._progress_callback:
            self._progress_callback(job)
        return True

    def _complete(self, job_id: str, output_path: str) -> None:
        try:
            job = self.store.update_state(
                job_id,
                status=JobStatus.COMPLETED,
                progress=100,
                message="Video generation completed successfully",
                output_path=output_path,
            )
        except InvalidJobTransitionError:
            logger.info(f"[JOB] {job_id} finished rendering after it was cancelled")
            return
        logger.info(f"[JOB] {job_id} completed: {output_path}")
        if self._progress_callback:
            self._progress_callback(job)

    def _fail(self, job_id: str, error: str) -> None:
        try:
            self.store.update_state(job_id, status=JobStatus.FAILED, error=error, message=error)
        except InvalidJobTransitionError:
            logger.info(f"[JOB] {job_id} failed after it was cancelled: {error}")
