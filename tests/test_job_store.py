"""Tests for the in-memory job store."""

import threading

import pytest

from framecast.exceptions import InvalidJobTransitionError, JobNotFoundError
from framecast.services.job_store import JobStatus, JobStore


class TestJobStatus:
    """Test status vocabulary."""

    def test_values(self):
        assert [s.value for s in JobStatus] == ["pending", "processing", "completed", "failed", "cancelled"]

    def test_terminal(self):
        assert not JobStatus.PENDING.is_terminal
        assert not JobStatus.PROCESSING.is_terminal
        assert JobStatus.COMPLETED.is_terminal
        assert JobStatus.FAILED.is_terminal
        assert JobStatus.CANCELLED.is_terminal


class TestJobStore:
    """Test atomic job registry operations."""

    def test_create(self):
        job = JobStore().create("Demo")
        assert job.status is JobStatus.PENDING
        assert job.progress == 0
        assert job.created_at is not None

    def test_get_unknown(self):
        with pytest.raises(JobNotFoundError):
            JobStore().get("missing")

    def test_returns_copies(self):
        store = JobStore()
        job = store.create("Demo")
        job.status = JobStatus.COMPLETED
        assert store.get(job.id).status is JobStatus.PENDING

    def test_lifecycle(self):
        store = JobStore()
        job = store.create("Demo")
        store.update_state(job.id, status=JobStatus.PROCESSING, progress=10)
        store.update_state(job.id, progress=50)
        done = store.update_state(job.id, status=JobStatus.COMPLETED, progress=100, output_path="/out/a.mp4")
        assert done.status is JobStatus.COMPLETED
        assert done.started_at is not None
        assert done.completed_at is not None

    def test_terminal_states_are_final(self):
        store = JobStore()
        job = store.create("Demo")
        store.update_state(job.id, status=JobStatus.PROCESSING)
        store.update_state(job.id, status=JobStatus.FAILED, error="boom")
        with pytest.raises(InvalidJobTransitionError):
            store.update_state(job.id, status=JobStatus.COMPLETED)
        with pytest.raises(InvalidJobTransitionError):
            store.update_state(job.id, progress=100)

    def test_pending_cannot_complete(self):
        store = JobStore()
        job = store.create("Demo")
        with pytest.raises(InvalidJobTransitionError):
            store.update_state(job.id, status=JobStatus.COMPLETED)

    def test_progress_is_clamped(self):
        store = JobStore()
        job = store.create("Demo")
        assert store.update_state(job.id, status=JobStatus.PROCESSING, progress=150).progress == 100

    def test_cancel(self):
        store = JobStore()
        job = store.create("Demo")
        store.update_state(job.id, status=JobStatus.PROCESSING)
        assert store.cancel(job.id) is True
        cancelled = store.get(job.id)
        assert cancelled.status is JobStatus.CANCELLED
        assert cancelled.message == "Job cancelled by user"
        assert store.cancel(job.id) is False

    def test_cancel_unknown(self):
        with pytest.raises(JobNotFoundError):
            JobStore().cancel("missing")

    def test_list_jobs_newest_first(self):
        store = JobStore()
        first = store.create("one")
        second = store.create("two")
        ids = [job.id for job in store.list_jobs()]
        assert set(ids) == {first.id, second.id}
        assert ids[0] == second.id or store.get(first.id).created_at == store.get(second.id).created_at

    def test_concurrent_updates(self):
        store = JobStore()
        job = store.create("Demo")
        store.update_state(job.id, status=JobStatus.PROCESSING)

        def _bump(n: int) -> None:
            for _ in range(200):
                store.update_state(job.id, progress=n)

        threads = [threading.Thread(target=_bump, args=(n,)) for n in range(10, 60, 10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert store.get(job.id).progress in {10, 20, 30, 40, 50}


class TestJobStatusSurface:
    """Test the status response built from a job."""

    def test_messages(self):
        store = JobStore()
        job = store.create("Demo")
        assert job.to_status().message == "Video generation is queued"
        store.update_state(job.id, status=JobStatus.PROCESSING)
        assert store.get(job.id).to_status().message == "Video is being generated"
        store.update_state(job.id, status=JobStatus.FAILED, error="ffmpeg exited with code 1")
        status = store.get(job.id).to_status()
        assert status.status == "failed"
        assert status.message == "ffmpeg exited with code 1"
        assert status.output_url is None

    def test_completed_has_output_url(self):
        store = JobStore()
        job = store.create("Demo")
        store.update_state(job.id, status=JobStatus.PROCESSING)
        store.update_state(job.id, status=JobStatus.COMPLETED, progress=100, output_path="output/Demo_1234abcd.mp4")
        status = store.get(job.id).to_status()
        assert status.message == "Video generation completed successfully"
        assert status.output_url == "/videos/Demo_1234abcd.mp4"
        assert status.progress == 100

    def test_to_dict(self):
        job = JobStore().create("Demo")
        data = job.to_dict()
        assert data["status"] == "pending"
        assert data["title"] == "Demo"
        assert data["completed_at"] is None
