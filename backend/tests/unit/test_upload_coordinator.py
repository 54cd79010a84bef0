"""
Unit tests for the UploadCoordinator.

A scripted in-memory transport stands in for the network; backoff sleeps
are recorded instead of awaited.
"""

import asyncio

import pytest

from priory.uploader import (
    FileHandle,
    InvalidTransitionError,
    RetryPolicy,
    UploadCoordinator,
    UploadError,
    UploadProgress,
    UploadStatus,
    UploadTransport,
)


class ScriptedTransport(UploadTransport):
    """
    Transport whose outcome per attempt is scripted by filename.

    Each script entry is an exception to raise or None for success; once a
    script is exhausted every further attempt succeeds.
    """

    def __init__(self, scripts=None, delay: float = 0.01):
        self.scripts = {name: list(steps) for name, steps in (scripts or {}).items()}
        self.delay = delay
        self.attempts = {}
        self.in_flight = 0
        self.max_in_flight = 0

    async def send(self, file, on_progress):
        self.attempts[file.name] = self.attempts.get(file.name, 0) + 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            on_progress(file.size // 2, file.size)
            await asyncio.sleep(self.delay)
            steps = self.scripts.get(file.name)
            outcome = steps.pop(0) if steps else None
            if outcome is not None:
                raise outcome
            on_progress(file.size, file.size)
            return {"id": file.id, "originalFilename": file.name, "size": file.size}
        finally:
            self.in_flight -= 1


class BlockingTransport(UploadTransport):
    """Transport that holds every transfer until released."""

    def __init__(self):
        self.release = asyncio.Event()
        self.started = asyncio.Event()
        self.cancelled = []
        self.names = []

    async def send(self, file, on_progress):
        self.names.append(file.name)
        self.started.set()
        try:
            await self.release.wait()
        except asyncio.CancelledError:
            self.cancelled.append(file.name)
            raise
        return {"id": file.id, "originalFilename": file.name}


def make_file(name: str, size: int = 10, mime_type: str = "text/plain") -> FileHandle:
    return FileHandle(name=name, content=b"x" * size, mime_type=mime_type)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def fake_sleep(sleeps):
    async def _sleep(delay):
        sleeps.append(delay)

    return _sleep


def build(transport, fake_sleep, **kwargs):
    kwargs.setdefault("retry_policy", RetryPolicy(max_attempts=3, base_delay=1.0, jitter=0.0))
    return UploadCoordinator(transport, sleep=fake_sleep, **kwargs)


class TestBatchScenario:
    @pytest.mark.asyncio
    async def test_five_files_with_flaky_first_two(self, fake_sleep, sleeps):
        """Files 1-2 fail twice then succeed, 3-5 succeed: all complete, one callback."""
        flaky = [UploadError("Network error"), UploadError("Network error")]
        transport = ScriptedTransport({"file1.txt": flaky, "file2.txt": list(flaky)})
        completions = []
        max_uploading = 0

        def on_progress(record):
            nonlocal max_uploading
            uploading = sum(
                1 for r in coordinator.records.values() if r.status is UploadStatus.UPLOADING
            )
            max_uploading = max(max_uploading, uploading)

        coordinator = build(
            transport,
            fake_sleep,
            concurrency=3,
            on_progress=on_progress,
            on_complete=completions.append,
        )
        files = [make_file(f"file{i}.txt") for i in range(1, 6)]

        coordinator.submit(files)
        await coordinator.wait()

        assert all(r.status is UploadStatus.COMPLETED for r in coordinator.records.values())
        assert all(r.progress == 100 for r in coordinator.records.values())
        assert len(completions) == 1
        assert len(completions[0]) == 5
        assert max_uploading <= 3
        assert transport.max_in_flight == 3
        assert transport.attempts["file1.txt"] == 3
        assert transport.attempts["file3.txt"] == 1
        assert coordinator.records[files[0].id].retry_count == 3
        assert sorted(sleeps) == [1.0, 1.0, 2.0, 2.0]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("concurrency,count", [(1, 4), (2, 7), (5, 3)])
    async def test_concurrency_bound_holds(self, fake_sleep, concurrency, count):
        transport = ScriptedTransport()
        coordinator = build(transport, fake_sleep, concurrency=concurrency)

        coordinator.submit([make_file(f"f{i}.txt") for i in range(count)])
        await coordinator.wait()

        assert transport.max_in_flight == min(concurrency, count)
        assert coordinator.active_count == 0

    @pytest.mark.asyncio
    async def test_files_submitted_mid_batch_join_the_batch(self, fake_sleep):
        transport = ScriptedTransport(delay=0.02)
        completions = []
        coordinator = build(transport, fake_sleep, concurrency=2, on_complete=completions.append)

        coordinator.submit([make_file("a.txt"), make_file("b.txt")])
        await asyncio.sleep(0.005)
        coordinator.submit([make_file("c.txt")])
        await coordinator.wait()

        assert len(completions) == 1
        assert len(completions[0]) == 3
        assert transport.max_in_flight == 2

    @pytest.mark.asyncio
    async def test_late_submission_takes_free_slot(self, fake_sleep):
        """A file submitted while another is in flight starts without waiting for it."""
        transport = BlockingTransport()
        coordinator = build(transport, fake_sleep, concurrency=3)

        coordinator.submit([make_file("a.txt")])
        await transport.started.wait()
        coordinator.submit([make_file("b.txt")])
        await asyncio.sleep(0.01)

        assert transport.names == ["a.txt", "b.txt"]
        assert coordinator.active_count == 2

        transport.release.set()
        await coordinator.wait()


class TestValidation:
    @pytest.mark.asyncio
    async def test_oversized_file_rejected_before_queueing(self, fake_sleep):
        transport = ScriptedTransport()
        coordinator = build(transport, fake_sleep, max_file_size=100)
        big = make_file("big.txt", size=101)

        (record,) = coordinator.submit([big])

        assert record.status is UploadStatus.ERROR
        assert record.error == "File too large"
        assert big.id not in coordinator.queued_ids
        await coordinator.wait()
        assert "big.txt" not in transport.attempts

    @pytest.mark.asyncio
    async def test_disallowed_type_rejected(self, fake_sleep):
        coordinator = build(ScriptedTransport(), fake_sleep)

        (record,) = coordinator.submit([make_file("tool.exe", mime_type="application/x-msdownload")])

        assert record.status is UploadStatus.ERROR
        assert record.error == "File type not allowed"

    @pytest.mark.asyncio
    async def test_only_valid_files_reach_callback(self, fake_sleep):
        completions = []
        coordinator = build(
            ScriptedTransport(), fake_sleep, max_file_size=50, on_complete=completions.append
        )

        coordinator.submit([make_file("ok.txt"), make_file("huge.txt", size=500)])
        await coordinator.wait()

        assert [r["originalFilename"] for r in completions[0]] == ["ok.txt"]

    @pytest.mark.asyncio
    async def test_all_rejected_fires_no_callback(self, fake_sleep):
        completions = []
        coordinator = build(
            ScriptedTransport(), fake_sleep, max_file_size=1, on_complete=completions.append
        )

        coordinator.submit([make_file("a.txt"), make_file("b.txt")])
        await coordinator.wait()

        assert completions == []


class TestRetries:
    @pytest.mark.asyncio
    async def test_exhausted_budget_marks_error(self, fake_sleep, sleeps):
        failures = [UploadError("Server error", status_code=500)] * 5
        transport = ScriptedTransport({"doomed.txt": failures})
        completions = []
        coordinator = build(transport, fake_sleep, on_complete=completions.append)

        (record,) = coordinator.submit([make_file("doomed.txt")])
        await coordinator.wait()

        assert record.status is UploadStatus.ERROR
        assert record.error == "Server error"
        assert transport.attempts["doomed.txt"] == 3
        assert sleeps == [1.0, 2.0]
        assert completions == []

    @pytest.mark.asyncio
    async def test_validation_error_not_retried(self, fake_sleep, sleeps):
        transport = ScriptedTransport({"bad.txt": [UploadError("File type not allowed", status_code=400)]})
        coordinator = build(transport, fake_sleep)

        (record,) = coordinator.submit([make_file("bad.txt")])
        await coordinator.wait()

        assert record.status is UploadStatus.ERROR
        assert transport.attempts["bad.txt"] == 1
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_rate_limit_waits_without_spending_budget(self, fake_sleep, sleeps):
        limited = [UploadError("Rate limit exceeded", status_code=429, retry_after=7)] * 3
        transport = ScriptedTransport({"busy.txt": limited})
        coordinator = build(transport, fake_sleep, retry_policy=RetryPolicy(max_attempts=1))

        (record,) = coordinator.submit([make_file("busy.txt")])
        await coordinator.wait()

        assert record.status is UploadStatus.COMPLETED
        assert sleeps == [7, 7, 7]
        assert transport.attempts["busy.txt"] == 4
        assert record.retry_count == 1

    @pytest.mark.asyncio
    async def test_rate_limit_without_hint_uses_backoff(self, fake_sleep, sleeps):
        transport = ScriptedTransport({"busy.txt": [UploadError("Rate limit exceeded", status_code=429)]})
        coordinator = build(transport, fake_sleep)

        coordinator.submit([make_file("busy.txt")])
        await coordinator.wait()

        assert sleeps == [1.0]

    @pytest.mark.asyncio
    async def test_timeout_is_retried(self, fake_sleep):
        class SlowOnceTransport(UploadTransport):
            def __init__(self):
                self.calls = 0

            async def send(self, file, on_progress):
                self.calls += 1
                if self.calls == 1:
                    await asyncio.sleep(10)
                return {"id": file.id}

        transport = SlowOnceTransport()
        coordinator = build(transport, fake_sleep, timeout=0.05)

        (record,) = coordinator.submit([make_file("slow.txt")])
        await coordinator.wait()

        assert record.status is UploadStatus.COMPLETED
        assert transport.calls == 2

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_error(self, fake_sleep):
        transport = ScriptedTransport({"odd.txt": [RuntimeError("boom")]})
        coordinator = build(transport, fake_sleep)

        (record,) = coordinator.submit([make_file("odd.txt")])
        await coordinator.wait()

        assert record.status is UploadStatus.ERROR
        assert record.error == "Upload failed"

    @pytest.mark.asyncio
    async def test_manual_retry_after_error(self, fake_sleep):
        transport = ScriptedTransport({"retry.txt": [UploadError("Unauthorized", status_code=401)]})
        completions = []
        coordinator = build(transport, fake_sleep, on_complete=completions.append)

        (record,) = coordinator.submit([make_file("retry.txt")])
        await coordinator.wait()
        assert record.status is UploadStatus.ERROR
        assert completions == []

        assert coordinator.retry(record.file.id) is True
        assert record.progress == 0
        await coordinator.wait()

        assert record.status is UploadStatus.COMPLETED
        assert len(completions) == 1

    @pytest.mark.asyncio
    async def test_manual_retry_only_from_error(self, fake_sleep):
        coordinator = build(ScriptedTransport(), fake_sleep)
        (record,) = coordinator.submit([make_file("fine.txt")])
        await coordinator.wait()

        assert coordinator.retry(record.file.id) is False
        assert coordinator.retry("missing") is False


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_in_flight_transfer(self, fake_sleep):
        transport = BlockingTransport()
        completions = []
        coordinator = build(transport, fake_sleep, on_complete=completions.append)

        (record,) = coordinator.submit([make_file("abort.txt")])
        await transport.started.wait()

        assert coordinator.cancel(record.file.id) is True
        await coordinator.wait()

        assert record.status is UploadStatus.CANCELLED
        assert transport.cancelled == ["abort.txt"]
        assert completions == []
        assert coordinator.cancel(record.file.id) is False

    @pytest.mark.asyncio
    async def test_cancel_pending_removes_from_queue(self, fake_sleep):
        transport = BlockingTransport()
        completions = []
        coordinator = build(transport, fake_sleep, concurrency=1, on_complete=completions.append)

        first, second = coordinator.submit([make_file("first.txt"), make_file("second.txt")])
        await transport.started.wait()

        assert coordinator.cancel(second.file.id) is True
        assert second.file.id not in coordinator.queued_ids

        transport.release.set()
        await coordinator.wait()

        assert first.status is UploadStatus.COMPLETED
        assert second.status is UploadStatus.CANCELLED
        assert [r["originalFilename"] for r in completions[0]] == ["first.txt"]

    @pytest.mark.asyncio
    async def test_cancel_during_backoff(self):
        backoff_started = asyncio.Event()

        async def slow_sleep(delay):
            backoff_started.set()
            await asyncio.sleep(10)

        transport = ScriptedTransport({"flaky.txt": [UploadError("Network error")]})
        coordinator = UploadCoordinator(transport, sleep=slow_sleep)

        (record,) = coordinator.submit([make_file("flaky.txt")])
        await backoff_started.wait()
        coordinator.cancel(record.file.id)
        await coordinator.wait()

        assert record.status is UploadStatus.CANCELLED
        assert transport.attempts["flaky.txt"] == 1

    @pytest.mark.asyncio
    async def test_remove_forgets_record(self, fake_sleep):
        transport = BlockingTransport()
        coordinator = build(transport, fake_sleep)

        (record,) = coordinator.submit([make_file("gone.txt")])
        await transport.started.wait()
        coordinator.remove(record.file.id)
        await coordinator.wait()

        assert record.file.id not in coordinator.records
        assert record.status is UploadStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_close_cancels_everything(self, fake_sleep):
        transport = BlockingTransport()
        coordinator = build(transport, fake_sleep, concurrency=1)

        records = coordinator.submit([make_file("a.txt"), make_file("b.txt")])
        await transport.started.wait()
        await coordinator.close()

        assert all(r.status is UploadStatus.CANCELLED for r in records)


class TestProgressRecord:
    @pytest.mark.asyncio
    async def test_progress_reported_during_transfer(self, fake_sleep):
        seen = []
        coordinator = build(
            ScriptedTransport(),
            fake_sleep,
            on_progress=lambda r: seen.append((r.status, r.progress)),
        )

        coordinator.submit([make_file("p.txt", size=10)])
        await coordinator.wait()

        assert (UploadStatus.PENDING, 0) in seen
        assert (UploadStatus.UPLOADING, 50) in seen
        assert seen[-1] == (UploadStatus.COMPLETED, 100)

    @pytest.mark.asyncio
    async def test_clear_completed(self, fake_sleep):
        coordinator = build(ScriptedTransport(), fake_sleep, max_file_size=20)
        coordinator.submit([make_file("ok.txt"), make_file("big.txt", size=50)])
        await coordinator.wait()

        coordinator.clear_completed()

        assert [r.file.name for r in coordinator.records.values()] == ["big.txt"]

    def test_completed_is_terminal(self):
        record = UploadProgress(file=make_file("x.txt"))
        record.transition(UploadStatus.UPLOADING)
        record.transition(UploadStatus.COMPLETED)

        with pytest.raises(InvalidTransitionError):
            record.transition(UploadStatus.UPLOADING)

    def test_pending_cannot_complete_directly(self):
        record = UploadProgress(file=make_file("x.txt"))

        with pytest.raises(InvalidTransitionError):
            record.transition(UploadStatus.COMPLETED)

    def test_error_can_reenter_uploading(self):
        record = UploadProgress(file=make_file("x.txt"), status=UploadStatus.ERROR)
        record.transition(UploadStatus.UPLOADING)

        assert record.status is UploadStatus.UPLOADING

    def test_file_handle_from_path(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_bytes(b"hello")

        handle = FileHandle.from_path(path)

        assert handle.name == "notes.txt"
        assert handle.mime_type == "text/plain"
        assert handle.size == 5

    def test_invalid_concurrency(self):
        with pytest.raises(ValueError):
            UploadCoordinator(ScriptedTransport(), concurrency=0)
