"""
Upload Coordinator

Validates selected files, uploads them through a bounded worker pool with
retries, and reports each drained batch once.
"""

import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable, Deque, Dict, Iterable, List, Optional, Set

from priory.services.file_validator import ALL_ALLOWED_MIME_TYPES

from .models import FileHandle, UploadProgress, UploadStatus
from .retry import RetryPolicy
from .transport import UploadError, UploadTransport

logger = logging.getLogger(__name__)

ProgressListener = Callable[[UploadProgress], None]
CompletionListener = Callable[[List[dict]], None]


class UploadCoordinator:
    """
    Owns the upload queue and the progress record of every submitted file.

    Concurrency model:
    - At most `concurrency` worker tasks exist at any time
    - Workers pull file ids from a FIFO deque until it is empty, then exit
    - Each file's retry loop runs as its own task so cancel() can abort the
      transfer or the backoff sleep without stopping the worker

    Only the coordinator mutates its queue and records; listeners receive
    the record after each change.
    """

    def __init__(
        self,
        transport: UploadTransport,
        *,
        max_file_size: int = 100 * 1024 * 1024,
        allowed_mime_types: Optional[Iterable[str]] = None,
        concurrency: int = 3,
        retry_policy: Optional[RetryPolicy] = None,
        timeout: Optional[float] = 120.0,
        on_progress: Optional[ProgressListener] = None,
        on_complete: Optional[CompletionListener] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the coordinator.

        Args:
            transport: Performs single transfer attempts
            max_file_size: Files larger than this are rejected before queueing
            allowed_mime_types: Accepted MIME types (defaults to the server allow-list)
            concurrency: Maximum number of simultaneous transfers
            retry_policy: Backoff and attempt budget for transient failures
            timeout: Hard wall-clock limit per attempt in seconds (None disables)
            on_progress: Called with a record whenever it changes
            on_complete: Called once per drained batch with the successful results
            sleep: Awaitable used for backoff waits
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")

        self._transport = transport
        self.max_file_size = max_file_size
        self.allowed_mime_types = frozenset(allowed_mime_types or ALL_ALLOWED_MIME_TYPES)
        self.concurrency = concurrency
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout = timeout
        self._on_progress = on_progress
        self._on_complete = on_complete
        self._sleep = sleep

        self.records: Dict[str, UploadProgress] = {}
        self._queue: Deque[str] = deque()
        self._workers: Set[asyncio.Task] = set()
        self._inflight: Dict[str, asyncio.Task] = {}
        self._results: List[dict] = []
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def active_count(self) -> int:
        """Number of transfers currently in flight."""
        return len(self._inflight)

    @property
    def queued_ids(self) -> List[str]:
        return list(self._queue)

    def submit(self, files: Iterable[FileHandle]) -> List[UploadProgress]:
        """
        Validate files and queue the valid ones for upload.

        Fire-and-forget: returns immediately with the new records. Must be
        called while an event loop is running.
        """
        created = []
        queued = 0

        for file in files:
            record = UploadProgress(file=file)
            rejection = self._validate(file)
            if rejection:
                record.status = UploadStatus.ERROR
                record.error = rejection
                logger.warning(f"Rejected {file.name}: {rejection}")
            else:
                self._queue.append(file.id)
                queued += 1

            self.records[file.id] = record
            created.append(record)
            self._notify(record)

        if queued:
            self._idle.clear()
            self._spawn_workers()
            logger.info(f"Queued {queued} file(s), {len(self._queue)} waiting")

        return created

    def cancel(self, file_id: str) -> bool:
        """
        Cancel a pending or in-flight upload. Cancellation is terminal.

        Returns:
            bool: False if the upload is unknown or not cancellable
        """
        record = self.records.get(file_id)
        if record is None or record.is_terminal:
            return False

        if file_id in self._queue:
            self._queue.remove(file_id)

        record.transition(UploadStatus.CANCELLED)
        record.error = None

        task = self._inflight.get(file_id)
        if task is not None:
            task.cancel()

        logger.info(f"Cancelled upload of {record.file.name}")
        self._notify(record)
        self._maybe_finish_batch()
        return True

    def retry(self, file_id: str) -> bool:
        """
        Manually re-queue a failed upload with a fresh attempt budget.

        Returns:
            bool: False unless the upload is currently in error
        """
        record = self.records.get(file_id)
        if record is None or record.status is not UploadStatus.ERROR:
            return False
        if self._validate(record.file):
            return False

        record.progress = 0
        record.retry_count = 0
        record.error = None
        self._queue.append(file_id)
        self._idle.clear()
        self._spawn_workers()
        self._notify(record)
        return True

    def remove(self, file_id: str) -> None:
        """Cancel the upload if needed and forget its record."""
        record = self.records.get(file_id)
        if record is None:
            return
        if not record.is_terminal:
            self.cancel(file_id)
        self.records.pop(file_id, None)

    def clear_completed(self) -> None:
        for file_id in [i for i, r in self.records.items() if r.status is UploadStatus.COMPLETED]:
            del self.records[file_id]

    async def wait(self) -> None:
        """Wait until the queue is drained and no transfer is in flight."""
        await self._idle.wait()

    async def close(self) -> None:
        """Cancel everything still queued or in flight and stop the workers."""
        for file_id in list(self._queue) + list(self._inflight):
            self.cancel(file_id)
        for worker in list(self._workers):
            worker.cancel()
        if self._workers:
            await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()
        self._idle.set()

    def _validate(self, file: FileHandle) -> Optional[str]:
        if file.size > self.max_file_size:
            return "File too large"
        if file.mime_type not in self.allowed_mime_types:
            return "File type not allowed"
        return None

    def _notify(self, record: UploadProgress) -> None:
        if self._on_progress is not None:
            self._on_progress(record)

    def _spawn_workers(self) -> None:
        # Workers not holding a transfer are free to take queued files
        while (
            len(self._workers) < self.concurrency
            and len(self._workers) - len(self._inflight) < len(self._queue)
        ):
            worker = asyncio.ensure_future(self._worker())
            self._workers.add(worker)

    async def _worker(self) -> None:
        current = asyncio.current_task()
        try:
            while self._queue:
                file_id = self._queue.popleft()
                await self._process(file_id)
        finally:
            self._workers.discard(current)
            self._maybe_finish_batch()

    async def _process(self, file_id: str) -> None:
        record = self.records[file_id]
        record.transition(UploadStatus.UPLOADING)
        record.progress = 0
        record.error = None
        self._notify(record)

        task = asyncio.ensure_future(self._upload_with_retries(record))
        self._inflight[file_id] = task

        try:
            result = await task
        except asyncio.CancelledError:
            if record.status is not UploadStatus.CANCELLED:
                raise
            return
        except UploadError as e:
            record.transition(UploadStatus.ERROR)
            record.error = e.message
            logger.error(f"Upload of {record.file.name} failed after {record.retry_count} attempt(s): {e.message}")
        except Exception as e:
            record.transition(UploadStatus.ERROR)
            record.error = "Upload failed"
            logger.exception(f"Unexpected error uploading {record.file.name}: {e}")
        else:
            record.transition(UploadStatus.COMPLETED)
            record.progress = 100
            record.result = result
            self._results.append(result)
            logger.info(f"Uploaded {record.file.name}")
        finally:
            self._inflight.pop(file_id, None)

        self._notify(record)

    async def _upload_with_retries(self, record: UploadProgress) -> dict:
        """
        Attempt the transfer until it succeeds or the retry budget is spent.

        Rate-limited attempts wait for the server's Retry-After and are not
        charged to the budget. Timeouts are retried like network failures.
        """
        policy = self.retry_policy

        def on_bytes(sent: int, total: int) -> None:
            if total and record.status is UploadStatus.UPLOADING:
                record.progress = round(sent / total * 100)
                self._notify(record)

        while True:
            record.retry_count += 1
            record.progress = 0

            try:
                send = self._transport.send(record.file, on_bytes)
                if self.timeout is not None:
                    return await asyncio.wait_for(send, timeout=self.timeout)
                return await send
            except UploadError as e:
                error = e
            except asyncio.TimeoutError:
                error = UploadError(f"Upload timed out after {self.timeout}s")

            if error.is_rate_limited:
                record.retry_count -= 1
                delay = error.retry_after
                if delay is None:
                    delay = policy.compute_delay(max(record.retry_count, 1))
                logger.warning(f"Rate limited uploading {record.file.name}, waiting {delay:.1f}s")
                await self._sleep(delay)
                continue

            if not error.retryable or not policy.should_retry(record.retry_count):
                raise error

            delay = policy.compute_delay(record.retry_count)
            logger.warning(
                f"Attempt {record.retry_count} for {record.file.name} failed "
                f"({error.message}), retrying in {delay:.1f}s"
            )
            record.error = error.message
            self._notify(record)
            await self._sleep(delay)

    def _maybe_finish_batch(self) -> None:
        if self._queue or self._inflight or self._workers:
            return
        if self._idle.is_set():
            return

        results, self._results = self._results, []
        self._idle.set()
        logger.info(f"Upload batch finished: {len(results)} succeeded")

        if results and self._on_complete is not None:
            self._on_complete(results)
