"""Background scheduling of discovery runs.

Each photo moves through PENDING -> IN_FLIGHT -> IDLE. Events for a
pending photo are coalesced into its single scheduled run; events for an
in-flight photo mark it for one more run once the current one finishes.
A photo is never processed by two workers at once, while different
photos run concurrently up to ``max_workers``.
"""

import asyncio
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from resonance.config import DiscoverySettings, get_settings
from resonance.discovery.models import JobKind, PhotoState, SchedulerStatus
from resonance.discovery.pipeline import DiscoveryPipeline
from resonance.exceptions import DiscoveryError, ErrorCode
from resonance.logging_config import get_logger
from resonance.observability.metrics import track_coalesced_event, track_scheduler_backlog

logger = get_logger(__name__)


@dataclass
class _Slot:
    """Scheduling bookkeeping for one photo."""

    state: PhotoState
    kind: JobKind
    queued: bool = False
    rerun: bool = False
    # Set by a removal and kept when a re-analysis supersedes it.
    retire_pending: bool = False
    timer: asyncio.TimerHandle | None = None


class DiscoveryScheduler:
    """Debounces photo events and runs the pipeline on background workers.

    ``on_photo_analyzed`` and ``on_photo_removed`` never block: they only
    update bookkeeping and arm a timer. They may be called from any thread;
    calls from outside the scheduler's loop are marshalled onto it. Events
    that arrive before ``start`` are held and processed once started.
    """

    def __init__(
        self,
        pipeline: DiscoveryPipeline,
        settings: DiscoverySettings | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            pipeline: Pipeline executed for each photo.
            settings: Worker and debounce configuration.
        """
        self._pipeline = pipeline
        self._settings = settings or get_settings().discovery
        self._slots: dict[str, _Slot] = {}
        self._lock = threading.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue[str] | None = None
        self._workers: list[asyncio.Task[None]] = []
        self._executor: ThreadPoolExecutor | None = None
        self._idle: asyncio.Event | None = None

    @property
    def running(self) -> bool:
        """Whether workers are active."""
        return self._loop is not None

    async def start(self) -> None:
        """Start worker tasks and process any held events."""
        if self.running:
            return

        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._idle = asyncio.Event()
        self._executor = ThreadPoolExecutor(
            max_workers=self._settings.max_workers,
            thread_name_prefix="resonance-score",
        )
        self._workers = [
            asyncio.create_task(self._worker(), name=f"discovery-worker-{n}")
            for n in range(self._settings.max_workers)
        ]

        with self._lock:
            held = [pid for pid, slot in self._slots.items() if slot.state is PhotoState.PENDING]
        for photo_id in held:
            self._arm(photo_id, delay=0.0)
        self._refresh_idle()

        logger.info(
            "Discovery scheduler started",
            extra={"workers": self._settings.max_workers, "held": len(held)},
        )

    async def stop(self) -> None:
        """Cancel workers and timers. Unfinished photos stay pending."""
        if not self.running:
            return

        with self._lock:
            for slot in self._slots.values():
                if slot.timer is not None:
                    slot.timer.cancel()
                    slot.timer = None
                slot.queued = False
                slot.state = PhotoState.PENDING

        workers, self._workers = self._workers, []
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)

        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
        self._executor = None
        self._loop = None
        self._queue = None
        self._idle = None

        logger.info("Discovery scheduler stopped", extra={"pending": len(self._slots)})

    def on_photo_analyzed(self, photo_id: str) -> None:
        """Schedule (or reschedule) discovery for an analyzed photo."""
        if self._marshal(self.on_photo_analyzed, photo_id):
            return

        with self._lock:
            slot = self._slots.get(photo_id)
            if slot is None:
                self._slots[photo_id] = _Slot(PhotoState.PENDING, JobKind.ANALYZE)
                delay: float | None = self._settings.debounce_seconds
            elif slot.state is PhotoState.IN_FLIGHT:
                slot.kind = JobKind.ANALYZE
                slot.rerun = True
                delay = None
            else:
                slot.kind = JobKind.ANALYZE
                # Restart the debounce window unless already handed to a worker.
                delay = None if slot.queued else self._settings.debounce_seconds

        if slot is not None:
            track_coalesced_event(JobKind.ANALYZE.value)
        if delay is not None:
            self._arm(photo_id, delay)
        self._refresh_idle()

    def on_photo_removed(self, photo_id: str) -> None:
        """Schedule link retirement for a removed photo.

        Removal supersedes any analysis still pending for the photo and is
        not debounced. If the photo is analyzed again before the removal
        runs, its old links are still retired before the new analysis.
        """
        if self._marshal(self.on_photo_removed, photo_id):
            return

        with self._lock:
            slot = self._slots.get(photo_id)
            if slot is None:
                self._slots[photo_id] = _Slot(
                    PhotoState.PENDING, JobKind.REMOVE, retire_pending=True
                )
                arm = True
            elif slot.state is PhotoState.IN_FLIGHT:
                slot.kind = JobKind.REMOVE
                slot.retire_pending = True
                slot.rerun = True
                arm = False
            else:
                slot.kind = JobKind.REMOVE
                slot.retire_pending = True
                arm = not slot.queued

        if slot is not None:
            track_coalesced_event(JobKind.REMOVE.value)
        if arm:
            self._arm(photo_id, delay=0.0)
        self._refresh_idle()

    # Store listener protocol
    def on_features_changed(self, photo_id: str) -> None:
        """Feature store hook: features of a photo changed."""
        self.on_photo_analyzed(photo_id)

    def on_features_removed(self, photo_id: str) -> None:
        """Feature store hook: a photo was removed."""
        self.on_photo_removed(photo_id)

    def state_of(self, photo_id: str) -> PhotoState:
        """Current scheduling state of a photo."""
        slot = self._slots.get(photo_id)
        return slot.state if slot is not None else PhotoState.IDLE

    def status(self) -> SchedulerStatus:
        """Snapshot of scheduler counts."""
        with self._lock:
            states = [slot.state for slot in self._slots.values()]
        return SchedulerStatus(
            running=self.running,
            workers=self._settings.max_workers,
            pending=states.count(PhotoState.PENDING),
            in_flight=states.count(PhotoState.IN_FLIGHT),
        )

    async def wait_idle(self) -> None:
        """Wait until no photo is pending or in flight.

        Raises:
            DiscoveryError: If the scheduler is stopped with work outstanding.
        """
        while self._slots:
            if self._idle is None:
                raise DiscoveryError(
                    "Scheduler is not running",
                    code=ErrorCode.SCHEDULER_STOPPED,
                    details={"pending": len(self._slots)},
                )
            await self._idle.wait()

    def _marshal(self, method: Callable[[str], None], photo_id: str) -> bool:
        """Re-dispatch a call made outside the scheduler's loop thread."""
        loop = self._loop
        if loop is None:
            return False
        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            current = None
        if current is loop:
            return False
        loop.call_soon_threadsafe(method, photo_id)
        return True

    def _arm(self, photo_id: str, delay: float) -> None:
        """Hand a pending photo to the workers after ``delay`` seconds."""
        loop = self._loop
        if loop is None:
            return

        with self._lock:
            slot = self._slots.get(photo_id)
            if slot is None:
                return
            if slot.timer is not None:
                slot.timer.cancel()
                slot.timer = None
            if delay > 0:
                slot.timer = loop.call_later(delay, self._enqueue, photo_id)
                return
        self._enqueue(photo_id)

    def _enqueue(self, photo_id: str) -> None:
        if self._queue is None:
            return
        with self._lock:
            slot = self._slots.get(photo_id)
            if slot is None or slot.state is not PhotoState.PENDING or slot.queued:
                return
            slot.timer = None
            slot.queued = True
        self._queue.put_nowait(photo_id)

    async def _worker(self) -> None:
        assert self._queue is not None
        queue = self._queue
        while True:
            photo_id = await queue.get()
            try:
                await self._process(photo_id)
            finally:
                queue.task_done()

    async def _process(self, photo_id: str) -> None:
        with self._lock:
            slot = self._slots.get(photo_id)
            if slot is None or slot.state is not PhotoState.PENDING:
                return
            slot.state = PhotoState.IN_FLIGHT
            slot.queued = False
            slot.rerun = False
            kind = slot.kind
            retire = slot.retire_pending
            slot.retire_pending = False
        track_scheduler_backlog(len(self._slots))

        cancelled = False
        try:
            if retire:
                await self._pipeline.retire(photo_id)
            if kind is JobKind.ANALYZE:
                await self._pipeline.run(photo_id, executor=self._executor)
        except asyncio.CancelledError:
            cancelled = True
            raise
        except Exception:
            # Contained: one photo's failure must not stall the others.
            logger.exception(
                "Discovery run failed",
                extra={"photo_id": photo_id, "kind": kind.value},
            )
        finally:
            with self._lock:
                if cancelled:
                    # Stopped mid-run; the photo is picked up again on restart.
                    slot.state = PhotoState.PENDING
                    slot.queued = False
                    slot.retire_pending = slot.retire_pending or retire
                    delay = None
                elif slot.rerun:
                    slot.state = PhotoState.PENDING
                    slot.rerun = False
                    delay = 0.0 if slot.retire_pending else self._settings.debounce_seconds
                else:
                    self._slots.pop(photo_id, None)
                    delay = None
            if delay is not None:
                self._arm(photo_id, delay)
            track_scheduler_backlog(len(self._slots))
            self._refresh_idle()

    def _refresh_idle(self) -> None:
        if self._idle is None:
            return
        if self._slots:
            self._idle.clear()
        else:
            self._idle.set()
