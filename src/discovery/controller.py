"""
Discovery controller - schedules, throttles and applies camera probes
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Awaitable, Callable, Deque, Dict, List, Optional, Set

from .backoff import compute_delay
from .diagnostics import redact_device_id
from .models import DiscoveryRecord, DiscoveryState, FailureInfo
from .probe import RtspProbe
from .registry import DiscoveryRegistry

logger = logging.getLogger(__name__)

EndpointProvider = Callable[[str], Awaitable[str]]
EligibilityPredicate = Callable[[DiscoveryRecord], bool]


def now_ms() -> int:
    return int(time.time() * 1000)


class DiscoveryEventKind(str, Enum):
    VERIFIED = "verified"
    PROBE_FAILED = "probe_failed"


@dataclass
class DiscoveryEvent:
    """Probe outcome published on DiscoveryController.events"""
    kind: DiscoveryEventKind
    device_id: str
    time: int
    failure: Optional[FailureInfo] = None


@dataclass
class ControllerOptions:
    """Scheduling limits; durations in milliseconds except probe_timeout (seconds)"""
    max_concurrent: int = 2
    debounce_ms: int = 10_000
    backoff_base_ms: int = 15_000
    backoff_max_ms: int = 600_000
    probe_timeout: float = 5.0
    max_pending_events: int = 1000

    def validate(self) -> None:
        if self.max_concurrent < 1:
            raise ValueError(f"max_concurrent must be at least 1, got {self.max_concurrent}")
        if self.debounce_ms < 0:
            raise ValueError(f"debounce_ms must not be negative, got {self.debounce_ms}")
        if self.backoff_base_ms <= 0 or self.backoff_max_ms <= 0:
            raise ValueError("backoff_base_ms and backoff_max_ms must be positive")
        if self.probe_timeout <= 0:
            raise ValueError(f"probe_timeout must be positive, got {self.probe_timeout}")
        if self.max_pending_events < 1:
            raise ValueError(f"max_pending_events must be at least 1, got {self.max_pending_events}")


class DiscoveryController:
    """
    Decides when and whether each registry device gets probed.

    Requests pass through a per-device timer (debounce/backoff, newest request
    wins) into a FIFO queue drained by at most ``max_concurrent`` probe tasks.
    A device that is already queued or being probed is never queued twice; a
    forced request for a device being probed runs once that probe finishes.
    Unread events beyond ``max_pending_events`` are discarded oldest first.
    All bookkeeping runs on the event loop thread, so no locking is needed.
    """

    def __init__(
        self,
        registry: DiscoveryRegistry,
        probe: RtspProbe,
        endpoint_provider: EndpointProvider,
        options: Optional[ControllerOptions] = None,
        eligibility: Optional[EligibilityPredicate] = None,
        on_verified: Optional[Callable[[str], None]] = None,
        clock: Callable[[], int] = now_ms
    ):
        self.options = options or ControllerOptions()
        self.options.validate()

        self.registry = registry
        self.probe = probe
        self.endpoint_provider = endpoint_provider
        self.eligibility = eligibility
        self.on_verified = on_verified
        self.clock = clock

        self.events: "asyncio.Queue[DiscoveryEvent]" = asyncio.Queue(maxsize=self.options.max_pending_events)

        self._timers: Dict[str, asyncio.TimerHandle] = {}
        self._pending: Dict[str, bool] = {}  # queued device -> force flag
        self._queue: Deque[str] = deque()
        self._in_flight: Set[str] = set()
        self._rerun: Set[str] = set()  # in-flight devices owed a forced follow-up
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    # ================== INTROSPECTION ==================

    @property
    def pending_timers(self) -> List[str]:
        return list(self._timers)

    @property
    def queued(self) -> List[str]:
        return list(self._queue)

    @property
    def in_flight(self) -> Set[str]:
        return set(self._in_flight)

    @property
    def is_idle(self) -> bool:
        return not (self._timers or self._queue or self._tasks)

    # ================== PUBLIC OPERATIONS ==================

    def schedule_probe(self, device_id: str, immediate: bool = False, force: bool = False) -> bool:
        """
        Arm a probe for ``device_id``. Returns False when the device is not
        eligible and nothing was scheduled.

        ``force`` bypasses the verified-skip, the category filter and any
        remaining backoff; ``immediate`` skips the debounce delay.
        """
        record = self.registry.get_record(device_id)
        if record is None:
            return False
        if not force and record.state == DiscoveryState.VERIFIED:
            return False
        if record.online is False:
            return False
        if not force and not self._is_eligible(record):
            return False

        if immediate:
            delay_ms = 0
        else:
            backoff_ms = 0
            if not force and record.probe.backoff_until:
                backoff_ms = max(0, record.probe.backoff_until - self.clock())
            delay_ms = max(self.options.debounce_ms, backoff_ms)

        existing = self._timers.pop(device_id, None)
        if existing:
            existing.cancel()

        loop = asyncio.get_running_loop()
        self._timers[device_id] = loop.call_later(delay_ms / 1000, self._on_timer, device_id, force)

        logger.debug(f"[SCHEDULE] Probe for {redact_device_id(device_id)} in {delay_ms}ms (force={force})")
        return True

    def force_confirm(self, device_id: str) -> None:
        """Expose a device without proof; callers usually follow with a forced probe"""
        self.registry.mark_unverified(device_id)

    async def wait_idle(self) -> None:
        """Wait until no timers, queued devices or running probes remain"""
        while not self.is_idle:
            if self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)
            else:
                await asyncio.sleep(0.005)

    async def close(self) -> None:
        """Cancel pending timers and running probes (shutdown only)"""
        self._closed = True

        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        self._queue.clear()
        self._pending.clear()
        self._rerun.clear()

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Discovery controller stopped")

    # ================== QUEUE ==================

    def _is_eligible(self, record: DiscoveryRecord) -> bool:
        if self.eligibility is None:
            return True
        return self.eligibility(record)

    def _on_timer(self, device_id: str, force: bool) -> None:
        self._timers.pop(device_id, None)
        self._enqueue(device_id, force)

    def _enqueue(self, device_id: str, force: bool) -> None:
        if self._closed:
            return

        if device_id in self._pending:
            if force:
                self._pending[device_id] = True
            return

        if device_id in self._in_flight:
            if force:
                self._rerun.add(device_id)
                logger.debug(f"Probe running for {redact_device_id(device_id)}, forced follow-up queued")
            else:
                logger.debug(f"Probe already running for {redact_device_id(device_id)}, not queueing")
            return

        self._pending[device_id] = force
        self._queue.append(device_id)
        self._drain()

    def _drain(self) -> None:
        while not self._closed and self._queue and len(self._in_flight) < self.options.max_concurrent:
            device_id = self._queue.popleft()
            force = self._pending.pop(device_id, False)
            self._in_flight.add(device_id)

            task = asyncio.create_task(self._run_probe(device_id, force))
            self._tasks.add(task)
            task.add_done_callback(partial(self._on_probe_done, device_id))

    def _on_probe_done(self, device_id: str, task: asyncio.Task) -> None:
        self._in_flight.discard(device_id)
        self._tasks.discard(task)

        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Probe task for {redact_device_id(device_id)} failed unexpectedly: {task.exception()}")

        if device_id in self._rerun:
            self._rerun.discard(device_id)
            self._enqueue(device_id, True)

        self._drain()

    # ================== PROBE EXECUTION ==================

    async def _run_probe(self, device_id: str, force: bool) -> None:
        # State may have changed while the device sat in the queue
        record = self.registry.get_record(device_id)
        if record is None:
            return
        if not force and record.state == DiscoveryState.VERIFIED:
            return
        if not force and not self._is_eligible(record):
            return

        self.registry.record_probe_attempt(device_id, self.clock())
        label = f"{record.identity.name} ({redact_device_id(device_id)})"

        try:
            endpoint = await self.endpoint_provider(device_id)
            result = await self.probe.validate(endpoint, self.options.probe_timeout)
        except Exception as e:
            logger.warning(f"[PROBE] {label} could not be probed: {e}")
            self._record_failure(device_id, FailureInfo(
                time=self.clock(),
                message=str(e) or e.__class__.__name__,
            ))
            return

        if not result.ok:
            logger.info(f"[PROBE] {label} failed validation: {result.error or result.status_line}")
            self._record_failure(device_id, FailureInfo(
                time=self.clock(),
                status_code=result.status_code,
                message=result.error or "validation-failed",
            ))
            return

        if device_id not in self.registry:
            logger.debug(f"Dropping probe result for removed device {redact_device_id(device_id)}")
            return

        success_time = self.clock()
        self.registry.mark_verified(device_id, success_time)
        logger.info(f"[VERIFIED] {label} answered with status {result.status_code}")

        self._publish(DiscoveryEvent(DiscoveryEventKind.VERIFIED, device_id, success_time))
        if self.on_verified:
            try:
                self.on_verified(device_id)
            except Exception as e:
                logger.error(f"on_verified callback failed for {redact_device_id(device_id)}: {e}")

    def _record_failure(self, device_id: str, failure: FailureInfo) -> None:
        record = self.registry.get_record(device_id)
        if record is None:
            logger.debug(f"Dropping probe failure for removed device {redact_device_id(device_id)}")
            return

        failure_count = record.probe.failure_count + 1
        delay_ms = compute_delay(failure_count, self.options.backoff_base_ms, self.options.backoff_max_ms)
        self.registry.record_failure(device_id, failure, failure.time + delay_ms)

        self._publish(DiscoveryEvent(DiscoveryEventKind.PROBE_FAILED, device_id, failure.time, failure))

    def _publish(self, event: DiscoveryEvent) -> None:
        if self.events.full():
            dropped = self.events.get_nowait()
            logger.debug(f"Event queue full, discarding {dropped.kind.value} event for {redact_device_id(dropped.device_id)}")
        self.events.put_nowait(event)
