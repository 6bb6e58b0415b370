"""
Alarm Poller
Periodically fetches alarms for the current device selection and hands
each result to a caller-supplied sink
"""
import asyncio
import inspect
import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from .errors import CMSError
from .models import AlarmResponse, CoordSystem
from .session_client import CMSSessionClient, SessionLike

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 5.0

AlarmSink = Callable[[AlarmResponse], Union[None, Awaitable[None]]]
ErrorHook = Callable[[Exception], None]


class PollerState(Enum):
    IDLE = 'idle'
    RUNNING = 'running'


@dataclass(frozen=True)
class AlarmQuery:
    """Immutable snapshot of what one tick should fetch"""
    session: SessionLike
    device_id: str = ''                     # '' = all devices
    coord_system: int = CoordSystem.WGS84


class AlarmSelection:
    """
    Thread-safe holder for the current alarm query.

    The foreground (CLI, UI thread) updates it; the poller takes one
    snapshot per tick, so a change never affects a request already in flight.
    """

    def __init__(self, query: AlarmQuery):
        self._lock = threading.Lock()
        self._query = query

    def snapshot(self) -> AlarmQuery:
        with self._lock:
            return self._query

    def update(self, **changes: Any) -> AlarmQuery:
        """Replace fields (session, device_id, coord_system)"""
        with self._lock:
            self._query = replace(self._query, **changes)
            return self._query

    def __call__(self) -> AlarmQuery:
        return self.snapshot()


class AlarmPoller:
    """
    Two-state (Idle/Running) alarm poller.

    - start(): Idle -> Running, spawns one background task
    - stop(): Running -> Idle immediately; an in-flight request is not
      cancelled, but its result is discarded instead of reaching the sink
    - A failed tick is logged and counted, then skipped; the poller keeps running
    """

    def __init__(self, client: CMSSessionClient,
                 selection: Union[AlarmSelection, Callable[[], AlarmQuery]],
                 sink: AlarmSink,
                 interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
                 on_error: Optional[ErrorHook] = None):
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive: {interval_seconds}")
        self.client = client
        self.selection = selection
        self.sink = sink
        self.interval_seconds = interval_seconds
        self.on_error = on_error

        self._state = PollerState.IDLE
        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None

        self.stats = {
            'ticks': 0,
            'deliveries': 0,
            'alarms_delivered': 0,
            'suppressed_errors': 0,
            'discarded_results': 0,
            'last_error': None,
            'start_time': None,
        }

    @property
    def state(self) -> PollerState:
        return self._state

    @property
    def running(self) -> bool:
        return self._state is PollerState.RUNNING

    def start(self):
        """Arm the timer. No-op if already running. Must be called from a running loop."""
        if self._state is PollerState.RUNNING:
            logger.debug("Alarm poller already running")
            return

        # Fresh event per run: a previous run's task may still be finishing
        self._stop_event = asyncio.Event()
        self._state = PollerState.RUNNING
        self.stats['start_time'] = datetime.now(timezone.utc)
        self._task = asyncio.get_running_loop().create_task(
            self._run(self._stop_event), name='alarm-poller'
        )
        logger.info(f"Alarm poller started (interval={self.interval_seconds}s)")

    def stop(self):
        """Disarm the timer. Takes effect immediately; never blocks."""
        if self._state is PollerState.IDLE:
            return
        self._state = PollerState.IDLE
        if self._stop_event is not None:
            self._stop_event.set()
        logger.info("Alarm poller stopped")

    async def wait_closed(self):
        """Wait for the background task to finish (after stop())."""
        task = self._task
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _run(self, stop_event: asyncio.Event):
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.interval_seconds)
                break  # stop requested during the wait
            except asyncio.TimeoutError:
                pass

            await self._tick(stop_event)

    def _snapshot(self) -> AlarmQuery:
        if isinstance(self.selection, AlarmSelection):
            return self.selection.snapshot()
        return self.selection()

    async def _tick(self, stop_event: asyncio.Event):
        self.stats['ticks'] += 1

        try:
            query = self._snapshot()
        except Exception as e:
            self._suppress('Alarm selection unavailable', e)
            return

        try:
            response = await self.client.get_alarms(query.session, query.device_id, query.coord_system)
        except (CMSError, ValueError) as e:
            self._suppress('Alarm poll failed', e)
            return

        if stop_event.is_set():
            # Result of a request that was in flight when stop() was called
            self.stats['discarded_results'] += 1
            logger.debug("Discarding alarm result that arrived after stop")
            return

        try:
            result = self.sink(response)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"Alarm sink failed: {e}", exc_info=True)
            return

        self.stats['deliveries'] += 1
        self.stats['alarms_delivered'] += len(response.alarmlist)

    def _suppress(self, what: str, error: Exception):
        self.stats['suppressed_errors'] += 1
        self.stats['last_error'] = str(error)
        logger.warning(f"{what}, skipping tick "
                       f"({self.stats['suppressed_errors']} suppressed so far): {error!r}")
        if self.on_error is not None:
            try:
                self.on_error(error)
            except Exception as hook_error:
                logger.error(f"Alarm poller error hook failed: {hook_error}", exc_info=True)

    def get_stats(self) -> Dict[str, Any]:
        return {**self.stats, 'state': self._state.value, 'interval_seconds': self.interval_seconds}
