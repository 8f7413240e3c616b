import asyncio
import logging
from datetime import date, datetime
from enum import Enum
from typing import Optional

from groundpass.base.errors import ConflictSkipped, StoreError
from groundpass.base.passes import Pass, PassKey
from groundpass.common.utils import utc_now, utc_to_local
from groundpass.database.store import PassStore
from groundpass.recorder.api import Recorder
from groundpass.scheduler.config import SchedulerConfig

logger = logging.getLogger(__name__)


class PassState(Enum):
    PENDING = "pending"
    ARMED = "armed"
    FIRED = "fired"
    FAILED = "failed"
    SKIPPED_PAST = "skipped_past"
    SKIPPED_CONFLICT = "skipped_conflict"


TERMINAL_STATES = {PassState.FIRED, PassState.FAILED, PassState.SKIPPED_PAST, PassState.SKIPPED_CONFLICT}


class RecordingScheduler:
    """Arms one timer per selected pass and lets at most one recording run at a time.

    The scheduler is the only writer of `recorded` and the only caller of the recorder. Everything runs on one event
    loop, so the in-progress flag is read and written without locking.
    """

    def __init__(self, config: SchedulerConfig, store: PassStore, recorder: Recorder):
        self.config: SchedulerConfig = config
        self.store: PassStore = store
        self.recorder: Recorder = recorder

        self.timers: dict[PassKey, asyncio.Task] = {}
        self.armed: dict[PassKey, Pass] = {}
        self.states: dict[PassKey, PassState] = {}

        self.is_recording = False
        self.current_recording: Optional[Pass] = None
        self._recording_handle: Optional[asyncio.Future] = None
        self._watchdog: Optional[asyncio.TimerHandle] = None

    ## Selection ##

    @staticmethod
    def select_top(passes: list[Pass], day: date, n: int, now: datetime = None) -> list[Pass]:
        """Best `n` passes of `day` (UTC) by max elevation, skipping recorded passes and passes already started."""
        if n < 1:
            raise ValueError(f"n must be at least 1, got {n}")
        if now is None:
            now = utc_now()
        candidates = [p for p in passes if p.start_time.date() == day and not p.recorded and p.start_time >= now]
        candidates.sort(key=lambda p: p.max_elevation, reverse=True)
        return candidates[:n]

    ## Arming ##

    def arm(self, passes: list[Pass], now: datetime = None) -> list[Pass]:
        """Arm a one-shot timer at the start time of each pass. Returns the passes newly armed."""
        if now is None:
            now = utc_now()
        newly_armed = []
        for p in passes:
            key = p.key
            if p.recorded:
                logger.info(f"Pass {key} is already recorded, not arming.")
                continue
            if key in self.timers or self.states.get(key) in TERMINAL_STATES:
                continue

            delay = (p.start_time - now).total_seconds()
            if delay <= 0:
                self.states[key] = PassState.SKIPPED_PAST
                logger.info(f"Pass {key} started {-delay:.0f} s ago, skipping recording.")
                continue

            self.states[key] = PassState.ARMED
            self.armed[key] = p
            self.timers[key] = asyncio.create_task(self._fire_after(p, delay))
            newly_armed.append(p)
            logger.info(
                f"Scheduling recording for {p.object} at {self.format_time(p.start_time)} "
                f"for {p.duration_minutes} minutes (max elevation {p.max_elevation})"
            )
        return newly_armed

    def cancel(self, key: PassKey) -> None:
        timer = self.timers.pop(key, None)
        self.armed.pop(key, None)
        if timer is not None and not timer.done():
            timer.cancel()
            self.states[key] = PassState.PENDING
            logger.info(f"Cancelled timer for {key}")

    def cancel_all(self) -> None:
        for key in list(self.timers):
            self.cancel(key)

    async def _fire_after(self, p: Pass, delay: float) -> PassState:
        await asyncio.sleep(delay)
        return await self.fire(p)

    ## Firing ##

    async def fire(self, p: Pass) -> PassState:
        """Start the recording of `p` unless another recording is in progress."""
        key = p.key
        self.timers.pop(key, None)
        self.armed.pop(key, None)

        if self.is_recording:
            self.states[key] = PassState.SKIPPED_CONFLICT
            active = self.current_recording.key if self.current_recording else None
            logger.warning(f"Scheduling conflict: {ConflictSkipped(key, active)}")
            return self.states[key]

        self.is_recording = True
        self.current_recording = p
        logger.info(f"Recording {p.object} at {self.format_time(p.start_time)} for {p.duration_minutes} minutes...")
        try:
            handle = await self.recorder.start(p.channel, p.start_time, p.object, p.duration_minutes)
        except Exception as e:
            logger.error(f"Failed to start recording of {key}: {e}")
            self.states[key] = PassState.FAILED
            self._clear_recording(p)
            return self.states[key]

        self.states[key] = PassState.FIRED
        self._recording_handle = handle
        handle.add_done_callback(lambda fut: self._on_recording_done(p, fut))
        deadline = p.duration_minutes * 60 + self.config.RECORDING_GRACE
        self._watchdog = asyncio.get_running_loop().call_later(deadline, self._on_recording_overrun, p, handle)

        try:
            self.store.mark_recorded(p)
        except StoreError as e:
            logger.error(f"Recording of {key} started but could not be marked as recorded: {e}")
        return self.states[key]

    def _on_recording_done(self, p: Pass, fut: asyncio.Future) -> None:
        if fut.cancelled():
            logger.warning(f"Recording of {p.key} was cancelled")
        elif fut.exception() is not None:
            logger.error(f"Recording of {p.key} failed: {fut.exception()}")
        else:
            logger.info(f"Done recording {p.key}")
        self._clear_recording(p)

    def _on_recording_overrun(self, p: Pass, handle: asyncio.Future) -> None:
        logger.error(f"Recording of {p.key} did not finish within {p.duration_minutes} minutes, cancelling it")
        handle.cancel()
        self._clear_recording(p)

    def _clear_recording(self, p: Pass) -> None:
        if self.current_recording is not None and self.current_recording.key != p.key:
            return
        if self._watchdog is not None:
            self._watchdog.cancel()
        self._watchdog = None
        self._recording_handle = None
        self.current_recording = None
        self.is_recording = False

    ## Cycle ##

    def tick(self, now: datetime = None) -> list[Pass]:
        """Reload the schedule, select today's best passes and re-arm timers to match the selection.

        Passes of today that were already recorded or fired count against `PASSES_PER_DAY`. A timer whose pass is due
        is left to fire even though the pass no longer qualifies for selection, and keeps its slot.

        Raises:
            StoreUnavailable: the schedule file cannot be read
        """
        if now is None:
            now = utc_now()
        today = now.date()
        passes = self.store.load()
        used = self.used_today(passes, now)
        remaining = self.config.PASSES_PER_DAY - len(used)
        selected = self.select_top(passes, today, remaining, now=now) if remaining > 0 else []
        selected_keys = {p.key for p in selected}

        for key in list(self.timers):
            if key in selected_keys or self.armed[key].start_time <= now:
                continue
            self.cancel(key)
        self.arm(selected, now=now)

        # Forget states of earlier days
        for key in [k for k in self.states if k.date < today.isoformat()]:
            del self.states[key]
        return selected

    def used_today(self, passes: list[Pass], now: datetime) -> set[PassKey]:
        """Keys of today's passes that already took a recording slot: recorded, fired, or armed and due."""
        day = now.date().isoformat()
        used = {p.key for p in passes if p.recorded and p.key.date == day}
        used.update(key for key, state in self.states.items() if state == PassState.FIRED and key.date == day)
        used.update(key for key, p in self.armed.items() if p.start_time <= now and key.date == day)
        return used

    async def stop(self) -> None:
        logger.info("Stopping scheduler.")
        timers = list(self.timers.values())
        self.cancel_all()
        await asyncio.gather(*timers, return_exceptions=True)

    ## Status ##

    def format_time(self, t: datetime) -> str:
        return utc_to_local(t, self.config.TIMEZONE).strftime("%d %b %Y %H:%M %Z")

    def format_pass_details(self, p: Optional[Pass]) -> dict:
        """Format pass details for logging and status reporting."""
        details = {}
        if p:
            details["object"] = p.object
            details["channel"] = p.channel
            details["start"] = utc_to_local(p.start_time, self.config.TIMEZONE).isoformat()
            details["end"] = utc_to_local(p.end_time, self.config.TIMEZONE).isoformat()
            details["duration_minutes"] = p.duration_minutes
            details["max_elevation"] = p.max_elevation
        return details

    def status(self) -> dict:
        armed = sorted(self.armed.values(), key=lambda p: p.start_time)
        return {
            "is_recording": self.is_recording,
            "current_recording": self.format_pass_details(self.current_recording),
            "armed": [self.format_pass_details(p) for p in armed],
            "states": {str(key): state.value for key, state in self.states.items()},
        }
