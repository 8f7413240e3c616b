"""
Recording activation seen from the scheduler: `start` kicks off a bounded recording and hands back a future that
completes when the recording ends, successfully or not. The capture and encode pipeline lives outside this package.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime

logger = logging.getLogger(__name__)


class Recorder(ABC):
    @abstractmethod
    async def start(self, channel: str, at_time: datetime, sat_id: str, duration_minutes: int) -> asyncio.Future:
        """Start recording `channel` for `duration_minutes`.

        Returns: future resolving when the recording has ended
        Raises: any exception if the recording could not be started
        """
        raise NotImplementedError


class DryRunRecorder(Recorder):
    """Logs recordings instead of capturing anything; each one simply runs for its duration."""

    def __init__(self, seconds_per_minute: float = 60.0):
        self.seconds_per_minute = seconds_per_minute
        self.history: list[dict] = []

    async def start(self, channel: str, at_time: datetime, sat_id: str, duration_minutes: int) -> asyncio.Future:
        logger.info(f"(dry run) Recording {sat_id} on {channel} at {at_time.isoformat()} for {duration_minutes} minutes")
        self.history.append(
            {"channel": channel, "at_time": at_time, "sat_id": sat_id, "duration_minutes": duration_minutes}
        )
        return asyncio.create_task(self._run(sat_id, duration_minutes))

    async def _run(self, sat_id: str, duration_minutes: int):
        await asyncio.sleep(duration_minutes * self.seconds_per_minute)
        logger.info(f"(dry run) Done recording {sat_id}")
