"""Turn time-stepped satellite positions into Pass records. Based on TLE's for now."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

import numpy as np

from groundpass.astrodynamics.config import AstrodynamicsConfig
from groundpass.astrodynamics.elements import OrbitalElements, TLEFileSource
from groundpass.astrodynamics.sampler import PositionSampler
from groundpass.base.errors import ElementsError
from groundpass.base.passes import Pass
from groundpass.common.utils import ceil_to_minute, ensure_utc, floor_to_minute, utc_now

logger = logging.getLogger(__name__)


@dataclass
class RawInterval:
    """Un-buffered visibility interval [start, end) with per-sample aggregates."""

    start: datetime
    end: datetime
    elevations: list[float] = field(default_factory=list)
    ranges: list[float] = field(default_factory=list)

    @property
    def max_elevation(self) -> float:
        return float(np.max(self.elevations))

    @property
    def avg_elevation(self) -> float:
        return float(np.mean(self.elevations))

    @property
    def min_range(self) -> float:
        return float(np.min(self.ranges))

    @property
    def avg_range(self) -> float:
        return float(np.mean(self.ranges))


class PassDetector:
    def __init__(self, config: AstrodynamicsConfig, sampler: PositionSampler = None):
        self.config: AstrodynamicsConfig = config
        self.sampler: PositionSampler = sampler if sampler is not None else PositionSampler(config)

    def find_intervals(
        self,
        elements: OrbitalElements,
        window_start: datetime,
        window_end: datetime,
        step: timedelta,
        max_range: float,
    ) -> list[RawInterval]:
        """Segment the sample grid [window_start, window_end) into maximal runs of in-view samples.

        A sample is in view when the sampler flags it visible and its ground range is within `max_range`. A run still
        open at the end of the window is closed at `window_end`.

        Raises:
            ElementsInvalid: propagated from the sampler
        """
        intervals = []
        current: Optional[RawInterval] = None
        t = window_start
        while t < window_end:
            sample = self.sampler.sample(elements, t)
            in_view = sample.visible and sample.range is not None and sample.range <= max_range
            if in_view:
                if current is None:
                    current = RawInterval(start=t, end=t)
                current.elevations.append(sample.elevation)
                current.ranges.append(sample.range)
            elif current is not None:
                current.end = t
                intervals.append(current)
                current = None
            t += step

        if current is not None:
            current.end = window_end
            intervals.append(current)
        return intervals

    def detect_passes(
        self,
        elements: OrbitalElements,
        window_start: datetime,
        window_end: datetime,
        step: timedelta = None,
        max_range: float = None,
        buffer: timedelta = None,
        channel: str = "",
    ) -> list[Pass]:
        """Detect passes of a satellite over the ground station.

        The start is floored and the end rounded up to the minute, so a run shorter than a minute still yields a
        one-minute pass.

        Args:
            elements: orbital elements of the satellite
            window_start: first sample time (UTC)
            window_end: exclusive end of the sample grid (UTC)
            step: sample spacing, defaults to `STEP_SECONDS`
            max_range: ground range limit (meters), defaults to `MAX_RANGE`
            buffer: margin added before and after each interval, defaults to `BUFFER_MINUTES`
            channel: channel tag stored on every pass

        Returns: list of Pass, ascending in start time, `recorded` False
        """
        if step is None:
            step = timedelta(seconds=self.config.STEP_SECONDS)
        if max_range is None:
            max_range = self.config.MAX_RANGE
        if buffer is None:
            buffer = timedelta(minutes=self.config.BUFFER_MINUTES)
        window_start, window_end = ensure_utc(window_start), ensure_utc(window_end)
        if step <= timedelta(0):
            raise ValueError(f"step must be positive, got {step}")
        if window_end <= window_start:
            raise ValueError(f"empty window {window_start} - {window_end}")

        passes = []
        for interval in self.find_intervals(elements, window_start, window_end, step, max_range):
            passes.append(
                Pass(
                    object=elements.name,
                    channel=channel,
                    start_time=interval.start - buffer,
                    end_time=ceil_to_minute(interval.end + buffer),
                    max_elevation=interval.max_elevation,
                    avg_elevation=interval.avg_elevation,
                    min_range=interval.min_range,
                    avg_range=interval.avg_range,
                )
            )
        logger.info(f"Detected {len(passes)} passes of {elements.name}")
        return passes


@dataclass
class PredictionResult:
    window_start: datetime
    window_end: datetime
    passes: list[Pass] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)


class Predictor:
    """Run pass detection for every configured satellite."""

    def __init__(self, config: AstrodynamicsConfig, detector: PassDetector = None, source: TLEFileSource = None):
        self.config: AstrodynamicsConfig = config
        self.detector: PassDetector = detector if detector is not None else PassDetector(config)
        self.source: TLEFileSource = source if source is not None else TLEFileSource(config.TLE_PATH)

    def predict(self, now: datetime = None) -> PredictionResult:
        if now is None:
            now = utc_now()
        window_start = floor_to_minute(now)
        window_end = window_start + timedelta(days=self.config.DAYS_TO_PROPAGATE)
        result = PredictionResult(window_start=window_start, window_end=window_end)

        self.source.load()
        for sat_id, channel in self.config.CHANNELS.items():
            try:
                elements = self.source.get(sat_id)
                logger.info(f"Processing satellite: {sat_id}")
                passes = self.detector.detect_passes(elements, window_start, window_end, channel=channel)
            except ElementsError as e:
                logger.error(f"Skipping {sat_id}: {type(e).__name__} {e}")
                result.failures[sat_id] = str(e)
                continue
            result.passes.extend(passes)

        logger.info(f"Predicted {len(result.passes)} passes for {len(self.config.CHANNELS)} satellites")
        return result
