from datetime import datetime, timedelta, timezone

import pytest

from groundpass.astrodynamics.api import PassDetector, Predictor
from groundpass.astrodynamics.config import AstrodynamicsConfig
from groundpass.astrodynamics.elements import OrbitalElements
from groundpass.astrodynamics.sampler import Sample
from groundpass.base.errors import ElementsInvalid, ElementsNotFound

T0 = datetime(2024, 5, 1, 0, 0, tzinfo=timezone.utc)
MINUTE = timedelta(minutes=1)
ELEMENTS = OrbitalElements(name="NOAA 19", line1="1 33591U", line2="2 33591")


class DetectorConfig(AstrodynamicsConfig):
    MAX_RANGE = 1_000_000
    BUFFER_MINUTES = 2
    STEP_SECONDS = 60
    DAYS_TO_PROPAGATE = 1
    CHANNELS = {"NOAA 19": "137.1M", "NOAA 18": "137.9125M"}


class ScriptedSampler:
    """Visible only at the scripted minutes (offset from T0), with the scripted elevation and range."""

    def __init__(self, table: dict[int, tuple[float, float]], invalid: set = frozenset()):
        self.table = table
        self.invalid = invalid
        self.calls = 0

    def sample(self, elements, instant):
        if elements.name in self.invalid:
            raise ElementsInvalid(elements.name, "bad checksum")
        self.calls += 1
        minute = int((instant - T0).total_seconds() // 60)
        if minute in self.table:
            elevation, range_ = self.table[minute]
            return Sample(time=instant, visible=True, elevation=elevation, range=range_)
        return Sample(time=instant, visible=False)


def visible_minutes(minutes, elevation=30.0, range_=500_000.0):
    return {m: (elevation, range_) for m in minutes}


def test_single_pass_scenario():
    # Elevation peaks at 42 deg and range dips to 310 km in the middle of minutes [120, 135)
    table = {m: (42.0 - 3 * abs(m - 127), 310_000.0 + 20_000 * abs(m - 127)) for m in range(120, 135)}
    detector = PassDetector(DetectorConfig(), sampler=ScriptedSampler(table))

    passes = detector.detect_passes(ELEMENTS, T0, T0 + timedelta(days=10), channel="137.1M")

    assert len(passes) == 1
    p = passes[0]
    assert p.max_elevation == 42.00
    assert p.min_range == 310000.00
    assert p.start_time == T0 + 118 * MINUTE
    assert p.end_time == T0 + 137 * MINUTE
    assert p.duration_minutes == 19
    assert p.recorded is False
    assert p.object == "NOAA 19"
    assert p.channel == "137.1M"


def test_no_visible_samples_yields_no_passes():
    detector = PassDetector(DetectorConfig(), sampler=ScriptedSampler({}))
    assert detector.detect_passes(ELEMENTS, T0, T0 + timedelta(hours=3)) == []


@pytest.mark.parametrize(
    "minutes, expected_runs",
    [
        ([0, 1, 2, 5, 9], [(0, 3), (5, 6), (9, 10)]),
        ([3, 4, 5, 6], [(3, 7)]),
        (list(range(10)), [(0, 10)]),
        ([1, 3, 5, 7], [(1, 2), (3, 4), (5, 6), (7, 8)]),
    ],
)
def test_one_interval_per_contiguous_run(minutes, expected_runs):
    detector = PassDetector(DetectorConfig(), sampler=ScriptedSampler(visible_minutes(minutes)))

    intervals = detector.find_intervals(ELEMENTS, T0, T0 + 10 * MINUTE, MINUTE, max_range=1_000_000)

    assert [(i.start, i.end) for i in intervals] == [(T0 + a * MINUTE, T0 + b * MINUTE) for a, b in expected_runs]


def test_pass_open_at_window_end_is_closed_at_window_end():
    detector = PassDetector(DetectorConfig(), sampler=ScriptedSampler(visible_minutes(range(55, 70))))

    passes = detector.detect_passes(ELEMENTS, T0, T0 + 60 * MINUTE, buffer=timedelta(0))

    assert len(passes) == 1
    assert passes[0].start_time == T0 + 55 * MINUTE
    assert passes[0].end_time == T0 + 60 * MINUTE


def test_samples_beyond_max_range_split_a_pass():
    table = visible_minutes(range(10, 20))
    table[14] = (35.0, 1_500_000.0)
    detector = PassDetector(DetectorConfig(), sampler=ScriptedSampler(table))

    intervals = detector.find_intervals(ELEMENTS, T0, T0 + 30 * MINUTE, MINUTE, max_range=1_000_000)

    assert [(i.start, i.end) for i in intervals] == [(T0 + 10 * MINUTE, T0 + 14 * MINUTE), (T0 + 15 * MINUTE, T0 + 20 * MINUTE)]


def test_aggregates_bound_every_sample():
    table = {10: (5.5, 900_000.0), 11: (17.25, 640_000.0), 12: (33.333, 420_123.4), 13: (12.0, 700_000.0)}
    detector = PassDetector(DetectorConfig(), sampler=ScriptedSampler(table))

    (p,) = detector.detect_passes(ELEMENTS, T0, T0 + 30 * MINUTE)

    assert p.max_elevation == 33.33
    assert p.avg_elevation == round((5.5 + 17.25 + 33.333 + 12.0) / 4, 2)
    assert p.min_range == 420123.4
    assert p.avg_range == round((900_000.0 + 640_000.0 + 420_123.4 + 700_000.0) / 4, 2)
    assert all(p.max_elevation >= round(el, 2) for el, _ in table.values())
    assert all(p.min_range <= round(r, 2) for _, r in table.values())


@pytest.mark.parametrize("buffer_minutes", [0, 1, 2, 10])
def test_buffer_expands_both_ends(buffer_minutes):
    detector = PassDetector(DetectorConfig(), sampler=ScriptedSampler(visible_minutes(range(100, 112))))
    buffer = timedelta(minutes=buffer_minutes)

    (p,) = detector.detect_passes(ELEMENTS, T0, T0 + timedelta(hours=4), buffer=buffer)

    assert p.start_time == T0 + 100 * MINUTE - buffer
    assert p.end_time == T0 + 112 * MINUTE + buffer
    assert p.duration_minutes == 12 + 2 * buffer_minutes


def test_invalid_arguments():
    detector = PassDetector(DetectorConfig(), sampler=ScriptedSampler({}))
    with pytest.raises(ValueError):
        detector.detect_passes(ELEMENTS, T0, T0 + MINUTE, step=timedelta(0))
    with pytest.raises(ValueError):
        detector.detect_passes(ELEMENTS, T0, T0)


def test_invalid_elements_propagate_from_detector():
    detector = PassDetector(DetectorConfig(), sampler=ScriptedSampler({}, invalid={"NOAA 19"}))
    with pytest.raises(ElementsInvalid):
        detector.detect_passes(ELEMENTS, T0, T0 + MINUTE * 10)


class DictSource:
    def __init__(self, elements: dict[str, OrbitalElements]):
        self.elements = elements
        self.loads = 0

    def load(self):
        self.loads += 1
        return self.elements

    def get(self, name):
        if name not in self.elements:
            raise ElementsNotFound(name, "not in source")
        return self.elements[name]


def test_predictor_isolates_per_object_failures():
    config = DetectorConfig()
    config.CHANNELS = {"NOAA 15": "137.62M", "NOAA 18": "137.9125M", "NOAA 19": "137.1M"}
    sampler = ScriptedSampler(visible_minutes(range(30, 40)), invalid={"NOAA 18"})
    source = DictSource(
        {
            "NOAA 18": OrbitalElements("NOAA 18", "1 28654U", "2 28654"),
            "NOAA 19": ELEMENTS,
        }
    )
    predictor = Predictor(config, detector=PassDetector(config, sampler=sampler), source=source)

    result = predictor.predict(now=T0 + timedelta(seconds=42))

    assert result.window_start == T0
    assert result.window_end == T0 + timedelta(days=1)
    assert set(result.failures) == {"NOAA 15", "NOAA 18"}
    assert [(p.object, p.channel) for p in result.passes] == [("NOAA 19", "137.1M")]
    assert source.loads == 1


class SecondSampler:
    """Visible only at the scripted instants."""

    def __init__(self, instants):
        self.instants = set(instants)

    def sample(self, elements, instant):
        if instant in self.instants:
            return Sample(time=instant, visible=True, elevation=12.0, range=800_000.0)
        return Sample(time=instant, visible=False)


@pytest.mark.parametrize(
    "visible, expected_start, expected_end",
    [
        ([T0], T0, T0 + MINUTE),
        ([T0 + timedelta(seconds=90)], T0 + MINUTE, T0 + 2 * MINUTE),
        ([T0 + timedelta(seconds=s) for s in (30, 60, 90)], T0, T0 + 2 * MINUTE),
    ],
)
def test_sub_minute_step_keeps_a_non_empty_pass(visible, expected_start, expected_end):
    detector = PassDetector(DetectorConfig(), sampler=SecondSampler(visible))

    (p,) = detector.detect_passes(ELEMENTS, T0, T0 + 5 * MINUTE, step=timedelta(seconds=30), buffer=timedelta(0))

    assert p.start_time == expected_start
    assert p.end_time == expected_end
    assert p.duration_minutes == (expected_end - expected_start) // MINUTE
