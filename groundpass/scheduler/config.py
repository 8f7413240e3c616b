from groundpass.base.config import StoreConfig


class SchedulerConfig(StoreConfig):
    name = "RecordingScheduler"

    PASSES_PER_DAY = 1  # best passes by max elevation to record each day
    TICK_INTERVAL = 60  # re-select and re-arm (seconds)
    PREDICT_INTERVAL = 12 * 3600  # re-run pass prediction (seconds)
    RECORDING_GRACE = 60  # allowed overrun of a recording before it is cancelled (seconds)
    TIMEZONE = "UTC"  # display only, scheduling is always in UTC
    DRY_RUN = True
