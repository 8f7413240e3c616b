import asyncio
import logging
import signal
import time

from groundpass.astrodynamics.api import PredictionResult, Predictor
from groundpass.astrodynamics.config import AstrodynamicsConfig
from groundpass.base.config import LogConfig
from groundpass.common.log import setup_logging
from groundpass.common.utils import utc_now, wait_until_first_completed
from groundpass.database.store import PassStore
from groundpass.recorder.api import DryRunRecorder, Recorder
from groundpass.scheduler.api import RecordingScheduler
from groundpass.scheduler.config import SchedulerConfig

logger = logging.getLogger(__name__)


class SchedulerController:
    """Owns the prediction cycle and the scheduler tick, both driven from one event loop."""

    def __init__(
        self,
        config: SchedulerConfig = None,
        astro_config: AstrodynamicsConfig = None,
        recorder: Recorder = None,
        predictor: Predictor = None,
        shutdown_event: asyncio.Event = None,
    ):
        if config is None:
            config = SchedulerConfig()
        if astro_config is None:
            astro_config = AstrodynamicsConfig()
        if recorder is None:
            if not config.DRY_RUN:
                raise ValueError("A recorder is required unless DRY_RUN is set")
            recorder = DryRunRecorder()
        self.config: SchedulerConfig = config
        self.store = PassStore(config)
        self.predictor: Predictor = predictor if predictor is not None else Predictor(astro_config)
        self.scheduler = RecordingScheduler(config, self.store, recorder)
        self.shutdown_event: asyncio.Event = shutdown_event if shutdown_event is not None else asyncio.Event()
        self.last_prediction: float = None

    async def update_passes(self) -> PredictionResult:
        """Run detection off the event loop, then merge and save on it so the scheduler stays the only concurrent writer.

        Raises:
            StoreError: the merged schedule could not be read or saved
        """
        logger.info("Updating passes...")
        result = await asyncio.to_thread(self.predictor.predict, utc_now())
        self.store.update(result.passes)
        self.last_prediction = time.monotonic()
        if result.failures:
            logger.warning(f"No passes for {len(result.failures)} satellites: {', '.join(result.failures)}")
        return result

    def prediction_due(self) -> bool:
        if self.last_prediction is None:
            return True
        return time.monotonic() - self.last_prediction >= self.config.PREDICT_INTERVAL

    async def run_cycle(self) -> None:
        try:
            if self.prediction_due():
                await self.update_passes()
            selected = self.scheduler.tick()
            logger.debug(f"Selected passes: {[self.scheduler.format_pass_details(p) for p in selected]}")
        except Exception as e:
            logger.error(f"Scheduling cycle failed: {type(e).__name__} {e}")

    async def run(self) -> None:
        logger.info("Starting scheduler.")
        while not self.shutdown_event.is_set():
            await self.run_cycle()
            await wait_until_first_completed([self.shutdown_event], [asyncio.sleep(self.config.TICK_INTERVAL)])

    async def stop(self) -> None:
        self.shutdown_event.set()
        await self.scheduler.stop()


async def main(log_config: LogConfig = None, config: SchedulerConfig = None, astro_config: AstrodynamicsConfig = None):
    setup_logging(log_config)
    shutdown_event = asyncio.Event()

    def signal_handler():
        shutdown_event.set()

    # Setup signal handlers for graceful shutdown
    loop = asyncio.get_running_loop()
    for signame in ("SIGINT", "SIGTERM"):
        loop.add_signal_handler(getattr(signal, signame), signal_handler)

    # Application setup
    controller = SchedulerController(config=config, astro_config=astro_config, shutdown_event=shutdown_event)

    try:
        await controller.run()

    except Exception as e:
        logger.error(f"An unexpected error occurred: {e}")

    finally:
        await controller.stop()


if __name__ == "__main__":
    asyncio.run(main())
