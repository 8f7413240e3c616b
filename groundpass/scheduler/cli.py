import argparse
import asyncio
import json
import logging
from datetime import date

from groundpass.astrodynamics.api import Predictor
from groundpass.astrodynamics.config import AstrodynamicsConfig
from groundpass.common.log import setup_logging
from groundpass.common.utils import CustomJSONEncoder, utc_now
from groundpass.database.store import PassStore
from groundpass.scheduler import controller
from groundpass.scheduler.api import RecordingScheduler
from groundpass.scheduler.config import SchedulerConfig


def handle_command(args, config: SchedulerConfig = None, astro_config: AstrodynamicsConfig = None):
    if config is None:
        config = SchedulerConfig()
    if astro_config is None:
        astro_config = AstrodynamicsConfig()
    store = PassStore(config)

    if args.command == "predict":
        result = Predictor(astro_config).predict()
        added = store.update(result.passes)
        response = {"predicted": len(result.passes), "added": added, "failures": result.failures}

    elif args.command == "show":
        day = date.fromisoformat(args.day) if args.day else utc_now().date()
        passes = store.passes_on(day)
        if args.top:
            passes = RecordingScheduler.select_top(passes, day, args.top)
        response = [p.to_dict() for p in passes]

    elif args.command == "status":
        scheduler = RecordingScheduler(config, store, recorder=None)
        now = utc_now()
        selected = RecordingScheduler.select_top(store.load(), now.date(), config.PASSES_PER_DAY, now=now)
        response = {"store": str(store.path), "next": [scheduler.format_pass_details(p) for p in selected]}

    print(json.dumps(response, indent=4, cls=CustomJSONEncoder))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Predict satellite passes and schedule recordings",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at INFO level")
    subparsers = parser.add_subparsers(dest="command", title="Commands", metavar="<command>")

    # Sub-command 'predict'
    subparsers.add_parser("predict", help="Run one prediction cycle and merge it into the schedule")

    # Sub-command 'show'
    parser_show = subparsers.add_parser("show", help="List scheduled passes of a day")
    parser_show.add_argument("--day", type=str, default=None, help="UTC day as YYYY-MM-DD, defaults to today")
    parser_show.add_argument("--top", type=int, default=0, help="Only the N best unrecorded future passes")

    # Sub-command 'status'
    subparsers.add_parser("status", help="Show the passes that would be armed now")

    # Sub-command 'run'
    subparsers.add_parser("run", help="Run the scheduler until interrupted")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "run":
        asyncio.run(controller.main())
    elif args.command:
        setup_logging(console=args.verbose)
        if not args.verbose:
            logging.getLogger().setLevel(logging.WARNING)
        handle_command(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
