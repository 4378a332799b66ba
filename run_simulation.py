#!/usr/bin/env python3
"""Command-line entry point: run a ring traffic simulation for a while.

Example:
    python run_simulation.py --vehicles normal=8 --vehicles aggressive=3 --duration 20 --stats-csv stats.csv
"""

import argparse
import logging
import math
import random
import sys
import time
from typing import Dict, List, Optional

from tqdm import tqdm

from scenario import DEFAULT_SCENARIO, load_scenario
from simulation import Simulation
from vehicle import VehicleBehaviour, VehicleControllerType

LOG = logging.getLogger("run_simulation")

DEFAULT_COUNTS = {
    VehicleControllerType.CAUTIOUS: 4,
    VehicleControllerType.NORMAL: 8,
    VehicleControllerType.AGGRESSIVE: 3,
}


def parse_vehicle_counts(values: Optional[List[str]]) -> Dict[VehicleControllerType, int]:
    """Parse ``TYPE=COUNT`` items into a controller-type mapping.

    Repeated types are summed.  Without items, the default population is used.
    """
    if not values:
        return dict(DEFAULT_COUNTS)

    counts: Dict[VehicleControllerType, int] = {}
    for item in values:
        name, sep, raw_count = item.partition("=")
        if not sep:
            raise ValueError(f"Expected TYPE=COUNT, got '{item}'.")
        controller_type = VehicleControllerType.parse(name)
        try:
            count = int(raw_count)
        except ValueError:
            raise ValueError(f"Vehicle count in '{item}' is not an integer.") from None
        counts[controller_type] = counts.get(controller_type, 0) + count
    return counts


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Ring traffic micro-simulation")
    parser.add_argument("--scenario", default=str(DEFAULT_SCENARIO), help="Scenario JSON file")
    parser.add_argument("--behaviour", choices=[b.value for b in VehicleBehaviour], default="loop",
                        help="What vehicles do at the end of their itinerary")
    parser.add_argument("--vehicles", action="append", metavar="TYPE=COUNT",
                        help="Vehicles per controller type (cautious, normal, aggressive); repeatable")
    parser.add_argument("--duration", type=float, default=10.0, help="Wall-clock seconds to run")
    parser.add_argument("--delta", type=float, default=None, help="Simulated seconds per tick")
    parser.add_argument("--seed", type=int, default=None, help="Seed of the vehicle shuffle")
    parser.add_argument("--stats-rate", type=float, default=1.0, help="Seconds between statistics samples")
    parser.add_argument("--stats-csv", default=None, help="Write the statistics to this CSV file")
    parser.add_argument("--frame", default=None, help="Save the last rendered frame to this image file")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Logging level")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        stream=sys.stdout,
        format="%(asctime)s [%(threadName)s] %(levelname)s %(name)s: %(message)s",
    )

    try:
        if not (math.isfinite(args.duration) and args.duration >= 0):
            raise ValueError(f"--duration must be a non-negative number, got {args.duration}.")
        counts = parse_vehicle_counts(args.vehicles)
        scenario = load_scenario(args.scenario)
        simulation = Simulation(
            scenario,
            VehicleBehaviour(args.behaviour),
            counts,
            rng=random.Random(args.seed),
            statistics_rate_s=args.stats_rate,
        )
        if args.delta is not None:
            simulation.set_delta(args.delta)
    except (OSError, ValueError, KeyError) as exc:
        LOG.error("cannot set up the simulation: %s", exc)
        return 2

    simulation.loop()
    try:
        steps = max(1, int(round(args.duration)))
        with tqdm(total=steps, desc="Simulating", unit="s") as pbar:
            for _ in range(steps):
                time.sleep(args.duration / steps)
                pbar.set_postfix(ticks=simulation.clock.ticks)
                pbar.update(1)
                if simulation.clock.failure is not None:
                    break
    except KeyboardInterrupt:
        LOG.info("interrupted")
    finally:
        simulation.stop_loop()

    stats = simulation.stats.to_dataframe()
    print(stats.tail())
    if args.stats_csv:
        stats.to_csv(args.stats_csv)
        LOG.info("statistics written to %s", args.stats_csv)
    if args.frame:
        simulation.render_context.save(args.frame)

    return 1 if simulation.clock.failure is not None else 0


if __name__ == "__main__":
    sys.exit(main())
