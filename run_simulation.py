#!/usr/bin/env python3
"""Command-line driver: run one M/M/1 simulation to its horizon."""

import argparse
import logging
import sys
from typing import List, Optional

from mm1_engine import (
    ConfigurationError,
    RateUnit,
    SimulationConfig,
    SimulationController,
    compare_with_theory,
    summarize,
    to_per_minute,
)


def build_config(args: argparse.Namespace) -> SimulationConfig:
    unit = RateUnit.HOURS if args.unit == 'hours' else RateUnit.MINUTES
    return SimulationConfig(
        arrival_rate=to_per_minute(args.arrival_rate, unit),
        service_rate=to_per_minute(args.service_rate, unit),
        horizon=args.time,
        tick_delta=args.delta,
        random_seed=args.seed,
        use_lcg=args.lcg,
    )


def print_results(sim: SimulationController) -> None:
    stats = sim.statistics()
    elapsed = sim.logical_time
    state = sim.state()

    print("\n=== Simulation Results ===")
    print(f"Logical time: {elapsed:.4f} min")
    print(f"In system at horizon: {state.customers_in_system} "
          f"(queue {state.customers_in_queue}, server {'busy' if state.server_busy else 'idle'})")

    print("\nRun Metrics:")
    for metric, value in summarize(stats, elapsed).items():
        print(f"  {metric}: {value:.4f}")

    print("\nTheoretical vs Simulated:")
    for row in compare_with_theory(stats, elapsed, sim.config.arrival_rate, sim.config.service_rate):
        print(f"  {row['Metric']}: theory={row['Theoretical']:.4f} "
              f"sim={row['Simulated']:.4f} err={row['Abs Error']:.4f}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(description='Run an M/M/1 queue simulation')
    parser.add_argument('--arrival-rate', type=float, default=3.0,
                        help='Arrival rate lambda (default: 3.0)')
    parser.add_argument('--service-rate', type=float, default=4.0,
                        help='Service rate mu (default: 4.0)')
    parser.add_argument('--unit', choices=['minutes', 'hours'], default='minutes',
                        help='Unit the rates are given in (default: minutes)')
    parser.add_argument('-t', '--time', type=float, default=60.0,
                        help='Horizon in minutes (default: 60)')
    parser.add_argument('-d', '--delta', type=float, default=0.1,
                        help='Logical minutes per tick (default: 0.1)')
    parser.add_argument('-s', '--seed', type=int, default=42,
                        help='Random seed (default: 42)')
    parser.add_argument('--lcg', action='store_true',
                        help='Use the linear congruential generator')
    parser.add_argument('-o', '--output', type=str,
                        help='Write a JSON export of the run')
    parser.add_argument('--series-csv', type=str,
                        help='Write the (time, customers_in_system) series as CSV')
    parser.add_argument('-q', '--quiet', action='store_true',
                        help='Suppress console output')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Log lifecycle transitions')
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING,
                        format='%(levelname)s %(name)s: %(message)s')

    try:
        config = build_config(args)
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    sim = SimulationController(config)
    sim.run_to_completion()

    if not args.quiet:
        print_results(sim)

    if args.output:
        with open(args.output, 'w') as f:
            f.write(sim.export_to_json())
        if not args.quiet:
            print(f"\nResults saved to: {args.output}")

    if args.series_csv:
        sim.get_time_series_dataframe().to_csv(args.series_csv, index=False)
        if not args.quiet:
            print(f"Time series saved to: {args.series_csv}")

    return 0


if __name__ == '__main__':
    sys.exit(main())
