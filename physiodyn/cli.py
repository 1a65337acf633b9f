import argparse
import json
import logging
import sys
from pathlib import Path

from physiodyn.core.engine import compute
from physiodyn.core.metrics import summarize_response
from physiodyn.core.request import ComputeRequest, RequestValidationError

DEFAULT_REPORT_SIGNALS = ("glucose", "insulin", "cortisol", "dopamine", "melatonin", "adrenaline")


def load_scenario(path: str) -> dict:
    with open(path, "r") as f:
        return json.load(f)


def run_headless(args) -> int:
    """Run one JSON scenario and write the series to CSV."""
    scenario = {}
    if args.scenario:
        try:
            scenario = load_scenario(args.scenario)
        except (OSError, json.JSONDecodeError) as e:
            print(f"Error loading scenario: {e}", file=sys.stderr)
            return 2

    if args.duration is not None:
        scenario["duration"] = args.duration
    if args.dt is not None:
        scenario["dt"] = args.dt
    if args.record_homeostasis:
        scenario.setdefault("config", {})["record_homeostasis"] = True

    try:
        request = ComputeRequest.from_dict(scenario)
    except RequestValidationError as e:
        print(f"Invalid scenario: {e}", file=sys.stderr)
        return 2

    print(f"Simulating {request.times[-1] - request.times[0]:.0f} min "
          f"({request.times.size} points, {len(request.interventions)} interventions)...")
    response = compute(request)
    print(f"Simulation completed in {response.duration_ms:.1f} ms.")

    frame = response.to_frame()
    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    frame.to_csv(output)
    print(f"Wrote {output}")

    if args.homeostasis_out:
        with open(args.homeostasis_out, "w") as f:
            json.dump(response.homeostasis, f, indent=2)

    summary = summarize_response(response, signals=[s for s in DEFAULT_REPORT_SIGNALS if s in response.series])
    for key, metrics in summary.items():
        print(f"{key:>12}: peak {metrics['peak']:.2f} at {metrics['time_to_peak']:.0f} min | "
              f"AUC+ {metrics['auc_above_baseline']:.1f}")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="physiodyn - physiological signal simulator")
    parser.add_argument("--scenario", type=str, help="Path to JSON scenario file")
    parser.add_argument("--duration", type=float, default=None, help="Override scenario duration (min)")
    parser.add_argument("--dt", type=float, default=None, help="Override output step (min)")
    parser.add_argument("--output", type=str, default="physiodyn_series.csv", help="CSV output path")
    parser.add_argument("--homeostasis-out", type=str, default=None,
                        help="Write the terminal homeostasis snapshot to this JSON file")
    parser.add_argument("--record-homeostasis", action="store_true", help="Include homeostasis pools in the CSV")
    parser.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Logging level")

    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    return run_headless(args)


if __name__ == "__main__":
    sys.exit(main())
