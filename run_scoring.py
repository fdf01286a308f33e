#!/usr/bin/env python3
"""
Fitness Index - Main CLI Script

This is the command-line entry point for scoring a user's fitness metrics.
It loads a user-metrics JSON file, scores it against a normative table and
prints a report (or the raw result as JSON). The scoring itself is delegated
to the fitness_core module.
"""

import argparse
import json
import logging
import os

from jsonschema import ValidationError, validate

from fitness_core import (
    calculate_fitness_index,
    get_performance_label,
    results_table,
    serialize_result,
)
from fitness_models import (
    DOMAINS,
    InvalidUserMetricsError,
    NormativeDataError,
    UserMetrics,
)
from normative_data import DEFAULT_NORMATIVE_DATA_PATH, load_normative_data

logger = logging.getLogger(__name__)

# JSON Schema for user-metrics files
USER_METRICS_SCHEMA = {
    "type": "object",
    "required": ["age", "gender", "vo2max", "domains"],
    "properties": {
        "age": {"type": "number", "exclusiveMinimum": 0},
        "gender": {"type": "string", "minLength": 1},
        "vo2max": {"type": "number", "exclusiveMinimum": 0},
        "domains": {
            "type": "object",
            "additionalProperties": {"type": "number"},
        },
    },
    "additionalProperties": False,
}


def load_user_metrics(metrics_path):
    """
    Loads and validates a user-metrics JSON file.

    Args:
        metrics_path (str): Path to the JSON file.

    Returns:
        UserMetrics: The parsed metrics.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        InvalidUserMetricsError: If the JSON is malformed or fails the schema.
    """
    if not os.path.exists(metrics_path):
        raise FileNotFoundError(f"Metrics file not found: {metrics_path}")

    with open(metrics_path, "r") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise InvalidUserMetricsError(f"Metrics file is not valid JSON: {e}") from e

    try:
        validate(data, USER_METRICS_SCHEMA)
    except ValidationError as e:
        raise InvalidUserMetricsError(f"Invalid metrics file: {e.message}") from e

    unknown = sorted(set(data["domains"]) - set(DOMAINS))
    if unknown:
        logger.warning(
            f"Non-standard domains (scored only if weighted): {', '.join(unknown)}"
        )

    return UserMetrics.from_dict(data)


def ordinal(n):
    """1 -> "1st", 83 -> "83rd", 12 -> "12th"."""
    if 11 <= n % 100 <= 13:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def format_report(user_metrics, result, normative_data):
    """Human-readable summary of a ScoringResult."""
    fitness_age = (
        f"{result.fitness_age:.1f}" if result.fitness_age is not None else "N/A"
    )
    if result.vo2_percentile is not None:
        vo2 = (
            f"{ordinal(result.vo2_percentile)} percentile "
            f"({get_performance_label(result.vo2_percentile)})"
        )
    else:
        vo2 = "N/A (no norms for this age/gender)"

    lines = [
        "Fitness Index Report",
        "=" * 40,
        f"Age: {user_metrics.age}   Gender: {user_metrics.gender}   "
        f"VO2max: {user_metrics.vo2max} mL/kg/min",
        "",
        f"Fitness Index:     {result.fitness_index:.1f}",
        f"Fitness Age:       {fitness_age}",
        f"VO2max Percentile: {vo2}",
        "",
    ]

    table = results_table(result, normative_data)
    if table.empty:
        lines.append("No domain scores supplied.")
    else:
        lines.append(table.to_string(index=False, float_format=lambda v: f"{v:.2f}"))
    return "\n".join(lines)


def main(argv=None):
    """Main CLI function with argument parsing."""
    parser = argparse.ArgumentParser(
        description="Score fitness metrics against normative population data",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_scoring.py metrics.json                    # Bundled norms
  python run_scoring.py metrics.json --norms norms.json # Custom norms
  python run_scoring.py metrics.json --json             # Machine-readable
        """,
    )

    parser.add_argument(
        "metrics_file",
        nargs="?",
        default="example_metrics.json",
        help="Path to user-metrics JSON file (default: example_metrics.json)",
    )

    parser.add_argument(
        "--norms",
        "-n",
        default=DEFAULT_NORMATIVE_DATA_PATH,
        help="Path to normative data JSON file (default: bundled table)",
    )

    parser.add_argument(
        "--json",
        "-j",
        action="store_true",
        help="Print the scoring result as JSON",
    )

    parser.add_argument(
        "--help-config",
        action="store_true",
        help="Show detailed help about the metrics file format",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    if args.help_config:
        show_config_help()
        return 0

    try:
        normative_data = load_normative_data(args.norms)
        user_metrics = load_user_metrics(args.metrics_file)
    except FileNotFoundError as e:
        print(f"Error: {e}")
        print()
        print("Run with --help-config to see the expected JSON format.")
        return 1
    except NormativeDataError as e:
        print(f"Error: invalid normative data: {e}")
        return 1
    except InvalidUserMetricsError as e:
        print(f"Error: {e}")
        return 1

    result = calculate_fitness_index(user_metrics, normative_data)

    if args.json:
        print(json.dumps(serialize_result(result), indent=2))
    else:
        print(format_report(user_metrics, result, normative_data))
    return 0


def show_config_help():
    """Show detailed help about the metrics file format."""
    help_text = """
Metrics File Format
===================

{
  "age": <age in years>,
  "gender": "<male|female|m|f>",
  "vo2max": <VO2max in mL/kg/min>,
  "domains": {
    "Strength": <0-100>,
    "Endurance": <0-100>,
    "Power": <0-100>,
    "Mobility": <0-100>,
    "BodyComp": <0-100>,
    "Recovery": <0-100>
  }
}

Notes:
- Domain scores are expected on a 0-100 scale
- Missing domains are left out of the Fitness Index; the remaining
  weights are renormalized
- Genders or ages without VO2max norms report "N/A" for the VO2max
  percentile and fitness age
    """
    print(help_text)


if __name__ == "__main__":
    exit(main())
