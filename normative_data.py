"""
Normative Data Loading and Validation

Loads the normative reference table (per-domain population stats, domain
weights and age/gender-bucketed VO2max norms) from its JSON asset, validates
it once, and returns an immutable NormativeData for the scoring engine.

Validation covers:
- JSON Schema shape checks (jsonschema)
- Parsable "min-max" age range labels
- Mean VO2max non-increasing with age within each gender, which the
  fitness age interpolation depends on
"""

import functools
import json
import logging
import os

from jsonschema import ValidationError, validate

from fitness_models import (
    DEFAULT_DOMAIN_STATS,
    DomainStats,
    NormativeData,
    NormativeDataError,
    Vo2maxNormGroup,
    normalize_gender,
)

logger = logging.getLogger(__name__)

DEFAULT_NORMATIVE_DATA_PATH = os.path.join(
    os.path.dirname(os.path.abspath(__file__)), "data", "normative_data.json"
)

# Tolerance when checking that domain weights sum to 1
WEIGHT_SUM_TOLERANCE = 1e-6

# JSON Schema for the normative data asset
NORMATIVE_DATA_SCHEMA = {
    "type": "object",
    "required": ["domainWeights", "vo2maxNorms"],
    "properties": {
        "version": {"type": "string"},
        "description": {"type": "string"},
        "source": {"type": "string"},
        "lastUpdated": {"type": "string"},
        "dataSource": {"type": "string"},
        "domainWeights": {
            "type": "object",
            "additionalProperties": {"type": "number", "minimum": 0, "maximum": 1},
        },
        "domainStats": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "required": ["mean", "std"],
                "properties": {
                    "mean": {"type": "number"},
                    "std": {"type": "number", "minimum": 0},
                },
            },
        },
        "vo2maxNorms": {
            "type": "object",
            "additionalProperties": {
                "type": "array",
                "minItems": 1,
                "items": {
                    "type": "object",
                    "required": ["age", "mean"],
                    "properties": {
                        "age": {"type": "string", "pattern": "^\\d+(\\.\\d+)?-\\d+(\\.\\d+)?$"},
                        "mean": {"type": "number", "exclusiveMinimum": 0},
                        "std_dev": {"type": "number", "minimum": 0},
                        "std": {"type": "number", "minimum": 0},
                    },
                },
            },
        },
    },
}


def _build_vo2max_groups(gender, entries):
    """Parse, sort by minimum age and validate one gender's VO2max groups."""
    groups = []
    for entry in entries:
        std_dev = entry.get("std_dev", entry.get("std"))
        if std_dev is None:
            raise NormativeDataError(
                f"VO2max group {entry['age']!r} for {gender!r} has no std_dev"
            )
        # Raises NormativeDataError for labels like "30-20"
        groups.append(
            Vo2maxNormGroup(age_range=entry["age"], mean=entry["mean"], std_dev=std_dev)
        )

    groups.sort(key=lambda group: group.min_age)
    validate_vo2max_monotonic(gender, groups)
    return tuple(groups)


def validate_vo2max_monotonic(gender, groups):
    """
    Checks that mean VO2max never increases from one age group to the next.

    Args:
        gender (str): Gender key, used in the error message.
        groups (list): Vo2maxNormGroup objects ordered by age.

    Raises:
        NormativeDataError: If a group's mean exceeds the previous group's mean.
    """
    for younger, older in zip(groups, groups[1:]):
        if older.mean > younger.mean:
            raise NormativeDataError(
                f"VO2max norms for {gender!r} must not increase with age: "
                f"{older.age_range} mean {older.mean} > "
                f"{younger.age_range} mean {younger.mean}"
            )


def build_normative_data(raw):
    """
    Validates a raw normative table and converts it to NormativeData.

    Args:
        raw (dict): Table in the JSON asset format.

    Returns:
        NormativeData: Immutable, validated reference table.

    Raises:
        NormativeDataError: If the table fails schema or invariant checks.
    """
    try:
        validate(raw, NORMATIVE_DATA_SCHEMA)
    except ValidationError as e:
        raise NormativeDataError(f"Invalid normative data: {e.message}") from e

    domain_weights = dict(raw["domainWeights"])
    weight_total = sum(domain_weights.values())
    if domain_weights and abs(weight_total - 1) > WEIGHT_SUM_TOLERANCE:
        logger.warning(
            f"Domain weights sum to {weight_total:.4f}, not 1; "
            "the fitness index renormalizes over supplied domains"
        )

    raw_stats = raw.get("domainStats", {})
    domain_stats = {}
    for domain in dict.fromkeys([*DEFAULT_DOMAIN_STATS, *domain_weights, *raw_stats]):
        stats = raw_stats.get(domain) or DEFAULT_DOMAIN_STATS.get(domain)
        if stats is None:
            logger.warning(f"No population stats for domain {domain!r}")
            continue
        domain_stats[domain] = DomainStats(mean=stats["mean"], std=stats["std"])

    vo2max_norms = {}
    for gender, entries in raw["vo2maxNorms"].items():
        key = normalize_gender(gender)
        if key in vo2max_norms:
            raise NormativeDataError(f"Duplicate VO2max norms for gender {key!r}")
        vo2max_norms[key] = _build_vo2max_groups(key, entries)

    metadata = {
        name: raw[json_name]
        for name, json_name in (
            ("version", "version"),
            ("description", "description"),
            ("source", "source"),
            ("last_updated", "lastUpdated"),
        )
        if json_name in raw
    }

    return NormativeData(
        domain_stats=domain_stats,
        domain_weights=domain_weights,
        vo2max_norms=vo2max_norms,
        **metadata,
    )


def load_normative_data(path=DEFAULT_NORMATIVE_DATA_PATH):
    """
    Loads and validates a normative data JSON file.

    Args:
        path (str): Path to the JSON asset.

    Returns:
        NormativeData: Immutable, validated reference table.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        NormativeDataError: If the JSON is malformed or fails validation.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Normative data file not found: {path}")

    with open(path, "r") as f:
        try:
            raw = json.load(f)
        except json.JSONDecodeError as e:
            raise NormativeDataError(f"Normative data is not valid JSON: {e}") from e

    normative_data = build_normative_data(raw)
    logger.info(
        f"Loaded normative data v{normative_data.version} from {path} "
        f"({len(normative_data.vo2max_norms)} gender partitions)"
    )
    return normative_data


@functools.lru_cache(maxsize=1)
def get_default_normative_data():
    """Bundled normative table, loaded once per process."""
    return load_normative_data(DEFAULT_NORMATIVE_DATA_PATH)
