"""
Core Fitness Index Scoring Logic

This module contains the normative scoring engine: the pure functions that
convert raw user metrics into percentiles, a weighted composite Fitness
Index, and an estimated Fitness Age. It is the computational engine behind
the command-line front end and any presentation layer.

Sections:
- Statistics kernel (Z-scores, percentiles, rounding)
- Domain scoring and the composite index
- VO2max percentile and fitness age
- Orchestration
- Presentation helpers and input validation

The scoring path never raises for missing or out-of-range data. Fields that
cannot be resolved come back as None (or 0 for an empty composite), never
NaN.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal, localcontext

import numpy as np
import pandas as pd

from fitness_models import (
    DOMAINS,
    LOWEST_PERFORMANCE_LABEL,
    PERFORMANCE_LABELS,
    DomainScore,
    ScoringResult,
    UserMetrics,
)
from normative_data import get_default_normative_data

logger = logging.getLogger(__name__)

# Z-scores are clamped to this range before the CDF approximation
Z_CLAMP = 3.5

# Coefficients of the logistic normal-CDF approximation
# P(z) ~= 1 / (1 + exp(-0.07056 z^3 - 1.5976 z)), max abs error < 0.0002
LOGISTIC_CUBIC_COEF = 0.07056
LOGISTIC_LINEAR_COEF = 1.5976


# ---------------------------------------------------------------------------
# STATISTICS KERNEL
# ---------------------------------------------------------------------------


def is_number(value):
    """True for finite int/float values (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float, np.number)):
        return False
    return bool(np.isfinite(value))


def is_missing(value):
    """True for None, NaN and anything that isn't an int/float."""
    if isinstance(value, bool) or not isinstance(value, (int, float, np.number)):
        return True
    return bool(np.isnan(value))


def round_half_up(value, ndigits=1):
    """
    Rounds half away from zero, e.g. 74.25 -> 74.3.

    The value is first rounded to 9 places so binary noise such as
    74.24999999999999 from a weighted sum still rounds like 74.25. Infinite
    values are returned unchanged.
    """
    value = float(value)
    if not np.isfinite(value):
        return value
    cleaned = Decimal(repr(round(value, 9)))
    with localcontext() as ctx:
        # Room for every integer digit of huge values plus the decimals kept
        ctx.prec = max(ctx.prec, cleaned.adjusted() + ndigits + 2)
        return float(
            cleaned.quantize(Decimal(1).scaleb(-ndigits), rounding=ROUND_HALF_UP)
        )


def z_score(value, mean, std):
    """
    Calculates the Z-score of a value against a population mean and SD.

    Args:
        value (float): The individual data point.
        mean (float): The mean of the population.
        std (float): The standard deviation of the population.

    Returns:
        float: (value - mean) / std. Returns 0 when std is 0 (no population
               variance, the subject is treated as average), or NaN if any
               input is missing.
    """
    if pd.isna(value) or pd.isna(mean) or pd.isna(std):
        return np.nan
    if std == 0:
        return 0
    return (value - mean) / std


def normal_cdf(z):
    """Logistic approximation of the standard normal CDF, clamped to +/-3.5."""
    clamped_z = float(np.clip(z, -Z_CLAMP, Z_CLAMP))
    return 1 / (
        1
        + np.exp(
            -LOGISTIC_CUBIC_COEF * clamped_z**3 - LOGISTIC_LINEAR_COEF * clamped_z
        )
    )


def percentile_from_z(z):
    """
    Converts a Z-score to a whole-number percentile.

    Args:
        z (float): The Z-score.

    Returns:
        int: Percentile in [0, 100], rounded half up, or None for a missing z.
             Infinite z saturates at 0 or 100.
    """
    if is_missing(z):
        return None
    return int(np.floor(normal_cdf(z) * 100 + 0.5))


# ---------------------------------------------------------------------------
# DOMAIN SCORING AND COMPOSITE INDEX
# ---------------------------------------------------------------------------


def score_domain(raw_value, domain_stats):
    """
    Scores one raw domain value against its population stats.

    Args:
        raw_value (float): Domain score on the 0-100 scale.
        domain_stats (DomainStats): Population mean and SD for the domain.

    Returns:
        DomainScore: Z-score and percentile.
    """
    z = z_score(raw_value, domain_stats.mean, domain_stats.std)
    return DomainScore(z_score=z, percentile=percentile_from_z(z))


def weighted_average(domain_scores, domain_weights):
    """
    Calculates the weighted average of the domain scores that have weights.

    Domains without a weight, or whose score is not numeric, are skipped and
    the weights of the remaining domains are renormalized, so partial
    profiles are still scorable.

    Args:
        domain_scores (dict): Domain name -> score.
        domain_weights (dict): Domain name -> weight.

    Returns:
        float: The weighted average, or 0 if no domain matched.
    """
    total_value = 0
    total_weight = 0

    for domain, score in domain_scores.items():
        weight = domain_weights.get(domain)
        if weight and is_number(score):
            total_value += score * weight
            total_weight += weight

    if total_weight == 0:
        return 0
    return total_value / total_weight


def process_domain_scores(domain_scores, normalizers=None):
    """
    Converts raw domain inputs into 0-100 scores.

    Inputs are assumed to be normalized already, so without normalizers this
    is a pass-through. A normalizer maps one domain's raw metric (e.g. a 1RM
    in kg) to its 0-100 score.

    Args:
        domain_scores (dict): Domain name -> raw value.
        normalizers (dict): Optional domain name -> callable(raw) -> score.

    Returns:
        dict: New dict of processed domain scores.
    """
    normalizers = normalizers or {}
    processed = {}
    for domain, value in domain_scores.items():
        normalizer = normalizers.get(domain)
        processed[domain] = normalizer(value) if normalizer else value
    return processed


# ---------------------------------------------------------------------------
# VO2MAX PERCENTILE AND FITNESS AGE
# ---------------------------------------------------------------------------


def get_normative_group(age, gender, normative_data):
    """
    Finds the VO2max norm group covering an age for a gender.

    Returns:
        Vo2maxNormGroup: First group whose age range contains age, or None.
    """
    groups = normative_data.groups_for(gender)
    if not groups or not is_number(age):
        return None

    for group in groups:
        if group.min_age <= age <= group.max_age:
            return group
    return None


def calculate_vo2max_z_score(vo2max, age, gender, normative_data):
    """VO2max Z-score for the user's age/gender bracket, or None."""
    group = get_normative_group(age, gender, normative_data)
    if group is None or not is_number(vo2max):
        return None
    return float(z_score(vo2max, group.mean, group.std_dev))


def calculate_vo2max_percentile(vo2max, age, gender, normative_data):
    """
    Calculates the VO2max percentile for the user's age and gender.

    Returns:
        int: Percentile in [0, 100], or None if no norm group covers the user.
    """
    z = calculate_vo2max_z_score(vo2max, age, gender, normative_data)
    if z is None:
        return None
    return percentile_from_z(z)


def calculate_fitness_age(vo2max, gender, normative_data):
    """
    Estimates the age at which the population mean VO2max equals the user's.

    Groups are scanned in age order. The last group whose mean is at or above
    vo2max and the first group whose mean is below it bracket the user, and
    the age is interpolated between the two brackets' midpoint ages. Relies
    on mean VO2max being non-increasing with age, which is checked when the
    normative table is loaded.

    Args:
        vo2max (float): User's VO2max in mL/kg/min.
        gender (str): Gender lookup key.
        normative_data (NormativeData): Reference table.

    Returns:
        float: Fitness age rounded to 1 decimal. The youngest modeled age if
               the user is fitter than every group, the oldest modeled age if
               less fit than every group, or None without norms for gender.
    """
    groups = normative_data.groups_for(gender)
    if not groups or not is_number(vo2max):
        return None

    lower_bound = None
    upper_bound = None
    for group in groups:
        if group.mean >= vo2max:
            lower_bound = group
        else:
            upper_bound = group
            break

    # Fitter than every group: at least as young as the youngest modeled age
    if lower_bound is None:
        return groups[0].min_age
    # Less fit than every group: the oldest modeled age
    if upper_bound is None:
        return groups[-1].max_age

    lower_age = lower_bound.midpoint_age
    upper_age = upper_bound.midpoint_age
    mean_diff = lower_bound.mean - upper_bound.mean
    if mean_diff == 0:
        return lower_age

    fraction = (vo2max - upper_bound.mean) / mean_diff
    age = upper_age + fraction * (lower_age - upper_age)
    return round_half_up(age, 1)


# ---------------------------------------------------------------------------
# ORCHESTRATION
# ---------------------------------------------------------------------------


def calculate_fitness_index(user_metrics, normative_data=None, normalizers=None):
    """
    Calculates all fitness metrics for a user.

    Each sub-computation is independent: a gender or age without VO2max norms
    leaves vo2_percentile and fitness_age as None while the fitness index and
    domain scores are still computed.

    Args:
        user_metrics (UserMetrics or dict): The user's metrics. Dicts use the
            keys age, gender, vo2max and domains.
        normative_data (NormativeData): Reference table. Defaults to the
            bundled table.
        normalizers (dict): Optional per-domain raw -> 0-100 converters.

    Returns:
        ScoringResult: Fitness index, fitness age, VO2max percentile and
                       per-domain scores, z-scores and percentiles.
    """
    if isinstance(user_metrics, dict):
        user_metrics = UserMetrics.from_dict(user_metrics)
    if normative_data is None:
        normative_data = get_default_normative_data()

    # 1. Raw inputs -> 0-100 domain scores
    domain_scores = process_domain_scores(user_metrics.domain_scores, normalizers)

    # 2. Weighted composite over the domains actually supplied
    fitness_index = round_half_up(
        weighted_average(domain_scores, normative_data.domain_weights), 1
    )

    # Per-domain standing against population stats
    z_scores = {}
    domain_percentiles = {}
    for domain, score in domain_scores.items():
        stats = normative_data.domain_stats.get(domain)
        if stats is None or not is_number(score):
            continue
        result = score_domain(score, stats)
        z_scores[domain] = float(result.z_score)
        domain_percentiles[domain] = result.percentile

    # 3. VO2max percentile for the user's age/gender bracket
    vo2_z = calculate_vo2max_z_score(
        user_metrics.vo2max, user_metrics.age, user_metrics.gender, normative_data
    )
    vo2_percentile = percentile_from_z(vo2_z) if vo2_z is not None else None

    # 4. Fitness age
    fitness_age = calculate_fitness_age(
        user_metrics.vo2max, user_metrics.gender, normative_data
    )

    if vo2_percentile is None or fitness_age is None:
        logger.debug(
            f"No VO2max norms cover gender={user_metrics.gender!r}, "
            f"age={user_metrics.age!r}"
        )

    # 5. Assemble
    return ScoringResult(
        fitness_index=fitness_index,
        fitness_age=fitness_age,
        vo2_percentile=vo2_percentile,
        domain_scores=domain_scores,
        z_scores=z_scores,
        domain_percentiles=domain_percentiles,
        vo2_z_score=vo2_z,
    )


# ---------------------------------------------------------------------------
# PRESENTATION HELPERS AND INPUT VALIDATION
# ---------------------------------------------------------------------------


def get_performance_label(percentile):
    """Rating label for a percentile, e.g. 72 -> "Good"."""
    if percentile is None:
        return None
    for threshold, label in PERFORMANCE_LABELS:
        if percentile >= threshold:
            return label
    return LOWEST_PERFORMANCE_LABEL


def serialize_result(result):
    """ScoringResult -> plain dict for JSON output or storage."""
    return result.to_dict()


def results_table(result, normative_data=None):
    """
    Builds a per-domain summary table for display.

    Args:
        result (ScoringResult): Output of calculate_fitness_index.
        normative_data (NormativeData): Table used for the domain weights.

    Returns:
        pd.DataFrame: One row per domain with score, Z-score, percentile,
                      rating and weight. Known domains come first in their
                      standard order.
    """
    if normative_data is None:
        normative_data = get_default_normative_data()

    ordered = [d for d in DOMAINS if d in result.domain_scores]
    ordered += [d for d in result.domain_scores if d not in DOMAINS]

    rows = []
    for domain in ordered:
        percentile = result.domain_percentiles.get(domain)
        rows.append(
            {
                "Domain": domain,
                "Score": result.domain_scores[domain],
                "Z-Score": result.z_scores.get(domain, np.nan),
                "Percentile": percentile,
                "Rating": get_performance_label(percentile),
                "Weight": normative_data.domain_weights.get(domain, 0),
            }
        )
    return pd.DataFrame(
        rows, columns=["Domain", "Score", "Z-Score", "Percentile", "Rating", "Weight"]
    )


def validate_user_input(field_name, value):
    """
    Validates user input for real-time feedback while collecting metrics.

    The scoring engine itself does not validate ranges; this is for the
    layer that collects the inputs.

    Args:
        field_name (str): "age", "gender", "vo2max" or a domain name.
        value: The value to validate.

    Returns:
        tuple: (is_valid, error_message)
    """
    if field_name == "age":
        try:
            age = float(value)
            if age < 18:
                return False, "Age must be at least 18 years"
            if age > 100:
                return False, "Age must be at most 100 years"
            return True, ""
        except (ValueError, TypeError):
            return False, "Please enter a valid age"

    elif field_name == "gender":
        if value is None or not str(value).strip():
            return False, "Please select a gender"
        return True, ""

    elif field_name == "vo2max":
        try:
            vo2max = float(value)
            if vo2max <= 0:
                return False, "VO2max must be greater than 0"
            if vo2max > 100:
                return False, "VO2max seems unreasonably high (max 100 mL/kg/min)"
            return True, ""
        except (ValueError, TypeError):
            return False, "Please enter a valid number"

    elif field_name in DOMAINS:
        try:
            score = float(value)
            if score < 0 or score > 100:
                return False, f"{field_name} score must be between 0 and 100"
            return True, ""
        except (ValueError, TypeError):
            return False, "Please enter a valid number"

    return True, ""
