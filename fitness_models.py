"""
Shared Data Models for the Fitness Index engine

This module contains the dataclasses and constants shared by the normative
data loader, the scoring engine and the command-line front end.

Unified data models provide:
- Immutable reference data that can be handed to the engine by value
- Consistent data structures across modules
- A single source of truth for domain names and result field names
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple

# ============================================================================
# CONSTANTS
# ============================================================================

# The six fitness domains, in display order
DOMAINS = ("Strength", "Endurance", "Power", "Mobility", "BodyComp", "Recovery")

# Population stats used when a normative table omits a domain's stats
DEFAULT_DOMAIN_STATS = {
    "Strength": {"mean": 50, "std": 15},
    "Endurance": {"mean": 45, "std": 12},
    "Power": {"mean": 40, "std": 10},
    "Mobility": {"mean": 55, "std": 14},
    "BodyComp": {"mean": 60, "std": 18},
    "Recovery": {"mean": 50, "std": 13},
}

GENDER_ALIASES = {"m": "male", "f": "female"}

# Percentile thresholds for performance labels, highest first
PERFORMANCE_LABELS = (
    (85, "Excellent"),
    (70, "Good"),
    (40, "Average"),
    (25, "Fair"),
)
LOWEST_PERFORMANCE_LABEL = "Needs Work"


# ============================================================================
# ERRORS
# ============================================================================


class NormativeDataError(ValueError):
    """Raised when a normative table is malformed or violates its invariants"""

    pass


class InvalidUserMetricsError(ValueError):
    """Raised when a user-metrics file cannot be turned into UserMetrics"""

    pass


# ============================================================================
# REFERENCE DATA
# ============================================================================


def normalize_gender(gender) -> Optional[str]:
    """Convert a gender value to its normative-table lookup key."""
    if gender is None:
        return None
    key = str(gender).strip().lower()
    return GENDER_ALIASES.get(key, key)


def parse_age_range(age_range: str) -> Tuple[float, float]:
    """
    Split an age-range label such as "20-29" into its bounds.

    Raises:
        NormativeDataError: If the label is not of the form "min-max".
    """
    parts = str(age_range).split("-")
    if len(parts) != 2:
        raise NormativeDataError(f"Invalid age range label: {age_range!r}")
    try:
        min_age, max_age = float(parts[0]), float(parts[1])
    except ValueError as e:
        raise NormativeDataError(f"Invalid age range label: {age_range!r}") from e
    if min_age > max_age:
        raise NormativeDataError(f"Age range {age_range!r} has min above max")
    return min_age, max_age


@dataclass(frozen=True)
class DomainStats:
    """Population mean and standard deviation for one domain"""

    mean: float
    std: float


@dataclass(frozen=True)
class Vo2maxNormGroup:
    """VO2max norm for one age bracket of one gender"""

    age_range: str  # "min-max" label, e.g. "20-29"
    mean: float
    std_dev: float
    min_age: float = field(init=False, repr=False, compare=False)
    max_age: float = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        """Parse the age label once; raises NormativeDataError if malformed"""
        min_age, max_age = parse_age_range(self.age_range)
        object.__setattr__(self, "min_age", min_age)
        object.__setattr__(self, "max_age", max_age)

    @property
    def midpoint_age(self) -> float:
        """Representative age of the bracket"""
        return (self.min_age + self.max_age) / 2


@dataclass(frozen=True)
class NormativeData:
    """
    Read-only normative reference table.

    Built once by normative_data.build_normative_data and passed to the
    scoring engine. Mappings are exposed through MappingProxyType so the
    engine cannot mutate them.
    """

    domain_stats: Mapping[str, DomainStats]
    domain_weights: Mapping[str, float]
    vo2max_norms: Mapping[str, Tuple[Vo2maxNormGroup, ...]]
    version: str = "1.1.0"
    description: str = "Normative data for fitness scoring based on ACSM guidelines"
    source: str = "ACSM Guidelines, 11th Ed."
    last_updated: Optional[str] = None

    def __post_init__(self):
        """Freeze the mappings handed in by the loader"""
        object.__setattr__(
            self, "domain_stats", MappingProxyType(dict(self.domain_stats))
        )
        object.__setattr__(
            self, "domain_weights", MappingProxyType(dict(self.domain_weights))
        )
        object.__setattr__(
            self,
            "vo2max_norms",
            MappingProxyType(
                {gender: tuple(groups) for gender, groups in self.vo2max_norms.items()}
            ),
        )

    def groups_for(self, gender) -> Optional[Tuple[Vo2maxNormGroup, ...]]:
        """Ordered VO2max groups for a gender, or None if not covered"""
        groups = self.vo2max_norms.get(normalize_gender(gender))
        return groups if groups else None


# ============================================================================
# INPUT AND OUTPUT RECORDS
# ============================================================================


@dataclass
class UserMetrics:
    """Metrics collected for one user"""

    age: float
    gender: str  # lookup key into NormativeData.vo2max_norms
    vo2max: float  # mL/kg/min
    domain_scores: Dict[str, float] = field(default_factory=dict)  # 0-100 scale

    @classmethod
    def from_dict(cls, data: dict) -> "UserMetrics":
        """
        Build from the dict shape used by the UI layer and CLI files.

        Raises:
            InvalidUserMetricsError: If the domains entry is not a mapping.
        """
        domains = data.get("domains")
        if domains is None:
            domains = data.get("domain_scores")
        if domains is None:
            domains = {}
        if not isinstance(domains, Mapping):
            raise InvalidUserMetricsError(
                f"Domain scores must be a mapping of domain to score, "
                f"got {type(domains).__name__}"
            )
        return cls(
            age=data.get("age"),
            gender=data.get("gender"),
            vo2max=data.get("vo2max"),
            domain_scores=dict(domains),
        )


@dataclass(frozen=True)
class DomainScore:
    """Z-score and percentile of one raw domain value"""

    z_score: float
    percentile: int


@dataclass(frozen=True)
class ScoringResult:
    """Everything the engine computes for one scoring request"""

    fitness_index: float  # rounded to 1 decimal
    fitness_age: Optional[float]
    vo2_percentile: Optional[int]  # 0-100
    domain_scores: Mapping[str, float]
    z_scores: Mapping[str, float]
    domain_percentiles: Mapping[str, int] = field(default_factory=dict)
    vo2_z_score: Optional[float] = None

    def __post_init__(self):
        for name in ("domain_scores", "z_scores", "domain_percentiles"):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))

    def to_dict(self) -> dict:
        """Plain record with the field names used by the presentation layer"""
        return {
            "fitnessIndex": self.fitness_index,
            "fitnessAge": self.fitness_age,
            "vo2Percentile": self.vo2_percentile,
            "domainScores": dict(self.domain_scores),
            "zScores": dict(self.z_scores),
            "domainPercentiles": dict(self.domain_percentiles),
            "vo2ZScore": self.vo2_z_score,
        }
