"""Shared fixtures for the scoring tests."""

import json

import pytest

from fitness_models import UserMetrics
from normative_data import build_normative_data


@pytest.fixture
def reference_domains():
    return {
        "Strength": 85,
        "Endurance": 72,
        "Power": 80,
        "Mobility": 58,
        "BodyComp": 75,
        "Recovery": 68,
    }


@pytest.fixture
def sample_user_metrics(reference_domains):
    """28-year-old male with a VO2max well above his age group mean"""
    return UserMetrics(age=28, gender="male", vo2max=52, domain_scores=reference_domains)


@pytest.fixture
def synthetic_normative_data():
    """Small table with an extra gender partition and uniform domain stats"""
    return build_normative_data(
        {
            "version": "0.1.0",
            "domainWeights": {"Strength": 0.5, "Endurance": 0.5},
            "domainStats": {
                "Strength": {"mean": 50, "std": 10},
                "Endurance": {"mean": 50, "std": 0},
            },
            "vo2maxNorms": {
                "male": [
                    {"age": "20-39", "mean": 45, "std_dev": 9},
                    {"age": "40-59", "mean": 38, "std_dev": 8},
                ],
                "nonbinary": [
                    {"age": "20-59", "mean": 40, "std_dev": 8},
                ],
            },
        }
    )


@pytest.fixture
def metrics_file(tmp_path, reference_domains):
    """Writes a user-metrics JSON file and returns its path"""

    def _write(**overrides):
        data = {"age": 28, "gender": "male", "vo2max": 52, "domains": reference_domains}
        data.update(overrides)
        path = tmp_path / "metrics.json"
        path.write_text(json.dumps(data))
        return str(path)

    return _write
