"""Tests for the workout template catalog."""

import pytest

from fitness_insights.catalog import (
    DEFAULT_CATALOG,
    MUSCLE_REGIONS,
    region_of,
    validate_catalog,
)
from fitness_insights.errors import ValidationError
from fitness_insights.schemas import GoalType


@pytest.fixture
def upper_body():
    return next(t for t in DEFAULT_CATALOG if t.id == "upper-body-strength")


def test_default_catalog_ids_are_unique():
    assert validate_catalog(DEFAULT_CATALOG) == DEFAULT_CATALOG


def test_every_template_covers_every_goal():
    for template in DEFAULT_CATALOG:
        assert set(template.goal_affinity) == set(GoalType)


def test_duration_estimate(upper_body):
    assert upper_body.estimate_duration_minutes(GoalType.STRENGTH) == 46


def test_non_muscle_tags_excluded():
    hiit = next(t for t in DEFAULT_CATALOG if t.id == "hiit-fat-burner")
    assert "cardiovascular" not in hiit.muscle_groups
    assert "full_body" not in hiit.muscle_groups


def test_upper_body_has_no_leg_work(upper_body):
    assert not set(upper_body.muscle_groups) & MUSCLE_REGIONS["legs"]


def test_region_of():
    assert region_of("lats") == "back"
    assert region_of("quadriceps") == "legs"
    assert region_of("cardiovascular") is None


def test_duplicate_ids_name_the_template(upper_body):
    with pytest.raises(ValidationError) as exc_info:
        validate_catalog([upper_body, upper_body])
    assert exc_info.value.record_id == "upper-body-strength"
    assert exc_info.value.details == {"duplicates": ["upper-body-strength"]}
