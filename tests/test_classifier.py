import math

import pytest

from core.domain.category import CoverageCategory
from core.domain.models import ClassificationConfig
from core.errors import ValidationError
from core.services.classifier import (
    classify,
    classify_detailed,
    validate_coverage,
    zero_coverage_category,
)


@pytest.mark.parametrize("threshold", [0, 1, 50, 99.99, 100])
def test_zero_coverage_is_always_sin_coverage(threshold: float) -> None:
    assert classify(0, threshold) is CoverageCategory.SIN_COVERAGE
    assert classify(0.0, threshold) is CoverageCategory.SIN_COVERAGE


@pytest.mark.parametrize(
    ("coverage", "threshold", "expected"),
    [
        (30, 50, CoverageCategory.NO_PASA_MINIMO),
        (49.99, 50, CoverageCategory.NO_PASA_MINIMO),
        (0.01, 50, CoverageCategory.NO_PASA_MINIMO),
        (50.01, 50, CoverageCategory.SI_PASA_MINIMO),
        (80, 50, CoverageCategory.SI_PASA_MINIMO),
        (100, 100, CoverageCategory.SI_PASA_MINIMO),
        (99.9, 100, CoverageCategory.NO_PASA_MINIMO),
        (0.5, 0, CoverageCategory.SI_PASA_MINIMO),
    ],
)
def test_classify_against_threshold(coverage: float, threshold: float, expected: CoverageCategory) -> None:
    assert classify(coverage, threshold) is expected


@pytest.mark.parametrize("threshold", [0.1, 25, 50, 75.5, 100])
def test_threshold_is_inclusive(threshold: float) -> None:
    assert classify(threshold, threshold) is CoverageCategory.SI_PASA_MINIMO


@pytest.mark.parametrize(
    ("value", "pattern"),
    [
        (math.nan, "NaN"),
        (math.inf, "finite"),
        (-math.inf, "finite"),
        (-1, "negative"),
        (101, "exceed"),
        ("50", "number"),
        (None, "number"),
        (True, "number"),
    ],
)
def test_classify_rejects_invalid_coverage(value: object, pattern: str) -> None:
    with pytest.raises(ValidationError, match=pattern) as excinfo:
        classify(value, 50)  # type: ignore[arg-type]
    assert repr(value) in str(excinfo.value)
    assert not validate_coverage(value)


def test_validate_coverage_accepts_range_bounds() -> None:
    assert validate_coverage(0)
    assert validate_coverage(100)
    assert validate_coverage(42.5)


def test_classify_detailed_uses_same_rules() -> None:
    config = ClassificationConfig(threshold=75)
    result = classify_detailed(75, config)

    assert result.category is CoverageCategory.SI_PASA_MINIMO
    assert result.threshold == 75
    assert result.metadata["original_coverage"] == 75
    assert result.metadata["config_used"]["threshold"] == 75

    assert classify_detailed(0, config).category is zero_coverage_category()
    assert classify_detailed(10).threshold == 50
    with pytest.raises(ValidationError):
        classify_detailed(math.nan, config)


def test_category_labels_are_exact() -> None:
    assert [c.label() for c in CoverageCategory.all()] == [
        "Sin coverage",
        "No pasa del mínimo esperado",
        "Si pasa el mínimo esperado",
    ]
