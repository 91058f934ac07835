"""
Stress Derivation Tests
========================
Validates the fixed 60/40 weighting, sample validation and stress levels.
"""

import logging
import math

import pytest
from pydantic import ValidationError

from conftest import START_MS, make_point
from neuroflow.analysis.stress import (
    SampleProcessor,
    classify_stress,
    derive_stress_score,
    is_heart_rate_alert,
    is_high_stress,
    resolve_stress_score,
)
from neuroflow.schemas import RawSample, StressLevel


def test_reference_derivation():
    # nHR = 0.5, nGSR = 0.39 -> 60*0.5 + 40*0.39 = 45.6
    assert derive_stress_score(90, 4.0) == 46


def test_derivation_is_deterministic():
    assert derive_stress_score(101.0, 7.3) == derive_stress_score(101.0, 7.3)


@pytest.mark.parametrize("hr, gsr, expected", [
    (40, 0.0, 0),        # both components clamp to 0
    (200, 50.0, 100),    # both components clamp to 1
    (120, 0.1, 60),      # heart rate only
])
def test_derivation_clamps(hr, gsr, expected):
    assert derive_stress_score(hr, gsr) == expected


def test_supplied_score_wins_when_positive():
    assert resolve_stress_score(90, 4.0, 88) == 88
    assert resolve_stress_score(90, 4.0, 150) == 100


def test_zero_or_missing_score_is_derived():
    assert resolve_stress_score(90, 4.0, 0) == 46
    assert resolve_stress_score(90, 4.0, None) == 46


def test_no_heart_rate_gives_zero():
    assert resolve_stress_score(0, 4.0, None) == 0


def test_processor_stamps_clock_time():
    processor = SampleProcessor(lambda: START_MS + 42)
    point = processor.process(RawSample(heart_rate=90, gsr=4.0))
    assert point.timestamp == START_MS + 42
    assert point.stress_score == 46
    assert point.heart_rate == 90.0


@pytest.mark.parametrize("hr, gsr", [
    (math.nan, 3.0),
    (80, math.inf),
    ("80", 3.0),
    (None, 3.0),
    (True, 3.0),
])
def test_processor_rejects_non_finite(hr, gsr, caplog):
    processor = SampleProcessor(lambda: START_MS)
    with caplog.at_level(logging.WARNING, logger="SampleProcessor"):
        assert processor.process(RawSample(heart_rate=hr, gsr=gsr)) is None
    assert processor.get_stats() == {"accepted": 0, "rejected": 1}
    assert len(caplog.records) == 1


def test_data_point_is_immutable():
    point = make_point()
    with pytest.raises(ValidationError):
        point.heart_rate = 99


def test_data_point_serializes_camel_case():
    assert make_point(heart_rate=70, gsr=2.5, stress_score=20).to_dict() == {
        "timestamp": START_MS, "heartRate": 70.0, "gsr": 2.5, "stressScore": 20,
    }


def test_stress_levels():
    assert classify_stress(20) == StressLevel.LOW
    assert classify_stress(50) == StressLevel.MODERATE
    assert classify_stress(75) == StressLevel.MODERATE
    assert classify_stress(76) == StressLevel.HIGH


def test_high_stress_and_hr_alert_flags():
    assert is_high_stress(make_point(stress_score=76))
    assert not is_high_stress(make_point(stress_score=75))
    assert not is_high_stress(None)
    assert is_heart_rate_alert(make_point(heart_rate=121))
    assert not is_heart_rate_alert(make_point(heart_rate=120))
