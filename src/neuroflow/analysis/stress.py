"""
Stress Derivation
==================
Validates raw readings and turns them into finalized DataPoints.

Stress score (0-100) when the source does not supply one:
- normalized HR  = clamp((hr - 60) / 60, 0, 1)
- normalized GSR = clamp((gsr - 0.1) / 10, 0, 1)
- score          = round(100 * (0.6 * nHR + 0.4 * nGSR))

The same derivation is used for synthetic and serial data so the gauge
behaves identically whichever sensor is connected.
"""

import logging
import math
from typing import Callable, Optional

from neuroflow.config.settings import (
    STRESS_GSR_BASELINE,
    STRESS_GSR_SPAN,
    STRESS_HR_BASELINE,
    STRESS_HR_SPAN,
    STRESS_WEIGHTS,
    THRESHOLDS,
)
from neuroflow.schemas import DataPoint, RawSample, StressLevel

logger = logging.getLogger("SampleProcessor")


def _clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, value))


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (matches the dashboard's rounding)."""
    return int(math.floor(value + 0.5))


def is_finite_number(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def derive_stress_score(heart_rate: float, gsr: float) -> int:
    """
    Compute the stress index from heart rate and skin conductance.

    Args:
        heart_rate: beats per minute
        gsr: skin conductance in microsiemens

    Returns:
        int stress score in [0, 100]
    """
    normalized_hr = _clamp((heart_rate - STRESS_HR_BASELINE) / STRESS_HR_SPAN)
    normalized_gsr = _clamp((gsr - STRESS_GSR_BASELINE) / STRESS_GSR_SPAN)
    combined = (
        STRESS_WEIGHTS["heart_rate"] * normalized_hr
        + STRESS_WEIGHTS["gsr"] * normalized_gsr
    )
    return round_half_up(100 * combined)


def resolve_stress_score(heart_rate: float, gsr: float, supplied=None) -> int:
    """Use the sensor's own score when it sent a positive one, otherwise derive it."""
    if is_finite_number(supplied) and supplied > 0:
        return int(_clamp(round_half_up(supplied), 0, 100))
    if heart_rate > 0:
        return derive_stress_score(heart_rate, gsr)
    return 0


def classify_stress(score: float) -> StressLevel:
    if score > THRESHOLDS["STRESS_HIGH"]:
        return StressLevel.HIGH
    if score >= THRESHOLDS["STRESS_MODERATE"]:
        return StressLevel.MODERATE
    return StressLevel.LOW


def is_high_stress(point: Optional[DataPoint]) -> bool:
    if point is None:
        return False
    return point.stress_score > THRESHOLDS["STRESS_HIGH"]


def is_heart_rate_alert(point: Optional[DataPoint]) -> bool:
    if point is None:
        return False
    return point.heart_rate > THRESHOLDS["HR_MAX_ALERT"]


class SampleProcessor:
    """
    Validates raw samples and packages DataPoints stamped with the current time.
    Invalid samples are logged and dropped; they never raise.
    """

    def __init__(self, clock: Callable[[], int]):
        """
        Args:
            clock: returns the current time in ms since epoch
        """
        self.clock = clock
        self.accepted = 0
        self.rejected = 0

    def process(self, raw: RawSample) -> Optional[DataPoint]:
        if not is_finite_number(raw.heart_rate) or not is_finite_number(raw.gsr):
            self.rejected += 1
            logger.warning(
                f"Dropping sample with non-finite fields: hr={raw.heart_rate!r} gsr={raw.gsr!r}"
            )
            return None

        heart_rate = float(raw.heart_rate)
        gsr = float(raw.gsr)
        point = DataPoint(
            timestamp=int(self.clock()),
            heart_rate=heart_rate,
            gsr=gsr,
            stress_score=resolve_stress_score(heart_rate, gsr, raw.stress_score),
        )
        self.accepted += 1
        return point

    def get_stats(self) -> dict:
        return {"accepted": self.accepted, "rejected": self.rejected}
