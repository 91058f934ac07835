"""
Synthetic Sensor
=================
Virtual wearable that emits heart rate and skin conductance at 1 Hz.

Each tick is a bounded random walk:
- hr  += uniform(-2, +2), nudged back toward 60-100 bpm, clamped to [50, 140]
- gsr += uniform(-0.075, +0.075), nudged back toward 1-8 uS, clamped to [0.5, 15]

No stress score is emitted; the SampleProcessor derives it exactly as it
does for real sensor data.
"""

import logging
import random
from typing import Callable, Optional

from neuroflow.config.settings import (
    GSR_RANGE,
    GSR_REVERSION,
    GSR_STEP,
    HANDSHAKE_DELAY_SEC,
    HR_RANGE,
    HR_REVERSION,
    HR_STEP,
    SAMPLE_INTERVAL_SEC,
    SYNTHETIC_BATTERY_LEVEL,
    SYNTHETIC_INITIAL,
)
from neuroflow.scheduling import Scheduler, TimerHandle
from neuroflow.schemas import RawSample

logger = logging.getLogger("SyntheticSource")


def _revert(value: float, low: float, high: float, nudge: float) -> float:
    if value > high:
        value -= nudge
    if value < low:
        value += nudge
    return value


class RandomWalkState:
    """Tracks the evolving heart rate and GSR of the virtual wearer."""

    def __init__(self, initial_state: Optional[dict] = None, rng: Optional[random.Random] = None):
        state = initial_state or SYNTHETIC_INITIAL
        self.heart_rate = float(state.get("heart_rate", SYNTHETIC_INITIAL["heart_rate"]))
        self.gsr = float(state.get("gsr", SYNTHETIC_INITIAL["gsr"]))
        self.rng = rng or random.Random()
        self.ticks = 0

    def step(self):
        """Advance one tick and return (heart_rate, gsr) before display rounding."""
        self.ticks += 1

        self.heart_rate += self.rng.uniform(-HR_STEP, HR_STEP)
        self.heart_rate = _revert(self.heart_rate, *HR_REVERSION)

        self.gsr += self.rng.uniform(-GSR_STEP, GSR_STEP)
        self.gsr = _revert(self.gsr, *GSR_REVERSION)

        self.heart_rate = max(HR_RANGE[0], min(HR_RANGE[1], self.heart_rate))
        self.gsr = max(GSR_RANGE[0], min(GSR_RANGE[1], self.gsr))
        return self.heart_rate, self.gsr


class SyntheticSource:
    """Signal source backed by RandomWalkState, ticking on the injected scheduler."""

    name = "synthetic"
    handshake_delay_sec = HANDSHAKE_DELAY_SEC

    def __init__(
        self,
        scheduler: Scheduler,
        interval_sec: float = SAMPLE_INTERVAL_SEC,
        seed: Optional[int] = None,
        initial_state: Optional[dict] = None,
    ):
        self.scheduler = scheduler
        self.interval_sec = interval_sec
        self.state = RandomWalkState(initial_state, random.Random(seed))
        self.battery_level = SYNTHETIC_BATTERY_LEVEL
        self._timer: Optional[TimerHandle] = None
        self._on_sample: Optional[Callable[[RawSample], None]] = None

    @property
    def running(self) -> bool:
        return self._timer is not None

    def open(self):
        # Nothing to acquire for a virtual sensor
        return None

    def start(self, on_sample: Callable[[RawSample], None], on_fault=None):
        if self._timer is not None:
            logger.warning("Already running")
            return
        self._on_sample = on_sample
        self._timer = self.scheduler.call_every(self.interval_sec, self._tick)
        logger.info(f"Started virtual stream at {1.0 / self.interval_sec:.1f} Hz")

    def stop(self):
        if self._timer is None:
            return
        self._timer.cancel()
        self._timer = None
        self._on_sample = None
        logger.info("Stopped")

    def _tick(self):
        heart_rate, gsr = self.state.step()
        sample = RawSample(heart_rate=round(heart_rate), gsr=round(gsr, 2))
        if self._on_sample is not None:
            self._on_sample(sample)
