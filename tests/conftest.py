"""Shared fakes: virtual clock, stub AI coach, fake serial port."""

import pytest
import serial

from neuroflow.pipeline import BiometricPipeline
from neuroflow.scheduling import ManualScheduler
from neuroflow.schemas import AdviceResponse, DataPoint

START_MS = 1_700_000_000_000

ADVICE_JSON = {
    "analysis": "Heart rate and skin conductance are elevated.",
    "recommendations": [
        {"title": "Box breathing", "description": "Inhale 4s, hold 4s, exhale 4s.", "type": "breathing"},
        {"title": "Short walk", "description": "Walk for two minutes.", "type": "physical"},
    ],
}


class StubAdvisor:
    """Records summaries; returns canned advice or raises the configured error."""

    def __init__(self, error: Exception = None):
        self.error = error
        self.summaries = []

    def analyze(self, summary):
        self.summaries.append(summary)
        if self.error is not None:
            raise self.error
        return AdviceResponse.model_validate(ADVICE_JSON)


class FakeSerial:
    """Stand-in for serial.Serial that serves queued byte chunks."""

    def __init__(self, port=None, baudrate=None, timeout=None):
        self.port = port
        self.baudrate = baudrate
        self.timeout = timeout
        self.chunks = []
        self.closed = False
        self.fail_reads = False

    def push(self, data: bytes):
        self.chunks.append(data)

    @property
    def in_waiting(self):
        if self.fail_reads:
            raise serial.SerialException("device disconnected")
        return len(self.chunks[0]) if self.chunks else 0

    def read(self, size=1):
        return self.chunks.pop(0) if self.chunks else b""

    def reset_input_buffer(self):
        pass

    def close(self):
        self.closed = True


def make_point(timestamp=START_MS, heart_rate=80.0, gsr=3.0, stress_score=30):
    return DataPoint(timestamp=timestamp, heart_rate=heart_rate, gsr=gsr, stress_score=stress_score)


@pytest.fixture
def scheduler():
    return ManualScheduler(start_ms=START_MS)


@pytest.fixture
def advisor():
    return StubAdvisor()


@pytest.fixture
def pipeline(scheduler, advisor):
    return BiometricPipeline(scheduler, advisor=advisor)


@pytest.fixture
def fake_serial():
    return FakeSerial()


@pytest.fixture
def serial_factory(fake_serial):
    def factory(port, baudrate, timeout=None):
        fake_serial.port = port
        fake_serial.baudrate = baudrate
        fake_serial.timeout = timeout
        return fake_serial
    return factory
