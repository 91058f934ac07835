"""NeuroFlow: real-time biometric stress pipeline with an AI coach."""

from neuroflow.pipeline import BiometricPipeline
from neuroflow.scheduling import AsyncioScheduler, ManualScheduler
from neuroflow.schemas import (
    AdviceRequestState,
    AdviceResponse,
    ConnectionState,
    DataPoint,
    MetricsSummary,
    RawSample,
    Recommendation,
    StressLevel,
)

__all__ = [
    "BiometricPipeline",
    "AsyncioScheduler",
    "ManualScheduler",
    "AdviceRequestState",
    "AdviceResponse",
    "ConnectionState",
    "DataPoint",
    "MetricsSummary",
    "RawSample",
    "Recommendation",
    "StressLevel",
]

__version__ = "0.1.0"
