from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

RecommendationType = Literal["breathing", "cognitive", "physical", "mindfulness"]
Trend = Literal["increasing", "decreasing"]


class ConnectionState(str, Enum):
    IDLE = "IDLE"
    CONNECTING = "CONNECTING"
    ACTIVE = "ACTIVE"
    ERROR = "ERROR"


class StressLevel(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


@dataclass(frozen=True)
class RawSample:
    """Unvalidated reading as emitted by a signal source."""
    heart_rate: object
    gsr: object
    stress_score: object = None
    battery_level: Optional[float] = None


class DataPoint(BaseModel):
    """Finalized 1 Hz reading. Serializes with the browser's camelCase keys."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    timestamp: int                                   # ms since epoch
    heart_rate: float = Field(alias="heartRate")     # bpm
    gsr: float                                       # microsiemens
    stress_score: int = Field(alias="stressScore", ge=0, le=100)

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)


class Recommendation(BaseModel):
    id: Optional[str] = None
    title: str
    description: str
    type: RecommendationType


class AdviceResponse(BaseModel):
    analysis: str
    recommendations: List[Recommendation] = Field(min_length=2, max_length=3)


class MetricsSummary(BaseModel):
    """The only data that leaves the device: four aggregate fields."""

    average_heart_rate: int
    average_gsr: float
    current_stress: int
    trend: Trend


class AdviceRequestState(BaseModel):
    last_requested_at: Optional[int] = None          # ms since epoch, None = never
    pending: bool = False
    last_error: Optional[str] = None
    last_advice: Optional[AdviceResponse] = None
