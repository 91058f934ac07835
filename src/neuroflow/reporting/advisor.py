"""
AI Coach Client
================
Summarizes the rolling window and asks a Groq-hosted LLM for coping advice.

The advisor is a blocking call; the AdviceCoordinator runs it off the event
thread and applies the result when it settles.
"""

import json
import logging
import os
from typing import Optional, Protocol, Sequence

from groq import APIError, Groq
from pydantic import ValidationError

from neuroflow.analysis.stress import round_half_up
from neuroflow.config.settings import (
    GROQ_API_KEY_ENV,
    GROQ_MAX_TOKENS,
    GROQ_MODEL,
    GROQ_TEMPERATURE,
    GROQ_TIMEOUT_SEC,
)
from neuroflow.errors import AdviceError
from neuroflow.reporting.templates import SYSTEM_PROMPT, build_advice_prompt
from neuroflow.schemas import AdviceResponse, DataPoint, MetricsSummary

logger = logging.getLogger("Advisor")


class Advisor(Protocol):
    def analyze(self, summary: MetricsSummary) -> AdviceResponse:
        ...


def summarize_window(points: Sequence[DataPoint]) -> MetricsSummary:
    """
    Reduce a window snapshot to the four fields sent to the coach.

    Args:
        points: window contents, oldest first (must not be empty)

    Returns:
        MetricsSummary with rounded averages, latest score and trend
    """
    if not points:
        raise ValueError("Cannot summarize an empty window")

    count = len(points)
    average_hr = sum(p.heart_rate for p in points) / count
    average_gsr = sum(p.gsr for p in points) / count
    first, last = points[0].stress_score, points[-1].stress_score

    return MetricsSummary(
        average_heart_rate=round_half_up(average_hr),
        average_gsr=round(average_gsr, 2),
        current_stress=last,
        trend="increasing" if first < last else "decreasing",
    )


def parse_advice(text: Optional[str]) -> AdviceResponse:
    """Validate the model's JSON reply. Raises AdviceError when it is unusable."""
    if not text:
        raise AdviceError("No response from AI")
    try:
        payload = json.loads(text)
        advice = AdviceResponse.model_validate(payload)
    except (json.JSONDecodeError, ValidationError) as e:
        raise AdviceError(f"Malformed AI response: {e}") from e

    for index, rec in enumerate(advice.recommendations, start=1):
        if not rec.id:
            rec.id = f"rec-{index}"
    return advice


class GroqAdvisor:
    """Advisor backed by the Groq chat completions API in JSON mode."""

    def __init__(self, api_key: Optional[str] = None, model: str = GROQ_MODEL, client=None):
        self.api_key = api_key
        self.model = model
        self._client = client

    def _get_client(self):
        if self._client is not None:
            return self._client
        api_key = self.api_key or os.getenv(GROQ_API_KEY_ENV)
        if not api_key:
            raise AdviceError(f"{GROQ_API_KEY_ENV} is not set in the environment.")
        self._client = Groq(api_key=api_key, timeout=GROQ_TIMEOUT_SEC)
        return self._client

    def analyze(self, summary: MetricsSummary) -> AdviceResponse:
        client = self._get_client()
        try:
            response = client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_advice_prompt(summary)},
                ],
                temperature=GROQ_TEMPERATURE,
                max_tokens=GROQ_MAX_TOKENS,
                response_format={"type": "json_object"},
            )
        except APIError as e:
            raise AdviceError(f"AI request failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        return parse_advice(content)
