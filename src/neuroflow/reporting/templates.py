"""
Prompt Templates
=================
Prompts sent to the AI coach. Only the four-field metrics summary is
embedded; per-sample data never leaves the device.
"""

from neuroflow.schemas import MetricsSummary

SYSTEM_PROMPT = (
    "You are a biofeedback coach inside a stress-monitoring application. "
    "You receive summarized wearable metrics and reply with calm, practical "
    "guidance. You never diagnose medical conditions. "
    "Respond ONLY with a JSON object."
)

RESPONSE_FORMAT = """{
  "analysis": "<1-2 sentences on the user's physiological state>",
  "recommendations": [
    {"id": "<short id>", "title": "<title>", "description": "<what to do>",
     "type": "breathing|cognitive|physical|mindfulness"}
  ]
}"""


def build_advice_prompt(summary: MetricsSummary) -> str:
    """Build the user prompt from a metrics summary."""
    lines = [
        "Analyze the following user biometric data:",
        f"- Average Heart Rate: {summary.average_heart_rate} BPM",
        f"- Average Skin Conductance (GSR): {summary.average_gsr:.2f} uS",
        f"- Current Calculated Stress Score: {summary.current_stress}/100",
        f"- Trend: Stress is {summary.trend}.",
        "",
        "The user is using a biofeedback application.",
        "Provide a JSON response with:",
        "1. A short analysis of their physiological state (1-2 sentences).",
        "2. A list of 2-3 specific, actionable recommendations to manage or reduce stress immediately.",
        "",
        "Output format (STRICT):",
        RESPONSE_FORMAT,
    ]
    return "\n".join(lines)
