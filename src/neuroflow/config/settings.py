"""
NeuroFlow Global Configuration
===============================
Central configuration for sampling cadence, stress thresholds, advice
debouncing, the serial transport and the AI coach.
Deployment-specific values are read from the environment (or a .env file).
"""

import os

from dotenv import load_dotenv

load_dotenv()

# --- Sampling ---
SAMPLE_INTERVAL_SEC = 1.0     # 1 Hz tick
HANDSHAKE_DELAY_SEC = 1.5     # simulated sensor calibration
DATA_WINDOW_SIZE = 60         # keep last 60 points (~1 min at 1 Hz)

# --- Synthetic sensor ---
SYNTHETIC_INITIAL = {
    "heart_rate": 75.0,
    "gsr": 3.5,
}
SYNTHETIC_BATTERY_LEVEL = 100

# Physiological clamps (hard limits for the random walk)
HR_RANGE = (50.0, 140.0)      # bpm
GSR_RANGE = (0.5, 15.0)       # microsiemens

# Soft mean-reversion bounds: (low, high, nudge)
HR_REVERSION = (60.0, 100.0, 1.0)
GSR_REVERSION = (1.0, 8.0, 0.1)

HR_STEP = 2.0                 # hr += uniform(-2, +2)
GSR_STEP = 0.075              # gsr += uniform(-0.075, +0.075)

# --- Stress derivation ---
# Fixed weighting: 60% heart rate, 40% skin conductance
STRESS_WEIGHTS = {"heart_rate": 0.6, "gsr": 0.4}
STRESS_HR_BASELINE = 60.0
STRESS_HR_SPAN = 60.0
STRESS_GSR_BASELINE = 0.1
STRESS_GSR_SPAN = 10.0

THRESHOLDS = {
    "STRESS_HIGH": 75,
    "STRESS_MODERATE": 50,
    "HR_MAX_ALERT": 120,
}

# --- AI Coach debouncing ---
ADVICE_COOLDOWN_SEC = 60
ADVICE_MIN_SAMPLES = 5

# --- Serial transport ---
SERIAL_BAUD_RATE = 115200     # must match Serial.begin() on the sensor board
SERIAL_PORT = os.environ.get("NEUROFLOW_SERIAL_PORT", "")
SERIAL_POLL_INTERVAL_SEC = 0.05
SERIAL_MAX_LINE_BYTES = 4096

# --- Groq API ---
GROQ_API_KEY_ENV = "GROQ_API_KEY"
GROQ_MODEL = os.environ.get("GROQ_MODEL", "llama-3.3-70b-versatile")
GROQ_MAX_TOKENS = 600
GROQ_TEMPERATURE = 0.4
GROQ_TIMEOUT_SEC = 30.0

# --- API / Server ---
API_HOST = os.environ.get("NEUROFLOW_HOST", "127.0.0.1")
API_PORT = int(os.environ.get("NEUROFLOW_PORT", "8000"))
