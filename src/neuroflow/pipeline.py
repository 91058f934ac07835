"""
Biometric Pipeline
===================
Owns one monitoring session: the connection state machine, the signal
source, the rolling window and the AI coach trigger.

    IDLE --connect--> CONNECTING --handshake/open--> ACTIVE --disconnect--> IDLE
                          |  \--device picker cancelled--> IDLE
                          \--transport fault--> ERROR <--fault-- ACTIVE

Data flow per tick:
    source -> SampleProcessor -> RollingWindow -> listeners + AdviceCoordinator

Everything runs on the scheduler's event thread; nothing here blocks.
"""

import logging
from typing import Callable, List, Optional

from neuroflow.alerts.trigger_policy import AdviceCoordinator, TriggerDecision
from neuroflow.analysis.stress import (
    SampleProcessor,
    classify_stress,
    is_heart_rate_alert,
    is_high_stress,
)
from neuroflow.config.settings import (
    ADVICE_COOLDOWN_SEC,
    ADVICE_MIN_SAMPLES,
    DATA_WINDOW_SIZE,
)
from neuroflow.data.serial_source import SerialSource
from neuroflow.errors import DeviceSelectionCancelled, TransportError
from neuroflow.reporting.advisor import Advisor, GroqAdvisor
from neuroflow.scheduling import Scheduler, TimerHandle
from neuroflow.schemas import AdviceRequestState, ConnectionState, DataPoint, RawSample
from neuroflow.storage.rolling_window import RollingWindow
from neuroflow.synthetic.generator import SyntheticSource

logger = logging.getLogger("Pipeline")


class BiometricPipeline:
    """
    Single-session pipeline. Create one per dashboard (or per test).

    Consumers read it with get_snapshot / get_connection_state /
    get_latest_point and trigger advice with request_advice_now, or register
    listeners to be told about each new point and state change.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        advisor: Optional[Advisor] = None,
        capacity: int = DATA_WINDOW_SIZE,
        cooldown_sec: float = ADVICE_COOLDOWN_SEC,
        min_samples: int = ADVICE_MIN_SAMPLES,
    ):
        self.scheduler = scheduler
        self.window = RollingWindow(capacity)
        self.processor = SampleProcessor(scheduler.now_ms)
        self.advice = AdviceCoordinator(
            advisor or GroqAdvisor(),
            scheduler,
            cooldown_sec=cooldown_sec,
            min_samples=min_samples,
        )

        self.state = ConnectionState.IDLE
        self.last_error: Optional[str] = None
        self.source = None
        self._handshake: Optional[TimerHandle] = None

        self.sample_listeners: List[Callable[[DataPoint], None]] = []
        self.state_listeners: List[Callable[[ConnectionState], None]] = []

    # --- Connection lifecycle ---

    def connect(self, source) -> ConnectionState:
        """
        Begin a session with the given signal source.
        A no-op while already CONNECTING or ACTIVE.
        """
        if self.state in (ConnectionState.CONNECTING, ConnectionState.ACTIVE):
            logger.warning(f"Connect ignored: already {self.state.value}")
            return self.state

        self.window.clear()
        self.advice.reset()
        self.last_error = None
        self.source = source
        self._set_state(ConnectionState.CONNECTING)

        try:
            source.open()
        except DeviceSelectionCancelled:
            logger.info("Device selection cancelled")
            self.source = None
            self._set_state(ConnectionState.IDLE)
            return self.state
        except TransportError as e:
            self._fail(e)
            return self.state

        if source.handshake_delay_sec > 0:
            self._handshake = self.scheduler.call_later(source.handshake_delay_sec, self._activate)
        else:
            self._activate()
        return self.state

    def connect_synthetic(self, seed: Optional[int] = None) -> ConnectionState:
        return self.connect(SyntheticSource(self.scheduler, seed=seed))

    def connect_serial(self, port: Optional[str] = None, **kwargs) -> ConnectionState:
        return self.connect(SerialSource(self.scheduler, port=port, **kwargs))

    def disconnect(self) -> ConnectionState:
        """Stop the source, clear the window and return to IDLE. Idempotent."""
        if self.state == ConnectionState.IDLE and self.source is None:
            return self.state

        self._cancel_handshake()
        if self.source is not None:
            self.source.stop()
            self.source = None
        self.window.clear()
        self.advice.reset()
        self.last_error = None
        self._set_state(ConnectionState.IDLE)
        return self.state

    def _activate(self):
        self._handshake = None
        if self.state != ConnectionState.CONNECTING or self.source is None:
            return
        self._set_state(ConnectionState.ACTIVE)
        try:
            self.source.start(self._on_sample, self._on_fault)
        except TransportError as e:
            self._fail(e)

    def _fail(self, error: Exception):
        self._cancel_handshake()
        if self.source is not None:
            self.source.stop()
        self.last_error = str(error)
        logger.error(f"Transport failure: {error}")
        self._set_state(ConnectionState.ERROR)

    def _on_fault(self, error: Exception):
        if self.state in (ConnectionState.CONNECTING, ConnectionState.ACTIVE):
            self._fail(error)

    def _cancel_handshake(self):
        if self._handshake is not None:
            self._handshake.cancel()
            self._handshake = None

    def _set_state(self, state: ConnectionState):
        if state == self.state:
            return
        logger.info(f"{self.state.value} -> {state.value}")
        self.state = state
        for listener in list(self.state_listeners):
            listener(state)

    # --- Per-tick processing ---

    def _on_sample(self, raw: RawSample):
        if self.state != ConnectionState.ACTIVE:
            return
        point = self.processor.process(raw)
        if point is None:
            return

        self.window.append(point)
        for listener in list(self.sample_listeners):
            listener(point)
        self.advice.evaluate(self.window.snapshot())

    # --- Consumer read API ---

    def get_snapshot(self) -> List[DataPoint]:
        return self.window.snapshot()

    def get_connection_state(self) -> ConnectionState:
        return self.state

    def get_latest_point(self) -> Optional[DataPoint]:
        return self.window.latest()

    def request_advice_now(self) -> TriggerDecision:
        return self.advice.request_now(self.window.snapshot())

    def get_advice_state(self) -> AdviceRequestState:
        return self.advice.get_state()

    @property
    def battery_level(self) -> Optional[float]:
        return self.source.battery_level if self.source is not None else None

    def get_status(self) -> dict:
        """Everything the dashboard header and gauge need in one payload."""
        latest = self.get_latest_point()
        return {
            "state": self.state.value,
            "source": self.source.name if self.source is not None else None,
            "last_error": self.last_error,
            "latest": latest.to_dict() if latest else None,
            "stress_level": classify_stress(latest.stress_score).value if latest else None,
            "high_stress": is_high_stress(latest),
            "hr_alert": is_heart_rate_alert(latest),
            "battery_level": self.battery_level,
            "samples": len(self.window),
            "advice": self.get_advice_state().model_dump(),
        }

    def get_stats(self) -> dict:
        stats = {
            "window": self.window.get_stats(),
            "processor": self.processor.get_stats(),
            "advice_requests": self.advice.requests_started,
        }
        if self.source is not None and hasattr(self.source, "get_stats"):
            stats["source"] = self.source.get_stats()
        return stats
