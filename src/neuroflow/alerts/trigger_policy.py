"""
Advice Trigger Policy
======================
Decides when to ask the AI coach for advice, and tracks the one request
that may be in flight.

Rules:
1. Never while a request is pending (at most one in flight)
2. Never with fewer than ADVICE_MIN_SAMPLES points in the window
3. Automatic: only while stress is high AND the cooldown since the last
   successful request has expired
4. Manual: ignores stress level and cooldown, still obeys rules 1 and 2

A failed request leaves last_requested_at untouched so it does not start a
cooldown.
"""

import logging
from typing import Callable, List, NamedTuple, Optional, Sequence

from neuroflow.analysis.stress import is_high_stress
from neuroflow.config.settings import ADVICE_COOLDOWN_SEC, ADVICE_MIN_SAMPLES
from neuroflow.errors import AdviceError
from neuroflow.reporting.advisor import Advisor, summarize_window
from neuroflow.scheduling import Scheduler
from neuroflow.schemas import AdviceRequestState, AdviceResponse, DataPoint

logger = logging.getLogger("AdviceCoordinator")


class TriggerDecision(NamedTuple):
    fire: bool
    reason: str


def evaluate_trigger(
    is_high_stress_now: bool,
    last_requested_at: Optional[int],
    pending: bool,
    buffer_length: int,
    now_ms: int,
    min_samples: int = ADVICE_MIN_SAMPLES,
    cooldown_ms: int = ADVICE_COOLDOWN_SEC * 1000,
    manual: bool = False,
) -> TriggerDecision:
    """Pure decision over the trigger inputs. No side effects."""
    if pending:
        return TriggerDecision(False, "request already in flight")
    if buffer_length < min_samples:
        return TriggerDecision(False, f"need {min_samples} samples, have {buffer_length}")
    if manual:
        return TriggerDecision(True, "manual request")
    if not is_high_stress_now:
        return TriggerDecision(False, "stress not high")
    if last_requested_at is not None and now_ms - last_requested_at <= cooldown_ms:
        remaining = (cooldown_ms - (now_ms - last_requested_at)) / 1000
        return TriggerDecision(False, f"cooldown active ({remaining:.0f}s remaining)")
    return TriggerDecision(True, "sustained high stress")


def should_request_advice(
    is_high_stress_now: bool,
    last_requested_at: Optional[int],
    pending: bool,
    buffer_length: int,
    now_ms: int,
    min_samples: int = ADVICE_MIN_SAMPLES,
    cooldown_ms: int = ADVICE_COOLDOWN_SEC * 1000,
) -> bool:
    return evaluate_trigger(
        is_high_stress_now, last_requested_at, pending, buffer_length, now_ms,
        min_samples=min_samples, cooldown_ms=cooldown_ms,
    ).fire


class AdviceCoordinator:
    """
    Owns AdviceRequestState and dispatches advisory requests.

    Each pipeline session has an id; results from a request started in an
    earlier session are discarded when they settle.
    """

    def __init__(
        self,
        advisor: Advisor,
        scheduler: Scheduler,
        cooldown_sec: float = ADVICE_COOLDOWN_SEC,
        min_samples: int = ADVICE_MIN_SAMPLES,
    ):
        if min_samples < 1:
            raise ValueError(f"min_samples must be at least 1, got {min_samples}")
        self.advisor = advisor
        self.scheduler = scheduler
        self.cooldown_ms = int(cooldown_sec * 1000)
        self.min_samples = min_samples
        self.state = AdviceRequestState()
        self.session_id = 0
        self.requests_started = 0
        self.listeners: List[Callable[[AdviceRequestState], None]] = []

    def get_state(self) -> AdviceRequestState:
        return self.state.model_copy(deep=True)

    def evaluate(self, snapshot: Sequence[DataPoint]) -> TriggerDecision:
        """Automatic trigger, called after every append."""
        latest = snapshot[-1] if snapshot else None
        decision = evaluate_trigger(
            is_high_stress(latest),
            self.state.last_requested_at,
            self.state.pending,
            len(snapshot),
            self.scheduler.now_ms(),
            min_samples=self.min_samples,
            cooldown_ms=self.cooldown_ms,
        )
        if decision.fire:
            self._fire(snapshot, decision.reason)
        return decision

    def request_now(self, snapshot: Sequence[DataPoint]) -> TriggerDecision:
        """Manual trigger from the UI's 'Analyze Now' action."""
        decision = evaluate_trigger(
            is_high_stress(snapshot[-1] if snapshot else None),
            self.state.last_requested_at,
            self.state.pending,
            len(snapshot),
            self.scheduler.now_ms(),
            min_samples=self.min_samples,
            cooldown_ms=self.cooldown_ms,
            manual=True,
        )
        if decision.fire:
            self._fire(snapshot, decision.reason)
        return decision

    def reset(self):
        """Start a new session. Any in-flight result becomes stale."""
        self.session_id += 1
        self.state = AdviceRequestState()
        self._notify()

    def _fire(self, snapshot: Sequence[DataPoint], reason: str):
        summary = summarize_window(snapshot)
        session = self.session_id

        self.state.pending = True
        self.state.last_error = None
        self.requests_started += 1
        logger.info(f"Requesting advice ({reason}): {summary.model_dump()}")
        self._notify()

        self.scheduler.run_in_background(
            lambda: self.advisor.analyze(summary),
            lambda result, error: self._settle(session, result, error),
        )

    def _settle(self, session: int, result: Optional[AdviceResponse], error: Optional[BaseException]):
        if session != self.session_id:
            logger.info("Discarding advice result from a previous session")
            return

        self.state.pending = False
        if error is not None:
            if isinstance(error, AdviceError):
                self.state.last_error = str(error)
            else:
                self.state.last_error = f"Unable to contact AI Coach: {error}"
            logger.error(f"Advice request failed: {self.state.last_error}")
        else:
            self.state.last_advice = result
            self.state.last_requested_at = self.scheduler.now_ms()
            logger.info("Advice received")
        self._notify()

    def _notify(self):
        snapshot = self.get_state()
        for listener in list(self.listeners):
            listener(snapshot)
