"""
Advice Trigger Tests
=====================
Validates:
1. Cooldown gate on automatic requests
2. At most one request in flight (automatic and manual)
3. Minimum sample gate (must be at least 1)
4. Settlement: success starts the cooldown, failure does not
5. Results from a previous session are discarded
"""

import pytest

from conftest import START_MS, StubAdvisor, make_point
from neuroflow.alerts.trigger_policy import (
    AdviceCoordinator,
    evaluate_trigger,
    should_request_advice,
)
from neuroflow.errors import AdviceError

NOW = START_MS + 10 * 60 * 1000


def _window(n=10, stress=90):
    return [make_point(timestamp=START_MS + i * 1000, stress_score=stress) for i in range(n)]


# --- Pure decision ---

def test_cooldown_blocks_within_sixty_seconds():
    assert not should_request_advice(True, NOW - 30_000, False, 10, NOW)


def test_cooldown_expired_fires():
    assert should_request_advice(True, NOW - 61_000, False, 10, NOW)


def test_exactly_sixty_seconds_still_cooling_down():
    assert not should_request_advice(True, NOW - 60_000, False, 10, NOW)


def test_never_requested_fires_on_high_stress():
    assert should_request_advice(True, None, False, 5, NOW)


def test_not_high_stress_does_not_fire():
    assert not should_request_advice(False, None, False, 10, NOW)


def test_min_samples_gate():
    assert not should_request_advice(True, None, False, 4, NOW)
    assert not evaluate_trigger(False, None, False, 4, NOW, manual=True).fire


def test_pending_blocks_everything():
    assert not should_request_advice(True, None, True, 60, NOW)
    decision = evaluate_trigger(True, None, True, 60, NOW, manual=True)
    assert not decision.fire
    assert "in flight" in decision.reason


def test_manual_bypasses_stress_and_cooldown():
    assert evaluate_trigger(False, NOW - 1_000, False, 5, NOW, manual=True).fire


# --- Coordinator ---

def test_automatic_fire_sends_summary_and_sets_pending(scheduler, advisor):
    coordinator = AdviceCoordinator(advisor, scheduler)
    assert coordinator.evaluate(_window()).fire
    assert coordinator.state.pending

    scheduler.settle_background()
    assert advisor.summaries[0].current_stress == 90
    assert not coordinator.state.pending
    assert coordinator.state.last_requested_at == scheduler.now_ms()
    assert coordinator.state.last_advice.recommendations[0].title == "Box breathing"


def test_second_fire_rejected_while_pending(scheduler, advisor):
    coordinator = AdviceCoordinator(advisor, scheduler)
    coordinator.evaluate(_window())
    assert not coordinator.evaluate(_window()).fire
    assert not coordinator.request_now(_window()).fire
    assert scheduler.pending_background == 1


def test_cooldown_after_success(scheduler, advisor):
    coordinator = AdviceCoordinator(advisor, scheduler)
    coordinator.evaluate(_window())
    scheduler.settle_background()

    scheduler.advance(30)
    assert not coordinator.evaluate(_window()).fire
    scheduler.advance(31)
    assert coordinator.evaluate(_window()).fire


def test_failure_records_error_and_allows_retry(scheduler):
    coordinator = AdviceCoordinator(StubAdvisor(error=AdviceError("GROQ_API_KEY is not set")), scheduler)
    coordinator.evaluate(_window())
    scheduler.settle_background()

    assert coordinator.state.last_error == "GROQ_API_KEY is not set"
    assert coordinator.state.last_requested_at is None
    assert not coordinator.state.pending
    assert coordinator.evaluate(_window()).fire


def test_unexpected_error_is_contained(scheduler):
    coordinator = AdviceCoordinator(StubAdvisor(error=ConnectionError("network down")), scheduler)
    coordinator.request_now(_window(stress=10))
    scheduler.settle_background()
    assert "network down" in coordinator.state.last_error


def test_failed_retry_keeps_previous_advice(scheduler, advisor):
    coordinator = AdviceCoordinator(advisor, scheduler)
    coordinator.request_now(_window())
    scheduler.settle_background()

    advisor.error = AdviceError("Malformed AI response")
    coordinator.request_now(_window())
    assert coordinator.state.last_error is None
    scheduler.settle_background()
    assert coordinator.state.last_error == "Malformed AI response"
    assert coordinator.state.last_advice is not None


def test_stale_result_discarded_after_reset(scheduler, advisor):
    coordinator = AdviceCoordinator(advisor, scheduler)
    coordinator.evaluate(_window())
    coordinator.reset()
    scheduler.settle_background()

    state = coordinator.get_state()
    assert not state.pending
    assert state.last_advice is None
    assert state.last_requested_at is None


def test_listeners_see_pending_and_settled(scheduler, advisor):
    coordinator = AdviceCoordinator(advisor, scheduler)
    seen = []
    coordinator.listeners.append(lambda state: seen.append(state.pending))
    coordinator.request_now(_window())
    scheduler.settle_background()
    assert seen == [True, False]


def test_min_samples_below_one_rejected(scheduler, advisor):
    with pytest.raises(ValueError):
        AdviceCoordinator(advisor, scheduler, min_samples=0)


def test_manual_request_on_empty_window_does_not_fire(scheduler, advisor):
    coordinator = AdviceCoordinator(advisor, scheduler, min_samples=1)
    decision = coordinator.request_now([])
    assert not decision.fire
    assert scheduler.pending_background == 0
    assert advisor.summaries == []
