from __future__ import annotations

from smoothing import ScoreSmoother, StabilityFilter, StuckDetector


def test_smoother_updates_every_third_frame():
    smoother = ScoreSmoother()
    assert smoother.update(100) is False
    assert smoother.update(100) is False
    assert smoother.value == 0
    assert smoother.update(100) is True
    assert smoother.value == 40

    for _ in range(2):
        assert smoother.update(50) is False
    assert smoother.value == 40
    assert smoother.update(50) is True
    assert smoother.value == 44


def test_smoother_ramps_up_from_zero():
    smoother = ScoreSmoother()
    values = []
    for _ in range(12):
        if smoother.update(100):
            values.append(smoother.value)
    assert values == [40, 64, 78, 87]


def test_smoother_explicit_initial_value():
    smoother = ScoreSmoother(initial_value=100)
    for _ in range(3):
        smoother.update(50)
    assert smoother.value == 80
    smoother.reset()
    assert smoother.value == 100


def test_smoothed_value_stays_in_range():
    smoother = ScoreSmoother()
    for raw in [250, -40, 1000, -1000, 60, 100, 0] * 6:
        smoother.update(raw)
        assert 0 <= smoother.value <= 100


def test_smoother_reset():
    smoother = ScoreSmoother()
    for _ in range(3):
        smoother.update(70)
    smoother.reset()
    assert smoother.value == 0
    assert smoother.state.frame_counter == 0


def _jitter(k):
    return 1.0 + (0.0005 if k % 2 else -0.0005)


def test_stuck_after_two_seconds_of_tiny_changes():
    detector = StuckDetector()
    assert detector.update(1.0, 0) is False
    states = [detector.update(_jitter(k), k * 100) for k in range(1, 22)]
    assert not any(states[:20])
    assert states[20] is True


def test_single_spike_does_not_reset_stuck_timer():
    detector = StuckDetector()
    detector.update(1.0, 0)
    for k in range(1, 22):
        ratio = 1.01 if k == 10 else _jitter(k)
        stuck = detector.update(ratio, k * 100)
    assert stuck is True


def test_spike_while_stuck_keeps_flag():
    detector = StuckDetector()
    detector.update(1.0, 0)
    for k in range(1, 25):
        detector.update(1.0, k * 100)
    assert detector.is_stuck
    assert detector.update(1.05, 2500) is True
    assert detector.update(1.0, 2600) is True
    assert detector.state.change_streak == 0


def test_three_changing_frames_clear_stuck():
    detector = StuckDetector()
    detector.update(1.0, 0)
    for k in range(1, 25):
        detector.update(1.0, k * 100)
    assert detector.is_stuck

    assert detector.update(1.01, 2500) is True
    assert detector.update(1.02, 2600) is True
    assert detector.update(1.03, 2700) is False
    assert detector.state.last_ratio == 1.03
    assert detector.state.stuck_since_ms is None


def test_stability_filter_without_ratio_skips_stuck_detection():
    stability = StabilityFilter()
    for k in range(30):
        reading = stability.process(90, None, k * 100)
        assert reading.is_stuck is False
    assert stability.stuck.state.last_ratio is None
    assert reading.smoothed_value == 89


def test_stability_filter_reports_updates():
    stability = StabilityFilter()
    readings = [stability.process(100, 1.0, k * 100) for k in range(6)]
    assert [r.updated for r in readings] == [False, False, True, False, False, True]
    assert readings[-1].smoothed_value == 64
